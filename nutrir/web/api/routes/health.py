"""Health check endpoint for the realtime API."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from nutrir.infrastructure.settings import APP_VERSION
from nutrir.web.api.dependencies import RealtimeDep
from nutrir.web.models.health import HealthResponse, RealtimeHealth
from nutrir.web.services.realtime import RealtimeServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


async def check_realtime_health(services: RealtimeServices) -> RealtimeHealth:
    """Collect realtime fan-out statistics.

    Parameters:
        services: Realtime components of the running application

    Returns:
        RealtimeHealth: Current counts
    """
    return RealtimeHealth(
        broadcaster="closed" if services.broadcaster.is_closed else "open",
        subscribers=services.broadcaster.subscriber_count,
        connections=await services.group_manager.get_connection_count(),
        groups=await services.group_manager.get_group_count(),
        pending_remote_deliveries=services.remote_sink.pending_count,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(services: RealtimeDep) -> HealthResponse:
    """Health check endpoint.

    Used by monitoring tools and load balancers. The service is unhealthy
    once the broadcaster has been closed (shutdown in progress).

    Returns:
        HealthResponse: Service health status
    """
    try:
        realtime = await check_realtime_health(services)
        overall_status = "healthy" if realtime.broadcaster == "open" else "unhealthy"

        return HealthResponse(
            status=overall_status,
            timestamp=datetime.now(timezone.utc),
            version=APP_VERSION,
            realtime=realtime
        )

    except Exception as e:
        logger.error(f"Health check failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Health check failed"
        )
