"""Dependency injection for the realtime API.

The realtime components are constructed once in the application lifespan and
stored on ``app.state.realtime``; these functions hand them to routes.
"""

import logging
from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from nutrir.infrastructure.settings import Settings, get_settings
from nutrir.web.services.broadcaster import NotificationBroadcaster
from nutrir.web.services.channel_groups import ChannelGroupManager
from nutrir.web.services.realtime import RealtimeServices

logger = logging.getLogger(__name__)


def get_realtime_services(connection: HTTPConnection) -> RealtimeServices:
    """Get the realtime components of the running application.

    Works for both HTTP requests and WebSocket connections.

    Raises:
        RuntimeError: If the application lifespan has not run
    """
    services = getattr(connection.app.state, "realtime", None)
    if services is None:
        raise RuntimeError("Realtime services are not initialized")
    return services


def get_broadcaster(services: Annotated[RealtimeServices, Depends(get_realtime_services)]) -> NotificationBroadcaster:
    return services.broadcaster


def get_group_manager(services: Annotated[RealtimeServices, Depends(get_realtime_services)]) -> ChannelGroupManager:
    return services.group_manager


def get_app_settings() -> Settings:
    return get_settings()


# Type aliases for dependency injection
RealtimeDep = Annotated[RealtimeServices, Depends(get_realtime_services)]
BroadcasterDep = Annotated[NotificationBroadcaster, Depends(get_broadcaster)]
GroupManagerDep = Annotated[ChannelGroupManager, Depends(get_group_manager)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
