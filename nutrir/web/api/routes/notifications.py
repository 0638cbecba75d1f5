"""Server-sent events endpoint for UI sessions.

Each open stream is one UI session: it owns a relay subscribed to the
broadcaster for exactly as long as the stream is open. The session consumer
(the page) decides which changes require a re-render, so no filtering by
practitioner happens here.
"""

import asyncio
import json
import logging
import uuid
from typing import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from nutrir.web.api.dependencies import BroadcasterDep, SettingsDep
from nutrir.web.services.broadcaster import NotificationBroadcaster
from nutrir.web.services.session_relay import QueueSessionRelay

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

logger = logging.getLogger(__name__)

EVENT_NAME = "entity_changed"


def format_sse(event: str, data: dict) -> str:
    """Encode one server-sent event frame."""
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


async def session_event_stream(
    request: Request,
    relay: QueueSessionRelay,
    heartbeat_interval: float,
) -> AsyncIterator[str]:
    """Yield SSE frames for one session until the client goes away.

    The relay is released on every exit path (client disconnect, server
    shutdown, error).
    """
    try:
        yield format_sse("connected", {"session_id": relay.session_id})
        while True:
            try:
                notification = await asyncio.wait_for(relay.queue.get(), timeout=heartbeat_interval)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    break
                yield ": heartbeat\n\n"
                continue
            yield format_sse(EVENT_NAME, notification.to_wire())
    finally:
        relay.stop()
        logger.info(f"UI session {relay.session_id} stream closed")


def open_session_relay(broadcaster: NotificationBroadcaster) -> QueueSessionRelay:
    """Create and start a relay for a new UI session on the running loop."""
    relay = QueueSessionRelay(
        broadcaster,
        loop=asyncio.get_running_loop(),
        session_id=uuid.uuid4().hex,
    )
    relay.start()
    return relay


@router.get("/stream")
async def notification_stream(
    request: Request,
    broadcaster: BroadcasterDep,
    settings: SettingsDep,
) -> StreamingResponse:
    """Stream change notifications to a UI session.

    Event Types:
        - connected: First frame, carries the session id
        - entity_changed: One committed change
        - comment heartbeats after each idle interval
    """
    relay = open_session_relay(broadcaster)
    logger.info(f"UI session {relay.session_id} stream opened")
    return StreamingResponse(
        session_event_stream(request, relay, settings.heartbeat_interval),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        background=BackgroundTask(relay.stop),
    )
