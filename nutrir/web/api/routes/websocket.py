"""WebSocket endpoint for remote notification channels.

Remote clients (other devices of a practitioner, external front-ends) hold a
persistent WebSocket. Each authenticated connection joins its practitioner's
group and receives an ``entity_changed`` event for every change dispatched
for that practitioner.
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from nutrir.web.api.dependencies import GroupManagerDep, SettingsDep
from nutrir.web.api.security import AuthenticationError, authenticate_connection, reject_websocket
from nutrir.web.models.websocket import ConnectionMessage, ErrorMessage, HeartbeatMessage

router = APIRouter(tags=["websocket"])

logger = logging.getLogger(__name__)

PING_TEXT = "ping"


@router.websocket("/ws/notifications")
async def websocket_notifications(
    websocket: WebSocket,
    group_manager: GroupManagerDep,
    settings: SettingsDep,
):
    """WebSocket endpoint for practitioner-scoped change notifications.

    Authentication:
        Bearer token in the Authorization header or the ``token`` query
        parameter. Missing or invalid token: closed with code 1008. Valid
        token without a practitioner claim: accepted, joins no group.

    Message Types:
        - connection: Sent when the connection is registered
        - entity_changed: A committed change for this practitioner
        - heartbeat: Sent after each idle interval, or in reply to "ping"
        - error: Error message

    The connection always leaves its group when this handler exits, whether
    the client disconnected normally or the session failed.
    """
    try:
        principal = authenticate_connection(websocket, settings.auth_config)
    except AuthenticationError as e:
        await reject_websocket(websocket, str(e))
        return

    connection = await group_manager.connect(websocket, principal.practitioner_id)

    try:
        await group_manager.send_personal_message(
            ConnectionMessage(
                message="WebSocket connected. Real-time updates enabled.",
                connection_id=connection.connection_id,
                group=connection.group,
            ),
            connection
        )

        while True:
            try:
                text = await asyncio.wait_for(websocket.receive_text(), timeout=settings.heartbeat_interval)
            except asyncio.TimeoutError:
                await group_manager.send_personal_message(HeartbeatMessage(), connection)
                continue

            if text.strip().lower() == PING_TEXT:
                await group_manager.send_personal_message(HeartbeatMessage(), connection)

    except WebSocketDisconnect:
        logger.info(f"WebSocket client {connection.connection_id} disconnected")
    except Exception as e:
        logger.error(f"WebSocket error: {str(e)}", exc_info=True)
        try:
            await group_manager.send_personal_message(
                ErrorMessage(error="Internal server error", error_type="WebSocketError"),
                connection
            )
        except Exception:
            logger.debug(f"Could not report error to {connection.connection_id}; connection already closed")
    finally:
        await group_manager.disconnect(connection)
