"""Remote channel group manager.

This module manages the WebSocket connections of remote clients and groups
them by owning practitioner, so a change can be sent to every device of the
practitioner it belongs to and to nobody else.

Connection lifecycle:
    connecting -> joined -> closed   (practitioner known)
    connecting -> closed             (no practitioner claim: never grouped)
"""

import asyncio
import logging
import uuid
from enum import Enum
from typing import Dict, List, Optional, Set

from fastapi import WebSocket

from nutrir.web.models.websocket import WebSocketMessage

logger = logging.getLogger(__name__)

GROUP_PREFIX = "practitioner-"


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    JOINED = "joined"
    CLOSED = "closed"


class RemoteConnection:
    """One remote client connection and its group membership.

    Attributes:
        connection_id: Server-assigned identifier (uuid4 hex)
        websocket: Underlying WebSocket
        practitioner_id: Owning practitioner, if the principal carried one
        group: Group joined, if any
        state: Current ConnectionState
    """

    def __init__(self, websocket: WebSocket, practitioner_id: Optional[str] = None):
        self.connection_id = uuid.uuid4().hex
        self.websocket = websocket
        self.practitioner_id = practitioner_id
        self.group: Optional[str] = None
        self.state = ConnectionState.CONNECTING

    def __repr__(self) -> str:
        return f"<RemoteConnection {self.connection_id} group={self.group} state={self.state.value}>"


class ChannelGroupManager:
    """Manages remote connections grouped by practitioner.

    Thread Safety:
        Designed for the server's event loop. Membership changes and send
        snapshots are guarded by an asyncio.Lock; sends happen outside it, so
        a connection leaving mid-send may or may not receive that send.
    """

    def __init__(self):
        """Initialize group manager."""
        self._connections: Dict[str, RemoteConnection] = {}
        self._groups: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def group_name(practitioner_id: str) -> str:
        """Return the group name for a practitioner.

        Deterministic and reproducible from the id alone, so the dispatcher
        can compute the target without a lookup table.
        """
        return f"{GROUP_PREFIX}{practitioner_id}"

    async def connect(self, websocket: WebSocket, practitioner_id: Optional[str] = None) -> RemoteConnection:
        """Accept a WebSocket and register it, joining its practitioner's group.

        Parameters:
            websocket: WebSocket connection to accept and register
            practitioner_id: Owning practitioner from the authenticated
                principal; None leaves the connection un-grouped

        Returns:
            RemoteConnection describing the registration
        """
        await websocket.accept()
        connection = RemoteConnection(websocket, practitioner_id)
        async with self._lock:
            self._connections[connection.connection_id] = connection
            if practitioner_id:
                group = self.group_name(practitioner_id)
                self._groups.setdefault(group, set()).add(connection.connection_id)
                connection.group = group
                connection.state = ConnectionState.JOINED
            total = len(self._connections)

        if connection.group:
            logger.info(f"Remote client {connection.connection_id} joined {connection.group}. Total connections: {total}")
        else:
            logger.info(f"Remote client {connection.connection_id} connected without practitioner. Total connections: {total}")
        return connection

    async def disconnect(self, connection: RemoteConnection) -> None:
        """Remove a connection from its group and the registry.

        Idempotent; meant to run from a finally block so it also executes when
        the session ended with an error.

        Parameters:
            connection: Connection returned by connect()
        """
        async with self._lock:
            self._connections.pop(connection.connection_id, None)
            if connection.group:
                members = self._groups.get(connection.group)
                if members is not None:
                    members.discard(connection.connection_id)
                    if not members:
                        del self._groups[connection.group]
            already_closed = connection.state == ConnectionState.CLOSED
            connection.state = ConnectionState.CLOSED
            total = len(self._connections)
        if not already_closed:
            logger.info(f"Remote client {connection.connection_id} disconnected. Total connections: {total}")

    async def send_personal_message(self, message: WebSocketMessage, connection: RemoteConnection) -> None:
        """Send a message to a specific connection.

        Parameters:
            message: Message to send (Pydantic model)
            connection: Target connection

        Raises:
            WebSocketDisconnect: If connection is closed
        """
        try:
            await connection.websocket.send_json(message.model_dump(mode="json"))
        except Exception as e:
            logger.error(f"Error sending personal message: {str(e)}", exc_info=True)
            raise

    async def send_to_group(self, group: str, message: WebSocketMessage) -> int:
        """Send a message to every member of a group.

        A failing connection is logged and skipped; the other members still
        receive the message. Dead connections are left for their own
        endpoint's cleanup to remove.

        Parameters:
            group: Target group name
            message: Message to send (Pydantic model)

        Returns:
            Number of connections that received the message
        """
        async with self._lock:
            targets = [
                self._connections[connection_id]
                for connection_id in self._groups.get(group, ())
                if connection_id in self._connections
            ]

        if not targets:
            return 0

        payload = message.model_dump(mode="json")
        sent_count = 0
        for connection in targets:
            try:
                await connection.websocket.send_json(payload)
                sent_count += 1
            except Exception as e:
                logger.warning(f"Failed to send message to {connection.connection_id} in {group}: {str(e)}")

        return sent_count

    async def get_connection_count(self) -> int:
        """Get the number of active connections."""
        async with self._lock:
            return len(self._connections)

    async def get_group_members(self, group: str) -> List[str]:
        """Get connection ids currently in a group."""
        async with self._lock:
            return sorted(self._groups.get(group, ()))

    async def get_group_count(self) -> int:
        """Get the number of non-empty groups."""
        async with self._lock:
            return len(self._groups)
