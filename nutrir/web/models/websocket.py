"""WebSocket message models for real-time updates.

This module defines Pydantic models for messages sent from the server to
remote clients over the notification channel.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from nutrir.domain.notifications import ChangeNotification


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WebSocketMessage(BaseModel):
    """Base WebSocket message model."""

    type: str = Field(..., description="Message type identifier")
    timestamp: datetime = Field(default_factory=_now, description="Message timestamp")


class ConnectionMessage(WebSocketMessage):
    """Message sent when the notification channel is established."""

    type: Literal["connection"] = "connection"
    message: str = Field(..., description="Connection status message")
    connection_id: str = Field(..., description="Server-assigned connection identifier")
    group: Optional[str] = Field(None, description="Practitioner group joined, if any")
    server_time: datetime = Field(default_factory=_now, description="Server timestamp")


class HeartbeatMessage(WebSocketMessage):
    """Heartbeat message to keep connection alive."""

    type: Literal["heartbeat"] = "heartbeat"


class EntityChangedMessage(WebSocketMessage):
    """Wire event announcing one committed domain mutation."""

    type: Literal["entity_changed"] = "entity_changed"
    data: Dict[str, Any] = Field(..., description="Serialized change notification")

    @classmethod
    def from_notification(cls, notification: ChangeNotification) -> "EntityChangedMessage":
        """Build the wire event for a change notification."""
        return cls(data=notification.to_wire())


class ErrorMessage(WebSocketMessage):
    """Error message sent to client."""

    type: Literal["error"] = "error"
    error: str = Field(..., description="Error message")
    error_type: Optional[str] = Field(None, description="Error type identifier")
