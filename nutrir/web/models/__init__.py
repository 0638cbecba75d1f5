"""Realtime API Pydantic models."""

from nutrir.web.models.health import HealthResponse, RealtimeHealth
from nutrir.web.models.websocket import (
    WebSocketMessage,
    ConnectionMessage,
    HeartbeatMessage,
    EntityChangedMessage,
    ErrorMessage,
)
