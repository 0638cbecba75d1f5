"""Health check models for the realtime API."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field


class RealtimeHealth(BaseModel):
    """Realtime fan-out status.

    Attributes:
        broadcaster: Whether the broadcaster accepts subscribers
        subscribers: In-process session relays currently subscribed
        connections: Remote connections currently registered
        groups: Practitioner groups with at least one connection
        pending_remote_deliveries: Remote sends scheduled but not finished
    """
    broadcaster: Literal["open", "closed"]
    subscribers: int = Field(..., ge=0)
    connections: int = Field(..., ge=0)
    groups: int = Field(..., ge=0)
    pending_remote_deliveries: int = Field(0, ge=0)


class HealthResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Overall service status
        timestamp: Current timestamp
        version: Application version
        realtime: Realtime fan-out status
    """
    status: Literal["healthy", "degraded", "unhealthy"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Current UTC timestamp")
    version: str = Field(default="1.0.0", description="Application version")
    realtime: RealtimeHealth
