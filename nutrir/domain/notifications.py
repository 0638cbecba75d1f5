"""Change Notification Models.

This module defines the message that describes one committed domain mutation
(a client, appointment or meal plan being created, updated or deleted). The
realtime layer only forwards these values; it never interprets the entity type,
the entity id or the change type.

Security Impact:
    - Notifications carry identifiers only, never clinical content
    - The practitioner id is the sole routing key used to scope remote delivery

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Models are frozen so one instance can be shared by every subscriber
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EntityChangeType(str, Enum):
    """Kinds of change announced by the domain services."""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class ChangeNotification(BaseModel):
    """Immutable description of one committed domain mutation.

    Parameters:
        entity_type: Which domain entity changed (e.g. "Client", "Appointment")
        entity_id: Identifier of the affected record
        change_type: Change tag; EntityChangeType values or any other string,
            forwarded untouched
        practitioner_user_id: Owning practitioner; None means the notification
            cannot be routed to a remote group
        timestamp: UTC time the change was announced
    """

    model_config = ConfigDict(frozen=True)

    entity_type: str = Field(..., min_length=1, description="Domain entity that changed")
    entity_id: Union[int, str] = Field(..., description="Identifier of the affected record")
    change_type: Union[EntityChangeType, str] = Field(..., description="created, updated or deleted")
    practitioner_user_id: Optional[str] = Field(None, description="Owning practitioner (routing key)")
    timestamp: datetime = Field(default_factory=utc_now, description="UTC time of the change")

    @field_validator("practitioner_user_id")
    @classmethod
    def normalize_practitioner_user_id(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank practitioner ids as missing."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def is_routable(self) -> bool:
        """True when the notification names an owning practitioner."""
        return self.practitioner_user_id is not None

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON-safe payload sent to remote clients.

        Returns:
            Dictionary with entity_type, entity_id, change_type,
            practitioner_user_id and an ISO-8601 timestamp
        """
        change_type = self.change_type
        if isinstance(change_type, EntityChangeType):
            change_type = change_type.value
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "change_type": change_type,
            "practitioner_user_id": self.practitioner_user_id,
            "timestamp": self.timestamp.isoformat(),
        }
