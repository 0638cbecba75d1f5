"""Domain layer for Nutrir realtime notifications.

This module contains the change notification model and the ports the
realtime adapters implement. All domain models are pure Python with no
external dependencies beyond Pydantic.
"""

from .notifications import (
    ChangeNotification,
    EntityChangeType,
)

__all__ = [
    "ChangeNotification",
    "EntityChangeType",
]
