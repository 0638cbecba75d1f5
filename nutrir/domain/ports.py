"""Domain Ports - Abstract Contracts for Change Notification Delivery.

This module defines the Port interfaces that the realtime adapters implement,
the Result type used to report delivery outcomes, and the exception hierarchy
of the notification path.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Domain services depend on NotificationDispatcherPort only
    - Each transport (in-process broadcaster, remote channel groups) is a
      NotificationSink behind the same interface, so new transports can be
      added without touching callers
    - Delivery failures are communicated via Result, not exceptions: nothing in
      the notification path may fail the mutation that triggered it
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

from nutrir.domain.notifications import ChangeNotification

# Type variable for Result generic
T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (DeliveryError, BroadcasterClosedError, etc.)
        error_details: Additional error context (sink, group, connection_id, etc.)

    Example:
        ```python
        result = sink.deliver(notification)
        if result.is_failure():
            logger.warning(f"{result.error_type}: {result.error}")
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (e.g., "DeliveryError")
            error_details: Additional context (sink, group, etc.)

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class NotificationError(Exception):
    """Base exception for all notification-path errors."""
    pass


class BroadcasterClosedError(NotificationError):
    """Raised when subscribing to a broadcaster that has been shut down."""
    pass


class DeliveryError(NotificationError):
    """Raised when a notification cannot be handed to a transport.

    Attributes:
        sink: Name of the sink that failed
        details: Additional error details
    """

    def __init__(self, message: str, sink: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.sink = sink
        self.details = details or {}


# ============================================================================
# Ports
# ============================================================================

class NotificationSink(ABC):
    """Abstract contract for one notification transport.

    A sink receives every dispatched notification and hands it to its
    transport. Implementations must not block the caller on network I/O and
    should report failures through the returned Result instead of raising.
    """

    #: Short identifier used in logs and dispatch receipts
    name: str = "sink"

    #: True when deliver() only schedules work; such sinks are called first
    non_blocking: bool = False

    @abstractmethod
    def deliver(self, notification: ChangeNotification) -> Result[Any]:
        """Hand a notification to this sink's transport.

        Parameters:
            notification: The committed change to announce

        Returns:
            Result whose value is sink-specific (a delivery count for
            synchronous sinks, a pending future for asynchronous ones)
        """
        pass


class NotificationDispatcherPort(ABC):
    """Abstract contract used by domain services to announce a committed change."""

    @abstractmethod
    def dispatch(self, notification: ChangeNotification) -> Any:
        """Announce a change to every transport without raising on delivery failure."""
        pass

    @abstractmethod
    async def dispatch_async(self, notification: ChangeNotification) -> Any:
        """Announce a change and wait until asynchronous transports have finished."""
        pass
