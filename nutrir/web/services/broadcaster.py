"""In-process notification broadcaster.

This module provides the process-wide fan-out point for change notifications
among in-process listeners (one SessionNotificationRelay per active UI
session). It knows nothing about transports.

Thread Safety:
    Subscribers open and close sessions on request threads while domain
    services publish from others, so the listener registry is guarded by a
    threading.Lock. Publish takes a snapshot under the lock and invokes the
    callbacks outside it: a listener removed concurrently with a publish may
    or may not receive that publish, but is never invoked twice.
"""

import logging
import threading
from typing import Callable, Dict, Optional

from nutrir.domain.notifications import ChangeNotification
from nutrir.domain.ports import BroadcasterClosedError

logger = logging.getLogger(__name__)

Listener = Callable[[ChangeNotification], None]


class SubscriptionHandle:
    """Opaque token identifying one broadcaster subscription."""

    __slots__ = ("_listener_name",)

    def __init__(self, listener: Listener):
        self._listener_name = getattr(listener, "__qualname__", repr(listener))

    def __repr__(self) -> str:
        return f"<SubscriptionHandle {self._listener_name} at {id(self):#x}>"


class NotificationBroadcaster:
    """In-memory publish/subscribe hub for change notifications.

    One instance is created at application startup, injected wherever it is
    needed, and closed at shutdown. Listeners should be fast (post a refresh
    signal, not do I/O); no timeout is enforced.

    Example Usage:
        ```python
        broadcaster = NotificationBroadcaster()
        handle = broadcaster.subscribe(lambda n: print(n.entity_type))
        broadcaster.publish(notification)
        broadcaster.unsubscribe(handle)
        ```
    """

    def __init__(self):
        """Initialize broadcaster with no subscribers."""
        # dicts keep insertion order; delivery order is still not guaranteed
        self._listeners: Dict[SubscriptionHandle, Listener] = {}
        self._lock = threading.Lock()
        self._closed = False

    def subscribe(self, listener: Listener) -> SubscriptionHandle:
        """Register a callback invoked on every future publish.

        Parameters:
            listener: Callable receiving each ChangeNotification

        Returns:
            SubscriptionHandle to pass to unsubscribe()

        Raises:
            BroadcasterClosedError: If the broadcaster has been closed
        """
        handle = SubscriptionHandle(listener)
        with self._lock:
            if self._closed:
                raise BroadcasterClosedError("Cannot subscribe to a closed broadcaster")
            self._listeners[handle] = listener
            count = len(self._listeners)
        logger.debug(f"Listener subscribed. Total subscribers: {count}")
        return handle

    def unsubscribe(self, handle: Optional[SubscriptionHandle]) -> bool:
        """Remove a previously registered callback.

        Unknown, already-removed or None handles are ignored.

        Parameters:
            handle: Handle returned by subscribe()

        Returns:
            True if a listener was removed, False otherwise
        """
        if handle is None:
            return False
        with self._lock:
            removed = self._listeners.pop(handle, None) is not None
            count = len(self._listeners)
        if removed:
            logger.debug(f"Listener unsubscribed. Total subscribers: {count}")
        return removed

    def publish(self, notification: ChangeNotification) -> int:
        """Invoke every currently registered listener with a notification.

        Runs synchronously on the caller's thread. A failing listener is
        logged and skipped; the remaining listeners still run.

        Parameters:
            notification: Change to deliver

        Returns:
            Number of listeners that completed without raising
        """
        with self._lock:
            listeners = list(self._listeners.values())

        delivered = 0
        for listener in listeners:
            try:
                listener(notification)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Listener failed for {notification.entity_type} {notification.entity_id}: {str(e)}",
                    exc_info=True
                )
        return delivered

    @property
    def subscriber_count(self) -> int:
        """Number of registered listeners."""
        with self._lock:
            return len(self._listeners)

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    def close(self) -> None:
        """Drop every subscriber and refuse new ones (application shutdown)."""
        with self._lock:
            dropped = len(self._listeners)
            self._listeners.clear()
            self._closed = True
        logger.info(f"Broadcaster closed. Dropped {dropped} subscribers")
