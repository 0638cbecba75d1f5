"""Session notification relay.

One relay exists per active UI session. It subscribes to the process-wide
broadcaster and re-emits every change to that session's own listeners (e.g.
a UI refresh callback). No practitioner filtering happens here; the session
consumer decides what is relevant.

The broadcaster keeps a strong reference to the relay's callback until the
relay is stopped, so every session must release its relay on every exit path.
Use it as a context manager:

    ```python
    with SessionNotificationRelay(broadcaster) as relay:
        relay.add_listener(refresh_view)
        ...
    ```
"""

import asyncio
import logging
import threading
from typing import Callable, List, Optional

from nutrir.domain.notifications import ChangeNotification
from nutrir.web.services.broadcaster import NotificationBroadcaster, SubscriptionHandle

logger = logging.getLogger(__name__)

SessionListener = Callable[[ChangeNotification], None]


class SessionNotificationRelay:
    """Bridges broadcaster events into one UI session's update path.

    Thread Safety:
        start(), stop() and listener registration may be called from the
        session's thread while notifications arrive on a publisher's thread.
    """

    def __init__(self, broadcaster: NotificationBroadcaster, session_id: Optional[str] = None):
        """Initialize relay.

        Parameters:
            broadcaster: Process-wide broadcaster to subscribe to
            session_id: Optional identifier used in log messages
        """
        self._broadcaster = broadcaster
        self.session_id = session_id
        self._handle: Optional[SubscriptionHandle] = None
        self._listeners: List[SessionListener] = []
        self._lock = threading.Lock()

    @property
    def is_started(self) -> bool:
        with self._lock:
            return self._handle is not None

    def start(self) -> None:
        """Subscribe to the broadcaster; a no-op when already subscribed."""
        with self._lock:
            if self._handle is not None:
                return
            self._handle = self._broadcaster.subscribe(self._on_notification)
        logger.debug(f"Session relay started (session={self.session_id})")

    def stop(self) -> None:
        """Unsubscribe from the broadcaster; safe to call at any time."""
        with self._lock:
            handle, self._handle = self._handle, None
        if handle is None:
            return
        self._broadcaster.unsubscribe(handle)
        logger.debug(f"Session relay stopped (session={self.session_id})")

    def add_listener(self, listener: SessionListener) -> None:
        """Register a session-level consumer of change notifications."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        """Remove a consumer; unknown listeners are ignored."""
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def _on_notification(self, notification: ChangeNotification) -> None:
        with self._lock:
            if self._handle is None:
                # stopped while this publish was in flight
                return
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(notification)
            except Exception as e:
                logger.error(
                    f"Session listener failed (session={self.session_id}): {str(e)}",
                    exc_info=True
                )

    def __enter__(self) -> "SessionNotificationRelay":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    async def __aenter__(self) -> "SessionNotificationRelay":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()


class QueueSessionRelay(SessionNotificationRelay):
    """Relay feeding an asyncio.Queue owned by an async UI session.

    Notifications may be published from any thread; they are moved onto the
    session's event loop with call_soon_threadsafe. When the queue is full the
    notification is dropped for this session (it will catch up on its next
    full refresh).
    """

    def __init__(
        self,
        broadcaster: NotificationBroadcaster,
        loop: asyncio.AbstractEventLoop,
        session_id: Optional[str] = None,
        max_queue_size: int = 100
    ):
        """Initialize relay.

        Parameters:
            broadcaster: Process-wide broadcaster to subscribe to
            loop: Event loop running the session
            session_id: Optional identifier used in log messages
            max_queue_size: Pending notifications kept before dropping
        """
        super().__init__(broadcaster, session_id=session_id)
        self._loop = loop
        self.queue: "asyncio.Queue[ChangeNotification]" = asyncio.Queue(maxsize=max_queue_size)
        self.dropped = 0
        self.add_listener(self._enqueue)

    def _put(self, notification: ChangeNotification) -> None:
        try:
            self.queue.put_nowait(notification)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"Session queue full, dropping {notification.entity_type} {notification.entity_id} "
                f"(session={self.session_id})"
            )

    def _enqueue(self, notification: ChangeNotification) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._put, notification)
