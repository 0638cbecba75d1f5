"""Notification dispatcher and its transport sinks.

The dispatcher is the single ingress used by domain services to announce a
committed change. It hands each notification to every registered
NotificationSink:

    - BroadcasterSink: in-process, synchronous publish to every active UI
      session relay
    - RemoteChannelSink: schedules a send to the owning practitioner's group of
      remote connections on the server event loop, never blocking the caller

Delivery is best-effort. A failing sink is logged and recorded in the
DispatchReceipt; dispatch itself never raises because of delivery, and
never touches the mutation that triggered it.
"""

import asyncio
import concurrent.futures
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from nutrir.domain.notifications import ChangeNotification
from nutrir.domain.ports import (
    DeliveryError,
    NotificationDispatcherPort,
    NotificationSink,
    Result,
)
from nutrir.web.models.websocket import EntityChangedMessage
from nutrir.web.services.broadcaster import NotificationBroadcaster
from nutrir.web.services.channel_groups import ChannelGroupManager

logger = logging.getLogger(__name__)

PendingDelivery = Union[asyncio.Future, concurrent.futures.Future]


class BroadcasterSink(NotificationSink):
    """Sink publishing to the in-process broadcaster."""

    name = "broadcaster"

    def __init__(self, broadcaster: NotificationBroadcaster):
        self._broadcaster = broadcaster

    def deliver(self, notification: ChangeNotification) -> Result[int]:
        """Publish synchronously.

        Returns:
            Result with the number of listeners that received the notification
        """
        return Result.success_result(self._broadcaster.publish(notification))


class RemoteChannelSink(NotificationSink):
    """Sink sending to the owning practitioner's group of remote connections.

    The send runs on the event loop that owns the WebSockets. deliver() may be
    called from that loop (a task is created) or from any other thread (the
    coroutine is submitted with run_coroutine_threadsafe); either way it
    returns immediately.
    """

    name = "remote_channel"
    non_blocking = True

    def __init__(self, group_manager: ChannelGroupManager, loop: Optional[asyncio.AbstractEventLoop] = None):
        """Initialize sink.

        Parameters:
            group_manager: Manager holding the remote connections
            loop: Event loop owning the connections; when omitted, deliver()
                fails until bind_loop() is called
        """
        self._group_manager = group_manager
        self._loop = loop
        self._pending: Set[PendingDelivery] = set()
        self._pending_lock = threading.Lock()

    def bind_loop(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Attach the sink to the server event loop (application startup)."""
        self._loop = loop or asyncio.get_running_loop()

    def _resolve_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is None or self._loop.is_closed():
            return None
        return self._loop

    async def _send(self, group: str, message: EntityChangedMessage) -> int:
        try:
            return await self._group_manager.send_to_group(group, message)
        except Exception as e:
            logger.error(f"Remote delivery to {group} failed: {str(e)}", exc_info=True)
            return 0

    def _track(self, future: PendingDelivery) -> None:
        with self._pending_lock:
            self._pending.add(future)

        def _done(f: PendingDelivery) -> None:
            with self._pending_lock:
                self._pending.discard(f)

        future.add_done_callback(_done)

    def deliver(self, notification: ChangeNotification) -> Result[Optional[PendingDelivery]]:
        """Schedule delivery to the practitioner's group.

        Notifications without a practitioner id are not routable and are
        skipped without error.

        Returns:
            Result whose value is the pending future, or None when skipped
        """
        if not notification.is_routable:
            logger.debug(
                f"Skipping remote delivery of {notification.entity_type} {notification.entity_id}: no practitioner id"
            )
            return Result.success_result(None)

        loop = self._resolve_loop()
        if loop is None:
            return Result.failure_result(
                DeliveryError("No event loop bound for remote delivery", sink=self.name),
                error_details={"sink": self.name}
            )

        group = ChannelGroupManager.group_name(notification.practitioner_user_id)
        message = EntityChangedMessage.from_notification(notification)

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            future: PendingDelivery = loop.create_task(self._send(group, message))
        else:
            future = asyncio.run_coroutine_threadsafe(self._send(group, message), loop)
        self._track(future)
        return Result.success_result(future)

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish (application shutdown)."""
        with self._pending_lock:
            pending = list(self._pending)
        for future in pending:
            await _await_pending(future)


async def _await_pending(future: PendingDelivery) -> Any:
    if isinstance(future, concurrent.futures.Future):
        return await asyncio.wrap_future(future)
    return await future


@dataclass
class DispatchReceipt:
    """Outcome of one dispatch, per sink.

    Attributes:
        notification: The dispatched notification
        results: Sink name to the Result returned (or synthesized) for it
    """

    notification: ChangeNotification
    results: Dict[str, Result[Any]] = field(default_factory=dict)
    delivered: Dict[str, int] = field(default_factory=dict)

    @property
    def failed_sinks(self) -> List[str]:
        return [name for name, result in self.results.items() if result.is_failure()]

    @property
    def pending(self) -> List[PendingDelivery]:
        return [
            result.value
            for result in self.results.values()
            if result.is_success() and isinstance(result.value, (asyncio.Future, concurrent.futures.Future))
        ]


class NotificationDispatcher(NotificationDispatcherPort):
    """Fans each change notification out to every registered sink.

    Example Usage:
        ```python
        dispatcher = NotificationDispatcher([
            BroadcasterSink(broadcaster),
            RemoteChannelSink(group_manager),
        ])
        dispatcher.dispatch(notification)
        ```
    """

    def __init__(self, sinks: Sequence[NotificationSink]):
        """Initialize dispatcher.

        Parameters:
            sinks: Transports in registration order
        """
        self._sinks: List[NotificationSink] = list(sinks)

    @property
    def sinks(self) -> List[NotificationSink]:
        return list(self._sinks)

    def add_sink(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    def _ordered_sinks(self) -> List[NotificationSink]:
        scheduling = [sink for sink in self._sinks if sink.non_blocking is True]
        return scheduling + [sink for sink in self._sinks if sink.non_blocking is not True]

    def dispatch(self, notification: ChangeNotification) -> DispatchReceipt:
        """Hand a notification to every sink without waiting on remote I/O.

        Non-blocking sinks are called first, so remote sends are already
        scheduled while in-process listeners run.

        Parameters:
            notification: Change that has already been committed

        Returns:
            DispatchReceipt with each sink's Result
        """
        receipt = DispatchReceipt(notification=notification)
        for sink in self._ordered_sinks():
            try:
                result = sink.deliver(notification)
            except Exception as e:
                logger.error(f"Sink {sink.name} raised during dispatch: {str(e)}", exc_info=True)
                result = Result.failure_result(e, error_details={"sink": sink.name})

            if result.is_failure():
                logger.warning(
                    f"Sink {sink.name} could not deliver {notification.entity_type} "
                    f"{notification.entity_id}: {result.error_type}: {result.error}"
                )
            elif isinstance(result.value, int):
                receipt.delivered[sink.name] = result.value
            receipt.results[sink.name] = result
        return receipt

    async def dispatch_async(self, notification: ChangeNotification) -> DispatchReceipt:
        """Dispatch, then wait for the asynchronous sinks to finish.

        Returns:
            DispatchReceipt whose delivered map includes remote send counts
        """
        receipt = self.dispatch(notification)
        for name, result in receipt.results.items():
            value = result.value if result.is_success() else None
            if isinstance(value, (asyncio.Future, concurrent.futures.Future)):
                try:
                    receipt.delivered[name] = await _await_pending(value)
                except Exception as e:
                    logger.error(f"Pending delivery for sink {name} failed: {str(e)}", exc_info=True)
                    receipt.results[name] = Result.failure_result(e, error_details={"sink": name})
            elif result.is_success() and value is None:
                receipt.delivered.setdefault(name, 0)
        return receipt
