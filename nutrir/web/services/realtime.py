"""Realtime service wiring.

Builds the single, explicitly constructed set of realtime components for the
process: created at application startup, injected through FastAPI
dependencies, and torn down at shutdown.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from nutrir.domain.services.change_notifier import ChangeNotifier
from nutrir.web.services.broadcaster import NotificationBroadcaster
from nutrir.web.services.channel_groups import ChannelGroupManager
from nutrir.web.services.dispatcher import BroadcasterSink, NotificationDispatcher, RemoteChannelSink

logger = logging.getLogger(__name__)


@dataclass
class RealtimeServices:
    """Process-wide realtime components."""

    broadcaster: NotificationBroadcaster
    group_manager: ChannelGroupManager
    remote_sink: RemoteChannelSink
    dispatcher: NotificationDispatcher
    notifier: ChangeNotifier

    def bind_loop(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Attach remote delivery to the server event loop."""
        self.remote_sink.bind_loop(loop)

    async def shutdown(self) -> None:
        """Finish in-flight remote sends, then drop every subscriber."""
        await self.remote_sink.drain()
        self.broadcaster.close()


def create_realtime_services() -> RealtimeServices:
    """Construct the broadcaster, group manager and dispatcher.

    The dispatcher calls the remote sink ahead of the broadcaster sink, so a
    slow session listener never holds back remote sends.
    """
    broadcaster = NotificationBroadcaster()
    group_manager = ChannelGroupManager()
    remote_sink = RemoteChannelSink(group_manager)
    dispatcher = NotificationDispatcher([
        BroadcasterSink(broadcaster),
        remote_sink,
    ])
    logger.debug("Realtime services created")
    return RealtimeServices(
        broadcaster=broadcaster,
        group_manager=group_manager,
        remote_sink=remote_sink,
        dispatcher=dispatcher,
        notifier=ChangeNotifier(dispatcher),
    )
