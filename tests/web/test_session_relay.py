"""Tests for per-session notification relays."""

import asyncio
import threading

import pytest
from unittest.mock import Mock

from nutrir.domain.notifications import ChangeNotification, EntityChangeType
from nutrir.web.services.broadcaster import NotificationBroadcaster
from nutrir.web.services.session_relay import QueueSessionRelay, SessionNotificationRelay


def make_notification(entity_id=42, practitioner_user_id="u-1"):
    return ChangeNotification(
        entity_type="Client",
        entity_id=entity_id,
        change_type=EntityChangeType.UPDATED,
        practitioner_user_id=practitioner_user_id,
    )


@pytest.fixture
def broadcaster():
    return NotificationBroadcaster()


class TestSessionNotificationRelay:
    """Test relay lifecycle and re-emission."""

    def test_not_started_by_default(self, broadcaster):
        relay = SessionNotificationRelay(broadcaster)
        assert not relay.is_started
        assert broadcaster.subscriber_count == 0

    def test_start_is_idempotent(self, broadcaster):
        """Repeated session initialization registers only once."""
        relay = SessionNotificationRelay(broadcaster)
        listener = Mock()
        relay.add_listener(listener)

        relay.start()
        relay.start()

        assert relay.is_started
        assert broadcaster.subscriber_count == 1
        broadcaster.publish(make_notification())
        listener.assert_called_once()

    def test_stop_without_start_is_noop(self, broadcaster):
        relay = SessionNotificationRelay(broadcaster)
        relay.stop()
        relay.stop()
        assert not relay.is_started

    def test_stop_twice_is_noop(self, broadcaster):
        relay = SessionNotificationRelay(broadcaster)
        relay.start()
        relay.stop()
        relay.stop()
        assert broadcaster.subscriber_count == 0

    def test_restart_after_stop(self, broadcaster):
        relay = SessionNotificationRelay(broadcaster)
        listener = Mock()
        relay.add_listener(listener)

        relay.start()
        relay.stop()
        relay.start()
        broadcaster.publish(make_notification())

        listener.assert_called_once()
        assert broadcaster.subscriber_count == 1

    def test_reemits_without_filtering(self, broadcaster):
        """Every notification reaches the session, whatever the practitioner."""
        relay = SessionNotificationRelay(broadcaster, session_id="s-1")
        received = []
        relay.add_listener(received.append)
        relay.start()

        first = make_notification(entity_id=1, practitioner_user_id="u-1")
        second = make_notification(entity_id=2, practitioner_user_id="u-2")
        broadcaster.publish(first)
        broadcaster.publish(second)

        assert received == [first, second]

    def test_stopped_relay_receives_nothing(self, broadcaster):
        relay = SessionNotificationRelay(broadcaster)
        listener = Mock()
        relay.add_listener(listener)
        relay.start()
        relay.stop()

        broadcaster.publish(make_notification())

        listener.assert_not_called()

    def test_failing_session_listener_is_isolated(self, broadcaster):
        relay = SessionNotificationRelay(broadcaster)
        failing = Mock(side_effect=ValueError("stale component"))
        healthy = Mock()
        relay.add_listener(failing)
        relay.add_listener(healthy)
        other_session = Mock()
        broadcaster.subscribe(other_session)
        relay.start()

        notification = make_notification()
        broadcaster.publish(notification)

        healthy.assert_called_once_with(notification)
        other_session.assert_called_once_with(notification)

    def test_remove_listener(self, broadcaster):
        relay = SessionNotificationRelay(broadcaster)
        listener = Mock()
        relay.add_listener(listener)
        relay.remove_listener(listener)
        relay.remove_listener(listener)
        relay.start()

        broadcaster.publish(make_notification())

        listener.assert_not_called()

    def test_context_manager_releases_on_error(self, broadcaster):
        """The subscription is released on every exit path."""
        with pytest.raises(RuntimeError):
            with SessionNotificationRelay(broadcaster) as relay:
                assert relay.is_started
                assert broadcaster.subscriber_count == 1
                raise RuntimeError("session crashed")

        assert broadcaster.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_async_context_manager(self, broadcaster):
        async with SessionNotificationRelay(broadcaster) as relay:
            assert relay.is_started
        assert broadcaster.subscriber_count == 0

    def test_two_sessions_scenario(self, broadcaster):
        """Both sessions get a change; after A stops, only B does."""
        session_a = SessionNotificationRelay(broadcaster, session_id="A")
        session_b = SessionNotificationRelay(broadcaster, session_id="B")
        callback_a = Mock()
        callback_b = Mock()
        session_a.add_listener(callback_a)
        session_b.add_listener(callback_b)
        session_a.start()
        session_b.start()

        first = make_notification(entity_id=42, practitioner_user_id="u-1")
        broadcaster.publish(first)

        callback_a.assert_called_once_with(first)
        callback_b.assert_called_once_with(first)

        session_a.stop()
        second = make_notification(entity_id=43, practitioner_user_id="u-1")
        broadcaster.publish(second)

        callback_a.assert_called_once_with(first)
        assert callback_b.call_count == 2
        callback_b.assert_called_with(second)


class TestQueueSessionRelay:
    """Test the asyncio.Queue bridge used by async UI sessions."""

    @pytest.mark.asyncio
    async def test_publish_on_loop_thread(self, broadcaster):
        relay = QueueSessionRelay(broadcaster, loop=asyncio.get_running_loop(), session_id="s-1")
        relay.start()

        notification = make_notification()
        broadcaster.publish(notification)

        received = await asyncio.wait_for(relay.queue.get(), timeout=1.0)
        assert received == notification
        relay.stop()

    @pytest.mark.asyncio
    async def test_publish_from_other_thread(self, broadcaster):
        """Notifications published on a worker thread reach the session loop."""
        relay = QueueSessionRelay(broadcaster, loop=asyncio.get_running_loop())
        relay.start()

        notification = make_notification(entity_id=99)
        worker = threading.Thread(target=broadcaster.publish, args=(notification,))
        worker.start()
        worker.join()

        received = await asyncio.wait_for(relay.queue.get(), timeout=1.0)
        assert received.entity_id == 99
        relay.stop()

    @pytest.mark.asyncio
    async def test_full_queue_drops(self, broadcaster):
        relay = QueueSessionRelay(broadcaster, loop=asyncio.get_running_loop(), max_queue_size=1)
        relay.start()

        broadcaster.publish(make_notification(entity_id=1))
        broadcaster.publish(make_notification(entity_id=2))
        await asyncio.sleep(0.01)

        assert relay.queue.qsize() == 1
        assert relay.dropped == 1
        assert (await relay.queue.get()).entity_id == 1
        relay.stop()
