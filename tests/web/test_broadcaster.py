"""Tests for the in-process notification broadcaster."""

import threading

import pytest
from unittest.mock import Mock

from nutrir.domain.notifications import ChangeNotification, EntityChangeType
from nutrir.domain.ports import BroadcasterClosedError
from nutrir.web.services.broadcaster import NotificationBroadcaster, SubscriptionHandle


def make_notification(entity_id=42, practitioner_user_id="u-1"):
    return ChangeNotification(
        entity_type="Client",
        entity_id=entity_id,
        change_type=EntityChangeType.UPDATED,
        practitioner_user_id=practitioner_user_id,
    )


class TestSubscribe:
    """Test subscription management."""

    def test_initial_state(self):
        broadcaster = NotificationBroadcaster()
        assert broadcaster.subscriber_count == 0
        assert not broadcaster.is_closed

    def test_subscribe_returns_handle(self):
        broadcaster = NotificationBroadcaster()
        handle = broadcaster.subscribe(Mock())
        assert isinstance(handle, SubscriptionHandle)
        assert broadcaster.subscriber_count == 1

    def test_same_callback_twice_gets_two_handles(self):
        broadcaster = NotificationBroadcaster()
        listener = Mock()

        first = broadcaster.subscribe(listener)
        second = broadcaster.subscribe(listener)

        assert first is not second
        assert broadcaster.publish(make_notification()) == 2

    def test_unsubscribe_twice_is_noop(self):
        """Unsubscribe is idempotent and leaves other listeners alone."""
        broadcaster = NotificationBroadcaster()
        keep = Mock()
        broadcaster.subscribe(keep)
        handle = broadcaster.subscribe(Mock())

        assert broadcaster.unsubscribe(handle) is True
        assert broadcaster.unsubscribe(handle) is False
        assert broadcaster.subscriber_count == 1

        notification = make_notification()
        broadcaster.publish(notification)
        keep.assert_called_once_with(notification)

    def test_unsubscribe_unknown_handle_is_noop(self):
        broadcaster = NotificationBroadcaster()
        broadcaster.subscribe(Mock())

        assert broadcaster.unsubscribe(SubscriptionHandle(Mock())) is False
        assert broadcaster.unsubscribe(None) is False
        assert broadcaster.subscriber_count == 1


class TestPublish:
    """Test notification fan-out."""

    @pytest.mark.parametrize("count", [0, 1, 5, 50])
    def test_every_listener_called_once(self, count):
        broadcaster = NotificationBroadcaster()
        listeners = [Mock() for _ in range(count)]
        for listener in listeners:
            broadcaster.subscribe(listener)

        notification = make_notification()
        delivered = broadcaster.publish(notification)

        assert delivered == count
        for listener in listeners:
            listener.assert_called_once_with(notification)

    def test_late_subscriber_gets_no_replay(self):
        """A listener subscribed after a publish never sees that notification."""
        broadcaster = NotificationBroadcaster()
        broadcaster.subscribe(Mock())
        broadcaster.publish(make_notification(entity_id=1))

        late = Mock()
        broadcaster.subscribe(late)
        second = make_notification(entity_id=2)
        broadcaster.publish(second)

        late.assert_called_once_with(second)

    def test_failing_listener_is_isolated(self):
        """Listeners before and after a failing one still receive the notification."""
        broadcaster = NotificationBroadcaster()
        before = Mock()
        failing = Mock(side_effect=RuntimeError("render failed"))
        after = Mock()
        for listener in (before, failing, after):
            broadcaster.subscribe(listener)

        notification = make_notification()
        delivered = broadcaster.publish(notification)

        assert delivered == 2
        before.assert_called_once_with(notification)
        failing.assert_called_once_with(notification)
        after.assert_called_once_with(notification)

    def test_publish_is_synchronous(self):
        broadcaster = NotificationBroadcaster()
        seen = []
        broadcaster.subscribe(lambda n: seen.append((threading.get_ident(), n.entity_id)))

        broadcaster.publish(make_notification(entity_id=7))

        assert seen == [(threading.get_ident(), 7)]

    def test_unsubscribed_listener_not_called(self):
        broadcaster = NotificationBroadcaster()
        listener = Mock()
        handle = broadcaster.subscribe(listener)
        broadcaster.unsubscribe(handle)

        broadcaster.publish(make_notification())

        listener.assert_not_called()

    def test_listener_unsubscribing_during_publish(self):
        """A listener may remove another listener while a publish is in flight."""
        broadcaster = NotificationBroadcaster()
        victim = Mock()
        handles = {}

        def remover(notification):
            broadcaster.unsubscribe(handles["victim"])

        broadcaster.subscribe(remover)
        handles["victim"] = broadcaster.subscribe(victim)

        broadcaster.publish(make_notification())
        broadcaster.publish(make_notification())

        assert victim.call_count <= 1
        assert broadcaster.subscriber_count == 1


class TestClose:
    """Test shutdown behavior."""

    def test_close_drops_subscribers(self):
        broadcaster = NotificationBroadcaster()
        listener = Mock()
        broadcaster.subscribe(listener)

        broadcaster.close()

        assert broadcaster.is_closed
        assert broadcaster.subscriber_count == 0
        assert broadcaster.publish(make_notification()) == 0
        listener.assert_not_called()

    def test_subscribe_after_close_raises(self):
        broadcaster = NotificationBroadcaster()
        broadcaster.close()

        with pytest.raises(BroadcasterClosedError):
            broadcaster.subscribe(Mock())


class TestConcurrency:
    """Test concurrent subscribe, unsubscribe and publish."""

    def test_concurrent_subscribe_unsubscribe_publish(self):
        broadcaster = NotificationBroadcaster()
        stable = Mock()
        broadcaster.subscribe(stable)
        errors = []
        publishes = 200

        def churn():
            try:
                for _ in range(200):
                    handle = broadcaster.subscribe(lambda n: None)
                    broadcaster.unsubscribe(handle)
            except Exception as e:
                errors.append(e)

        def publish():
            try:
                for i in range(publishes):
                    broadcaster.publish(make_notification(entity_id=i))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=churn) for _ in range(4)]
        threads.append(threading.Thread(target=publish))
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert broadcaster.subscriber_count == 1
        assert stable.call_count == publishes
