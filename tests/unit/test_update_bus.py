from collections.abc import Callable
from unittest.mock import MagicMock

from bgv.database.models import LookupRecord
from bgv.updates.bus import UpdateBus


class TestSubscribe:
    def test_counts_subscribers_per_candidate(self) -> None:
        bus = UpdateBus()
        bus.subscribe("cand-1", MagicMock())
        bus.subscribe("cand-1", MagicMock())
        bus.subscribe("cand-2", MagicMock())

        assert bus.subscriber_count("cand-1") == 2
        assert bus.subscriber_count("cand-2") == 1
        assert bus.subscriber_count("cand-3") == 0

    def test_unsubscribe_releases_handle(self) -> None:
        bus = UpdateBus()
        subscription = bus.subscribe("cand-1", MagicMock())

        bus.unsubscribe(subscription)

        assert bus.subscriber_count("cand-1") == 0
        assert subscription.active is False

    def test_unsubscribe_twice_is_harmless(self) -> None:
        bus = UpdateBus()
        subscription = bus.subscribe("cand-1", MagicMock())

        bus.unsubscribe(subscription)
        bus.unsubscribe(subscription)

        assert bus.subscriber_count("cand-1") == 0


class TestPublish:
    def test_delivers_only_to_matching_candidate(
        self, make_record: Callable[..., LookupRecord]
    ) -> None:
        bus = UpdateBus()
        mine, other = MagicMock(), MagicMock()
        bus.subscribe("cand-1", mine)
        bus.subscribe("cand-2", other)
        record = make_record(candidate_id="cand-1")

        delivered = bus.publish(record)

        assert delivered == 1
        mine.assert_called_once_with(record)
        other.assert_not_called()

    def test_duplicate_event_delivered_once_per_subscription(
        self, make_record: Callable[..., LookupRecord]
    ) -> None:
        bus = UpdateBus()
        handler = MagicMock()
        bus.subscribe("cand-1", handler)
        record = make_record(id=10)

        bus.publish(record)
        bus.publish(record)

        handler.assert_called_once_with(record)

    def test_new_records_still_delivered(self, make_record: Callable[..., LookupRecord]) -> None:
        bus = UpdateBus()
        handler = MagicMock()
        bus.subscribe("cand-1", handler)

        bus.publish(make_record(id=10))
        bus.publish(make_record(id=11))

        assert handler.call_count == 2

    def test_failing_handler_does_not_stop_others(
        self, make_record: Callable[..., LookupRecord]
    ) -> None:
        bus = UpdateBus()
        broken = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        bus.subscribe("cand-1", broken)
        bus.subscribe("cand-1", healthy)

        delivered = bus.publish(make_record())

        assert delivered == 1
        healthy.assert_called_once()

    def test_failed_handler_gets_redelivery(
        self, make_record: Callable[..., LookupRecord]
    ) -> None:
        bus = UpdateBus()
        handler = MagicMock(side_effect=[RuntimeError("database unavailable"), None])
        bus.subscribe("cand-1", handler)
        record = make_record(id=12)

        assert bus.publish(record) == 0
        assert bus.publish(record) == 1
        assert bus.publish(record) == 0
        assert handler.call_count == 2

    def test_released_subscription_gets_nothing(
        self, make_record: Callable[..., LookupRecord]
    ) -> None:
        bus = UpdateBus()
        handler = MagicMock()
        subscription = bus.subscribe("cand-1", handler)
        bus.unsubscribe(subscription)

        assert bus.publish(make_record()) == 0
        handler.assert_not_called()
