"""
Alert event bus tests.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from btcwatch.database.models import AlertEvent
from btcwatch.events import AlertEventBus


@pytest.fixture
def event():
    return AlertEvent(
        id=1,
        rule_id=1,
        triggered_at=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
        price_at_trigger=Decimal("65000"),
        message="BTC at $65,000.00",
    )


class TestAlertEventBus:
    """Test publish/subscribe delivery of new alerts."""

    def test_publish_to_subscribers(self, event):
        """Should call every subscriber with the event."""
        bus = AlertEventBus()
        first, second = [], []
        bus.subscribe(first.append)
        bus.subscribe(second.append)

        bus.publish(event)

        assert first == [event]
        assert second == [event]

    def test_unsubscribe(self, event):
        """Should stop calling removed subscribers."""
        bus = AlertEventBus()
        received = []
        bus.subscribe(received.append)
        bus.unsubscribe(received.append)

        bus.publish(event)

        assert received == []
        assert bus.subscribers == ()

    def test_unsubscribe_unknown(self):
        """Should ignore handlers that were never subscribed."""
        AlertEventBus().unsubscribe(print)

    def test_failing_subscriber_isolated(self, event):
        """Should keep notifying others when one subscriber raises."""
        bus = AlertEventBus()
        received = []

        def _broken(_event):
            raise RuntimeError("socket closed")

        bus.subscribe(_broken)
        bus.subscribe(received.append)

        bus.publish(event)

        assert received == [event]

    def test_publish_without_subscribers(self, event):
        """Should do nothing when nobody listens."""
        AlertEventBus().publish(event)
