"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from btcwatch.database.connection import Database
from btcwatch.database.models import PriceSample


@pytest.fixture
def db():
    """Create in-memory database with schema."""
    db = Database(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def sample_feed_payload():
    """Sample price feed JSON response."""
    return {
        "price": {"live_price": "$100,533.13 \n -1452.14 [-1.42%]"},
        "price_": {"market_cap": 1_995_000_000_000},
        "trading": {"daily_btc_trading_vol": 38_512.5},
    }


@pytest.fixture
def make_sample():
    """Factory for price samples."""

    def _make(
        price="65000.00",
        percent_change=None,
        absolute_change=None,
        captured_at=None,
    ) -> PriceSample:
        return PriceSample(
            price=Decimal(price),
            percent_change=(
                Decimal(percent_change) if percent_change is not None else None
            ),
            absolute_change=(
                Decimal(absolute_change) if absolute_change is not None else None
            ),
            captured_at=captured_at or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
            source="test",
        )

    return _make


@pytest.fixture
def sample_slack_webhook_url():
    """Sample Slack webhook URL for testing."""
    return "https://hooks.slack.com/services/T000/B000/XXXXXXXX"


@pytest.fixture
def sample_discord_webhook_url():
    """Sample Discord webhook URL for testing."""
    return "https://discord.com/api/webhooks/123456789/abcdefghijklmnop"
