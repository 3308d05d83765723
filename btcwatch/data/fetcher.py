"""
Bitcoin price feed fetcher.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import requests

from btcwatch.database.models import PriceSample
from .parser import PriceParseError, parse_price_string

logger = logging.getLogger(__name__)


class PriceFeedError(Exception):
    """Raised when the upstream price feed cannot be reached."""

    pass


def _nested(data: Any, *keys: str) -> Any:
    """Walk nested dicts, returning None at the first missing key."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value).replace(",", ""))
    except InvalidOperation:
        return None


class PriceFeedFetcher:
    """Fetches the live BTC price from the upstream feed."""

    def __init__(self, url: str, timeout: float = 10.0, source: str = "roxom_api"):
        """
        Initialize fetcher.

        Args:
            url: Feed endpoint returning the price JSON document
            timeout: Seconds to wait for the feed before giving up
            source: Label stored with every sample
        """
        self.url = url
        self.timeout = timeout
        self.source = source

    def fetch(self) -> PriceSample:
        """
        Fetch and parse one price sample.

        Returns:
            PriceSample captured now

        Raises:
            PriceFeedError: If the feed is unreachable or returns an error status
            PriceParseError: If no price can be extracted from the payload
        """
        try:
            response = requests.get(
                self.url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PriceFeedError(f"Price feed request failed: {e}") from e

        if not response.ok:
            raise PriceFeedError(
                f"Price feed returned HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PriceParseError("Price feed returned invalid JSON") from e

        return self.parse_payload(data)

    def parse_payload(self, data: dict[str, Any]) -> PriceSample:
        """
        Build a PriceSample from the feed's JSON document.

        Raises:
            PriceParseError: If the live price string is missing or has no price
        """
        live_price = _nested(data, "price", "live_price")
        if not isinstance(live_price, str):
            raise PriceParseError("Price feed payload has no live price field")

        parsed = parse_price_string(live_price)
        if parsed.price is None:
            raise PriceParseError(
                f"Could not extract price from response: {live_price!r}"
            )

        sample = PriceSample(
            price=parsed.price,
            absolute_change=parsed.change,
            percent_change=parsed.change_percent,
            market_cap=_optional_decimal(_nested(data, "price_", "market_cap")),
            volume_24h=_optional_decimal(
                _nested(data, "trading", "daily_btc_trading_vol")
            ),
            captured_at=datetime.now(timezone.utc),
            source=self.source,
        )

        change = "N/A" if parsed.change is None else f"{parsed.change:,}"
        percent = (
            "N/A" if parsed.change_percent is None else f"{parsed.change_percent:.2f}%"
        )
        logger.info(f"Current price: ${sample.price:,.2f} (change: {change}, {percent})")
        return sample
