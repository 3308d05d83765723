"""
Parser for the live-price text field returned by the price feed.

The feed packs price, absolute change and percent change into one string,
e.g. ``"$100,533.13 \\n -1452.14 [-1.42%]"``.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

PRICE_PATTERN = re.compile(r"\$(\d[\d,]*(?:\.\d+)?)")
CHANGE_PATTERN = re.compile(r"([+-]?\d[\d,]*(?:\.\d+)?)\s*\[([+-]?\d+(?:\.\d+)?)%\]")


class PriceParseError(ValueError):
    """Raised when no price can be extracted from the feed payload."""

    pass


@dataclass(frozen=True)
class ParsedPrice:
    """Fields extracted from a live-price string."""

    price: Optional[Decimal]
    change: Optional[Decimal]
    change_percent: Optional[Decimal]


def _to_decimal(raw: str) -> Optional[Decimal]:
    cleaned = raw.replace(",", "")
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def parse_price_string(text: Optional[str]) -> ParsedPrice:
    """
    Extract price, absolute change and percent change.

    Missing or malformed fields come back as None; this never raises.

    Args:
        text: Raw live-price string from the feed

    Returns:
        ParsedPrice with whatever fields could be found
    """
    if not isinstance(text, str):
        return ParsedPrice(price=None, change=None, change_percent=None)

    price = None
    price_match = PRICE_PATTERN.search(text)
    if price_match:
        price = _to_decimal(price_match.group(1))

    change = None
    change_percent = None
    # Change is searched after the price match only
    rest = text[price_match.end():] if price_match else text
    change_match = CHANGE_PATTERN.search(rest)
    if change_match:
        change = _to_decimal(change_match.group(1))
        change_percent = _to_decimal(change_match.group(2))

    return ParsedPrice(price=price, change=change, change_percent=change_percent)
