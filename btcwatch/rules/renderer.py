"""
Message template rendering.

Templates use ``{{name}}`` placeholders; the single-brace ``{name}`` form is
accepted too. Unknown placeholders are left as written.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from btcwatch.database.models import ConditionType

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}|\{(\w+)\}")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


@dataclass
class RenderContext:
    """Live values available to a message template."""

    price: Decimal
    threshold: Decimal
    condition_type: ConditionType
    timestamp: datetime
    window_minutes: int
    percent_change: Optional[Decimal] = None


def _format_money(value: Decimal) -> str:
    return f"{value:,.2f}"


def _format_threshold(context: RenderContext) -> str:
    if ConditionType(context.condition_type).uses_percent_change:
        return f"{context.threshold:.2f}"
    return _format_money(context.threshold)


def _format_variation(context: RenderContext) -> str:
    if context.percent_change is None:
        return "0.00"
    if context.condition_type == ConditionType.VARIATION_DOWN:
        # Drops render unsigned: "down 2.50%"
        return f"{abs(context.percent_change):.2f}"
    return f"{context.percent_change:.2f}"


def _format_timestamp(context: RenderContext) -> str:
    return context.timestamp.strftime(TIMESTAMP_FORMAT).strip()


def placeholder_values(context: RenderContext) -> dict[str, str]:
    """Formatted value for every recognized placeholder name."""
    threshold = _format_threshold(context)
    variation = _format_variation(context)
    return {
        "price": _format_money(context.price),
        "target": threshold,
        "value": threshold,
        "threshold": threshold,
        "variation": variation,
        "change": variation,
        "window": str(context.window_minutes),
        "timestamp": _format_timestamp(context),
        "condition_type": ConditionType(context.condition_type).value,
    }


def render_message(template: str, context: RenderContext) -> str:
    """
    Substitute placeholders in a rule's message template.

    Args:
        template: Message template, e.g. "BTC at ${{price}}"
        context: Values for the current evaluation

    Returns:
        Rendered message
    """
    values = placeholder_values(context)

    def _replace(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        return values.get(name, match.group(0))

    return PLACEHOLDER_PATTERN.sub(_replace, template)
