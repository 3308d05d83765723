"""
Data models for btcwatch.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional


class ConditionType(str, Enum):
    """Comparison family a rule uses."""

    PRICE_ABOVE = "price_above"
    PRICE_BELOW = "price_below"
    VARIATION_UP = "variation_up"
    VARIATION_DOWN = "variation_down"

    @property
    def uses_percent_change(self) -> bool:
        return self in (ConditionType.VARIATION_UP, ConditionType.VARIATION_DOWN)


class WebhookType(str, Enum):
    """Delivery target flavour."""

    SLACK = "slack"
    DISCORD = "discord"
    GENERIC = "generic"


class RuleValidationError(ValueError):
    """Raised when a rule fails validation."""

    pass


@dataclass(frozen=True)
class PriceSample:
    """One parsed observation of the upstream price feed."""

    price: Decimal
    captured_at: datetime
    source: str
    absolute_change: Optional[Decimal] = None
    percent_change: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None
    volume_24h: Optional[Decimal] = None
    id: Optional[int] = None


@dataclass
class Webhook:
    """Outbound webhook target owned by a user."""

    owner_id: str
    name: str
    url: str
    type: WebhookType = WebhookType.SLACK
    active: bool = True
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Rule:
    """User-defined alert rule."""

    owner_id: str
    name: str
    condition_type: ConditionType
    threshold: Decimal
    message_template: str
    window_minutes: int = 5
    webhook_id: Optional[int] = None  # None = fall back to default target
    enabled: bool = True
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class AlertEvent:
    """Record of one rule firing, including delivery outcome."""

    rule_id: int
    triggered_at: datetime
    price_at_trigger: Decimal
    message: str
    webhook_sent: bool = False
    webhook_response: Optional[str] = None
    id: Optional[int] = None
    rule_name: Optional[str] = None  # populated by joined queries only


@dataclass
class SchedulerSettings:
    """Durable state of the polling scheduler."""

    interval_seconds: int = 30
    enabled: bool = False
    updated_at: Optional[datetime] = None


def validate_rule(rule: Rule) -> None:
    """
    Validate a rule before it is stored.

    Raises:
        RuleValidationError: If any field is out of range
    """
    if not rule.name or not rule.name.strip():
        raise RuleValidationError("Rule name is required")

    try:
        ConditionType(rule.condition_type)
    except ValueError:
        raise RuleValidationError(
            f"Unknown condition type: {rule.condition_type}"
        ) from None

    try:
        threshold = Decimal(str(rule.threshold))
    except InvalidOperation:
        raise RuleValidationError(
            f"Threshold is not a number: {rule.threshold}"
        ) from None
    if not threshold.is_finite() or threshold < 0:
        raise RuleValidationError("Threshold must be non-negative")

    if rule.window_minutes is None or rule.window_minutes < 1:
        raise RuleValidationError("Time window must be at least 1 minute")

    if not rule.message_template or not rule.message_template.strip():
        raise RuleValidationError("Message template is required")
