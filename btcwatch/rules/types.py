"""
Condition checks and evaluation results.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from btcwatch.database.models import ConditionType, PriceSample, Rule


@dataclass
class TriggeredRule:
    """A rule whose condition matched a price sample."""

    rule: Rule
    sample: PriceSample
    triggered_at: datetime

    @property
    def price(self) -> Decimal:
        return self.sample.price

    @property
    def percent_change(self) -> Optional[Decimal]:
        return self.sample.percent_change


def _price_above(sample: PriceSample, threshold: Decimal) -> bool:
    return sample.price > threshold


def _price_below(sample: PriceSample, threshold: Decimal) -> bool:
    return sample.price < threshold


def _variation_up(sample: PriceSample, threshold: Decimal) -> bool:
    if sample.percent_change is None:
        return False
    return sample.percent_change > threshold


def _variation_down(sample: PriceSample, threshold: Decimal) -> bool:
    if sample.percent_change is None:
        return False
    return sample.percent_change < -threshold


CONDITIONS: dict[ConditionType, Callable[[PriceSample, Decimal], bool]] = {
    ConditionType.PRICE_ABOVE: _price_above,
    ConditionType.PRICE_BELOW: _price_below,
    ConditionType.VARIATION_UP: _variation_up,
    ConditionType.VARIATION_DOWN: _variation_down,
}


def condition_met(rule: Rule, sample: PriceSample) -> bool:
    """
    Check a single rule against a sample.

    Comparisons are strict: a price equal to the threshold does not fire.

    Raises:
        ValueError: If the rule's condition type is unknown
    """
    check = CONDITIONS.get(ConditionType(rule.condition_type))
    if check is None:
        raise ValueError(f"Unknown condition type: {rule.condition_type}")
    return check(sample, Decimal(rule.threshold))
