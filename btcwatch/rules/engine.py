"""
Rule evaluation engine.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from btcwatch.database.models import PriceSample, Rule
from .types import TriggeredRule, condition_met

# Re-export for convenience
__all__ = ["RuleEngine", "TriggeredRule"]

logger = logging.getLogger(__name__)


class RuleEngine:
    """Evaluates rules against the latest price sample."""

    def __init__(self, suppress_within_window: bool = False):
        """
        Initialize engine.

        Args:
            suppress_within_window: Skip a rule that already fired within its
                own window_minutes. Off by default, so a rule fires on every
                pass while its condition holds.
        """
        self.suppress_within_window = suppress_within_window

    def evaluate_rules(
        self,
        rules: list[Rule],
        sample: PriceSample,
        last_triggered: Optional[dict[int, datetime]] = None,
    ) -> list[TriggeredRule]:
        """
        Evaluate every enabled rule against a sample.

        Args:
            rules: Rules to evaluate, in storage order
            sample: Current price sample
            last_triggered: Rule ID to last firing time; only consulted when
                window suppression is on

        Returns:
            Triggered rules, in the order given
        """
        triggered = []

        for rule in rules:
            if not rule.enabled:
                continue

            try:
                if not condition_met(rule, sample):
                    continue
            except ValueError as e:
                logger.warning(f"Skipping rule {rule.id} ({rule.name}): {e}")
                continue

            if self._suppressed(rule, sample, last_triggered):
                logger.debug(
                    f"Rule {rule.id} fired within the last "
                    f"{rule.window_minutes} minutes, suppressing"
                )
                continue

            triggered.append(
                TriggeredRule(
                    rule=rule,
                    sample=sample,
                    triggered_at=sample.captured_at,
                )
            )

        return triggered

    def _suppressed(
        self,
        rule: Rule,
        sample: PriceSample,
        last_triggered: Optional[dict[int, datetime]],
    ) -> bool:
        """Check whether the rule fired recently enough to be held back."""
        if not self.suppress_within_window or not last_triggered:
            return False

        last = last_triggered.get(rule.id)
        if last is None:
            return False

        window = timedelta(minutes=rule.window_minutes)
        return sample.captured_at - last < window
