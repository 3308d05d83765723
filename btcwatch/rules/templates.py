"""
Predefined rule templates.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from btcwatch.database.models import ConditionType, Rule


@dataclass(frozen=True)
class RuleTemplate:
    """Ready-made rule configuration."""

    id: str
    name: str
    description: str
    condition_type: ConditionType
    value: Decimal
    window_minutes: int
    message_template: str


RULE_TEMPLATES: tuple[RuleTemplate, ...] = (
    RuleTemplate(
        id="btc_up_2_percent_5min",
        name="BTC rises more than 2% in 5 minutes",
        description="Alert when Bitcoin price increases by 2% or more within a 5-minute window",
        condition_type=ConditionType.VARIATION_UP,
        value=Decimal("2"),
        window_minutes=5,
        message_template=(
            "🚀 BTC Alert: Price up {{variation}}% in {{window}} minutes! "
            "Current price: ${{price}}"
        ),
    ),
    RuleTemplate(
        id="btc_down_5_percent_15min",
        name="BTC drops more than 5% in 15 minutes",
        description="Alert when Bitcoin price decreases by 5% or more within a 15-minute window",
        condition_type=ConditionType.VARIATION_DOWN,
        value=Decimal("5"),
        window_minutes=15,
        message_template=(
            "📉 BTC Alert: Price down {{variation}}% in {{window}} minutes! "
            "Current price: ${{price}}"
        ),
    ),
    RuleTemplate(
        id="btc_above_60k",
        name="BTC crosses above $60,000",
        description="Alert when Bitcoin price goes above the $60,000 resistance level",
        condition_type=ConditionType.PRICE_ABOVE,
        value=Decimal("60000"),
        window_minutes=1,
        message_template="💎 BTC Alert: Price above ${{target}}! Current price: ${{price}}",
    ),
    RuleTemplate(
        id="btc_below_50k",
        name="BTC falls below $50,000",
        description="Alert when Bitcoin price drops below the $50,000 support level",
        condition_type=ConditionType.PRICE_BELOW,
        value=Decimal("50000"),
        window_minutes=1,
        message_template="⚠️ BTC Alert: Price below ${{target}}! Current price: ${{price}}",
    ),
)


def list_templates() -> list[RuleTemplate]:
    return list(RULE_TEMPLATES)


def get_template(template_id: str) -> Optional[RuleTemplate]:
    """Look up a template by ID."""
    for template in RULE_TEMPLATES:
        if template.id == template_id:
            return template
    return None


def rule_from_template(
    template_id: str,
    owner_id: str,
    webhook_id: Optional[int] = None,
) -> Rule:
    """
    Build an unsaved rule from a template.

    Raises:
        ValueError: If the template ID is unknown
    """
    template = get_template(template_id)
    if template is None:
        raise ValueError(f"Unknown rule template: {template_id}")

    return Rule(
        owner_id=owner_id,
        name=template.name,
        description=template.description,
        condition_type=template.condition_type,
        threshold=template.value,
        window_minutes=template.window_minutes,
        message_template=template.message_template,
        webhook_id=webhook_id,
    )
