"""
Webhook target resolution and delivery.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from btcwatch.database.models import Rule, WebhookType
from btcwatch.database.repository import WebhookRepository
from .base import NotifierFactory, WebhookMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookTarget:
    """Where a rule's alerts are delivered."""

    url: str
    type: WebhookType
    webhook_id: Optional[int] = None  # None = process-wide default


@dataclass
class DeliveryOutcome:
    """Final delivery state of one alert."""

    attempted: bool
    sent: bool
    response: Optional[str] = None


class WebhookDispatcher:
    """Delivers rendered alerts to each rule's webhook target."""

    def __init__(
        self,
        webhook_repo: WebhookRepository,
        default_url: Optional[str] = None,
        default_type: WebhookType = WebhookType.SLACK,
        timeout: float = 5.0,
    ):
        """
        Initialize dispatcher.

        Args:
            webhook_repo: Lookup for rules' webhook references
            default_url: Target for rules without a usable webhook; None disables it
            default_type: Flavour of the default target
            timeout: Per-request timeout in seconds
        """
        self.webhook_repo = webhook_repo
        self.default_url = default_url or None
        self.default_type = WebhookType(default_type)
        self.timeout = timeout

    def resolve_target(self, rule: Rule) -> Optional[WebhookTarget]:
        """
        Pick the delivery target for a rule.

        Order: the rule's own active webhook, then the default target, then none.
        """
        if rule.webhook_id is not None:
            webhook = self.webhook_repo.get_by_id(rule.webhook_id)
            if webhook is not None and webhook.active:
                return WebhookTarget(
                    url=webhook.url, type=webhook.type, webhook_id=webhook.id
                )
            logger.debug(
                f"Webhook {rule.webhook_id} for rule {rule.id} is missing or inactive"
            )

        if self.default_url:
            return WebhookTarget(url=self.default_url, type=self.default_type)

        return None

    def dispatch(self, rule: Rule, message: WebhookMessage) -> DeliveryOutcome:
        """
        Make one delivery attempt for a rule's alert.

        Args:
            rule: Rule that fired
            message: Rendered message

        Returns:
            DeliveryOutcome; attempted is False when no target is configured
        """
        target = self.resolve_target(rule)
        if target is None:
            logger.info(f"No webhook target for rule {rule.id}, skipping delivery")
            return DeliveryOutcome(attempted=False, sent=False)

        notifier = NotifierFactory.create(target.type, target.url, timeout=self.timeout)
        result = notifier.send(message)

        if result.success:
            logger.info(f"Webhook sent for rule {rule.id} via {result.channel}")
        else:
            logger.error(f"Error sending webhook for rule {rule.id}: {result.error}")

        return DeliveryOutcome(
            attempted=True, sent=result.success, response=result.description
        )
