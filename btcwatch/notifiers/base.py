"""
Base notifier classes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import requests

from btcwatch.database.models import WebhookType

# Longest response body kept in a delivery description
MAX_RESPONSE_TEXT = 500


@dataclass
class WebhookMessage:
    """Rendered alert ready for delivery."""

    text: str
    price: Decimal
    triggered_at: datetime
    percent_change: Optional[Decimal] = None
    rule_name: Optional[str] = None


@dataclass
class NotificationResult:
    """Result of a notification attempt."""

    success: bool
    channel: str
    error: Optional[str] = None
    response: Optional[str] = None

    @property
    def description(self) -> Optional[str]:
        """Text stored with the alert: the response on success, else the error."""
        return self.response if self.success else self.error


class Notifier(ABC):
    """Abstract base class for webhook notifiers."""

    channel = "webhook"

    def __init__(self, webhook_url: str, timeout: float = 5.0):
        """
        Initialize notifier.

        Args:
            webhook_url: Endpoint that receives the POST
            timeout: Seconds to wait for the endpoint before giving up
        """
        self.webhook_url = webhook_url
        self.timeout = timeout

    @abstractmethod
    def create_payload(self, message: WebhookMessage) -> dict[str, Any]:
        """Build the JSON body for a message."""
        pass

    def send(self, message: WebhookMessage) -> NotificationResult:
        """
        Deliver a message with a single POST. Failures are not retried.

        Args:
            message: Message to send

        Returns:
            NotificationResult indicating success or failure
        """
        try:
            payload = self.create_payload(message)
            response = requests.post(
                self.webhook_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )

            body = str(response.text)[:MAX_RESPONSE_TEXT]
            description = f"HTTP {response.status_code}: {body}"
            if response.ok:
                return NotificationResult(
                    success=True, channel=self.channel, response=description
                )
            return NotificationResult(
                success=False, channel=self.channel, error=description
            )

        except requests.exceptions.Timeout:
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=f"Timed out after {self.timeout}s",
            )
        except requests.exceptions.ConnectionError as e:
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=f"Connection error: {str(e)}",
            )
        except Exception as e:
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=str(e),
            )

def base_payload(message: WebhookMessage) -> dict[str, Any]:
    """Fields every target receives."""
    return {
        "text": message.text,
        "price": float(message.price),
        "variation": (
            float(message.percent_change)
            if message.percent_change is not None
            else None
        ),
        "timestamp": message.triggered_at.isoformat(),
    }


class NotifierFactory:
    """Factory for creating notifier instances."""

    @staticmethod
    def create(
        webhook_type: WebhookType | str,
        webhook_url: str,
        timeout: float = 5.0,
    ) -> Notifier:
        """
        Create a notifier for a webhook target.

        Args:
            webhook_type: Target flavour
            webhook_url: Target URL
            timeout: Per-request timeout in seconds

        Returns:
            Appropriate Notifier instance

        Raises:
            ValueError: If notifier type is unknown
        """
        webhook_type = WebhookType(webhook_type)

        if webhook_type == WebhookType.SLACK:
            from .slack import SlackNotifier

            return SlackNotifier(webhook_url=webhook_url, timeout=timeout)

        elif webhook_type == WebhookType.DISCORD:
            from .discord import DiscordNotifier

            return DiscordNotifier(webhook_url=webhook_url, timeout=timeout)

        else:
            from .webhook import GenericWebhookNotifier

            return GenericWebhookNotifier(webhook_url=webhook_url, timeout=timeout)
