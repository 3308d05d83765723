"""
Plain JSON webhook notifier.
"""

from typing import Any

from .base import Notifier, WebhookMessage, base_payload


class GenericWebhookNotifier(Notifier):
    """Posts the alert as a flat JSON object."""

    channel = "generic"

    def create_payload(self, message: WebhookMessage) -> dict[str, Any]:
        return base_payload(message)
