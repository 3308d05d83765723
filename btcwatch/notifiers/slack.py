"""
Slack incoming-webhook notifier.
"""

from typing import Any

from .base import Notifier, WebhookMessage, base_payload


class SlackNotifier(Notifier):
    """Sends notifications to a Slack incoming webhook."""

    channel = "slack"

    def create_payload(self, message: WebhookMessage) -> dict[str, Any]:
        """Create Slack payload: plain text fallback plus a block layout."""
        payload = base_payload(message)
        payload["blocks"] = self._create_blocks(message)
        return payload

    def _create_blocks(self, message: WebhookMessage) -> list[dict[str, Any]]:
        """Create Slack blocks for the alert."""
        title = f"🚨 {message.rule_name}" if message.rule_name else "🚨 BTC Alert"

        fields = [
            {"type": "mrkdwn", "text": f"*Price:*\n${message.price:,.2f}"},
        ]
        if message.percent_change is not None:
            fields.append({
                "type": "mrkdwn",
                "text": f"*24h Change:*\n{message.percent_change:+.2f}%",
            })

        return [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": title, "emoji": True},
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": message.text},
            },
            {"type": "section", "fields": fields},
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": f"Triggered at {message.triggered_at.isoformat()}",
                    }
                ],
            },
        ]
