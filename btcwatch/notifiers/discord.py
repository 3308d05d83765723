"""
Discord webhook notifier.
"""

from typing import Any

from .base import Notifier, WebhookMessage

# Discord embed colors
COLOR_UP = 0x2ECC71  # Green
COLOR_DOWN = 0xFF0000  # Red
COLOR_NEUTRAL = 0x3498DB  # Blue


class DiscordNotifier(Notifier):
    """Sends notifications via Discord webhook."""

    channel = "discord"

    def create_payload(self, message: WebhookMessage) -> dict[str, Any]:
        """Create Discord webhook payload."""
        return {
            "content": message.text,
            "embeds": [self._create_embed(message)],
        }

    def _create_embed(self, message: WebhookMessage) -> dict[str, Any]:
        """Create Discord embed for the alert."""
        embed: dict[str, Any] = {
            "title": f"🚨 {message.rule_name}" if message.rule_name else "🚨 BTC Alert",
            "description": message.text,
            "color": self._get_color(message),
            "fields": [],
            "timestamp": message.triggered_at.isoformat(),
        }

        embed["fields"].append({
            "name": "Current Price",
            "value": f"${message.price:,.2f}",
            "inline": True,
        })

        if message.percent_change is not None:
            embed["fields"].append({
                "name": "24h Change",
                "value": f"{message.percent_change:+.2f}%",
                "inline": True,
            })

        return embed

    def _get_color(self, message: WebhookMessage) -> int:
        """Get embed color based on price direction."""
        if message.percent_change is None or message.percent_change == 0:
            return COLOR_NEUTRAL
        elif message.percent_change > 0:
            return COLOR_UP
        else:
            return COLOR_DOWN
