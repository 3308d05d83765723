"""
Notifier tests.
Tests for Slack, Discord and generic webhook delivery.
"""

import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from decimal import Decimal

import requests

from btcwatch.database.models import ConditionType, Rule, Webhook, WebhookType
from btcwatch.database.repository import WebhookRepository
from btcwatch.notifiers.base import NotificationResult, NotifierFactory, WebhookMessage
from btcwatch.notifiers.discord import (
    COLOR_DOWN,
    COLOR_NEUTRAL,
    COLOR_UP,
    DiscordNotifier,
)
from btcwatch.notifiers.dispatcher import WebhookDispatcher
from btcwatch.notifiers.slack import SlackNotifier
from btcwatch.notifiers.webhook import GenericWebhookNotifier


@pytest.fixture
def message():
    return WebhookMessage(
        text="BTC at $65,000.00",
        price=Decimal("65000.00"),
        triggered_at=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
        percent_change=Decimal("1.56"),
        rule_name="BTC above 60k",
    )


class TestNotificationResult:
    """Test NotificationResult model."""

    def test_success_description(self):
        """Should describe a success with the response."""
        result = NotificationResult(success=True, channel="slack", response="HTTP 200: ok")
        assert result.description == "HTTP 200: ok"

    def test_failure_description(self):
        """Should describe a failure with the error."""
        result = NotificationResult(
            success=False, channel="discord", error="Connection error: refused"
        )
        assert result.success is False
        assert result.description == "Connection error: refused"


class TestGenericWebhookNotifier:
    """Test the plain JSON payload."""

    def test_payload_fields(self, message):
        """Should send text, price, variation and timestamp."""
        payload = GenericWebhookNotifier("https://example.com/hook").create_payload(message)

        assert payload == {
            "text": "BTC at $65,000.00",
            "price": 65000.0,
            "variation": 1.56,
            "timestamp": "2024-06-01T12:00:00+00:00",
        }

    def test_payload_without_variation(self, message):
        """Should send null variation when percent change is unknown."""
        message.percent_change = None
        payload = GenericWebhookNotifier("https://example.com/hook").create_payload(message)

        assert payload["variation"] is None


class TestSlackNotifier:
    """Test Slack webhook notifications."""

    @pytest.fixture
    def notifier(self, sample_slack_webhook_url):
        return SlackNotifier(webhook_url=sample_slack_webhook_url, timeout=2.0)

    def test_payload_includes_text_and_blocks(self, notifier, message):
        """Should carry the text fallback and a block layout."""
        payload = notifier.create_payload(message)

        assert payload["text"] == "BTC at $65,000.00"
        assert payload["price"] == 65000.0
        assert payload["blocks"][0]["type"] == "header"
        assert "BTC above 60k" in payload["blocks"][0]["text"]["text"]

    def test_change_field_omitted_without_variation(self, notifier, message):
        """Should leave out the change field when percent change is unknown."""
        message.percent_change = None
        payload = notifier.create_payload(message)

        fields = payload["blocks"][2]["fields"]
        assert len(fields) == 1
        assert "$65,000.00" in fields[0]["text"]

    def test_send_success(self, notifier, message, sample_slack_webhook_url):
        """Should post once and report the response."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 200
            mock_post.return_value.ok = True
            mock_post.return_value.text = "ok"

            result = notifier.send(message)

        assert result.success is True
        assert result.channel == "slack"
        assert result.response == "HTTP 200: ok"
        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == sample_slack_webhook_url
        assert kwargs["timeout"] == 2.0
        assert kwargs["json"]["text"] == "BTC at $65,000.00"

    def test_send_error_status(self, notifier, message):
        """Should report a non-success status as a failure."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 404
            mock_post.return_value.ok = False
            mock_post.return_value.text = "no_service"

            result = notifier.send(message)

        assert result.success is False
        assert result.error == "HTTP 404: no_service"

    def test_response_text_truncated(self, notifier, message):
        """Should keep at most 500 characters of the response body."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 500
            mock_post.return_value.ok = False
            mock_post.return_value.text = "x" * 2000

            result = notifier.send(message)

        assert result.error == "HTTP 500: " + "x" * 500

    def test_send_timeout(self, notifier, message):
        """Should report timeouts without raising."""
        with patch("requests.post") as mock_post:
            mock_post.side_effect = requests.exceptions.Timeout()

            result = notifier.send(message)

        assert result.success is False
        assert result.error == "Timed out after 2.0s"

    def test_send_connection_error(self, notifier, message):
        """Should report connection errors without raising."""
        with patch("requests.post") as mock_post:
            mock_post.side_effect = requests.exceptions.ConnectionError("refused")

            result = notifier.send(message)

        assert result.success is False
        assert result.error.startswith("Connection error")

    def test_no_retry(self, notifier, message):
        """Should make exactly one attempt on failure."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 503
            mock_post.return_value.ok = False
            mock_post.return_value.text = ""

            notifier.send(message)

        assert mock_post.call_count == 1


class TestDiscordNotifier:
    """Test Discord webhook notifications."""

    @pytest.fixture
    def notifier(self, sample_discord_webhook_url):
        return DiscordNotifier(webhook_url=sample_discord_webhook_url)

    def test_payload_structure(self, notifier, message):
        """Should send content plus one embed."""
        payload = notifier.create_payload(message)

        assert payload["content"] == "BTC at $65,000.00"
        embed = payload["embeds"][0]
        assert embed["description"] == "BTC at $65,000.00"
        assert embed["timestamp"] == "2024-06-01T12:00:00+00:00"
        assert embed["fields"][0]["value"] == "$65,000.00"
        assert embed["fields"][1]["value"] == "+1.56%"

    def test_color_by_direction(self, notifier, message):
        """Should color the embed by price direction."""
        assert notifier.create_payload(message)["embeds"][0]["color"] == COLOR_UP

        message.percent_change = Decimal("-3")
        assert notifier.create_payload(message)["embeds"][0]["color"] == COLOR_DOWN

        message.percent_change = None
        assert notifier.create_payload(message)["embeds"][0]["color"] == COLOR_NEUTRAL

    def test_send_no_content_status(self, notifier, message):
        """Should treat 204 as success."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 204
            mock_post.return_value.ok = True
            mock_post.return_value.text = ""

            result = notifier.send(message)

        assert result.success is True
        assert result.channel == "discord"
        assert result.response == "HTTP 204: "


class TestNotifierFactory:
    """Test notifier creation."""

    def test_create_by_type(self):
        """Should pick the notifier class for each webhook type."""
        url = "https://example.com/hook"
        assert isinstance(NotifierFactory.create(WebhookType.SLACK, url), SlackNotifier)
        assert isinstance(NotifierFactory.create("discord", url), DiscordNotifier)
        assert isinstance(
            NotifierFactory.create(WebhookType.GENERIC, url), GenericWebhookNotifier
        )

    def test_timeout_passed_through(self):
        """Should configure the notifier's timeout."""
        notifier = NotifierFactory.create("slack", "https://example.com/hook", timeout=9.0)
        assert notifier.timeout == 9.0

    def test_unknown_type(self):
        """Should raise ValueError for unknown types."""
        with pytest.raises(ValueError):
            NotifierFactory.create("carrier_pigeon", "https://example.com/hook")


class TestWebhookDispatcher:
    """Test webhook target resolution and delivery."""

    DEFAULT_URL = "https://hooks.example.com/default"

    @pytest.fixture
    def webhook_repo(self, db):
        return WebhookRepository(db)

    @pytest.fixture
    def own_webhook(self, webhook_repo):
        return webhook_repo.create(
            Webhook(
                owner_id="user-1",
                name="Team Discord",
                url="https://discord.com/api/webhooks/1/abc",
                type=WebhookType.DISCORD,
            )
        )

    def _rule(self, webhook_id=None):
        return Rule(
            id=1,
            owner_id="user-1",
            name="Above",
            condition_type=ConditionType.PRICE_ABOVE,
            threshold=Decimal("60000"),
            message_template="BTC at ${{price}}",
            webhook_id=webhook_id,
        )

    def test_rule_webhook_preferred(self, webhook_repo, own_webhook):
        """Should use the rule's own active webhook."""
        dispatcher = WebhookDispatcher(webhook_repo, default_url=self.DEFAULT_URL)

        target = dispatcher.resolve_target(self._rule(own_webhook.id))

        assert target.url == own_webhook.url
        assert target.type == WebhookType.DISCORD
        assert target.webhook_id == own_webhook.id

    def test_inactive_webhook_falls_back(self, webhook_repo, own_webhook):
        """Should fall back to the default when the rule's webhook is inactive."""
        webhook_repo.deactivate(own_webhook.id)
        dispatcher = WebhookDispatcher(
            webhook_repo, default_url=self.DEFAULT_URL, default_type=WebhookType.GENERIC
        )

        target = dispatcher.resolve_target(self._rule(own_webhook.id))

        assert target.url == self.DEFAULT_URL
        assert target.type == WebhookType.GENERIC
        assert target.webhook_id is None

    def test_missing_webhook_falls_back(self, webhook_repo):
        """Should fall back to the default when the webhook no longer exists."""
        dispatcher = WebhookDispatcher(webhook_repo, default_url=self.DEFAULT_URL)

        target = dispatcher.resolve_target(self._rule(webhook_id=999))

        assert target.url == self.DEFAULT_URL

    def test_no_target(self, webhook_repo):
        """Should resolve to nothing without a rule webhook or default."""
        dispatcher = WebhookDispatcher(webhook_repo)

        assert dispatcher.resolve_target(self._rule()) is None

    def test_dispatch_without_target_skips(self, webhook_repo, message):
        """Should not make any request when there is no target."""
        dispatcher = WebhookDispatcher(webhook_repo)

        with patch("requests.post") as mock_post:
            outcome = dispatcher.dispatch(self._rule(), message)

        assert outcome.attempted is False
        assert outcome.sent is False
        mock_post.assert_not_called()

    def test_dispatch_success(self, webhook_repo, own_webhook, message):
        """Should deliver to the rule's webhook and report success."""
        dispatcher = WebhookDispatcher(webhook_repo)

        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 204
            mock_post.return_value.ok = True
            mock_post.return_value.text = ""

            outcome = dispatcher.dispatch(self._rule(own_webhook.id), message)

        assert outcome.attempted is True
        assert outcome.sent is True
        assert outcome.response == "HTTP 204: "
        assert mock_post.call_args[0][0] == own_webhook.url
        assert "embeds" in mock_post.call_args[1]["json"]

    def test_dispatch_failure(self, webhook_repo, message):
        """Should report a failed delivery with the error text."""
        dispatcher = WebhookDispatcher(webhook_repo, default_url=self.DEFAULT_URL)

        with patch("requests.post") as mock_post:
            mock_post.side_effect = requests.exceptions.ConnectionError("refused")

            outcome = dispatcher.dispatch(self._rule(), message)

        assert outcome.attempted is True
        assert outcome.sent is False
        assert "Connection error" in outcome.response
