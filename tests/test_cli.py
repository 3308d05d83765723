"""
CLI helper tests.
"""

import pytest
from decimal import Decimal

from btcwatch.cli import add_rule, add_webhook, main
from btcwatch.database.models import ConditionType, RuleValidationError, WebhookType
from btcwatch.database.repository import RuleRepository, WebhookRepository


class TestAddWebhook:
    """Test webhook creation from the CLI."""

    def test_add_webhook(self, db, sample_discord_webhook_url):
        """Should store the webhook for the owner."""
        webhook = add_webhook(
            db, "user-1", "Discord", sample_discord_webhook_url, "discord"
        )

        stored = WebhookRepository(db).get_by_id(webhook.id)
        assert stored.type == WebhookType.DISCORD
        assert stored.owner_id == "user-1"

    def test_reject_non_http_url(self, db):
        """Should reject URLs that aren't HTTP(S)."""
        with pytest.raises(ValueError):
            add_webhook(db, "user-1", "Bad", "ftp://example.com/hook")

    def test_reject_unknown_type(self, db):
        """Should reject unknown webhook types."""
        with pytest.raises(ValueError):
            add_webhook(db, "user-1", "Bad", "https://example.com/hook", "pager")


class TestAddRule:
    """Test rule creation from the CLI."""

    def test_add_explicit_rule(self, db):
        """Should store a rule built from explicit fields."""
        rule = add_rule(
            db,
            "user-1",
            name="Below 50k",
            condition_type="price_below",
            threshold="50000",
            message_template="BTC fell to ${{price}}",
            window_minutes=10,
        )

        stored = RuleRepository(db).get_by_id(rule.id)
        assert stored.condition_type == ConditionType.PRICE_BELOW
        assert stored.threshold == Decimal("50000")
        assert stored.window_minutes == 10

    def test_add_from_template(self, db):
        """Should fill fields from a template."""
        rule = add_rule(db, "user-1", template_id="btc_down_5_percent_15min")

        stored = RuleRepository(db).get_by_id(rule.id)
        assert stored.condition_type == ConditionType.VARIATION_DOWN
        assert stored.threshold == Decimal("5")
        assert stored.window_minutes == 15
        assert "{{variation}}" in stored.message_template

    def test_template_overrides(self, db):
        """Should let explicit fields override the template."""
        rule = add_rule(
            db, "user-1", template_id="btc_above_60k", name="Above 70k", threshold="70000"
        )

        assert rule.name == "Above 70k"
        assert rule.threshold == Decimal("70000")
        assert rule.condition_type == ConditionType.PRICE_ABOVE

    def test_unknown_template(self, db):
        """Should reject unknown templates."""
        with pytest.raises(ValueError):
            add_rule(db, "user-1", template_id="nope")

    def test_non_numeric_threshold(self, db):
        """Should reject a threshold that isn't a number."""
        with pytest.raises(RuleValidationError):
            add_rule(
                db,
                "user-1",
                name="Bad",
                condition_type="price_above",
                threshold="lots",
                message_template="x",
            )

    def test_missing_fields(self, db):
        """Should reject a rule without required fields."""
        with pytest.raises(RuleValidationError):
            add_rule(db, "user-1", name="Incomplete", condition_type="price_above")

        assert RuleRepository(db).list_by_owner("user-1") == []


class TestMain:
    """Test the CLI entry point."""

    def test_invalid_webhook_url_reports_error(self, tmp_path, monkeypatch, capsys):
        """Should print the error and exit non-zero instead of a traceback."""
        monkeypatch.setattr(
            "sys.argv",
            [
                "btcwatch-cli",
                "--db",
                str(tmp_path / "btcwatch.db"),
                "webhook",
                "add",
                "--name",
                "Bad",
                "--url",
                "ftp://example.com/hook",
            ],
        )

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "Webhook URL must be an HTTP(S) endpoint" in capsys.readouterr().err

    def test_invalid_rule_reports_error(self, tmp_path, monkeypatch, capsys):
        """Should report rule validation errors as a message."""
        monkeypatch.setattr(
            "sys.argv",
            [
                "btcwatch-cli",
                "--db",
                str(tmp_path / "btcwatch.db"),
                "rules",
                "add",
                "--name",
                "Bad",
                "--type",
                "price_above",
                "--threshold",
                "-5",
                "--message",
                "x",
            ],
        )

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "non-negative" in capsys.readouterr().err

    def test_rule_added(self, tmp_path, monkeypatch, capsys):
        """Should create a rule from a template."""
        monkeypatch.setattr(
            "sys.argv",
            [
                "btcwatch-cli",
                "--db",
                str(tmp_path / "btcwatch.db"),
                "rules",
                "add",
                "--template",
                "btc_above_60k",
            ],
        )

        main()

        assert "Created rule with ID: 1" in capsys.readouterr().out
