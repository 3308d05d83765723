"""
Repository classes for CRUD operations.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from .connection import Database
from .models import (
    AlertEvent,
    ConditionType,
    PriceSample,
    Rule,
    SchedulerSettings,
    Webhook,
    WebhookType,
    validate_rule,
)


def _to_text(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _to_decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


def _to_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class PriceHistoryRepository:
    """Append-only access to price history."""

    def __init__(self, db: Database):
        self.db = db

    def append(self, sample: PriceSample) -> PriceSample:
        """Append a sample and return it with its row ID."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            INSERT INTO price_history
            (price, price_change, price_change_percent, market_cap, volume_24h,
             source, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(sample.price),
                _to_text(sample.absolute_change),
                _to_text(sample.percent_change),
                _to_text(sample.market_cap),
                _to_text(sample.volume_24h),
                sample.source,
                sample.captured_at.isoformat(),
            ),
        )
        self.db.connection.commit()
        return PriceSample(
            id=cursor.lastrowid,
            price=sample.price,
            captured_at=sample.captured_at,
            source=sample.source,
            absolute_change=sample.absolute_change,
            percent_change=sample.percent_change,
            market_cap=sample.market_cap,
            volume_24h=sample.volume_24h,
        )

    def get_latest(self) -> Optional[PriceSample]:
        """Get the most recently captured sample."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            "SELECT * FROM price_history ORDER BY timestamp DESC, id DESC LIMIT 1"
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_sample(row)

    def list_recent(self, limit: int = 100) -> list[PriceSample]:
        """List samples, newest first."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            "SELECT * FROM price_history ORDER BY timestamp DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [self._row_to_sample(row) for row in cursor.fetchall()]

    def count(self) -> int:
        """Number of stored samples."""
        cursor = self.db.connection.cursor()
        cursor.execute("SELECT COUNT(*) FROM price_history")
        return cursor.fetchone()[0]

    def _row_to_sample(self, row) -> PriceSample:
        """Convert database row to PriceSample."""
        return PriceSample(
            id=row["id"],
            price=Decimal(row["price"]),
            absolute_change=_to_decimal(row["price_change"]),
            percent_change=_to_decimal(row["price_change_percent"]),
            market_cap=_to_decimal(row["market_cap"]),
            volume_24h=_to_decimal(row["volume_24h"]),
            source=row["source"],
            captured_at=_to_datetime(row["timestamp"]),
        )


class WebhookRepository:
    """CRUD operations for webhooks."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, webhook: Webhook) -> Webhook:
        """Create a new webhook."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            INSERT INTO webhooks (owner_id, name, url, type, is_active)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                webhook.owner_id,
                webhook.name,
                webhook.url,
                WebhookType(webhook.type).value,
                1 if webhook.active else 0,
            ),
        )
        self.db.connection.commit()
        webhook.id = cursor.lastrowid
        return webhook

    def get_by_id(self, webhook_id: int) -> Optional[Webhook]:
        """Get webhook by ID."""
        cursor = self.db.connection.cursor()
        cursor.execute("SELECT * FROM webhooks WHERE id = ?", (webhook_id,))
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_webhook(row)

    def list_by_owner(self, owner_id: str, active_only: bool = False) -> list[Webhook]:
        """List a user's webhooks."""
        query = "SELECT * FROM webhooks WHERE owner_id = ?"
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY id"
        cursor = self.db.connection.cursor()
        cursor.execute(query, (owner_id,))
        return [self._row_to_webhook(row) for row in cursor.fetchall()]

    def update(self, webhook: Webhook) -> None:
        """Update webhook details."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            UPDATE webhooks
            SET name = ?, url = ?, type = ?, is_active = ?,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (
                webhook.name,
                webhook.url,
                WebhookType(webhook.type).value,
                1 if webhook.active else 0,
                webhook.id,
            ),
        )
        self.db.connection.commit()

    def deactivate(self, webhook_id: int) -> None:
        """Mark webhook inactive without deleting it."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            UPDATE webhooks
            SET is_active = 0, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (webhook_id,),
        )
        self.db.connection.commit()

    def delete(self, webhook_id: int) -> None:
        """Delete webhook. Rules referencing it fall back to the default."""
        cursor = self.db.connection.cursor()
        cursor.execute("DELETE FROM webhooks WHERE id = ?", (webhook_id,))
        self.db.connection.commit()

    def _row_to_webhook(self, row) -> Webhook:
        """Convert database row to Webhook."""
        return Webhook(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            url=row["url"],
            type=WebhookType(row["type"]),
            active=bool(row["is_active"]),
            created_at=_to_datetime(row["created_at"]),
            updated_at=_to_datetime(row["updated_at"]),
        )


class RuleRepository:
    """CRUD operations for alert rules."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, rule: Rule) -> Rule:
        """
        Create a new rule.

        Raises:
            RuleValidationError: If the rule is invalid
        """
        validate_rule(rule)
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            INSERT INTO rules
            (owner_id, name, description, condition_type, threshold,
             window_minutes, message_template, webhook_id, enabled)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                rule.owner_id,
                rule.name,
                rule.description,
                ConditionType(rule.condition_type).value,
                str(rule.threshold),
                rule.window_minutes,
                rule.message_template,
                rule.webhook_id,
                1 if rule.enabled else 0,
            ),
        )
        self.db.connection.commit()
        rule.id = cursor.lastrowid
        return rule

    def get_by_id(self, rule_id: int) -> Optional[Rule]:
        """Get rule by ID."""
        cursor = self.db.connection.cursor()
        cursor.execute("SELECT * FROM rules WHERE id = ?", (rule_id,))
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_rule(row)

    def list_by_owner(self, owner_id: str) -> list[Rule]:
        """Get all rules for a user."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            "SELECT * FROM rules WHERE owner_id = ? ORDER BY id",
            (owner_id,),
        )
        return [self._row_to_rule(row) for row in cursor.fetchall()]

    def get_enabled_rules(self) -> list[Rule]:
        """Get every enabled rule across all users, in storage order."""
        cursor = self.db.connection.cursor()
        cursor.execute("SELECT * FROM rules WHERE enabled = 1 ORDER BY id")
        return [self._row_to_rule(row) for row in cursor.fetchall()]

    def update(self, rule: Rule) -> None:
        """
        Update a rule.

        Raises:
            RuleValidationError: If the rule is invalid
        """
        validate_rule(rule)
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            UPDATE rules
            SET name = ?, description = ?, condition_type = ?, threshold = ?,
                window_minutes = ?, message_template = ?, webhook_id = ?,
                enabled = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (
                rule.name,
                rule.description,
                ConditionType(rule.condition_type).value,
                str(rule.threshold),
                rule.window_minutes,
                rule.message_template,
                rule.webhook_id,
                1 if rule.enabled else 0,
                rule.id,
            ),
        )
        self.db.connection.commit()

    def set_enabled(self, rule_id: int, enabled: bool) -> None:
        """Toggle a rule on or off."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            UPDATE rules
            SET enabled = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (1 if enabled else 0, rule_id),
        )
        self.db.connection.commit()

    def delete(self, rule_id: int) -> None:
        """Delete a rule and its alert history."""
        cursor = self.db.connection.cursor()
        cursor.execute("DELETE FROM rules WHERE id = ?", (rule_id,))
        self.db.connection.commit()

    def _row_to_rule(self, row) -> Rule:
        """Convert database row to Rule."""
        return Rule(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            description=row["description"],
            condition_type=ConditionType(row["condition_type"]),
            threshold=Decimal(row["threshold"]),
            window_minutes=row["window_minutes"],
            message_template=row["message_template"],
            webhook_id=row["webhook_id"],
            enabled=bool(row["enabled"]),
            created_at=_to_datetime(row["created_at"]),
            updated_at=_to_datetime(row["updated_at"]),
        )


class AlertRepository:
    """Records of fired rules and their delivery outcome."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, alert: AlertEvent) -> AlertEvent:
        """Create a new alert record."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            INSERT INTO alerts_sent
            (rule_id, triggered_at, price_at_trigger, message, webhook_sent,
             webhook_response)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                alert.rule_id,
                alert.triggered_at.isoformat(),
                str(alert.price_at_trigger),
                alert.message,
                1 if alert.webhook_sent else 0,
                alert.webhook_response,
            ),
        )
        self.db.connection.commit()
        alert.id = cursor.lastrowid
        return alert

    def record_delivery(
        self, alert_id: int, sent: bool, response: Optional[str]
    ) -> None:
        """Write the delivery outcome back to an alert."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            UPDATE alerts_sent
            SET webhook_sent = ?, webhook_response = ?
            WHERE id = ?
            """,
            (1 if sent else 0, response, alert_id),
        )
        self.db.connection.commit()

    def get_by_id(self, alert_id: int) -> Optional[AlertEvent]:
        """Get alert by ID."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            SELECT a.*, r.name AS rule_name FROM alerts_sent a
            LEFT JOIN rules r ON r.id = a.rule_id
            WHERE a.id = ?
            """,
            (alert_id,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_alert(row)

    def list_recent(
        self, limit: int = 50, owner_id: Optional[str] = None
    ) -> list[AlertEvent]:
        """List alerts newest first, optionally for one user's rules."""
        query = """
            SELECT a.*, r.name AS rule_name FROM alerts_sent a
            JOIN rules r ON r.id = a.rule_id
        """
        params: list = []
        if owner_id is not None:
            query += " WHERE r.owner_id = ?"
            params.append(owner_id)
        query += " ORDER BY a.triggered_at DESC, a.id DESC LIMIT ?"
        params.append(limit)

        cursor = self.db.connection.cursor()
        cursor.execute(query, params)
        return [self._row_to_alert(row) for row in cursor.fetchall()]

    def count_for_rule(self, rule_id: int) -> int:
        """Number of alerts recorded for a rule."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            "SELECT COUNT(*) FROM alerts_sent WHERE rule_id = ?", (rule_id,)
        )
        return cursor.fetchone()[0]

    def last_triggered_by_rule(self) -> dict[int, datetime]:
        """Map each rule ID to the time it last fired."""
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            SELECT rule_id, MAX(triggered_at) AS last_triggered
            FROM alerts_sent
            GROUP BY rule_id
            """
        )
        return {
            row["rule_id"]: datetime.fromisoformat(row["last_triggered"])
            for row in cursor.fetchall()
        }

    def _row_to_alert(self, row) -> AlertEvent:
        """Convert database row to AlertEvent."""
        return AlertEvent(
            id=row["id"],
            rule_id=row["rule_id"],
            triggered_at=datetime.fromisoformat(row["triggered_at"]),
            price_at_trigger=Decimal(row["price_at_trigger"]),
            message=row["message"],
            webhook_sent=bool(row["webhook_sent"]),
            webhook_response=row["webhook_response"],
            rule_name=row["rule_name"],
        )


class SchedulerSettingsRepository:
    """Durable on/off flag and interval for the polling scheduler."""

    def __init__(self, db: Database, default_interval: int = 30):
        self.db = db
        self.default_interval = default_interval

    def get(self) -> SchedulerSettings:
        """Get settings, creating the default row on first access."""
        cursor = self.db.connection.cursor()
        cursor.execute("SELECT * FROM scheduler_settings WHERE id = 1")
        row = cursor.fetchone()
        if row is None:
            cursor.execute(
                """
                INSERT INTO scheduler_settings (id, interval_seconds, is_active)
                VALUES (1, ?, 0)
                """,
                (self.default_interval,),
            )
            self.db.connection.commit()
            return SchedulerSettings(
                interval_seconds=self.default_interval, enabled=False
            )
        return SchedulerSettings(
            interval_seconds=row["interval_seconds"],
            enabled=bool(row["is_active"]),
            updated_at=_to_datetime(row["updated_at"]),
        )

    def set_enabled(self, enabled: bool) -> None:
        """Persist the scheduler on/off flag."""
        self.get()
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            UPDATE scheduler_settings
            SET is_active = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = 1
            """,
            (1 if enabled else 0,),
        )
        self.db.connection.commit()

    def set_interval(self, interval_seconds: int) -> None:
        """Persist the polling interval."""
        if interval_seconds < 1:
            raise ValueError("Polling interval must be at least 1 second")
        self.get()
        cursor = self.db.connection.cursor()
        cursor.execute(
            """
            UPDATE scheduler_settings
            SET interval_seconds = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = 1
            """,
            (interval_seconds,),
        )
        self.db.connection.commit()
