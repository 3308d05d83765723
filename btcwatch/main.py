"""
Main application entry point.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()

from btcwatch.config import AppConfig
from btcwatch.database.connection import Database
from btcwatch.database.models import AlertEvent, PriceSample
from btcwatch.database.repository import (
    AlertRepository,
    PriceHistoryRepository,
    RuleRepository,
    WebhookRepository,
)
from btcwatch.data.fetcher import PriceFeedError, PriceFeedFetcher
from btcwatch.data.parser import PriceParseError
from btcwatch.events import AlertEventBus
from btcwatch.notifiers.base import WebhookMessage
from btcwatch.notifiers.dispatcher import WebhookDispatcher
from btcwatch.rules.engine import RuleEngine, TriggeredRule
from btcwatch.rules.renderer import RenderContext, render_message

logger = logging.getLogger(__name__)


@dataclass
class TriggeredAlert:
    """Summary of one rule that fired during a pass."""

    rule_id: int
    rule_name: str
    message: str
    webhook_sent: bool
    alert_id: Optional[int] = None


@dataclass
class PassResult:
    """Outcome of one fetch-and-evaluate pass."""

    success: bool
    sample: Optional[PriceSample] = None
    triggered_alerts: list[TriggeredAlert] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view of the result."""
        if not self.success:
            return {"success": False, "error": self.error}

        sample = self.sample
        return {
            "success": True,
            "price": float(sample.price),
            "change": _as_float(sample.absolute_change),
            "changePercent": _as_float(sample.percent_change),
            "marketCap": _as_float(sample.market_cap),
            "volume24h": _as_float(sample.volume_24h),
            "timestamp": sample.captured_at.isoformat(),
            "triggeredAlerts": [
                {
                    "rule": alert.rule_name,
                    "message": alert.message,
                    "webhook_sent": alert.webhook_sent,
                }
                for alert in self.triggered_alerts
            ],
        }


def _as_float(value) -> Optional[float]:
    return float(value) if value is not None else None


class BtcWatchApp:
    """Main btcwatch application."""

    def __init__(
        self,
        db: Database,
        fetcher: PriceFeedFetcher,
        dispatcher: WebhookDispatcher,
        engine: Optional[RuleEngine] = None,
        event_bus: Optional[AlertEventBus] = None,
    ):
        """
        Initialize btcwatch app.

        Args:
            db: Database instance
            fetcher: Price feed client
            dispatcher: Webhook delivery
            engine: Rule engine; defaults to fire-every-pass evaluation
            event_bus: Receives every newly recorded alert
        """
        self.db = db
        self.fetcher = fetcher
        self.dispatcher = dispatcher
        self.engine = engine or RuleEngine()
        self.event_bus = event_bus or AlertEventBus()

        # Initialize repositories
        self.price_repo = PriceHistoryRepository(db)
        self.rule_repo = RuleRepository(db)
        self.alert_repo = AlertRepository(db)

    @classmethod
    def from_config(
        cls, config: AppConfig, db: Optional[Database] = None
    ) -> "BtcWatchApp":
        """Build the app and its collaborators from configuration."""
        if db is None:
            db = Database(config.database.path)
            db.initialize()

        fetcher = PriceFeedFetcher(
            url=config.feed.url,
            timeout=config.feed.timeout_seconds,
            source=config.feed.source,
        )
        dispatcher = WebhookDispatcher(
            webhook_repo=WebhookRepository(db),
            default_url=config.webhooks.default_url,
            default_type=config.webhooks.default_type,
            timeout=config.webhooks.timeout_seconds,
        )
        engine = RuleEngine(
            suppress_within_window=config.advanced.suppress_within_window
        )
        return cls(db=db, fetcher=fetcher, dispatcher=dispatcher, engine=engine)

    def latest_price(self) -> Optional[PriceSample]:
        """Most recently stored price sample."""
        return self.price_repo.get_latest()

    def fetch_and_evaluate(self) -> PassResult:
        """
        Fetch the price, store it, evaluate rules and deliver alerts.

        Never raises; failures are reported in the returned PassResult.
        """
        logger.info("Fetching Bitcoin price")
        try:
            sample = self.fetcher.fetch()
        except (PriceFeedError, PriceParseError) as e:
            logger.error(f"Price fetch failed: {e}")
            return PassResult(success=False, error=str(e))

        try:
            sample = self.price_repo.append(sample)
        except sqlite3.Error as e:
            logger.error(f"Error saving price history: {e}")

        try:
            triggered_alerts = self._evaluate(sample)
        except Exception as e:
            logger.error(f"Error checking alerts: {e}")
            triggered_alerts = []

        return PassResult(
            success=True, sample=sample, triggered_alerts=triggered_alerts
        )

    def _evaluate(self, sample: PriceSample) -> list[TriggeredAlert]:
        """Evaluate enabled rules against a sample and process each firing."""
        rules = self.rule_repo.get_enabled_rules()
        if not rules:
            logger.info("No active rules to check")
            return []

        logger.info(f"Checking {len(rules)} active rules")

        last_triggered = None
        if self.engine.suppress_within_window:
            last_triggered = self.alert_repo.last_triggered_by_rule()

        triggered = self.engine.evaluate_rules(rules, sample, last_triggered)

        results = []
        for item in triggered:
            try:
                results.append(self._process_trigger(item))
            except Exception as e:
                logger.error(f"Error processing rule {item.rule.id}: {e}")
        return results

    def _process_trigger(self, item: TriggeredRule) -> TriggeredAlert:
        """Render, record, publish and deliver one fired rule."""
        rule = item.rule
        logger.info(f"Triggering alert for rule: {rule.name}")

        message = render_message(
            rule.message_template,
            RenderContext(
                price=item.price,
                threshold=rule.threshold,
                condition_type=rule.condition_type,
                timestamp=item.triggered_at,
                window_minutes=rule.window_minutes,
                percent_change=item.percent_change,
            ),
        )

        alert: Optional[AlertEvent] = None
        try:
            alert = self.alert_repo.create(
                AlertEvent(
                    rule_id=rule.id,
                    triggered_at=item.triggered_at,
                    price_at_trigger=item.price,
                    message=message,
                    rule_name=rule.name,
                )
            )
        except sqlite3.Error as e:
            logger.error(f"Error saving alert for rule {rule.id}: {e}")

        if alert is not None:
            self.event_bus.publish(alert)

        outcome = self.dispatcher.dispatch(
            rule,
            WebhookMessage(
                text=message,
                price=item.price,
                percent_change=item.percent_change,
                triggered_at=item.triggered_at,
                rule_name=rule.name,
            ),
        )

        if alert is not None and outcome.attempted:
            try:
                self.alert_repo.record_delivery(
                    alert.id, sent=outcome.sent, response=outcome.response
                )
                alert.webhook_sent = outcome.sent
                alert.webhook_response = outcome.response
            except sqlite3.Error as e:
                logger.error(f"Error updating alert {alert.id}: {e}")

        return TriggeredAlert(
            rule_id=rule.id,
            rule_name=rule.name,
            message=message,
            webhook_sent=outcome.sent,
            alert_id=alert.id if alert is not None else None,
        )


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="btcwatch price alert service")
    parser.add_argument(
        "--config", default="config.yaml", help="Path to config file"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument(
        "--once", action="store_true", help="Run a single pass and print the result"
    )

    args = parser.parse_args()

    # Load config
    from btcwatch.config import load_config

    config = load_config(args.config)

    # Setup logging
    log_level = logging.DEBUG if args.debug else config.advanced.log_level
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = BtcWatchApp.from_config(config)

    if args.once:
        result = app.fetch_and_evaluate()
        print(json.dumps(result.to_dict(), indent=2))
        app.db.close()
        return

    from btcwatch.database.repository import SchedulerSettingsRepository
    from btcwatch.scheduler import PollingScheduler

    settings_repo = SchedulerSettingsRepository(
        app.db, default_interval=config.schedule.interval_seconds
    )
    scheduler = PollingScheduler(app, settings_repo)
    try:
        scheduler.run_forever(force=config.schedule.enabled)
    finally:
        app.db.close()


if __name__ == "__main__":
    main()
