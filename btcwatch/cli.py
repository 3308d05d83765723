"""
CLI commands for btcwatch.
"""

import argparse
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from btcwatch.config import AppConfig, load_config
from btcwatch.database.connection import Database
from btcwatch.database.models import (
    ConditionType,
    Rule,
    RuleValidationError,
    Webhook,
    WebhookType,
)
from btcwatch.database.repository import (
    AlertRepository,
    PriceHistoryRepository,
    RuleRepository,
    SchedulerSettingsRepository,
    WebhookRepository,
)
from btcwatch.rules.templates import list_templates, rule_from_template


def add_webhook(
    db: Database,
    owner_id: str,
    name: str,
    url: str,
    webhook_type: str = WebhookType.SLACK.value,
) -> Webhook:
    """Add a webhook target for a user."""
    if not url.startswith(("http://", "https://")):
        raise ValueError("Webhook URL must be an HTTP(S) endpoint")
    repo = WebhookRepository(db)
    webhook = Webhook(
        owner_id=owner_id, name=name, url=url, type=WebhookType(webhook_type)
    )
    return repo.create(webhook)


def add_rule(
    db: Database,
    owner_id: str,
    name: Optional[str] = None,
    condition_type: Optional[str] = None,
    threshold: Optional[str] = None,
    message_template: Optional[str] = None,
    window_minutes: int = 5,
    webhook_id: Optional[int] = None,
    template_id: Optional[str] = None,
) -> Rule:
    """
    Add a rule, either from explicit fields or from a template.

    Explicit fields override the template's values.

    Raises:
        RuleValidationError: If the resulting rule is invalid
        ValueError: If the template ID is unknown
    """
    parsed_threshold = None
    if threshold is not None:
        try:
            parsed_threshold = Decimal(threshold)
        except InvalidOperation:
            raise RuleValidationError(f"Threshold is not a number: {threshold}") from None

    if template_id:
        rule = rule_from_template(template_id, owner_id, webhook_id=webhook_id)
        if name:
            rule.name = name
        if condition_type:
            rule.condition_type = ConditionType(condition_type)
        if parsed_threshold is not None:
            rule.threshold = parsed_threshold
        if message_template:
            rule.message_template = message_template
    else:
        rule = Rule(
            owner_id=owner_id,
            name=name or "",
            condition_type=condition_type,
            threshold=parsed_threshold,
            message_template=message_template or "",
            window_minutes=window_minutes,
            webhook_id=webhook_id,
        )

    return RuleRepository(db).create(rule)


def _format_rule(rule: Rule) -> str:
    status = "on" if rule.enabled else "off"
    webhook = rule.webhook_id if rule.webhook_id is not None else "default"
    return (
        f"ID: {rule.id}, [{status}] {rule.name}: {rule.condition_type.value} "
        f"{rule.threshold} (window {rule.window_minutes}m, webhook {webhook})"
    )


def _open_db(args: argparse.Namespace) -> tuple[Database, Optional[AppConfig]]:
    config = None
    db_path = args.db
    if args.config:
        config = load_config(args.config)
        db_path = db_path or config.database.path
    db = Database(db_path or "data/btcwatch.db")
    db.initialize()
    return db, config


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="btcwatch CLI")
    parser.add_argument("--db", help="Database path (overrides config)")
    parser.add_argument("--config", help="Path to config file")
    parser.add_argument("--owner", default="local", help="Owner ID for user data")

    subparsers = parser.add_subparsers(dest="command", help="Command")

    # Webhook commands
    webhook_parser = subparsers.add_parser("webhook", help="Webhook management")
    webhook_subparsers = webhook_parser.add_subparsers(dest="action")

    add_webhook_parser = webhook_subparsers.add_parser("add", help="Add webhook")
    add_webhook_parser.add_argument("--name", required=True, help="Display name")
    add_webhook_parser.add_argument("--url", required=True, help="Webhook URL")
    add_webhook_parser.add_argument(
        "--type",
        default=WebhookType.SLACK.value,
        choices=[t.value for t in WebhookType],
    )

    webhook_subparsers.add_parser("list", help="List webhooks")

    remove_webhook_parser = webhook_subparsers.add_parser("remove", help="Remove webhook")
    remove_webhook_parser.add_argument("id", type=int, help="Webhook ID")

    # Rules commands
    rules_parser = subparsers.add_parser("rules", help="Rules management")
    rules_subparsers = rules_parser.add_subparsers(dest="action")

    add_rule_parser = rules_subparsers.add_parser("add", help="Add rule")
    add_rule_parser.add_argument("--name", help="Rule name")
    add_rule_parser.add_argument(
        "--type", choices=[c.value for c in ConditionType], help="Condition type"
    )
    add_rule_parser.add_argument("--threshold", help="Price or percent threshold")
    add_rule_parser.add_argument("--message", help="Message template")
    add_rule_parser.add_argument("--window", type=int, default=5, help="Window minutes")
    add_rule_parser.add_argument("--webhook", type=int, help="Webhook ID")
    add_rule_parser.add_argument("--template", help="Rule template ID")

    rules_subparsers.add_parser("list", help="List rules")
    rules_subparsers.add_parser("templates", help="List rule templates")

    for action in ("enable", "disable", "delete"):
        action_parser = rules_subparsers.add_parser(action, help=f"{action.title()} rule")
        action_parser.add_argument("id", type=int, help="Rule ID")

    # Alerts commands
    alerts_parser = subparsers.add_parser("alerts", help="Alert history")
    alerts_subparsers = alerts_parser.add_subparsers(dest="action")
    list_alerts_parser = alerts_subparsers.add_parser("list", help="List alerts")
    list_alerts_parser.add_argument("--limit", type=int, default=20)

    # Price commands
    price_parser = subparsers.add_parser("price", help="Price history")
    price_subparsers = price_parser.add_subparsers(dest="action")
    price_subparsers.add_parser("latest", help="Show latest stored price")

    subparsers.add_parser("poll", help="Fetch the price and evaluate rules once")

    # Scheduler commands
    scheduler_parser = subparsers.add_parser("scheduler", help="Polling scheduler")
    scheduler_subparsers = scheduler_parser.add_subparsers(dest="action")
    start_parser = scheduler_subparsers.add_parser("start", help="Run the poller")
    start_parser.add_argument("--interval", type=int, help="Seconds between passes")
    scheduler_subparsers.add_parser("stop", help="Turn polling off")
    scheduler_subparsers.add_parser("status", help="Show scheduler settings")

    # DB commands
    db_parser = subparsers.add_parser("db", help="Database management")
    db_subparsers = db_parser.add_subparsers(dest="action")
    db_subparsers.add_parser("init", help="Create schema")

    args = parser.parse_args()

    db, config = _open_db(args)

    logging.basicConfig(
        level=config.advanced.log_level if config else "INFO",
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        _run_command(args, db, config)
    except (RuleValidationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)
    finally:
        db.close()


def _run_command(
    args: argparse.Namespace, db: Database, config: Optional[AppConfig]
) -> None:
    """Dispatch a parsed sub-command."""
    if args.command == "webhook":
        repo = WebhookRepository(db)
        if args.action == "add":
            webhook = add_webhook(db, args.owner, args.name, args.url, args.type)
            print(f"Created webhook with ID: {webhook.id}")
        elif args.action == "list":
            for w in repo.list_by_owner(args.owner):
                status = "active" if w.active else "inactive"
                print(f"ID: {w.id}, {w.name} ({w.type.value}, {status}): {w.url}")
        elif args.action == "remove":
            repo.delete(args.id)
            print(f"Removed webhook {args.id}")

    elif args.command == "rules":
        repo = RuleRepository(db)
        if args.action == "add":
            rule = add_rule(
                db,
                owner_id=args.owner,
                name=args.name,
                condition_type=args.type,
                threshold=args.threshold,
                message_template=args.message,
                window_minutes=args.window,
                webhook_id=args.webhook,
                template_id=args.template,
            )
            print(f"Created rule with ID: {rule.id}")
        elif args.action == "list":
            for rule in repo.list_by_owner(args.owner):
                print(_format_rule(rule))
        elif args.action == "templates":
            for t in list_templates():
                print(f"{t.id}: {t.name}")
        elif args.action in ("enable", "disable"):
            repo.set_enabled(args.id, args.action == "enable")
            print(f"Rule {args.id} {args.action}d")
        elif args.action == "delete":
            repo.delete(args.id)
            print(f"Deleted rule {args.id}")

    elif args.command == "alerts":
        if args.action == "list":
            repo = AlertRepository(db)
            for a in repo.list_recent(limit=args.limit, owner_id=args.owner):
                sent = "sent" if a.webhook_sent else "not sent"
                print(
                    f"{a.triggered_at.isoformat()} [{a.rule_name}] "
                    f"${a.price_at_trigger:,.2f} ({sent}): {a.message}"
                )

    elif args.command == "price":
        if args.action == "latest":
            sample = PriceHistoryRepository(db).get_latest()
            if sample is None:
                print("No price data available")
            else:
                print(
                    f"${sample.price:,.2f} at {sample.captured_at.isoformat()} "
                    f"({sample.source})"
                )

    elif args.command == "poll":
        from btcwatch.main import BtcWatchApp

        app = BtcWatchApp.from_config(config or AppConfig(), db=db)
        result = app.fetch_and_evaluate()
        print(json.dumps(result.to_dict(), indent=2))

    elif args.command == "scheduler":
        default_interval = config.schedule.interval_seconds if config else 30
        settings_repo = SchedulerSettingsRepository(db, default_interval=default_interval)
        if args.action == "start":
            from btcwatch.main import BtcWatchApp
            from btcwatch.scheduler import PollingScheduler

            if args.interval:
                settings_repo.set_interval(args.interval)
            app = BtcWatchApp.from_config(config or AppConfig(), db=db)
            PollingScheduler(app, settings_repo).run_forever(force=True)
        elif args.action == "stop":
            settings_repo.set_enabled(False)
            print("Polling disabled")
        elif args.action == "status":
            settings = settings_repo.get()
            state = "enabled" if settings.enabled else "disabled"
            print(f"Polling {state}, every {settings.interval_seconds}s")

    elif args.command == "db":
        if args.action == "init":
            print("Database initialized")


if __name__ == "__main__":
    main()
