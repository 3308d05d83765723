"""
Configuration loading and validation.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from btcwatch.database.models import WebhookType


class ConfigValidationError(Exception):
    """Raised when configuration is invalid."""

    pass


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: str = "data/btcwatch.db"


@dataclass
class FeedConfig:
    """Upstream price feed configuration."""

    url: str = "https://rtvapi.roxom.com/btc/info"
    timeout_seconds: float = 10.0
    source: str = "roxom_api"


@dataclass
class WebhooksConfig:
    """Webhook delivery configuration."""

    default_url: Optional[str] = None
    default_type: str = "slack"
    timeout_seconds: float = 5.0


@dataclass
class ScheduleConfig:
    """Polling schedule configuration."""

    interval_seconds: int = 30
    enabled: bool = False


@dataclass
class AdvancedConfig:
    """Advanced configuration."""

    log_level: str = "INFO"
    suppress_within_window: bool = False


@dataclass
class AppConfig:
    """Main application configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    webhooks: WebhooksConfig = field(default_factory=WebhooksConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    advanced: AdvancedConfig = field(default_factory=AdvancedConfig)


ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute_env_vars(value: Any) -> Any:
    """Replace ${NAME} references with environment values; unset names become ""."""
    if isinstance(value, str):
        return ENV_VAR_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {key: _substitute_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _validate_positive(value: Any, name: str) -> None:
    """Validate a numeric setting is greater than zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigValidationError(f"{name} must be a positive number")


def _validate_config(config_dict: dict[str, Any]) -> None:
    """Validate configuration values."""
    # Check database path is provided
    db_config = config_dict.get("database") or {}
    db_path = db_config.get("path", DatabaseConfig.path)
    if not db_path:
        raise ConfigValidationError("Database path is required")

    if db_path != ":memory:":
        parent = Path(db_path).parent
        if parent.exists() and not os.access(parent, os.W_OK):
            raise ConfigValidationError(f"Database path not writable: {parent}")

    feed = config_dict.get("feed") or {}
    url = feed.get("url", FeedConfig.url)
    if not url or not url.startswith(("http://", "https://")):
        raise ConfigValidationError("Feed URL must be an HTTP(S) endpoint")
    _validate_positive(
        feed.get("timeout_seconds", FeedConfig.timeout_seconds), "feed.timeout_seconds"
    )

    webhooks = config_dict.get("webhooks") or {}
    default_type = webhooks.get("default_type", WebhooksConfig.default_type)
    if default_type not in {t.value for t in WebhookType}:
        raise ConfigValidationError(f"Unknown default webhook type: {default_type}")
    default_url = webhooks.get("default_url")
    if default_url and not default_url.startswith(("http://", "https://")):
        raise ConfigValidationError("Default webhook URL must be an HTTP(S) endpoint")
    _validate_positive(
        webhooks.get("timeout_seconds", WebhooksConfig.timeout_seconds),
        "webhooks.timeout_seconds",
    )

    schedule = config_dict.get("schedule") or {}
    _validate_positive(
        schedule.get("interval_seconds", ScheduleConfig.interval_seconds),
        "schedule.interval_seconds",
    )


def load_config(config_path: str) -> AppConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        AppConfig instance

    Raises:
        ConfigValidationError: If configuration is invalid
        FileNotFoundError: If config file doesn't exist
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path) as f:
        raw_config = yaml.safe_load(f) or {}

    # Substitute environment variables
    config_dict = _substitute_env_vars(raw_config)

    # Validate
    _validate_config(config_dict)

    webhooks_dict = dict(config_dict.get("webhooks") or {})
    # An unset ${VAR} substitutes to "", which means no default target
    webhooks_dict["default_url"] = webhooks_dict.get("default_url") or None

    return AppConfig(
        database=DatabaseConfig(**(config_dict.get("database") or {})),
        feed=FeedConfig(**(config_dict.get("feed") or {})),
        webhooks=WebhooksConfig(**webhooks_dict),
        schedule=ScheduleConfig(**(config_dict.get("schedule") or {})),
        advanced=AdvancedConfig(**(config_dict.get("advanced") or {})),
    )
