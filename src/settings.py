"""Configuration loading for bountyscope.

Secrets and connection details come from the environment (a local .env is
loaded by the app), everything else from an optional config.json at the
project root. The result is a single WatcherConfig built once at startup.
"""

import json
import os
from typing import Mapping, Optional

from core.config import (
    DEFAULT_LINK_DOMAINS,
    NotificationConfig,
    ScheduleConfig,
    SourceConfig,
    StoreConfig,
    WatcherConfig,
)
from core.errors import ConfigError

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

# Variables that must be present for the watcher to start.
REQUIRED_ENV = ("USER_AGENT", "STORE_PATH", "STORE_NAME")


def _load_json_config(path: str) -> dict:
    """Load config.json; a missing file means all defaults."""

    if not os.path.exists(path):
        return {}

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data


def _number(section: dict, key: str, default: float, label: str) -> float:
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ConfigError(f"{label} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{label} must be a number, got {value!r}") from e


def _domains(section: dict) -> tuple[str, ...]:
    value = section.get("link_domains", DEFAULT_LINK_DOMAINS)
    if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) and item for item in value):
        raise ConfigError("source.link_domains must be a list of domain strings")
    return tuple(value)


def _resolve_path(path: str) -> str:
    if path == ":memory:" or os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


def load_settings(
    config_path: str = CONFIG_PATH,
    environ: Optional[Mapping[str, str]] = None,
) -> WatcherConfig:
    """Build the watcher configuration, failing fast on missing values."""

    env = os.environ if environ is None else environ
    missing = [name for name in REQUIRED_ENV if not env.get(name)]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    config = _load_json_config(config_path)

    _source = config.get("source", {})
    source = SourceConfig(
        user_agent=env["USER_AGENT"],
        base_url=_source.get("base_url", "https://immunefi.com"),
        listing_path=_source.get("listing_path", "/explore/"),
        link_domains=_domains(_source),
        timeout_seconds=_number(_source, "timeout_seconds", 15, "source.timeout_seconds"),
    )

    store = StoreConfig(path=_resolve_path(env["STORE_PATH"]), name=env["STORE_NAME"])

    # The cycle interval defaults to ten minutes.
    _schedule = config.get("schedule", {})
    interval = _number(_schedule, "interval_minutes", 10, "schedule.interval_minutes")
    if interval <= 0:
        raise ConfigError("schedule.interval_minutes must be positive")

    # Bot credentials are only required when notifications are switched on.
    _notifications = config.get("notifications", {})
    enabled = bool(_notifications.get("enabled", False))
    bot_token = env.get("BOT_API", "")
    chat_id = _notifications.get("bot_chat_id")
    if enabled and not bot_token:
        raise ConfigError("BOT_API is required when notifications are enabled")
    if enabled and not chat_id:
        raise ConfigError("notifications.bot_chat_id is required when notifications are enabled")

    return WatcherConfig(
        source=source,
        store=store,
        schedule=ScheduleConfig(interval_minutes=interval),
        notifications=NotificationConfig(
            enabled=enabled,
            bot_token=bot_token,
            chat_id=str(chat_id or ""),
        ),
        logging=config.get("logging", {}),
    )
