"""Application entry point for the bountyscope watcher."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.immunefi_source import ImmunefiCatalogSource
from adapters.link_resolver import DetailPageLinkResolver
from adapters.sqlite_store import SQLiteSnapshotStore
from adapters.telegram_bot_notifier import TelegramBotNotifier
from core.config import WatcherConfig
from core.errors import ConfigError
from core.scheduler import CycleScheduler

NAME = "BOUNTYSCOPE"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", ["BOT_API"]):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict) -> None:
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/bountyscope.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _load_config() -> WatcherConfig:
    load_dotenv()
    try:
        return settings.load_settings()
    except ConfigError as e:
        # Missing configuration is the only fatal condition.
        print(f"Configuration error: {e}", file=sys.stderr)
        raise SystemExit(2) from e


def _build_store(config: WatcherConfig) -> SQLiteSnapshotStore:
    store = SQLiteSnapshotStore(config.store.path, config.store.name)
    store.init_db()
    return store


def build_scheduler(config: WatcherConfig, store: SQLiteSnapshotStore) -> CycleScheduler:
    """Wire adapters into the scheduler according to the configuration."""

    notifier = None
    if config.notifications.enabled:
        notifier = TelegramBotNotifier(
            bot_token=config.notifications.bot_token,
            chat_id=config.notifications.chat_id,
        )
    return CycleScheduler(
        source=ImmunefiCatalogSource(config.source),
        resolver=DetailPageLinkResolver(config.source),
        store=store,
        interval_seconds=config.schedule.interval_seconds,
        notifier=notifier,
    )


def _run(max_cycles: Optional[int] = None) -> None:
    _print_banner()
    config = _load_config()
    _configure_logging(config.logging)
    logger = logging.getLogger(__name__)

    logger.info("Starting bountyscope")
    store = _build_store(config)
    logger.info("Snapshot store at %s holds %s records", config.store.path, store.count_records())
    if config.notifications.enabled:
        logger.info("Telegram notifications enabled")

    scheduler = build_scheduler(config, store)
    logger.info("Polling every %s minutes", config.schedule.interval_minutes)
    try:
        scheduler.run_forever(max_cycles=max_cycles)
    except KeyboardInterrupt:
        logger.info("Stopped by user")


def _changes() -> None:
    config = _load_config()
    store = _build_store(config)
    changes = store.list_changes()
    if not changes:
        print("No changes recorded.")
        return
    for change in changes:
        print(f"{change.group_key} | {change.previous_last_modified} -> {change.current_last_modified}")
        for link in change.link_delta:
            print(f"    + {link}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="bountyscope")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the polling loop")
    subparsers.add_parser("once", help="Run a single cycle and exit")
    subparsers.add_parser("changes", help="Print the recorded change log")

    args = parser.parse_args(argv)
    if args.command == "once":
        _run(max_cycles=1)
        return
    if args.command == "changes":
        _changes()
        return
    _run()


if __name__ == "__main__":
    main()
