"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_LINK_DOMAINS = ("github.com", "etherscan.io", "testnet.bscscan.com")


@dataclass(frozen=True)
class SourceConfig:
    """Remote catalog settings shared by the observer and link resolver."""

    user_agent: str
    base_url: str = "https://immunefi.com"
    listing_path: str = "/explore/"
    link_domains: tuple[str, ...] = DEFAULT_LINK_DOMAINS
    timeout_seconds: float = 15.0


@dataclass(frozen=True)
class StoreConfig:
    """Snapshot store location and table namespace."""

    path: str
    name: str


@dataclass(frozen=True)
class ScheduleConfig:
    """Fixed delay between cycles, applied after success and failure alike."""

    interval_minutes: float = 10.0

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60


@dataclass(frozen=True)
class NotificationConfig:
    """Optional Telegram Bot API delivery of change summaries."""

    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class WatcherConfig:
    """Everything the watcher needs, built once at startup."""

    source: SourceConfig
    store: StoreConfig
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    logging: dict = field(default_factory=dict)
