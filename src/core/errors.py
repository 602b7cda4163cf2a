"""Error taxonomy for the watcher.

Everything except ConfigError is cycle-scoped: the scheduler logs it and
retries after the regular delay.
"""

from __future__ import annotations

from typing import Sequence


class WatcherError(Exception):
    """Base class for errors raised by bountyscope."""


class FetchFailure(WatcherError):
    """Network error or non-2xx response from the remote source."""


class ParseFailure(WatcherError):
    """Remote data could not be interpreted (missing token, malformed JSON)."""


class StoreUnavailable(WatcherError):
    """Connection or query failure against the snapshot store."""


class PartialApplyFailure(WatcherError):
    """Some change records could not be applied while others were."""

    def __init__(self, failed_keys: Sequence[str], applied: int) -> None:
        self.failed_keys = list(failed_keys)
        self.applied = applied
        super().__init__(
            f"{len(self.failed_keys)} change(s) failed to apply "
            f"({applied} applied): {', '.join(self.failed_keys)}"
        )


class NotificationFailure(WatcherError):
    """Outbound notification could not be delivered."""


class ConfigError(WatcherError, RuntimeError):
    """Required configuration is missing or invalid. Fatal at startup."""
