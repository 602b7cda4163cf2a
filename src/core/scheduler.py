"""Cycle scheduler for the reconciliation loop.

Each cycle walks a fixed sequence of states:

1) FETCHING: pull the catalog and resolve each item's links once
2) RECONCILING: load the snapshot, seed it if empty, otherwise diff
3) PERSISTING: apply changes, insert new entries, notify
4) SLEEPING: wait the fixed interval, then start over from IDLE

A failure in steps 1-3 moves to FAILED_TRANSIENT, which only logs and then
sleeps for the same interval. Nothing is written before PERSISTING, so an
aborted fetch or diff leaves the store untouched.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from core.errors import NotificationFailure, PartialApplyFailure, StoreUnavailable, WatcherError
from core.models import CatalogItem
from core.ports import CatalogSourcePort, LinkResolverPort, NotifierPort, SnapshotStorePort
from core.reconcile import find_new_items, reconcile, seed_baseline

LOGGER = logging.getLogger(__name__)


class CycleState(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    PERSISTING = "persisting"
    SLEEPING = "sleeping"
    FAILED_TRANSIENT = "failed_transient"


@dataclass
class CycleReport:
    """Outcome of a single cycle, mostly useful for logging and tests."""

    trail: list[CycleState] = field(default_factory=lambda: [CycleState.IDLE])
    seeded: int = 0
    inserted: int = 0
    changed: int = 0
    failed_keys: list[str] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def state(self) -> CycleState:
        return self.trail[-1]

    @property
    def failed(self) -> bool:
        return CycleState.FAILED_TRANSIENT in self.trail


class CycleScheduler:
    """Runs fetch, reconcile, and persist on a fixed cadence forever."""

    def __init__(
        self,
        source: CatalogSourcePort,
        resolver: LinkResolverPort,
        store: SnapshotStorePort,
        interval_seconds: float,
        notifier: Optional[NotifierPort] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._source = source
        self._resolver = resolver
        self._store = store
        self._interval = interval_seconds
        self._notifier = notifier
        self._sleep = sleep

    def _fetch(self) -> list[CatalogItem]:
        items = self._source.fetch_catalog()
        LOGGER.info("Fetched %s catalog items", len(items))
        return [replace(item, links=tuple(self._resolver.resolve(item.id))) for item in items]

    def run_cycle(self) -> CycleReport:
        """Run one pass. Cycle-level errors are captured in the report."""

        report = CycleReport()
        try:
            report.trail.append(CycleState.FETCHING)
            items = self._fetch()

            report.trail.append(CycleState.RECONCILING)
            snapshot = self._store.load_all()
            if not snapshot:
                report.trail.append(CycleState.PERSISTING)
                report.seeded = seed_baseline(items, self._store)
                report.trail.append(CycleState.SLEEPING)
                return report

            changes = reconcile(items, snapshot)
            new_items = find_new_items(items, snapshot)

            report.trail.append(CycleState.PERSISTING)
            if changes:
                LOGGER.info("Found %s differences in the data", len(changes))
                try:
                    report.changed = self._store.apply_changes(changes)
                except PartialApplyFailure as exc:
                    report.changed = exc.applied
                    report.failed_keys = exc.failed_keys
                    LOGGER.warning("%s", exc)
            else:
                LOGGER.info("No differences found")
            new_items = self._insert_new(report, new_items)

            applied = [change for change in changes if change.group_key not in report.failed_keys]
            self._notify(applied, new_items)
        except WatcherError as exc:
            self._fail(report, exc)
            LOGGER.error("Cycle aborted during %s: %s", report.trail[-2].value, exc)
        except Exception as exc:
            self._fail(report, exc)
            LOGGER.exception("Unexpected error during %s", report.trail[-2].value)

        report.trail.append(CycleState.SLEEPING)
        return report

    def _insert_new(self, report: CycleReport, new_items: list[CatalogItem]) -> list[CatalogItem]:
        """Insert unseen entries. A failure here never blocks change application."""

        if not new_items:
            return []
        try:
            report.inserted = self._store.insert_new(new_items)
        except StoreUnavailable as exc:
            LOGGER.error("Could not insert %s new catalog entries: %s", len(new_items), exc)
            return []
        LOGGER.info("Inserted %s new catalog entries", report.inserted)
        return new_items

    @staticmethod
    def _fail(report: CycleReport, exc: BaseException) -> None:
        report.error = exc
        report.trail.append(CycleState.FAILED_TRANSIENT)

    def _notify(self, changes, new_items) -> None:
        if self._notifier is None or not (changes or new_items):
            return
        # Changes are already persisted; a failed message must not fail the cycle.
        try:
            self._notifier.send(changes, new_items)
        except NotificationFailure:
            LOGGER.exception("Failed to send change notification")

    def run_forever(self, max_cycles: Optional[int] = None) -> int:
        """Loop cycles with a fixed delay. Returns the number of cycles run.

        ``max_cycles`` bounds the loop; None runs until the process is stopped.
        The delay follows every cycle, successful or not, except the last one
        of a bounded run.
        """

        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            report = self.run_cycle()
            cycles += 1
            LOGGER.info(
                "Cycle %s finished (%s): seeded=%s inserted=%s changed=%s",
                cycles,
                "failed" if report.failed else "ok",
                report.seeded,
                report.inserted,
                report.changed,
            )
            if max_cycles is not None and cycles >= max_cycles:
                break
            LOGGER.debug("Sleeping %s seconds", self._interval)
            self._sleep(self._interval)
        return cycles
