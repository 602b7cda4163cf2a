from __future__ import annotations

from typing import Optional

from core.errors import (
    FetchFailure,
    NotificationFailure,
    ParseFailure,
    PartialApplyFailure,
    StoreUnavailable,
)
from core.models import CatalogItem, ChangeRecord, SnapshotRecord
from core.scheduler import CycleScheduler, CycleState


class FakeSource:
    def __init__(self, items: Optional[list[CatalogItem]] = None, error: Optional[Exception] = None) -> None:
        self.items = items or []
        self.error = error
        self.calls = 0

    def fetch_catalog(self) -> list[CatalogItem]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.items)


class FakeResolver:
    def __init__(self, links: Optional[dict[str, list[str]]] = None) -> None:
        self.links = links or {}
        self.calls: list[str] = []

    def resolve(self, item_id: str) -> list[str]:
        self.calls.append(item_id)
        return self.links.get(item_id, [])


class FakeStore:
    def __init__(self, records: Optional[list[SnapshotRecord]] = None) -> None:
        self.records = {record.group_key: record for record in records or []}
        self.log: dict[str, ChangeRecord] = {}
        self.seed_calls = 0
        self.fail_keys: set[str] = set()
        self.load_error: Optional[Exception] = None
        self.insert_error: Optional[Exception] = None
        self.apply_error: Optional[Exception] = None

    def load_all(self) -> dict[str, SnapshotRecord]:
        if self.load_error:
            raise self.load_error
        return dict(self.records)

    def seed(self, items) -> None:
        self.seed_calls += 1
        for item in items:
            self.records[item.group_key] = SnapshotRecord(item.id, item.group_key, item.last_modified, item.links)

    def insert_new(self, items) -> int:
        if self.insert_error:
            raise self.insert_error
        inserted = 0
        for item in items:
            if item.group_key not in self.records:
                self.records[item.group_key] = SnapshotRecord(
                    item.id, item.group_key, item.last_modified, item.links
                )
                inserted += 1
        return inserted

    def apply_changes(self, changes) -> int:
        if self.apply_error:
            raise self.apply_error
        failed = []
        for change in changes:
            if change.group_key in self.fail_keys:
                failed.append(change.group_key)
                continue
            self.log[change.group_key] = change
            self.records[change.group_key] = SnapshotRecord(
                change.id, change.group_key, change.current_last_modified, change.current_links
            )
        if failed:
            raise PartialApplyFailure(failed, len(changes) - len(failed))
        return len(changes)


class FakeNotifier:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.sent: list[tuple[list[ChangeRecord], list[CatalogItem]]] = []
        self.error = error

    def send(self, changes, inserted) -> None:
        if self.error:
            raise self.error
        self.sent.append((list(changes), list(inserted)))


def _scheduler(source, store, resolver=None, notifier=None, sleeps=None) -> CycleScheduler:
    sleeps = sleeps if sleeps is not None else []
    return CycleScheduler(
        source=source,
        resolver=resolver or FakeResolver(),
        store=store,
        interval_seconds=600,
        notifier=notifier,
        sleep=sleeps.append,
    )


def test_empty_store_is_seeded_with_resolved_links() -> None:
    source = FakeSource([CatalogItem("1", "acme", "d1"), CatalogItem("2", "beta", "d1")])
    resolver = FakeResolver({"1": ["https://github.com/acme/x"]})
    store = FakeStore()

    report = _scheduler(source, store, resolver).run_cycle()

    assert report.seeded == 2
    assert store.seed_calls == 1
    assert store.records["acme"].links == ("https://github.com/acme/x",)
    assert store.log == {}
    assert report.trail == [
        CycleState.IDLE,
        CycleState.FETCHING,
        CycleState.RECONCILING,
        CycleState.PERSISTING,
        CycleState.SLEEPING,
    ]


def test_existing_store_is_never_reseeded() -> None:
    store = FakeStore([SnapshotRecord("1", "acme", "d1", ())])
    source = FakeSource([CatalogItem("1", "acme", "d1")])

    report = _scheduler(source, store).run_cycle()

    assert store.seed_calls == 0
    assert report.seeded == 0
    assert report.changed == 0


def test_changes_are_applied_and_links_resolved_once() -> None:
    store = FakeStore([SnapshotRecord("1", "acme", "2024-01-01", ())])
    source = FakeSource([CatalogItem("1", "acme", "2024-02-01")])
    resolver = FakeResolver({"1": ["https://github.com/acme/x"]})
    notifier = FakeNotifier()

    report = _scheduler(source, store, resolver, notifier).run_cycle()

    assert report.changed == 1
    assert resolver.calls == ["1"]
    assert store.log["acme"].link_delta == ("https://github.com/acme/x",)
    assert store.records["acme"].last_modified == "2024-02-01"
    assert store.records["acme"].links == ("https://github.com/acme/x",)
    assert len(notifier.sent) == 1


def test_second_cycle_after_apply_is_quiet() -> None:
    store = FakeStore([SnapshotRecord("1", "acme", "2024-01-01", ())])
    source = FakeSource([CatalogItem("1", "acme", "2024-02-01")])
    resolver = FakeResolver({"1": ["a"]})
    scheduler = _scheduler(source, store, resolver)

    assert scheduler.run_cycle().changed == 1
    assert scheduler.run_cycle().changed == 0


def test_new_entries_are_inserted_not_reported() -> None:
    store = FakeStore([SnapshotRecord("1", "acme", "d1", ())])
    source = FakeSource([CatalogItem("1", "acme", "d1"), CatalogItem("2", "newco", "d5")])
    notifier = FakeNotifier()

    report = _scheduler(source, store, notifier=notifier).run_cycle()

    assert report.inserted == 1
    assert report.changed == 0
    assert "newco" in store.records
    assert "newco" not in store.log
    assert notifier.sent[0][1][0].group_key == "newco"


def test_missing_token_aborts_without_mutation() -> None:
    store = FakeStore([SnapshotRecord("1", "acme", "d1", ())])
    before = dict(store.records)
    source = FakeSource(error=ParseFailure("Build token not found in listing markup"))

    report = _scheduler(source, store).run_cycle()

    assert report.failed
    assert isinstance(report.error, ParseFailure)
    assert store.records == before
    assert report.trail[-3:] == [CycleState.FETCHING, CycleState.FAILED_TRANSIENT, CycleState.SLEEPING]


def test_store_unavailable_during_load_aborts_cycle() -> None:
    store = FakeStore()
    store.load_error = StoreUnavailable("down")
    report = _scheduler(FakeSource([CatalogItem("1", "acme", "d1")]), store).run_cycle()

    assert report.failed
    assert report.trail[-3] == CycleState.RECONCILING
    assert store.seed_calls == 0


def test_unexpected_error_is_isolated() -> None:
    report = _scheduler(FakeSource(error=KeyError("boom")), FakeStore()).run_cycle()

    assert report.failed
    assert report.state == CycleState.SLEEPING


def test_partial_apply_failure_skips_only_failed_keys() -> None:
    store = FakeStore([SnapshotRecord("1", "acme", "d1", ()), SnapshotRecord("2", "beta", "d1", ())])
    store.fail_keys = {"beta"}
    source = FakeSource([CatalogItem("1", "acme", "d2"), CatalogItem("2", "beta", "d2")])
    notifier = FakeNotifier()

    report = _scheduler(source, store, notifier=notifier).run_cycle()

    assert not report.failed
    assert report.changed == 1
    assert report.failed_keys == ["beta"]
    assert store.records["acme"].last_modified == "d2"
    assert store.records["beta"].last_modified == "d1"
    assert [change.group_key for change in notifier.sent[0][0]] == ["acme"]


def test_notification_failure_does_not_fail_cycle() -> None:
    store = FakeStore([SnapshotRecord("1", "acme", "d1", ())])
    source = FakeSource([CatalogItem("1", "acme", "d2")])
    notifier = FakeNotifier(error=NotificationFailure("Bot API error 400"))

    report = _scheduler(source, store, notifier=notifier).run_cycle()

    assert not report.failed
    assert report.changed == 1


def test_run_forever_sleeps_same_interval_after_failures() -> None:
    sleeps: list[float] = []
    source = FakeSource(error=FetchFailure("HTTP 503"))
    scheduler = _scheduler(source, FakeStore(), sleeps=sleeps)

    assert scheduler.run_forever(max_cycles=3) == 3
    assert source.calls == 3
    assert sleeps == [600, 600]


def test_failed_cycle_is_followed_by_successful_retry() -> None:
    sleeps: list[float] = []
    source = FakeSource([CatalogItem("1", "acme", "d1")], error=FetchFailure("timeout"))
    store = FakeStore()
    scheduler = _scheduler(source, store, sleeps=sleeps)

    assert scheduler.run_cycle().failed
    source.error = None
    report = scheduler.run_cycle()

    assert not report.failed
    assert report.seeded == 1


def test_store_failure_while_persisting_fails_the_cycle() -> None:
    store = FakeStore([SnapshotRecord("1", "acme", "d1", ())])
    store.apply_error = StoreUnavailable("disk I/O error")
    source = FakeSource([CatalogItem("1", "acme", "d2")])
    notifier = FakeNotifier()

    report = _scheduler(source, store, notifier=notifier).run_cycle()

    assert report.failed
    assert report.trail[-3:] == [CycleState.PERSISTING, CycleState.FAILED_TRANSIENT, CycleState.SLEEPING]
    assert notifier.sent == []


def test_insert_failure_does_not_block_changes() -> None:
    store = FakeStore([SnapshotRecord("1", "acme", "d1", ())])
    store.insert_error = StoreUnavailable("database is locked")
    source = FakeSource([CatalogItem("1", "acme", "d2"), CatalogItem("2", "newco", "d1")])
    notifier = FakeNotifier()

    report = _scheduler(source, store, notifier=notifier).run_cycle()

    assert not report.failed
    assert report.changed == 1
    assert report.inserted == 0
    assert store.records["acme"].last_modified == "d2"
    assert "newco" not in store.records
    changes, inserted = notifier.sent[0]
    assert [change.group_key for change in changes] == ["acme"]
    assert inserted == []
