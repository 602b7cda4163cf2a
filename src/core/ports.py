"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the store, remote source, link
resolution, and notification adapters so that the core can be reused with
different backends.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from core.models import CatalogItem, ChangeRecord, SnapshotRecord


class SnapshotStorePort(Protocol):
    """Storage operations required by the reconciliation loop."""

    def load_all(self) -> dict[str, SnapshotRecord]:
        ...

    def seed(self, items: Sequence[CatalogItem]) -> None:
        ...

    def insert_new(self, items: Sequence[CatalogItem]) -> int:
        ...

    def apply_changes(self, changes: Sequence[ChangeRecord]) -> int:
        ...


class CatalogSourcePort(Protocol):
    """Produces the current catalog, links unresolved."""

    def fetch_catalog(self) -> list[CatalogItem]:
        ...


class LinkResolverPort(Protocol):
    """Resolves the associated links of a single catalog item."""

    def resolve(self, item_id: str) -> list[str]:
        ...


class NotifierPort(Protocol):
    """Notification operations used after changes were persisted."""

    def send(self, changes: Sequence[ChangeRecord], inserted: Sequence[CatalogItem]) -> None:
        ...
