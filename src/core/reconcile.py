"""Reconciliation between an observed catalog and the stored snapshot.

Everything here is pure except ``seed_baseline``, which hands the observed
items to the store verbatim. Comparison never writes; the scheduler persists
whatever ``reconcile`` returns.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from core.models import CatalogItem, ChangeRecord, SnapshotRecord
from core.ports import SnapshotStorePort

LOGGER = logging.getLogger(__name__)


def links_differ(current: Sequence[str], stored: Sequence[str]) -> bool:
    """Order-sensitive list inequality. A pure reorder counts as a change."""

    return list(current) != list(stored)


def link_delta(current: Sequence[str], stored: Sequence[str]) -> tuple[str, ...]:
    """Links in ``current`` that ``stored`` does not contain, in current order."""

    known = set(stored)
    return tuple(link for link in current if link not in known)


def _resolved_links(item: CatalogItem) -> tuple[str, ...]:
    if item.links is None:
        raise ValueError(f"Links for {item.group_key!r} must be resolved before reconciling")
    return item.links


def reconcile(
    observed: Iterable[CatalogItem],
    snapshot: Mapping[str, SnapshotRecord],
) -> list[ChangeRecord]:
    """Return one ChangeRecord per known item whose state drifted.

    Items with no snapshot record are skipped here; see ``find_new_items``.
    """

    changes: list[ChangeRecord] = []
    for item in observed:
        current_links = _resolved_links(item)
        existing = snapshot.get(item.group_key)
        if existing is None:
            continue

        date_changed = existing.last_modified != item.last_modified
        links_changed = links_differ(current_links, existing.links)
        if date_changed:
            LOGGER.info(
                "Last modified changed for %s: %s -> %s",
                item.group_key,
                existing.last_modified,
                item.last_modified,
            )
        if links_changed:
            LOGGER.info("Links changed for %s", item.group_key)
        if not (date_changed or links_changed):
            continue

        changes.append(
            ChangeRecord(
                id=item.id,
                group_key=item.group_key,
                previous_last_modified=existing.last_modified,
                current_last_modified=item.last_modified,
                link_delta=link_delta(current_links, existing.links),
                current_links=current_links,
            )
        )
    return changes


def find_new_items(
    observed: Iterable[CatalogItem],
    snapshot: Mapping[str, SnapshotRecord],
) -> list[CatalogItem]:
    """Return observed items that have no snapshot record yet."""

    return [item for item in observed if item.group_key not in snapshot]


def seed_baseline(observed: Sequence[CatalogItem], store: SnapshotStorePort) -> int:
    """Copy the whole observation into an empty store and return the count.

    The caller is responsible for checking that the store is empty; this
    bypasses diffing entirely.
    """

    for item in observed:
        _resolved_links(item)
    store.seed(observed)
    LOGGER.info("Seeded snapshot store with %s records", len(observed))
    return len(observed)
