"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to the remote source's JSON shape or the store's row layout.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CatalogItem:
    """One bounty as observed on the remote listing.

    ``links`` is None until the item's detail page has been resolved.
    """

    id: str
    group_key: str
    last_modified: str
    links: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class SnapshotRecord:
    """Last-known state of a bounty, keyed by ``group_key``."""

    id: str
    group_key: str
    last_modified: str
    links: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChangeRecord:
    """One detected difference between an observation and its snapshot."""

    id: str
    group_key: str
    previous_last_modified: str
    current_last_modified: str
    link_delta: tuple[str, ...]
    # Full link list of the new observation; becomes the snapshot's links on apply.
    current_links: tuple[str, ...] = ()
