"""SQLite snapshot store adapter.

Implements the core SnapshotStorePort using a simple SQLite database.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from datetime import datetime, timezone
from typing import Sequence

from core.errors import PartialApplyFailure, StoreUnavailable
from core.models import CatalogItem, ChangeRecord, SnapshotRecord

LOGGER = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SQLiteSnapshotStore:
    """Thin SQLite wrapper that satisfies the SnapshotStorePort contract."""

    def __init__(self, db_path: str, name: str) -> None:
        if not _IDENTIFIER.match(name):
            raise ValueError(f"Store name must be a plain identifier: {name!r}")
        self._db_path = db_path
        self._bounties = f"{name}_bounties"
        self._differences = f"{name}_differences"

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open {self._db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - <name>_bounties: last known state per project
        - <name>_differences: latest detected change per project
        """

        try:
            with self._connect() as conn:
                # One row per project. links is a JSON array in page order.
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self._bounties} (
                        group_key TEXT PRIMARY KEY,
                        id TEXT NOT NULL,
                        last_modified TEXT NOT NULL,
                        links TEXT NOT NULL
                    )
                    """
                )
                # Upserted by project, so it holds the last change seen per key.
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self._differences} (
                        group_key TEXT PRIMARY KEY,
                        id TEXT NOT NULL,
                        previous_last_modified TEXT NOT NULL,
                        current_last_modified TEXT NOT NULL,
                        link_delta TEXT NOT NULL,
                        detected_at TIMESTAMP NOT NULL
                    )
                    """
                )
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot initialize store: {e}") from e

    def load_all(self) -> dict[str, SnapshotRecord]:
        """Return every snapshot record keyed by group_key."""

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT group_key, id, last_modified, links FROM {self._bounties}"
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot load snapshot: {e}") from e
        return {
            row["group_key"]: SnapshotRecord(
                id=row["id"],
                group_key=row["group_key"],
                last_modified=row["last_modified"],
                links=_decode_links(row["links"], row["group_key"]),
            )
            for row in rows
        }

    def count_records(self) -> int:
        try:
            with self._connect() as conn:
                row = conn.execute(f"SELECT COUNT(*) AS n FROM {self._bounties}").fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot count records: {e}") from e
        return int(row["n"])

    def seed(self, items: Sequence[CatalogItem]) -> None:
        """Bulk insert the initial baseline in a single transaction."""

        try:
            with self._connect() as conn:
                conn.executemany(
                    f"""
                    INSERT INTO {self._bounties} (group_key, id, last_modified, links)
                    VALUES (?, ?, ?, ?)
                    """,
                    [_item_row(item) for item in items],
                )
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot seed snapshot: {e}") from e

    def insert_new(self, items: Sequence[CatalogItem]) -> int:
        """Insert records for unknown projects; existing rows are left alone."""

        try:
            with self._connect() as conn:
                before = conn.total_changes
                conn.executemany(
                    f"""
                    INSERT OR IGNORE INTO {self._bounties} (group_key, id, last_modified, links)
                    VALUES (?, ?, ?, ?)
                    """,
                    [_item_row(item) for item in items],
                )
                return conn.total_changes - before
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot insert new records: {e}") from e

    def _log_change(self, change: ChangeRecord) -> None:
        detected_at = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO {self._differences} (
                    group_key,
                    id,
                    previous_last_modified,
                    current_last_modified,
                    link_delta,
                    detected_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(group_key) DO UPDATE SET
                    id = excluded.id,
                    previous_last_modified = excluded.previous_last_modified,
                    current_last_modified = excluded.current_last_modified,
                    link_delta = excluded.link_delta,
                    detected_at = excluded.detected_at
                """,
                (
                    change.group_key,
                    change.id,
                    change.previous_last_modified,
                    change.current_last_modified,
                    json.dumps(list(change.link_delta)),
                    detected_at.isoformat(),
                ),
            )

    def _update_snapshot(self, change: ChangeRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO {self._bounties} (group_key, id, last_modified, links)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(group_key) DO UPDATE SET
                    last_modified = excluded.last_modified,
                    links = excluded.links
                """,
                (
                    change.group_key,
                    change.id,
                    change.current_last_modified,
                    json.dumps(list(change.current_links)),
                ),
            )

    def apply_changes(self, changes: Sequence[ChangeRecord]) -> int:
        """Log each change, then move its snapshot forward.

        The two writes are separate commits so the log is never behind the
        snapshot. A failing key is logged and skipped; PartialApplyFailure is
        raised after the whole batch if anything failed.
        """

        applied = 0
        failed: list[str] = []
        for change in changes:
            try:
                self._log_change(change)
                self._update_snapshot(change)
            except (sqlite3.Error, StoreUnavailable) as e:
                LOGGER.error("Error applying change for %s: %s", change.group_key, e)
                failed.append(change.group_key)
                continue
            LOGGER.info(
                "Updated %s: last modified %s, %s link(s)",
                change.group_key,
                change.current_last_modified,
                len(change.current_links),
            )
            applied += 1
        if failed:
            raise PartialApplyFailure(failed, applied)
        return applied

    def list_changes(self) -> list[ChangeRecord]:
        """Return the change log, most recent first."""

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    f"""
                    SELECT d.*, b.links AS current_links
                    FROM {self._differences} AS d
                    LEFT JOIN {self._bounties} AS b ON b.group_key = d.group_key
                    ORDER BY d.detected_at DESC
                    """
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot read change log: {e}") from e
        return [
            ChangeRecord(
                id=row["id"],
                group_key=row["group_key"],
                previous_last_modified=row["previous_last_modified"],
                current_last_modified=row["current_last_modified"],
                link_delta=_decode_links(row["link_delta"], row["group_key"]),
                current_links=_decode_links(row["current_links"] or "[]", row["group_key"]),
            )
            for row in rows
        ]


def _item_row(item: CatalogItem) -> tuple[str, str, str, str]:
    return (item.group_key, item.id, item.last_modified, json.dumps(list(item.links or ())))


def _decode_links(raw: str, group_key: str) -> tuple[str, ...]:
    try:
        links = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise StoreUnavailable(f"Corrupt link list stored for {group_key}: {e}") from e
    if not isinstance(links, list):
        raise StoreUnavailable(f"Corrupt link list stored for {group_key}: {raw!r}")
    return tuple(links)
