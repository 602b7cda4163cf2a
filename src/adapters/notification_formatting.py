"""Notification formatting for change summaries.

Keeping formatting here keeps the notifier a pure delivery adapter.
Output targets Telegram's legacy Markdown parse mode.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from core.models import CatalogItem, ChangeRecord

DIVIDER = "──────────────"

# Telegram rejects sendMessage text longer than this.
MESSAGE_LIMIT = 4096


def escape_md(value: str) -> str:
    for ch in r"_*[`":
        value = value.replace(ch, f"\\{ch}")
    return value


def format_change(change: ChangeRecord) -> str:
    """Return the Markdown block for a single changed project."""

    lines = [f"*{escape_md(change.group_key)}*"]
    if change.previous_last_modified != change.current_last_modified:
        lines.append(
            f"Updated: {escape_md(change.previous_last_modified)} → "
            f"{escape_md(change.current_last_modified)}"
        )
    if change.link_delta:
        lines.append("New links:")
        lines.extend(f"• {escape_md(link)}" for link in change.link_delta)
    elif change.previous_last_modified == change.current_last_modified:
        lines.append("Links changed")
    return "\n".join(lines)


def format_summary(changes: Sequence[ChangeRecord], inserted: Sequence[CatalogItem]) -> str:
    """Return one message covering every change and new entry of a cycle."""

    parts = [f"*Bounty changes:* {len(changes)}"]
    for change in changes:
        parts.extend([DIVIDER, format_change(change)])
    if inserted:
        parts.extend([DIVIDER, f"*New bounties:* {len(inserted)}"])
        parts.extend(f"• {escape_md(item.group_key)}" for item in inserted)
    return "\n".join(parts)


def _pack(pieces: Iterable[str], separator: str, limit: int) -> list[str]:
    chunks: list[str] = []
    current: Optional[str] = None
    for piece in pieces:
        if current is not None and len(current) + len(separator) + len(piece) <= limit:
            current = f"{current}{separator}{piece}"
            continue
        if current is not None:
            chunks.append(current)
        current = piece
    if current is not None:
        chunks.append(current)
    return chunks


def split_message(text: str, limit: int = MESSAGE_LIMIT) -> list[str]:
    """Split ``text`` into chunks of at most ``limit`` characters.

    Cuts prefer divider boundaries, then line boundaries. A single line longer
    than the limit is cut hard.
    """

    if len(text) <= limit:
        return [text]

    separator = f"\n{DIVIDER}\n"
    sections: list[str] = []
    for section in text.split(separator):
        if len(section) <= limit:
            sections.append(section)
            continue
        lines = [
            line[i : i + limit]
            for line in section.split("\n")
            for i in range(0, max(len(line), 1), limit)
        ]
        sections.extend(_pack(lines, "\n", limit))
    return _pack(sections, separator, limit)
