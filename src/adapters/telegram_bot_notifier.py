"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so change summaries can be routed to a chat.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Sequence

from adapters.notification_formatting import format_summary, split_message
from core.errors import NotificationFailure
from core.models import CatalogItem, ChangeRecord

LOGGER = logging.getLogger(__name__)


class TelegramBotNotifier:
    """Notifier adapter that sends messages via the Telegram Bot API."""

    def __init__(self, bot_token: str, chat_id: str, timeout: float = 10.0) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._timeout = timeout

    def _endpoint(self) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    def build_payload(self, text: str) -> dict:
        return {
            "chat_id": self._chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }

    def _post(self, text: str) -> None:
        data = json.dumps(self.build_payload(text)).encode("utf-8")
        request = urllib.request.Request(self._endpoint(), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout):
                pass
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise NotificationFailure(f"Bot API error {e.code}: {body}") from e
        except OSError as e:
            raise NotificationFailure(f"Bot API unreachable: {e}") from e

    def send(self, changes: Sequence[ChangeRecord], inserted: Sequence[CatalogItem]) -> None:
        """Send the formatted change summary, split to fit the Bot API limit."""

        chunks = split_message(format_summary(changes, inserted))
        for chunk in chunks:
            self._post(chunk)
        LOGGER.info(
            "Sent change summary for %s project(s) in %s message(s)",
            len(changes) + len(inserted),
            len(chunks),
        )
