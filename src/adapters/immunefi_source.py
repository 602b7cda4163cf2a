"""Remote catalog adapter for the Immunefi bounty listing.

The listing is a Next.js page: the build token embedded in the markup
parameterizes the JSON data route that carries the actual bounty list.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from adapters.http_client import HTTP_ERRORS, http_get
from core.config import SourceConfig
from core.errors import FetchFailure, ParseFailure
from core.models import CatalogItem

LOGGER = logging.getLogger(__name__)

_BUILD_TOKEN = re.compile(r"/_next/static/([^/]+)/_buildManifest\.js")


def extract_token(markup: str) -> str:
    """Return the Next.js build token, or an empty string when absent."""

    match = _BUILD_TOKEN.search(markup)
    return match.group(1) if match else ""


def parse_bounties(payload: str) -> list[CatalogItem]:
    """Parse the data route document into catalog items.

    Expected shape: ``{"pageProps": {"bounties": [...]}}``.
    """

    try:
        document = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ParseFailure(f"Malformed catalog JSON: {e}") from e

    page_props = document.get("pageProps") if isinstance(document, dict) else None
    bounties = page_props.get("bounties") if isinstance(page_props, dict) else None
    if not isinstance(bounties, list):
        raise ParseFailure("Catalog JSON has no pageProps.bounties list")

    items: dict[str, CatalogItem] = {}
    for entry in bounties:
        item = _to_item(entry)
        if item is None:
            continue
        if item.group_key in items:
            LOGGER.warning("Duplicate project %s in catalog; keeping the first entry", item.group_key)
            continue
        items[item.group_key] = item
    return list(items.values())


def _to_item(entry: Any) -> Optional[CatalogItem]:
    if not isinstance(entry, dict) or not entry.get("id") or not entry.get("project"):
        LOGGER.warning("Skipping catalog entry without id/project: %r", entry)
        return None
    return CatalogItem(
        id=str(entry["id"]),
        group_key=str(entry["project"]),
        last_modified=str(entry.get("updatedDate") or ""),
    )


class ImmunefiCatalogSource:
    """Fetches the current bounty catalog. Satisfies CatalogSourcePort."""

    def __init__(self, config: SourceConfig) -> None:
        self._config = config

    def _get(self, url: str) -> str:
        try:
            response = http_get(url, self._config.user_agent, self._config.timeout_seconds)
        except HTTP_ERRORS as e:
            raise FetchFailure(f"GET {url} failed: {e}") from e
        if not 200 <= response.status < 300:
            raise FetchFailure(f"GET {url} returned HTTP {response.status}")
        return response.body

    def fetch_token(self) -> str:
        base = self._config.base_url.rstrip("/")
        markup = self._get(f"{base}{self._config.listing_path}")
        token = extract_token(markup)
        if not token:
            raise ParseFailure("Build token not found in listing markup")
        return token

    def fetch_catalog(self) -> list[CatalogItem]:
        token = self.fetch_token()
        base = self._config.base_url.rstrip("/")
        payload = self._get(f"{base}/_next/data/{token}/explore.json")
        items = parse_bounties(payload)
        LOGGER.debug("Catalog token %s yielded %s items", token, len(items))
        return items
