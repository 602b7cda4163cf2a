"""Per-bounty link resolution from the bounty detail page."""

from __future__ import annotations

import logging
from typing import Iterable

from selectolax.lexbor import LexborHTMLParser

from adapters.http_client import HTTP_ERRORS, http_get
from core.config import SourceConfig

LOGGER = logging.getLogger(__name__)


def extract_links(markup: str, domains: Iterable[str]) -> list[str]:
    """Return anchor hrefs that mention any allow-listed domain, in page order."""

    domains = tuple(domains)
    links = []
    for node in LexborHTMLParser(markup).css("a[href]"):
        href = node.attributes.get("href") or ""
        if any(domain in href for domain in domains):
            links.append(href)
    return links


class DetailPageLinkResolver:
    """Satisfies LinkResolverPort. Failures degrade to an empty list."""

    def __init__(self, config: SourceConfig) -> None:
        self._config = config

    def detail_url(self, item_id: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/bounty/{item_id}/"

    def resolve(self, item_id: str) -> list[str]:
        url = self.detail_url(item_id)
        try:
            response = http_get(url, self._config.user_agent, self._config.timeout_seconds)
        except HTTP_ERRORS as e:
            LOGGER.warning("Error fetching bounty %s: %s", item_id, e)
            return []
        if response.status != 200:
            LOGGER.warning("Failed to retrieve bounty %s. HTTP status code: %s", item_id, response.status)
            return []
        return extract_links(response.body, self._config.link_domains)
