"""Blocking HTTP helpers shared by the remote source adapters."""

from __future__ import annotations

import codecs
import http.client
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional

# Anything a caller should treat as "the request did not work".
HTTP_ERRORS = (OSError, http.client.HTTPException)


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: str


def decode_body(raw: bytes, charset: Optional[str]) -> str:
    """Decode ``raw`` with the declared charset, or UTF-8 if it is unknown."""

    encoding = charset or "utf-8"
    try:
        codecs.lookup(encoding)
    except LookupError:
        encoding = "utf-8"
    return raw.decode(encoding, errors="replace")


def http_get(url: str, user_agent: Optional[str] = None, timeout: float = 15.0) -> HttpResponse:
    """GET ``url`` and return status and decoded body.

    Non-2xx responses are returned, not raised, so callers decide whether a
    status is an error. Connection and protocol problems still raise one of
    ``HTTP_ERRORS``.
    """

    request = urllib.request.Request(url, method="GET")
    if user_agent:
        request.add_header("User-Agent", user_agent)
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            charset = response.headers.get_content_charset()
            return HttpResponse(response.status, decode_body(response.read(), charset))
    except urllib.error.HTTPError as e:
        charset = e.headers.get_content_charset() if e.headers else None
        return HttpResponse(e.code, decode_body(e.read(), charset))
