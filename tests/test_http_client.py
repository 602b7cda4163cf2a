from __future__ import annotations

import io
import urllib.error
from email.message import Message

from adapters import http_client
from adapters.http_client import decode_body, http_get


def _headers(content_type: str) -> Message:
    headers = Message()
    headers["Content-Type"] = content_type
    return headers


class DummyResponse:
    def __init__(self, body: bytes, content_type: str, status: int = 200) -> None:
        self.status = status
        self.headers = _headers(content_type)
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        return None


def test_decode_body_falls_back_on_unknown_charset() -> None:
    assert decode_body("café".encode("utf-8"), "utf8mb4") == "café"
    assert decode_body("café".encode("latin-1"), "latin-1") == "café"
    assert decode_body(b"plain", None) == "plain"


def test_http_get_sends_user_agent_and_decodes(monkeypatch) -> None:
    captured = {}

    def fake_urlopen(request, timeout):
        captured["agent"] = request.get_header("User-agent")
        captured["timeout"] = timeout
        return DummyResponse("<a>ok</a>".encode("utf-8"), "text/html; charset=utf8mb4")

    monkeypatch.setattr(http_client.urllib.request, "urlopen", fake_urlopen)

    response = http_get("https://example.test/", "test-agent", timeout=3)

    assert response.status == 200
    assert response.body == "<a>ok</a>"
    assert captured == {"agent": "test-agent", "timeout": 3}


def test_http_get_returns_error_status_with_body(monkeypatch) -> None:
    def fake_urlopen(request, timeout):
        raise urllib.error.HTTPError(
            request.full_url, 404, "Not Found", _headers("text/plain"), io.BytesIO(b"gone")
        )

    monkeypatch.setattr(http_client.urllib.request, "urlopen", fake_urlopen)

    response = http_get("https://example.test/missing")

    assert response.status == 404
    assert response.body == "gone"
