"""Tests for the ASGI runtime adapter."""

from __future__ import annotations

import asyncio

import pytest
from starlette.requests import Request

from authgate.adapters.http.starlette_adapter import StarletteRequestAdapter, raw_path_and_query
from authgate.core.errors import RequestTooLargeError


def _request(chunks: list[bytes], headers: list[tuple[bytes, bytes]] | None = None, **scope) -> Request:
    messages = [
        {"type": "http.request", "body": chunk, "more_body": index < len(chunks) - 1}
        for index, chunk in enumerate(chunks)
    ]

    async def receive():
        return messages.pop(0)

    base = {
        "type": "http",
        "method": "POST",
        "scheme": "http",
        "server": ("testserver", 80),
        "root_path": "",
        "path": "/api/auth/sign-in/email",
        "raw_path": b"/api/auth/sign-in/email",
        "query_string": b"",
        "headers": [(b"host", b"testserver"), *(headers or [])],
    }
    base.update(scope)
    return Request(base, receive)


@pytest.fixture
def adapter() -> StarletteRequestAdapter:
    return StarletteRequestAdapter(default_host="localhost:3005", max_body_bytes=8)


def test_streamed_body_over_limit_rejected(adapter) -> None:
    # No Content-Length, so only the bytes actually read can trip the limit
    request = _request([b"12345", b"67890"])

    with pytest.raises(RequestTooLargeError):
        asyncio.run(adapter.normalize(request))


def test_declared_length_over_limit_rejected_before_reading(adapter) -> None:
    request = _request([b"1"], headers=[(b"content-length", b"1000")])

    with pytest.raises(RequestTooLargeError):
        asyncio.run(adapter.normalize(request))


def test_chunked_body_within_limit_joined(adapter) -> None:
    request = _request([b"1234", b"5678"])

    canonical = asyncio.run(adapter.normalize(request))

    assert canonical.body == b"12345678"
    assert canonical.get("content-length") == "8"


def test_path_quoted_when_server_omits_raw_path() -> None:
    request = _request([b""], method="GET", path="/api/auth/a b", raw_path=None, query_string=b"x=%2F")

    assert raw_path_and_query(request) == "/api/auth/a%20b?x=%2F"
