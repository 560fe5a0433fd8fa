"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports ``authgate`` so the
global settings object is built from test values.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("AUTH_HANDLER", "http")
os.environ.setdefault("AUTH_UPSTREAM_URL", "http://auth.internal:3005")
os.environ.setdefault("AUTH_DEFAULT_HOST", "localhost:3005")
os.environ.setdefault("AUTH_TRUSTED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from authgate.adapters.auth.base import AbstractAuthHandler
from authgate.adapters.http.base import CanonicalRequest, CanonicalResponse
from authgate.core.config import AuthSettings, LogSettings, RateLimitSettings, Settings


class FakeClock:
    """Manually advanced time source in epoch milliseconds."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeAuthHandler(AbstractAuthHandler):
    """Records canonical requests and replays a canned response."""

    def __init__(self, response: CanonicalResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or CanonicalResponse(
            status=200,
            headers=[("content-type", "application/json")],
            body=b'{"ok": true}',
        )
        self.error = error
        self.requests: list[CanonicalRequest] = []
        self.closed = False

    async def handle(self, request: CanonicalRequest) -> CanonicalResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response

    async def aclose(self) -> None:
        self.closed = True


def make_settings(auth: dict | None = None, **rate_limit) -> Settings:
    return Settings(
        rate_limit=RateLimitSettings(**rate_limit),
        auth=AuthSettings(upstream_url="http://auth.internal:3005", **(auth or {})),
        log=LogSettings(level="WARNING"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_handler() -> FakeAuthHandler:
    return FakeAuthHandler()
