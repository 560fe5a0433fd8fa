"""Entry point for API-gateway proxy events.

Runs the same pipeline as the ASGI app (prefix rate limiting, then the auth
proxy) for runtimes that call a plain ``handler(event, context)`` function.

Usage (function handler setting):
    authgate.serverless.handler
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

from authgate.adapters.auth.base import AbstractAuthHandler
from authgate.adapters.auth.factory import create_auth_handler
from authgate.adapters.http.proxy_event import (
    ProxyEvent,
    ProxyEventAdapter,
    ProxyEventResponse,
    event_header_map,
    event_path,
    event_source_ip,
    event_version,
)
from authgate.core.client_key import derive_client_key
from authgate.core.config import Settings, parse_csv, settings
from authgate.core.errors import RateLimitExceededError
from authgate.core.logging import clear_request_id, configure_logging, set_request_id
from authgate.core.middleware import SECURITY_HEADERS, accept_request_id
from authgate.core.rate_limit import (
    RATE_LIMIT_MESSAGE,
    build_rate_limiter,
    evaluate_rate_limit,
    is_rate_limited_path,
    rejection_headers,
)
from authgate.services.auth_proxy import AuthProxy


class ProxyEventGateway:
    """Rate limiter plus auth proxy for proxy events.

    One instance lives for the whole warm container, so the limiter's
    counters persist across invocations served by the same process.
    """

    def __init__(
        self,
        app_settings: Settings,
        *,
        auth_handler: AbstractAuthHandler,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.settings = app_settings
        self.limiter = build_rate_limiter(app_settings.rate_limit, clock=clock)
        self.adapter = ProxyEventAdapter(
            default_host=app_settings.auth.default_host,
            max_body_bytes=app_settings.auth.max_body_bytes,
        )
        self.proxy = AuthProxy(auth_handler)

    def _check_rate_limit(self, event: ProxyEvent) -> None:
        cfg = self.settings.rate_limit
        if not is_rate_limited_path(event_path(event), cfg):
            return

        client_key = derive_client_key(
            event_header_map(event),
            peer=event_source_ip(event),
            trusted_proxies=parse_csv(cfg.trusted_proxies),
            client_ip_header=cfg.client_ip_header,
        )
        result = evaluate_rate_limit(self.limiter, client_key, cfg)
        if not result.allowed:
            raise RateLimitExceededError(
                code="rate_limit_exceeded",
                message=RATE_LIMIT_MESSAGE,
                details={
                    "limit": result.limit,
                    "retry_after": float(result.retry_after_seconds or 0),
                    "context": {"headers": rejection_headers(result, cfg)},
                },
            )

    async def handle(self, event: ProxyEvent) -> dict[str, Any]:
        """Process one event and return the proxy response dict."""

        header_name = self.settings.log.request_id_header.lower()
        request_id = accept_request_id(event_header_map(event).get(header_name))
        version = event_version(event)
        set_request_id(request_id)
        try:
            try:
                self._check_rate_limit(event)
            except RateLimitExceededError as exc:
                sink = ProxyEventResponse(
                    status_code=429,
                    headers={"content-type": "application/json"},
                    body=json.dumps({"error": exc.message}),
                    version=version,
                )
                for name, value in exc.details["context"]["headers"].items():
                    sink.add_header(name, value)
            else:
                sink = await self.proxy.forward(
                    self.adapter,
                    event,
                    lambda: ProxyEventResponse(version=version),
                )

            sink.set_default_header(header_name, request_id)
            for name, value in SECURITY_HEADERS.items():
                sink.set_default_header(name, value)
            return sink.to_event()
        finally:
            clear_request_id()


_gateway: ProxyEventGateway | None = None
_loop: asyncio.AbstractEventLoop | None = None


def get_gateway() -> ProxyEventGateway:
    """Return the container-wide gateway, building it on first use."""

    global _gateway
    if _gateway is None:
        configure_logging(settings.log)
        _gateway = ProxyEventGateway(settings, auth_handler=create_auth_handler(settings.auth))
    return _gateway


def handler(event: ProxyEvent, context: Any = None) -> dict[str, Any]:
    """Synchronous function handler for proxy events.

    A single event loop is reused across invocations because the upstream
    HTTP client's connection pool is bound to the loop it was created on.
    """
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop.run_until_complete(get_gateway().handle(event))
