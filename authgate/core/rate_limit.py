"""Rate limiting middleware for the API prefix.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- The limiter is built once by the app factory and kept on ``app.state``,
  so its lifetime is the application's and tests get a fresh one per app.
- Only paths under the configured prefix (``/api/`` by default) are counted;
  health checks and anything else bypass the limiter.
- Rejections return ``{"error": <message>}`` with a ``Retry-After``
  header.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from authgate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from authgate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from authgate.core.client_key import derive_client_key
from authgate.core.config import RateLimitSettings, parse_csv
from authgate.core.logging import hash_identifier

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


def build_rate_limiter(
    cfg: RateLimitSettings,
    *,
    clock: Callable[[], float] | None = None,
) -> AbstractRateLimiter:
    """Construct the process-wide limiter from settings.

    Args:
        cfg: Rate limit settings.
        clock: Optional time source in epoch milliseconds (tests).

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """
    kwargs = {"clock": clock} if clock is not None else {}
    return InMemoryFixedWindowRateLimiter(
        max_requests=cfg.max_requests,
        window_ms=cfg.window_ms,
        max_entries=cfg.max_entries,
        sweep_interval_ms=cfg.sweep_interval_ms,
        idle_grace_ms=cfg.idle_grace_ms,
        **kwargs,
    )


def is_rate_limited_path(path: str, cfg: RateLimitSettings) -> bool:
    """Whether ``path`` falls under the limited prefix.

    ``/api`` itself matches the ``/api/`` prefix.
    """
    if not cfg.enabled:
        return False
    prefix = cfg.path_prefix
    return path.startswith(prefix) or path == prefix.rstrip("/")


def evaluate_rate_limit(
    limiter: AbstractRateLimiter,
    client_key: str,
    cfg: RateLimitSettings,
) -> RateLimitResult:
    """Consume one unit for ``client_key`` and log the decision."""

    result = limiter.consume(client_key)
    log_extra = {
        "key_hash": hash_identifier(client_key),
        "limit": result.limit,
        "remaining": result.remaining,
        "window_ms": cfg.window_ms,
    }
    if result.allowed:
        logger.debug("rate_limit.allowed", extra=log_extra)
    else:
        logger.warning(
            "rate_limit.exceeded",
            extra={**log_extra, "retry_after_s": result.retry_after_seconds},
        )
    return result


def rejection_headers(result: RateLimitResult, cfg: RateLimitSettings) -> dict[str, str]:
    """Headers attached to a 429 response."""

    headers = {"Retry-After": str(result.retry_after_seconds or 0)}
    if cfg.include_headers:
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at // 1000)
    return headers


def client_key_for_request(request: Request, cfg: RateLimitSettings) -> str:
    return derive_client_key(
        request.headers,
        peer=request.client.host if request.client else None,
        trusted_proxies=parse_csv(cfg.trusted_proxies),
        client_ip_header=cfg.client_ip_header,
    )


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing the per-client fixed-window limit.

    Reads the limiter and its settings from ``request.app.state`` (set by
    ``create_app``). Requests outside the limited prefix go straight through.

    Returns:
        Response: 429 JSON response when the client is over budget, otherwise
            whatever the next handler produced.
    """
    cfg: RateLimitSettings = request.app.state.rate_limit_settings
    if not is_rate_limited_path(request.url.path, cfg):
        return await call_next(request)

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    result = evaluate_rate_limit(limiter, client_key_for_request(request, cfg), cfg)
    if result.allowed:
        return await call_next(request)

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": RATE_LIMIT_MESSAGE},
        headers=rejection_headers(result, cfg),
    )
