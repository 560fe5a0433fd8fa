"""Origin resolution and header rules shared by every runtime adapter.

The auth handler derives callback URLs and cookie domains from the request
URL and ``Host``. Behind proxies the connection's own host is an internal
name, so the externally visible host is resolved from request headers and
forced onto the canonical request.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping
from urllib.parse import urlsplit

from authgate.adapters.http.base import CanonicalResponse, Header
from authgate.core.errors import RequestTooLargeError

logger = logging.getLogger(__name__)

BODYLESS_METHODS = frozenset({"GET", "HEAD"})

# Recomputed by the serving layer, which may re-serialize the body
RESPONSE_SKIP_HEADERS = frozenset({"content-length", "transfer-encoding", "content-encoding"})

_DEFAULT_PORTS = {"http": 80, "https": 443}


def origin_host(origin: str | None) -> str | None:
    """Host (with non-default port) of an ``Origin`` header value.

    Returns None when the header is absent, ``null``, or unparseable.

    Examples:
        >>> origin_host("https://app.example.com")
        'app.example.com'
        >>> origin_host("http://localhost:3000")
        'localhost:3000'
        >>> origin_host("not a url") is None
        True
    """
    if not origin:
        return None
    try:
        parts = urlsplit(origin.strip())
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or not hostname:
        return None

    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme.lower()):
        host = f"{host}:{port}"
    return host


def resolve_host(headers: Mapping[str, str], default_host: str) -> str:
    """Externally visible host: Origin > X-Forwarded-Host > Host > default."""

    return (
        origin_host(headers.get("origin"))
        or (headers.get("x-forwarded-host") or "").split(",")[0].strip()
        or (headers.get("host") or "").strip()
        or default_host
    )


def resolve_scheme(headers: Mapping[str, str], connection_scheme: str) -> str:
    """Externally visible scheme: X-Forwarded-Proto > connection scheme."""

    forwarded = (headers.get("x-forwarded-proto") or "").split(",")[0].strip()
    return (forwarded or connection_scheme).lower()


def build_url(scheme: str, host: str, path_and_query: str) -> str:
    if not path_and_query.startswith("/"):
        path_and_query = f"/{path_and_query}"
    return f"{scheme}://{host}{path_and_query}"


def canonical_headers(pairs: Iterable[tuple[str, str]], *, host: str, scheme: str) -> list[Header]:
    """Copy inbound headers into canonical form.

    Names are lower-cased and only the first value of a repeated header is
    kept. ``host``, ``x-forwarded-host`` and ``x-forwarded-proto`` are then
    forced to the resolved external origin.
    """
    seen: dict[str, str] = {}
    for name, value in pairs:
        key = name.lower()
        if key not in seen:
            seen[key] = value

    seen["host"] = host
    seen["x-forwarded-host"] = host
    seen["x-forwarded-proto"] = scheme
    return list(seen.items())


def frame_body(headers: list[Header], body: bytes | None) -> list[Header]:
    """Make length headers agree with the body actually forwarded."""

    framed = [
        (name, value)
        for name, value in headers
        if name not in ("content-length", "transfer-encoding")
    ]
    if body is not None:
        framed.append(("content-length", str(len(body))))
    return framed


def _body_too_large(max_bytes: int) -> RequestTooLargeError:
    return RequestTooLargeError(
        code="request_body_too_large",
        message="Request body exceeds the configured limit",
        details={"limit": max_bytes},
    )


def check_declared_length(headers: Mapping[str, str], max_bytes: int) -> None:
    """Reject up front when Content-Length already exceeds ``max_bytes``.

    Raises:
        RequestTooLargeError: If the declared length is over the limit.
    """
    declared = (headers.get("content-length") or "").strip()
    if declared.isdigit() and int(declared) > max_bytes:
        logger.warning(
            "body_limit.rejected_by_header",
            extra={"content_length": int(declared), "max_bytes": max_bytes},
        )
        raise _body_too_large(max_bytes)


def check_body_size(size: int, max_bytes: int) -> None:
    """Reject once the bytes actually received exceed ``max_bytes``."""

    if size > max_bytes:
        logger.warning(
            "body_limit.rejected_by_read",
            extra={"size": size, "max_bytes": max_bytes},
        )
        raise _body_too_large(max_bytes)


def charset_of(content_type: str | None, default: str = "utf-8") -> str:
    """Charset parameter of a Content-Type value.

    Examples:
        >>> charset_of("text/plain; charset=ISO-8859-1")
        'iso-8859-1'
        >>> charset_of("application/json")
        'utf-8'
    """
    if not content_type:
        return default
    for param in content_type.split(";")[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset" and value.strip():
            return value.strip().strip('"').lower()
    return default


def outbound_headers(response: CanonicalResponse) -> list[Header]:
    """Response headers to hand to the runtime.

    Every ``Set-Cookie`` stays a separate entry. Length and encoding headers
    are dropped so the serving layer recomputes them.
    """
    return [
        (name, value)
        for name, value in response.headers
        if name.lower() not in RESPONSE_SKIP_HEADERS
    ]


def outbound_body(response: CanonicalResponse) -> bytes:
    """Body to send; redirects are always sent with an empty body."""

    if response.is_redirect:
        return b""
    return response.body
