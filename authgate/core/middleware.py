"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a request ID so gateway logs can be
matched with the upstream auth service's logs:
- a well-formed incoming X-Request-ID is reused, otherwise a UUID is generated
- the ID lives in contextvars for the duration of the request
- the ID and total duration are echoed in response headers

Responses also get a small set of browser hardening headers.

Usage:
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(security_headers_middleware)
"""

from __future__ import annotations

import re
import time
import uuid

from fastapi import Request, Response

from authgate.core.config import settings
from authgate.core.logging import clear_request_id, set_request_id

# Client-supplied IDs end up in logs; accept only short token-like values
_REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._:-]{1,128}")


def accept_request_id(value: str | None) -> str:
    if value and _REQUEST_ID_PATTERN.fullmatch(value):
        return value
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation ID and timing headers to every response.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with ``X-Request-ID`` (header name
            configurable via LOG_REQUEST_ID_HEADER) and
            ``X-Request-Duration-ms`` added.
    """

    header_name = settings.log.request_id_header
    request_id = accept_request_id(request.headers.get(header_name))
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


# Browser hardening headers; values already set by the auth handler win
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-DNS-Prefetch-Control": "off",
}


async def security_headers_middleware(request: Request, call_next) -> Response:
    """Add ``SECURITY_HEADERS`` to every response that lacks them."""

    response: Response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response
