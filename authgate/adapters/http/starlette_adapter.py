"""Adapter for the ASGI runtime (FastAPI/Starlette request and response)."""

from __future__ import annotations

from urllib.parse import quote

from starlette.requests import Request
from starlette.responses import Response

from authgate.adapters.http.base import CanonicalRequest, CanonicalResponse, RequestAdapter
from authgate.adapters.http.forwarding import (
    BODYLESS_METHODS,
    build_url,
    canonical_headers,
    check_body_size,
    check_declared_length,
    frame_body,
    outbound_body,
    outbound_headers,
    resolve_host,
    resolve_scheme,
)
from authgate.core.errors import AdapterTranslationError, RequestTooLargeError

# Statuses that must not carry a body or Content-Length
_NO_BODY_STATUSES = frozenset({204, 304})


def raw_path_and_query(request: Request) -> str:
    """Path and query exactly as the client sent them.

    ``request.url.path`` is percent-decoded, which would turn ``%2F`` into a
    path separator and ``%3F`` into a query delimiter.
    """
    scope = request.scope
    raw_path = scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = quote(scope.get("path") or "/")
    query = (scope.get("query_string") or b"").decode("latin-1")
    return f"{path}?{query}" if query else path


class StarletteRequestAdapter(RequestAdapter[Request, Response]):
    """Translate between Starlette requests/responses and canonical ones.

    The ASGI server hands over the raw body bytes, so the body is forwarded
    without a parse/serialize round trip. Bodies are read in chunks and
    rejected as soon as they pass ``max_body_bytes``.
    """

    def __init__(self, *, default_host: str, max_body_bytes: int = 10 * 1024 * 1024) -> None:
        self.default_host = default_host
        self.max_body_bytes = max_body_bytes

    async def _read_body(self, request: Request) -> bytes:
        check_declared_length(request.headers, self.max_body_bytes)

        size = 0
        chunks: list[bytes] = []
        async for chunk in request.stream():
            size += len(chunk)
            check_body_size(size, self.max_body_bytes)
            chunks.append(chunk)
        return b"".join(chunks)

    async def normalize(self, request: Request) -> CanonicalRequest:
        try:
            host = resolve_host(request.headers, self.default_host)
            scheme = resolve_scheme(request.headers, request.url.scheme)
            path = raw_path_and_query(request)

            method = request.method.upper()
            body = None if method in BODYLESS_METHODS else await self._read_body(request)

            headers = canonical_headers(
                (
                    (name.decode("latin-1"), value.decode("latin-1"))
                    for name, value in request.headers.raw
                ),
                host=host,
                scheme=scheme,
            )
        except RequestTooLargeError:
            raise
        except Exception as exc:
            raise AdapterTranslationError(
                code="request_translation_failed",
                message="Could not translate the inbound request",
                details={"context": {"error_type": type(exc).__name__}},
            ) from exc

        return CanonicalRequest(
            method=method,
            url=build_url(scheme, host, path),
            headers=frame_body(headers, body),
            body=body,
        )

    def denormalize(self, response: CanonicalResponse, sink: Response) -> Response:
        sink.status_code = response.status
        for name, value in outbound_headers(response):
            # append keeps each Set-Cookie as its own header line
            sink.headers.append(name, value)

        body = outbound_body(response)
        if response.status < 200 or response.status in _NO_BODY_STATUSES:
            body = b""
            if "content-length" in sink.headers:
                del sink.headers["content-length"]
        else:
            sink.headers["content-length"] = str(len(body))
        sink.body = body
        return sink
