"""Adapter for API-gateway style proxy events (headers map plus body string).

Serverless runtimes deliver a request as a plain dict: method, path, a
header map (with an optional multi-value variant), query parameters and the
body as an already-decoded string. Responses go back as a dict with
``statusCode``, ``headers``, ``multiValueHeaders`` and a string ``body``.

Payload format 2.0 events move cookies out of the headers: the request
carries a top-level ``cookies`` list and the response returns Set-Cookie
values in ``cookies`` (``multiValueHeaders`` does not exist there).
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping
from urllib.parse import urlencode

from authgate.adapters.http.base import CanonicalRequest, CanonicalResponse, RequestAdapter
from authgate.adapters.http.forwarding import (
    BODYLESS_METHODS,
    build_url,
    canonical_headers,
    charset_of,
    check_body_size,
    check_declared_length,
    frame_body,
    outbound_body,
    outbound_headers,
    resolve_host,
    resolve_scheme,
)
from authgate.core.errors import AdapterTranslationError

ProxyEvent = Mapping[str, Any]

_TEXT_TYPES = ("text/", "application/json", "application/xml", "application/javascript")
_TEXT_SUFFIXES = ("+json", "+xml")
_TEXT_EXACT = ("application/x-www-form-urlencoded",)


def event_version(event: ProxyEvent) -> str:
    return str(event.get("version") or "1.0")


def _header_pairs(event: ProxyEvent) -> Iterator[tuple[str, str]]:
    multi = event.get("multiValueHeaders") or {}
    if multi:
        for name, values in multi.items():
            for value in values or ():
                yield name, str(value)
        return
    for name, value in (event.get("headers") or {}).items():
        if value is not None:
            yield name, str(value)


def iter_event_headers(event: ProxyEvent) -> Iterator[tuple[str, str]]:
    """Yield (name, value) pairs in arrival order.

    ``multiValueHeaders`` wins over ``headers`` when the runtime sends both.
    A 2.0 ``cookies`` list is joined into a single ``cookie`` header.
    """
    yield from _header_pairs(event)
    cookies = [str(cookie) for cookie in event.get("cookies") or () if cookie]
    if cookies:
        yield "cookie", "; ".join(cookies)


def event_header_map(event: ProxyEvent) -> dict[str, str]:
    """Lower-cased header map keeping the first value of each name."""

    headers: dict[str, str] = {}
    for name, value in iter_event_headers(event):
        headers.setdefault(name.lower(), value)
    return headers


def event_method(event: ProxyEvent) -> str | None:
    method = event.get("httpMethod")
    if not method:
        method = ((event.get("requestContext") or {}).get("http") or {}).get("method")
    return method.upper() if method else None


def event_path(event: ProxyEvent) -> str:
    return event.get("path") or event.get("rawPath") or "/"


def event_source_ip(event: ProxyEvent) -> str | None:
    context = event.get("requestContext") or {}
    return (
        (context.get("identity") or {}).get("sourceIp")
        or (context.get("http") or {}).get("sourceIp")
    )


def _event_query(event: ProxyEvent) -> str:
    if event.get("rawQueryString"):
        return event["rawQueryString"]
    multi = event.get("multiValueQueryStringParameters")
    if multi:
        return urlencode(multi, doseq=True)
    single = event.get("queryStringParameters")
    if single:
        return urlencode(single)
    return ""


def _is_text(content_type: str | None) -> bool:
    if not content_type:
        return True
    media_type = content_type.split(";")[0].strip().lower()
    return (
        media_type.startswith(_TEXT_TYPES)
        or media_type.endswith(_TEXT_SUFFIXES)
        or media_type in _TEXT_EXACT
    )


@dataclass
class ProxyEventResponse:
    """Response sink for the proxy-event runtime."""

    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    multi_value_headers: dict[str, list[str]] = field(default_factory=dict)
    body: str = ""
    is_base64_encoded: bool = False
    version: str = "1.0"

    def add_header(self, name: str, value: str) -> None:
        key = name.lower()
        if key == "set-cookie" or key in self.multi_value_headers:
            self.multi_value_headers.setdefault(key, []).append(value)
            return
        if key in self.headers:
            self.multi_value_headers[key] = [self.headers.pop(key), value]
            return
        self.headers[key] = value

    def set_default_header(self, name: str, value: str) -> None:
        key = name.lower()
        if key not in self.headers and key not in self.multi_value_headers:
            self.headers[key] = value

    def to_event(self) -> dict[str, Any]:
        if self.version == "2.0":
            return self._to_v2_event()
        return {
            "statusCode": self.status_code,
            "headers": dict(self.headers),
            "multiValueHeaders": {k: list(v) for k, v in self.multi_value_headers.items()},
            "body": self.body,
            "isBase64Encoded": self.is_base64_encoded,
        }

    def _to_v2_event(self) -> dict[str, Any]:
        headers = dict(self.headers)
        cookies: list[str] = []
        for key, values in self.multi_value_headers.items():
            if key == "set-cookie":
                cookies.extend(values)
            else:
                headers[key] = ",".join(values)
        event: dict[str, Any] = {
            "statusCode": self.status_code,
            "headers": headers,
            "body": self.body,
            "isBase64Encoded": self.is_base64_encoded,
        }
        if cookies:
            event["cookies"] = cookies
        return event


class ProxyEventAdapter(RequestAdapter[ProxyEvent, ProxyEventResponse]):
    """Translate between proxy events and canonical requests/responses.

    The runtime has already decoded the body into a string, so forwarding
    re-encodes it. The charset declared by the request's Content-Type is
    used for that, otherwise non-ASCII bodies would change on the way through.
    """

    def __init__(
        self,
        *,
        default_host: str,
        connection_scheme: str = "https",
        max_body_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self.default_host = default_host
        self.connection_scheme = connection_scheme
        self.max_body_bytes = max_body_bytes

    def _encode_body(self, event: ProxyEvent, content_type: str | None) -> bytes | None:
        raw = event.get("body")
        if raw is None:
            return None
        if event.get("isBase64Encoded"):
            return base64.b64decode(raw, validate=True)
        if isinstance(raw, bytes):
            return raw
        return str(raw).encode(charset_of(content_type))

    async def normalize(self, request: ProxyEvent) -> CanonicalRequest:
        try:
            method = event_method(request)
            if not method:
                raise ValueError("event has no HTTP method")

            lookup = event_header_map(request)
            host = resolve_host(lookup, self.default_host)
            scheme = resolve_scheme(lookup, self.connection_scheme)

            path = event_path(request)
            query = _event_query(request)
            if query:
                path = f"{path}?{query}"

            body = None
            if method not in BODYLESS_METHODS:
                check_declared_length(lookup, self.max_body_bytes)
                body = self._encode_body(request, lookup.get("content-type"))
                if body is not None:
                    check_body_size(len(body), self.max_body_bytes)

            headers = canonical_headers(iter_event_headers(request), host=host, scheme=scheme)
        except (ValueError, TypeError, LookupError) as exc:
            # Bad base64 and encode failures are ValueErrors; unknown charsets LookupError
            raise AdapterTranslationError(
                code="request_translation_failed",
                message="Could not translate the inbound event",
                details={"context": {"error_type": type(exc).__name__}},
            ) from exc

        return CanonicalRequest(
            method=method,
            url=build_url(scheme, host, path),
            headers=frame_body(headers, body),
            body=body,
        )

    def denormalize(
        self,
        response: CanonicalResponse,
        sink: ProxyEventResponse,
    ) -> ProxyEventResponse:
        sink.status_code = response.status
        for name, value in outbound_headers(response):
            sink.add_header(name, value)

        body = outbound_body(response)
        content_type = response.get("content-type")
        if _is_text(content_type):
            try:
                sink.body = body.decode(charset_of(content_type))
                sink.is_base64_encoded = False
                return sink
            except (UnicodeDecodeError, LookupError):
                pass
        sink.body = base64.b64encode(body).decode("ascii")
        sink.is_base64_encoded = True
        return sink
