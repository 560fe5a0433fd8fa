"""Tests for origin resolution and header rules shared by the adapters."""

import pytest

from authgate.adapters.http.base import CanonicalResponse
from authgate.adapters.http.forwarding import (
    build_url,
    canonical_headers,
    charset_of,
    frame_body,
    origin_host,
    outbound_body,
    outbound_headers,
    resolve_host,
    resolve_scheme,
)


class TestResolveHost:
    def test_origin_beats_internal_host(self) -> None:
        headers = {"origin": "https://app.example.com", "host": "internal-service:8080"}
        assert resolve_host(headers, "localhost:3005") == "app.example.com"

    def test_forwarded_host_beats_host(self) -> None:
        headers = {"x-forwarded-host": "auth.example.com", "host": "internal-service:8080"}
        assert resolve_host(headers, "localhost:3005") == "auth.example.com"

    def test_host_header(self) -> None:
        assert resolve_host({"host": "internal-service:8080"}, "localhost:3005") == "internal-service:8080"

    def test_default_when_nothing_present(self) -> None:
        assert resolve_host({}, "localhost:3005") == "localhost:3005"

    @pytest.mark.parametrize("origin", ["null", "not a url", "http://[::1", "https://"])
    def test_unparseable_origin_ignored(self, origin: str) -> None:
        headers = {"origin": origin, "x-forwarded-host": "auth.example.com"}
        assert resolve_host(headers, "localhost:3005") == "auth.example.com"


class TestOriginHost:
    def test_keeps_non_default_port(self) -> None:
        assert origin_host("http://localhost:3000") == "localhost:3000"

    def test_drops_default_port(self) -> None:
        assert origin_host("https://app.example.com:443") == "app.example.com"

    def test_ipv6(self) -> None:
        assert origin_host("http://[::1]:8080") == "[::1]:8080"

    def test_missing(self) -> None:
        assert origin_host(None) is None


def test_resolve_scheme_prefers_forwarded_proto() -> None:
    assert resolve_scheme({"x-forwarded-proto": "https, http"}, "http") == "https"
    assert resolve_scheme({}, "http") == "http"


def test_build_url_keeps_path_and_query() -> None:
    assert build_url("https", "app.example.com", "/api/auth/callback/google?code=abc") == (
        "https://app.example.com/api/auth/callback/google?code=abc"
    )


def test_canonical_headers_keep_first_value_and_force_origin() -> None:
    headers = canonical_headers(
        [
            ("Accept", "application/json"),
            ("Cookie", "a=1"),
            ("cookie", "b=2"),
            ("Host", "internal-service:8080"),
            ("X-Forwarded-Proto", "http"),
        ],
        host="app.example.com",
        scheme="https",
    )
    as_dict = dict(headers)

    assert len(headers) == len(as_dict)
    assert as_dict["cookie"] == "a=1"
    assert as_dict["accept"] == "application/json"
    assert as_dict["host"] == "app.example.com"
    assert as_dict["x-forwarded-host"] == "app.example.com"
    assert as_dict["x-forwarded-proto"] == "https"


def test_frame_body_recomputes_length() -> None:
    framed = frame_body([("content-length", "999"), ("transfer-encoding", "chunked")], b"abc")
    assert framed == [("content-length", "3")]
    assert frame_body([("content-length", "10")], None) == []


@pytest.mark.parametrize(
    ("content_type", "expected"),
    [
        ("text/plain; charset=ISO-8859-1", "iso-8859-1"),
        ('application/json; charset="UTF-16"', "utf-16"),
        ("application/json", "utf-8"),
        (None, "utf-8"),
    ],
)
def test_charset_of(content_type, expected) -> None:
    assert charset_of(content_type) == expected


def test_outbound_headers_keep_each_cookie_and_drop_length() -> None:
    response = CanonicalResponse(
        status=200,
        headers=[
            ("Content-Type", "application/json"),
            ("Content-Length", "12"),
            ("Content-Encoding", "gzip"),
            ("Transfer-Encoding", "chunked"),
            ("Set-Cookie", "session=abc; Path=/; HttpOnly"),
            ("Set-Cookie", "csrf=xyz; Path=/"),
        ],
        body=b"{}",
    )

    headers = outbound_headers(response)

    assert [v for k, v in headers if k.lower() == "set-cookie"] == [
        "session=abc; Path=/; HttpOnly",
        "csrf=xyz; Path=/",
    ]
    names = {k.lower() for k, _ in headers}
    assert names == {"content-type", "set-cookie"}


def test_outbound_body_empty_for_redirect() -> None:
    redirect = CanonicalResponse(
        status=302,
        headers=[("location", "https://example.com/x")],
        body=b"Found. Redirecting",
    )
    assert outbound_body(redirect) == b""


def test_outbound_body_kept_for_3xx_without_location() -> None:
    response = CanonicalResponse(status=304, headers=[], body=b"")
    assert response.is_redirect is False
    assert outbound_body(CanonicalResponse(status=200, body=b"ok")) == b"ok"
