"""Tests for the proxy-event runtime adapter."""

from __future__ import annotations

import asyncio
import base64

import pytest

from authgate.adapters.http.base import CanonicalResponse
from authgate.adapters.http.proxy_event import ProxyEventAdapter, ProxyEventResponse
from authgate.core.errors import AdapterTranslationError, RequestTooLargeError


@pytest.fixture
def adapter() -> ProxyEventAdapter:
    return ProxyEventAdapter(default_host="localhost:3005")


def _event(**overrides) -> dict:
    event = {
        "httpMethod": "GET",
        "path": "/api/auth/get-session",
        "headers": {"Host": "abc123.execute-api.internal"},
        "multiValueHeaders": None,
        "queryStringParameters": None,
        "body": None,
        "isBase64Encoded": False,
        "requestContext": {"identity": {"sourceIp": "203.0.113.9"}},
    }
    event.update(overrides)
    return event


class TestNormalize:
    def test_origin_host_and_https_default(self, adapter):
        event = _event(headers={"Origin": "https://app.example.com", "Host": "internal-service:8080"})

        request = asyncio.run(adapter.normalize(event))

        assert request.url == "https://app.example.com/api/auth/get-session"
        assert request.get("host") == "app.example.com"
        assert request.get("x-forwarded-proto") == "https"
        assert request.body is None

    def test_query_string_rebuilt(self, adapter):
        event = _event(
            path="/api/auth/callback/google",
            multiValueQueryStringParameters={"code": ["abc"], "state": ["s 1"]},
        )

        request = asyncio.run(adapter.normalize(event))

        assert request.url.endswith("/api/auth/callback/google?code=abc&state=s+1")

    def test_multi_value_headers_keep_first(self, adapter):
        event = _event(
            headers=None,
            multiValueHeaders={"Cookie": ["a=1", "b=2"], "Host": ["internal:8080"]},
        )

        request = asyncio.run(adapter.normalize(event))

        assert request.get_all("cookie") == ["a=1"]
        assert request.url == "https://internal:8080/api/auth/get-session"

    def test_body_reencoded_with_declared_charset(self, adapter):
        event = _event(
            httpMethod="POST",
            headers={"Content-Type": "text/plain; charset=ISO-8859-1"},
            body="café",
        )

        request = asyncio.run(adapter.normalize(event))

        assert request.body == "café".encode("iso-8859-1")
        assert request.get("content-length") == "4"

    def test_body_defaults_to_utf8(self, adapter):
        event = _event(
            httpMethod="POST",
            headers={"Content-Type": "application/json"},
            body='{"name":"zoë"}',
        )

        request = asyncio.run(adapter.normalize(event))

        assert request.body == '{"name":"zoë"}'.encode("utf-8")

    def test_base64_body_decoded(self, adapter):
        raw = b"\x00\x01binary"
        event = _event(
            httpMethod="POST",
            body=base64.b64encode(raw).decode(),
            isBase64Encoded=True,
        )

        request = asyncio.run(adapter.normalize(event))

        assert request.body == raw

    def test_get_body_is_dropped(self, adapter):
        request = asyncio.run(adapter.normalize(_event(body="ignored")))

        assert request.body is None

    @pytest.mark.parametrize(
        "overrides",
        [
            {"httpMethod": None},
            {"httpMethod": "POST", "body": "not base64!!", "isBase64Encoded": True},
            {"httpMethod": "POST", "headers": {"Content-Type": "text/plain; charset=ascii"}, "body": "café"},
            {"httpMethod": "POST", "headers": {"Content-Type": "text/plain; charset=nope"}, "body": "x"},
        ],
    )
    def test_untranslatable_events_raise(self, adapter, overrides):
        with pytest.raises(AdapterTranslationError):
            asyncio.run(adapter.normalize(_event(**overrides)))

    def test_http_api_v2_shape(self, adapter):
        event = {
            "rawPath": "/api/auth/ok",
            "rawQueryString": "a=1",
            "headers": {"x-forwarded-host": "auth.example.com", "x-forwarded-proto": "https"},
            "requestContext": {"http": {"method": "get", "sourceIp": "203.0.113.9"}},
        }

        request = asyncio.run(adapter.normalize(event))

        assert request.method == "GET"
        assert request.url == "https://auth.example.com/api/auth/ok?a=1"


class TestDenormalize:
    def test_set_cookie_stays_multi_valued(self, adapter):
        response = CanonicalResponse(
            status=200,
            headers=[
                ("content-type", "application/json"),
                ("set-cookie", "a=1; Path=/"),
                ("set-cookie", "b=2; Path=/"),
                ("content-length", "2"),
            ],
            body=b"{}",
        )

        out = adapter.denormalize(response, ProxyEventResponse()).to_event()

        assert out["statusCode"] == 200
        assert out["multiValueHeaders"]["set-cookie"] == ["a=1; Path=/", "b=2; Path=/"]
        assert "set-cookie" not in out["headers"]
        assert "content-length" not in out["headers"]
        assert out["body"] == "{}"
        assert out["isBase64Encoded"] is False

    def test_redirect_has_location_and_empty_body(self, adapter):
        response = CanonicalResponse(
            status=302,
            headers=[("location", "https://example.com/x")],
            body=b"Found",
        )

        out = adapter.denormalize(response, ProxyEventResponse()).to_event()

        assert out["statusCode"] == 302
        assert out["headers"]["location"] == "https://example.com/x"
        assert out["body"] == ""

    def test_binary_body_base64_encoded(self, adapter):
        response = CanonicalResponse(
            status=200,
            headers=[("content-type", "image/png")],
            body=b"\x89PNG",
        )

        out = adapter.denormalize(response, ProxyEventResponse()).to_event()

        assert out["isBase64Encoded"] is True
        assert base64.b64decode(out["body"]) == b"\x89PNG"

    def test_repeated_plain_header_becomes_multi_value(self):
        sink = ProxyEventResponse()
        sink.add_header("Vary", "Origin")
        sink.add_header("vary", "Cookie")

        assert sink.multi_value_headers["vary"] == ["Origin", "Cookie"]
        assert "vary" not in sink.headers


class TestPayloadV2:
    def _event(self, **overrides) -> dict:
        event = {
            "version": "2.0",
            "rawPath": "/api/auth/get-session",
            "rawQueryString": "",
            "cookies": ["better-auth.session_token=abc", "theme=dark"],
            "headers": {"host": "abc.execute-api.internal"},
            "requestContext": {"http": {"method": "GET", "sourceIp": "203.0.113.9"}},
        }
        event.update(overrides)
        return event

    def test_cookies_list_joined_into_cookie_header(self, adapter):
        request = asyncio.run(adapter.normalize(self._event()))

        assert request.get("cookie") == "better-auth.session_token=abc; theme=dark"

    def test_cookie_header_wins_over_cookies_list(self, adapter):
        event = self._event(headers={"host": "h", "cookie": "a=1"})

        request = asyncio.run(adapter.normalize(event))

        assert request.get_all("cookie") == ["a=1"]

    def test_set_cookie_returned_in_cookies_list(self, adapter):
        response = CanonicalResponse(
            status=200,
            headers=[
                ("content-type", "application/json"),
                ("set-cookie", "a=1; Path=/"),
                ("set-cookie", "b=2; Path=/"),
                ("vary", "Origin"),
                ("vary", "Cookie"),
            ],
            body=b"{}",
        )

        out = adapter.denormalize(response, ProxyEventResponse(version="2.0")).to_event()

        assert out["cookies"] == ["a=1; Path=/", "b=2; Path=/"]
        assert "multiValueHeaders" not in out
        assert "set-cookie" not in out["headers"]
        assert out["headers"]["vary"] == "Origin,Cookie"


class TestBodyLimit:
    @pytest.fixture
    def small_adapter(self) -> ProxyEventAdapter:
        return ProxyEventAdapter(default_host="localhost:3005", max_body_bytes=4)

    def test_body_over_limit_rejected(self, small_adapter):
        event = _event(httpMethod="POST", body="hello")

        with pytest.raises(RequestTooLargeError):
            asyncio.run(small_adapter.normalize(event))

    def test_declared_length_over_limit_rejected(self, small_adapter):
        event = _event(httpMethod="POST", headers={"Content-Length": "4096"}, body="hi")

        with pytest.raises(RequestTooLargeError):
            asyncio.run(small_adapter.normalize(event))

    def test_limit_counts_encoded_bytes(self, small_adapter):
        # Four characters, five bytes in UTF-8
        event = _event(httpMethod="POST", headers={"Content-Type": "text/plain"}, body="café")

        with pytest.raises(RequestTooLargeError):
            asyncio.run(small_adapter.normalize(event))
