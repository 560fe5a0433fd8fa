"""Forward runtime requests to the external auth handler.

``AuthProxy.forward`` is the adapter boundary: translation errors and handler
failures stop here and become a generic 500, and an oversized request body
becomes a 413. Nothing is retried; retries belong to the auth handler or the
calling client.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Callable, TypeVar
from urllib.parse import urlsplit

from authgate.adapters.auth.base import AbstractAuthHandler
from authgate.adapters.http.base import CanonicalResponse, RequestAdapter
from authgate.core.config import settings
from authgate.core.errors import AppError, RequestTooLargeError
from authgate.core.logging import get_request_id

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT")
SinkT = TypeVar("SinkT")

INTERNAL_ERROR_BODY = {"error": "Internal server error"}
TOO_LARGE_BODY = {"error": "Request body too large"}

REQUEST_ID_HEADER = settings.log.request_id_header.lower()


def error_response(status: int, payload: dict[str, str]) -> CanonicalResponse:
    return CanonicalResponse(
        status=status,
        headers=[("content-type", "application/json")],
        body=json.dumps(payload).encode(),
    )


def internal_error_response() -> CanonicalResponse:
    return error_response(500, INTERNAL_ERROR_BODY)


class AuthProxy:
    """Runs one request through adapter, auth handler and back."""

    def __init__(self, handler: AbstractAuthHandler) -> None:
        self.handler = handler

    async def forward(
        self,
        adapter: RequestAdapter[RequestT, SinkT],
        request: RequestT,
        new_sink: Callable[[], SinkT],
    ) -> SinkT:
        """Translate ``request``, call the auth handler, fill a new sink.

        Args:
            adapter: Adapter for the runtime the request arrived through.
            request: Native runtime request.
            new_sink: Builds an empty native response object to populate.

        Returns:
            The populated sink; 413 for an oversized body, 500 if anything
            else failed.
        """
        start = time.perf_counter()
        try:
            canonical = await adapter.normalize(request)
            request_id = get_request_id()
            if request_id:
                # Forward the validated ID, never the raw client value
                canonical.headers = [
                    (name, value) for name, value in canonical.headers if name != REQUEST_ID_HEADER
                ]
                canonical.headers.append((REQUEST_ID_HEADER, request_id))
            public = urlsplit(canonical.url)
            logger.info(
                "auth_proxy.request",
                extra={
                    "method": canonical.method,
                    "public_host": public.netloc,
                    "path": public.path,
                },
            )
            response = await self.handler.handle(canonical)
        except RequestTooLargeError as exc:
            logger.warning(
                "auth_proxy.rejected",
                extra={"error_code": exc.code, "error_message": exc.message},
            )
            return self._render(adapter, error_response(413, TOO_LARGE_BODY), new_sink)
        except AppError as exc:
            logger.error(
                "auth_proxy.failed",
                extra={"error_code": exc.code, "error_message": exc.message},
            )
            return self._render(adapter, internal_error_response(), new_sink)
        except Exception as exc:
            logger.exception(
                "auth_proxy.failed",
                extra={"error_code": "unexpected", "error_type": type(exc).__name__},
            )
            return self._render(adapter, internal_error_response(), new_sink)

        if response.is_redirect:
            logger.info(
                "auth_proxy.redirect",
                extra={
                    "status": response.status,
                    "location_host": urlsplit(response.location or "").netloc,
                },
            )

        logger.info(
            "auth_proxy.response",
            extra={
                "status": response.status,
                "set_cookie_count": len(response.get_all("set-cookie")),
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return self._render(adapter, response, new_sink)

    def _render(
        self,
        adapter: RequestAdapter[RequestT, SinkT],
        response: CanonicalResponse,
        new_sink: Callable[[], SinkT],
    ) -> SinkT:
        try:
            return adapter.denormalize(response, new_sink())
        except Exception as exc:
            # The failed sink may be half written; start over on a fresh one
            logger.exception(
                "auth_proxy.denormalize_failed",
                extra={"status": response.status, "error_type": type(exc).__name__},
            )
            return adapter.denormalize(internal_error_response(), new_sink())
