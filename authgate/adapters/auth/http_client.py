"""Auth handler that forwards canonical requests to an upstream service."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit, urlunsplit

import httpx

from authgate.adapters.auth.base import AbstractAuthHandler
from authgate.adapters.http.base import CanonicalRequest, CanonicalResponse
from authgate.core.errors import AuthHandlerError, ValidationAppError

logger = logging.getLogger(__name__)


class HttpAuthHandler(AbstractAuthHandler):
    """Client for an auth service reachable over HTTP (e.g. a Better Auth server).

    The canonical request keeps the externally visible ``Host`` and forwarded
    headers, so the upstream builds callback URLs and cookies for the public
    origin even though the connection goes to ``upstream_url``. Redirects are
    returned as-is instead of being followed.
    """

    def __init__(
        self,
        upstream_url: str,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the upstream client.

        Args:
            upstream_url: Base URL of the auth service; a path prefix is kept.
            timeout_seconds: Timeout for each upstream call in seconds.
            client: Optional preconfigured client (tests inject transports).
        """
        parts = urlsplit(upstream_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValidationAppError(
                code="auth_invalid_upstream_url",
                message=f"Upstream URL must be an absolute http(s) URL: '{upstream_url}'",
            )
        self._upstream = parts
        self._client = client or httpx.AsyncClient(
            timeout=timeout_seconds,
            follow_redirects=False,
        )

    def upstream_url_for(self, url: str) -> str:
        """Map a public URL onto the upstream, keeping path and query."""

        public = urlsplit(url)
        path = self._upstream.path.rstrip("/") + (public.path or "/")
        return urlunsplit((self._upstream.scheme, self._upstream.netloc, path, public.query, ""))

    async def handle(self, request: CanonicalRequest) -> CanonicalResponse:
        target = self.upstream_url_for(request.url)
        try:
            response = await self._client.request(
                request.method,
                target,
                headers=request.headers,
                content=request.body,
                follow_redirects=False,
            )
        except httpx.HTTPError as exc:
            logger.error(
                "auth_upstream.unavailable",
                extra={
                    "error_type": type(exc).__name__,
                    "method": request.method,
                    "upstream_host": self._upstream.netloc,
                },
            )
            raise AuthHandlerError(
                code="auth_upstream_unavailable",
                message="Auth service did not respond",
                details={"handler": "http"},
            ) from exc

        # multi_items() keeps repeated Set-Cookie headers apart
        return CanonicalResponse(
            status=response.status_code,
            headers=list(response.headers.multi_items()),
            body=response.content,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
