"""Canonical request/response shapes and the per-runtime adapter interface.

The external auth handler only understands canonical requests. Each hosting
runtime gets one ``RequestAdapter`` that converts its native request into a
``CanonicalRequest`` and writes a ``CanonicalResponse`` back into its native
response sink.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Generic, TypeVar

RequestT = TypeVar("RequestT")
SinkT = TypeVar("SinkT")

Header = tuple[str, str]


def _get_all(headers: list[Header], name: str) -> list[str]:
    name = name.lower()
    return [value for key, value in headers if key.lower() == name]


@dataclass
class CanonicalRequest:
    """Runtime-independent request passed to the external auth handler.

    Attributes:
        method: Upper-case HTTP method.
        url: Full externally visible URL (scheme, host, path and query).
        headers: Ordered (name, value) pairs with lower-case names.
        body: Wire-form body, or None for bodyless methods.
    """

    method: str
    url: str
    headers: list[Header] = field(default_factory=list)
    body: bytes | None = None

    def get(self, name: str, default: str | None = None) -> str | None:
        values = _get_all(self.headers, name)
        return values[0] if values else default

    def get_all(self, name: str) -> list[str]:
        return _get_all(self.headers, name)


@dataclass
class CanonicalResponse:
    """Runtime-independent response returned by the external auth handler.

    Headers form a multi-map: a name may repeat, which is how several
    ``Set-Cookie`` values are carried without being comma-joined.
    """

    status: int
    headers: list[Header] = field(default_factory=list)
    body: bytes = b""

    def get(self, name: str, default: str | None = None) -> str | None:
        values = _get_all(self.headers, name)
        return values[0] if values else default

    def get_all(self, name: str) -> list[str]:
        return _get_all(self.headers, name)

    @property
    def location(self) -> str | None:
        return self.get("location")

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400 and bool(self.location)


class RequestAdapter(ABC, Generic[RequestT, SinkT]):
    """Interface implemented once per hosting runtime."""

    @abstractmethod
    async def normalize(self, request: RequestT) -> CanonicalRequest:
        """Build the canonical request for a native runtime request.

        Raises:
            AdapterTranslationError: If the request cannot be translated.
        """
        raise NotImplementedError

    @abstractmethod
    def denormalize(self, response: CanonicalResponse, sink: SinkT) -> SinkT:
        """Write ``response`` into the runtime's native response sink.

        Returns:
            The populated sink.
        """
        raise NotImplementedError
