"""Runtime adapters translating native requests into canonical ones."""

from authgate.adapters.http.base import CanonicalRequest, CanonicalResponse, RequestAdapter
from authgate.adapters.http.proxy_event import ProxyEventAdapter, ProxyEventResponse
from authgate.adapters.http.starlette_adapter import StarletteRequestAdapter

__all__ = [
    "CanonicalRequest",
    "CanonicalResponse",
    "ProxyEventAdapter",
    "ProxyEventResponse",
    "RequestAdapter",
    "StarletteRequestAdapter",
]
