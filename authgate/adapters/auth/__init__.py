"""External authentication handler adapters."""

from authgate.adapters.auth.base import AbstractAuthHandler
from authgate.adapters.auth.factory import create_auth_handler
from authgate.adapters.auth.http_client import HttpAuthHandler

__all__ = [
    "AbstractAuthHandler",
    "HttpAuthHandler",
    "create_auth_handler",
]
