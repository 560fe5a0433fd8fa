"""Factory pattern for creating the external auth handler."""

from authgate.adapters.auth.base import AbstractAuthHandler
from authgate.adapters.auth.http_client import HttpAuthHandler
from authgate.core.config import AuthSettings, settings
from authgate.core.errors import ValidationAppError


def create_auth_handler(auth_settings: AuthSettings | None = None) -> AbstractAuthHandler:
    """Instantiate the auth handler selected by ``AUTH_HANDLER``.

    Args:
        auth_settings: Optional settings; defaults to the global settings.

    Returns:
        AbstractAuthHandler: Configured handler instance.

    Raises:
        ValidationAppError: If the handler is unknown or misconfigured.
    """
    cfg = auth_settings or settings.auth
    handler = cfg.handler.lower()

    if handler == "http":
        if not cfg.upstream_url:
            raise ValidationAppError(
                code="auth_missing_upstream_url",
                message="The http auth handler requires AUTH_UPSTREAM_URL",
            )
        return HttpAuthHandler(
            upstream_url=cfg.upstream_url,
            timeout_seconds=cfg.timeout_seconds,
        )

    raise ValidationAppError(
        code="auth_unknown_handler",
        message=f"Unknown auth handler: '{handler}'. Supported handlers: http",
    )
