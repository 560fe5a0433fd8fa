from __future__ import annotations

"""Application factory for the FastAPI app.

Builds the app together with the objects whose lifetime is the app's: the
rate limiter, the request adapter and the auth proxy. Tests build isolated
apps with their own settings, clock and auth handler.
"""

from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authgate.adapters.auth.base import AbstractAuthHandler
from authgate.adapters.auth.factory import create_auth_handler
from authgate.adapters.http.starlette_adapter import StarletteRequestAdapter
from authgate.api.routes import auth_router, health_router
from authgate.core.config import Settings, parse_csv, settings
from authgate.core.exception_handlers import setup_exception_handlers
from authgate.core.logging import configure_logging
from authgate.core.middleware import request_id_middleware, security_headers_middleware
from authgate.core.rate_limit import build_rate_limiter, rate_limit_middleware
from authgate.services.auth_proxy import AuthProxy


def create_app(
    app_settings: Settings | None = None,
    *,
    auth_handler: AbstractAuthHandler | None = None,
    clock: Callable[[], float] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the global settings.
        auth_handler: External auth handler; built from settings if omitted.
        clock: Time source for the rate limiter in epoch milliseconds.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    handler = auth_handler or create_auth_handler(cfg.auth)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await handler.aclose()

    app = FastAPI(
        title="authgate",
        description=(
            "Rate-limited gateway in front of an external authentication "
            "handler. Routes under /api/auth are forwarded with the public "
            "origin applied; cookies and redirects are passed back unchanged."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.rate_limit_settings = cfg.rate_limit
    app.state.rate_limiter = build_rate_limiter(cfg.rate_limit, clock=clock)
    app.state.request_adapter = StarletteRequestAdapter(
        default_host=cfg.auth.default_host,
        max_body_bytes=cfg.auth.max_body_bytes,
    )
    app.state.auth_proxy = AuthProxy(handler)

    # Middleware: the last registered runs first, so the request id wraps
    # the limiter and security headers wrap both. CORS wraps everything
    # (preflights are never limited).
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(security_headers_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_csv(cfg.auth.trusted_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(health_router)

    return app
