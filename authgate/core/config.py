"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items.

    Examples:
        >>> parse_csv("http://a.test, http://b.test")
        ['http://a.test', 'http://b.test']
        >>> parse_csv(None)
        []
    """
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _build_rate_limit_settings() -> "RateLimitSettings":
    """Build rate limit settings from environment.

    BaseSettings populates values from environment variables, but static type
    checkers treat fields as constructor arguments.
    """

    return RateLimitSettings()  # type: ignore[call-arg]


def _build_auth_settings() -> "AuthSettings":
    """Build auth forwarding settings from environment."""

    return AuthSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()  # type: ignore[call-arg]


class RateLimitSettings(BaseSettings):
    """Fixed-window rate limiting for the API surface.

    Variable names are RATE_LIMIT_WINDOW_MS and RATE_LIMIT_MAX_REQUESTS so
    existing .env files keep working.
    """

    enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on the API prefix",
    )
    window_ms: int = Field(
        900_000,
        description="Rate limit window length in milliseconds (15 minutes)",
        ge=1,
    )
    max_requests: int = Field(
        1000,
        description="Maximum requests allowed per window per client key",
        ge=1,
    )
    path_prefix: str = Field(
        "/api/",
        description="Only requests whose path starts with this prefix are limited",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers on rejected responses",
    )
    max_entries: int = Field(
        100_000,
        description="Hard cap on tracked client keys; least recently used are evicted",
        ge=1,
    )
    sweep_interval_ms: int = Field(
        60_000,
        description="Minimum interval between sweeps of expired entries",
        ge=0,
    )
    idle_grace_ms: int = Field(
        0,
        description="How long an expired entry is kept before the sweep drops it",
        ge=0,
    )
    trusted_proxies: str | None = Field(
        None,
        description=(
            "Comma-separated peer addresses allowed to supply forwarded client "
            "IP headers. Empty means forwarded headers are always trusted."
        ),
    )
    client_ip_header: str = Field(
        "cf-connecting-ip",
        description="Header set by the trusted edge proxy with the client IP",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class AuthSettings(BaseSettings):
    """External authentication handler and origin resolution."""

    handler: str = Field(
        "http",
        description="External auth handler implementation (http)",
    )
    upstream_url: str | None = Field(
        None,
        description="Base URL of the upstream auth service (required for http)",
    )
    timeout_seconds: float = Field(
        30.0,
        description="Timeout for calls to the upstream auth service",
    )
    default_host: str = Field(
        "localhost:3005",
        description="Externally visible host used when no request header names one",
    )
    trusted_origins: str = Field(
        "http://localhost:3000",
        description="Comma-separated origins allowed by CORS (credentials enabled)",
    )
    max_body_bytes: int = Field(
        10 * 1024 * 1024,
        description="Largest request body forwarded to the auth handler; larger ones get 413",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size; 0 disables rotation",
    )
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    auth: AuthSettings = Field(default_factory=_build_auth_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
