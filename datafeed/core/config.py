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
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class ApiSettings(BaseSettings):
    """Remote endpoint and response cache configuration."""

    endpoint: str = Field(
        "https://miusage.com/v1/challenge/1/",
        description="URL of the remote JSON resource",
    )
    timeout_seconds: float = Field(
        30.0,
        description="Timeout for data fetches in seconds",
        gt=0,
    )
    check_timeout_seconds: float = Field(
        10.0,
        description="Timeout for connectivity checks in seconds",
        gt=0,
    )
    cache_key: str = Field(
        "datafeed_api_data",
        description="Store key holding the transformed payload",
        min_length=1,
    )
    cache_ttl_seconds: int = Field(
        3600,
        description="How long a fetched payload stays fresh",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="API_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """TTL key-value store backend selection."""

    backend: str = Field(
        "sqlite",
        description="Store backend: 'sqlite' (shared across processes) or 'memory'",
    )
    sqlite_path: str = Field(
        ".datafeed-store.db",
        description="Database file used by the sqlite backend",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether privileged routes require an API key",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for privileged routes",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable rate limiting per client IP on data routes",
    )
    rate_limit_requests: int = Field(
        60,
        description="Maximum number of requests allowed per window (per client IP)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        3600,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    security_headers_enabled: bool = Field(
        True,
        description="Add X-Frame-Options, X-Content-Type-Options and Referrer-Policy headers",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file past this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Raises validation errors on startup if any setting is malformed.
    """

    app_env: str = APP_ENV
    api: ApiSettings = Field(default_factory=ApiSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
