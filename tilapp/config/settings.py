"""
Application configuration via Pydantic Settings.

All values are sourced from environment variables or an .env file.
No defaults expose insecure behaviour in production.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import (
    BeforeValidator,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment identifiers."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(StrEnum):
    """Structured log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _parse_cors_origins(value: str | list[str]) -> list[str]:
    """Accept comma-separated string or list for CORS origins."""
    if isinstance(value, list):
        return value
    return [origin.strip() for origin in value.split(",") if origin.strip()]


class Settings(BaseSettings):
    """
    Centralised, type-validated application configuration.

    Reads from environment variables with an optional .env file.
    All secrets are Pydantic SecretStr to prevent accidental logging.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",
    )

    # ── Application ────────────────────────────────────────────────────── #
    app_name: str = Field(default="TIL", description="Human-readable application name")
    app_version: str = Field(default="1.0.0", description="Semantic version string")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development|testing|production)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode. Must be False in production.",
    )

    # ── Server ─────────────────────────────────────────────────────────── #
    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=8080, ge=1024, le=65535, description="Bind port")
    public_base_url: str = Field(
        default="http://localhost:8080",
        description="Externally visible base URL, used in password reset links",
    )

    # ── CORS ───────────────────────────────────────────────────────────── #
    cors_origins: Annotated[list[str], BeforeValidator(_parse_cors_origins)] = Field(
        default=["http://localhost:8080"],
        description="Comma-separated list of allowed CORS origins",
    )

    # ── Database ───────────────────────────────────────────────────────── #
    database_url: str = Field(
        default="sqlite+aiosqlite:///./til.db",
        description=(
            "Async SQLAlchemy connection string. "
            "Use sqlite+aiosqlite:// for local or postgresql+asyncpg:// for production."
        ),
    )
    db_pool_size: int = Field(default=5, ge=1, le=50, description="Connection pool size")
    db_max_overflow: int = Field(default=10, ge=0, le=100, description="Pool max overflow")
    db_echo: bool = Field(default=False, description="Log all SQL statements (debug only)")
    run_migrations_on_startup: bool = Field(
        default=True,
        description="Apply Alembic migrations when the application starts",
    )

    # ── Auth ───────────────────────────────────────────────────────────── #
    token_expire_minutes: int = Field(
        default=0,
        ge=0,
        description="Bearer token TTL in minutes. 0 disables expiry.",
    )
    reset_token_expire_minutes: int = Field(
        default=60,
        ge=0,
        le=10080,
        description="Password reset token TTL in minutes. 0 disables expiry.",
    )
    session_cookie_name: str = Field(default="til_session", description="Session cookie name")
    session_max_age_days: int = Field(
        default=14,
        ge=1,
        le=365,
        description="Browser session cookie lifetime in days",
    )

    # ── OAuth ──────────────────────────────────────────────────────────── #
    google_client_id: str | None = Field(default=None, description="Google OAuth client id")
    google_client_secret: SecretStr | None = Field(default=None)
    google_callback_url: str = Field(
        default="http://localhost:8080/oauth/google",
        description="Redirect URI registered with Google",
    )
    github_client_id: str | None = Field(default=None, description="GitHub OAuth client id")
    github_client_secret: SecretStr | None = Field(default=None)
    github_callback_url: str = Field(
        default="http://localhost:8080/oauth/github",
        description="Redirect URI registered with GitHub",
    )
    http_timeout_seconds: int = Field(
        default=10,
        ge=1,
        le=120,
        description="Timeout for outbound calls to OAuth and email providers",
    )

    # ── Email ──────────────────────────────────────────────────────────── #
    sendgrid_api_key: SecretStr | None = Field(
        default=None,
        description="SendGrid API key. Password reset emails are not sent without it.",
    )
    email_from_address: str = Field(default="noreply@localhost", description="Sender address")
    email_from_name: str = Field(default="Vapor TIL", description="Sender display name")

    # ── File Storage ───────────────────────────────────────────────────── #
    profile_picture_dir: Path = Field(
        default=Path("./ProfilePictures"),
        description="Directory for uploaded profile pictures",
    )
    max_upload_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum profile picture size in MB",
    )

    # ── Rate Limiting ──────────────────────────────────────────────────── #
    rate_limit_default: str = Field(
        default="100/minute",
        description="Default rate limit string (slowapi format)",
    )
    rate_limit_auth: str = Field(
        default="20/minute",
        description="Rate limit for login and password reset endpoints",
    )

    # ── Logging ────────────────────────────────────────────────────────── #
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Minimum log level")
    log_json: bool = Field(default=True, description="Emit logs as JSON (False for dev console)")

    # ── Admin Bootstrap ────────────────────────────────────────────────── #
    seed_admin: bool = Field(
        default=True,
        description="Create the bootstrap admin account on startup if absent",
    )
    admin_username: str = Field(default="admin", description="Bootstrap admin username")
    admin_email: str = Field(default="admin@localhost.com", description="Bootstrap admin email")
    admin_password: SecretStr = Field(
        default=SecretStr("password"),
        description="Bootstrap admin password. Override outside development.",
    )

    # ── Validators ─────────────────────────────────────────────────────── #

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def production_safety_checks(self) -> Settings:
        if self.environment == Environment.PRODUCTION:
            if self.debug:
                raise ValueError("debug must be False in production")
            if self.db_echo:
                raise ValueError("db_echo must be False in production")
            if self.seed_admin and self.admin_password.get_secret_value() == "password":
                raise ValueError("admin_password must be changed before seeding in production")
        return self

    @model_validator(mode="after")
    def ensure_directories_exist(self) -> Settings:
        """Create storage directories if they do not exist."""
        self.profile_picture_dir.mkdir(parents=True, exist_ok=True)
        return self

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the cached Settings singleton.

    Use dependency injection in FastAPI routes:
        settings: Settings = Depends(get_settings)
    """
    return Settings()
