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


def parse_roles(roles_string: str | None) -> set[str]:
    """Parse comma-separated role identifiers into a set.

    Examples:
        >>> sorted(parse_roles("ROLE_ADMIN, ROLE_DEV "))
        ['ROLE_ADMIN', 'ROLE_DEV']
        >>> parse_roles(None)
        set()
    """
    if not roles_string:
        return set()

    return {role.strip() for role in roles_string.split(",") if role.strip()}


def _build_hippo_settings() -> "HippoSettings":
    """Build hippo settings from environment.

    BaseSettings populates required fields from the environment, which static
    type checkers don't understand, hence the type ignore.
    """

    return HippoSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class HippoSettings(BaseSettings):
    """Request monitoring and Slack notification configuration."""

    cache_dir: Path = Field(
        PROJECT_ROOT / "var" / "cache",
        description="Directory holding the shared rate limit record (hippo-metadata.txt)",
    )
    error_roles: str | None = Field(
        None,
        description="Comma-separated roles whose unhandled errors trigger a Slack notification",
    )
    logs_dir: Path = Field(
        PROJECT_ROOT / "var" / "log",
        description="Directory for daily performance-YYYY-MM-DD.log files",
    )
    performance_logging_threshold: float | None = Field(
        None,
        description="Log and notify when megabytes * seconds reaches this value (null: always)",
    )
    project_dir: Path = Field(
        PROJECT_ROOT,
        description="Root path stripped from file paths in error messages",
    )
    slack_webhook_url: str | None = Field(
        None,
        description="Slack incoming webhook URL (null disables delivery)",
    )
    slack_rate_limit: int | None = Field(
        None,
        description="Maximum notifications per hour; half of it (rounded up) per five minutes",
        ge=1,
    )
    slack_timeout_seconds: float = Field(
        5.0,
        description="Timeout for a single webhook call in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="HIPPO_",
        case_sensitive=False,
    )

    @property
    def error_role_set(self) -> set[str]:
        return parse_roles(self.error_roles)

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.slack_webhook_url) and self.slack_rate_limit is not None


class LogSettings(BaseSettings):
    """Application log output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
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
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    hippo: HippoSettings = Field(default_factory=_build_hippo_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
