"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


IdentityMode = Literal["cookie", "ip", "both"]


class UsageSettings(BaseSettings):
    """Daily generation quota configuration.

    Consumed by the usage ledger at startup: quota, identity mode and the
    location of the persisted counter table.
    """

    enabled: bool = Field(
        True,
        description="Enforce the per-visitor daily generation quota",
    )
    store_path: Path = Field(
        PROJECT_ROOT / "storage" / "usage.json",
        description="JSON file holding the per-identity daily counters",
    )
    daily_limit: int = Field(
        3,
        description="Maximum successful generations per identity per day",
        ge=1,
    )
    identity_mode: IdentityMode = Field(
        "both",
        description="Which identities are charged: cookie, ip or both",
    )
    timezone: str = Field(
        "Asia/Ho_Chi_Minh",
        description="Reference timezone for the daily quota reset",
    )
    cookie_name: str = Field(
        "tv_user",
        description="Name of the long-lived visitor identity cookie",
    )
    cookie_max_age_days: int = Field(
        30,
        description="Lifetime of the visitor identity cookie in days",
        ge=1,
    )
    cookie_secure: bool = Field(
        False,
        description="Set the Secure flag on the visitor identity cookie",
    )
    real_ip_header: str = Field(
        "x-real-ip",
        description="Single trusted header carrying the client address",
    )
    forwarded_for_header: str = Field(
        "x-forwarded-for",
        description="Proxy chain header carrying candidate client addresses",
    )

    model_config = SettingsConfigDict(
        env_prefix="USAGE_",
        case_sensitive=False,
    )


class RelaySettings(BaseSettings):
    """Remote image-generation webhook configuration."""

    webhook_url: str = Field(
        "https://continew-ai.app.n8n.cloud/webhook/thu-tham-online",
        description="Webhook receiving the room/rug image URLs and prompt",
    )
    public_base_url: str = Field(
        "http://localhost:8000",
        description="Public base URL under which /temp uploads are reachable",
    )
    timeout_seconds: float = Field(
        600.0,
        description="Webhook request timeout in seconds",
    )
    default_prompt: str | None = Field(
        None,
        description="Prompt override used when the client sends none",
    )

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    storage_dir: Path = Field(
        PROJECT_ROOT / "storage",
        description="Directory holding catalog CSV files and options.json",
    )
    temp_dir: Path = Field(
        PROJECT_ROOT / "storage" / "temp",
        description="Directory for uploaded images awaiting generation",
    )
    images_dir: Path = Field(
        PROJECT_ROOT / "images",
        description="Directory with catalog room and rug images",
    )
    public_dir: Path = Field(
        PROJECT_ROOT / "public",
        description="Directory with the static wizard frontend",
    )
    max_room_upload_mb: int = Field(
        10,
        description="Maximum room image size in megabytes",
    )
    max_rug_upload_mb: int = Field(
        5,
        description="Maximum rug image size in megabytes",
    )
    temp_max_age_seconds: int = Field(
        3600,
        description="Age after which leftover temp uploads are deleted",
        ge=1,
    )
    temp_cleanup_interval_seconds: int = Field(
        3600,
        description="Interval between periodic temp directory sweeps",
        ge=1,
    )
    cors_allow_origins: str = Field(
        "*",
        description="Comma-separated list of allowed CORS origins",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class AdminSettings(BaseSettings):
    """Admin login configuration."""

    username: str = Field(
        "",
        description="Admin username (login disabled when empty)",
    )
    password: str = Field(
        "",
        description="Admin password, also the token signing secret",
    )
    cookie_name: str = Field(
        "tv_admin",
        description="Name of the admin session cookie",
    )
    token_max_age_seconds: int = Field(
        7 * 24 * 60 * 60,
        description="Admin token lifetime in seconds",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="ADMIN_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log output format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate log file at this size (0 disables)")
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field("X-Request-ID", description="Request correlation header")

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
    app: AppSettings = Field(default_factory=AppSettings)
    usage: UsageSettings = Field(default_factory=UsageSettings)
    relay: RelaySettings = Field(default_factory=RelaySettings)
    admin: AdminSettings = Field(default_factory=AdminSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
