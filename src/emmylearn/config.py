"""Centralised application configuration using pydantic-settings.

All environment variables are read through the Settings class.
Consumers call ``get_settings()`` to obtain a cached, validated instance.
Tests construct ``Settings(_env_file=None, ...)`` directly for isolation.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# src/emmylearn/config.py  ->  parent x3  ->  project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


# ---------------------------------------------------------------------------
# Sub-models (one per configuration domain)
# ---------------------------------------------------------------------------
class DeployConfig(BaseModel):
    """Where the app is served, used to build OAuth callback addresses."""

    dev_port: int = Field(default=5173, ge=1, le=65535)
    production_host: str = "mlaniak.github.io"
    base_path: str = "emmys-learning-app"

    @field_validator("production_host")
    @classmethod
    def host_is_bare(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "DEPLOY__PRODUCTION_HOST must not be empty"
            raise ValueError(msg)
        if "://" in value or "/" in value:
            msg = (
                "DEPLOY__PRODUCTION_HOST must be a bare hostname "
                f"(no scheme or path), got {value!r}"
            )
            raise ValueError(msg)
        return value

    @field_validator("base_path")
    @classmethod
    def strip_slashes(cls, value: str) -> str:
        return value.strip().strip("/")


class RetryConfig(BaseModel):
    """Backoff settings for transient sign-in failures."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay_ms: int = Field(default=1000, ge=0)


class FlowConfig(BaseModel):
    """Sign-in flow timing."""

    callback_timeout_ms: int = Field(default=30_000, gt=0)


class AppConfig(BaseModel):
    """Application runtime configuration."""

    log_dir: Path = Path("logs")


class DevConfig(BaseModel):
    """Development and testing toggles."""

    auth_mock: bool = False
    mock_hostname: str = "localhost"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------
class Settings(BaseSettings):
    """Application settings with automatic .env loading and type validation.

    Environment variables use double-underscore delimiter for nesting:
    ``DEPLOY__PRODUCTION_HOST``, ``RETRY__MAX_ATTEMPTS``,
    ``FLOW__CALLBACK_TIMEOUT_MS``, ``DEV__AUTH_MOCK``, etc.
    """

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    deploy: DeployConfig = DeployConfig()
    retry: RetryConfig = RetryConfig()
    flow: FlowConfig = FlowConfig()
    app: AppConfig = AppConfig()
    dev: DevConfig = DevConfig()


# ---------------------------------------------------------------------------
# Singleton access
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    settings = Settings()

    env_file = settings.model_config.get("env_file")
    if env_file is not None and Path(str(env_file)).is_file():
        logger.info("Settings loaded .env from: %s", env_file)
    else:
        logger.info("Settings: no .env file found, using env vars and defaults")

    return settings
