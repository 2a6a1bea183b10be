"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Execution environment: "dev" | "staging" | "prod"
ENV = os.getenv("SETLISTS_ENV", "dev").lower()

# Legacy key, only tolerated in dev
DEV_API_KEY = os.getenv("DEV_API_KEY") or os.getenv("API_KEY") or "dev-secret-key"
DEV_API_KEY_ALLOWED = ENV in {"dev", "local", "dev_local", "test"}

API_SCOPES = {"reader", "operator", "admin"}


class Settings(BaseSettings):
    """Environment configuration for the setlists backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///setlists.db"
    SECRET_KEY: str = "change-me"
    DEV_API_KEY: str | None = Field(
        default=DEV_API_KEY,
        validation_alias=AliasChoices("DEV_API_KEY", "API_KEY"),
    )
    CORS_ALLOW_ORIGINS: list[str] = ["http://localhost:3000"]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = True
    ALLOW_DB_CREATE_ALL: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Scheduler -------------------------------------------------------
    SCHEDULER_ENABLED: bool = False
    ORCHESTRATOR_TICK_SECONDS: int = 300
    TASK_DRAIN_SECONDS: int = 5
    TASK_DRAIN_BATCH_SIZE: int = 20
    TASK_VISIBILITY_TIMEOUT_SECONDS: int = 600
    RUN_HISTORY_RETENTION_DAYS: int = 14

    # --- External catalogs ----------------------------------------------
    TICKETMASTER_API_KEY: str | None = None
    TICKETMASTER_BASE_URL: str = "https://app.ticketmaster.com/discovery/v2"
    SPOTIFY_CLIENT_ID: str | None = None
    SPOTIFY_CLIENT_SECRET: str | None = None
    SPOTIFY_API_BASE_URL: str = "https://api.spotify.com/v1"
    SPOTIFY_TOKEN_URL: str = "https://accounts.spotify.com/api/token"
    SETLISTFM_API_KEY: str | None = None
    SETLISTFM_BASE_URL: str = "https://api.setlist.fm/rest/1.0"
    HTTP_TIMEOUT_SECONDS: float = 15.0
    HTTP_MAX_ATTEMPTS: int = 3
    HTTP_BACKOFF_BASE_MS: int = 500
    HTTP_PACING_MS: int = 75

    # --- Staged sync pipeline -------------------------------------------
    ARTIST_PHASE_DELAYS_MS: list[int] = [0, 15_000, 45_000, 90_000]
    SYNC_MAX_RETRIES: int = 3
    SYNC_RETRY_DELAY_MS: int = 60_000
    LINEUP_MIN_SOURCE_RESULTS: int = 10
    LINEUP_BATCH_SIZE: int = 10
    LINEUP_CONTINUATION_DELAY_MS: int = 1_500
    TRENDING_IMPORT_LIMIT: int = 10
    ENRICHMENT_BATCH_SIZE: int = 20
    SETLIST_IMPORT_BATCH_SIZE: int = 5

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8"
    )

    @field_validator("ARTIST_PHASE_DELAYS_MS")
    @classmethod
    def _phase_delays_increasing(cls, value: list[int]) -> list[int]:
        """Phase delays must be strictly increasing so phases spread API load."""

        if len(value) != 4:
            raise ValueError("ARTIST_PHASE_DELAYS_MS needs exactly four delays")
        if any(later <= earlier for earlier, later in zip(value, value[1:])):
            raise ValueError("ARTIST_PHASE_DELAYS_MS must be strictly increasing")
        return value

    @field_validator("TICKETMASTER_API_KEY", "SETLISTFM_API_KEY", "SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET")
    @classmethod
    def _strip_empty_secret(cls, value: str | None) -> str | None:
        """Normalise empty credentials to ``None`` so clients report them missing."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None


class AppInfo(BaseModel):
    name: str = "setlists-backend"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ENV",
    "DEV_API_KEY",
    "DEV_API_KEY_ALLOWED",
    "API_SCOPES",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
