"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the curator process.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., LOG_LEVEL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    # Content store (Strapi-style REST API)
    content_store_url: str = "http://localhost:1337/api"
    content_store_token: str | None = None

    # Video search (YouTube Data API v3, comma-separated for key rotation)
    youtube_api_keys: str | None = None
    youtube_region_code: str = "TH"
    youtube_relevance_language: str = "en"

    # External call bounds
    external_timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0)
    max_http_retries: int = Field(default=2, ge=0, le=10)
    max_backoff_seconds: float = Field(default=30.0, ge=1.0, le=300.0)

    # Scheduling
    scheduler_timezone: str = "Asia/Bangkok"
    sources_per_cycle: int = Field(default=2, ge=1, le=50)
    item_concurrency: int = Field(default=4, ge=1, le=64)

    # Housekeeping
    rejected_retention_days: int = Field(default=7, ge=1)
    inactive_retention_days: int = Field(default=30, ge=1)

    # Observability
    metrics_port: int = 8000

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def video_search_configured(self) -> bool:
        """Check if a real video search API key is available."""
        return bool(self.youtube_api_keys and self.youtube_api_keys.strip())


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
