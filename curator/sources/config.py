"""Configuration for the sources service."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourcesConfig(BaseSettings):
    """Settings for source resolution."""

    model_config = SettingsConfigDict(
        env_prefix="SOURCES_",
        case_sensitive=False,
        extra="ignore",
    )

    max_derived_channels: int = Field(
        default=3,
        ge=1,
        description="Trusted channels used to derive search topics",
    )
    seed_file: str | None = Field(
        default=None,
        description="JSON file overriding the packaged built-in and emergency lists",
    )
