"""Configuration for the config resolver."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResolverConfig(BaseSettings):
    """Settings for provider timeouts in the fallback chain."""

    model_config = SettingsConfigDict(
        env_prefix="RESOLVER_",
        case_sensitive=False,
        extra="ignore",
    )

    provider_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Upper bound on a single provider call before it is skipped",
    )
