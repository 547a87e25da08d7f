"""Configuration for the ingestion schedulers.

Interval policy and housekeeping cadence. Process-wide limits (sources
per cycle, item concurrency, timezone) live in the main Settings. All
fields can be overridden via ``SCHEDULER_*`` environment variables.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerConfig(BaseSettings):
    """Configuration for scheduler timing."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        case_sensitive=False,
        extra="ignore",
    )

    # Video adaptive interval
    daytime_start_hour: int = Field(default=6, ge=0, le=23)
    daytime_end_hour: int = Field(
        default=23,
        ge=0,
        le=23,
        description="Last hour (inclusive) of the daytime window",
    )
    daytime_delay_minutes: float = Field(default=30.0, gt=0.0)
    night_delay_minutes: float = Field(default=120.0, gt=0.0)
    trending_min_minutes: float = Field(default=5.0, gt=0.0)
    trending_max_minutes: float = Field(default=10.0, gt=0.0)

    # Bounds
    source_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Upper bound on fetching one source, retries included",
    )
    error_history: int = Field(default=50, ge=1, le=1000)

    # Housekeeping
    retention_check_minutes: float = Field(
        default=15.0,
        gt=0.0,
        description="How often the news retention sweep checks whether it is due",
    )
    purge_interval_hours: float = Field(default=24.0, gt=0.0)
    run_on_start: bool = True

    @model_validator(mode="after")
    def check_ranges(self) -> "SchedulerConfig":
        if self.trending_max_minutes < self.trending_min_minutes:
            raise ValueError("trending_max_minutes must be >= trending_min_minutes")
        return self
