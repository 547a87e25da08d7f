"""
Per-content-type feed settings.

One logical record exists per content type. Remote records are merged
over the built-in defaults field by field; the core only ever writes
back the cleanup statistics.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from curator.ingestion.schemas import ContentType, parse_datetime

DEFAULT_MODERATION_KEYWORDS: tuple[str, ...] = (
    "spam",
    "fake",
    "clickbait",
    "scam",
    "adult",
    "explicit",
)


class RetentionMode(str, Enum):
    """How the retention manager picks deletion candidates."""

    COUNT_ONLY = "count_only"
    AGE_ONLY = "age_only"
    BOTH_COUNT_AND_AGE = "both_count_and_age"


class CleanupStats(BaseModel):
    """Cumulative retention statistics stored on the settings record."""

    total_deleted: int = Field(default=0, ge=0)
    last_deleted_count: int = Field(default=0, ge=0)
    last_cleanup_date: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def accept_camel_case(cls, data: Any) -> Any:
        if isinstance(data, dict):
            renames = {
                "totalDeleted": "total_deleted",
                "lastDeletedCount": "last_deleted_count",
                "lastCleanupDate": "last_cleanup_date",
            }
            return {renames.get(k, k): v for k, v in data.items()}
        return data

    @field_validator("last_cleanup_date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> datetime | None:
        return parse_datetime(v)

    def after_run(self, deleted: int, at: datetime) -> "CleanupStats":
        """Return the stats as they stand after a run that deleted ``deleted`` items."""
        return CleanupStats(
            total_deleted=self.total_deleted + deleted,
            last_deleted_count=deleted,
            last_cleanup_date=at,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "total_deleted": self.total_deleted,
            "last_deleted_count": self.last_deleted_count,
            "last_cleanup_date": (
                self.last_cleanup_date.isoformat() if self.last_cleanup_date else None
            ),
        }


class FeedSettings(BaseModel):
    """Settings governing fetch, moderation and retention for one content type."""

    content_type: ContentType
    record_id: str | None = None

    fetch_interval_minutes: int = Field(default=30, ge=1)
    max_items_per_fetch: int = Field(default=20, ge=1)
    max_content_length: int = Field(default=500, ge=1)
    max_item_limit: int = Field(default=21, ge=1)
    max_item_age_hours: int = Field(default=24, ge=1)
    retention_mode: RetentionMode = RetentionMode.BOTH_COUNT_AND_AGE
    cleanup_frequency_minutes: int = Field(default=60, ge=1)

    auto_moderation_enabled: bool = True
    moderation_keywords: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MODERATION_KEYWORDS)
    )

    preserve_pinned: bool = True
    preserve_breaking: bool = True
    cron_job_enabled: bool = True

    cleanup_stats: CleanupStats = Field(default_factory=CleanupStats)
    last_cleanup_run: datetime | None = None

    @field_validator("moderation_keywords", mode="before")
    @classmethod
    def split_keywords(cls, v: Any) -> Any:
        """Accept comma-separated strings as well as lists; drop blanks."""
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, (list, tuple)):
            return [str(k).strip().lower() for k in v if str(k).strip()]
        return v

    @field_validator("last_cleanup_run", mode="before")
    @classmethod
    def parse_run(cls, v: Any) -> datetime | None:
        return parse_datetime(v)


# Built-in defaults per content type. Fields not listed use the model defaults.
_DEFAULT_OVERRIDES: dict[ContentType, dict[str, Any]] = {
    ContentType.NEWS: {},
    ContentType.VIDEO: {
        "max_items_per_fetch": 2,
        "max_item_limit": 50,
        "max_item_age_hours": 720,
        "retention_mode": RetentionMode.COUNT_ONLY,
    },
}

# Alternate spellings used by CMS records
FIELD_ALIASES: dict[str, str] = {
    "fetchIntervalMinutes": "fetch_interval_minutes",
    "maxArticlesPerFetch": "max_items_per_fetch",
    "max_articles_per_fetch": "max_items_per_fetch",
    "maxContentLength": "max_content_length",
    "maxArticleLimit": "max_item_limit",
    "max_article_limit": "max_item_limit",
    "maxArticleAgeHours": "max_item_age_hours",
    "max_article_age_hours": "max_item_age_hours",
    "cleanupMode": "retention_mode",
    "cleanup_mode": "retention_mode",
    "cleanupFrequencyMinutes": "cleanup_frequency_minutes",
    "enableAutoModeration": "auto_moderation_enabled",
    "moderationKeywords": "moderation_keywords",
    "preservePinnedArticles": "preserve_pinned",
    "preserveBreakingNews": "preserve_breaking",
    "cronJobEnabled": "cron_job_enabled",
    "cleanupStats": "cleanup_stats",
    "lastCleanupRun": "last_cleanup_run",
}

# Fields a remote record may not override
_PROTECTED = {"content_type", "record_id"}


def default_settings(content_type: ContentType) -> FeedSettings:
    """Built-in settings for a content type."""
    return FeedSettings(content_type=content_type, **_DEFAULT_OVERRIDES[content_type])


def merge_settings(content_type: ContentType, remote: dict[str, Any]) -> FeedSettings:
    """
    Merge a remote settings record over the built-in defaults.

    Each remote field is validated on its own: present and valid fields
    win, invalid fields keep the default, unknown fields are ignored.
    """
    merged = default_settings(content_type).model_dump()
    known = set(FeedSettings.model_fields) - _PROTECTED

    for key, value in remote.items():
        name = FIELD_ALIASES.get(key, key)
        if name not in known or value is None:
            continue
        candidate = {**merged, name: value}
        try:
            validated = FeedSettings.model_validate(candidate)
        except ValidationError:
            continue
        merged[name] = getattr(validated, name)

    if remote.get("id") is not None:
        merged["record_id"] = str(remote["id"])
    return FeedSettings.model_validate(merged)
