"""Per-content-type feed settings with built-in defaults."""

from curator.feed_settings.schemas import (
    CleanupStats,
    FeedSettings,
    RetentionMode,
    default_settings,
    merge_settings,
)
from curator.feed_settings.service import FeedSettingsService

__all__ = [
    "CleanupStats",
    "FeedSettings",
    "FeedSettingsService",
    "RetentionMode",
    "default_settings",
    "merge_settings",
]
