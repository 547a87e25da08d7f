"""Retention: count and age limits on the stored corpus."""

from curator.feed_settings import RetentionMode
from curator.retention.schemas import RetentionReport
from curator.retention.service import RetentionManager, age_candidates, count_candidates, plan

__all__ = [
    "RetentionManager",
    "RetentionMode",
    "RetentionReport",
    "age_candidates",
    "count_candidates",
    "plan",
]
