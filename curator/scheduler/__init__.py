"""Per-content-type ingestion schedulers."""

from curator.scheduler.base import IngestionScheduler
from curator.scheduler.config import SchedulerConfig
from curator.scheduler.interval import adaptive_video_delay, fixed_news_delay, is_daytime
from curator.scheduler.news import NewsScheduler
from curator.scheduler.pipeline import IngestionPipeline
from curator.scheduler.state import CycleOutcome, CycleResult, SchedulerState, SchedulerStatus
from curator.scheduler.video import VideoScheduler

__all__ = [
    "CycleOutcome",
    "CycleResult",
    "IngestionPipeline",
    "IngestionScheduler",
    "NewsScheduler",
    "SchedulerConfig",
    "SchedulerState",
    "SchedulerStatus",
    "VideoScheduler",
    "adaptive_video_delay",
    "fixed_news_delay",
    "is_daytime",
]
