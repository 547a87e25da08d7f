"""Video scheduler: adaptive interval, retention every cycle."""

import asyncio
import random
from datetime import datetime
from typing import Any

import structlog

from curator.feed_settings import FeedSettings
from curator.ingestion.feeds import SourceFeed, create_video_search
from curator.ingestion.schemas import ContentType
from curator.scheduler.base import IngestionScheduler
from curator.scheduler.interval import adaptive_video_delay
from curator.sources.schemas import SourceKind
from curator.storage.base import ContentStore
from curator.trending import StoreTrendingSignal, TrendingSignal

logger = structlog.get_logger(__name__)


class VideoScheduler(IngestionScheduler):
    """
    Searches videos for the resolved topics.

    The next delay shortens to a few minutes while a trend is active and
    follows the daytime window otherwise. An unreadable or slow trending
    signal counts as no trend.
    """

    content_type = ContentType.VIDEO
    purges_inactive = True

    def __init__(
        self,
        store: ContentStore,
        search: SourceFeed | None = None,
        trending: TrendingSignal | None = None,
        rng: random.Random | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            store,
            {SourceKind.KEYWORD_SEARCH: search or create_video_search()},
            **kwargs,
        )
        self._trending = trending or StoreTrendingSignal(store)
        self._rng = rng

    async def should_retain(self, settings: FeedSettings, now: datetime) -> bool:
        return settings.cron_job_enabled

    async def _has_trend(self) -> bool:
        timeout = self._app_settings.external_timeout_seconds
        try:
            return await asyncio.wait_for(self._trending.has_active_trend(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Trending check timed out, assuming no trend", timeout_seconds=timeout)
        except Exception as e:
            logger.warning("Trending check failed, assuming no trend", error=str(e))
        return False

    async def compute_delay(self, settings: FeedSettings, now: datetime) -> float:
        return adaptive_video_delay(
            now,
            await self._has_trend(),
            config=self._config,
            rng=self._rng,
            tz=self._tz,
        )
