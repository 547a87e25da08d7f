"""News scheduler: fixed interval, retention when due."""

from collections.abc import Coroutine
from datetime import datetime
from typing import Any

import structlog

from curator.feed_settings import FeedSettings
from curator.ingestion.feeds import RSSFeed, SourceFeed
from curator.ingestion.schemas import ContentType
from curator.scheduler.base import IngestionScheduler
from curator.scheduler.interval import fixed_news_delay
from curator.sources.schemas import SourceKind
from curator.storage.base import ContentStore

logger = structlog.get_logger(__name__)


class NewsScheduler(IngestionScheduler):
    """
    Polls RSS sources every ``fetch_interval_minutes``.

    Retention runs inside a cycle when it is due, and an independent
    sweep checks every ``retention_check_minutes`` so retention keeps
    its own cadence when the fetch interval is longer.
    """

    content_type = ContentType.NEWS

    def __init__(
        self,
        store: ContentStore,
        feed: SourceFeed | None = None,
        **kwargs: Any,
    ):
        super().__init__(store, {SourceKind.RSS_FEED: feed or RSSFeed()}, **kwargs)

    async def should_retain(self, settings: FeedSettings, now: datetime) -> bool:
        return settings.cron_job_enabled and self._retention.is_due(settings, now)

    async def compute_delay(self, settings: FeedSettings, now: datetime) -> float:
        return fixed_news_delay(settings)

    def background_loops(self) -> list[Coroutine[Any, Any, None]]:
        return [*super().background_loops(), self._retention_sweep_loop()]

    async def sweep_once(self) -> bool:
        """
        Run retention if it is enabled and due.

        Returns:
            True if a retention run happened.
        """
        settings = (await self._settings_service.get_settings(self.content_type)).value
        if not settings.cron_job_enabled:
            return False
        report = await self.run_retention(settings=settings, only_if_due=True)
        if report is not None and report.error is not None:
            self._record_error(report.error, stage="retention_sweep")
        return report is not None

    async def _retention_sweep_loop(self) -> None:
        interval = self._config.retention_check_minutes * 60.0
        while self._running:
            if await self._sleep(interval):
                break
            try:
                await self.sweep_once()
            except Exception as e:
                self._record_error(e, stage="retention_sweep")
                logger.error("Retention sweep failed", error=str(e))
