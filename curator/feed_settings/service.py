"""Settings lookup through the config resolver, plus the statistics patch."""

from datetime import datetime
from typing import Any

import structlog

from curator.feed_settings.schemas import FeedSettings, default_settings, merge_settings
from curator.ingestion.schemas import ContentType
from curator.resolver import ConfigResolver, Provenance, Provider, Resolved
from curator.storage.base import SETTINGS, ContentStore

logger = structlog.get_logger(__name__)


class FeedSettingsService:
    """
    Read per-content-type settings and persist cleanup statistics.

    Usage:
        service = FeedSettingsService(store, resolver)
        resolved = await service.get_settings(ContentType.NEWS)
        interval = resolved.value.fetch_interval_minutes
    """

    def __init__(self, store: ContentStore, resolver: ConfigResolver) -> None:
        self._store = store
        self._resolver = resolver

    async def _fetch_remote(self, content_type: ContentType) -> dict[str, Any] | None:
        records = await self._store.list_active(
            SETTINGS,
            filters={"content_type": content_type.value},
            limit=1,
        )
        return records[0] if records else None

    async def get_settings(self, content_type: ContentType) -> Resolved[FeedSettings]:
        """
        Resolve settings for a content type.

        A missing or unreachable settings record yields the built-in
        defaults; a partial record is merged over them field by field.
        """
        resolved = await self._resolver.resolve(
            f"settings:{content_type.value}",
            [
                Provider(
                    "store",
                    lambda: self._fetch_remote(content_type),
                    Provenance.REMOTE,
                )
            ],
            default=None,
            validator=lambda v: isinstance(v, dict),
        )
        if resolved.value is None:
            value = default_settings(content_type)
        else:
            value = merge_settings(content_type, resolved.value)
        return Resolved(
            value=value,
            provenance=resolved.provenance,
            provider=resolved.provider,
            failed=resolved.failed,
        )

    async def record_cleanup(
        self,
        settings: FeedSettings,
        deleted: int,
        at: datetime,
    ) -> bool:
        """
        Patch cumulative cleanup statistics onto the settings record.

        Best effort: a failed patch is logged, never raised. Settings that
        did not come from the store are never written, since the core does
        not create settings records.

        Returns:
            True if the patch was written.
        """
        stats = settings.cleanup_stats.after_run(deleted, at)

        if settings.record_id is None:
            logger.debug(
                "No settings record to patch",
                content_type=settings.content_type.value,
            )
            return False

        try:
            await self._store.update(
                SETTINGS,
                settings.record_id,
                {
                    "cleanup_stats": stats.to_record(),
                    "last_cleanup_run": at.isoformat(),
                },
            )
        except Exception as e:
            logger.warning(
                "Failed to persist cleanup stats",
                content_type=settings.content_type.value,
                record_id=settings.record_id,
                error=str(e),
            )
            return False
        return True
