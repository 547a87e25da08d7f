"""
Retention manager.

Keeps each content type's corpus within its count and age limits:

- count_only: newest ``max_item_limit`` items are kept, the rest go
- age_only: items older than ``max_item_age_hours`` go
- both_count_and_age: age candidates first, then the count cutoff over
  what remains; an item is deleted at most once

Pinned and breaking items are removed from the candidate list after
selection, so they still occupy slots in the count window. Deletions are
returned oldest first.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from curator.errors import RetentionPartialFailure
from curator.feed_settings import FeedSettings, FeedSettingsService, RetentionMode
from curator.ingestion.schemas import ApprovalState, ContentType, StoredItem
from curator.observability.metrics import get_metrics
from curator.retention.schemas import RetentionReport
from curator.storage.base import ContentStore

logger = structlog.get_logger(__name__)


def _newest_first(items: list[StoredItem]) -> list[StoredItem]:
    return sorted(items, key=lambda i: i.recency, reverse=True)


def count_candidates(items: list[StoredItem], limit: int) -> list[StoredItem]:
    """Items beyond the newest ``limit``."""
    return _newest_first(items)[limit:]


def age_candidates(items: list[StoredItem], max_age_hours: int, now: datetime) -> list[StoredItem]:
    """Items whose recency is before ``now - max_age_hours``."""
    cutoff = now - timedelta(hours=max_age_hours)
    return [i for i in items if i.recency < cutoff]


def plan(items: list[StoredItem], settings: FeedSettings, now: datetime | None = None) -> list[StoredItem]:
    """
    Select items to delete under the settings' retention mode.

    Args:
        items: The full stored corpus for one content type
        settings: Limits, mode and preservation flags
        now: Reference time for the age cutoff

    Returns:
        Deletion candidates, oldest first, each at most once.
    """
    now = now or datetime.now(timezone.utc)
    mode = settings.retention_mode

    if mode is RetentionMode.COUNT_ONLY:
        candidates = count_candidates(items, settings.max_item_limit)
    elif mode is RetentionMode.AGE_ONLY:
        candidates = age_candidates(items, settings.max_item_age_hours, now)
    else:
        aged = age_candidates(items, settings.max_item_age_hours, now)
        aged_ids = {i.id for i in aged}
        remainder = [i for i in items if i.id not in aged_ids]
        candidates = aged + count_candidates(remainder, settings.max_item_limit)

    selected: dict[str, StoredItem] = {}
    for item in candidates:
        if settings.preserve_pinned and item.is_pinned:
            continue
        if settings.preserve_breaking and item.is_breaking:
            continue
        selected.setdefault(item.id, item)

    return sorted(selected.values(), key=lambda i: i.recency)


class RetentionManager:
    """
    Plan and apply retention for stored items.

    Usage:
        manager = RetentionManager(store, settings_service)
        report = await manager.run(ContentType.NEWS)
    """

    def __init__(
        self,
        store: ContentStore,
        settings_service: FeedSettingsService,
        rejected_retention_days: int = 7,
        inactive_retention_days: int = 30,
    ) -> None:
        self._store = store
        self._settings = settings_service
        self._rejected_retention_days = rejected_retention_days
        self._inactive_retention_days = inactive_retention_days
        self._metrics = get_metrics()
        # Last run per content type, for settings that cannot be patched
        self._last_run: dict[ContentType, datetime] = {}

    def plan(
        self,
        items: list[StoredItem],
        settings: FeedSettings,
        now: datetime | None = None,
    ) -> list[StoredItem]:
        return plan(items, settings, now)

    def last_run(self, settings: FeedSettings) -> datetime | None:
        """Most recent known run, from the settings record or this process."""
        runs = [
            t for t in (settings.last_cleanup_run, self._last_run.get(settings.content_type))
            if t is not None
        ]
        return max(runs) if runs else None

    def is_due(self, settings: FeedSettings, now: datetime | None = None) -> bool:
        """Whether cleanup_frequency_minutes have elapsed since the last run."""
        now = now or datetime.now(timezone.utc)
        last = self.last_run(settings)
        if last is None:
            return True
        return now - last >= timedelta(minutes=settings.cleanup_frequency_minutes)

    async def load_items(
        self,
        content_type: ContentType,
        filters: dict[str, Any] | None = None,
    ) -> list[StoredItem]:
        """Read the stored corpus, skipping records without an id."""
        records = await self._store.list_active(content_type, filters)
        items = []
        for record in records:
            try:
                items.append(StoredItem.from_record(content_type, record))
            except ValueError:
                logger.debug("Skipping stored record without id", content_type=content_type.value)
        return items

    async def _delete_all(
        self,
        content_type: ContentType,
        items: list[StoredItem],
    ) -> tuple[list[str], list[str]]:
        deleted: list[str] = []
        failed: list[str] = []
        for item in items:
            try:
                if await self._store.delete(content_type, item.id):
                    deleted.append(item.id)
            except Exception as e:
                failed.append(item.id)
                logger.warning(
                    "Retention delete failed",
                    content_type=content_type.value,
                    item_id=item.id,
                    error=str(e),
                )
        return deleted, failed

    async def apply(self, items: list[StoredItem]) -> int:
        """
        Delete the given items, skipping individual failures.

        Returns:
            Number of items actually deleted.
        """
        total = 0
        for content_type in ContentType:
            batch = [i for i in items if i.content_type is content_type]
            if batch:
                deleted, _ = await self._delete_all(content_type, batch)
                total += len(deleted)
        return total

    async def run(
        self,
        content_type: ContentType,
        settings: FeedSettings | None = None,
        now: datetime | None = None,
        dry_run: bool = False,
    ) -> RetentionReport:
        """
        Plan and apply retention for one content type.

        After a run with deletions the cumulative statistics are patched
        onto the settings record; a failed patch leaves deletions in place.
        """
        now = now or datetime.now(timezone.utc)
        if settings is None:
            settings = (await self._settings.get_settings(content_type)).value

        items = await self.load_items(content_type)
        to_delete = self.plan(items, settings, now)
        report = RetentionReport(
            content_type=content_type,
            policy="retention",
            mode=settings.retention_mode,
            considered=len(items),
            planned=len(to_delete),
            dry_run=dry_run,
            at=now,
        )
        if dry_run:
            return report

        deleted, failed = await self._delete_all(content_type, to_delete)
        report.deleted = len(deleted)
        report.failed = len(failed)
        report.deleted_ids = deleted
        if failed:
            report.error = RetentionPartialFailure(
                f"{len(failed)} of {len(to_delete)} deletions failed",
                content_type=content_type.value,
                failed_ids=failed,
            )

        self._last_run[content_type] = now
        if deleted:
            report.stats_persisted = await self._settings.record_cleanup(
                settings, len(deleted), now
            )

        self._metrics.record_retention(content_type, len(deleted), len(failed))
        logger.info(
            "Retention run completed",
            content_type=content_type.value,
            mode=settings.retention_mode.value,
            considered=report.considered,
            planned=report.planned,
            deleted=report.deleted,
            failed=report.failed,
        )
        return report

    async def _purge(
        self,
        content_type: ContentType,
        policy: str,
        considered: int,
        stale: list[StoredItem],
        now: datetime,
        days: int,
    ) -> RetentionReport:
        stale = sorted(stale, key=lambda i: i.created_at or i.recency)
        deleted, failed = await self._delete_all(content_type, stale)
        report = RetentionReport(
            content_type=content_type,
            policy=policy,
            considered=considered,
            planned=len(stale),
            deleted=len(deleted),
            failed=len(failed),
            at=now,
            deleted_ids=deleted,
        )
        if failed:
            report.error = RetentionPartialFailure(
                f"{len(failed)} of {len(stale)} {policy} deletions failed",
                content_type=content_type.value,
                failed_ids=failed,
            )

        self._metrics.record_retention(content_type, len(deleted), len(failed), policy=policy)
        logger.info(
            "Stale items purged",
            content_type=content_type.value,
            policy=policy,
            older_than_days=days,
            deleted=len(deleted),
            failed=len(failed),
        )
        return report

    async def purge_rejected(
        self,
        content_type: ContentType,
        older_than_days: int | None = None,
        now: datetime | None = None,
    ) -> RetentionReport:
        """Hard-delete rejected items created more than ``older_than_days`` ago."""
        now = now or datetime.now(timezone.utc)
        days = older_than_days if older_than_days is not None else self._rejected_retention_days
        cutoff = now - timedelta(days=days)

        items = await self.load_items(content_type)
        stale = [
            i for i in items
            if i.approval_state is ApprovalState.REJECTED
            and (i.created_at or i.recency) < cutoff
        ]
        return await self._purge(content_type, "purge_rejected", len(items), stale, now, days)

    async def purge_inactive(
        self,
        content_type: ContentType,
        older_than_days: int | None = None,
        now: datetime | None = None,
    ) -> RetentionReport:
        """
        Hard-delete deactivated items created more than ``older_than_days`` ago.

        Covers records flagged inactive (hidden from normal listings) and
        records whose status reads 'inactive'.
        """
        now = now or datetime.now(timezone.utc)
        days = older_than_days if older_than_days is not None else self._inactive_retention_days
        cutoff = now - timedelta(days=days)

        inactive = {i.id: i for i in await self.load_items(content_type, {"is_active": False})}
        inactive.update({i.id: i for i in await self.load_items(content_type) if not i.is_active})
        stale = [i for i in inactive.values() if (i.created_at or i.recency) < cutoff]
        return await self._purge(content_type, "purge_inactive", len(inactive), stale, now, days)
