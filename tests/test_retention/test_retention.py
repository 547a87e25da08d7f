"""Tests for retention planning and runs."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from curator.errors import RetentionPartialFailure
from curator.feed_settings import FeedSettingsService, RetentionMode, default_settings, merge_settings
from curator.ingestion.schemas import ContentType, StoredItem
from curator.retention import RetentionManager, age_candidates, count_candidates, plan
from curator.storage import InMemoryContentStore, StoreError
from curator.storage.base import SETTINGS


def items_from(records, content_type=ContentType.NEWS) -> list[StoredItem]:
    return [StoredItem.from_record(content_type, r) for r in records]


def news_settings(**overrides):
    return default_settings(ContentType.NEWS).model_copy(update=overrides)


@pytest.fixture
def manager_for(resolver):
    def build(store, **kwargs) -> RetentionManager:
        return RetentionManager(store, FeedSettingsService(store, resolver), **kwargs)

    return build


class TestCandidates:
    """Tests for the count and age selectors."""

    def test_count_candidates(self, records_factory):
        items = items_from(records_factory(5))

        assert [i.id for i in count_candidates(items, 3)] == ["4", "5"]

    def test_age_candidates(self, records_factory, now):
        items = items_from(records_factory(30))

        aged = age_candidates(items, 24, now)

        # Items 26..30 are more than 24 hours old
        assert sorted(int(i.id) for i in aged) == [26, 27, 28, 29, 30]


class TestPlan:
    """Tests for plan() across modes."""

    def test_count_only_sixty_items(self, records_factory, now):
        items = items_from(records_factory(60))
        settings = news_settings(max_item_limit=21, retention_mode=RetentionMode.COUNT_ONLY)

        doomed = plan(items, settings, now)

        assert len(doomed) == 39
        kept = {i.id for i in items} - {i.id for i in doomed}
        assert kept == {str(n) for n in range(1, 22)}

    def test_oldest_first(self, records_factory, now):
        items = items_from(records_factory(10))
        settings = news_settings(max_item_limit=5, retention_mode=RetentionMode.COUNT_ONLY)

        assert [i.id for i in plan(items, settings, now)] == ["10", "9", "8", "7", "6"]

    def test_age_only(self, records_factory, now):
        items = items_from(records_factory(10, step=timedelta(hours=6)))
        settings = news_settings(max_item_age_hours=24, retention_mode=RetentionMode.AGE_ONLY)

        # Published 30h..54h ago
        assert sorted(int(i.id) for i in plan(items, settings, now)) == [6, 7, 8, 9, 10]

    def test_combined_is_union_without_repeats(self, records_factory, now):
        items = items_from(records_factory(40))
        settings = news_settings(
            max_item_limit=21,
            max_item_age_hours=24,
            retention_mode=RetentionMode.BOTH_COUNT_AND_AGE,
        )

        doomed = plan(items, settings, now)

        ids = [i.id for i in doomed]
        assert len(ids) == len(set(ids))
        # 15 aged (26..40) plus the remainder beyond the newest 21 (22..25)
        assert sorted(int(i) for i in ids) == list(range(22, 41))

    def test_combined_count_limits_fresh_items(self, records_factory, now):
        items = items_from(records_factory(30, step=timedelta(minutes=10)))
        settings = news_settings(max_item_limit=21)

        assert len(plan(items, settings, now)) == 9

    def test_pinned_and_breaking_preserved(self, records_factory, now):
        records = records_factory(25)
        records[23]["is_pinned"] = True
        records[24]["is_breaking"] = True
        items = items_from(records)
        settings = news_settings(max_item_limit=21, retention_mode=RetentionMode.COUNT_ONLY)

        doomed = {i.id for i in plan(items, settings, now)}

        assert doomed == {"22", "23"}

    def test_preservation_can_be_disabled(self, records_factory, now):
        records = records_factory(22)
        records[21]["is_pinned"] = True
        settings = news_settings(
            max_item_limit=21,
            retention_mode=RetentionMode.COUNT_ONLY,
            preserve_pinned=False,
        )

        assert [i.id for i in plan(items_from(records), settings, now)] == ["22"]

    def test_empty_corpus(self, now):
        assert plan([], news_settings(), now) == []


class TestRetentionManager:
    """Tests for RetentionManager runs."""

    @pytest.mark.asyncio
    async def test_run_deletes_and_patches_stats(self, manager_for, records_factory, now):
        store = InMemoryContentStore(
            {
                ContentType.NEWS.value: records_factory(60),
                SETTINGS: [{"id": "s1", "content_type": "news", "retention_mode": "count_only"}],
            }
        )
        manager = manager_for(store)

        report = await manager.run(ContentType.NEWS, now=now)

        assert report.deleted == 39
        assert report.failed == 0
        assert report.stats_persisted
        assert await store.count(ContentType.NEWS) == 21
        settings_record = (await store.list_active(SETTINGS))[0]
        assert settings_record["cleanup_stats"]["total_deleted"] == 39
        assert settings_record["last_cleanup_run"] == now.isoformat()

    @pytest.mark.asyncio
    async def test_dry_run_deletes_nothing(self, manager_for, records_factory, now):
        store = InMemoryContentStore({ContentType.NEWS.value: records_factory(30)})
        settings = news_settings(retention_mode=RetentionMode.COUNT_ONLY)

        report = await manager_for(store).run(ContentType.NEWS, settings, now, dry_run=True)

        assert report.planned == 9
        assert report.deleted == 0
        assert await store.count(ContentType.NEWS) == 30

    @pytest.mark.asyncio
    async def test_delete_failures_are_skipped(self, manager_for, records_factory, now):
        store = InMemoryContentStore({ContentType.NEWS.value: records_factory(25)})
        original_delete = store.delete

        async def flaky_delete(collection, record_id):
            if record_id == "23":
                raise StoreError("locked")
            return await original_delete(collection, record_id)

        store.delete = flaky_delete
        settings = news_settings(retention_mode=RetentionMode.COUNT_ONLY)

        report = await manager_for(store).run(ContentType.NEWS, settings, now)

        assert report.deleted == 3
        assert report.failed == 1
        assert isinstance(report.error, RetentionPartialFailure)
        assert report.error.context["failed_ids"] == ["23"]

    @pytest.mark.asyncio
    async def test_stats_patch_failure_keeps_deletions(self, records_factory, now, resolver):
        store = InMemoryContentStore({ContentType.NEWS.value: records_factory(25)})
        settings_service = FeedSettingsService(store, resolver)
        settings_service.record_cleanup = AsyncMock(return_value=False)
        manager = RetentionManager(store, settings_service)
        settings = merge_settings(ContentType.NEWS, {"id": "s1", "retention_mode": "count_only"})

        report = await manager.run(ContentType.NEWS, settings, now)

        assert report.deleted == 4
        assert report.stats_persisted is False
        assert await store.count(ContentType.NEWS) == 21

    @pytest.mark.asyncio
    async def test_is_due(self, manager_for, store, records_factory, now):
        manager = manager_for(store)
        settings = news_settings(cleanup_frequency_minutes=60)

        assert manager.is_due(settings, now)

        await manager.run(ContentType.NEWS, settings, now)

        assert not manager.is_due(settings, now + timedelta(minutes=30))
        assert manager.is_due(settings, now + timedelta(minutes=60))

    def test_is_due_reads_settings_record(self, manager_for, store, now):
        settings = news_settings(last_cleanup_run=now - timedelta(minutes=10))

        assert not manager_for(store).is_due(settings, now)

    @pytest.mark.asyncio
    async def test_purge_rejected(self, manager_for, now):
        old = (now - timedelta(days=10)).isoformat()
        recent = (now - timedelta(days=2)).isoformat()
        store = InMemoryContentStore(
            {
                ContentType.VIDEO.value: [
                    {"id": "1", "approval_state": "rejected", "created_at": old},
                    {"id": "2", "approval_state": "rejected", "created_at": recent},
                    {"id": "3", "approval_state": "approved", "created_at": old},
                    {"id": "4", "approval_state": "pending_review", "created_at": old},
                ]
            }
        )

        report = await manager_for(store, rejected_retention_days=7).purge_rejected(ContentType.VIDEO, now=now)

        assert report.deleted_ids == ["1"]
        assert report.policy == "purge_rejected"
        assert {r["id"] for r in await store.list_active(ContentType.VIDEO)} == {"2", "3", "4"}

    @pytest.mark.asyncio
    async def test_purge_rejected_custom_days(self, manager_for, now):
        store = InMemoryContentStore(
            {
                ContentType.NEWS.value: [
                    {"id": "1", "approval_state": "Rejected", "created_at": (now - timedelta(days=2)).isoformat()},
                ]
            }
        )

        report = await manager_for(store).purge_rejected(ContentType.NEWS, older_than_days=1, now=now)

        assert report.deleted == 1

    @pytest.mark.asyncio
    async def test_purge_inactive(self, manager_for, now):
        old = (now - timedelta(days=40)).isoformat()
        recent = (now - timedelta(days=5)).isoformat()
        store = InMemoryContentStore(
            {
                ContentType.VIDEO.value: [
                    {"id": "1", "is_active": False, "created_at": old},
                    {"id": "2", "videostatus": "inactive", "created_at": old},
                    {"id": "3", "is_active": False, "created_at": recent},
                    {"id": "4", "approval_state": "approved", "created_at": old},
                ]
            }
        )

        report = await manager_for(store, inactive_retention_days=30).purge_inactive(ContentType.VIDEO, now=now)

        assert report.policy == "purge_inactive"
        assert report.considered == 3
        assert sorted(report.deleted_ids) == ["1", "2"]
        remaining = await store.list_active(ContentType.VIDEO, {"is_active": False})
        assert [r["id"] for r in remaining] == ["3"]
        assert [r["id"] for r in await store.list_active(ContentType.VIDEO)] == ["4"]

    @pytest.mark.asyncio
    async def test_purge_inactive_custom_days(self, manager_for, now):
        store = InMemoryContentStore(
            {
                ContentType.VIDEO.value: [
                    {"id": "1", "is_active": False, "created_at": (now - timedelta(days=5)).isoformat()},
                ]
            }
        )

        report = await manager_for(store).purge_inactive(ContentType.VIDEO, older_than_days=3, now=now)

        assert report.deleted_ids == ["1"]
