"""Tests for the shared cycle behaviour of the schedulers."""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from curator.errors import SourceFetchFailed
from curator.feed_settings import default_settings
from curator.ingestion.schemas import ContentType
from curator.resolver import Provenance, Resolved
from curator.scheduler import CycleOutcome, IngestionPipeline, SchedulerConfig, SchedulerState
from curator.sources.schemas import SourceKind
from curator.storage import ContentStore, DuplicateItemError, InMemoryContentStore, StoreError
from curator.storage.base import BANNED_KEYWORDS, SOURCES, collection_name


class FailingStore(ContentStore):
    """Content store that is unreachable for every operation."""

    async def list_active(self, collection, filters=None, sort=None, limit=None):
        raise StoreError("connection refused", collection=collection_name(collection))

    async def create(self, collection, record):
        raise StoreError("connection refused", collection=collection_name(collection))

    async def update(self, collection, record_id, patch):
        raise StoreError("connection refused", collection=collection_name(collection))

    async def delete(self, collection, record_id):
        raise StoreError("connection refused", collection=collection_name(collection))

    async def count(self, collection, filters=None):
        raise StoreError("connection refused", collection=collection_name(collection))


class RejectingNewsStore(InMemoryContentStore):
    """Store that refuses every news write."""

    async def create(self, collection, record: dict[str, Any]) -> dict[str, Any]:
        if collection_name(collection) == ContentType.NEWS.value:
            raise StoreError("write rejected", collection="news")
        return await super().create(collection, record)


class KeywordOutageStore(InMemoryContentStore):
    """Store whose banned-keyword collection cannot be read."""

    async def list_active(self, collection, filters=None, sort=None, limit=None):
        if collection_name(collection) == BANNED_KEYWORDS:
            raise StoreError("keywords unavailable", collection=BANNED_KEYWORDS)
        return await super().list_active(collection, filters, sort, limit)


def error_kinds(result) -> list[str]:
    return [e.kind for e in result.errors]


class TestNewsCycle:
    """End-to-end news cycles against the in-memory store."""

    @pytest.mark.asyncio
    async def test_first_cycle_counts(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        feed = static_feed_factory(news_entries)
        scheduler = make_news_scheduler(news_store, feed)

        result = await scheduler.run_cycle()

        assert result.outcome is CycleOutcome.SUCCESS
        assert result.sources == ["Pattaya Mail", "Bangkok Post"]
        assert result.source_provenance == "remote"
        assert result.settings_provenance == "builtin"
        assert result.fetched == 6
        assert result.stored == 1
        assert result.approved == 1
        assert result.pending_review == 0
        assert result.blocked == 1
        assert result.duplicates == 4
        assert result.failed == 0
        assert result.next_delay_seconds == 1800.0

        stored = await news_store.list_active(ContentType.NEWS)
        assert [r["identity_key"] for r in stored] == ["https://news.test/night-market"]
        assert stored[0]["approval_state"] == "approved"

    @pytest.mark.asyncio
    async def test_empty_keyword_collection_is_not_degraded(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        scheduler = make_news_scheduler(news_store, static_feed_factory(news_entries))

        result = await scheduler.run_cycle()

        assert "classification_degraded" not in error_kinds(result)
        assert result.blocked == 1

    @pytest.mark.asyncio
    async def test_unreadable_keywords_reported_as_degraded(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        records = await news_store.list_active(SOURCES)
        store = KeywordOutageStore({SOURCES: records})
        scheduler = make_news_scheduler(store, static_feed_factory(news_entries))

        result = await scheduler.run_cycle()

        assert result.outcome is CycleOutcome.SUCCESS
        assert "classification_degraded" in error_kinds(result)
        assert result.blocked == 1

    @pytest.mark.asyncio
    async def test_second_cycle_stores_nothing_new(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        scheduler = make_news_scheduler(news_store, static_feed_factory(news_entries))

        await scheduler.run_cycle()
        second = await scheduler.run_cycle()

        assert second.stored == 0
        assert second.blocked == 1
        assert second.duplicates == 5
        assert await news_store.count(ContentType.NEWS) == 1

    @pytest.mark.asyncio
    async def test_invalid_entries_counted(self, news_store, make_news_scheduler, static_feed_factory):
        entries = [
            {"title": "", "link": "https://news.test/untitled"},
            {"title": "No link here"},
            {"title": "Relative link", "link": "/story"},
        ]
        scheduler = make_news_scheduler(news_store, static_feed_factory(entries))

        result = await scheduler.run_cycle()

        assert result.fetched == 6
        assert result.invalid == 6
        assert result.stored == 0

    @pytest.mark.asyncio
    async def test_retention_runs_when_due(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        scheduler = make_news_scheduler(news_store, static_feed_factory(news_entries))

        first = await scheduler.run_cycle()
        second = await scheduler.run_cycle()

        assert first.retention is not None
        assert first.retention.deleted == 0
        # Clock has not moved, so the next run is not due yet
        assert second.retention is None


class TestReentrancy:
    """Overlapping triggers."""

    @pytest.mark.asyncio
    async def test_overlapping_cycle_is_skipped(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        scheduler = make_news_scheduler(news_store, static_feed_factory(news_entries, delay=0.05))

        first, second = await asyncio.gather(scheduler.run_cycle(), scheduler.run_cycle())

        outcomes = sorted([first.outcome, second.outcome], key=lambda o: o.value)
        assert outcomes == [CycleOutcome.SKIPPED, CycleOutcome.SUCCESS]
        assert await news_store.count(ContentType.NEWS) == 1
        assert scheduler.status().cycle_count == 1

    @pytest.mark.asyncio
    async def test_cycle_after_finish_runs(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        scheduler = make_news_scheduler(news_store, static_feed_factory(news_entries))

        await scheduler.run_cycle()
        result = await scheduler.run_cycle()

        assert result.outcome is CycleOutcome.SUCCESS
        assert scheduler.state is SchedulerState.IDLE


class TestFailureIsolation:
    """Failures are recorded without stopping the scheduler."""

    @pytest.mark.asyncio
    async def test_failing_source_skipped(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        feed = static_feed_factory(
            news_entries,
            errors={"Pattaya Mail": SourceFetchFailed("HTTP 503", source="pattaya")},
        )
        scheduler = make_news_scheduler(news_store, feed)

        result = await scheduler.run_cycle()

        assert result.outcome is CycleOutcome.SUCCESS
        assert feed.calls == ["Pattaya Mail", "Bangkok Post"]
        assert result.fetched == 3
        assert result.stored == 1
        assert "source_fetch_failed" in error_kinds(result)

    @pytest.mark.asyncio
    async def test_unexpected_source_error_wrapped(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        feed = static_feed_factory(news_entries, errors={"Bangkok Post": ValueError("bad xml")})
        scheduler = make_news_scheduler(news_store, feed)

        result = await scheduler.run_cycle()

        failures = [e for e in result.errors if e.kind == "source_fetch_failed"]
        assert len(failures) == 1
        assert failures[0].context["source"] == "Bangkok Post"
        assert failures[0].context["error_type"] == "ValueError"

    @pytest.mark.asyncio
    async def test_source_timeout(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        feed = static_feed_factory(news_entries, delay=0.5)
        scheduler = make_news_scheduler(
            news_store,
            feed,
            config=SchedulerConfig(source_timeout_seconds=0.05),
        )

        result = await scheduler.run_cycle()

        assert result.outcome is CycleOutcome.SUCCESS
        assert result.fetched == 0
        assert error_kinds(result).count("source_fetch_failed") == 2
        assert "timed out" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_cycle_only(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        scheduler = make_news_scheduler(news_store, static_feed_factory(news_entries))

        with patch.object(
            scheduler._sources_service,
            "get_sources",
            AsyncMock(side_effect=RuntimeError("boom")),
        ):
            failed = await scheduler.run_cycle()

        assert failed.outcome is CycleOutcome.FAILED
        assert error_kinds(failed) == ["cycle_failed"]
        assert failed.errors[0].context["error_type"] == "RuntimeError"
        assert failed.next_delay_seconds == 1800.0
        assert scheduler.state is SchedulerState.IDLE

        recovered = await scheduler.run_cycle()
        assert recovered.outcome is CycleOutcome.SUCCESS
        assert recovered.stored == 1

        status = scheduler.status()
        assert status.cycle_count == 2
        assert status.successful_cycles == 1

    @pytest.mark.asyncio
    async def test_unreachable_store_uses_fallbacks(self, news_entries, make_news_scheduler, static_feed_factory):
        feed = static_feed_factory(news_entries)
        scheduler = make_news_scheduler(FailingStore(), feed)

        result = await scheduler.run_cycle()

        assert result.outcome is CycleOutcome.SUCCESS
        assert result.source_provenance == "builtin"
        assert result.settings_provenance == "builtin"
        assert feed.calls == ["Pattaya Mail", "The Pattaya News"]
        assert result.blocked == 1
        assert result.stored == 0
        assert result.failed == 1
        kinds = error_kinds(result)
        assert "classification_degraded" in kinds
        assert "persistence_failed" in kinds
        assert any(e.context.get("stage") == "retention" for e in result.errors)
        assert result.next_delay_seconds == 1800.0

    @pytest.mark.asyncio
    async def test_persistence_failure_counted(self, news_entries, make_news_scheduler, static_feed_factory):
        store = RejectingNewsStore(
            {"sources": [{"name": "Pattaya Mail", "endpoint": "https://pattayamail.test/feed"}]}
        )
        scheduler = make_news_scheduler(store, static_feed_factory(news_entries))

        result = await scheduler.run_cycle()

        assert result.outcome is CycleOutcome.SUCCESS
        assert result.failed == 1
        assert result.stored == 0
        failure = next(e for e in result.errors if e.kind == "persistence_failed")
        assert failure.context["identity_key"] == "https://news.test/night-market"

    @pytest.mark.asyncio
    async def test_no_sources(self, store, make_news_scheduler, static_feed_factory):
        feed = static_feed_factory([])
        scheduler = make_news_scheduler(store, feed)

        empty = Resolved(value=[], provenance=Provenance.EMERGENCY, provider="default")
        with patch.object(scheduler._sources_service, "get_sources", AsyncMock(return_value=empty)):
            result = await scheduler.run_cycle()

        assert result.outcome is CycleOutcome.NO_SOURCES
        assert result.source_provenance == "emergency"
        assert feed.calls == []
        assert result.next_delay_seconds == 1800.0

    @pytest.mark.asyncio
    async def test_error_history_bounded(self, news_store, make_news_scheduler, static_feed_factory):
        feed = static_feed_factory(errors={"Pattaya Mail": SourceFetchFailed("down")})
        scheduler = make_news_scheduler(
            news_store,
            feed,
            config=SchedulerConfig(error_history=3),
        )

        for _ in range(3):
            await scheduler.run_cycle()

        assert len(scheduler.status().errors) == 3

    @pytest.mark.asyncio
    async def test_delay_failure_falls_back_to_fetch_interval(self, news_store, news_entries, make_news_scheduler, static_feed_factory):
        scheduler = make_news_scheduler(news_store, static_feed_factory(news_entries))

        broken = AsyncMock(side_effect=RuntimeError("zoneinfo unavailable"))
        with patch.object(scheduler, "compute_delay", broken):
            result = await scheduler.run_cycle()
            delay = await scheduler.next_delay()

        assert result.stored == 1
        assert result.next_delay_seconds == 1800.0
        assert delay == 1800.0
        failure = next(e for e in result.errors if e.context.get("stage") == "compute_delay")
        assert failure.kind == "RuntimeError"
        assert scheduler.status().next_delay_seconds == 1800.0


class TestPipeline:
    """Direct pipeline behaviour."""

    @pytest.mark.asyncio
    async def test_store_duplicate_counted_as_duplicate(self, candidate_factory):
        store = InMemoryContentStore(
            {"news": [{"identity_key": "https://news.test/a", "title": "Already here"}]}
        )
        pipeline = IngestionPipeline(
            ContentType.NEWS,
            store,
            feeds={},
            trust_lookup=AsyncMock(return_value=None),
            existing_lookup=AsyncMock(return_value=False),
        )

        outcome = await pipeline.process([candidate_factory()], rules=[])

        assert outcome.duplicates == 1
        assert outcome.stored == 0
        assert outcome.failed == 0

    @pytest.mark.asyncio
    async def test_video_items_held_without_trust(self, store, candidate_factory):
        pipeline = IngestionPipeline(
            ContentType.VIDEO,
            store,
            feeds={},
            trust_lookup=AsyncMock(return_value=None),
            existing_lookup=AsyncMock(return_value=False),
        )
        candidate = candidate_factory(
            identity_key="vid123",
            content_type=ContentType.VIDEO,
            channel_id="UC999",
        )

        outcome = await pipeline.process([candidate], rules=[])

        assert outcome.pending_review == 1
        records = await store.list_active(ContentType.VIDEO)
        assert records[0]["approval_state"] == "pending_review"

    @pytest.mark.asyncio
    async def test_missing_feed_recorded(self, rss_source):
        pipeline = IngestionPipeline(
            ContentType.NEWS,
            InMemoryContentStore(),
            feeds={SourceKind.KEYWORD_SEARCH: AsyncMock()},
            trust_lookup=AsyncMock(return_value=None),
            existing_lookup=AsyncMock(return_value=False),
        )

        outcome = await pipeline.fetch([rss_source], default_settings(ContentType.NEWS))

        assert outcome.fetched == 0
        assert [e.kind for e in outcome.errors] == ["source_fetch_failed"]
