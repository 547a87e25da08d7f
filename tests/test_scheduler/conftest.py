"""Shared fixtures for scheduler tests."""

import asyncio
import random
from typing import Any

import pytest

from curator.ingestion.feeds import SampleVideoSearch, SourceFeed
from curator.scheduler import NewsScheduler, SchedulerConfig, VideoScheduler
from curator.sources.schemas import Source
from curator.storage import InMemoryContentStore
from curator.storage.base import SOURCES
from curator.trending import Trend, TrendingSignal


class StaticFeed(SourceFeed):
    """Feed returning canned entries, with optional per-source failures and delay."""

    def __init__(
        self,
        entries: list[dict[str, Any]] | None = None,
        errors: dict[str, Exception] | None = None,
        delay: float = 0.0,
    ):
        self.entries = entries or []
        self.errors = errors or {}
        self.delay = delay
        self.calls: list[str] = []
        self.closed = False

    async def fetch(self, source: Source, limit: int) -> list[dict[str, Any]]:
        self.calls.append(source.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if source.name in self.errors:
            raise self.errors[source.name]
        return list(self.entries)

    async def close(self) -> None:
        self.closed = True


class FixedTrend(TrendingSignal):
    def __init__(self, active: bool = False):
        self.active = active

    async def has_active_trend(self) -> bool:
        return self.active

    async def active_trends(self) -> list[Trend]:
        return [Trend("Songkran", featured=True)] if self.active else []


@pytest.fixture
def news_entries() -> list[dict[str, Any]]:
    return [
        {
            "title": "Night market reopens on Thepprasit Road",
            "link": "https://news.test/night-market",
            "summary": "Stalls are back after renovation.",
        },
        {
            "title": "Police warn of lottery scam targeting tourists",
            "link": "https://news.test/lottery",
            "summary": "Victims were asked to pay fees.",
        },
        {
            "title": "Night market reopens on Thepprasit Road",
            "link": "https://news.test/night-market#top",
            "summary": "Repeat of the first entry.",
        },
    ]


@pytest.fixture
def news_store() -> InMemoryContentStore:
    return InMemoryContentStore(
        {
            SOURCES: [
                {"name": "Pattaya Mail", "endpoint": "https://pattayamail.test/feed", "priority": 1},
                {"name": "Bangkok Post", "endpoint": "https://bangkokpost.test/rss", "priority": 2},
                {"name": "Spare", "endpoint": "https://spare.test/rss", "priority": 3},
            ]
        }
    )


@pytest.fixture
def scheduler_config() -> SchedulerConfig:
    return SchedulerConfig(source_timeout_seconds=1.0, run_on_start=True)


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def make_news_scheduler(test_settings, scheduler_config, resolver, clock):
    def build(store, feed: SourceFeed, **kwargs) -> NewsScheduler:
        options = {
            "settings": test_settings,
            "config": scheduler_config,
            "resolver": resolver,
            "clock": clock,
            **kwargs,
        }
        return NewsScheduler(store, feed=feed, **options)

    return build


@pytest.fixture
def make_video_scheduler(test_settings, scheduler_config, resolver, clock):
    def build(store, trending: TrendingSignal | None = None, **kwargs) -> VideoScheduler:
        options = {
            "settings": test_settings,
            "config": scheduler_config,
            "resolver": resolver,
            "clock": clock,
            **kwargs,
        }
        return VideoScheduler(
            store,
            search=SampleVideoSearch(clock=clock),
            trending=trending or FixedTrend(False),
            rng=random.Random(7),
            **options,
        )

    return build


@pytest.fixture
def static_feed_factory():
    return StaticFeed


@pytest.fixture
def fixed_trend_factory():
    return FixedTrend
