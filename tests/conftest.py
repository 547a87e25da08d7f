"""Pytest fixtures for curator tests."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from curator.config.settings import Settings
from curator.ingestion.schemas import CandidateItem, ContentType
from curator.resolver import ConfigResolver, ResolverConfig
from curator.sources.schemas import Source, SourceKind
from curator.storage import InMemoryContentStore

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for retention and interval tests."""
    return NOW


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        content_store_url="http://cms.test/api",
        scheduler_timezone="UTC",
    )


@pytest.fixture
def store() -> InMemoryContentStore:
    """Empty in-memory content store."""
    return InMemoryContentStore()


@pytest.fixture
def resolver() -> ConfigResolver:
    """Resolver with a short provider timeout."""
    return ConfigResolver(ResolverConfig(provider_timeout_seconds=0.5))


@pytest.fixture
def rss_source() -> Source:
    return Source(
        identifier="pattaya-mail",
        name="Pattaya Mail",
        kind=SourceKind.RSS_FEED,
        endpoint="https://www.pattayamail.com/feed/",
        priority=1,
        category="Local News",
    )


@pytest.fixture
def video_source() -> Source:
    return Source(
        identifier="thai-culture",
        name="Thai Culture",
        kind=SourceKind.KEYWORD_SEARCH,
        query="Thai Culture",
        priority=2,
        category="Culture",
    )


def make_candidate(
    identity_key: str = "https://news.test/a",
    content_type: ContentType = ContentType.NEWS,
    title: str = "Beach clean-up draws hundreds",
    body: str = "Volunteers gathered on Jomtien beach on Saturday.",
    **kwargs: Any,
) -> CandidateItem:
    """Build a candidate item with sensible defaults."""
    return CandidateItem(
        content_type=content_type,
        identity_key=identity_key,
        title=title,
        body=body,
        **kwargs,
    )


def stored_records(
    count: int,
    now: datetime = NOW,
    step: timedelta = timedelta(hours=1),
    **extra: Any,
) -> list[dict[str, Any]]:
    """Item records published one ``step`` apart, newest first, ids 1..count."""
    return [
        {
            "id": str(n + 1),
            "identity_key": f"https://news.test/{n + 1}",
            "title": f"Item {n + 1}",
            "published_at": (now - step * n).isoformat(),
            "approval_state": "approved",
            **extra,
        }
        for n in range(count)
    ]


@pytest.fixture
def candidate_factory():
    return make_candidate


@pytest.fixture
def records_factory():
    return stored_records
