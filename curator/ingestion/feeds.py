"""
Source feed collaborators.

RSSFeed pulls and parses a feed URL; VideoSearch runs a keyword search
against the YouTube Data API v3; SampleVideoSearch stands in for the
search API when no key is configured. All three return raw entries for
the normalizer and raise SourceFetchFailed on failure.
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import feedparser

from curator.config.settings import get_settings
from curator.errors import SourceFetchFailed
from curator.ingestion.http_client import APIKeyRotator, HTTPClient, HTTPClientError, RetryConfig
from curator.sources.schemas import Source

logger = logging.getLogger(__name__)

YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
USER_AGENT = "Curator/0.1 (RSS Reader)"


def _default_client() -> HTTPClient:
    settings = get_settings()
    return HTTPClient(
        RetryConfig(
            max_retries=settings.max_http_retries,
            max_backoff_seconds=settings.max_backoff_seconds,
        ),
        timeout=settings.external_timeout_seconds,
        headers={"User-Agent": USER_AGENT},
    )


class SourceFeed(ABC):
    """Fetch raw entries for one source."""

    @abstractmethod
    async def fetch(self, source: Source, limit: int) -> list[dict[str, Any]]:
        """Return at most ``limit`` raw entries for ``source``."""
        ...

    async def close(self) -> None:
        return None


class RSSFeed(SourceFeed):
    """
    Pull and parse RSS/Atom feeds.

    Usage:
        async with RSSFeed() as feed:
            entries = await feed.pull(source)
    """

    def __init__(self, client: HTTPClient | None = None):
        self._client = client or _default_client()

    async def __aenter__(self) -> "RSSFeed":
        await self._client.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.close()

    async def pull(self, source: Source) -> list[dict[str, Any]]:
        """
        Fetch and parse a source's feed.

        Raises:
            SourceFetchFailed: On HTTP failure or an unparseable feed
        """
        if not source.endpoint:
            raise SourceFetchFailed(f"{source.name} has no feed URL", source=source.identifier)

        await self._client.open()
        try:
            response = await self._client.get(source.endpoint)
        except HTTPClientError as e:
            raise SourceFetchFailed(
                f"Feed request failed for {source.name}: {e}",
                source=source.identifier,
                status_code=e.status_code,
            ) from e

        feed = feedparser.parse(response.text)
        entries = list(feed.get("entries", []))
        if not entries and feed.get("bozo"):
            raise SourceFetchFailed(
                f"Unparseable feed from {source.name}: {feed.get('bozo_exception')}",
                source=source.identifier,
            )

        logger.debug(f"Fetched {len(entries)} entries from {source.name}")
        return entries

    async def fetch(self, source: Source, limit: int) -> list[dict[str, Any]]:
        return (await self.pull(source))[:limit]


@dataclass
class SearchOptions:
    """Per-call options for keyword search."""

    max_results: int = 2
    region_code: str | None = None
    relevance_language: str | None = None
    safe_search: str = "strict"


class VideoSearch(SourceFeed):
    """
    Keyword search against the YouTube Data API v3.

    Usage:
        search = VideoSearch(APIKeyRotator.from_env_var(settings.youtube_api_keys))
        results = await search.search("Thai Culture", SearchOptions(max_results=2))
    """

    def __init__(
        self,
        api_keys: APIKeyRotator,
        client: HTTPClient | None = None,
        region_code: str | None = None,
        relevance_language: str | None = None,
    ):
        settings = get_settings()
        self._api_keys = api_keys
        self._client = client or _default_client()
        self._region_code = region_code or settings.youtube_region_code
        self._relevance_language = relevance_language or settings.youtube_relevance_language

    async def close(self) -> None:
        await self._client.close()

    async def search(self, keyword: str, options: SearchOptions | None = None) -> list[dict[str, Any]]:
        """
        Search videos for a keyword.

        Raises:
            SourceFetchFailed: On HTTP failure or exhausted quota
        """
        options = options or SearchOptions()
        params = {
            "part": "snippet",
            "q": keyword,
            "type": "video",
            "maxResults": options.max_results,
            "safeSearch": options.safe_search,
            "regionCode": options.region_code or self._region_code,
            "relevanceLanguage": options.relevance_language or self._relevance_language,
        }

        await self._client.open()
        try:
            response = await self._client.get(
                YOUTUBE_SEARCH_URL,
                params=params,
                api_key_rotator=self._api_keys,
                api_key_param="key",
            )
        except HTTPClientError as e:
            raise SourceFetchFailed(
                f"Video search failed for {keyword!r}: {e}",
                keyword=keyword,
                status_code=e.status_code,
            ) from e

        items = response.json().get("items") or []
        logger.debug(f"Video search for {keyword!r} returned {len(items)} results")
        return [item for item in items if isinstance(item, dict)]

    async def fetch(self, source: Source, limit: int) -> list[dict[str, Any]]:
        if not source.query:
            raise SourceFetchFailed(f"{source.name} has no query", source=source.identifier)
        results = await self.search(source.query, SearchOptions(max_results=limit))
        return results[:limit]


def _slug(text: str) -> str:
    return re.sub(r"\s+", "_", text.strip().lower())


class SampleVideoSearch(SourceFeed):
    """
    Synthetic search results for development and --mock runs.

    Produces two results per keyword in the search API's shape. Ids embed
    the current timestamp, so successive calls yield new videos.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def search(self, keyword: str, options: SearchOptions | None = None) -> list[dict[str, Any]]:
        options = options or SearchOptions()
        now = self._clock()
        stamp = int(now.timestamp() * 1000)
        slug = _slug(keyword)

        templates = [
            (f"{keyword} - Complete Guide {now.year}", f"Comprehensive guide about {keyword}", "explorer"),
            (f"Best {keyword} Experience Guide", f"Complete guide for {keyword} experiences", "guide"),
        ]
        results = []
        for n, (title, description, channel) in enumerate(templates, start=1):
            results.append(
                {
                    "id": {"videoId": f"sample_{slug}_{stamp}_{n}"},
                    "snippet": {
                        "title": title,
                        "description": description,
                        "channelId": f"channel_{slug}_{channel}",
                        "channelTitle": f"{keyword} {channel.title()}",
                        "publishedAt": now.isoformat(),
                        "thumbnails": {
                            "medium": {"url": f"https://img.youtube.com/vi/sample_{stamp}_{n}/mqdefault.jpg"}
                        },
                    },
                }
            )
        return results[: options.max_results]

    async def fetch(self, source: Source, limit: int) -> list[dict[str, Any]]:
        return await self.search(source.query or source.name, SearchOptions(max_results=limit))


def create_video_search(use_sample: bool = False) -> SourceFeed:
    """Real search when an API key is configured, sample search otherwise."""
    settings = get_settings()
    rotator = APIKeyRotator.from_env_var(settings.youtube_api_keys)
    if use_sample or rotator is None:
        if not use_sample:
            logger.warning("No video search API key configured, using sample results")
        return SampleVideoSearch()
    return VideoSearch(rotator)
