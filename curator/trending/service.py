"""
Trending signal read from the trending-tags collection.

An active tag flagged ``featured`` is what shortens the video
scheduler's interval; all active tags are reported as trends.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from curator.sources.schemas import parse_priority
from curator.storage.base import TRENDING_TAGS, ContentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Trend:
    """A currently hot topic."""

    keyword: str
    weight: float = 1.0
    featured: bool = False

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Trend | None":
        keyword = record.get("tag") or record.get("keyword") or record.get("title")
        if not keyword or not str(keyword).strip():
            return None
        weight = record.get("weight")
        try:
            weight = float(weight) if weight is not None else 1.0 / parse_priority(record.get("priority"))
        except (TypeError, ValueError, ZeroDivisionError):
            weight = 1.0
        return cls(
            keyword=str(keyword).strip(),
            weight=weight,
            featured=record.get("featured") is True,
        )


class TrendingSignal(ABC):
    """Collaborator telling the scheduler whether anything is trending."""

    @abstractmethod
    async def has_active_trend(self) -> bool:
        ...

    @abstractmethod
    async def active_trends(self) -> list[Trend]:
        ...


class StoreTrendingSignal(TrendingSignal):
    """
    Trending signal backed by the content store.

    Lookup failures read as "no trend": the scheduler falls back to its
    time-of-day interval.
    """

    def __init__(self, store: ContentStore) -> None:
        self._store = store

    async def has_active_trend(self) -> bool:
        try:
            records = await self._store.list_active(TRENDING_TAGS, filters={"featured": True}, limit=1)
        except Exception as e:
            logger.warning("Could not check trending tags: %s", e)
            return False
        return len(records) > 0

    async def active_trends(self) -> list[Trend]:
        """Active trends, highest weight first."""
        try:
            records = await self._store.list_active(TRENDING_TAGS)
        except Exception as e:
            logger.warning("Could not list trending tags: %s", e)
            return []
        trends = [t for t in (Trend.from_record(r) for r in records) if t is not None]
        return sorted(trends, key=lambda t: t.weight, reverse=True)
