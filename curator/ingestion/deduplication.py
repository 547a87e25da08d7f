"""
Identity-key deduplication against the content store.

The identity key is the canonical URL for news and the platform video id
for video. Repeats within one fetched batch are dropped before any store
lookup. A failed lookup is treated as "not a duplicate": ingestion keeps
going and the store's unique constraint catches the rare double write.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from curator.ingestion.schemas import CandidateItem
from curator.storage.base import ContentStore

logger = logging.getLogger(__name__)

ExistingLookup = Callable[[CandidateItem], Awaitable[bool]]


class StoreExistingLookup:
    """Check the content store for a stored item with the same identity key."""

    def __init__(self, store: ContentStore) -> None:
        self._store = store

    async def __call__(self, candidate: CandidateItem) -> bool:
        count = await self._store.count(
            candidate.content_type,
            filters={"identity_key": candidate.identity_key},
        )
        return count > 0


@dataclass
class DedupStats:
    """Counters for one gate instance."""

    checked: int = 0
    duplicates: int = 0
    batch_duplicates: int = 0
    degraded: int = 0


def unique_in_batch(candidates: Iterable[CandidateItem]) -> list[CandidateItem]:
    """Drop later candidates whose identity key already appeared in the batch."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for candidate in candidates:
        key = (candidate.content_type.value, candidate.identity_key)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


class DeduplicationGate:
    """
    Decide whether a candidate was already ingested.

    is_duplicate() does not mutate the gate's view of the store, so two
    calls with the same candidate and an unchanged store agree.

    Usage:
        gate = DeduplicationGate()
        lookup = StoreExistingLookup(store)
        for candidate in gate.filter_batch(candidates):
            if await gate.is_duplicate(candidate, lookup):
                continue
    """

    def __init__(self) -> None:
        self._stats = DedupStats()

    @property
    def stats(self) -> DedupStats:
        return self._stats

    def filter_batch(self, candidates: list[CandidateItem]) -> list[CandidateItem]:
        """Remove within-batch repeats, keeping first occurrences."""
        unique = unique_in_batch(candidates)
        dropped = len(candidates) - len(unique)
        if dropped:
            self._stats.batch_duplicates += dropped
            logger.debug(f"Dedup batch: {len(candidates)} input, {dropped} repeated keys")
        return unique

    async def is_duplicate(self, candidate: CandidateItem, lookup: ExistingLookup) -> bool:
        """
        Check a candidate against stored items.

        Returns:
            True if an item with the same identity key is stored. False when
            it is not, or when the lookup fails.
        """
        self._stats.checked += 1
        try:
            exists = await lookup(candidate)
        except Exception as e:
            self._stats.degraded += 1
            logger.warning(
                f"Dedup lookup failed for {candidate.identity_key}, "
                f"assuming not duplicate: {e}"
            )
            return False

        if exists:
            self._stats.duplicates += 1
            logger.debug(f"Duplicate: {candidate.identity_key}")
        return bool(exists)
