"""
Per-cycle ingestion stages shared by the news and video schedulers.

fetch() pulls and normalizes candidates from the selected sources;
process() runs each candidate through classifier, approval, dedup and
persistence. Items are processed concurrently under a semaphore, and
writes for one identity key are serialized by a per-key lock. The dedup
check and insert are still not atomic across processes; the store's
unique constraint (DuplicateItemError) closes that window and is counted
as a duplicate.
"""

import asyncio
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from curator.errors import ErrorRecord, PersistenceFailed, SourceFetchFailed
from curator.feed_settings import FeedSettings
from curator.ingestion.deduplication import DeduplicationGate, ExistingLookup
from curator.ingestion.feeds import SourceFeed
from curator.ingestion.normalizer import normalize_rss_entry, normalize_video_result
from curator.ingestion.schemas import ApprovalState, CandidateItem, ContentType
from curator.moderation import BanRule, ContentClassifier
from curator.observability.metrics import get_metrics
from curator.sources.schemas import Source, SourceKind
from curator.storage.base import ContentStore, DuplicateItemError
from curator.trust import ApprovalEngine, TrustLookup

logger = structlog.get_logger(__name__)

_NORMALIZERS: dict[SourceKind, Callable[..., CandidateItem | None]] = {
    SourceKind.RSS_FEED: normalize_rss_entry,
    SourceKind.KEYWORD_SEARCH: normalize_video_result,
}


@dataclass
class FetchOutcome:
    """Candidates and failures from the fetch stage."""

    candidates: list[CandidateItem] = field(default_factory=list)
    fetched: int = 0
    invalid: int = 0
    errors: list[ErrorRecord] = field(default_factory=list)


@dataclass
class ProcessOutcome:
    """Per-item outcome counts from the process stage."""

    stored: int = 0
    approved: int = 0
    pending_review: int = 0
    blocked: int = 0
    duplicates: int = 0
    failed: int = 0
    errors: list[ErrorRecord] = field(default_factory=list)


class IngestionPipeline:
    """
    Fetch and process stages for one content type.

    Usage:
        pipeline = IngestionPipeline(ContentType.NEWS, store, {SourceKind.RSS_FEED: RSSFeed()}, ...)
        fetched = await pipeline.fetch(sources, settings)
        outcome = await pipeline.process(fetched.candidates, rules)
    """

    def __init__(
        self,
        content_type: ContentType,
        store: ContentStore,
        feeds: dict[SourceKind, SourceFeed],
        trust_lookup: TrustLookup,
        existing_lookup: ExistingLookup,
        classifier: ContentClassifier | None = None,
        approval: ApprovalEngine | None = None,
        gate: DeduplicationGate | None = None,
        item_concurrency: int = 4,
        source_timeout: float = 30.0,
    ) -> None:
        self.content_type = content_type
        self._store = store
        self._feeds = feeds
        self._trust_lookup = trust_lookup
        self._existing_lookup = existing_lookup
        self._classifier = classifier or ContentClassifier()
        self._approval = approval or ApprovalEngine()
        self._gate = gate or DeduplicationGate()
        self._item_concurrency = item_concurrency
        self._source_timeout = source_timeout
        self._metrics = get_metrics()
        self._key_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def feeds(self) -> dict[SourceKind, SourceFeed]:
        return self._feeds

    async def close(self) -> None:
        for feed in self._feeds.values():
            await feed.close()

    # ── Fetch ───────────────────────────────────────────────────

    async def _fetch_source(self, source: Source, limit: int) -> list[dict]:
        feed = self._feeds.get(source.kind)
        if feed is None:
            raise SourceFetchFailed(
                f"No feed for {source.kind.value} sources",
                source=source.identifier,
            )
        try:
            return await asyncio.wait_for(feed.fetch(source, limit), timeout=self._source_timeout)
        except asyncio.TimeoutError as e:
            raise SourceFetchFailed(
                f"{source.name} timed out after {self._source_timeout}s",
                source=source.identifier,
            ) from e

    async def fetch(self, sources: list[Source], settings: FeedSettings) -> FetchOutcome:
        """
        Fetch each source in order and normalize its entries.

        A failing source is logged, recorded and skipped.
        """
        outcome = FetchOutcome()
        limit = settings.max_items_per_fetch

        for source in sources:
            try:
                raw_items = (await self._fetch_source(source, limit))[:limit]
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = e if isinstance(e, SourceFetchFailed) else SourceFetchFailed(
                    f"{source.name}: {e}", source=source.identifier, error_type=type(e).__name__
                )
                outcome.errors.append(ErrorRecord.from_exception(error, source=source.name))
                self._metrics.record_source_error(self.content_type, type(e).__name__)
                logger.warning(
                    "Source fetch failed",
                    content_type=self.content_type.value,
                    source=source.name,
                    error=str(e),
                )
                continue

            outcome.fetched += len(raw_items)
            normalize = _NORMALIZERS[source.kind]
            for raw in raw_items:
                try:
                    candidate = normalize(raw, source, settings.max_content_length)
                except Exception as e:
                    logger.debug("Normalization failed", source=source.name, error=str(e))
                    candidate = None
                if candidate is None:
                    outcome.invalid += 1
                    continue
                outcome.candidates.append(candidate)

            logger.info(
                "Source fetched",
                content_type=self.content_type.value,
                source=source.name,
                provenance=source.provenance,
                entries=len(raw_items),
            )

        if outcome.invalid:
            self._metrics.record_item(self.content_type, "invalid", outcome.invalid)
        return outcome

    # ── Process ─────────────────────────────────────────────────

    async def _decide_approval(self, candidate: CandidateItem) -> ApprovalState:
        # News items carry no channel identity; passing moderation publishes them
        if self.content_type is ContentType.NEWS and not candidate.channel_id:
            return ApprovalState.APPROVED
        return await self._approval.decide_approval(candidate.channel_id, self._trust_lookup)

    async def _process_item(
        self,
        candidate: CandidateItem,
        rules: list[BanRule],
        semaphore: asyncio.Semaphore,
        outcome: ProcessOutcome,
    ) -> str:
        async with semaphore:
            verdict = self._classifier.classify(candidate, rules)
            if verdict.blocked:
                outcome.blocked += 1
                logger.info(
                    "Item blocked",
                    content_type=self.content_type.value,
                    title=candidate.title[:80],
                    reason=verdict.reason,
                )
                return "blocked"

            approval = await self._decide_approval(candidate)

            async with self._key_locks[candidate.identity_key]:
                if await self._gate.is_duplicate(candidate, self._existing_lookup):
                    outcome.duplicates += 1
                    return "duplicate"

                try:
                    await self._store.create(self.content_type, candidate.to_record(approval))
                except DuplicateItemError:
                    outcome.duplicates += 1
                    logger.debug("Store rejected duplicate", identity_key=candidate.identity_key)
                    return "duplicate"
                except Exception as e:
                    outcome.failed += 1
                    error = PersistenceFailed(
                        f"Could not store {candidate.identity_key}: {e}",
                        identity_key=candidate.identity_key,
                        error_type=type(e).__name__,
                    )
                    outcome.errors.append(ErrorRecord.from_exception(error))
                    logger.warning(
                        "Item persistence failed",
                        content_type=self.content_type.value,
                        identity_key=candidate.identity_key,
                        error=str(e),
                    )
                    return "failed"

            outcome.stored += 1
            if approval is ApprovalState.APPROVED:
                outcome.approved += 1
            else:
                outcome.pending_review += 1
            return "stored"

    async def process(self, candidates: list[CandidateItem], rules: list[BanRule]) -> ProcessOutcome:
        """Classify, approve, dedup and persist candidates concurrently."""
        outcome = ProcessOutcome()
        unique = self._gate.filter_batch(candidates)
        outcome.duplicates += len(candidates) - len(unique)

        semaphore = asyncio.Semaphore(self._item_concurrency)
        try:
            results = await asyncio.gather(
                *(self._process_item(c, rules, semaphore, outcome) for c in unique),
                return_exceptions=True,
            )
        finally:
            self._key_locks.clear()

        for candidate, result in zip(unique, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                outcome.failed += 1
                outcome.errors.append(
                    ErrorRecord.from_exception(result, identity_key=candidate.identity_key)
                )
                logger.error(
                    "Unexpected item error",
                    content_type=self.content_type.value,
                    identity_key=candidate.identity_key,
                    error=str(result),
                )

        for label, count in (
            ("stored", outcome.stored),
            ("blocked", outcome.blocked),
            ("duplicate", outcome.duplicates),
            ("failed", outcome.failed),
        ):
            if count:
                self._metrics.record_item(self.content_type, label, count)
        return outcome
