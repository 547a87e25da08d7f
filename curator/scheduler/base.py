"""
Ingestion scheduler base.

One scheduler runs per content type. Each cycle resolves sources and
settings, fetches and processes candidates through the pipeline, runs
retention when the subclass says so and computes the next delay.

Features:
- Re-entrancy guard (overlapping triggers are reported as skipped)
- Failure isolation (a failed cycle never stops the loop)
- Graceful shutdown (an in-flight cycle finishes before the loop exits)
- Housekeeping loop for rejected (and, for video, deactivated) items
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Coroutine
from datetime import datetime, timezone
from typing import Any

import structlog

from curator.config.settings import Settings, get_settings
from curator.errors import CycleFailed, ErrorRecord
from curator.feed_settings import FeedSettings, FeedSettingsService, default_settings
from curator.ingestion.deduplication import StoreExistingLookup
from curator.ingestion.feeds import SourceFeed
from curator.ingestion.schemas import ContentType
from curator.moderation import RuleService
from curator.observability.logging import bind_context, clear_context
from curator.observability.metrics import get_metrics
from curator.resolver import ConfigResolver
from curator.retention import RetentionManager, RetentionReport
from curator.scheduler.config import SchedulerConfig
from curator.scheduler.interval import fixed_news_delay, load_timezone
from curator.scheduler.pipeline import IngestionPipeline
from curator.scheduler.state import CycleOutcome, CycleResult, SchedulerState, SchedulerStatus
from curator.sources import SourcesService, select_for_cycle
from curator.sources.schemas import SourceKind
from curator.storage.base import ContentStore
from curator.trust import StoreTrustLookup

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionScheduler(ABC):
    """
    Base class for the per-content-type schedulers.

    Subclasses decide when retention runs, how long to wait between
    cycles and which extra background loops to start.

    Usage:
        scheduler = NewsScheduler(store)
        result = await scheduler.run_cycle()  # One cycle
        await scheduler.start()               # Runs until stop()
    """

    content_type: ContentType
    # Whether the daily housekeeping loop also purges deactivated items
    purges_inactive: bool = False

    def __init__(
        self,
        store: ContentStore,
        feeds: dict[SourceKind, SourceFeed],
        resolver: ConfigResolver | None = None,
        config: SchedulerConfig | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize scheduler.

        Args:
            store: Content store for items and auxiliary collections
            feeds: Source feed per source kind
            resolver: Config resolver (or create with defaults)
            config: Scheduler timing config (or load from env)
            settings: Process settings (or load from env)
            clock: Returns the current aware datetime
        """
        self._store = store
        self._app_settings = settings or get_settings()
        self._config = config or SchedulerConfig()
        self._resolver = resolver or ConfigResolver()
        self._clock = clock or _utcnow
        self._tz = load_timezone(self._app_settings.scheduler_timezone)
        self._metrics = get_metrics()

        self._settings_service = FeedSettingsService(store, self._resolver)
        self._sources_service = SourcesService(store, self._resolver)
        self._rule_service = RuleService(store, self._resolver)
        self._retention = RetentionManager(
            store,
            self._settings_service,
            rejected_retention_days=self._app_settings.rejected_retention_days,
            inactive_retention_days=self._app_settings.inactive_retention_days,
        )
        self._pipeline = IngestionPipeline(
            self.content_type,
            store,
            feeds,
            trust_lookup=StoreTrustLookup(store),
            existing_lookup=StoreExistingLookup(store),
            item_concurrency=self._app_settings.item_concurrency,
            source_timeout=self._config.source_timeout_seconds,
        )

        self._running = False
        self._in_cycle = False
        self._state = SchedulerState.IDLE
        self._stop_event = asyncio.Event()
        self._retention_lock = asyncio.Lock()
        self._tasks: list[asyncio.Task] = []

        self._cycle_count = 0
        self._successful_cycles = 0
        self._last_success_at: datetime | None = None
        self._last_result: CycleResult | None = None
        self._errors: deque[ErrorRecord] = deque(maxlen=self._config.error_history)
        self._next_delay: float | None = None
        self._last_settings: FeedSettings = default_settings(self.content_type)

    # ── Subclass hooks ──────────────────────────────────────────

    @abstractmethod
    async def should_retain(self, settings: FeedSettings, now: datetime) -> bool:
        """Whether this cycle should run retention."""

    @abstractmethod
    async def compute_delay(self, settings: FeedSettings, now: datetime) -> float:
        """Seconds to wait before the next cycle."""

    def background_loops(self) -> list[Coroutine[Any, Any, None]]:
        """Extra loops started alongside the cycle loop."""
        return [self._purge_loop()]

    # ── Properties ──────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def pipeline(self) -> IngestionPipeline:
        return self._pipeline

    @property
    def retention(self) -> RetentionManager:
        return self._retention

    def status(self) -> SchedulerStatus:
        """Snapshot of counters, state and recent errors."""
        return SchedulerStatus(
            content_type=self.content_type,
            running=self._running,
            state=self._state,
            cycle_count=self._cycle_count,
            successful_cycles=self._successful_cycles,
            last_success_at=self._last_success_at,
            last_result=self._last_result,
            errors=list(self._errors),
            next_delay_seconds=self._next_delay,
        )

    # ── Cycle ───────────────────────────────────────────────────

    async def run_cycle(self) -> CycleResult:
        """
        Run one ingestion cycle.

        Never raises for cycle-level failures: they are logged, recorded
        in the error list and reflected in the result's outcome. A call
        made while a cycle is in progress returns a skipped result.
        """
        if self._in_cycle:
            logger.info("Cycle already in progress, skipping", content_type=self.content_type.value)
            now = self._clock()
            result = CycleResult(
                content_type=self.content_type,
                outcome=CycleOutcome.SKIPPED,
                started_at=now,
                finished_at=now,
            )
            self._metrics.record_cycle(self.content_type, result.outcome.value)
            return result

        self._in_cycle = True
        started = time.monotonic()
        result = CycleResult(content_type=self.content_type, started_at=self._clock())
        bind_context(content_type=self.content_type.value, cycle=self._cycle_count + 1)

        try:
            await self._execute(result)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = CycleFailed(
                f"{self.content_type.value} cycle failed: {e}",
                error_type=type(e).__name__,
            )
            result.outcome = CycleOutcome.FAILED
            result.errors.append(ErrorRecord.from_exception(error))
            logger.error("Cycle failed", error=str(e), error_type=type(e).__name__)
        finally:
            self._in_cycle = False
            self._state = SchedulerState.IDLE

        try:
            delay, error = await self._resolve_delay(self._last_settings, self._clock())
            result.next_delay_seconds = delay
            if error is not None:
                result.errors.append(error)
        finally:
            result.finished_at = self._clock()
            self._finish(result, time.monotonic() - started)
            clear_context()
        return result

    async def _execute(self, result: CycleResult) -> None:
        self._state = SchedulerState.FETCHING

        resolved_sources = await self._sources_service.get_sources(self.content_type)
        result.source_provenance = resolved_sources.provenance.value
        selected = select_for_cycle(resolved_sources.value, self._app_settings.sources_per_cycle)
        if not selected:
            result.outcome = CycleOutcome.NO_SOURCES
            logger.warning("No usable sources", provenance=result.source_provenance)
            return
        result.sources = [s.name for s in selected]

        resolved_settings = await self._settings_service.get_settings(self.content_type)
        settings = resolved_settings.value
        self._last_settings = settings
        result.settings_provenance = resolved_settings.provenance.value

        fetched = await self._pipeline.fetch(selected, settings)
        result.fetched = fetched.fetched
        result.invalid = fetched.invalid
        result.errors.extend(fetched.errors)

        self._state = SchedulerState.PROCESSING
        rule_set = await self._rule_service.load_rules(self.content_type, settings)
        if rule_set.degraded is not None:
            result.errors.append(ErrorRecord.from_exception(rule_set.degraded))

        processed = await self._pipeline.process(fetched.candidates, rule_set.rules)
        result.stored = processed.stored
        result.approved = processed.approved
        result.pending_review = processed.pending_review
        result.blocked = processed.blocked
        result.duplicates = processed.duplicates
        result.failed = processed.failed
        result.errors.extend(processed.errors)

        now = self._clock()
        if await self.should_retain(settings, now):
            self._state = SchedulerState.RETAINING
            report = await self._retain(settings, now, result)
            result.retention = report

        logger.info(
            "Cycle completed",
            sources=result.sources,
            fetched=result.fetched,
            stored=result.stored,
            blocked=result.blocked,
            duplicates=result.duplicates,
            failed=result.failed,
        )

    async def _retain(
        self,
        settings: FeedSettings,
        now: datetime,
        result: CycleResult,
    ) -> RetentionReport | None:
        try:
            report = await self.run_retention(settings=settings, now=now)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            result.errors.append(ErrorRecord.from_exception(e, stage="retention"))
            logger.error("Retention failed", error=str(e))
            return None
        if report is not None and report.error is not None:
            result.errors.append(ErrorRecord.from_exception(report.error))
        return report

    def _finish(self, result: CycleResult, latency: float) -> None:
        self._cycle_count += 1
        if result.outcome is CycleOutcome.SUCCESS:
            self._successful_cycles += 1
            self._last_success_at = result.finished_at
        self._last_result = result
        self._errors.extend(result.errors)

        if result.next_delay_seconds is not None:
            self._next_delay = result.next_delay_seconds
            self._metrics.set_next_delay(self.content_type, result.next_delay_seconds)
        self._metrics.record_cycle(self.content_type, result.outcome.value, latency)

    # ── Retention ───────────────────────────────────────────────

    async def run_retention(
        self,
        settings: FeedSettings | None = None,
        now: datetime | None = None,
        dry_run: bool = False,
        only_if_due: bool = False,
    ) -> RetentionReport | None:
        """
        Run retention once, serialized with any other retention run.

        Returns None when ``only_if_due`` is set and the run is not due.
        """
        async with self._retention_lock:
            if settings is None:
                settings = (await self._settings_service.get_settings(self.content_type)).value
            now = now or self._clock()
            if only_if_due and not self._retention.is_due(settings, now):
                return None
            return await self._retention.run(self.content_type, settings, now, dry_run=dry_run)

    async def purge_rejected(self, older_than_days: int | None = None) -> RetentionReport:
        """Hard-delete rejected items older than the configured retention."""
        async with self._retention_lock:
            return await self._retention.purge_rejected(
                self.content_type, older_than_days, now=self._clock()
            )

    async def purge_inactive(self, older_than_days: int | None = None) -> RetentionReport:
        """Hard-delete deactivated items older than the configured retention."""
        async with self._retention_lock:
            return await self._retention.purge_inactive(
                self.content_type, older_than_days, now=self._clock()
            )

    async def _resolve_delay(
        self,
        settings: FeedSettings,
        now: datetime,
    ) -> tuple[float, ErrorRecord | None]:
        """compute_delay(), falling back to the fetch interval if it raises."""
        try:
            return await self.compute_delay(settings, now), None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Delay computation failed, using fetch interval",
                content_type=self.content_type.value,
                error=str(e),
            )
            return fixed_news_delay(settings), ErrorRecord.from_exception(e, stage="compute_delay")

    async def next_delay(self) -> float:
        """Delay the scheduler would wait if a cycle finished now."""
        settings = (await self._settings_service.get_settings(self.content_type)).value
        delay, error = await self._resolve_delay(settings, self._clock())
        if error is not None:
            self._errors.append(error)
        return delay

    # ── Loops ───────────────────────────────────────────────────

    async def _sleep(self, seconds: float) -> bool:
        """Wait up to ``seconds``; return True if stop() was called."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    def _record_error(self, exc: Exception, **context: Any) -> None:
        self._errors.append(ErrorRecord.from_exception(exc, **context))

    async def _cycle_loop(self) -> None:
        logger.info("Starting scheduler", content_type=self.content_type.value)

        if not self._config.run_on_start:
            if await self._sleep(await self.next_delay()):
                return

        while self._running:
            result = await self.run_cycle()
            delay = result.next_delay_seconds
            if delay is None:
                delay, _ = await self._resolve_delay(self._last_settings, self._clock())
            logger.info(
                "Next cycle scheduled",
                content_type=self.content_type.value,
                delay_seconds=round(delay, 1),
            )
            if await self._sleep(delay):
                break

        logger.info("Scheduler stopped", content_type=self.content_type.value)

    async def _purge_loop(self) -> None:
        interval = self._config.purge_interval_hours * 3600.0
        while self._running:
            if await self._sleep(interval):
                break
            purges = [("purge_rejected", self.purge_rejected)]
            if self.purges_inactive:
                purges.append(("purge_inactive", self.purge_inactive))
            for stage, purge in purges:
                try:
                    await purge()
                except Exception as e:
                    self._record_error(e, stage=stage)
                    logger.error(
                        "Housekeeping purge failed",
                        content_type=self.content_type.value,
                        stage=stage,
                        error=str(e),
                    )

    async def start(self) -> None:
        """
        Start the scheduler.

        Runs until stop() is called. Background loops share the stop signal.
        """
        self._running = True
        self._stop_event.clear()

        try:
            self._tasks = [
                asyncio.create_task(
                    self._cycle_loop(),
                    name=f"scheduler_{self.content_type.value}",
                ),
                *(
                    asyncio.create_task(loop, name=f"housekeeping_{self.content_type.value}")
                    for loop in self.background_loops()
                ),
            ]
            await asyncio.gather(*self._tasks, return_exceptions=True)

        except asyncio.CancelledError:
            logger.info("Scheduler cancelled", content_type=self.content_type.value)
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Stop scheduling new cycles; an in-flight cycle runs to completion."""
        logger.info("Stopping scheduler", content_type=self.content_type.value)
        self._running = False
        self._stop_event.set()

    async def _cleanup(self) -> None:
        self._running = False
        await self._pipeline.close()
        self._tasks.clear()
        logger.info("Scheduler cleaned up", content_type=self.content_type.value)
