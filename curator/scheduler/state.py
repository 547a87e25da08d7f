"""Scheduler state, cycle results and status snapshots."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from curator.errors import ErrorRecord
from curator.ingestion.schemas import ContentType
from curator.retention.schemas import RetentionReport


class SchedulerState(str, Enum):
    """Per-content-type scheduler state. Cyclic; idle between cycles."""

    IDLE = "idle"
    FETCHING = "fetching"
    PROCESSING = "processing"
    RETAINING = "retaining"


class CycleOutcome(str, Enum):
    SUCCESS = "success"
    NO_SOURCES = "no_sources"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class CycleResult:
    """What one cycle did."""

    content_type: ContentType
    outcome: CycleOutcome = CycleOutcome.SUCCESS
    started_at: datetime | None = None
    finished_at: datetime | None = None
    source_provenance: str | None = None
    settings_provenance: str | None = None
    sources: list[str] = field(default_factory=list)
    fetched: int = 0
    invalid: int = 0
    stored: int = 0
    approved: int = 0
    pending_review: int = 0
    blocked: int = 0
    duplicates: int = 0
    failed: int = 0
    retention: RetentionReport | None = None
    errors: list[ErrorRecord] = field(default_factory=list)
    next_delay_seconds: float | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_type": self.content_type.value,
            "outcome": self.outcome.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "source_provenance": self.source_provenance,
            "settings_provenance": self.settings_provenance,
            "sources": self.sources,
            "fetched": self.fetched,
            "invalid": self.invalid,
            "stored": self.stored,
            "approved": self.approved,
            "pending_review": self.pending_review,
            "blocked": self.blocked,
            "duplicates": self.duplicates,
            "failed": self.failed,
            "retention": self.retention.to_dict() if self.retention else None,
            "errors": [e.to_dict() for e in self.errors],
            "next_delay_seconds": self.next_delay_seconds,
        }


@dataclass
class SchedulerStatus:
    """Snapshot of a scheduler, as exposed to operators."""

    content_type: ContentType
    running: bool
    state: SchedulerState
    cycle_count: int
    successful_cycles: int
    last_success_at: datetime | None
    last_result: CycleResult | None
    errors: list[ErrorRecord]
    next_delay_seconds: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_type": self.content_type.value,
            "running": self.running,
            "state": self.state.value,
            "cycle_count": self.cycle_count,
            "successful_cycles": self.successful_cycles,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_result": self.last_result.to_dict() if self.last_result else None,
            "error_count": len(self.errors),
            "errors": [e.to_dict() for e in self.errors],
            "next_delay_seconds": self.next_delay_seconds,
        }
