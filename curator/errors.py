"""
Error taxonomy for the ingestion pipeline.

None of these are fatal to the process. Each is raised at the point of
failure, caught by the component that owns the recovery, logged, and
recorded on the owning scheduler's error list.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class CuratorError(Exception):
    """Base exception for pipeline errors."""

    kind = "error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class ConfigUnavailable(CuratorError):
    """A provider in a fallback chain failed or returned nothing usable."""

    kind = "config_unavailable"


class SourceFetchFailed(CuratorError):
    """A single source could not be fetched."""

    kind = "source_fetch_failed"


class ClassificationDegraded(CuratorError):
    """The rule set could not be loaded; built-in rules were used."""

    kind = "classification_degraded"


class PersistenceFailed(CuratorError):
    """A single item could not be written to the content store."""

    kind = "persistence_failed"


class RetentionPartialFailure(CuratorError):
    """One or more retention deletions failed."""

    kind = "retention_partial_failure"


class CycleFailed(CuratorError):
    """An unexpected error outside the per-item loop."""

    kind = "cycle_failed"


@dataclass
class ErrorRecord:
    """A recorded failure, as exposed through scheduler status."""

    kind: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_exception(cls, exc: Exception, **context: Any) -> "ErrorRecord":
        """Build a record from any exception, keeping CuratorError context."""
        merged = dict(getattr(exc, "context", {}) or {})
        merged.update(context)
        kind = exc.kind if isinstance(exc, CuratorError) else type(exc).__name__
        return cls(kind=kind, message=str(exc), context=merged)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "context": self.context,
            "at": self.at.isoformat(),
        }
