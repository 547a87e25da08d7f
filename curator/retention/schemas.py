"""Retention run reports."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from curator.errors import RetentionPartialFailure
from curator.feed_settings import RetentionMode
from curator.ingestion.schemas import ContentType


@dataclass
class RetentionReport:
    """Outcome of one retention or housekeeping run.

    A run with failed deletions still succeeds; ``failed`` and ``error``
    describe what was skipped.
    """

    content_type: ContentType
    policy: str
    mode: RetentionMode | None = None
    considered: int = 0
    planned: int = 0
    deleted: int = 0
    failed: int = 0
    dry_run: bool = False
    stats_persisted: bool = False
    at: datetime | None = None
    error: RetentionPartialFailure | None = None
    deleted_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_type": self.content_type.value,
            "policy": self.policy,
            "mode": self.mode.value if self.mode else None,
            "considered": self.considered,
            "planned": self.planned,
            "deleted": self.deleted,
            "failed": self.failed,
            "dry_run": self.dry_run,
            "stats_persisted": self.stats_persisted,
            "at": self.at.isoformat() if self.at else None,
        }
