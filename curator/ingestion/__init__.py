"""Data ingestion - item schemas, feeds, normalization and deduplication."""

from curator.ingestion.schemas import (
    ApprovalState,
    CandidateItem,
    ContentType,
    StoredItem,
)

__all__ = [
    "ApprovalState",
    "CandidateItem",
    "ContentType",
    "StoredItem",
]
