"""Data models for the sources module."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

_PRIORITY_WORDS = {"high": 1, "medium": 2, "low": 3}

# Priority given to records that carry none
DEFAULT_PRIORITY = 3


class SourceKind(str, Enum):
    """How items are pulled from a source."""

    RSS_FEED = "rss_feed"
    KEYWORD_SEARCH = "keyword_search"


def parse_priority(value: Any, default: int = DEFAULT_PRIORITY) -> int:
    """Accept integers, numeric strings and High/Medium/Low."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _PRIORITY_WORDS:
            return _PRIORITY_WORDS[text]
        if text.lstrip("-").isdigit():
            return int(text)
    return default


@dataclass
class Source:
    """An external origin of content: an RSS feed or a search keyword.

    Sources are read-only to the pipeline. A source that is inactive or
    missing its endpoint/query is skipped, never repaired.
    """

    identifier: str
    name: str
    kind: SourceKind
    endpoint: str | None = None
    query: str | None = None
    is_active: bool = True
    priority: int = DEFAULT_PRIORITY
    category: str = "General"
    provenance: str = "remote"

    @property
    def is_usable(self) -> bool:
        if not self.is_active:
            return False
        if self.kind is SourceKind.RSS_FEED:
            return bool(self.endpoint)
        return bool(self.query)

    @classmethod
    def from_record(
        cls,
        record: dict[str, Any],
        kind: SourceKind,
        provenance: str = "remote",
    ) -> "Source":
        """Build a source from a store or seed record, tolerating missing fields."""
        name = str(record.get("name") or record.get("tag") or record.get("title") or "").strip()
        endpoint = record.get("endpoint") or record.get("rss_url") or record.get("url")
        query = record.get("query") or record.get("tag") or record.get("keyword")
        active = record.get("is_active", record.get("active", record.get("isActive", True)))

        raw_kind = record.get("kind") or record.get("source_type") or record.get("sourceType")
        try:
            kind = SourceKind(raw_kind) if raw_kind else kind
        except ValueError:
            pass

        return cls(
            identifier=str(record.get("identifier") or record.get("id") or name),
            name=name or str(endpoint or query or ""),
            kind=kind,
            endpoint=str(endpoint).strip() if endpoint else None,
            query=str(query).strip() if query else None,
            is_active=active is not False,
            priority=parse_priority(record.get("priority")),
            category=str(record.get("category") or "General"),
            provenance=provenance,
        )
