"""
Item schemas for the ingestion pipeline.

CandidateItem is the normalized, not-yet-stored form of one fetched entry.
It only lives for the duration of a cycle. StoredItem is the shape read
back from the content store; it is what retention and deduplication see.

Every external field access happens in the normalizer, never here: these
models assume their inputs are already well-formed.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse a timestamp from a store record or feed field.

    Accepts datetimes, ISO-8601 strings (with or without a trailing Z) and
    epoch seconds. Naive values are assumed to be UTC. Returns None for
    anything unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ContentType(str, Enum):
    """Content types with their own scheduler, settings and corpus."""

    NEWS = "news"
    VIDEO = "video"


class ApprovalState(str, Enum):
    """Publication state of a stored item."""

    APPROVED = "approved"
    PENDING_REVIEW = "pending_review"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: Any) -> "ApprovalState":
        """Map store spellings ('Approved', 'Pending Review', 'pending') to a state."""
        text = str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
        if text == cls.APPROVED.value:
            return cls.APPROVED
        if text == cls.REJECTED.value:
            return cls.REJECTED
        return cls.PENDING_REVIEW


class CandidateItem(BaseModel):
    """
    A fetched item that has not been stored yet.

    identity_key is the canonical URL for news and the platform video id
    for video; it is the deduplication key.
    """

    content_type: ContentType
    identity_key: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    body: str = ""
    url: str | None = None
    published_at: datetime = Field(default_factory=_utc_now)
    channel_id: str | None = None
    channel_name: str | None = None
    image_url: str | None = None
    image_alt: str = ""
    category: str = "General"
    source_name: str = ""
    provenance: str = "remote"
    is_breaking: bool = False
    raw_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("title")
    @classmethod
    def normalize_title(cls, v: str) -> str:
        """Collapse whitespace in titles."""
        return " ".join(v.split())

    def to_record(
        self,
        approval_state: "ApprovalState",
        moderation_outcome: str = "allowed",
    ) -> dict[str, Any]:
        """Build the record written to the content store."""
        return {
            "identity_key": self.identity_key,
            "title": self.title,
            "body": self.body,
            "url": self.url,
            "published_at": self.published_at.isoformat(),
            "channel_id": self.channel_id,
            "channel_name": self.channel_name,
            "image_url": self.image_url,
            "image_alt": self.image_alt,
            "category": self.category,
            "source_name": self.source_name,
            "provenance": self.provenance,
            "is_breaking": self.is_breaking,
            "is_pinned": False,
            "approval_state": approval_state.value,
            "moderation_outcome": moderation_outcome,
        }


def _record_active(record: dict[str, Any]) -> bool:
    """False for an explicit inactive flag or an 'inactive' status."""
    if record.get("is_active", record.get("active", True)) is False:
        return False
    status = record.get("status") or record.get("videostatus") or ""
    return str(status).strip().lower() != "inactive"


class StoredItem(BaseModel):
    """An item as read back from the content store."""

    id: str
    content_type: ContentType
    identity_key: str = ""
    title: str = ""
    published_at: datetime | None = None
    created_at: datetime | None = None
    approval_state: ApprovalState = ApprovalState.PENDING_REVIEW
    moderation_outcome: str | None = None
    is_pinned: bool = False
    is_breaking: bool = False
    is_active: bool = True

    @property
    def recency(self) -> datetime:
        """Timestamp used for retention ordering: publish time, then creation time."""
        return (
            self.published_at
            or self.created_at
            or datetime.min.replace(tzinfo=timezone.utc)
        )

    @classmethod
    def from_record(
        cls,
        content_type: ContentType,
        record: dict[str, Any],
    ) -> "StoredItem":
        """
        Build a StoredItem from a store record.

        Tolerates missing fields; only the id is required.

        Raises:
            ValueError: If the record has no id.
        """
        record_id = record.get("id")
        if record_id is None or record_id == "":
            raise ValueError("Stored record has no id")
        return cls(
            id=str(record_id),
            content_type=content_type,
            identity_key=str(record.get("identity_key") or record.get("url") or ""),
            title=str(record.get("title") or ""),
            published_at=parse_datetime(record.get("published_at")),
            created_at=parse_datetime(record.get("created_at")),
            approval_state=ApprovalState.parse(record.get("approval_state")),
            moderation_outcome=record.get("moderation_outcome"),
            is_pinned=bool(record.get("is_pinned", False)),
            is_breaking=bool(record.get("is_breaking", False) or record.get("featured", False)),
            is_active=_record_active(record),
        )
