"""Schema definitions for channel trust records.

Trust records are admin-managed entries in the trusted-channels
collection. The pipeline only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

VERIFIED = "verified"


@dataclass
class TrustRecord:
    """Trust status of one platform channel.

    Attributes:
        channel_id: Platform channel identifier.
        platform: Source platform (youtube).
        channel_name: Display name.
        verification_status: Verified, Pending, Rejected (case-insensitive).
        auto_approve: Publish this channel's items without review.
        trust_level: Trust tier (High, Medium, Low).
        category: Default content category.
        is_active: Inactive records are ignored.
    """

    channel_id: str
    platform: str = "youtube"
    channel_name: str = ""
    verification_status: str = ""
    auto_approve: bool = False
    trust_level: str = ""
    category: str = ""
    is_active: bool = True

    @property
    def is_verified(self) -> bool:
        return self.verification_status.strip().lower() == VERIFIED

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> TrustRecord | None:
        """Build a trust record from a store record. Returns None without a channel id."""
        channel_id = record.get("channel_id")
        if not channel_id:
            return None
        active = record.get("active", record.get("is_active", True))
        return cls(
            channel_id=str(channel_id),
            platform=str(record.get("platform") or "youtube"),
            channel_name=str(record.get("channel_name") or ""),
            verification_status=str(record.get("verification_status") or ""),
            auto_approve=record.get("auto_approve") is True,
            trust_level=str(record.get("trust_level") or ""),
            category=str(record.get("category") or ""),
            is_active=active is not False,
        )
