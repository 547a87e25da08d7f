"""Approval decisions from channel trust records.

An item is auto-approved only when its channel has an active record that
is verified and flagged for auto-approval. Every other case, including
lookup failures, holds the item for manual review.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from curator.ingestion.schemas import ApprovalState
from curator.storage.base import TRUSTED_CHANNELS, ContentStore
from curator.trust.schemas import TrustRecord

logger = logging.getLogger(__name__)

TrustLookup = Callable[[str], Awaitable["TrustRecord | None"]]


class StoreTrustLookup:
    """Look up trust records in the content store's trusted-channels collection."""

    def __init__(self, store: ContentStore) -> None:
        self._store = store

    async def __call__(self, channel_id: str) -> TrustRecord | None:
        records = await self._store.list_active(
            TRUSTED_CHANNELS,
            filters={"channel_id": channel_id},
            limit=1,
        )
        for record in records:
            trust = TrustRecord.from_record(record)
            if trust is not None:
                return trust
        return None


class ApprovalEngine:
    """Decide the publication state for a channel's items.

    Usage:
        engine = ApprovalEngine()
        state = await engine.decide_approval("UC123", StoreTrustLookup(store))
    """

    @staticmethod
    def approves(record: TrustRecord | None) -> bool:
        """Whether a trust record allows auto-approval."""
        return (
            record is not None
            and record.is_active
            and record.is_verified
            and record.auto_approve
        )

    async def decide_approval(
        self,
        channel_id: str | None,
        lookup: TrustLookup,
    ) -> ApprovalState:
        """
        Return APPROVED for verified auto-approve channels, else PENDING_REVIEW.

        Args:
            channel_id: Platform channel id of the item, if any.
            lookup: Async channel id -> TrustRecord lookup.

        Returns:
            ApprovalState. Never REJECTED; rejection is a manual decision.
        """
        if not channel_id:
            return ApprovalState.PENDING_REVIEW

        try:
            record = await lookup(channel_id)
        except Exception as e:
            logger.warning("Trust lookup failed for %s, holding for review: %s", channel_id, e)
            return ApprovalState.PENDING_REVIEW

        if self.approves(record):
            return ApprovalState.APPROVED
        return ApprovalState.PENDING_REVIEW
