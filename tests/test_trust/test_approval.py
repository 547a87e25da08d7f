"""Tests for trust records and approval decisions."""

from unittest.mock import AsyncMock

import pytest

from curator.ingestion.schemas import ApprovalState
from curator.storage import InMemoryContentStore
from curator.storage.base import TRUSTED_CHANNELS
from curator.trust import ApprovalEngine, StoreTrustLookup, TrustRecord


@pytest.fixture
def engine() -> ApprovalEngine:
    return ApprovalEngine()


def lookup_returning(record: TrustRecord | None) -> AsyncMock:
    return AsyncMock(return_value=record)


class TestTrustRecord:
    """Tests for TrustRecord parsing."""

    def test_from_record(self):
        record = TrustRecord.from_record(
            {"channel_id": "UC1", "verification_status": "VERIFIED", "auto_approve": True}
        )

        assert record.is_verified
        assert record.auto_approve

    def test_auto_approve_must_be_true(self):
        record = TrustRecord.from_record({"channel_id": "UC1", "auto_approve": "yes"})

        assert record.auto_approve is False

    def test_missing_channel_id(self):
        assert TrustRecord.from_record({"channel_name": "No id"}) is None


class TestDecideApproval:
    """Tests for ApprovalEngine.decide_approval."""

    @pytest.mark.asyncio
    async def test_verified_auto_approve_is_approved(self, engine):
        record = TrustRecord("UC1", verification_status="Verified", auto_approve=True)

        state = await engine.decide_approval("UC1", lookup_returning(record))

        assert state is ApprovalState.APPROVED

    @pytest.mark.asyncio
    async def test_verified_without_auto_approve_is_pending(self, engine):
        record = TrustRecord("UC1", verification_status="Verified", auto_approve=False)

        state = await engine.decide_approval("UC1", lookup_returning(record))

        assert state is ApprovalState.PENDING_REVIEW

    @pytest.mark.asyncio
    async def test_unverified_is_pending(self, engine):
        record = TrustRecord("UC1", verification_status="Pending", auto_approve=True)

        assert await engine.decide_approval("UC1", lookup_returning(record)) is ApprovalState.PENDING_REVIEW

    @pytest.mark.asyncio
    async def test_inactive_is_pending(self, engine):
        record = TrustRecord("UC1", verification_status="Verified", auto_approve=True, is_active=False)

        assert await engine.decide_approval("UC1", lookup_returning(record)) is ApprovalState.PENDING_REVIEW

    @pytest.mark.asyncio
    async def test_unknown_channel_is_pending(self, engine):
        assert await engine.decide_approval("UC9", lookup_returning(None)) is ApprovalState.PENDING_REVIEW

    @pytest.mark.asyncio
    async def test_missing_channel_id_skips_lookup(self, engine):
        lookup = lookup_returning(None)

        assert await engine.decide_approval(None, lookup) is ApprovalState.PENDING_REVIEW
        lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_failure_is_pending(self, engine):
        lookup = AsyncMock(side_effect=TimeoutError("slow"))

        assert await engine.decide_approval("UC1", lookup) is ApprovalState.PENDING_REVIEW


class TestStoreTrustLookup:
    """Tests for the store-backed lookup."""

    @pytest.mark.asyncio
    async def test_finds_record_by_channel_id(self):
        store = InMemoryContentStore(
            {
                TRUSTED_CHANNELS: [
                    {"channel_id": "UC1", "verification_status": "Verified", "auto_approve": True},
                    {"channel_id": "UC2", "verification_status": "Pending"},
                ]
            }
        )
        lookup = StoreTrustLookup(store)

        record = await lookup("UC1")

        assert record.channel_id == "UC1"
        assert await ApprovalEngine().decide_approval("UC1", lookup) is ApprovalState.APPROVED
        assert await lookup("UC3") is None
