"""Trust records and the approval engine."""

from curator.trust.schemas import TrustRecord
from curator.trust.service import ApprovalEngine, StoreTrustLookup, TrustLookup

__all__ = [
    "ApprovalEngine",
    "StoreTrustLookup",
    "TrustLookup",
    "TrustRecord",
]
