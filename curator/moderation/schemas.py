"""Ban rules and classification verdicts."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


def _normalize(value: Any) -> str:
    return str(value or "").strip().lower().replace(" ", "_").replace("-", "_")


class MatchStrategy(str, Enum):
    """How a rule pattern is compared with the scoped text."""

    EXACT = "exact"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"

    @classmethod
    def parse(cls, value: Any) -> "MatchStrategy":
        """Accept CMS spellings like 'Starts With'; unknown values mean contains."""
        try:
            return cls(_normalize(value))
        except ValueError:
            return cls.CONTAINS


class RuleScope(str, Enum):
    """Which item text a keyword rule inspects."""

    TITLE = "title"
    DESCRIPTION = "description"
    ALL = "all"

    @classmethod
    def parse(cls, value: Any) -> "RuleScope":
        try:
            return cls(_normalize(value))
        except ValueError:
            return cls.ALL


class RuleKind(str, Enum):
    KEYWORD = "keyword"
    CHANNEL = "channel"


# Channel bans at this level are recorded but do not block
UNDER_REVIEW = "under_review"


@dataclass(frozen=True)
class BanRule:
    """A banned keyword or banned channel.

    For keyword rules ``pattern`` is the keyword; for channel rules it is
    the platform channel id, always matched exactly.
    """

    pattern: str
    strategy: MatchStrategy = MatchStrategy.CONTAINS
    scope: RuleScope = RuleScope.ALL
    is_active: bool = True
    kind: RuleKind = RuleKind.KEYWORD
    ban_level: str | None = None
    provenance: str = "remote"

    @property
    def blocks(self) -> bool:
        """Whether a match on this rule blocks the item."""
        if not self.is_active:
            return False
        if self.kind is RuleKind.CHANNEL:
            return _normalize(self.ban_level) != UNDER_REVIEW
        return True

    @classmethod
    def keyword(
        cls,
        pattern: str,
        strategy: MatchStrategy = MatchStrategy.CONTAINS,
        scope: RuleScope = RuleScope.ALL,
        provenance: str = "remote",
    ) -> "BanRule":
        return cls(pattern=pattern, strategy=strategy, scope=scope, provenance=provenance)

    @classmethod
    def from_keyword_record(cls, record: dict[str, Any]) -> "BanRule | None":
        """Build a keyword rule from a store record. Returns None when it has no keyword."""
        pattern = record.get("keyword") or record.get("Keyword") or record.get("pattern")
        if not pattern or not str(pattern).strip():
            return None
        active = record.get("active", record.get("is_active", record.get("IsActive", True)))
        return cls(
            pattern=str(pattern).strip(),
            strategy=MatchStrategy.parse(
                record.get("match_type") or record.get("MatchType") or record.get("strategy")
            ),
            scope=RuleScope.parse(record.get("applies_to") or record.get("scope")),
            is_active=active is not False,
        )

    @classmethod
    def from_channel_record(cls, record: dict[str, Any]) -> "BanRule | None":
        """Build a channel rule from a store record. Returns None when it has no channel id."""
        channel_id = record.get("channel_id") or record.get("ChannelId")
        if not channel_id:
            return None
        active = record.get("active", record.get("is_active", True))
        return cls(
            pattern=str(channel_id),
            strategy=MatchStrategy.EXACT,
            is_active=active is not False,
            kind=RuleKind.CHANNEL,
            ban_level=record.get("ban_level"),
        )


@dataclass(frozen=True)
class Verdict:
    """Outcome of classifying one item."""

    allowed: bool
    rule: BanRule | None = None
    reason: str = ""

    @property
    def blocked(self) -> bool:
        return not self.allowed

    @classmethod
    def allow(cls) -> "Verdict":
        return cls(allowed=True)

    @classmethod
    def block(cls, rule: BanRule, reason: str) -> "Verdict":
        return cls(allowed=False, rule=rule, reason=reason)


BUILTIN_KEYWORDS: tuple[str, ...] = (
    "scam",
    "fake",
    "illegal",
    "dangerous",
    "adult",
    "gambling",
)


def builtin_rules() -> list[BanRule]:
    """The minimal keyword rule set used when remote rules are unavailable."""
    return [BanRule.keyword(k, provenance="builtin") for k in BUILTIN_KEYWORDS]
