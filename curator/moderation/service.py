"""
Rule loading for the content classifier.

Keyword rules come from the banned-keyword collection, falling back to
the built-in minimal set when it is empty or unreadable; channel bans come
from the banned-channel collection with no fallback. Only an unreadable
keyword collection marks classification as degraded, and a rule fetch
failure never fails a cycle.
"""

from dataclasses import dataclass, field

import structlog

from curator.errors import ClassificationDegraded
from curator.feed_settings import FeedSettings
from curator.ingestion.schemas import ContentType
from curator.moderation.schemas import BanRule, builtin_rules
from curator.resolver import ConfigResolver, Provenance, Provider
from curator.storage.base import BANNED_CHANNELS, BANNED_KEYWORDS, ContentStore

logger = structlog.get_logger(__name__)


@dataclass
class RuleSet:
    """Rules in effect for one cycle."""

    rules: list[BanRule] = field(default_factory=list)
    keyword_provenance: Provenance = Provenance.REMOTE
    degraded: ClassificationDegraded | None = None

    def __len__(self) -> int:
        return len(self.rules)


class RuleService:
    """Load the ban rules for a content type.

    Usage:
        service = RuleService(store, resolver)
        rule_set = await service.load_rules(ContentType.VIDEO, settings)
        verdict = classifier.classify(item, rule_set.rules)
    """

    def __init__(self, store: ContentStore, resolver: ConfigResolver) -> None:
        self._store = store
        self._resolver = resolver

    async def _keyword_rules(self) -> list[BanRule]:
        records = await self._store.list_active(BANNED_KEYWORDS)
        rules = (BanRule.from_keyword_record(r) for r in records)
        return [r for r in rules if r is not None]

    async def _channel_rules(self) -> list[BanRule]:
        records = await self._store.list_active(BANNED_CHANNELS)
        rules = (BanRule.from_channel_record(r) for r in records)
        return [r for r in rules if r is not None]

    async def load_rules(
        self,
        content_type: ContentType,
        settings: FeedSettings | None = None,
    ) -> RuleSet:
        """
        Resolve channel bans, keyword rules and settings keywords.

        Channel rules come first so a banned channel is reported as such
        even when a keyword would also match.
        """
        channels = await self._resolver.resolve(
            f"banned_channels:{content_type.value}",
            [Provider("store", self._channel_rules, Provenance.REMOTE)],
            default=[],
        )
        keywords = await self._resolver.resolve(
            f"banned_keywords:{content_type.value}",
            [Provider("store", self._keyword_rules, Provenance.REMOTE)],
            default=builtin_rules(),
        )

        degraded = None
        if keywords.failed:
            degraded = ClassificationDegraded(
                "Banned keyword rules unavailable, using built-in set",
                content_type=content_type.value,
                rules=len(keywords.value),
                providers=list(keywords.failed),
            )
            logger.warning(
                "Classification degraded",
                content_type=content_type.value,
                builtin_rules=len(keywords.value),
            )

        rules = list(channels.value) + list(keywords.value)
        if settings is not None and settings.auto_moderation_enabled:
            rules.extend(
                BanRule.keyword(k, provenance="settings") for k in settings.moderation_keywords
            )

        return RuleSet(rules=rules, keyword_provenance=keywords.provenance, degraded=degraded)
