"""
Source resolution through the four-tier fallback chain.

Tiers, in order: admin-configured records in the store, topics derived
from verified trusted channels (video only), the packaged built-in list,
and the packaged emergency list.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from curator.ingestion.schemas import ContentType
from curator.resolver import ConfigResolver, Provenance, Provider, Resolved
from curator.sources.config import SourcesConfig
from curator.sources.schemas import Source, SourceKind, parse_priority
from curator.storage.base import SOURCES, TRENDING_TAGS, TRUSTED_CHANNELS, ContentStore

logger = logging.getLogger(__name__)

_SEED_FILE = Path(__file__).parent / "data" / "builtin_sources.json"

_KIND_BY_CONTENT_TYPE = {
    ContentType.NEWS: SourceKind.RSS_FEED,
    ContentType.VIDEO: SourceKind.KEYWORD_SEARCH,
}


@lru_cache(maxsize=4)
def _load_seed(path: str) -> dict[str, Any]:
    with open(path) as f:
        return json.load(f)


def load_seed_sources(
    content_type: ContentType,
    tier: str,
    path: Path | None = None,
) -> list[Source]:
    """Load the built-in or emergency list for a content type from the seed file."""
    seed = _load_seed(str(path or _SEED_FILE))
    entries = seed.get(content_type.value, {}).get(tier, [])
    return [
        Source.from_record(e, _KIND_BY_CONTENT_TYPE[content_type], provenance=tier)
        for e in entries
    ]


def derive_topics_from_channels(
    channels: list[dict[str, Any]],
    limit: int = 3,
) -> list[Source]:
    """
    Turn trusted-channel records into keyword-search sources.

    The topic is "<channel name> Content". Names mentioning travel or
    nomad map to Travel, food or cooking to Food, otherwise the channel's
    own category is kept. High-trust channels get priority 1.
    """
    topics = []
    for channel in channels[:limit]:
        name = str(channel.get("channel_name") or "Unknown")
        lowered = name.lower()
        if "travel" in lowered or "nomad" in lowered:
            category = "Travel"
        elif "food" in lowered or "cooking" in lowered:
            category = "Food"
        else:
            category = str(channel.get("category") or "Entertainment")

        query = f"{name} Content"
        topics.append(
            Source(
                identifier=f"channel:{channel.get('channel_id') or name}",
                name=query,
                kind=SourceKind.KEYWORD_SEARCH,
                query=query,
                priority=1 if str(channel.get("trust_level", "")).lower() == "high" else 2,
                category=category,
                provenance="trusted_channel",
            )
        )
    return topics


def select_for_cycle(sources: list[Source], limit: int) -> list[Source]:
    """Usable sources in ascending priority order, capped at ``limit``."""
    usable = [s for s in sources if s.is_usable]
    skipped = len(sources) - len(usable)
    if skipped:
        logger.debug("Skipping %d inactive or malformed sources", skipped)
    return sorted(usable, key=lambda s: s.priority)[:limit]


def _has_usable(sources: list[Source]) -> bool:
    return any(s.is_usable for s in sources)


class SourcesService:
    """Resolve the sources to pull for a content type.

    Usage:
        service = SourcesService(store, resolver)
        resolved = await service.get_sources(ContentType.VIDEO)
        for source in select_for_cycle(resolved.value, limit=2):
            ...
    """

    def __init__(
        self,
        store: ContentStore,
        resolver: ConfigResolver,
        config: SourcesConfig | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._config = config or SourcesConfig()
        self._seed_path = Path(self._config.seed_file) if self._config.seed_file else None

    async def _admin_sources(self, content_type: ContentType) -> list[Source]:
        if content_type is ContentType.VIDEO:
            records = await self._store.list_active(TRENDING_TAGS)
        else:
            records = await self._store.list_active(SOURCES)
        kind = _KIND_BY_CONTENT_TYPE[content_type]
        return [Source.from_record(r, kind) for r in records]

    async def _derived_sources(self) -> list[Source]:
        channels = await self._store.list_active(
            TRUSTED_CHANNELS,
            filters={"verification_status": "Verified"},
        )
        channels.sort(key=lambda c: parse_priority(c.get("trust_level"), default=2))
        return derive_topics_from_channels(channels, self._config.max_derived_channels)

    async def _seed(self, content_type: ContentType, tier: str) -> list[Source]:
        return load_seed_sources(content_type, tier, self._seed_path)

    async def get_sources(self, content_type: ContentType) -> Resolved[list[Source]]:
        """
        Resolve sources for a content type.

        Returns an empty list (provenance emergency) only when every tier,
        including the emergency list, is empty.
        """
        providers: list[Provider[list[Source]]] = [
            Provider("store", lambda: self._admin_sources(content_type), Provenance.REMOTE),
        ]
        if content_type is ContentType.VIDEO:
            providers.append(Provider("trusted_channels", self._derived_sources, Provenance.DERIVED))
        providers.append(
            Provider("builtin", lambda: self._seed(content_type, "builtin"), Provenance.BUILTIN)
        )
        providers.append(
            Provider("emergency", lambda: self._seed(content_type, "emergency"), Provenance.EMERGENCY)
        )

        return await self._resolver.resolve(
            f"sources:{content_type.value}",
            providers,
            default=[],
            validator=_has_usable,
            default_provenance=Provenance.EMERGENCY,
        )
