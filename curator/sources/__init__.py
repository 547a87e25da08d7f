"""Sources: four-tier resolution of feeds and search topics."""

from curator.sources.config import SourcesConfig
from curator.sources.schemas import Source, SourceKind
from curator.sources.service import (
    SourcesService,
    derive_topics_from_channels,
    load_seed_sources,
    select_for_cycle,
)

__all__ = [
    "Source",
    "SourceKind",
    "SourcesConfig",
    "SourcesService",
    "derive_topics_from_channels",
    "load_seed_sources",
    "select_for_cycle",
]
