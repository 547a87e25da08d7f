"""Config resolver: ordered provider chains with provenance."""

from curator.resolver.config import ResolverConfig
from curator.resolver.schemas import Provenance, Provider, Resolved
from curator.resolver.service import ConfigResolver

__all__ = [
    "ConfigResolver",
    "Provenance",
    "Provider",
    "Resolved",
    "ResolverConfig",
]
