"""
Ordered fallback-chain resolution.

Every configuration value the pipeline reads (sources, settings, ban
rules, trusted channels) comes through ``ConfigResolver.resolve``: the
providers are tried in order and the first non-empty, well-formed value
wins. When every provider fails the documented default is returned, so
callers always get something usable.
"""

import asyncio
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import structlog

from curator.errors import ConfigUnavailable
from curator.observability.metrics import get_metrics
from curator.resolver.config import ResolverConfig
from curator.resolver.schemas import Provenance, Provider, Resolved, is_empty

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ConfigResolver:
    """
    Resolve a value through an ordered list of providers.

    Holds no mutable state, so one instance can be shared by every
    scheduler.

    Usage:
        resolver = ConfigResolver()
        resolved = await resolver.resolve(
            "sources",
            [Provider("store", fetch_from_store), Provider("builtin", builtin, Provenance.BUILTIN)],
            default=EMERGENCY_SOURCES,
            default_provenance=Provenance.EMERGENCY,
        )
    """

    def __init__(self, config: ResolverConfig | None = None) -> None:
        self._config = config or ResolverConfig()

    @property
    def timeout(self) -> float:
        return self._config.provider_timeout_seconds

    async def resolve(
        self,
        kind: str,
        providers: Sequence[Provider[T]],
        default: T,
        *,
        validator: Callable[[T], bool] | None = None,
        default_provenance: Provenance = Provenance.BUILTIN,
    ) -> Resolved[T]:
        """
        Return the first usable provider value, or the default.

        Args:
            kind: What is being resolved, for logs and metrics
            providers: Fetchers in priority order
            default: Value returned when every provider fails
            validator: Optional well-formedness check on provider values
            default_provenance: Tag attached to the default

        Returns:
            Resolved value with provenance. Never raises for provider failures.
        """
        failed: list[str] = []
        for provider in providers:
            try:
                value = await self._call(kind, provider)
            except ConfigUnavailable as e:
                failed.append(provider.name)
                logger.warning(
                    "Config provider unavailable",
                    kind=kind,
                    provider=provider.name,
                    error=str(e),
                    **e.context,
                )
                continue

            if is_empty(value):
                logger.debug("Config provider returned nothing", kind=kind, provider=provider.name)
                continue

            if validator is not None and not self._is_valid(validator, value):
                logger.warning(
                    "Config provider returned ill-formed value",
                    kind=kind,
                    provider=provider.name,
                )
                continue

            return self._resolved(kind, value, provider.provenance, provider.name, failed)

        return self._resolved(kind, default, default_provenance, "default", failed)

    async def _call(self, kind: str, provider: Provider[Any]) -> Any:
        try:
            return await asyncio.wait_for(provider.fetch(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ConfigUnavailable(
                f"{provider.name} timed out after {self.timeout}s",
                kind=kind,
            ) from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ConfigUnavailable(
                f"{provider.name} failed: {e}",
                kind=kind,
                error_type=type(e).__name__,
            ) from e

    @staticmethod
    def _is_valid(validator: Callable[[Any], bool], value: Any) -> bool:
        try:
            return bool(validator(value))
        except (TypeError, ValueError, KeyError, AttributeError):
            return False

    @staticmethod
    def _resolved(
        kind: str,
        value: T,
        provenance: Provenance,
        provider: str,
        failed: list[str],
    ) -> Resolved[T]:
        logger.info(
            "Config resolved",
            kind=kind,
            provider=provider,
            provenance=provenance.value,
        )
        if provenance is not Provenance.REMOTE:
            get_metrics().record_fallback(kind, provenance.value)
        return Resolved(value=value, provenance=provenance, provider=provider, failed=tuple(failed))
