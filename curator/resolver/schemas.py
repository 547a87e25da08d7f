"""Data models for config resolution."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class Provenance(str, Enum):
    """Which tier of a fallback chain produced a value."""

    REMOTE = "remote"
    DERIVED = "derived"
    BUILTIN = "builtin"
    EMERGENCY = "emergency"


@dataclass(frozen=True)
class Provider(Generic[T]):
    """A named zero-argument async fetcher in a fallback chain.

    ``fetch`` may raise, hang, or return an empty value; the resolver
    treats all three the same way.
    """

    name: str
    fetch: Callable[[], Awaitable[T | None]]
    provenance: Provenance = Provenance.REMOTE


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """A resolved value tagged with where it came from."""

    value: T
    provenance: Provenance
    provider: str
    # Providers that raised or timed out before this value was chosen
    failed: tuple[str, ...] = ()

    @property
    def is_fallback(self) -> bool:
        return self.provenance is not Provenance.REMOTE


def is_empty(value: Any) -> bool:
    """None and empty containers or strings count as empty."""
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False
