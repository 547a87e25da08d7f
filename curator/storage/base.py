"""
Abstract content store interface.

The content store is the CMS that owns every persisted record: stored
items per content type, plus the admin-managed collections the pipeline
reads (sources, settings, trusted channels, ban rules, trending tags).
The pipeline writes only items and the settings statistics patch.

Records are plain dicts with semantic field names. Implementations map
them to whatever the backing store uses.
"""

from abc import ABC, abstractmethod
from typing import Any

from curator.ingestion.schemas import ContentType

# Admin-managed collections read through the config resolver
SOURCES = "sources"
SETTINGS = "settings"
TRUSTED_CHANNELS = "trusted_channels"
BANNED_KEYWORDS = "banned_keywords"
BANNED_CHANNELS = "banned_channels"
TRENDING_TAGS = "trending_tags"


def collection_name(collection: ContentType | str) -> str:
    """Normalize a content type or collection name to its string key."""
    if isinstance(collection, ContentType):
        return collection.value
    return collection


class StoreError(Exception):
    """Raised when the content store cannot complete an operation."""

    def __init__(self, message: str, collection: str | None = None):
        super().__init__(message)
        self.collection = collection


class DuplicateItemError(StoreError):
    """Raised when a create violates the store's identity-key uniqueness."""

    def __init__(self, identity_key: str, collection: str | None = None):
        super().__init__(f"Duplicate identity key: {identity_key}", collection)
        self.identity_key = identity_key


class ContentStore(ABC):
    """
    Async content store collaborator.

    Implementations must be safe for concurrent use by several schedulers.
    create() must reject a second record with the same identity_key in the
    same content-type collection by raising DuplicateItemError; the
    pipeline's dedup check and insert are not atomic and rely on this.
    """

    @abstractmethod
    async def list_active(
        self,
        collection: ContentType | str,
        filters: dict[str, Any] | None = None,
        sort: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        List records matching equality filters.

        Records carrying an explicit inactive flag (is_active / active set
        to False) are excluded unless the filters ask for them.

        Args:
            collection: Content type or collection name
            filters: Field -> value equality filters
            sort: "field:asc" or "field:desc"
            limit: Maximum records to return
        """
        ...

    @abstractmethod
    async def create(
        self,
        collection: ContentType | str,
        record: dict[str, Any],
    ) -> dict[str, Any]:
        """Create a record and return it with its store id."""
        ...

    @abstractmethod
    async def update(
        self,
        collection: ContentType | str,
        record_id: str,
        patch: dict[str, Any],
    ) -> dict[str, Any]:
        """Apply a partial update to one record."""
        ...

    @abstractmethod
    async def delete(self, collection: ContentType | str, record_id: str) -> bool:
        """Delete a record. Returns False when it did not exist."""
        ...

    @abstractmethod
    async def count(
        self,
        collection: ContentType | str,
        filters: dict[str, Any] | None = None,
    ) -> int:
        """Count records matching equality filters."""
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        return None
