"""
In-process content store.

Backs tests and --mock runs. Enforces identity-key uniqueness for
content-type collections the same way a CMS unique constraint would.
"""

import asyncio
import copy
import itertools
from datetime import datetime, timezone
from typing import Any

from curator.ingestion.schemas import ContentType
from curator.storage.base import (
    ContentStore,
    DuplicateItemError,
    StoreError,
    collection_name,
)

_ITEM_COLLECTIONS = {ct.value for ct in ContentType}


def _is_inactive(record: dict[str, Any]) -> bool:
    for flag in ("is_active", "active"):
        if flag in record and record[flag] is False:
            return True
    return False


def _matches(record: dict[str, Any], filters: dict[str, Any]) -> bool:
    return all(record.get(key) == value for key, value in filters.items())


def _sort_key(value: Any) -> tuple[int, Any]:
    # None sorts first ascending, last descending
    if value is None:
        return (0, "")
    return (1, value)


class InMemoryContentStore(ContentStore):
    """
    Dict-backed content store.

    Usage:
        store = InMemoryContentStore()
        await store.create(ContentType.NEWS, {"identity_key": "https://...", "title": "..."})
        items = await store.list_active(ContentType.NEWS)
    """

    def __init__(self, seed: dict[str, list[dict[str, Any]]] | None = None):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

        for name, records in (seed or {}).items():
            bucket = self._collections.setdefault(name, {})
            for record in records:
                stored = dict(record)
                stored["id"] = str(stored["id"]) if "id" in stored else self._next_id(bucket)
                bucket[stored["id"]] = stored

    def _next_id(self, bucket: dict[str, dict[str, Any]]) -> str:
        record_id = str(next(self._ids))
        while record_id in bucket:
            record_id = str(next(self._ids))
        return record_id

    def _bucket(self, collection: ContentType | str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection_name(collection), {})

    async def list_active(
        self,
        collection: ContentType | str,
        filters: dict[str, Any] | None = None,
        sort: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        filters = filters or {}
        include_inactive = "is_active" in filters or "active" in filters

        async with self._lock:
            records = [
                copy.deepcopy(r)
                for r in self._bucket(collection).values()
                if _matches(r, filters) and (include_inactive or not _is_inactive(r))
            ]

        if sort:
            field_name, _, direction = sort.partition(":")
            records.sort(
                key=lambda r: _sort_key(r.get(field_name)),
                reverse=direction.lower() == "desc",
            )

        if limit is not None:
            records = records[:limit]
        return records

    async def create(
        self,
        collection: ContentType | str,
        record: dict[str, Any],
    ) -> dict[str, Any]:
        name = collection_name(collection)
        async with self._lock:
            bucket = self._bucket(name)
            key = record.get("identity_key")
            if name in _ITEM_COLLECTIONS and key:
                if any(r.get("identity_key") == key for r in bucket.values()):
                    raise DuplicateItemError(key, collection=name)

            stored = dict(record)
            stored["id"] = self._next_id(bucket)
            stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            bucket[stored["id"]] = stored
            return copy.deepcopy(stored)

    async def update(
        self,
        collection: ContentType | str,
        record_id: str,
        patch: dict[str, Any],
    ) -> dict[str, Any]:
        async with self._lock:
            bucket = self._bucket(collection)
            record_id = str(record_id)
            if record_id not in bucket:
                raise StoreError(
                    f"No record {record_id}",
                    collection=collection_name(collection),
                )
            bucket[record_id].update(patch)
            return copy.deepcopy(bucket[record_id])

    async def delete(self, collection: ContentType | str, record_id: str) -> bool:
        async with self._lock:
            return self._bucket(collection).pop(str(record_id), None) is not None

    async def count(
        self,
        collection: ContentType | str,
        filters: dict[str, Any] | None = None,
    ) -> int:
        return len(await self.list_active(collection, filters))
