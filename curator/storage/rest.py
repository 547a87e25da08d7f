"""
Content store backed by a Strapi-style REST API.

Collections map to REST endpoints (``/api/videos``, ``/api/news-sources``).
List responses are ``{"data": [...], "meta": {"pagination": {"total": N,
"pageCount": P}}}``; unlimited listings walk every page up to pageCount.
Entries may be flat (v5) or nest their fields under ``attributes`` (v4).
Both shapes are flattened into plain records here.
"""

import logging
from typing import Any

from curator.config.settings import get_settings
from curator.ingestion.http_client import HTTPClient, HTTPClientError, RetryConfig
from curator.ingestion.schemas import ContentType
from curator.storage.base import (
    BANNED_CHANNELS,
    BANNED_KEYWORDS,
    SETTINGS,
    SOURCES,
    TRENDING_TAGS,
    TRUSTED_CHANNELS,
    ContentStore,
    DuplicateItemError,
    StoreError,
    collection_name,
)

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINTS: dict[str, str] = {
    ContentType.NEWS.value: "breaking-news-plural",
    ContentType.VIDEO.value: "videos",
    SOURCES: "news-sources",
    SETTINGS: "feed-settings",
    TRUSTED_CHANNELS: "trusted-channels-videos",
    BANNED_KEYWORDS: "banned-keywords-videos",
    BANNED_CHANNELS: "banned-channels-videos",
    TRENDING_TAGS: "trending-tags-videos",
}

# Largest page requested when listing a collection
_PAGE_SIZE = 200


def flatten_entry(entry: dict[str, Any]) -> dict[str, Any]:
    """Flatten a v4 ``{"id", "attributes"}`` entry; prefer documentId as the id."""
    record = dict(entry.get("attributes") or {})
    for key, value in entry.items():
        if key != "attributes":
            record.setdefault(key, value)
    if record.get("documentId"):
        record["id"] = record["documentId"]
    if "id" in record and record["id"] is not None:
        record["id"] = str(record["id"])
    return record


def _page_count(payload: dict[str, Any]) -> int | None:
    meta = payload.get("meta")
    pagination = meta.get("pagination") if isinstance(meta, dict) else None
    if not isinstance(pagination, dict) or pagination.get("pageCount") is None:
        return None
    return int(pagination["pageCount"])


def build_params(
    filters: dict[str, Any] | None,
    sort: str | None = None,
    limit: int | None = None,
) -> dict[str, Any]:
    """Translate equality filters, sort and limit into Strapi query params."""
    params: dict[str, Any] = {}
    for key, value in (filters or {}).items():
        if isinstance(value, bool):
            value = "true" if value else "false"
        params[f"filters[{key}][$eq]"] = value
    if sort:
        params["sort"] = sort
    params["pagination[pageSize]"] = limit or _PAGE_SIZE
    return params


class RestContentStore(ContentStore):
    """
    Content store client for a Strapi-style CMS.

    Usage:
        async with RestContentStore() as store:
            records = await store.list_active(ContentType.VIDEO, sort="createdAt:desc")
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        endpoints: dict[str, str] | None = None,
        client: HTTPClient | None = None,
    ):
        settings = get_settings()
        self._base_url = (base_url or settings.content_store_url).rstrip("/")
        self._endpoints = {**DEFAULT_ENDPOINTS, **(endpoints or {})}

        token = token or settings.content_store_token
        headers = {"Authorization": f"Bearer {token}"} if token else None
        self._client = client or HTTPClient(
            RetryConfig(
                max_retries=settings.max_http_retries,
                max_backoff_seconds=settings.max_backoff_seconds,
            ),
            timeout=settings.external_timeout_seconds,
            headers=headers,
        )

    async def __aenter__(self) -> "RestContentStore":
        await self._client.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.close()

    def _url(self, collection: ContentType | str, record_id: str | None = None) -> str:
        name = collection_name(collection)
        endpoint = self._endpoints.get(name, name.replace("_", "-"))
        url = f"{self._base_url}/{endpoint}"
        if record_id is not None:
            url = f"{url}/{record_id}"
        return url

    async def _send(self, method: str, collection: ContentType | str, url: str, **kwargs: Any):
        await self._client.open()
        try:
            return await self._client.request(method, url, **kwargs)
        except HTTPClientError as e:
            raise StoreError(
                f"{method} {url} failed: {e}",
                collection=collection_name(collection),
            ) from e

    async def list_active(
        self,
        collection: ContentType | str,
        filters: dict[str, Any] | None = None,
        sort: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params = build_params(filters, sort, limit)
        entries: list[Any] = []
        page = 1
        while True:
            if limit is None:
                params["pagination[page]"] = page
            response = await self._send("GET", collection, self._url(collection), params=params)
            payload = response.json()
            data = payload.get("data")
            if data is None:
                break
            if not isinstance(data, list):
                entries.append(data)
                break
            entries.extend(data)

            page_count = _page_count(payload)
            if limit is not None or not data or page_count is None or page >= page_count:
                break
            page += 1

        records = [flatten_entry(e) for e in entries if isinstance(e, dict)]

        wants_inactive = filters and ("is_active" in filters or "active" in filters)
        if not wants_inactive:
            records = [
                r for r in records
                if r.get("is_active", True) is not False and r.get("active", True) is not False
            ]
        return records

    async def create(
        self,
        collection: ContentType | str,
        record: dict[str, Any],
    ) -> dict[str, Any]:
        await self._client.open()
        try:
            response = await self._client.request(
                "POST",
                self._url(collection),
                json_body={"data": record},
            )
        except HTTPClientError as e:
            body = (e.response_body or "").lower()
            if e.status_code in (400, 409) and ("unique" in body or "duplicate" in body):
                raise DuplicateItemError(
                    str(record.get("identity_key", "")),
                    collection=collection_name(collection),
                ) from e
            raise StoreError(
                f"create in {collection_name(collection)} failed: {e}",
                collection=collection_name(collection),
            ) from e
        return flatten_entry(response.json().get("data") or {})

    async def update(
        self,
        collection: ContentType | str,
        record_id: str,
        patch: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._send(
            "PUT",
            collection,
            self._url(collection, record_id),
            json_body={"data": patch},
        )
        return flatten_entry(response.json().get("data") or {})

    async def delete(self, collection: ContentType | str, record_id: str) -> bool:
        try:
            await self._send("DELETE", collection, self._url(collection, record_id))
        except StoreError as e:
            cause = e.__cause__
            if isinstance(cause, HTTPClientError) and cause.status_code == 404:
                logger.debug("Record %s already gone from %s", record_id, collection_name(collection))
                return False
            raise
        return True

    async def count(
        self,
        collection: ContentType | str,
        filters: dict[str, Any] | None = None,
    ) -> int:
        response = await self._send(
            "GET",
            collection,
            self._url(collection),
            params=build_params(filters, limit=1),
        )
        payload = response.json()
        total = (
            payload.get("meta", {}).get("pagination", {}).get("total")
            if isinstance(payload.get("meta"), dict)
            else None
        )
        if total is not None:
            return int(total)
        data = payload.get("data") or []
        return len(data) if isinstance(data, list) else 1
