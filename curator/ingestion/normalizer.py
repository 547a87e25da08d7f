"""
Raw feed entry and search result normalization.

Every access to an external payload happens here. Fields are treated as
optional: a missing or oddly-shaped field falls back to a default, and an
entry without a title or stable identity is dropped (returns None)
instead of raising.
"""

import html
import logging
import re
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import urldefrag, urlsplit

from bs4 import BeautifulSoup

from curator.ingestion.schemas import CandidateItem, ContentType, parse_datetime
from curator.sources.schemas import Source

logger = logging.getLogger(__name__)

BREAKING_KEYWORDS: tuple[str, ...] = (
    "breaking",
    "urgent",
    "alert",
    "emergency",
    "developing",
    "just in",
)

# Topic categories -> video categories
VIDEO_CATEGORY_MAP: dict[str, str] = {
    "Tourism": "Travel",
    "Travel": "Travel",
    "Food": "Food",
    "Nightlife": "Nightlife",
    "Culture": "Culture",
    "Events": "Events",
    "Entertainment": "Entertainment",
    "Business": "Business",
    "Shopping": "Business",
    "Adventure": "Adventure",
    "Sports": "Sports",
}
DEFAULT_VIDEO_CATEGORY = "Entertainment"


def clean_text(text: str) -> str:
    """Collapse whitespace and drop control characters."""
    text = " ".join(text.split())
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    return text.strip()


def strip_html(html_content: str | None) -> str:
    """
    Extract clean text from HTML content.

    Args:
        html_content: Raw HTML string

    Returns:
        Clean text content
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")
    for element in soup(["script", "style", "nav", "footer", "header"]):
        element.decompose()

    text = html.unescape(soup.get_text(separator=" "))
    return clean_text(text)


def truncate(text: str, max_length: int) -> str:
    """Cut text to at most ``max_length`` characters."""
    return text[:max_length] if max_length > 0 else text


def resolve_image_url(url: str, base_url: str | None) -> str:
    """
    Make an image reference absolute against the source's origin.

    Relative paths resolve against the scheme and host of the source
    endpoint; protocol-relative URLs take the source's scheme.
    """
    url = url.strip()
    if url.startswith(("http://", "https://")) or not base_url:
        return url
    base = urlsplit(base_url)
    if not base.scheme or not base.hostname:
        return url
    if url.startswith("//"):
        return f"{base.scheme}:{url}"
    separator = "" if url.startswith("/") else "/"
    return f"{base.scheme}://{base.hostname}{separator}{url}"


def _first_url(items: Any, key: str = "url") -> str | None:
    """First non-empty url in a feedparser media list (or single dict)."""
    if isinstance(items, dict):
        items = [items]
    if not isinstance(items, (list, tuple)):
        return None
    for item in items:
        if isinstance(item, dict) and item.get(key):
            return str(item[key])
    return None


def _image_enclosure(entry: dict[str, Any]) -> str | None:
    enclosures = entry.get("enclosures") or entry.get("enclosure") or []
    if isinstance(enclosures, dict):
        enclosures = [enclosures]
    if not isinstance(enclosures, (list, tuple)):
        return None
    for enclosure in enclosures:
        if not isinstance(enclosure, dict):
            continue
        url = enclosure.get("href") or enclosure.get("url")
        if url and str(enclosure.get("type", "")).lower().startswith("image/"):
            return str(url)
    return None


def _inline_image(*html_fragments: str | None) -> tuple[str | None, str]:
    for fragment in html_fragments:
        if not fragment or "<img" not in fragment.lower():
            continue
        img = BeautifulSoup(fragment, "html.parser").find("img", src=True)
        if img is not None:
            return str(img["src"]), str(img.get("alt") or "")
    return None, ""


def extract_image(entry: dict[str, Any], base_url: str | None = None) -> tuple[str | None, str]:
    """
    Find an entry's featured image.

    Strategies in priority order: media content, media thumbnail, an
    enclosure typed image/*, then the first inline <img> in the body.

    Returns:
        (absolute image url or None, alt text)
    """
    alt = ""
    url = (
        _first_url(entry.get("media_content"))
        or _first_url(entry.get("media_thumbnail"))
        or _image_enclosure(entry)
    )
    if url is None:
        url, alt = _inline_image(_entry_html(entry), entry.get("summary"), entry.get("description"))
    if url is None:
        return None, ""
    return resolve_image_url(url, base_url), alt


def detect_breaking(title: str, body: str) -> bool:
    """Whether the title or body carries a breaking-news keyword."""
    text = f"{title} {body}".lower()
    return any(keyword in text for keyword in BREAKING_KEYWORDS)


def map_video_category(category: str | None) -> str:
    """Map a topic category onto the video category set."""
    if not category:
        return DEFAULT_VIDEO_CATEGORY
    mapped = VIDEO_CATEGORY_MAP.get(category.strip())
    if mapped is None:
        logger.debug("Unknown category %r, using %s", category, DEFAULT_VIDEO_CATEGORY)
        return DEFAULT_VIDEO_CATEGORY
    return mapped


def canonical_url(url: str) -> str:
    """Canonical form of an article URL: trimmed, without fragment."""
    return urldefrag(url.strip())[0]


def _entry_html(entry: dict[str, Any]) -> str:
    content = entry.get("content")
    if isinstance(content, (list, tuple)) and content:
        first = content[0]
        if isinstance(first, dict):
            return str(first.get("value") or "")
    if isinstance(content, str):
        return content
    return ""


def parse_entry_time(entry: dict[str, Any]) -> datetime:
    """Parse an RSS entry's publish time, falling back to now."""
    for field in ("published", "updated", "created", "pubDate"):
        value = entry.get(field)
        if value:
            try:
                parsed = parsedate_to_datetime(str(value))
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=timezone.utc)
                return parsed
            except (TypeError, ValueError):
                iso = parse_datetime(value)
                if iso is not None:
                    return iso

        struct = entry.get(f"{field}_parsed")
        if struct:
            try:
                return datetime.fromtimestamp(time.mktime(struct), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError):
                pass

    return datetime.now(timezone.utc)


def _first_tag(entry: dict[str, Any]) -> str | None:
    tags = entry.get("tags")
    if isinstance(tags, (list, tuple)):
        for tag in tags:
            term = tag.get("term") if isinstance(tag, dict) else tag
            if term and str(term).strip():
                return str(term).strip()
    categories = entry.get("categories")
    if isinstance(categories, (list, tuple)) and categories:
        return str(categories[0])
    return None


def normalize_rss_entry(
    entry: dict[str, Any],
    source: Source,
    max_content_length: int = 500,
) -> CandidateItem | None:
    """
    Transform an RSS entry into a news CandidateItem.

    Returns None when the entry has no title or no link to key it by.
    """
    title = clean_text(html.unescape(str(entry.get("title") or "")))
    link = entry.get("link") or entry.get("id") or entry.get("guid")
    if not title or not link or not str(link).startswith(("http://", "https://")):
        logger.debug("Dropping RSS entry without title or link from %s", source.name)
        return None

    body_html = _entry_html(entry) or str(entry.get("summary") or entry.get("description") or "")
    body = truncate(strip_html(body_html), max_content_length)
    image_url, image_alt = extract_image(entry, source.endpoint)
    url = canonical_url(str(link))

    return CandidateItem(
        content_type=ContentType.NEWS,
        identity_key=url,
        title=title,
        body=body,
        url=url,
        published_at=parse_entry_time(entry),
        image_url=image_url,
        image_alt=image_alt,
        category=_first_tag(entry) or "General",
        source_name=source.name,
        provenance=source.provenance,
        is_breaking=detect_breaking(title, body),
        raw_data={"source": source.identifier, "guid": str(entry.get("id") or "")},
    )


def _thumbnail(snippet: dict[str, Any]) -> str | None:
    thumbnails = snippet.get("thumbnails")
    if not isinstance(thumbnails, dict):
        return None
    for size in ("medium", "high", "default"):
        thumb = thumbnails.get(size)
        if isinstance(thumb, dict) and thumb.get("url"):
            return str(thumb["url"])
    return None


def normalize_video_result(
    result: dict[str, Any],
    source: Source,
    max_content_length: int = 500,
) -> CandidateItem | None:
    """
    Transform a search API result into a video CandidateItem.

    Accepts the YouTube search shape: ``{"id": {"videoId"}, "snippet": {...}}``.
    Returns None when the result has no video id or title.
    """
    raw_id = result.get("id")
    video_id = raw_id.get("videoId") if isinstance(raw_id, dict) else raw_id
    snippet = result.get("snippet") if isinstance(result.get("snippet"), dict) else {}
    title = clean_text(html.unescape(str(snippet.get("title") or "")))
    if not video_id or not title:
        logger.debug("Dropping search result without id or title for %s", source.name)
        return None

    body = truncate(clean_text(html.unescape(str(snippet.get("description") or ""))), max_content_length)
    video_id = str(video_id)

    return CandidateItem(
        content_type=ContentType.VIDEO,
        identity_key=video_id,
        title=title,
        body=body,
        url=f"https://www.youtube.com/watch?v={video_id}",
        published_at=parse_datetime(snippet.get("publishedAt")) or datetime.now(timezone.utc),
        channel_id=str(snippet["channelId"]) if snippet.get("channelId") else None,
        channel_name=str(snippet.get("channelTitle") or "") or None,
        image_url=_thumbnail(snippet),
        category=map_video_category(source.category),
        source_name=source.query or source.name,
        provenance=source.provenance,
        is_breaking=False,
        raw_data={"source": source.identifier, "source_keyword": source.query},
    )
