"""Map raw strategy responses onto the canonical result schema.

Audio strategies declare a FieldMapping (which raw keys feed which canonical
field, plus default substitutions). Catalog strategies hand over miner output,
whose shape is fixed. A missing title or media/page URL raises
NormalizationError, which the Resolver treats as a soft failure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from medialink.core.constants import YouTube
from medialink.core.errors import NormalizationError
from medialink.models.references import PageRef, Reference, SearchRef, VideoRef
from medialink.models.results import (
    AudioResult,
    CanonicalResult,
    CatalogItem,
    CatalogResult,
    CatalogSearchResult,
    Confidence,
    DownloadLink,
)
from medialink.services.html_miner import ExtractedBlock, ExtractedPage, classify_link_type

if TYPE_CHECKING:
    from medialink.services.registry import Strategy

_YEAR_RE = re.compile(r"\b(19\d{2}|20\d{2})\b")


@dataclass(frozen=True)
class FieldMapping:
    """Raw keys per canonical field, tried in order. Defaults may use ``{video_id}``."""

    title: tuple[str, ...] = ("title",)
    media_url: tuple[str, ...] = ("url",)
    thumbnail: tuple[str, ...] = ()
    duration: tuple[str, ...] = ()
    author: tuple[str, ...] = ()
    default_title: str | None = None
    default_thumbnail: str | None = YouTube.THUMBNAIL_URL


def _pick(raw: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str):
            value = value.strip()
        if value not in (None, ""):
            return value
    return None


def parse_duration(value: Any) -> int | None:
    """Seconds from ``213``, ``"213"``, ``"3:33"`` or ``"1:02:03"``; None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value >= 0 else None
    text = str(value).strip()
    if not text:
        return None
    parts = text.split(":")
    if not all(part.strip().isdigit() for part in parts) or len(parts) > 3:
        try:
            seconds = float(text)
        except ValueError:
            return None
        return int(seconds) if seconds >= 0 else None
    total = 0
    for part in parts:
        total = total * 60 + int(part)
    return total


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _normalize_audio(strategy: Strategy, raw: Any, ref: VideoRef) -> AudioResult:
    if not isinstance(raw, dict):
        raise NormalizationError("malformed_payload", strategy=strategy.name)
    mapping = strategy.mapping or FieldMapping()

    media_url = _pick(raw, mapping.media_url)
    if not isinstance(media_url, str) or not media_url:
        raise NormalizationError(f"missing_field:{mapping.media_url[0]}", strategy=strategy.name)
    if not _is_http_url(media_url):
        raise NormalizationError("invalid_media_url", strategy=strategy.name)

    title = _pick(raw, mapping.title)
    if not title and mapping.default_title:
        title = mapping.default_title.format(video_id=ref.id)
    if not title:
        raise NormalizationError(f"missing_field:{mapping.title[0]}", strategy=strategy.name)

    thumbnail = _pick(raw, mapping.thumbnail)
    if not thumbnail and mapping.default_thumbnail:
        thumbnail = mapping.default_thumbnail.format(video_id=ref.id)

    author = _pick(raw, mapping.author)

    return AudioResult(
        title=str(title),
        duration_seconds=parse_duration(_pick(raw, mapping.duration)),
        thumbnail_url=thumbnail,
        author=str(author) if author else None,
        source_strategy=strategy.name,
        source_media_url=media_url,
        video_id=ref.id,
        confidence=Confidence.HIGH,
    )


def _normalize_search(strategy: Strategy, raw: Any, ref: SearchRef) -> CatalogSearchResult:
    if not isinstance(raw, dict) or "blocks" not in raw:
        raise NormalizationError("missing_field:blocks", strategy=strategy.name)
    items: list[CatalogItem] = []
    for block in raw["blocks"]:
        if not isinstance(block, ExtractedBlock) or not block.title or not block.link:
            continue
        items.append(
            CatalogItem(
                title=block.title,
                url=block.link,
                thumbnail_url=block.image,
                excerpt=block.excerpt,
                confidence=block.confidence,
            )
        )
    low = any(item.confidence is Confidence.LOW for item in items)
    return CatalogSearchResult(
        query=ref.query,
        page=ref.page,
        items=items,
        source_strategy=strategy.name,
        confidence=Confidence.LOW if low else Confidence.HIGH,
    )


def _provider(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def _year(page: ExtractedPage) -> int | None:
    for candidate in (page.fields.get("Year"), page.title):
        match = _YEAR_RE.search(candidate or "")
        if match:
            return int(match.group(1))
    return None


def _normalize_page(strategy: Strategy, raw: Any, ref: PageRef) -> CatalogResult:
    if not isinstance(raw, ExtractedPage):
        raise NormalizationError("malformed_payload", strategy=strategy.name)
    if not raw.title:
        raise NormalizationError("missing_field:title", strategy=strategy.name)
    if not raw.canonical_url:
        raise NormalizationError("missing_field:canonical_url", strategy=strategy.name)

    links: list[DownloadLink] = []
    seen: set[str] = set()
    for text, url in raw.links:
        if url in seen:
            continue
        seen.add(url)
        links.append(DownloadLink(provider=_provider(url), url=url, link_type=classify_link_type(text, url)))

    return CatalogResult(
        title=raw.title,
        canonical_url=raw.canonical_url,
        thumbnail_url=raw.thumbnail,
        synopsis_excerpt=raw.synopsis,
        year=_year(raw),
        structured_fields=dict(raw.fields),
        download_links=links,
        source_strategy=strategy.name,
        confidence=raw.confidence,
    )


def normalize(strategy: Strategy, raw: Any, ref: Reference) -> CanonicalResult:
    """Turn one strategy's raw response into a canonical result or raise NormalizationError."""
    if isinstance(ref, VideoRef):
        return _normalize_audio(strategy, raw, ref)
    if isinstance(ref, SearchRef):
        return _normalize_search(strategy, raw, ref)
    if isinstance(ref, PageRef):
        return _normalize_page(strategy, raw, ref)
    raise NormalizationError("unsupported_reference", strategy=strategy.name)
