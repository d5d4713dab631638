"""Canonical result types returned by the resolution pipeline.

Internal contracts are plain dataclasses; the HTTP layer maps them onto the
pydantic response schemas in ``models.schemas``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from medialink.core.constants import LinkType
from medialink.core.errors import AttemptFailure, ResolutionExhausted


class Confidence(str, Enum):
    HIGH = "high"
    LOW = "low"


@dataclass
class AudioResult:
    """A resolved, playable audio source. Exhausted resolutions never produce one."""

    title: str
    source_media_url: str
    source_strategy: str
    video_id: str
    duration_seconds: int | None = None
    thumbnail_url: str | None = None
    author: str | None = None
    confidence: Confidence = Confidence.HIGH

    def __post_init__(self) -> None:
        if not (self.title and self.source_media_url):
            raise ValueError("AudioResult requires title and source_media_url")


@dataclass(frozen=True)
class DownloadLink:
    provider: str
    url: str
    link_type: LinkType


@dataclass
class CatalogItem:
    title: str
    url: str
    thumbnail_url: str | None = None
    excerpt: str | None = None
    confidence: Confidence = Confidence.HIGH


@dataclass
class CatalogSearchResult:
    query: str
    page: int
    items: list[CatalogItem] = field(default_factory=list)
    source_strategy: str = ""
    confidence: Confidence = Confidence.HIGH

    @property
    def total_results(self) -> int:
        return len(self.items)


@dataclass
class CatalogResult:
    title: str
    canonical_url: str
    thumbnail_url: str | None = None
    synopsis_excerpt: str | None = None
    year: int | None = None
    structured_fields: dict[str, str] = field(default_factory=dict)
    download_links: list[DownloadLink] = field(default_factory=list)
    source_strategy: str = ""
    confidence: Confidence = Confidence.HIGH


CanonicalResult = AudioResult | CatalogSearchResult | CatalogResult


@dataclass
class ResolutionOutcome:
    """Fresh per request: the winning result plus every failure recorded before it."""

    result: CanonicalResult | None = None
    failures: list[AttemptFailure] = field(default_factory=list)

    def unwrap(self) -> CanonicalResult:
        """Return the result or raise ResolutionExhausted with the per-strategy reasons."""
        if self.result is None:
            raise ResolutionExhausted(self.failures)
        return self.result
