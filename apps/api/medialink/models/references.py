"""Reference values produced by the classifier.

A Reference is only ever built by ``services.classifier.classify``; code
downstream receives one and never constructs it from raw caller input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from medialink.core.constants import YouTube


class ReferenceKind(str, Enum):
    VIDEO = "video"
    SEARCH = "search"
    PAGE = "page"


@dataclass(frozen=True)
class VideoRef:
    id: str

    kind = ReferenceKind.VIDEO

    def canonical_form(self) -> str:
        return YouTube.WATCH_URL.format(video_id=self.id)


@dataclass(frozen=True)
class SearchRef:
    query: str
    page: int = 1

    kind = ReferenceKind.SEARCH

    def canonical_form(self) -> str:
        return self.query


@dataclass(frozen=True)
class PageRef:
    url: str

    kind = ReferenceKind.PAGE

    def canonical_form(self) -> str:
        return self.url


Reference = VideoRef | SearchRef | PageRef
