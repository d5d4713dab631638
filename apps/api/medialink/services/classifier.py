"""Classify caller-supplied strings into References. Pure, no I/O."""

from __future__ import annotations

import re
from urllib.parse import urlparse

from medialink.core.errors import InvalidReference
from medialink.models.references import PageRef, Reference, ReferenceKind, SearchRef, VideoRef

# watch?v=ID (v may follow other query params), youtu.be/ID, embed/ID.
_YOUTUBE_ID_RE = re.compile(
    r"^(?:https?://)?(?:(?:www|m|music)\.)?"
    r"(?:youtube\.com/(?:watch\?(?:[^#\s]*&)?v=|embed/)|youtu\.be/)"
    r"([A-Za-z0-9_-]{11})"
    r"(?![A-Za-z0-9_-])",
    re.IGNORECASE,
)
_WHITESPACE_RE = re.compile(r"\s+")


def extract_video_id(value: str) -> str | None:
    """Return the 11-character video id from a YouTube URL, or None."""
    match = _YOUTUBE_ID_RE.match(str(value or "").strip())
    return match.group(1) if match else None


def _classify_video(value: str) -> VideoRef:
    video_id = extract_video_id(value)
    if video_id is None:
        raise InvalidReference("Invalid YouTube URL", kind=ReferenceKind.VIDEO.value)
    return VideoRef(id=video_id)


def _classify_search(value: str, page: int) -> SearchRef:
    query = _WHITESPACE_RE.sub(" ", str(value or "")).strip()
    if not query:
        raise InvalidReference("Search query must not be empty", kind=ReferenceKind.SEARCH.value)
    if page < 1:
        raise InvalidReference("Page must be >= 1", kind=ReferenceKind.SEARCH.value)
    return SearchRef(query=query, page=page)


def _classify_page(value: str) -> PageRef:
    url = str(value or "").strip()
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        raise InvalidReference("URL must be an absolute http(s) URL", kind=ReferenceKind.PAGE.value)
    return PageRef(url=url)


def classify(value: str, expected_kind: ReferenceKind, *, page: int = 1) -> Reference:
    """Validate and normalize ``value`` as a Reference of ``expected_kind``.

    Raises InvalidReference when the input does not fit the kind. Idempotent:
    classifying ``ref.canonical_form()`` again yields an equal Reference.
    """
    if expected_kind is ReferenceKind.VIDEO:
        return _classify_video(value)
    if expected_kind is ReferenceKind.SEARCH:
        return _classify_search(value, page)
    if expected_kind is ReferenceKind.PAGE:
        return _classify_page(value)
    raise InvalidReference(f"Unsupported reference kind: {expected_kind!r}")
