"""Declarative HTML extraction for scraping strategies.

Selector sets are data: which containers repeat, and which ordered selectors
yield each field inside a container. The miner applies them to static markup
and never touches the network, so rules can be tested against fixtures.

Listing pages go through two passes:

1. Primary: every block selector locates candidate containers; inside each,
   the first selector producing a non-empty value wins per field. A block is
   kept only when both ``title`` and ``link`` resolved.
2. Secondary (only when the primary pass found nothing): every hyperlink whose
   path matches the content-path pattern and whose text is long enough becomes
   a low-confidence item.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from medialink.core.constants import FILE_HOST_DOMAINS, LinkType, Miner
from medialink.models.results import Confidence

_BLOCK_LEVEL_TAGS = ("p", "div", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "section", "article")
_URL_FIELDS = frozenset({"link", "image"})


@dataclass(frozen=True)
class FieldSelector:
    """``css`` relative to the block (empty string means the block itself); ``attr`` None reads text."""

    css: str
    attr: str | None = None


@dataclass(frozen=True)
class SelectorSet:
    block_selectors: tuple[str, ...]
    fields: Mapping[str, tuple[FieldSelector, ...]]
    content_path_pattern: str | None = None
    min_link_text_length: int = Miner.MIN_LINK_TEXT_LENGTH

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))


@dataclass(frozen=True)
class DetailSelectorSet:
    title: tuple[FieldSelector, ...]
    canonical_url: tuple[FieldSelector, ...]
    thumbnail: tuple[FieldSelector, ...]
    content_root: tuple[str, ...]
    synopsis_fallback: tuple[FieldSelector, ...] = ()
    field_labels: tuple[str, ...] = ()
    link_text_pattern: str = r"download|watch|\b(?:360|480|720|1080|2160)p\b"


@dataclass
class ExtractedBlock:
    title: str
    link: str
    image: str | None = None
    excerpt: str | None = None
    confidence: Confidence = Confidence.HIGH


@dataclass
class ExtractedPage:
    title: str | None
    canonical_url: str | None
    thumbnail: str | None = None
    synopsis: str | None = None
    fields: dict[str, str] = field(default_factory=dict)
    links: list[tuple[str, str]] = field(default_factory=list)
    confidence: Confidence = Confidence.HIGH


def _parse(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup or "", "html.parser")


def _read(node: Tag, selector: FieldSelector) -> str:
    target = node.select_one(selector.css) if selector.css else node
    if target is None:
        return ""
    if selector.attr is None:
        return target.get_text(" ", strip=True)
    value = target.get(selector.attr)
    if isinstance(value, list):
        value = " ".join(value)
    return str(value or "").strip()


def _first_value(node: Tag, selectors: tuple[FieldSelector, ...], base_url: str | None, url_field: bool) -> str | None:
    """Return the first non-empty value produced by ``selectors``, in order."""
    for selector in selectors:
        value = _read(node, selector)
        if not value:
            continue
        if url_field:
            if value.startswith(("data:", "javascript:", "#")):
                continue
            value = urljoin(base_url or "", value)
        return value
    return None


def _primary_pass(soup: BeautifulSoup, selector_set: SelectorSet, base_url: str | None) -> list[ExtractedBlock]:
    blocks: list[ExtractedBlock] = []
    seen_links: set[str] = set()
    for block_css in selector_set.block_selectors:
        for node in soup.select(block_css):
            values = {
                name: _first_value(node, selectors, base_url, name in _URL_FIELDS)
                for name, selectors in selector_set.fields.items()
            }
            title, link = values.get("title"), values.get("link")
            if not title or not link or link in seen_links:
                continue
            seen_links.add(link)
            blocks.append(
                ExtractedBlock(
                    title=title,
                    link=link,
                    image=values.get("image"),
                    excerpt=values.get("excerpt"),
                )
            )
    return blocks


def _secondary_pass(soup: BeautifulSoup, selector_set: SelectorSet, base_url: str | None) -> list[ExtractedBlock]:
    if not selector_set.content_path_pattern:
        return []
    content_path = re.compile(selector_set.content_path_pattern, re.IGNORECASE)
    blocks: list[ExtractedBlock] = []
    seen_links: set[str] = set()
    for anchor in soup.find_all("a", href=True):
        text = anchor.get_text(" ", strip=True)
        if len(text) < selector_set.min_link_text_length:
            continue
        link = urljoin(base_url or "", str(anchor["href"]).strip())
        if link in seen_links or not content_path.search(urlparse(link).path):
            continue
        seen_links.add(link)
        blocks.append(ExtractedBlock(title=text, link=link, confidence=Confidence.LOW))
    return blocks


def mine(markup: str, selector_set: SelectorSet, base_url: str | None = None) -> list[ExtractedBlock]:
    """Extract repeating content blocks from a listing page."""
    soup = _parse(markup)
    blocks = _primary_pass(soup, selector_set, base_url)
    if blocks:
        return blocks
    return _secondary_pass(soup, selector_set, base_url)


def file_host_type(url: str) -> LinkType | None:
    """Return the LinkType of a known file host when ``url``'s hostname belongs to one."""
    host = (urlparse(str(url or "")).hostname or "").lower()
    if not host:
        return None
    for domain, link_type in FILE_HOST_DOMAINS:
        if host == domain or host.endswith(f".{domain}"):
            return link_type
    return None


def classify_link_type(text: str, url: str) -> LinkType:
    """Known file hosts win over link text; "watch" text means stream; else download."""
    host_type = file_host_type(url)
    if host_type is not None:
        return host_type
    if "watch" in str(text or "").lower():
        return LinkType.STREAM
    return LinkType.DOWNLOAD


def extract_value(label: str, text: str) -> str | None:
    """Return the trimmed text after ``label`` up to the next line break.

    None means the label is absent; an empty string means it is present
    with nothing after it.
    """
    match = re.search(re.escape(label) + r"[ \t]*([^\r\n]*)", text or "", re.IGNORECASE)
    if match is None:
        return None
    return match.group(1).strip()


def _line_text(node: Tag) -> str:
    """Render ``node`` as text with a line break per <br> and per block element."""
    for br in node.find_all("br"):
        br.replace_with("\n")
    for block in node.find_all(_BLOCK_LEVEL_TAGS):
        block.append("\n")
    return node.get_text("")


def _content_root(soup: BeautifulSoup, selectors: tuple[str, ...]) -> Tag | None:
    for css in selectors:
        node = soup.select_one(css)
        if node is not None:
            return node
    return None


def _synopsis(content: Tag, labels: tuple[str, ...]) -> str | None:
    lowered_labels = tuple(label.lower() for label in labels)
    for paragraph in content.find_all("p"):
        text = paragraph.get_text(" ", strip=True)
        if len(text) < 40 or any(label in text.lower() for label in lowered_labels):
            continue
        return text[: Miner.SYNOPSIS_MAX_CHARS]
    return None


def _download_links(scope: Tag, base_url: str, link_text_pattern: str) -> list[tuple[str, str]]:
    text_re = re.compile(link_text_pattern, re.IGNORECASE)
    links: list[tuple[str, str]] = []
    for anchor in scope.find_all("a", href=True):
        url = urljoin(base_url, str(anchor["href"]).strip())
        if urlparse(url).scheme not in ("http", "https"):
            continue
        text = anchor.get_text(" ", strip=True)
        on_file_host = file_host_type(url) is not None
        if on_file_host or text_re.search(text):
            links.append((text, url))
    return links


def mine_detail(markup: str, selector_set: DetailSelectorSet, page_url: str) -> ExtractedPage:
    """Extract title, artwork, synopsis, labelled fields and download links from a detail page.

    When no content root matches, the whole document is scanned instead and
    the page is marked low confidence.
    """
    soup = _parse(markup)
    title = _first_value(soup, selector_set.title, page_url, url_field=False)
    canonical_url = _first_value(soup, selector_set.canonical_url, page_url, url_field=True) or page_url
    thumbnail = _first_value(soup, selector_set.thumbnail, page_url, url_field=True)

    content = _content_root(soup, selector_set.content_root)
    confidence = Confidence.HIGH
    if content is None:
        content = soup.body or soup
        confidence = Confidence.LOW

    synopsis = _synopsis(content, selector_set.field_labels)
    if synopsis is None and selector_set.synopsis_fallback:
        fallback = _first_value(soup, selector_set.synopsis_fallback, page_url, url_field=False)
        synopsis = fallback[: Miner.SYNOPSIS_MAX_CHARS] if fallback else None

    links = _download_links(content, page_url, selector_set.link_text_pattern)

    fields: dict[str, str] = {}
    text = _line_text(content)
    for label in selector_set.field_labels:
        value = extract_value(label, text)
        if value is not None:
            fields[label.rstrip(":").strip()] = value

    return ExtractedPage(
        title=title,
        canonical_url=canonical_url,
        thumbnail=thumbnail,
        synopsis=synopsis,
        fields=fields,
        links=links,
        confidence=confidence,
    )
