"""Strategy Registry: ordered, read-only resolution strategies per reference kind.

Each upstream is one declarative Strategy entry. The registry is built once
from Settings when the application is created and never mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from medialink.core.config import Settings
from medialink.core.url_safety import parse_allowed_domains
from medialink.models.references import ReferenceKind
from medialink.services.catalog_selectors import DETAIL_SELECTORS, listing_selectors
from medialink.services.html_miner import DetailSelectorSet, SelectorSet
from medialink.services.normalizer import FieldMapping


class StrategyKind(str, Enum):
    API = "api"
    SCRAPE = "scrape"
    EXTRACTOR = "extractor"


@dataclass(frozen=True)
class Strategy:
    name: str
    kind: StrategyKind
    priority: int
    timeout_ms: int
    endpoint_template: str | None = None
    selector_set: SelectorSet | DetailSelectorSet | None = None
    required_fields: tuple[str, ...] = ()
    mapping: FieldMapping | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    allowed_domains: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError(f"strategy {self.name!r}: timeout_ms must be positive")
        if self.kind is StrategyKind.API and not self.endpoint_template:
            raise ValueError(f"strategy {self.name!r}: api strategies need an endpoint_template")
        if self.kind is StrategyKind.SCRAPE and self.selector_set is None:
            raise ValueError(f"strategy {self.name!r}: scrape strategies need a selector_set")
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


class StrategyRegistry:
    """Strategies per ReferenceKind, sorted ascending by priority (lower is tried first)."""

    def __init__(self, strategies: Mapping[ReferenceKind, Iterable[Strategy]]):
        ordered: dict[ReferenceKind, tuple[Strategy, ...]] = {}
        for kind, entries in strategies.items():
            entries = tuple(sorted(entries, key=lambda s: s.priority))
            priorities = [s.priority for s in entries]
            if len(set(priorities)) != len(priorities):
                raise ValueError(f"duplicate strategy priority for kind {kind.value!r}")
            names = [s.name for s in entries]
            if len(set(names)) != len(names):
                raise ValueError(f"duplicate strategy name for kind {kind.value!r}")
            ordered[kind] = entries
        self._strategies = MappingProxyType(ordered)

    def strategies_for(self, kind: ReferenceKind) -> tuple[Strategy, ...]:
        return self._strategies.get(kind, ())

    def kinds(self) -> tuple[ReferenceKind, ...]:
        return tuple(self._strategies)


def _browser_headers(settings: Settings, accept: str) -> dict[str, str]:
    return {"User-Agent": settings.USER_AGENT, "Accept": accept}


def _audio_strategies(settings: Settings) -> list[Strategy]:
    json_headers = _browser_headers(settings, "application/json")
    strategies = [
        Strategy(
            name="ytmp3free",
            kind=StrategyKind.API,
            priority=1,
            timeout_ms=settings.YTMP3FREE_TIMEOUT_MS,
            endpoint_template=settings.YTMP3FREE_API_URL,
            required_fields=("title", "link"),
            mapping=FieldMapping(
                title=("title",),
                media_url=("link",),
                thumbnail=("img",),
                duration=("duration",),
            ),
            headers={**json_headers, "Referer": settings.YTMP3FREE_REFERER},
        ),
        Strategy(
            name="vevioz",
            kind=StrategyKind.API,
            priority=2,
            timeout_ms=settings.VEVIOZ_TIMEOUT_MS,
            endpoint_template=settings.VEVIOZ_API_URL,
            required_fields=("url",),
            mapping=FieldMapping(
                title=("title",),
                media_url=("url",),
                default_title="YouTube Video {video_id}",
            ),
            headers=json_headers,
        ),
    ]
    if settings.YTDLP_ENABLED:
        strategies.append(
            Strategy(
                name="yt_dlp",
                kind=StrategyKind.EXTRACTOR,
                priority=3,
                timeout_ms=settings.YTDLP_TIMEOUT_MS,
                mapping=FieldMapping(
                    title=("title",),
                    media_url=("url",),
                    thumbnail=("thumbnail",),
                    duration=("duration",),
                    author=("uploader",),
                ),
                headers={"User-Agent": settings.USER_AGENT},
            )
        )
    return strategies


def _search_strategies(settings: Settings) -> list[Strategy]:
    selectors = listing_selectors(settings.CATALOG_CONTENT_PATH_PATTERN)
    html_headers = _browser_headers(settings, "text/html,application/xhtml+xml")
    bases = [("catalog_primary", settings.CATALOG_BASE_URL)]
    if settings.CATALOG_MIRROR_BASE_URL:
        bases.append(("catalog_mirror", settings.CATALOG_MIRROR_BASE_URL))
    return [
        Strategy(
            name=name,
            kind=StrategyKind.SCRAPE,
            priority=index,
            timeout_ms=settings.CATALOG_TIMEOUT_MS,
            endpoint_template=base.rstrip("/") + settings.CATALOG_SEARCH_PATH,
            selector_set=selectors,
            headers=html_headers,
        )
        for index, (name, base) in enumerate(bases, start=1)
    ]


def _page_strategies(settings: Settings) -> list[Strategy]:
    return [
        Strategy(
            name="catalog_page",
            kind=StrategyKind.SCRAPE,
            priority=1,
            timeout_ms=settings.CATALOG_TIMEOUT_MS,
            selector_set=DETAIL_SELECTORS,
            headers=_browser_headers(settings, "text/html,application/xhtml+xml"),
            allowed_domains=parse_allowed_domains(settings.CATALOG_ALLOWED_DOMAINS),
        )
    ]


def build_default_registry(settings: Settings) -> StrategyRegistry:
    return StrategyRegistry(
        {
            ReferenceKind.VIDEO: _audio_strategies(settings),
            ReferenceKind.SEARCH: _search_strategies(settings),
            ReferenceKind.PAGE: _page_strategies(settings),
        }
    )
