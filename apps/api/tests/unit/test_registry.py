"""Unit tests for the strategy registry."""

import pytest

from medialink.core.config import Settings
from medialink.models.references import ReferenceKind
from medialink.services.html_miner import DetailSelectorSet
from medialink.services.registry import Strategy, StrategyKind, StrategyRegistry, build_default_registry


def _api(name: str, priority: int) -> Strategy:
    return Strategy(
        name=name,
        kind=StrategyKind.API,
        priority=priority,
        timeout_ms=1000,
        endpoint_template="https://api.example/{video_id}",
    )


def test_strategies_are_sorted_by_priority() -> None:
    registry = StrategyRegistry({ReferenceKind.VIDEO: [_api("c", 30), _api("a", 10), _api("b", 20)]})
    assert [s.name for s in registry.strategies_for(ReferenceKind.VIDEO)] == ["a", "b", "c"]


def test_duplicate_priority_is_rejected() -> None:
    with pytest.raises(ValueError, match="duplicate strategy priority"):
        StrategyRegistry({ReferenceKind.VIDEO: [_api("a", 1), _api("b", 1)]})


def test_unknown_kind_has_no_strategies() -> None:
    registry = StrategyRegistry({ReferenceKind.VIDEO: [_api("a", 1)]})
    assert registry.strategies_for(ReferenceKind.PAGE) == ()


def test_api_strategy_requires_endpoint_template() -> None:
    with pytest.raises(ValueError):
        Strategy(name="broken", kind=StrategyKind.API, priority=1, timeout_ms=1000)


def test_default_registry_audio_order_and_optional_mirror() -> None:
    settings = Settings(CATALOG_MIRROR_BASE_URL="https://mirror.example", YTDLP_ENABLED=True)
    registry = build_default_registry(settings)

    audio = registry.strategies_for(ReferenceKind.VIDEO)
    assert [s.name for s in audio] == ["ytmp3free", "vevioz", "yt_dlp"]
    assert audio[0].required_fields == ("title", "link")
    assert audio[0].timeout_seconds == settings.YTMP3FREE_TIMEOUT_MS / 1000

    search = registry.strategies_for(ReferenceKind.SEARCH)
    assert [s.name for s in search] == ["catalog_primary", "catalog_mirror"]
    assert search[1].endpoint_template.startswith("https://mirror.example/")

    page = registry.strategies_for(ReferenceKind.PAGE)
    assert isinstance(page[0].selector_set, DetailSelectorSet)


def test_default_registry_without_mirror_or_ytdlp() -> None:
    registry = build_default_registry(Settings(CATALOG_MIRROR_BASE_URL=None, YTDLP_ENABLED=False))
    assert [s.name for s in registry.strategies_for(ReferenceKind.VIDEO)] == ["ytmp3free", "vevioz"]
    assert [s.name for s in registry.strategies_for(ReferenceKind.SEARCH)] == ["catalog_primary"]
