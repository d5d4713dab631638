"""Unit tests for the fallback Resolver."""

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from medialink.core.errors import ResolutionExhausted, StrategyFailure
from medialink.models.references import ReferenceKind, SearchRef, VideoRef
from medialink.models.results import AudioResult, CatalogSearchResult
from medialink.services.html_miner import ExtractedBlock
from medialink.services.normalizer import FieldMapping
from medialink.services.registry import Strategy, StrategyKind, StrategyRegistry
from medialink.services.resolver import Resolver, failure_from_exception

REF = VideoRef(id="ArkDQvI_OPE")


def _audio_strategy(name: str, priority: int, timeout_ms: int = 1000) -> Strategy:
    return Strategy(
        name=name,
        kind=StrategyKind.API,
        priority=priority,
        timeout_ms=timeout_ms,
        endpoint_template=f"https://{name}.example/{{video_id}}",
        mapping=FieldMapping(title=("title",), media_url=("url",)),
    )


def _registry(*strategies: Strategy) -> StrategyRegistry:
    return StrategyRegistry({ReferenceKind.VIDEO: list(strategies)})


@pytest.mark.asyncio
async def test_first_failure_then_success_records_one_failure() -> None:
    a, b = _audio_strategy("a", 1), _audio_strategy("b", 2)
    invoke = AsyncMock(side_effect=[StrategyFailure("upstream_error"), {"url": "https://cdn.example/x.mp3", "title": "T"}])

    outcome = await Resolver(_registry(a, b), invoke=invoke).resolve(REF)

    assert outcome.result is not None
    assert outcome.result.source_strategy == "b"
    assert [(f.strategy, f.reason) for f in outcome.failures] == [("a", "upstream_error")]


@pytest.mark.asyncio
async def test_success_skips_remaining_strategies() -> None:
    a, b = _audio_strategy("a", 1), _audio_strategy("b", 2)
    invoke = AsyncMock(return_value={"url": "https://cdn.example/x.mp3", "title": "T"})

    outcome = await Resolver(_registry(a, b), invoke=invoke).resolve(REF)

    assert outcome.result.source_strategy == "a"
    assert outcome.failures == []
    invoke.assert_awaited_once_with(a, REF)


@pytest.mark.asyncio
async def test_all_strategies_failing_reports_each_reason_in_order() -> None:
    strategies = [_audio_strategy("a", 1), _audio_strategy("b", 2), _audio_strategy("c", 3)]
    request = httpx.Request("GET", "https://b.example/x")
    invoke = AsyncMock(
        side_effect=[
            StrategyFailure("missing_field:link"),
            httpx.HTTPStatusError("boom", request=request, response=httpx.Response(503, request=request)),
            httpx.ConnectError("refused", request=request),
        ]
    )

    outcome = await Resolver(_registry(*strategies), invoke=invoke).resolve(REF)

    assert outcome.result is None
    assert [f.as_dict() for f in outcome.failures] == [
        {"strategy": "a", "reason": "missing_field:link"},
        {"strategy": "b", "reason": "http_status_503"},
        {"strategy": "c", "reason": "transport_error"},
    ]
    assert outcome.failures[2].hard is True
    with pytest.raises(ResolutionExhausted) as exc_info:
        outcome.unwrap()
    assert len(exc_info.value.attempts) == 3


@pytest.mark.asyncio
async def test_slow_strategy_times_out_and_next_one_runs() -> None:
    slow, fast = _audio_strategy("slow", 1, timeout_ms=20), _audio_strategy("fast", 2)

    async def invoke(strategy, ref):
        if strategy.name == "slow":
            await asyncio.sleep(5)
        return {"url": "https://cdn.example/x.mp3", "title": "Fast"}

    outcome = await Resolver(_registry(slow, fast), invoke=invoke).resolve(REF)

    assert outcome.result.title == "Fast"
    assert [f.reason for f in outcome.failures] == ["timeout"]


@pytest.mark.asyncio
async def test_malformed_primary_payload_falls_back_to_secondary() -> None:
    primary, secondary = _audio_strategy("primary", 1), _audio_strategy("secondary", 2)

    async def invoke(strategy, ref):
        if strategy.name == "primary":
            return json.loads("{not json")
        return {"url": "https://cdn/x.mp3", "title": "T"}

    outcome = await Resolver(_registry(primary, secondary), invoke=invoke).resolve(REF)

    result = outcome.unwrap()
    assert isinstance(result, AudioResult)
    assert result.title == "T"
    assert result.source_media_url == "https://cdn/x.mp3"
    assert result.source_strategy == "secondary"
    assert [f.as_dict() for f in outcome.failures] == [{"strategy": "primary", "reason": "malformed_payload"}]


@pytest.mark.asyncio
async def test_normalization_failure_is_soft_and_falls_through() -> None:
    a, b = _audio_strategy("a", 1), _audio_strategy("b", 2)
    invoke = AsyncMock(side_effect=[{"title": "No media"}, {"url": "https://cdn.example/y.mp3", "title": "Y"}])

    outcome = await Resolver(_registry(a, b), invoke=invoke).resolve(REF)

    assert outcome.result.title == "Y"
    assert outcome.failures[0].reason == "missing_field:url"
    assert outcome.failures[0].hard is False


@pytest.mark.asyncio
async def test_no_registered_strategies_is_exhausted_with_no_attempts() -> None:
    outcome = await Resolver(StrategyRegistry({}), invoke=AsyncMock()).resolve(REF)
    assert outcome.result is None
    assert outcome.failures == []


@pytest.mark.asyncio
async def test_empty_search_listing_is_a_successful_result() -> None:
    strategy = Strategy(
        name="catalog",
        kind=StrategyKind.API,
        priority=1,
        timeout_ms=1000,
        endpoint_template="https://films.example/?s={query}&page={page}",
    )
    registry = StrategyRegistry({ReferenceKind.SEARCH: [strategy]})
    invoke = AsyncMock(return_value={"blocks": [], "page_url": "https://films.example/?s=x"})

    outcome = await Resolver(registry, invoke=invoke).resolve(SearchRef(query="x"))

    assert isinstance(outcome.result, CatalogSearchResult)
    assert outcome.result.total_results == 0


@pytest.mark.asyncio
async def test_search_blocks_become_catalog_items() -> None:
    strategy = Strategy(
        name="catalog",
        kind=StrategyKind.API,
        priority=1,
        timeout_ms=1000,
        endpoint_template="https://films.example/?s={query}",
    )
    registry = StrategyRegistry({ReferenceKind.SEARCH: [strategy]})
    blocks = [ExtractedBlock(title="Heat (1995)", link="https://films.example/movies/heat/")]
    invoke = AsyncMock(return_value={"blocks": blocks, "page_url": "https://films.example/?s=heat"})

    outcome = await Resolver(registry, invoke=invoke).resolve(SearchRef(query="heat", page=2))

    assert outcome.result.page == 2
    assert [item.title for item in outcome.result.items] == ["Heat (1995)"]


def test_unexpected_exceptions_are_hard_failures_without_details() -> None:
    strategy = _audio_strategy("a", 1)
    failure = failure_from_exception(strategy, KeyError("secret-token"))
    assert failure.reason == "unexpected_error"
    assert failure.hard is True
    assert "secret" not in failure.as_dict()["reason"]


@pytest.mark.parametrize(
    ("exc", "reason"),
    [
        (httpx.DecodingError("bad gzip"), "malformed_payload"),
        (httpx.TooManyRedirects("loop"), "too_many_redirects"),
        (httpx.ReadTimeout("slow"), "timeout"),
    ],
)
def test_httpx_errors_map_to_soft_reason_codes(exc: Exception, reason: str) -> None:
    failure = failure_from_exception(_audio_strategy("a", 1), exc)
    assert failure.reason == reason
    assert failure.hard is False
