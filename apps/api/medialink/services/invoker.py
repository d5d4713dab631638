"""Execute one Strategy against one Reference and return its raw response.

Shape checks live here: an API payload must be a mapping, must not carry an
upstream error indication, and must have every required field non-empty.
Failures are raised as StrategyFailure; transport errors from httpx propagate
untouched for the Resolver to classify.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote_plus

import structlog

from medialink.core.errors import StrategyFailure
from medialink.core.url_safety import page_url_block_reason
from medialink.models.references import PageRef, Reference, SearchRef, VideoRef
from medialink.services.html_miner import DetailSelectorSet, SelectorSet, mine, mine_detail
from medialink.services.registry import Strategy, StrategyKind
from medialink.tools.upstream_http import fetch_html, fetch_json
from medialink.tools.ytdlp_audio import extract_audio_info

logger = structlog.get_logger(__name__)

_ERROR_STATUSES = {"error", "fail", "failed", "false"}


def _endpoint(strategy: Strategy, ref: Reference) -> str:
    template = strategy.endpoint_template or ""
    if isinstance(ref, VideoRef):
        return template.format(video_id=ref.id)
    if isinstance(ref, SearchRef):
        return template.format(query=quote_plus(ref.query), page=ref.page)
    if isinstance(ref, PageRef):
        return ref.url
    raise StrategyFailure("unsupported_reference", strategy=strategy.name)


def check_shape(strategy: Strategy, payload: Any) -> dict:
    """Return ``payload`` when it satisfies the strategy's minimal contract."""
    if not isinstance(payload, dict):
        raise StrategyFailure("malformed_payload", strategy=strategy.name)
    status = payload.get("status")
    if payload.get("error") or status is False or str(status).lower() in _ERROR_STATUSES:
        raise StrategyFailure("upstream_error", strategy=strategy.name)
    for name in strategy.required_fields:
        value = payload.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise StrategyFailure(f"missing_field:{name}", strategy=strategy.name)
    return payload


async def _invoke_api(strategy: Strategy, ref: Reference) -> dict:
    url = _endpoint(strategy, ref)
    logger.info("invoker.api_request", strategy=strategy.name, url=url)
    payload = await fetch_json(url, headers=strategy.headers, timeout=strategy.timeout_seconds)
    return check_shape(strategy, payload)


async def _invoke_scrape(strategy: Strategy, ref: Reference) -> Any:
    url = _endpoint(strategy, ref)
    if isinstance(ref, PageRef):
        reason = page_url_block_reason(url, strategy.allowed_domains)
        if reason:
            raise StrategyFailure(f"blocked_url:{reason}", strategy=strategy.name)
    logger.info("invoker.scrape_request", strategy=strategy.name, url=url)
    markup, final_url = await fetch_html(url, headers=strategy.headers, timeout=strategy.timeout_seconds)

    selectors = strategy.selector_set
    if isinstance(selectors, DetailSelectorSet):
        return mine_detail(markup, selectors, final_url)
    if isinstance(selectors, SelectorSet):
        blocks = mine(markup, selectors, base_url=final_url)
        return {"blocks": blocks, "page_url": final_url}
    raise StrategyFailure("missing_selector_set", strategy=strategy.name)


async def _invoke_extractor(strategy: Strategy, ref: Reference) -> dict:
    if not isinstance(ref, VideoRef):
        raise StrategyFailure("unsupported_reference", strategy=strategy.name)
    info = await extract_audio_info(
        ref.canonical_form(),
        socket_timeout=strategy.timeout_seconds,
        user_agent=strategy.headers.get("User-Agent"),
    )
    return check_shape(strategy, info)


async def invoke_strategy(strategy: Strategy, ref: Reference) -> Any:
    """Run ``strategy`` once for ``ref``; no internal retries."""
    if strategy.kind is StrategyKind.API:
        return await _invoke_api(strategy, ref)
    if strategy.kind is StrategyKind.SCRAPE:
        return await _invoke_scrape(strategy, ref)
    if strategy.kind is StrategyKind.EXTRACTOR:
        return await _invoke_extractor(strategy, ref)
    raise StrategyFailure("unsupported_strategy_kind", strategy=strategy.name)
