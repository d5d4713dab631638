"""Resolver: try a reference's strategies in priority order until one normalizes.

Attempts are strictly sequential. Each runs under its own timeout; on timeout
the attempt is cancelled, which closes its httpx client. Every failure is
recorded as an AttemptFailure and the next strategy is tried. The first
strategy whose raw response normalizes wins and the rest are skipped.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from medialink.core.errors import AttemptFailure, StrategyFailure
from medialink.core.metrics import resolutions_total, strategy_attempts_total, strategy_duration_seconds
from medialink.models.references import Reference
from medialink.models.results import ResolutionOutcome
from medialink.services.invoker import invoke_strategy
from medialink.services.normalizer import normalize
from medialink.services.registry import Strategy, StrategyRegistry

logger = structlog.get_logger(__name__)

Invoker = Callable[[Strategy, Reference], Awaitable[Any]]


def failure_from_exception(strategy: Strategy, exc: BaseException) -> AttemptFailure:
    """Translate an attempt's exception into a non-sensitive reason code."""
    if isinstance(exc, StrategyFailure):
        return AttemptFailure(strategy=strategy.name, reason=exc.reason, hard=exc.hard)
    if isinstance(exc, (TimeoutError, httpx.TimeoutException)):
        return AttemptFailure(strategy=strategy.name, reason="timeout")
    if isinstance(exc, httpx.HTTPStatusError):
        return AttemptFailure(strategy=strategy.name, reason=f"http_status_{exc.response.status_code}")
    if isinstance(exc, httpx.TransportError):
        return AttemptFailure(strategy=strategy.name, reason="transport_error", hard=True)
    if isinstance(exc, httpx.TooManyRedirects):
        return AttemptFailure(strategy=strategy.name, reason="too_many_redirects")
    if isinstance(exc, (httpx.DecodingError, json.JSONDecodeError, UnicodeDecodeError)):
        return AttemptFailure(strategy=strategy.name, reason="malformed_payload")
    return AttemptFailure(strategy=strategy.name, reason="unexpected_error", hard=True)


class Resolver:
    def __init__(self, registry: StrategyRegistry, invoke: Invoker = invoke_strategy):
        self._registry = registry
        self._invoke = invoke

    async def _attempt(self, strategy: Strategy, ref: Reference):
        raw = await asyncio.wait_for(self._invoke(strategy, ref), timeout=strategy.timeout_seconds)
        return normalize(strategy, raw, ref)

    async def resolve(self, ref: Reference) -> ResolutionOutcome:
        """Return the first successful normalized result, or every failure in attempt order."""
        outcome = ResolutionOutcome()
        strategies = self._registry.strategies_for(ref.kind)
        for strategy in strategies:
            started = time.perf_counter()
            try:
                result = await self._attempt(strategy, ref)
            except Exception as exc:
                failure = failure_from_exception(strategy, exc)
                outcome.failures.append(failure)
                strategy_attempts_total.labels(
                    strategy=strategy.name,
                    outcome="hard_failure" if failure.hard else "soft_failure",
                ).inc()
                if failure.reason == "unexpected_error":
                    logger.exception("resolver.strategy_crashed", strategy=strategy.name, kind=ref.kind.value)
                else:
                    logger.warning(
                        "resolver.strategy_failed",
                        strategy=strategy.name,
                        kind=ref.kind.value,
                        reason=failure.reason,
                        hard=failure.hard,
                    )
                continue
            finally:
                strategy_duration_seconds.labels(strategy=strategy.name).observe(
                    time.perf_counter() - started
                )

            strategy_attempts_total.labels(strategy=strategy.name, outcome="success").inc()
            resolutions_total.labels(kind=ref.kind.value, status="success").inc()
            logger.info(
                "resolver.resolved",
                strategy=strategy.name,
                kind=ref.kind.value,
                failed_before=len(outcome.failures),
            )
            outcome.result = result
            return outcome

        resolutions_total.labels(kind=ref.kind.value, status="exhausted").inc()
        logger.warning(
            "resolver.exhausted",
            kind=ref.kind.value,
            attempts=[failure.as_dict() for failure in outcome.failures],
        )
        return outcome
