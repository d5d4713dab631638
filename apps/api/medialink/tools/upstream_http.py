"""httpx helpers for talking to third-party upstreams.

Every call opens its own client inside ``async with`` so the socket is
released on every exit path, including cancellation by a strategy timeout.
Errors propagate; the Resolver decides what they mean.
"""

from collections.abc import AsyncIterator, Mapping

import httpx
import structlog

logger = structlog.get_logger(__name__)


async def fetch_json(
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> object:
    """GET ``url`` and decode the body as JSON. Raises on HTTP error status or bad JSON."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport) as client:
        response = await client.get(url, headers=dict(headers or {}))
        response.raise_for_status()
        return response.json()


async def fetch_html(
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[str, str]:
    """GET ``url`` and return ``(markup, final_url)`` after redirects."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport) as client:
        response = await client.get(url, headers=dict(headers or {}))
        response.raise_for_status()
        return response.text, str(response.url)


async def stream_bytes(
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    timeout: float = 30.0,
    chunk_size: int = 64 * 1024,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[bytes]:
    """Yield the body of ``url`` chunk by chunk without buffering it."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport) as client:
        async with client.stream("GET", url, headers=dict(headers or {})) as response:
            response.raise_for_status()
            logger.info(
                "upstream.stream_opened",
                status_code=response.status_code,
                content_type=response.headers.get("content-type", ""),
                content_length=response.headers.get("content-length"),
            )
            async for chunk in response.aiter_bytes(chunk_size):
                yield chunk
