"""Stream Delivery: pipe a resolved audio source through the transcoder to the caller.

Delivery is a small state machine::

    NOT_STARTED -> HEADERS_SENT -> STREAMING_BODY -> COMPLETED
                                                  -> ABORTED

``start()`` opens the source and waits for the first transcoded chunk while
still NOT_STARTED, so a failure there can become a JSON error. Once ``body()``
runs the response headers are committed; a failure after that point aborts
the stream (the caller gets a truncated file) and is reported to logs only.

The ``passthrough`` transcoder skips ffmpeg and relays the source bytes as-is.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator, Callable
from enum import Enum

import structlog

from medialink.core.config import Settings
from medialink.core.errors import StreamFailure
from medialink.core.metrics import stream_bytes_total, stream_deliveries_total
from medialink.services.transcoder import TranscodeProfile, ffmpeg_transcode
from medialink.tools.upstream_http import stream_bytes

logger = structlog.get_logger(__name__)

SourceFactory = Callable[[str], AsyncIterator[bytes]]
Transcoder = Callable[[AsyncIterator[bytes], TranscodeProfile], AsyncIterator[bytes]]

_NOT_WORD_OR_SPACE_RE = re.compile(r"[^\w\s]", re.ASCII)
_CONTROL_WHITESPACE_RE = re.compile(r"[\t\n\r\f\v]")


class DeliveryState(str, Enum):
    NOT_STARTED = "not_started"
    HEADERS_SENT = "headers_sent"
    STREAMING_BODY = "streaming_body"
    COMPLETED = "completed"
    ABORTED = "aborted"


def sanitize_filename(title: str, fallback: str = "audio") -> str:
    """Strip every character outside word/space classes: ``"Test: Movie? #1"`` -> ``"Test Movie 1"``."""
    cleaned = _NOT_WORD_OR_SPACE_RE.sub("", str(title or ""))
    cleaned = _CONTROL_WHITESPACE_RE.sub(" ", cleaned).strip()
    return cleaned or fallback


def default_source_factory(settings: Settings) -> SourceFactory:
    def open_source(url: str) -> AsyncIterator[bytes]:
        return _guarded_source(
            stream_bytes(
                url,
                headers={"User-Agent": settings.USER_AGENT},
                timeout=settings.STREAM_SOURCE_TIMEOUT,
                chunk_size=settings.STREAM_CHUNK_SIZE,
            )
        )

    return open_source


def default_transcoder(settings: Settings) -> Transcoder:
    def transcode(source: AsyncIterator[bytes], profile: TranscodeProfile) -> AsyncIterator[bytes]:
        return ffmpeg_transcode(
            source,
            profile,
            binary=settings.FFMPEG_BINARY,
            chunk_size=settings.STREAM_CHUNK_SIZE,
            idle_timeout=settings.TRANSCODE_IDLE_TIMEOUT,
        )

    return transcode


def passthrough(source: AsyncIterator[bytes], profile: TranscodeProfile) -> AsyncIterator[bytes]:
    return source


async def _guarded_source(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Re-raise any source read error as StreamFailure(stage="source")."""
    try:
        async for chunk in chunks:
            yield chunk
    except StreamFailure:
        raise
    except Exception as exc:
        raise StreamFailure(f"source read failed: {type(exc).__name__}", stage="source") from exc
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()


class AudioDelivery:
    def __init__(
        self,
        source_url: str,
        title: str,
        *,
        profile: TranscodeProfile,
        open_source: SourceFactory,
        transcode: Transcoder,
    ):
        self.source_url = source_url
        self.filename = f"{sanitize_filename(title)}.{profile.container}"
        self.state = DeliveryState.NOT_STARTED
        self.bytes_sent = 0
        self._profile = profile
        self._open_source = open_source
        self._transcode = transcode
        self._chunks: AsyncIterator[bytes] | None = None
        self._first_chunk: bytes | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, source_url: str, title: str, *, transcode: bool = True
    ) -> AudioDelivery:
        """``transcode=False`` relays the source audio bytes unchanged."""
        return cls(
            source_url,
            title,
            profile=TranscodeProfile.from_settings(settings),
            open_source=default_source_factory(settings),
            transcode=default_transcoder(settings) if transcode else passthrough,
        )

    @property
    def media_type(self) -> str:
        return "audio/mpeg" if self._profile.container == "mp3" else f"audio/{self._profile.container}"

    def headers(self) -> dict[str, str]:
        return {"Content-Disposition": f'attachment; filename="{self.filename}"'}

    async def start(self) -> None:
        """Open the pipeline and wait for its first chunk; failures here are pre-header."""
        if self.state is not DeliveryState.NOT_STARTED or self._chunks is not None:
            raise RuntimeError("delivery already started")
        self._chunks = self._transcode(self._open_source(self.source_url), self._profile)
        try:
            self._first_chunk = await anext(self._chunks)
        except StopAsyncIteration:
            await self._close()
            stream_deliveries_total.labels(state="failed_before_headers").inc()
            raise StreamFailure("pipeline produced no audio", stage="transcode") from None
        except StreamFailure as exc:
            await self._close()
            stream_deliveries_total.labels(state="failed_before_headers").inc()
            logger.warning("delivery.failed_before_headers", stage=exc.stage, error=str(exc))
            raise
        logger.info("delivery.primed", filename=self.filename, first_chunk_bytes=len(self._first_chunk))

    async def body(self) -> AsyncIterator[bytes]:
        if self._chunks is None or self._first_chunk is None:
            raise RuntimeError("start() must succeed before body() is consumed")
        self.state = DeliveryState.HEADERS_SENT
        try:
            first, self._first_chunk = self._first_chunk, None
            self.state = DeliveryState.STREAMING_BODY
            yield first
            self._sent(first)
            async for chunk in self._chunks:
                yield chunk
                self._sent(chunk)
            self.state = DeliveryState.COMPLETED
            stream_deliveries_total.labels(state="completed").inc()
            logger.info("delivery.completed", filename=self.filename, bytes_sent=self.bytes_sent)
        except StreamFailure as exc:
            self._abort()
            exc.bytes_sent = self.bytes_sent
            logger.error(
                "delivery.aborted",
                stage=exc.stage,
                error=str(exc),
                bytes_sent=self.bytes_sent,
                filename=self.filename,
            )
            raise
        except (asyncio.CancelledError, GeneratorExit):
            self._abort()
            logger.info("delivery.client_disconnected", bytes_sent=self.bytes_sent, filename=self.filename)
            raise
        finally:
            await self._close()

    def _sent(self, chunk: bytes) -> None:
        self.bytes_sent += len(chunk)
        stream_bytes_total.inc(len(chunk))

    def _abort(self) -> None:
        self.state = DeliveryState.ABORTED
        stream_deliveries_total.labels(state="aborted").inc()

    async def _close(self) -> None:
        chunks, self._chunks = self._chunks, None
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
