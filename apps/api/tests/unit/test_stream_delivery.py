"""Unit tests for audio stream delivery and transcoding plumbing."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from medialink.core.config import Settings
from medialink.core.errors import StreamFailure
from medialink.services.stream_delivery import AudioDelivery, DeliveryState, _guarded_source, sanitize_filename
from medialink.services.transcoder import TranscodeProfile, ffmpeg_transcode

PROFILE = TranscodeProfile()


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


def _delivery(transcode, title: str = "Test: Movie? #1") -> AudioDelivery:
    return AudioDelivery(
        "https://cdn.example/a.webm",
        title,
        profile=PROFILE,
        open_source=lambda url: _chunks(b"raw-1", b"raw-2"),
        transcode=transcode,
    )


async def _collect(delivery: AudioDelivery) -> bytes:
    data = b""
    async for chunk in delivery.body():
        data += chunk
    return data


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("Test: Movie? #1", "Test Movie 1"),
        ("  Tabs\tand\nnewlines  ", "Tabs and newlines"),
        ("???", "audio"),
        ("", "audio"),
    ],
)
def test_sanitize_filename(title: str, expected: str) -> None:
    assert sanitize_filename(title) == expected


def test_headers_carry_sanitized_attachment_filename() -> None:
    delivery = _delivery(lambda source, profile: source)
    assert delivery.headers() == {"Content-Disposition": 'attachment; filename="Test Movie 1.mp3"'}
    assert delivery.media_type == "audio/mpeg"


def test_ffmpeg_args_follow_profile() -> None:
    args = TranscodeProfile(channels=1, bitrate_kbps=192).ffmpeg_args("/usr/bin/ffmpeg")
    assert args[0] == "/usr/bin/ffmpeg"
    assert args[args.index("-ac") + 1] == "1"
    assert args[args.index("-b:a") + 1] == "192k"
    assert args[args.index("-f") + 1] == "mp3"
    assert args[-1] == "pipe:1"


@pytest.mark.asyncio
async def test_completed_delivery_streams_every_chunk() -> None:
    async def upper(source, profile):
        async for chunk in source:
            yield chunk.upper()

    delivery = _delivery(upper)
    await delivery.start()
    assert delivery.state is DeliveryState.NOT_STARTED

    assert await _collect(delivery) == b"RAW-1RAW-2"
    assert delivery.state is DeliveryState.COMPLETED
    assert delivery.bytes_sent == 10


@pytest.mark.asyncio
async def test_failure_before_first_byte_is_raised_from_start() -> None:
    async def broken(source, profile):
        raise StreamFailure("transcoder could not start", stage="transcode")
        yield b""  # pragma: no cover

    delivery = _delivery(broken)
    with pytest.raises(StreamFailure) as exc_info:
        await delivery.start()

    assert exc_info.value.stage == "transcode"
    assert delivery.state is DeliveryState.NOT_STARTED
    with pytest.raises(RuntimeError):
        await _collect(delivery)


@pytest.mark.asyncio
async def test_transcoder_without_output_fails_before_headers() -> None:
    async def silent(source, profile):
        async for _ in source:
            pass
        return
        yield b""  # pragma: no cover

    with pytest.raises(StreamFailure) as exc_info:
        await _delivery(silent).start()
    assert exc_info.value.stage == "transcode"


@pytest.mark.asyncio
async def test_failure_mid_stream_aborts_delivery() -> None:
    async def flaky(source, profile):
        yield b"first"
        raise StreamFailure("source stream failed", stage="source")

    delivery = _delivery(flaky)
    await delivery.start()

    with pytest.raises(StreamFailure) as exc_info:
        await _collect(delivery)

    assert delivery.state is DeliveryState.ABORTED
    assert exc_info.value.bytes_sent == 5


@pytest.mark.asyncio
async def test_consumer_going_away_aborts_and_closes_pipeline() -> None:
    closed = []

    async def endless(source, profile):
        try:
            while True:
                yield b"x"
        finally:
            closed.append(True)

    delivery = _delivery(endless)
    await delivery.start()
    body = delivery.body()
    assert await anext(body) == b"x"
    await body.aclose()

    assert delivery.state is DeliveryState.ABORTED
    assert closed == [True]


@pytest.mark.asyncio
async def test_guarded_source_reports_read_errors_as_source_stage() -> None:
    async def dropping():
        yield b"a"
        raise httpx.ReadError("connection reset")

    received = []
    with pytest.raises(StreamFailure) as exc_info:
        async for chunk in _guarded_source(dropping()):
            received.append(chunk)

    assert received == [b"a"]
    assert exc_info.value.stage == "source"


@pytest.mark.asyncio
async def test_missing_ffmpeg_binary_is_a_transcode_failure() -> None:
    with patch(
        "medialink.services.transcoder.asyncio.create_subprocess_exec",
        new=AsyncMock(side_effect=FileNotFoundError("ffmpeg")),
    ):
        with pytest.raises(StreamFailure) as exc_info:
            async for _ in ffmpeg_transcode(_chunks(b"data"), PROFILE, binary="ffmpeg-missing"):
                pass

    assert exc_info.value.stage == "transcode"


@pytest.mark.asyncio
async def test_passthrough_delivery_relays_source_bytes() -> None:
    async def fake_stream_bytes(url, **kwargs):
        yield b"m4a-"
        yield b"bytes"

    with patch("medialink.services.stream_delivery.stream_bytes", new=fake_stream_bytes):
        delivery = AudioDelivery.from_settings(Settings(), "https://cdn.example/a.m4a", "Track", transcode=False)
        await delivery.start()
        data = await _collect(delivery)

    assert data == b"m4a-bytes"
    assert delivery.state is DeliveryState.COMPLETED
    assert delivery.filename == "Track.mp3"
