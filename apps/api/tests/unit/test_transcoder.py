"""ffmpeg_transcode against stand-in ffmpeg binaries written as shell scripts."""

import asyncio
import sys
from unittest.mock import patch

import pytest

from medialink.core.errors import StreamFailure
from medialink.services.transcoder import TranscodeProfile, ffmpeg_transcode

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")

PROFILE = TranscodeProfile()
_real_create_subprocess_exec = asyncio.create_subprocess_exec


def _fake_ffmpeg(tmp_path, body: str) -> str:
    script = tmp_path / "ffmpeg"
    script.write_text(f"#!/bin/sh\n{body}\n")
    script.chmod(0o755)
    return str(script)


@pytest.fixture
def started():
    processes = []

    async def recording_exec(*args, **kwargs):
        process = await _real_create_subprocess_exec(*args, **kwargs)
        processes.append(process)
        return process

    with patch("medialink.services.transcoder.asyncio.create_subprocess_exec", new=recording_exec):
        yield processes


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


@pytest.mark.asyncio
async def test_source_is_pumped_through_the_process(tmp_path, started) -> None:
    binary = _fake_ffmpeg(tmp_path, "exec cat")

    output = b""
    async for chunk in ffmpeg_transcode(_chunks(b"abc", b"def"), PROFILE, binary=binary, idle_timeout=5):
        output += chunk

    assert output == b"abcdef"
    assert started[0].returncode == 0


@pytest.mark.asyncio
async def test_source_error_after_output_is_a_source_failure(tmp_path, started) -> None:
    binary = _fake_ffmpeg(tmp_path, "exec cat")
    first_chunk_seen = asyncio.Event()

    async def failing_source():
        yield b"0123456789"
        await first_chunk_seen.wait()
        raise RuntimeError("upstream dropped")

    received = []
    with pytest.raises(StreamFailure) as exc_info:
        async for chunk in ffmpeg_transcode(failing_source(), PROFILE, binary=binary, idle_timeout=5):
            received.append(chunk)
            first_chunk_seen.set()

    assert b"".join(received) == b"0123456789"
    assert exc_info.value.stage == "source"
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert started[0].returncode is not None


@pytest.mark.asyncio
async def test_non_zero_exit_is_a_transcode_failure(tmp_path, started) -> None:
    binary = _fake_ffmpeg(tmp_path, "cat >/dev/null\necho boom >&2\nexit 1")

    with pytest.raises(StreamFailure) as exc_info:
        async for _ in ffmpeg_transcode(_chunks(b"data"), PROFILE, binary=binary, idle_timeout=5):
            pass

    assert exc_info.value.stage == "transcode"
    assert "status 1" in str(exc_info.value)
    assert started[0].returncode == 1


@pytest.mark.asyncio
async def test_stalled_process_times_out_and_is_reaped(tmp_path, started) -> None:
    binary = _fake_ffmpeg(tmp_path, "exec sleep 5")

    with pytest.raises(StreamFailure) as exc_info:
        async for _ in ffmpeg_transcode(_chunks(b"data"), PROFILE, binary=binary, idle_timeout=0.2):
            pass

    assert exc_info.value.stage == "transcode"
    assert str(exc_info.value) == "transcoder stalled"
    assert started[0].returncode is not None


@pytest.mark.asyncio
async def test_early_close_kills_process_and_closes_source(tmp_path, started) -> None:
    binary = _fake_ffmpeg(tmp_path, "exec cat")
    source_closed = False

    async def endless_source():
        nonlocal source_closed
        try:
            while True:
                yield b"x" * 1024
                await asyncio.sleep(0)
        finally:
            source_closed = True

    stream = ffmpeg_transcode(endless_source(), PROFILE, binary=binary, idle_timeout=5)
    first = await anext(stream)
    await stream.aclose()

    assert first
    assert started[0].returncode is not None
    assert source_closed
