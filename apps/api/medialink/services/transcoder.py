"""Live transcoding through an ffmpeg child process.

The source is pumped into ffmpeg's stdin by a separate task while transcoded
bytes are read from stdout and yielded as they arrive. Whatever happens
(completion, failure, consumer going away) the pump is cancelled, the source
closed, and the process killed and reaped.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from dataclasses import dataclass

import structlog

from medialink.core.config import Settings
from medialink.core.errors import StreamFailure

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TranscodeProfile:
    codec: str = "libmp3lame"
    container: str = "mp3"
    channels: int = 2
    bitrate_kbps: int = 128

    @classmethod
    def from_settings(cls, settings: Settings) -> TranscodeProfile:
        return cls(
            codec=settings.AUDIO_CODEC,
            container=settings.AUDIO_FORMAT,
            channels=settings.AUDIO_CHANNELS,
            bitrate_kbps=settings.AUDIO_BITRATE_KBPS,
        )

    def ffmpeg_args(self, binary: str = "ffmpeg") -> list[str]:
        return [
            binary,
            "-hide_banner",
            "-loglevel", "error",
            "-i", "pipe:0",
            "-vn",
            "-acodec", self.codec,
            "-ac", str(self.channels),
            "-b:a", f"{self.bitrate_kbps}k",
            "-f", self.container,
            "pipe:1",
        ]  # fmt: skip


async def _close_source(source: AsyncIterator[bytes]) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()


async def ffmpeg_transcode(
    source: AsyncIterator[bytes],
    profile: TranscodeProfile,
    *,
    binary: str = "ffmpeg",
    chunk_size: int = 64 * 1024,
    idle_timeout: float = 60.0,
) -> AsyncIterator[bytes]:
    """Yield ``source`` transcoded to ``profile``.

    Raises StreamFailure with stage ``source`` when reading the source fails and
    stage ``transcode`` when ffmpeg cannot start, stalls, or exits non-zero.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *profile.ffmpeg_args(binary),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        await _close_source(source)
        raise StreamFailure("transcoder could not start", stage="transcode") from exc

    source_errors: list[BaseException] = []

    async def pump() -> None:
        try:
            async for chunk in source:
                process.stdin.write(chunk)
                await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # ffmpeg stopped reading; its exit status says why.
            logger.debug("transcoder.stdin_closed_early")
        except Exception as exc:
            source_errors.append(exc)
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
        finally:
            if not process.stdin.is_closing():
                process.stdin.close()
            await _close_source(source)

    pump_task = asyncio.create_task(pump())
    stderr_task = asyncio.create_task(process.stderr.read())
    try:
        while True:
            try:
                chunk = await asyncio.wait_for(process.stdout.read(chunk_size), timeout=idle_timeout)
            except TimeoutError as exc:
                raise StreamFailure("transcoder stalled", stage="transcode") from exc
            if not chunk:
                break
            yield chunk

        await pump_task
        if source_errors:
            error = source_errors[0]
            if isinstance(error, StreamFailure):
                raise error
            raise StreamFailure("source stream failed", stage="source") from error

        returncode = await process.wait()
        if returncode != 0:
            stderr = (await stderr_task).decode("utf-8", errors="replace")
            logger.error("transcoder.failed", returncode=returncode, stderr=stderr[-500:])
            raise StreamFailure(f"ffmpeg exited with status {returncode}", stage="transcode")
    finally:
        pump_task.cancel()
        stderr_task.cancel()
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
        await asyncio.gather(pump_task, stderr_task, return_exceptions=True)
        await process.wait()
