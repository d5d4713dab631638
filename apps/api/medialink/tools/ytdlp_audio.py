"""Audio metadata extraction through the yt-dlp CLI (no download).

yt-dlp runs as a child process printing one JSON document (``-J``). The
process is killed and reaped on every exit path, so a strategy timeout
cancels the extraction instead of leaving it running in the background.
"""

import asyncio
import contextlib
import json
import sys
from collections.abc import Sequence

import structlog

from medialink.core.errors import StrategyFailure

logger = structlog.get_logger(__name__)

YTDLP_COMMAND: tuple[str, ...] = (sys.executable, "-m", "yt_dlp")


def _best_audio_url(info: dict) -> str | None:
    if info.get("url"):
        return info["url"]
    for fmt in info.get("requested_formats") or []:
        if fmt.get("acodec") not in (None, "none") and fmt.get("url"):
            return fmt["url"]
    audio_only = [
        fmt
        for fmt in info.get("formats") or []
        if fmt.get("url") and fmt.get("vcodec") == "none" and fmt.get("acodec") not in (None, "none")
    ]
    if not audio_only:
        return None
    best = max(audio_only, key=lambda fmt: fmt.get("abr") or fmt.get("tbr") or 0)
    return best["url"]


def _cli_args(url: str, socket_timeout: float, user_agent: str | None) -> list[str]:
    args = [
        "-J",
        "--no-playlist",
        "--no-warnings",
        "-f", "bestaudio/best",
        "--socket-timeout", str(socket_timeout),
    ]  # fmt: skip
    if user_agent:
        args += ["--add-headers", f"User-Agent:{user_agent}"]
    args += ["--", url]
    return args


def _summary(info: dict) -> dict:
    return {
        "title": info.get("title"),
        "url": _best_audio_url(info),
        "thumbnail": info.get("thumbnail"),
        "duration": info.get("duration"),
        "uploader": info.get("uploader"),
    }


async def extract_audio_info(
    url: str,
    *,
    socket_timeout: float,
    user_agent: str | None = None,
    command: Sequence[str] = YTDLP_COMMAND,
) -> dict:
    """Return ``{title, url, thumbnail, duration, uploader}`` for a video page URL."""
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            *_cli_args(url, socket_timeout, user_agent),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise StrategyFailure("extractor_unavailable", hard=True) from exc

    try:
        stdout, stderr = await process.communicate()
    finally:
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    if process.returncode != 0:
        logger.warning(
            "ytdlp_audio.extract_failed",
            returncode=process.returncode,
            stderr=stderr.decode("utf-8", errors="replace")[-200:],
        )
        raise StrategyFailure("extractor_error")
    try:
        info = json.loads(stdout)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise StrategyFailure("malformed_payload") from exc
    if not isinstance(info, dict):
        raise StrategyFailure("extractor_no_info")
    return _summary(info)
