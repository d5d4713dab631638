from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_MP3_BITRATES = frozenset({32, 48, 64, 96, 128, 160, 192, 224, 256, 320})


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=["../../.env", ".env"], extra="ignore")

    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    HOST: str = "0.0.0.0"
    PORT: int = 3000

    CORS_ORIGINS: list[str] = ["*"]

    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    )

    # === Audio strategies (tried in this order) ===
    YTMP3FREE_API_URL: str = "https://ytmp3free.cc/@api/json/mp3/{video_id}"
    YTMP3FREE_REFERER: str = "https://ytmp3free.cc/"
    YTMP3FREE_TIMEOUT_MS: int = 30000
    VEVIOZ_API_URL: str = "https://api.vevioz.com/api/button/mp3/{video_id}"
    VEVIOZ_TIMEOUT_MS: int = 30000
    YTDLP_ENABLED: bool = True
    YTDLP_TIMEOUT_MS: int = 45000

    # === Catalog strategies ===
    CATALOG_BASE_URL: str = "https://www.filmyhub.example"
    CATALOG_MIRROR_BASE_URL: str | None = None
    CATALOG_SEARCH_PATH: str = "/page/{page}/?s={query}"
    CATALOG_CONTENT_PATH_PATTERN: str = Field(
        default=r"/(movies?|film|series)/",
        description="Regex a link path must match to count as a content item in the heuristic pass.",
    )
    CATALOG_TIMEOUT_MS: int = 20000
    CATALOG_ALLOWED_DOMAINS: str = ""  # comma-separated; empty allows any public host

    # === Stream delivery ===
    FFMPEG_BINARY: str = "ffmpeg"
    AUDIO_CODEC: str = "libmp3lame"
    AUDIO_FORMAT: str = "mp3"
    AUDIO_BITRATE_KBPS: int = 128
    AUDIO_CHANNELS: int = 2
    STREAM_CHUNK_SIZE: int = 64 * 1024
    STREAM_SOURCE_TIMEOUT: float = Field(
        default=30.0, description="Connect/read timeout for the source audio stream (seconds)."
    )
    TRANSCODE_IDLE_TIMEOUT: float = Field(
        default=60.0,
        description="Longest allowed gap between two transcoded chunks before aborting (seconds).",
    )

    @field_validator(
        "YTMP3FREE_TIMEOUT_MS",
        "VEVIOZ_TIMEOUT_MS",
        "YTDLP_TIMEOUT_MS",
        "CATALOG_TIMEOUT_MS",
    )
    @classmethod
    def validate_timeouts(cls, v: int) -> int:
        """Validate per-strategy timeouts (milliseconds)."""
        if v < 1000:
            raise ValueError("Strategy timeout must be >= 1000 ms")
        if v > 120000:
            raise ValueError("Strategy timeout must be <= 120000 ms")
        return v

    @field_validator("AUDIO_BITRATE_KBPS")
    @classmethod
    def validate_bitrate(cls, v: int) -> int:
        if v not in _MP3_BITRATES:
            raise ValueError(f"AUDIO_BITRATE_KBPS must be one of {sorted(_MP3_BITRATES)}")
        return v

    @field_validator("AUDIO_CHANNELS")
    @classmethod
    def validate_channels(cls, v: int) -> int:
        if v not in (1, 2):
            raise ValueError("AUDIO_CHANNELS must be 1 or 2")
        return v

    @field_validator("STREAM_CHUNK_SIZE")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Validate stream chunk size (bytes)."""
        if v < 1024:
            raise ValueError("STREAM_CHUNK_SIZE must be >= 1024 bytes")
        if v > 4 * 1024 * 1024:
            raise ValueError("STREAM_CHUNK_SIZE must be <= 4 MiB")
        return v

    @field_validator("STREAM_SOURCE_TIMEOUT", "TRANSCODE_IDLE_TIMEOUT")
    @classmethod
    def validate_stream_timeouts(cls, v: float) -> float:
        if v < 1.0:
            raise ValueError("Stream timeouts must be >= 1 second")
        if v > 600.0:
            raise ValueError("Stream timeouts must be <= 600 seconds")
        return v


settings = Settings()
