"""Error taxonomy shared by the resolution pipeline and the HTTP layer.

Everything below the Resolver boundary (one strategy, one selector miss) is
absorbed and turned into the next fallback attempt. Everything at or above it
reaches the caller as a structured payload built from these exceptions.
Reason codes are short and stable; they never carry upstream URLs.
"""

from __future__ import annotations

from dataclasses import dataclass


class MediaLinkError(Exception):
    """Base class for all errors raised by the resolution pipeline."""


class InvalidReference(MediaLinkError):
    """Caller input could not be classified into a Reference."""

    def __init__(self, message: str, *, kind: str | None = None):
        super().__init__(message)
        self.kind = kind


class StrategyFailure(MediaLinkError):
    """One strategy attempt failed.

    ``hard`` is True for transport faults (DNS, connection reset, TLS) and
    False for soft failures (bad shape, upstream error payload, timeout).
    """

    def __init__(self, reason: str, *, strategy: str = "", hard: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.strategy = strategy
        self.hard = hard


class NormalizationError(StrategyFailure):
    """A raw response lacked a required field after the upstream call succeeded."""

    def __init__(self, reason: str, *, strategy: str = ""):
        super().__init__(reason, strategy=strategy, hard=False)


@dataclass(frozen=True)
class AttemptFailure:
    strategy: str
    reason: str
    hard: bool = False

    def as_dict(self) -> dict:
        return {"strategy": self.strategy, "reason": self.reason}


class ResolutionExhausted(MediaLinkError):
    """Every registered strategy failed; ``attempts`` is in priority order."""

    def __init__(self, attempts: list[AttemptFailure]):
        super().__init__(f"all {len(attempts)} strategies failed")
        self.attempts = list(attempts)


class StreamFailure(MediaLinkError):
    """Audio delivery failed at the ``source`` or ``transcode`` stage."""

    def __init__(self, message: str, *, stage: str, bytes_sent: int = 0):
        super().__init__(message)
        self.stage = stage
        self.bytes_sent = bytes_sent
