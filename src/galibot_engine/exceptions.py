# galibot_engine/exceptions.py
"""Exception taxonomy for the turn-orchestration engine.

None of these are fatal: every caller inside the engine resolves them to a
degraded-but-valid result.
"""

from __future__ import annotations

from typing import Any

QUOTA_ERROR_CODE = 8
QUOTA_MARKERS = ("Quota exceeded", "RESOURCE_EXHAUSTED")


class GalibotError(Exception):
    """Base class for all engine errors."""


class UpstreamUnavailable(GalibotError):
    """An external service (embedding or completion) could not be reached."""


class EmbeddingError(UpstreamUnavailable):
    """The embedding service failed to produce a vector."""


class CompletionError(UpstreamUnavailable):
    """The completion service failed to produce text."""


class QuotaExceeded(UpstreamUnavailable):
    """An upstream or backing store reported resource exhaustion."""


class StoreUnavailable(GalibotError):
    """A backing store (vector or persistent) failed."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class DiagnosisValidationFailure(GalibotError):
    """A diagnosis-only answer violated the output contract."""

    def __init__(self, reason: str):
        super().__init__(f"Diagnosis-only output rejected: {reason}")
        self.reason = reason


class CacheCorruption(GalibotError):
    """A cached value did not have the expected shape."""

    def __init__(self, key_hash: str, detail: Any = None):
        super().__init__(f"Malformed cache entry {key_hash}: {detail}")
        self.key_hash = key_hash


def is_quota_error(exc: BaseException) -> bool:
    """True if *exc* looks like a quota / resource-exhaustion condition."""
    if isinstance(exc, QuotaExceeded):
        return True
    if getattr(exc, "code", None) == QUOTA_ERROR_CODE:
        return True
    message = str(exc)
    return any(marker in message for marker in QUOTA_MARKERS)
