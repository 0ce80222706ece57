# galibot_engine/perf.py
"""Request-correlated performance log lines: ``[RID:x] phase=y ms=z k=v``."""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any

logger = logging.getLogger(__name__)


def generate_request_id() -> str:
    """Short (8 hex chars) id correlating every log line of one turn."""
    return secrets.token_hex(4)


def elapsed_ms(started: float) -> float:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return (time.perf_counter() - started) * 1000


def log_performance(request_id: str, phase: str, ms: float, **extra: Any) -> None:
    extra_str = "".join(f" {key}={value}" for key, value in extra.items())
    logger.info(f"[RID:{request_id}] phase={phase} ms={ms:.0f}{extra_str}")


def log_token_usage(request_id: str, usage: Any) -> None:
    """Log prompt/completion/total tokens from an SDK usage object or dict."""
    if usage is None:
        return

    def read(field: str) -> int:
        value = usage.get(field) if isinstance(usage, dict) else getattr(usage, field, None)
        return value or 0

    log_performance(
        request_id,
        "token_usage",
        0,
        prompt_tokens=read("prompt_tokens"),
        completion_tokens=read("completion_tokens"),
        total_tokens=read("total_tokens"),
    )


def log_prompt_size(request_id: str, char_count: int, message_count: int) -> None:
    log_performance(request_id, "prompt_size", 0, chars=char_count, messages=message_count)
