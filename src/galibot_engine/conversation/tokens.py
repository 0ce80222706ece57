# galibot_engine/conversation/tokens.py
"""
Rough token accounting for prompt history.

Mixed Hebrew/English text averages about four characters per token; each
message adds a fixed overhead for its role and framing.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Any

from galibot_engine.config import MAX_HISTORY_MESSAGES_FALLBACK, MAX_HISTORY_TOKENS
from galibot_engine.models import ConversationMessage

CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD_TOKENS = 10


def estimate_tokens(text: str | None) -> int:
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _content(message: ConversationMessage | dict[str, Any]) -> str:
    if isinstance(message, ConversationMessage):
        return message.content
    return message.get("content") or ""


def estimate_message_tokens(message: ConversationMessage | dict[str, Any]) -> int:
    return estimate_tokens(_content(message)) + MESSAGE_OVERHEAD_TOKENS


def estimate_messages_tokens(messages: Iterable[ConversationMessage | dict[str, Any]]) -> int:
    return sum(estimate_message_tokens(m) for m in messages)


def trim_history(
    messages: Sequence[ConversationMessage],
    max_messages: int = MAX_HISTORY_MESSAGES_FALLBACK,
    max_tokens: int = MAX_HISTORY_TOKENS,
) -> list[ConversationMessage]:
    """
    Newest suffix of *messages* that satisfies both limits.

    The token limit keeps the longest suffix whose estimate fits the budget;
    the count limit keeps the last *max_messages*. The shorter suffix wins.
    """
    by_count = len(messages) if max_messages >= len(messages) else max(0, max_messages)

    by_tokens = 0
    used = 0
    for message in reversed(messages):
        cost = estimate_message_tokens(message)
        if used + cost > max_tokens:
            break
        used += cost
        by_tokens += 1

    keep = min(by_count, by_tokens)
    return list(messages[len(messages) - keep :])
