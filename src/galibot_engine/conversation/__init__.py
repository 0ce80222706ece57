# galibot_engine/conversation/__init__.py
"""Per-user conversation history and prompt-size accounting."""

from .memory import ConversationMemory
from .tokens import (
    MESSAGE_OVERHEAD_TOKENS,
    estimate_message_tokens,
    estimate_messages_tokens,
    estimate_tokens,
    trim_history,
)

__all__ = [
    "ConversationMemory",
    "MESSAGE_OVERHEAD_TOKENS",
    "estimate_message_tokens",
    "estimate_messages_tokens",
    "estimate_tokens",
    "trim_history",
]
