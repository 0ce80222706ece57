# galibot_engine/cache/keys.py
"""Cache key layout. Each logical cache owns one prefix."""

from __future__ import annotations

import hashlib

from galibot_engine.models import normalize_email

HISTORY_PREFIX = "conv_history:"
STATE_PREFIX = "user_state:"
FIRST_CONTACT_PREFIX = "first_login:"
RETRIEVAL_PREFIX = "rag:"

# Only the head of a query contributes to its retrieval cache key
RETRIEVAL_KEY_QUERY_CHARS = 200


def history_key(user_id: str) -> str:
    return f"{HISTORY_PREFIX}{normalize_email(user_id)}"


def state_key(user_id: str) -> str:
    return f"{STATE_PREFIX}{normalize_email(user_id)}"


def first_contact_key(user_id: str) -> str:
    return f"{FIRST_CONTACT_PREFIX}{normalize_email(user_id)}"


def normalize_category(category: str | None) -> str:
    return (category or "").strip() or "all"


def retrieval_key(query: str, category: str | None = None) -> str:
    """Key for a query-result entry: ``rag:<category>:<hash of query head>``."""
    head = (query or "")[:RETRIEVAL_KEY_QUERY_CHARS]
    digest = hashlib.sha256(head.encode()).hexdigest()[:16]
    return f"{RETRIEVAL_PREFIX}{normalize_category(category)}:{digest}"
