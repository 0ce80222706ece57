# galibot_engine/cache/__init__.py
"""TTL cache over conversational state, history and retrieval results."""

from .cached_reads import CachedReads
from .keys import (
    FIRST_CONTACT_PREFIX,
    HISTORY_PREFIX,
    RETRIEVAL_PREFIX,
    STATE_PREFIX,
    first_contact_key,
    history_key,
    retrieval_key,
    state_key,
)
from .store import CacheEntry, CacheLookup, CacheStore, hash_key

__all__ = [
    "CacheEntry",
    "CacheLookup",
    "CacheStore",
    "CachedReads",
    "hash_key",
    # keys
    "FIRST_CONTACT_PREFIX",
    "HISTORY_PREFIX",
    "RETRIEVAL_PREFIX",
    "STATE_PREFIX",
    "first_contact_key",
    "history_key",
    "retrieval_key",
    "state_key",
]
