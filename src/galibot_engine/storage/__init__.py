# galibot_engine/storage/__init__.py
"""Durable storage contract and the bundled in-memory backend."""

from .base import MAX_BATCH_WRITES, PersistentStore, StoredDocument
from .memory import InMemoryPersistentStore

__all__ = [
    "MAX_BATCH_WRITES",
    "InMemoryPersistentStore",
    "PersistentStore",
    "StoredDocument",
]
