# galibot_engine/retrieval/vector_store.py
"""
Read-only access to the ingested corpus.

The corpus is small enough to score in full, so a store only has to hand out
candidate records (with their precomputed embeddings), optionally narrowed to
one category and capped at ``limit``.
"""

from __future__ import annotations

import logging
from typing import Protocol

from galibot_engine.config import CHUNKS_COLLECTION
from galibot_engine.exceptions import StoreUnavailable
from galibot_engine.models import ChunkRecord
from galibot_engine.storage import PersistentStore

logger = logging.getLogger(__name__)


class VectorStore(Protocol):
    """Protocol for corpus stores."""

    async def query(self, category: str | None = None, limit: int = 50) -> list[ChunkRecord]:
        """Up to *limit* chunks, filtered by *category* when given."""
        ...


class InMemoryVectorStore:
    """VectorStore over a list of ChunkRecords held in memory."""

    def __init__(self, chunks: list[ChunkRecord] | None = None):
        self._chunks: list[ChunkRecord] = list(chunks or [])

    def __len__(self) -> int:
        return len(self._chunks)

    def add(self, chunk: ChunkRecord) -> None:
        self._chunks.append(chunk)

    async def query(self, category: str | None = None, limit: int = 50) -> list[ChunkRecord]:
        matches = [c for c in self._chunks if category is None or c.category == category]
        return matches[:limit]


class PersistentVectorStore:
    """
    VectorStore reading chunk documents from a PersistentStore collection.

    Documents carry ``text``, ``embedding``, ``source``, ``course_name`` and
    ``metadata``, as written by the ingestion pipeline.
    """

    def __init__(self, store: PersistentStore, collection: str = CHUNKS_COLLECTION):
        self._store = store
        self.collection = collection

    async def query(self, category: str | None = None, limit: int = 50) -> list[ChunkRecord]:
        filters = {"course_name": category} if category else None
        try:
            docs = await self._store.query(self.collection, filters=filters, limit=limit)
        except StoreUnavailable:
            raise
        except Exception as e:
            raise StoreUnavailable(str(e), code=getattr(e, "code", None)) from e

        chunks = []
        for doc in docs:
            embedding = doc.data.get("embedding")
            chunks.append(
                ChunkRecord(
                    id=doc.id,
                    text=doc.data.get("text") or "",
                    embedding=embedding if isinstance(embedding, list) else None,
                    source=doc.data.get("source") or "unknown",
                    category=doc.data.get("course_name") or "",
                    metadata=doc.data.get("metadata") or {},
                )
            )
        logger.debug(f"[VectorStore] {len(chunks)} candidates from {self.collection} (category={category})")
        return chunks
