# galibot_engine/storage/base.py
"""Durable document store contract consumed by the engine."""

from __future__ import annotations

from typing import Any, Protocol

from pydantic import BaseModel, Field

# Largest number of writes a single batch may carry
MAX_BATCH_WRITES = 500


class StoredDocument(BaseModel):
    """A document id and its data."""

    id: str
    data: dict[str, Any] = Field(default_factory=dict)


class PersistentStore(Protocol):
    """Protocol for the durable store holding user state, messages and profiles."""

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Load a document, or None if it does not exist."""
        ...

    async def set(
        self,
        collection: str,
        doc_id: str,
        value: dict[str, Any],
        merge: bool = False,
    ) -> None:
        """Create or overwrite (or merge into) a document."""
        ...

    async def add(self, collection: str, value: dict[str, Any]) -> str:
        """Insert a document under a generated id and return the id."""
        ...

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StoredDocument]:
        """Equality-filtered, optionally ordered and paged query."""
        ...

    async def batch_delete(self, collection: str, doc_ids: list[str]) -> int:
        """Delete up to MAX_BATCH_WRITES documents in one batch."""
        ...
