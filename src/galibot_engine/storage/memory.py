# galibot_engine/storage/memory.py
"""
In-memory PersistentStore for tests and local development.

Not persistent - documents are lost when the process exits.
"""

from __future__ import annotations

import copy
import uuid
from typing import Any

from pydantic import BaseModel, Field

from .base import MAX_BATCH_WRITES, StoredDocument


class InMemoryPersistentStore(BaseModel):
    """Dict-of-dicts document store honouring the PersistentStore contract."""

    collections: dict[str, dict[str, dict[str, Any]]] = Field(default_factory=dict)
    max_batch_writes: int = Field(default=MAX_BATCH_WRITES)

    model_config = {"arbitrary_types_allowed": True}

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self.collections.setdefault(name, {})

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._collection(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(
        self,
        collection: str,
        doc_id: str,
        value: dict[str, Any],
        merge: bool = False,
    ) -> None:
        docs = self._collection(collection)
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(value))
        else:
            docs[doc_id] = copy.deepcopy(value)

    async def add(self, collection: str, value: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._collection(collection)[doc_id] = copy.deepcopy(value)
        return doc_id

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StoredDocument]:
        matches = [
            (doc_id, doc)
            for doc_id, doc in self._collection(collection).items()
            if all(doc.get(field) == expected for field, expected in (filters or {}).items())
        ]

        if order_by is not None:
            matches.sort(key=lambda item: item[1].get(order_by), reverse=descending)

        end = offset + limit if limit is not None else None
        return [StoredDocument(id=doc_id, data=copy.deepcopy(doc)) for doc_id, doc in matches[offset:end]]

    async def batch_delete(self, collection: str, doc_ids: list[str]) -> int:
        if len(doc_ids) > self.max_batch_writes:
            raise ValueError(f"Batch of {len(doc_ids)} exceeds the {self.max_batch_writes}-write limit")

        docs = self._collection(collection)
        removed = 0
        for doc_id in doc_ids:
            if docs.pop(doc_id, None) is not None:
                removed += 1
        return removed

    def count(self, collection: str) -> int:
        return len(self._collection(collection))

    def clear(self) -> None:
        self.collections.clear()
