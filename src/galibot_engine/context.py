# galibot_engine/context.py
"""Collaborators shared by every turn, injected into the TurnEngine."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from galibot_engine.background import BackgroundTasks
from galibot_engine.cache import CacheStore


class OrchestratorContext(BaseModel):
    """
    Everything a TurnEngine talks to.

    ``store``, ``embedder`` and ``vector_store`` are optional: without a store
    the engine runs stateless, and without the retrieval pair it skips RAG.
    """

    completion: Any = Field(..., description="CompletionService")
    cache: CacheStore = Field(default_factory=CacheStore)
    store: Any | None = Field(default=None, description="PersistentStore")
    embedder: Any | None = Field(default=None, description="EmbeddingService")
    vector_store: Any | None = Field(default=None, description="VectorStore")
    background: BackgroundTasks = Field(default_factory=BackgroundTasks)

    model_config = {"arbitrary_types_allowed": True}
