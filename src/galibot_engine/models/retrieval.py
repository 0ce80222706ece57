# galibot_engine/models/retrieval.py
"""Corpus chunks and retrieval results."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import RetrievalStatus


class ChunkRecord(BaseModel):
    """An ingested slice of course text with its precomputed embedding."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str = ""
    embedding: list[float] | None = None
    source: str = "unknown"
    category: str = Field(default="", description="Course name the chunk belongs to")
    metadata: dict[str, Any] = Field(default_factory=dict)


class SourceRef(BaseModel):
    """Where a returned chunk came from."""

    source: str
    score: float
    category: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class ScoredChunk(BaseModel):
    """A candidate after similarity scoring."""

    chunk: ChunkRecord
    similarity: float


class RetrievalMetrics(BaseModel):
    """Per-fetch diagnostics. Never cached."""

    status: RetrievalStatus
    max_candidates: int = 0
    retrieved_count: int = Field(default=0, description="Candidates returned by the store")
    processed_count: int = Field(default=0, description="Candidates actually scored")
    skipped_count: int = Field(default=0, description="Candidates without a usable embedding")
    returned_count: int = 0
    elapsed_ms: float = 0.0
    error: str | None = None


class RetrievalResult(BaseModel):
    """Chunks and sources handed to prompt composition."""

    chunks: list[str] = Field(default_factory=list)
    sources: list[SourceRef] = Field(default_factory=list)
    metrics: RetrievalMetrics

    @classmethod
    def empty(
        cls,
        status: RetrievalStatus,
        elapsed_ms: float = 0.0,
        **metrics: Any,
    ) -> RetrievalResult:
        return cls(metrics=RetrievalMetrics(status=status, elapsed_ms=elapsed_ms, **metrics))

    @property
    def status(self) -> RetrievalStatus:
        return self.metrics.status

    def __bool__(self) -> bool:
        return bool(self.chunks)


class CachedRetrieval(BaseModel):
    """The cacheable part of a RetrievalResult."""

    chunks: list[str] = Field(default_factory=list)
    sources: list[SourceRef] = Field(default_factory=list)
