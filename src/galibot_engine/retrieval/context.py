# galibot_engine/retrieval/context.py
"""Formats retrieved chunks into the context block injected into the prompt."""

from __future__ import annotations

from pydantic import BaseModel, Field

from galibot_engine.models import RetrievalResult, SourceRef

CHUNK_SEPARATOR = "\n\n---\n\n"


class RagContext(BaseModel):
    context: str
    sources: list[SourceRef] = Field(default_factory=list)
    chunks_count: int = 0


def build_rag_context(result: RetrievalResult | None) -> RagContext | None:
    """Numbered, source-labelled context, or None when nothing was retrieved."""
    if result is None or not result.chunks:
        return None

    parts = []
    for i, chunk in enumerate(result.chunks):
        source = result.sources[i].source if i < len(result.sources) else "unknown"
        parts.append(f"[מקור {i + 1}: {source}]\n{chunk}")

    return RagContext(
        context=CHUNK_SEPARATOR.join(parts),
        sources=list(result.sources),
        chunks_count=len(result.chunks),
    )
