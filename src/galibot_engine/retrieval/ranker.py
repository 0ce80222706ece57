# galibot_engine/retrieval/ranker.py
"""
SimilarityRanker - scores candidate chunks against a query vector.

Scoring is vectorised per batch with numpy. Selection sorts by similarity,
keeps the top K, drops anything at or below the threshold and deduplicates by
source file name so one document cannot crowd out the others.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

import numpy as np
from pydantic import BaseModel, Field

from galibot_engine.config import RAG_SIMILARITY_THRESHOLD
from galibot_engine.models import ChunkRecord, ScoredChunk, SourceRef

_PATH_SEPARATORS = re.compile(r"[\\/]")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    ``dot(a, b) / (|a| * |b|)``.

    Returns exactly 0.0 for vectors of different length or with a zero norm;
    never raises.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm_a, norm_b = np.linalg.norm(va), np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    return similarity if np.isfinite(similarity) else 0.0


def normalize_source(source: str | None) -> str:
    """File name of a source path (handles both separators)."""
    return _PATH_SEPARATORS.split(source or "unknown")[-1] or "unknown"


class BatchScore(BaseModel):
    """Scored candidates from one batch plus how many were unusable."""

    scored: list[ScoredChunk] = Field(default_factory=list)
    skipped: int = 0


class SimilarityRanker:
    """Scores and selects chunks for one query."""

    def __init__(self, threshold: float = RAG_SIMILARITY_THRESHOLD):
        self.threshold = threshold

    def score_batch(self, query_vector: np.ndarray, batch: Sequence[ChunkRecord]) -> BatchScore:
        """
        Score every usable chunk in *batch* at once.

        A chunk without an embedding, or whose dimension differs from the
        query's, is skipped rather than treated as an error.
        """
        dim = len(query_vector)
        usable = [c for c in batch if c.embedding is not None and len(c.embedding) == dim]
        skipped = len(batch) - len(usable)
        if not usable:
            return BatchScore(skipped=skipped)

        matrix = np.asarray([c.embedding for c in usable], dtype=float)
        denominators = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
        dots = matrix @ query_vector

        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(denominators > 0, dots / denominators, 0.0)
        similarities = np.nan_to_num(similarities, nan=0.0, posinf=0.0, neginf=0.0)

        return BatchScore(
            scored=[ScoredChunk(chunk=c, similarity=float(s)) for c, s in zip(usable, similarities)],
            skipped=skipped,
        )

    def select(self, scored: Sequence[ScoredChunk], top_k: int) -> tuple[list[str], list[SourceRef]]:
        """Top-K, then threshold, then first-occurrence-per-source."""
        ranked = sorted(scored, key=lambda s: s.similarity, reverse=True)[:top_k]

        chunks: list[str] = []
        sources: list[SourceRef] = []
        seen: set[str] = set()
        for item in ranked:
            if not item.chunk.text or item.similarity <= self.threshold:
                continue

            name = normalize_source(item.chunk.source)
            if name in seen:
                continue
            seen.add(name)

            chunks.append(item.chunk.text)
            sources.append(
                SourceRef(
                    source=item.chunk.source,
                    score=item.similarity,
                    category=item.chunk.category,
                    metadata=dict(item.chunk.metadata),
                )
            )
        return chunks, sources
