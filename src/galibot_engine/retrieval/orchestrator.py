# galibot_engine/retrieval/orchestrator.py
"""
RetrievalOrchestrator - deadline-bounded retrieval of course context.

One fetch:
1. Returns a cached result for the same (category, query head) if present
2. Embeds the query
3. Pulls up to ``max_candidates`` chunks from the vector store
4. Scores them in batches off the event loop
5. Selects top-K above the similarity threshold, one chunk per source

Steps 2-5 run as a single task raced against the deadline. When the deadline
wins, the token is cancelled and the task is cancelled, and the caller gets an
empty ``timeout`` result at once. Any failure degrades to an empty result with
a status; fetch never raises.
"""

from __future__ import annotations

import asyncio
import logging
import time

import numpy as np
from pydantic import BaseModel, ValidationError

from galibot_engine.cache import CacheStore, retrieval_key
from galibot_engine.config import (
    RAG_CACHE_TTL_SECONDS,
    RAG_MAX_DOCS,
    RAG_SCORING_BATCH_SIZE,
    RAG_TIMEOUT_MS,
    RAG_TOP_K,
)
from galibot_engine.exceptions import is_quota_error
from galibot_engine.models import (
    CachedRetrieval,
    RetrievalMetrics,
    RetrievalResult,
    RetrievalStatus,
    ScoredChunk,
    SourceRef,
)

from .cancellation import CancellationToken, OperationCancelled
from .embedding import EmbeddingService
from .ranker import SimilarityRanker
from .vector_store import VectorStore

logger = logging.getLogger(__name__)


class _Progress(BaseModel):
    """Counters the worker task updates as it goes, readable after a timeout."""

    retrieved: int = 0
    processed: int = 0
    skipped: int = 0


def _consume_outcome(task: asyncio.Task) -> None:
    # Abandoned tasks must not log "exception was never retrieved"
    if not task.cancelled():
        task.exception()


class RetrievalOrchestrator:
    """Embeds, ranks and caches course-context lookups under a deadline."""

    def __init__(
        self,
        embedder: EmbeddingService | None,
        vector_store: VectorStore | None,
        cache: CacheStore | None = None,
        ranker: SimilarityRanker | None = None,
        *,
        enabled: bool = True,
        batch_size: int = RAG_SCORING_BATCH_SIZE,
        cache_ttl: float = RAG_CACHE_TTL_SECONDS,
        default_top_k: int = RAG_TOP_K,
        default_max_candidates: int = RAG_MAX_DOCS,
        default_deadline: float = RAG_TIMEOUT_MS / 1000.0,
    ):
        self._embedder = embedder
        self._vector_store = vector_store
        self._cache = cache
        self._ranker = ranker or SimilarityRanker()
        self._enabled = enabled
        self.batch_size = max(1, batch_size)
        self.cache_ttl = cache_ttl
        self.default_top_k = default_top_k
        self.default_max_candidates = default_max_candidates
        self.default_deadline = default_deadline

    @property
    def enabled(self) -> bool:
        return self._enabled and self._embedder is not None and self._vector_store is not None

    async def fetch(
        self,
        query: str,
        top_k: int | None = None,
        category: str | None = None,
        max_candidates: int | None = None,
        deadline: float | None = None,
    ) -> RetrievalResult:
        """
        Retrieve up to *top_k* relevant chunks for *query*.

        Args:
            query: Free text to embed.
            top_k: Max chunks returned.
            category: Optional course filter.
            max_candidates: Max chunks pulled from the store.
            deadline: Seconds before the fetch gives up with ``timeout``.
        """
        started = time.perf_counter()
        top_k = top_k if top_k is not None else self.default_top_k
        max_candidates = max_candidates if max_candidates is not None else self.default_max_candidates
        deadline = deadline if deadline is not None else self.default_deadline
        # The store filter and the cache key must see the same category
        category = (category or "").strip() or None

        def elapsed_ms() -> float:
            return (time.perf_counter() - started) * 1000

        if not self.enabled:
            return RetrievalResult.empty(RetrievalStatus.DISABLED)

        key = retrieval_key(query, category)
        cached = self._read_cache(key)
        if cached is not None:
            logger.debug(f"[RAG] cache HIT ({len(cached.chunks)} chunks)")
            return RetrievalResult(
                chunks=list(cached.chunks),
                sources=list(cached.sources),
                metrics=RetrievalMetrics(
                    status=RetrievalStatus.CACHE_HIT,
                    max_candidates=max_candidates,
                    returned_count=len(cached.chunks),
                    elapsed_ms=elapsed_ms(),
                ),
            )

        token = CancellationToken()
        progress = _Progress()
        task = asyncio.create_task(self._retrieve(query, top_k, category, max_candidates, token, progress))

        try:
            done, _ = await asyncio.wait({task}, timeout=max(0.0, deadline))
        except asyncio.CancelledError:
            token.cancel("caller cancelled")
            task.cancel()
            raise

        def failed(status: RetrievalStatus, error: str | None = None) -> RetrievalResult:
            return RetrievalResult.empty(
                status,
                elapsed_ms=elapsed_ms(),
                max_candidates=max_candidates,
                retrieved_count=progress.retrieved,
                processed_count=progress.processed,
                skipped_count=progress.skipped,
                error=error,
            )

        if not done:
            token.cancel("deadline exceeded")
            task.cancel()
            task.add_done_callback(_consume_outcome)
            logger.warning(
                f"[RAG] timeout after {deadline * 1000:.0f}ms "
                f"(retrieved={progress.retrieved}, processed={progress.processed})"
            )
            return failed(RetrievalStatus.TIMEOUT, "deadline exceeded")

        try:
            chunks, sources = task.result()
        except OperationCancelled:
            return failed(RetrievalStatus.TIMEOUT, "cancelled")
        except Exception as e:
            if is_quota_error(e):
                logger.warning(f"[RAG] quota exceeded: {e}")
                return failed(RetrievalStatus.QUOTA_EXCEEDED, str(e))
            logger.error(f"[RAG] retrieval failed: {e}")
            return failed(RetrievalStatus.ERROR, str(e))

        status = RetrievalStatus.SUCCESS if chunks else RetrievalStatus.NO_CHUNKS
        if self._cache is not None:
            self._cache.set(key, CachedRetrieval(chunks=chunks, sources=sources), self.cache_ttl)

        result = RetrievalResult(
            chunks=chunks,
            sources=sources,
            metrics=RetrievalMetrics(
                status=status,
                max_candidates=max_candidates,
                retrieved_count=progress.retrieved,
                processed_count=progress.processed,
                skipped_count=progress.skipped,
                returned_count=len(chunks),
                elapsed_ms=elapsed_ms(),
            ),
        )
        logger.info(
            f"[RAG] {status.value}: {len(chunks)} chunks from {progress.retrieved} candidates "
            f"in {result.metrics.elapsed_ms:.0f}ms"
        )
        return result

    def _read_cache(self, key: str) -> CachedRetrieval | None:
        if self._cache is None:
            return None

        data = self._cache.get(key)
        if data is None:
            return None
        if isinstance(data, CachedRetrieval):
            return data
        try:
            return CachedRetrieval.model_validate(data)
        except ValidationError as e:
            logger.warning(f"[RAG] dropping malformed cache entry: {e}")
            self._cache.delete(key)
            return None

    async def _retrieve(
        self,
        query: str,
        top_k: int,
        category: str | None,
        max_candidates: int,
        token: CancellationToken,
        progress: _Progress,
    ) -> tuple[list[str], list[SourceRef]]:
        query_vector = await self._embedder.embed(query)
        token.raise_if_cancelled()

        candidates = await self._vector_store.query(category=category, limit=max_candidates)
        token.raise_if_cancelled()
        progress.retrieved = len(candidates)
        if not candidates:
            return [], []

        query_array = np.asarray(query_vector, dtype=float)
        scored: list[ScoredChunk] = []
        for offset in range(0, len(candidates), self.batch_size):
            token.raise_if_cancelled()
            batch = candidates[offset : offset + self.batch_size]
            outcome = await asyncio.to_thread(self._ranker.score_batch, query_array, batch)
            scored.extend(outcome.scored)
            progress.processed += len(outcome.scored)
            progress.skipped += outcome.skipped

        token.raise_if_cancelled()
        return self._ranker.select(scored, top_k)
