# tests/test_retrieval_orchestrator.py
"""
Tests for RetrievalOrchestrator.fetch.

Covers:
- success path, metrics and source dedupe
- query-result caching (completed results only)
- disabled retrieval
- the deadline: a slow step yields an empty ``timeout`` result on time
- quota and generic failures degrading to empty results
"""

import asyncio
import time
from unittest.mock import AsyncMock

import pytest

from galibot_engine.cache import RETRIEVAL_PREFIX
from galibot_engine.exceptions import QuotaExceeded, StoreUnavailable
from galibot_engine.models import ChunkRecord, RetrievalStatus
from galibot_engine.retrieval import (
    CancellationToken,
    InMemoryVectorStore,
    OperationCancelled,
    RetrievalOrchestrator,
    SimilarityRanker,
    build_rag_context,
)


class SlowRanker(SimilarityRanker):
    """Ranker whose batch scoring blocks its worker thread."""

    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay

    def score_batch(self, query_vector, batch):
        time.sleep(self.delay)
        return super().score_batch(query_vector, batch)


class SlowVectorStore(InMemoryVectorStore):
    async def query(self, category=None, limit=50):
        await asyncio.sleep(5)
        return await super().query(category, limit)


def _rag_keys(cache):
    return [key for key in cache._entries if key.startswith(RETRIEVAL_PREFIX)]


@pytest.fixture
def orchestrator(embedder, vector_store, cache):
    return RetrievalOrchestrator(embedder, vector_store, cache, default_deadline=2.0)


class TestFetch:
    @pytest.mark.asyncio
    async def test_success_dedupes_sources(self, orchestrator):
        result = await orchestrator.fetch("מה זה חציון", top_k=3)

        assert result.status == RetrievalStatus.SUCCESS
        # c1 and c2 share the file name median.pdf
        assert [s.source for s in result.sources] == ["courses/statistics/median.pdf", "courses/statistics/skew.pdf"]
        assert result.metrics.retrieved_count == 3
        assert result.metrics.processed_count == 3
        assert result.metrics.returned_count == 2
        assert bool(result) is True

    @pytest.mark.asyncio
    async def test_second_fetch_is_a_cache_hit(self, orchestrator, embedder):
        first = await orchestrator.fetch("מה זה חציון")
        second = await orchestrator.fetch("מה זה חציון")

        assert second.status == RetrievalStatus.CACHE_HIT
        assert second.chunks == first.chunks
        assert len(embedder.calls) == 1

    @pytest.mark.asyncio
    async def test_category_filters_candidates(self, embedder, cache, median_chunks):
        other = ChunkRecord(id="o1", text="other course", embedding=[1.0, 0.0], source="o.pdf", category="other")
        orchestrator = RetrievalOrchestrator(embedder, InMemoryVectorStore(median_chunks + [other]), cache)

        result = await orchestrator.fetch("q", category="other")

        assert result.chunks == ["other course"]

    @pytest.mark.asyncio
    async def test_category_spelling_does_not_share_cached_results(self, orchestrator):
        miss = await orchestrator.fetch("q", category="Statistics")
        hit = await orchestrator.fetch("q", category=" statistics ")
        again = await orchestrator.fetch("q", category="statistics")

        assert miss.status == RetrievalStatus.NO_CHUNKS
        assert hit.status == RetrievalStatus.SUCCESS
        assert hit.chunks
        assert again.status == RetrievalStatus.CACHE_HIT
        assert again.chunks == hit.chunks

    @pytest.mark.asyncio
    async def test_empty_store_yields_no_chunks(self, embedder, cache):
        orchestrator = RetrievalOrchestrator(embedder, InMemoryVectorStore(), cache)

        result = await orchestrator.fetch("q")

        assert result.status == RetrievalStatus.NO_CHUNKS
        assert result.chunks == []
        assert build_rag_context(result) is None

    @pytest.mark.asyncio
    async def test_skipped_embeddings_are_counted(self, embedder, cache, median_chunks):
        broken = ChunkRecord(id="b", text="no vector", embedding=None, source="b.pdf")
        orchestrator = RetrievalOrchestrator(embedder, InMemoryVectorStore(median_chunks + [broken]), cache)

        result = await orchestrator.fetch("q")

        assert result.metrics.skipped_count == 1
        assert result.metrics.processed_count == 3

    @pytest.mark.asyncio
    async def test_small_batches_score_everything(self, embedder, vector_store, cache):
        orchestrator = RetrievalOrchestrator(embedder, vector_store, cache, batch_size=1)

        result = await orchestrator.fetch("q")

        assert result.metrics.processed_count == 3
        assert result.status == RetrievalStatus.SUCCESS


class TestDisabled:
    @pytest.mark.asyncio
    async def test_disabled_flag(self, embedder, vector_store, cache):
        orchestrator = RetrievalOrchestrator(embedder, vector_store, cache, enabled=False)

        result = await orchestrator.fetch("q")

        assert result.status == RetrievalStatus.DISABLED
        assert embedder.calls == []

    @pytest.mark.asyncio
    async def test_missing_collaborators(self, cache):
        result = await RetrievalOrchestrator(None, None, cache).fetch("q")
        assert result.status == RetrievalStatus.DISABLED


class TestDeadline:
    @pytest.mark.asyncio
    async def test_slow_scoring_times_out_within_deadline(self, embedder, vector_store, cache):
        orchestrator = RetrievalOrchestrator(embedder, vector_store, cache, SlowRanker(delay=0.5))

        started = time.perf_counter()
        result = await orchestrator.fetch("q", deadline=0.05)
        elapsed = time.perf_counter() - started

        assert result.status == RetrievalStatus.TIMEOUT
        assert result.chunks == []
        assert elapsed < 0.4
        assert result.metrics.retrieved_count == 3

    @pytest.mark.asyncio
    async def test_slow_store_times_out_and_is_not_cached(self, embedder, cache, median_chunks):
        orchestrator = RetrievalOrchestrator(embedder, SlowVectorStore(median_chunks), cache)

        started = time.perf_counter()
        result = await orchestrator.fetch("q", deadline=0.05)
        elapsed = time.perf_counter() - started

        assert result.status == RetrievalStatus.TIMEOUT
        assert elapsed < 1.0
        assert _rag_keys(cache) == []


class TestFailures:
    @pytest.mark.asyncio
    async def test_quota_is_reported_distinctly_and_not_cached(self, vector_store, cache):
        embedder = AsyncMock()
        embedder.embed.side_effect = QuotaExceeded("RESOURCE_EXHAUSTED")
        orchestrator = RetrievalOrchestrator(embedder, vector_store, cache)

        first = await orchestrator.fetch("q")
        second = await orchestrator.fetch("q")

        assert first.status == RetrievalStatus.QUOTA_EXCEEDED
        assert second.status == RetrievalStatus.QUOTA_EXCEEDED
        assert embedder.embed.await_count == 2

    @pytest.mark.asyncio
    async def test_store_error_degrades_to_error(self, embedder, cache):
        store = AsyncMock()
        store.query.side_effect = StoreUnavailable("connection reset")
        orchestrator = RetrievalOrchestrator(embedder, store, cache)

        result = await orchestrator.fetch("q")

        assert result.status == RetrievalStatus.ERROR
        assert result.metrics.error == "connection reset"
        assert result.chunks == []

    @pytest.mark.asyncio
    async def test_malformed_cache_entry_is_refetched(self, orchestrator, cache, embedder):
        await orchestrator.fetch("q")
        (key,) = _rag_keys(cache)
        cache.set(key, {"chunks": "not-a-list"})

        result = await orchestrator.fetch("q")

        assert result.status == RetrievalStatus.SUCCESS
        assert len(embedder.calls) == 2


class TestCancellationToken:
    def test_raise_after_cancel(self):
        token = CancellationToken()
        token.raise_if_cancelled()

        token.cancel("deadline exceeded")

        assert token.cancelled is True
        with pytest.raises(OperationCancelled):
            token.raise_if_cancelled()

    def test_first_reason_wins(self):
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")
        assert token.reason == "first"


class TestRagContext:
    @pytest.mark.asyncio
    async def test_numbered_source_labels(self, orchestrator):
        result = await orchestrator.fetch("q")

        context = build_rag_context(result)

        assert context.chunks_count == 2
        assert context.context.startswith("[מקור 1: courses/statistics/median.pdf]\n")
        assert "\n\n---\n\n[מקור 2: courses/statistics/skew.pdf]\n" in context.context
