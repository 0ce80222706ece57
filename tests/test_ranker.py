# tests/test_ranker.py
"""
Tests for cosine similarity and SimilarityRanker.

Vectors are built as [cos(theta), sin(theta)] so each chunk's similarity to
the query [1, 0] is exactly cos(theta).
"""

import math

import numpy as np
import pytest

from galibot_engine.models import ChunkRecord
from galibot_engine.retrieval import SimilarityRanker, cosine_similarity, normalize_source


def _chunk(chunk_id: str, theta: float, source: str, text: str | None = None) -> ChunkRecord:
    return ChunkRecord(
        id=chunk_id,
        text=text if text is not None else f"text {chunk_id}",
        embedding=[math.cos(theta), math.sin(theta)],
        source=source,
    )


class TestCosineSimilarity:
    def test_symmetric(self):
        a, b = [0.3, -1.2, 4.0], [2.0, 0.5, -0.7]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_self_similarity_is_one(self):
        v = [0.1, 2.5, -3.3]
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_zero_vector_is_exactly_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0

    def test_length_mismatch_is_exactly_zero(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0

    def test_empty_vectors_are_zero(self):
        assert cosine_similarity([], []) == 0.0


class TestNormalizeSource:
    @pytest.mark.parametrize(
        "source, expected",
        [
            ("courses/stats/median.pdf", "median.pdf"),
            ("C:\\docs\\median.pdf", "median.pdf"),
            ("median.pdf", "median.pdf"),
            (None, "unknown"),
        ],
    )
    def test_basename(self, source, expected):
        assert normalize_source(source) == expected


class TestScoreBatch:
    def test_skips_unusable_embeddings(self):
        ranker = SimilarityRanker(threshold=0.05)
        batch = [
            _chunk("ok", 0.0, "a.pdf"),
            ChunkRecord(id="none", text="x", embedding=None),
            ChunkRecord(id="short", text="x", embedding=[1.0]),
        ]

        outcome = ranker.score_batch(np.array([1.0, 0.0]), batch)

        assert outcome.skipped == 2
        assert [s.chunk.id for s in outcome.scored] == ["ok"]
        assert outcome.scored[0].similarity == pytest.approx(1.0)

    def test_zero_norm_embedding_scores_zero(self):
        ranker = SimilarityRanker()
        batch = [ChunkRecord(id="zero", text="x", embedding=[0.0, 0.0])]

        outcome = ranker.score_batch(np.array([1.0, 0.0]), batch)

        assert outcome.scored[0].similarity == 0.0

    def test_matches_scalar_cosine(self):
        ranker = SimilarityRanker()
        query = np.array([0.2, 0.9])
        batch = [_chunk("a", 0.4, "a.pdf"), _chunk("b", 2.0, "b.pdf")]

        outcome = ranker.score_batch(query, batch)

        for scored in outcome.scored:
            assert scored.similarity == pytest.approx(cosine_similarity(query.tolist(), scored.chunk.embedding))


class TestSelect:
    @pytest.fixture
    def scored(self):
        ranker = SimilarityRanker(threshold=0.05)
        chunks = [
            _chunk("a", 0.0, "x/a.pdf"),  # 1.000
            _chunk("b", 0.1, "y/a.pdf"),  # 0.995, same file name as a
            _chunk("c", 0.5, "b.pdf"),  # 0.878
            _chunk("d", 1.0, "c.pdf"),  # 0.540
            _chunk("e", 1.55, "d.pdf"),  # 0.021, below threshold
        ]
        return ranker, ranker.score_batch(np.array([1.0, 0.0]), chunks).scored

    def test_top_k_then_dedupe(self, scored):
        ranker, items = scored

        chunks, sources = ranker.select(items, top_k=3)

        assert chunks == ["text a", "text c"]
        assert [s.source for s in sources] == ["x/a.pdf", "b.pdf"]
        assert sources[0].score == pytest.approx(1.0)

    def test_threshold_drops_weak_matches(self, scored):
        ranker, items = scored

        chunks, _sources = ranker.select(items, top_k=5)

        assert chunks == ["text a", "text c", "text d"]

    def test_results_are_sorted_by_similarity(self, scored):
        ranker, items = scored

        _chunks, sources = ranker.select(list(reversed(items)), top_k=5)

        scores = [s.score for s in sources]
        assert scores == sorted(scores, reverse=True)

    def test_empty_text_is_never_returned(self):
        ranker = SimilarityRanker()
        items = ranker.score_batch(np.array([1.0, 0.0]), [_chunk("blank", 0.0, "a.pdf", text="")]).scored

        assert ranker.select(items, top_k=3) == ([], [])
