# galibot_engine/retrieval/__init__.py
"""
Retrieval of course context.

Components:
- EmbeddingService: text -> vector (OpenAI adapter included)
- VectorStore: candidate chunks (in-memory and persistent-store backed)
- SimilarityRanker: batch cosine scoring, top-K, threshold, source dedupe
- RetrievalOrchestrator: cache + deadline + cancellation around the above
"""

from .cancellation import CancellationToken, OperationCancelled
from .context import RagContext, build_rag_context
from .embedding import EmbeddingService, OpenAIEmbeddingService
from .orchestrator import RetrievalOrchestrator
from .ranker import BatchScore, SimilarityRanker, cosine_similarity, normalize_source
from .vector_store import InMemoryVectorStore, PersistentVectorStore, VectorStore

__all__ = [
    # cancellation
    "CancellationToken",
    "OperationCancelled",
    # collaborators
    "EmbeddingService",
    "OpenAIEmbeddingService",
    "VectorStore",
    "InMemoryVectorStore",
    "PersistentVectorStore",
    # ranking
    "BatchScore",
    "SimilarityRanker",
    "cosine_similarity",
    "normalize_source",
    # orchestration
    "RetrievalOrchestrator",
    "RagContext",
    "build_rag_context",
]
