# galibot_engine/models/__init__.py
"""
Core models for the turn-orchestration engine.

All public names are re-exported here so callers can write
``from galibot_engine.models import UserState``.
"""

from galibot_engine.models.conversation import ConversationMessage
from galibot_engine.models.enums import MessageRole, Phase, RetrievalStatus, TopicId
from galibot_engine.models.retrieval import (
    CachedRetrieval,
    ChunkRecord,
    RetrievalMetrics,
    RetrievalResult,
    ScoredChunk,
    SourceRef,
)
from galibot_engine.models.state import UserState, normalize_email
from galibot_engine.models.stats import BackgroundStats, CacheStats

__all__ = [
    # enums
    "MessageRole",
    "Phase",
    "RetrievalStatus",
    "TopicId",
    # state
    "UserState",
    "normalize_email",
    # conversation
    "ConversationMessage",
    # retrieval
    "CachedRetrieval",
    "ChunkRecord",
    "RetrievalMetrics",
    "RetrievalResult",
    "ScoredChunk",
    "SourceRef",
    # stats
    "BackgroundStats",
    "CacheStats",
]
