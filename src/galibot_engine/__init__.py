# galibot_engine/__init__.py
"""
Galibot turn-orchestration engine.

For each student question the engine decides the kind of turn (diagnose,
teach or fast-pass) with a small persistent state machine, retrieves course
context under a strict deadline, and keeps a write-through TTL cache over
user state and conversation history.

Quick start:
    from galibot_engine import OrchestratorContext, TurnEngine
    from galibot_engine.completion import OpenAICompletionService
    from galibot_engine.storage import InMemoryPersistentStore

    engine = TurnEngine(
        OrchestratorContext(
            completion=OpenAICompletionService(),
            store=InMemoryPersistentStore(),
        )
    )
    result = await engine.handle_turn("student@example.com", "מה זה חציון?")
    print(result.answer)
"""

import logging

from galibot_engine.background import BackgroundTasks
from galibot_engine.cache import CachedReads, CacheStore
from galibot_engine.config import EngineSettings
from galibot_engine.context import OrchestratorContext
from galibot_engine.conversation import ConversationMemory
from galibot_engine.exceptions import (
    CacheCorruption,
    CompletionError,
    DiagnosisValidationFailure,
    EmbeddingError,
    GalibotError,
    QuotaExceeded,
    StoreUnavailable,
    UpstreamUnavailable,
)
from galibot_engine.models import (
    ConversationMessage,
    MessageRole,
    Phase,
    RetrievalResult,
    RetrievalStatus,
    TopicId,
    UserState,
)
from galibot_engine.retrieval import RetrievalOrchestrator, SimilarityRanker
from galibot_engine.topics import TopicStateMachine, TurnDecision, decide_turn
from galibot_engine.turn_engine import TurnEngine, TurnResult

__version__ = "0.1.0"

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = [
    # engine
    "TurnEngine",
    "TurnResult",
    "OrchestratorContext",
    "EngineSettings",
    # components
    "BackgroundTasks",
    "CacheStore",
    "CachedReads",
    "ConversationMemory",
    "RetrievalOrchestrator",
    "SimilarityRanker",
    "TopicStateMachine",
    "TurnDecision",
    "decide_turn",
    # models
    "ConversationMessage",
    "MessageRole",
    "Phase",
    "RetrievalResult",
    "RetrievalStatus",
    "TopicId",
    "UserState",
    # errors
    "CacheCorruption",
    "CompletionError",
    "DiagnosisValidationFailure",
    "EmbeddingError",
    "GalibotError",
    "QuotaExceeded",
    "StoreUnavailable",
    "UpstreamUnavailable",
]
