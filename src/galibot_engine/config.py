# galibot_engine/config.py
"""Engine configuration: environment-driven defaults plus a settings model."""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


# Models (can be overridden by environment variable)
DEFAULT_COMPLETION_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
DEFAULT_EMBEDDING_MODEL = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")

# Retrieval
USE_RAG = _env_bool("USE_RAG", "true")
RAG_MAX_DOCS = int(os.getenv("RAG_MAX_DOCS", "50"))
RAG_TIMEOUT_MS = int(os.getenv("RAG_TIMEOUT_MS", "400"))
RAG_TOP_K = int(os.getenv("RAG_TOP_K", "3"))
RAG_SIMILARITY_THRESHOLD = float(os.getenv("RAG_SIMILARITY_THRESHOLD", "0.05"))
RAG_SCORING_BATCH_SIZE = int(os.getenv("RAG_SCORING_BATCH_SIZE", "50"))
RAG_CACHE_TTL_SECONDS = float(os.getenv("RAG_CACHE_TTL_SECONDS", "300"))
RAG_DEFAULT_CATEGORY = os.getenv("RAG_DEFAULT_CATEGORY", "statistics")

# Conversation memory
MAX_HISTORY_MESSAGES = int(os.getenv("MAX_HISTORY_MESSAGES", "20"))
MAX_STORED_MESSAGES_PER_USER = int(os.getenv("MAX_STORED_MESSAGES_PER_USER", "200"))
MAX_HISTORY_TOKENS = int(os.getenv("MAX_HISTORY_TOKENS", "1500"))
MAX_HISTORY_MESSAGES_FALLBACK = int(os.getenv("MAX_HISTORY_MESSAGES_FALLBACK", "8"))

# Persistence
STATE_COLLECTION = os.getenv("GALIBOT_STATE_COLLECTION", "galibot_user_state_v1")
MESSAGES_COLLECTION = "chat_messages"
PROFILES_COLLECTION = "user_profiles"
USAGE_COLLECTION = "usage_logs"
CHUNKS_COLLECTION = "rag_chunks"

# Cache TTLs (seconds)
CACHE_TTL_HISTORY_SECONDS = float(os.getenv("CACHE_TTL_HISTORY_SECONDS", "30"))
CACHE_TTL_STATE_SECONDS = float(os.getenv("CACHE_TTL_STATE_SECONDS", "60"))
CACHE_TTL_FIRST_CONTACT_SECONDS = float(os.getenv("CACHE_TTL_FIRST_CONTACT_SECONDS", "60"))
CACHE_HIGH_WATER_MARK = 1000


class EngineSettings(BaseModel):
    """Tunables for a TurnEngine and the components it wires together."""

    use_rag: bool = Field(default=USE_RAG, description="Run retrieval on teaching turns")
    completion_model: str = Field(default=DEFAULT_COMPLETION_MODEL)

    rag_max_docs: int = Field(default=RAG_MAX_DOCS, ge=1, description="Max candidates pulled from the vector store")
    rag_timeout_ms: int = Field(default=RAG_TIMEOUT_MS, ge=1, description="Retrieval deadline")
    rag_top_k: int = Field(default=RAG_TOP_K, ge=1)
    rag_similarity_threshold: float = Field(default=RAG_SIMILARITY_THRESHOLD)
    rag_scoring_batch_size: int = Field(default=RAG_SCORING_BATCH_SIZE, ge=1)
    rag_cache_ttl_seconds: float = Field(default=RAG_CACHE_TTL_SECONDS, gt=0)
    rag_default_category: str | None = Field(default=RAG_DEFAULT_CATEGORY)

    max_history_messages: int = Field(default=MAX_HISTORY_MESSAGES, ge=1, description="Messages loaded per history read")
    max_stored_messages_per_user: int = Field(default=MAX_STORED_MESSAGES_PER_USER, ge=1)
    max_history_tokens: int = Field(default=MAX_HISTORY_TOKENS, ge=0)
    max_history_messages_fallback: int = Field(default=MAX_HISTORY_MESSAGES_FALLBACK, ge=0)

    state_collection: str = Field(default=STATE_COLLECTION)

    cache_ttl_history_seconds: float = Field(default=CACHE_TTL_HISTORY_SECONDS, gt=0)
    cache_ttl_state_seconds: float = Field(default=CACHE_TTL_STATE_SECONDS, gt=0)
    cache_ttl_first_contact_seconds: float = Field(default=CACHE_TTL_FIRST_CONTACT_SECONDS, gt=0)

    @property
    def rag_timeout_seconds(self) -> float:
        return self.rag_timeout_ms / 1000.0
