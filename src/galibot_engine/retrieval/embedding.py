# galibot_engine/retrieval/embedding.py
"""Text -> vector conversion via an external embedding service."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import openai

from galibot_engine.config import DEFAULT_EMBEDDING_MODEL
from galibot_engine.exceptions import EmbeddingError, QuotaExceeded

logger = logging.getLogger(__name__)


class EmbeddingService(Protocol):
    """Protocol for embedding backends."""

    async def embed(self, text: str) -> list[float]:
        """Return a fixed-dimension vector for *text*."""
        ...


class OpenAIEmbeddingService:
    """EmbeddingService backed by the OpenAI embeddings endpoint."""

    def __init__(self, client: Any | None = None, model: str = DEFAULT_EMBEDDING_MODEL):
        self._client = client or openai.AsyncOpenAI()
        self.model = model

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(model=self.model, input=text)
        except openai.RateLimitError as e:
            logger.warning(f"[Embedding] quota/rate limit hit: {e}")
            raise QuotaExceeded(str(e)) from e
        except openai.OpenAIError as e:
            raise EmbeddingError(str(e)) from e

        if not response.data:
            raise EmbeddingError("Embedding response contained no vectors")
        return list(response.data[0].embedding)
