# galibot_engine/completion.py
"""Chat completion collaborator and its OpenAI adapter."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import openai

from galibot_engine.config import DEFAULT_COMPLETION_MODEL
from galibot_engine.exceptions import CompletionError, QuotaExceeded
from galibot_engine.perf import log_token_usage

logger = logging.getLogger(__name__)


class CompletionService(Protocol):
    """Protocol for completion backends."""

    model: str

    async def generate(
        self,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
        request_id: str | None = None,
    ) -> str:
        """Return the assistant text for *messages*."""
        ...


class OpenAICompletionService:
    """CompletionService backed by the OpenAI chat completions endpoint."""

    def __init__(self, client: Any | None = None, model: str = DEFAULT_COMPLETION_MODEL):
        self._client = client or openai.AsyncOpenAI()
        self.model = model

    async def generate(
        self,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
        request_id: str | None = None,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.RateLimitError as e:
            logger.warning(f"[Completion] quota/rate limit hit: {e}")
            raise QuotaExceeded(str(e)) from e
        except openai.OpenAIError as e:
            raise CompletionError(str(e)) from e

        if request_id and getattr(response, "usage", None) is not None:
            log_token_usage(request_id, response.usage)

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()
