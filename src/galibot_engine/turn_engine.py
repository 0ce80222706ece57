# galibot_engine/turn_engine.py
"""
TurnEngine - runs one student question end to end.

Per turn:
1. Read first-contact flag, user state and history concurrently (cache-aside)
2. Decide the turn kind with the TopicStateMachine
3. Retrieve course context unless the turn is diagnosis-only
4. Compose the prompt (diagnosis enforcement, trimmed history)
5. Generate, clean LaTeX, and swap in the fallback template if a
   diagnosis-only answer breaks its contract
6. Persist both messages and the next state, keeping the cache coherent
7. Log usage in the background
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from galibot_engine.cache import CachedReads
from galibot_engine.config import USAGE_COLLECTION, EngineSettings
from galibot_engine.context import OrchestratorContext
from galibot_engine.conversation import (
    ConversationMemory,
    estimate_messages_tokens,
    estimate_tokens,
    trim_history,
)
from galibot_engine.exceptions import is_quota_error
from galibot_engine.formatting import clean_latex_formulas
from galibot_engine.models import (
    ConversationMessage,
    MessageRole,
    RetrievalResult,
    RetrievalStatus,
    SourceRef,
    normalize_email,
)
from galibot_engine.perf import elapsed_ms, generate_request_id, log_performance, log_prompt_size
from galibot_engine.profiles import FirstContactTracker
from galibot_engine.prompts import SystemPromptBuilder, build_system_prompt
from galibot_engine.retrieval import RetrievalOrchestrator, SimilarityRanker, build_rag_context
from galibot_engine.topics import (
    TopicStateMachine,
    TurnDecision,
    UserStateRepository,
    apply_diagnosis_enforcement,
    forced_diagnostic_template,
    is_valid_diagnosis_only_output,
)

logger = logging.getLogger(__name__)

# Generation parameters per turn kind
DIAGNOSIS_TEMPERATURE = 0.15
DEFAULT_TEMPERATURE = 0.2
FAST_PASS_MAX_TOKENS = 1200
DIAGNOSIS_MAX_TOKENS = 140
DEFAULT_MAX_TOKENS = 420


class TurnResult(BaseModel):
    """What a caller needs to render one answer."""

    request_id: str
    answer: str
    first_contact: bool = False
    sources: list[SourceRef] = Field(default_factory=list)
    retrieval_status: RetrievalStatus | None = None
    decision: TurnDecision
    used_fallback_template: bool = False


def generation_params(decision: TurnDecision) -> tuple[float, int]:
    """(temperature, max_tokens) for a decided turn."""
    temperature = DIAGNOSIS_TEMPERATURE if decision.diagnosis_only else DEFAULT_TEMPERATURE
    if decision.wants_fast_pass:
        max_tokens = FAST_PASS_MAX_TOKENS
    elif decision.diagnosis_only:
        max_tokens = DIAGNOSIS_MAX_TOKENS
    else:
        max_tokens = DEFAULT_MAX_TOKENS
    return temperature, max_tokens


class TurnEngine:
    """Per-question orchestration over an injected OrchestratorContext."""

    def __init__(
        self,
        context: OrchestratorContext,
        settings: EngineSettings | None = None,
        system_prompt_builder: SystemPromptBuilder = build_system_prompt,
        state_machine: TopicStateMachine | None = None,
    ):
        self.context = context
        self.settings = settings or EngineSettings()
        self.system_prompt_builder = system_prompt_builder
        self.state_machine = state_machine or TopicStateMachine()

        s = self.settings
        self.cached_reads = CachedReads(
            context.cache,
            state_ttl=s.cache_ttl_state_seconds,
            history_ttl=s.cache_ttl_history_seconds,
            first_contact_ttl=s.cache_ttl_first_contact_seconds,
        )
        self.states = UserStateRepository(context.store, s.state_collection)
        self.profiles = FirstContactTracker(context.store)
        self.memory = ConversationMemory(
            context.store,
            self.cached_reads,
            context.background,
            retention_cap=s.max_stored_messages_per_user,
            history_load_limit=s.max_history_messages,
        )
        self.retrieval = RetrievalOrchestrator(
            context.embedder,
            context.vector_store,
            context.cache,
            SimilarityRanker(threshold=s.rag_similarity_threshold),
            enabled=s.use_rag,
            batch_size=s.rag_scoring_batch_size,
            cache_ttl=s.rag_cache_ttl_seconds,
            default_top_k=s.rag_top_k,
            default_max_candidates=s.rag_max_docs,
            default_deadline=s.rag_timeout_seconds,
        )

    async def handle_turn(self, email: str, prompt: str, course_name: str | None = None) -> TurnResult:
        """
        Answer *prompt* for *email*.

        Retrieval, store and cache failures degrade the turn; only a failing
        completion call propagates (as CompletionError / QuotaExceeded).
        """
        request_id = generate_request_id()
        started = time.perf_counter()

        email = normalize_email(email)
        prompt = (prompt or "").strip()
        if not email:
            raise ValueError("email is required")
        if not prompt:
            raise ValueError("prompt is required")

        log_performance(request_id, "start", elapsed_ms(started))

        # 1. Concurrent cache-aside reads
        reads_started = time.perf_counter()
        first_lookup, state_lookup, history_lookup = await asyncio.gather(
            self.cached_reads.get_first_contact(email, self.profiles.check_and_mark),
            self.cached_reads.get_state(email, self.states.load),
            self.cached_reads.get_history(email, self.memory.load_history, enabled=self.memory.enabled),
        )
        reads = [
            name
            for name, lookup in (("state", state_lookup), ("history", history_lookup), ("first_login", first_lookup))
            if not lookup.cached
        ]
        log_performance(
            request_id,
            "store_reads",
            elapsed_ms(reads_started),
            cached_state=state_lookup.cached,
            cached_history=history_lookup.cached,
            cached_first_login=first_lookup.cached,
            reads=",".join(reads) or "none",
        )

        # 2. Decide
        decision = self.state_machine.decide_turn(prompt, state_lookup.value)

        # 3. Retrieve
        retrieval: RetrievalResult | None = None
        if not decision.diagnosis_only:
            retrieval = await self.retrieval.fetch(
                decision.retrieval_query or prompt,
                category=course_name or self.settings.rag_default_category,
            )
            metrics = retrieval.metrics
            log_performance(
                request_id,
                "rag",
                metrics.elapsed_ms,
                status=metrics.status.value,
                maxDocs=metrics.max_candidates,
                retrieved_count=metrics.retrieved_count,
                processed_count=metrics.processed_count,
                returned_count=metrics.returned_count,
            )

        # 4. Compose
        rag_context = build_rag_context(retrieval)
        system_prompt = self.system_prompt_builder(rag_context)
        if decision.diagnosis_only:
            system_prompt = apply_diagnosis_enforcement(system_prompt)

        history: list[ConversationMessage] = history_lookup.value or []
        limited = trim_history(
            history,
            self.settings.max_history_messages_fallback,
            self.settings.max_history_tokens,
        )
        if len(limited) < len(history):
            logger.info(
                f"[RID:{request_id}] history_trimmed tokens={estimate_messages_tokens(history)}"
                f"->{estimate_messages_tokens(limited)} messages={len(history)}->{len(limited)}"
            )

        messages = [
            {"role": MessageRole.SYSTEM.value, "content": system_prompt},
            *(m.to_prompt_message() for m in limited),
            {"role": MessageRole.USER.value, "content": prompt},
        ]
        log_prompt_size(request_id, len(json.dumps(messages, ensure_ascii=False)), len(messages))
        log_performance(
            request_id,
            "prompt_breakdown",
            0,
            system_chars=len(system_prompt),
            system_tokens=estimate_tokens(system_prompt),
            history_messages=len(limited),
            history_tokens=estimate_messages_tokens(limited),
            user_tokens=estimate_tokens(prompt),
        )

        # 5. Generate
        temperature, max_tokens = generation_params(decision)
        completion_started = time.perf_counter()
        raw_answer = await self.context.completion.generate(
            messages,
            max_tokens=max_tokens,
            temperature=temperature,
            request_id=request_id,
        )
        log_performance(request_id, "completion_call", elapsed_ms(completion_started))

        answer = clean_latex_formulas(raw_answer) or ""
        used_fallback = False
        if decision.diagnosis_only and not is_valid_diagnosis_only_output(answer):
            logger.info(f"[RID:{request_id}] diagnosis-only answer rejected, using template")
            answer = forced_diagnostic_template(decision.active_topic)
            used_fallback = True

        # 6. Persist
        await self._save_message(email, MessageRole.USER, prompt)
        await self._save_message(email, MessageRole.ASSISTANT, answer)

        if await self.states.save(decision.next_state):
            self.cached_reads.update_state(email, decision.next_state)

        # 7. Telemetry
        self.context.background.spawn(self._log_usage(email), name="usage_log")

        log_performance(request_id, "end", elapsed_ms(started))
        return TurnResult(
            request_id=request_id,
            answer=answer,
            first_contact=bool(first_lookup.value),
            sources=retrieval.sources if retrieval is not None else [],
            retrieval_status=retrieval.status if retrieval is not None else None,
            decision=decision,
            used_fallback_template=used_fallback,
        )

    async def reset_user(self, email: str) -> int:
        """
        Wipe a user: delete their history, reset their state to defaults and
        drop both cached entries. Returns the number of messages deleted.
        """
        email = normalize_email(email)
        if not email:
            raise ValueError("email is required")

        removed = await self.memory.wipe(email)
        await self.states.reset(email)
        self.cached_reads.invalidate_user(email)
        logger.info(f"[Reset] cleared history and state ({removed} messages)")
        return removed

    async def _save_message(self, email: str, role: MessageRole, content: str) -> None:
        if not self.memory.enabled:
            return
        try:
            await self.memory.append(email, role, content)
        except Exception as e:
            if is_quota_error(e):
                logger.warning(f"[ChatMemory] store quota exceeded - skipping {role.value} message save")
            else:
                logger.warning(f"[ChatMemory] failed to save {role.value} message: {e}")

    async def _log_usage(self, email: str) -> None:
        store = self.context.store
        if store is None:
            return
        model = getattr(self.context.completion, "model", None)
        if not isinstance(model, str):
            model = self.settings.completion_model
        try:
            await store.add(USAGE_COLLECTION, {"email": email, "model": model, "ts": datetime.now(UTC)})
        except Exception as e:
            if is_quota_error(e):
                logger.warning("[UsageLogs] store quota exceeded - skipping log")
                return
            raise
