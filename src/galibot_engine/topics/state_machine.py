# galibot_engine/topics/state_machine.py
"""
TopicStateMachine - decides what kind of turn an incoming message is.

Per user it tracks {topic, phase, diagnosed_topics}. For each message it
decides whether the reply must be diagnosis-only (a short assessment question
and nothing else), whether the student just answered a pending diagnostic
question, and what query retrieval should run.

The decision is a pure function of (explicit topic, fast-pass request,
answer-selector, prior state); it never touches storage.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from galibot_engine.models import Phase, TopicId, UserState

from .rules import (
    detect_topic,
    is_answer_to_prior_question,
    is_fast_pass_request,
    topic_display_name,
)

logger = logging.getLogger(__name__)


class TurnDecision(BaseModel):
    """Everything the engine needs to know about the turn it is running."""

    explicit_topic: TopicId = Field(..., description="Topic named in this message (UNKNOWN if none)")
    active_topic: TopicId = Field(..., description="Explicit topic, else the state's topic, else UNKNOWN")
    wants_fast_pass: bool = False
    answered_diagnostic: bool = Field(default=False, description="Message answers a pending diagnostic question")
    diagnosis_only: bool = False
    retrieval_query: str = ""
    next_state: UserState


class TopicStateMachine:
    """Stateless decision logic over a caller-supplied UserState."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(UTC))

    def decide_turn(self, prompt_text: str, state: UserState | None = None) -> TurnDecision:
        state = state or UserState.default()

        explicit_topic = detect_topic(prompt_text)
        wants_fast_pass = is_fast_pass_request(prompt_text)
        is_answer = is_answer_to_prior_question(prompt_text)

        current_topic = state.topic
        active_topic = explicit_topic if explicit_topic != TopicId.UNKNOWN else (current_topic or TopicId.UNKNOWN)
        topic_known = active_topic != TopicId.UNKNOWN
        topic_switched = explicit_topic != TopicId.UNKNOWN and explicit_topic != current_topic

        answered_diagnostic = False
        if wants_fast_pass:
            diagnosis_only = False
        elif state.phase == Phase.DIAGNOSE and is_answer:
            diagnosis_only = False
            answered_diagnostic = topic_known
        elif not topic_known:
            diagnosis_only = True
        elif topic_switched or not state.is_diagnosed(active_topic):
            diagnosis_only = not state.is_diagnosed(active_topic)
        else:
            diagnosis_only = False

        diagnosed = set(state.diagnosed_topics)
        if topic_known and (diagnosis_only or answered_diagnostic):
            diagnosed.add(active_topic)

        if not topic_known:
            # DIAGNOSE needs a topic; an open "which topic?" question leaves us IDLE
            phase = Phase.IDLE
        elif diagnosis_only:
            phase = Phase.DIAGNOSE
        else:
            phase = Phase.TEACH

        next_state = UserState(
            email=state.email,
            topic=active_topic if topic_known else current_topic,
            phase=phase,
            diagnosed_topics=diagnosed,
            updated_at=self._clock(),
        )

        if topic_known and explicit_topic == TopicId.UNKNOWN:
            retrieval_query = f"{topic_display_name(active_topic)} {prompt_text}".strip()
        else:
            retrieval_query = prompt_text

        decision = TurnDecision(
            explicit_topic=explicit_topic,
            active_topic=active_topic,
            wants_fast_pass=wants_fast_pass,
            answered_diagnostic=answered_diagnostic,
            diagnosis_only=diagnosis_only,
            retrieval_query=retrieval_query,
            next_state=next_state,
        )
        logger.debug(
            f"Turn decided: topic={active_topic.value} phase={state.phase.value}->{phase.value} "
            f"diagnosis_only={diagnosis_only} fast_pass={wants_fast_pass}"
        )
        return decision


def decide_turn(prompt_text: str, state: UserState | None = None) -> TurnDecision:
    """Module-level shortcut using a default TopicStateMachine."""
    return TopicStateMachine().decide_turn(prompt_text, state)
