# galibot_engine/topics/__init__.py
"""
Topic state machine.

Components:
- rules: topic detection table and message classifiers
- TopicStateMachine: per-turn decision (diagnose / teach / fast-pass)
- diagnosis: output contract and fallback template for diagnosis-only turns
- UserStateRepository: durable UserState persistence
"""

from .diagnosis import (
    apply_diagnosis_enforcement,
    forced_diagnostic_template,
    is_valid_diagnosis_only_output,
    validate_diagnosis_only_output,
)
from .rules import (
    TOPIC_DISPLAY_NAMES,
    TOPIC_RULES,
    detect_topic,
    is_answer_to_prior_question,
    is_fast_pass_request,
    topic_display_name,
)
from .state_machine import TopicStateMachine, TurnDecision, decide_turn
from .state_store import UserStateRepository

__all__ = [
    # rules
    "TOPIC_DISPLAY_NAMES",
    "TOPIC_RULES",
    "detect_topic",
    "is_answer_to_prior_question",
    "is_fast_pass_request",
    "topic_display_name",
    # decision
    "TopicStateMachine",
    "TurnDecision",
    "decide_turn",
    # diagnosis
    "apply_diagnosis_enforcement",
    "forced_diagnostic_template",
    "is_valid_diagnosis_only_output",
    "validate_diagnosis_only_output",
    # persistence
    "UserStateRepository",
]
