# galibot_engine/models/enums.py
"""Enums shared across the engine."""

from enum import Enum


class TopicId(str, Enum):
    """Closed set of course topics the state machine can recognise."""

    MEAN = "mean"
    MEDIAN = "median"
    MODE = "mode"
    STD = "std"
    VARIANCE = "variance"
    Z = "z"
    T = "t"
    CORRELATION = "correlation"
    REGRESSION = "regression"
    SAMPLING_DISTRIBUTION = "sampling_distribution"
    CONFIDENCE_INTERVAL = "confidence_interval"
    HYPOTHESIS_TESTING = "hypothesis_testing"
    ANOVA = "anova"
    CHI_SQUARE = "chi_square"
    CRONBACH_ALPHA = "cronbach_alpha"
    UNKNOWN = "unknown"  # Sentinel: nothing matched


class Phase(str, Enum):
    """Per-user conversational phase."""

    IDLE = "IDLE"  # No active topic
    DIAGNOSE = "DIAGNOSE"  # A diagnostic question is pending
    TEACH = "TEACH"  # Explanations allowed


class MessageRole(str, Enum):
    """Roles in a stored conversation or an outgoing prompt."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class RetrievalStatus(str, Enum):
    """Outcome tag attached to every retrieval."""

    SUCCESS = "success"
    NO_CHUNKS = "no_chunks"
    TIMEOUT = "timeout"
    QUOTA_EXCEEDED = "quota_exceeded"
    ERROR = "error"
    CACHE_HIT = "cache_hit"
    DISABLED = "disabled"
