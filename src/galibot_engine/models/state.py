# galibot_engine/models/state.py
"""Per-user topic state."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .enums import Phase, TopicId


def normalize_email(raw_email: str | None) -> str:
    """Case-insensitive user key."""
    return (raw_email or "").strip().lower()


class UserState(BaseModel):
    """
    Topic state for one user.

    ``diagnosed_topics`` only ever grows during a session; the only way to
    shrink it is an explicit wipe, which replaces the whole state with
    ``UserState.default(email)``.
    """

    email: str = Field(default="", description="Normalized user email")
    topic: TopicId | None = Field(default=None, description="Currently active subject")
    phase: Phase = Field(default=Phase.IDLE)
    diagnosed_topics: set[TopicId] = Field(default_factory=set)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> str:
        return normalize_email(value)

    @field_validator("topic", mode="before")
    @classmethod
    def _unknown_is_none(cls, value: Any) -> Any:
        if value == TopicId.UNKNOWN or value == TopicId.UNKNOWN.value or value == "":
            return None
        return value

    @model_validator(mode="after")
    def _diagnose_requires_topic(self) -> UserState:
        if self.phase == Phase.DIAGNOSE and self.topic is None:
            raise ValueError("phase DIAGNOSE requires an active topic")
        return self

    @classmethod
    def default(cls, email: str | None = "") -> UserState:
        """Fresh state for a first contact (or after a wipe)."""
        return cls(email=email or "")

    def is_diagnosed(self, topic: TopicId) -> bool:
        return topic in self.diagnosed_topics

    def to_document(self) -> dict[str, Any]:
        """Serialize for a PersistentStore."""
        return {
            "email": self.email,
            "topic": self.topic.value if self.topic else None,
            "phase": self.phase.value,
            "diagnosed_topics": sorted(t.value for t in self.diagnosed_topics),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_document(cls, email: str, data: dict[str, Any]) -> UserState:
        """Rebuild from a stored document; unrecognised topics are dropped."""
        diagnosed = set()
        for raw in data.get("diagnosed_topics") or []:
            try:
                diagnosed.add(TopicId(raw))
            except ValueError:
                continue

        try:
            topic = TopicId(data["topic"]) if data.get("topic") else None
        except ValueError:
            topic = None

        phase = data.get("phase") or Phase.IDLE
        if Phase(phase) == Phase.DIAGNOSE and topic is None:
            phase = Phase.IDLE

        return cls(email=email, topic=topic, phase=phase, diagnosed_topics=diagnosed)
