# galibot_engine/models/conversation.py
"""Stored conversation messages."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import MessageRole


class ConversationMessage(BaseModel):
    """One user or assistant message. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    id: str | None = None

    def to_prompt_message(self) -> dict[str, str]:
        """Role/content pair for a completion request."""
        return {"role": self.role.value, "content": self.content}

    def to_document(self, user_id: str) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "role": self.role.value,
            "content": self.content,
            "created_at": self.created_at,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> ConversationMessage:
        return cls(
            id=doc_id,
            role=data["role"],
            content=data.get("content", ""),
            created_at=data["created_at"],
        )
