# galibot_engine/conversation/memory.py
"""
ConversationMemory - append-only per-user message log.

Messages live in one collection keyed by ``user_id`` and ordered by
``created_at``. Every append updates the cached history in place and then
schedules a prune pass in the background that deletes whatever lies beyond
the retention cap, oldest first, in store-sized batches.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from galibot_engine.background import BackgroundTasks
from galibot_engine.cache import CachedReads, hash_key
from galibot_engine.config import (
    MAX_HISTORY_MESSAGES,
    MAX_HISTORY_MESSAGES_FALLBACK,
    MAX_HISTORY_TOKENS,
    MAX_STORED_MESSAGES_PER_USER,
    MESSAGES_COLLECTION,
)
from galibot_engine.models import ConversationMessage, MessageRole, normalize_email
from galibot_engine.storage import MAX_BATCH_WRITES, PersistentStore

from .tokens import trim_history

# Users whose last write timestamp is remembered for ordering
MAX_TRACKED_USERS = 10_000

logger = logging.getLogger(__name__)


class ConversationMemory:
    """Durable, cache-coherent conversation history for all users."""

    def __init__(
        self,
        store: PersistentStore | None,
        cached_reads: CachedReads | None = None,
        background: BackgroundTasks | None = None,
        *,
        collection: str = MESSAGES_COLLECTION,
        retention_cap: int = MAX_STORED_MESSAGES_PER_USER,
        history_load_limit: int = MAX_HISTORY_MESSAGES,
        batch_size: int = MAX_BATCH_WRITES,
        clock: Callable[[], datetime] | None = None,
        max_tracked_users: int = MAX_TRACKED_USERS,
    ):
        self._store = store
        self._cached_reads = cached_reads
        self._background = background if background is not None else BackgroundTasks()
        self.collection = collection
        self.retention_cap = retention_cap
        self.history_load_limit = history_load_limit
        self.batch_size = min(batch_size, MAX_BATCH_WRITES)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._last_created: dict[str, datetime] = {}
        self.max_tracked_users = max_tracked_users

    @property
    def enabled(self) -> bool:
        return self._store is not None

    def _next_timestamp(self, user_id: str) -> datetime:
        # created_at must be strictly increasing per user, even within one clock tick
        now = self._clock()
        last = self._last_created.pop(user_id, None)
        if last is not None and now <= last:
            now = last + timedelta(microseconds=1)
        self._last_created[user_id] = now
        if len(self._last_created) > self.max_tracked_users:
            # least recently written user goes first
            self._last_created.pop(next(iter(self._last_created)))
        return now

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def append(self, user_id: str, role: MessageRole | str, content: str) -> ConversationMessage | None:
        """
        Persist one message and update the cached history.

        Returns the stored message, or None when memory is disabled or the
        content is empty. Store failures propagate to the caller.
        """
        user_id = normalize_email(user_id)
        content = (content or "").strip()
        if self._store is None:
            logger.debug("[ChatMemory] store not configured, message not saved")
            return None
        if not user_id or not content:
            logger.warning("[ChatMemory] missing user id or content, message not saved")
            return None

        message = ConversationMessage(
            role=MessageRole(role),
            content=content,
            created_at=self._next_timestamp(user_id),
        )
        doc_id = await self._store.add(self.collection, message.to_document(user_id))
        message = message.model_copy(update={"id": doc_id})

        if self._cached_reads is not None:
            self._cached_reads.update_history(user_id, message, self.history_load_limit)

        self._background.spawn(self.prune(user_id), name=f"prune:{hash_key(user_id)}")
        return message

    async def prune(self, user_id: str) -> int:
        """Delete messages beyond the retention cap; returns how many went."""
        if self._store is None:
            return 0

        user_id = normalize_email(user_id)
        overflow = await self._store.query(
            self.collection,
            filters={"user_id": user_id},
            order_by="created_at",
            descending=True,
            offset=self.retention_cap,
        )
        if not overflow:
            return 0

        removed = await self._delete_in_batches([doc.id for doc in overflow])
        logger.info(f"[ChatMemory] pruned {removed} old messages for user {hash_key(user_id)}")
        return removed

    async def wipe(self, user_id: str) -> int:
        """Delete every stored message for *user_id* and drop its cached history."""
        user_id = normalize_email(user_id)
        removed = 0
        if self._store is not None:
            docs = await self._store.query(self.collection, filters={"user_id": user_id})
            removed = await self._delete_in_batches([doc.id for doc in docs])

        if self._cached_reads is not None:
            self._cached_reads.invalidate_history(user_id)
        self._last_created.pop(user_id, None)

        logger.info(f"[ChatMemory] deleted {removed} messages for user {hash_key(user_id)}")
        return removed

    async def _delete_in_batches(self, doc_ids: list[str]) -> int:
        removed = 0
        for start in range(0, len(doc_ids), self.batch_size):
            removed += await self._store.batch_delete(self.collection, doc_ids[start : start + self.batch_size])
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load_history(self, user_id: str, limit: int | None = None) -> list[ConversationMessage]:
        """Newest *limit* messages from the store, oldest first."""
        if self._store is None:
            return []

        docs = await self._store.query(
            self.collection,
            filters={"user_id": normalize_email(user_id)},
            order_by="created_at",
            descending=True,
            limit=limit or self.history_load_limit,
        )
        messages = [ConversationMessage.from_document(doc.id, doc.data) for doc in docs]
        messages.sort(key=lambda m: m.created_at)
        return messages

    async def read_recent(
        self,
        user_id: str,
        max_messages: int = MAX_HISTORY_MESSAGES_FALLBACK,
        max_tokens: int = MAX_HISTORY_TOKENS,
    ) -> list[ConversationMessage]:
        """Recent history trimmed to the count and token limits."""
        if self._cached_reads is not None:
            lookup = await self._cached_reads.get_history(user_id, self.load_history, enabled=self.enabled)
            history = lookup.value
        else:
            history = await self.load_history(user_id)
        return trim_history(history, max_messages, max_tokens)
