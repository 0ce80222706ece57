# galibot_engine/cache/cached_reads.py
"""
Cache-aside flows for the three per-user reads issued at the start of a turn.

Each flow checks the cache, returns immediately on a hit (with the remaining
TTL visible for diagnostics), and otherwise calls the supplied loader, caches
the result and returns it. The matching write-through helpers keep the cache
coherent with writes the engine itself performs.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from galibot_engine.config import (
    CACHE_TTL_FIRST_CONTACT_SECONDS,
    CACHE_TTL_HISTORY_SECONDS,
    CACHE_TTL_STATE_SECONDS,
    MAX_STORED_MESSAGES_PER_USER,
)
from galibot_engine.exceptions import CacheCorruption
from galibot_engine.models import ConversationMessage, UserState

from .keys import first_contact_key, history_key, state_key
from .store import CacheLookup, CacheStore, hash_key

logger = logging.getLogger(__name__)

StateLoader = Callable[[str], Awaitable[UserState]]
HistoryLoader = Callable[[str], Awaitable[list[ConversationMessage]]]
FirstContactLoader = Callable[[str], Awaitable[bool]]


def _validate_state(data: Any) -> UserState:
    if isinstance(data, UserState):
        return data
    if isinstance(data, dict):
        return UserState.model_validate(data)
    raise CacheCorruption("user_state", type(data).__name__)


def _validate_history(data: Any) -> list[ConversationMessage]:
    if not isinstance(data, list):
        raise CacheCorruption("conv_history", type(data).__name__)
    return [m if isinstance(m, ConversationMessage) else ConversationMessage.model_validate(m) for m in data]


def _validate_flag(data: Any) -> bool:
    if not isinstance(data, bool):
        raise CacheCorruption("first_login", type(data).__name__)
    return data


class CachedReads:
    """Per-user cache-aside reads and write-through updates over a CacheStore."""

    def __init__(
        self,
        cache: CacheStore,
        state_ttl: float = CACHE_TTL_STATE_SECONDS,
        history_ttl: float = CACHE_TTL_HISTORY_SECONDS,
        first_contact_ttl: float = CACHE_TTL_FIRST_CONTACT_SECONDS,
    ):
        self.cache = cache
        self.state_ttl = state_ttl
        self.history_ttl = history_ttl
        self.first_contact_ttl = first_contact_ttl

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_state(self, user_id: str, loader: StateLoader) -> CacheLookup:
        return await self.cache.get_or_load(
            state_key(user_id),
            lambda: loader(user_id),
            self.state_ttl,
            label="state",
            validator=_validate_state,
        )

    async def get_history(
        self,
        user_id: str,
        loader: HistoryLoader,
        enabled: bool = True,
    ) -> CacheLookup:
        """
        Cached conversation history.

        A failing loader yields an empty, uncached history so the turn can
        still proceed.
        """
        if not enabled:
            return CacheLookup(value=[], cached=False)

        key = history_key(user_id)
        try:
            return await self.cache.get_or_load(
                key,
                lambda: loader(user_id),
                self.history_ttl,
                label="history",
                validator=_validate_history,
            )
        except Exception as e:
            logger.warning(f"[Cache] history ERROR key={hash_key(key)} error={e}")
            return CacheLookup(value=[], cached=False)

    async def get_first_contact(self, user_id: str, loader: FirstContactLoader) -> CacheLookup:
        """
        Cached first-contact flag.

        The loader marks the profile as seen, so whatever it returns the cache
        stores False: the next read within the TTL is no longer a first contact.
        """
        return await self.cache.get_or_load(
            first_contact_key(user_id),
            lambda: loader(user_id),
            self.first_contact_ttl,
            label="first_login",
            validator=_validate_flag,
            cache_value=lambda _first: False,
        )

    # ------------------------------------------------------------------
    # Write-through
    # ------------------------------------------------------------------

    def update_history(
        self,
        user_id: str,
        message: ConversationMessage,
        max_messages: int = MAX_STORED_MESSAGES_PER_USER,
    ) -> bool:
        """Append *message* to a live cached history, keeping the newest *max_messages*."""
        key = history_key(user_id)

        def append(history: Any) -> list[ConversationMessage]:
            messages = list(history) if isinstance(history, list) else []
            messages.append(message)
            return messages[-max_messages:]

        updated = self.cache.update_in_place(key, append)
        if updated:
            logger.debug(f"[Cache] history UPDATED key={hash_key(key)}")
        return updated

    def update_state(self, user_id: str, state: UserState) -> bool:
        key = state_key(user_id)
        updated = self.cache.update_in_place(key, lambda _old: state)
        if updated:
            logger.debug(f"[Cache] state UPDATED key={hash_key(key)}")
        return updated

    def invalidate_history(self, user_id: str) -> bool:
        return self.cache.delete(history_key(user_id))

    def invalidate_user(self, user_id: str) -> None:
        """Drop cached history and state for *user_id*."""
        self.cache.delete(history_key(user_id))
        self.cache.delete(state_key(user_id))
