# galibot_engine/topics/state_store.py
"""Durable persistence for UserState. Failures degrade, never raise."""

from __future__ import annotations

import logging

from galibot_engine.config import STATE_COLLECTION
from galibot_engine.exceptions import is_quota_error
from galibot_engine.models import UserState, normalize_email
from galibot_engine.storage import PersistentStore

logger = logging.getLogger(__name__)


class UserStateRepository:
    """Loads and saves one UserState document per normalized email."""

    def __init__(self, store: PersistentStore | None, collection: str = STATE_COLLECTION):
        self._store = store
        self.collection = collection

    async def load(self, email: str) -> UserState:
        """Stored state, or defaults when missing, unreadable or the store fails."""
        key = normalize_email(email)
        if self._store is None:
            return UserState.default(key)

        try:
            data = await self._store.get(self.collection, key)
            if data is None:
                return UserState.default(key)
            return UserState.from_document(key, data)
        except Exception as e:
            if is_quota_error(e):
                logger.warning("[State] store quota exceeded - using default state")
            else:
                logger.warning(f"[State] load failed for {key[:10]}...: {e}")
            return UserState.default(key)

    async def save(self, state: UserState) -> bool:
        """Merge *state* into its document. Returns False if the write failed."""
        if self._store is None or not state.email:
            return False

        try:
            await self._store.set(self.collection, state.email, state.to_document(), merge=True)
            return True
        except Exception as e:
            if is_quota_error(e):
                logger.warning("[State] store quota exceeded - skipping state save")
            else:
                logger.warning(f"[State] save failed for {state.email[:10]}...: {e}")
            return False

    async def reset(self, email: str) -> UserState:
        """Overwrite the stored state with defaults and return them."""
        state = UserState.default(email)
        if self._store is not None:
            await self._store.set(self.collection, state.email, state.to_document(), merge=False)
        return state
