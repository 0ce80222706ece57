# galibot_engine/profiles.py
"""First-contact tracking over the user profile collection."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from galibot_engine.config import PROFILES_COLLECTION
from galibot_engine.exceptions import is_quota_error
from galibot_engine.models import normalize_email
from galibot_engine.storage import PersistentStore

logger = logging.getLogger(__name__)


class FirstContactTracker:
    """Creates a profile on first sight of a user and touches it afterwards."""

    def __init__(self, store: PersistentStore | None, collection: str = PROFILES_COLLECTION):
        self._store = store
        self.collection = collection

    async def check_and_mark(self, email: str) -> bool:
        """
        True exactly once per user: when no profile existed yet.

        Any store failure answers False so onboarding never blocks a turn.
        """
        if self._store is None:
            return False

        key = normalize_email(email)
        now = datetime.now(UTC)
        try:
            profile = await self._store.get(self.collection, key)
            if profile is None:
                await self._store.set(
                    self.collection,
                    key,
                    {"email": key, "created_at": now, "last_login_at": now, "first_login_seen": False},
                )
                return True

            await self._store.set(self.collection, key, {"last_login_at": now}, merge=True)
            return False
        except Exception as e:
            if is_quota_error(e):
                logger.warning("[FirstLogin] store quota exceeded - skipping first login check")
            else:
                logger.warning(f"[FirstLogin] error checking first login: {e}")
            return False
