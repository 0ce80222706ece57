# galibot_engine/cache/store.py
"""
CacheStore - TTL key/value cache that fronts the persistent store.

One CacheStore backs three logical caches (query results, user state and
conversation history), separated by key prefix. Reads that would otherwise
hit the backing store on every turn go through ``get_or_load``.

Semantics:
- An entry is valid iff ``now - timestamp <= ttl``
- Expired entries are evicted lazily on read
- When the entry count exceeds the high-water mark, the next write sweeps
  every expired entry (piggybacked on writes, no background timer)
- ``update_in_place`` rewrites data but keeps the original timestamp/ttl, so
  incremental updates never extend an entry's life
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from galibot_engine.config import CACHE_HIGH_WATER_MARK
from galibot_engine.exceptions import CacheCorruption
from galibot_engine.models import CacheStats

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0


def hash_key(key: str) -> str:
    """Short, stable hash of a cache key for logs (keys carry emails)."""
    return hashlib.sha256(key.encode()).hexdigest()[:8]


class CacheEntry(BaseModel):
    """A cached value and its expiry window."""

    data: Any
    timestamp: float = Field(..., description="Clock reading when the entry was first written")
    ttl: float = Field(..., description="Seconds the entry stays valid")

    model_config = {"arbitrary_types_allowed": True}

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_expired(self, now: float) -> bool:
        return self.age(now) > self.ttl

    def remaining_ttl(self, now: float) -> float:
        return max(0.0, self.ttl - self.age(now))


class CacheLookup(BaseModel):
    """Result of a cache-aside read."""

    value: Any = None
    cached: bool = False
    remaining_ttl: float | None = Field(default=None, description="Seconds left on a hit")

    model_config = {"arbitrary_types_allowed": True}


class CacheStore:
    """
    In-process TTL cache.

    Not thread-safe; it is meant to be shared by coroutines on one event loop,
    where every method except ``get_or_load`` runs without suspending.
    """

    def __init__(
        self,
        high_water_mark: int = CACHE_HIGH_WATER_MARK,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.high_water_mark = high_water_mark
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._stats = {
            "hits": 0,
            "misses": 0,
            "expirations": 0,
            "sweeps": 0,
            "invalidations": 0,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get_entry(key) is not None

    def now(self) -> float:
        return self._clock()

    # ------------------------------------------------------------------
    # Basic operations
    # ------------------------------------------------------------------

    def get_entry(self, key: str) -> CacheEntry | None:
        """Return the live entry for *key*, evicting it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self.now()):
            del self._entries[key]
            self._stats["expirations"] += 1
            return None

        return entry

    def get(self, key: str) -> Any | None:
        """Cached data, or None if missing or expired."""
        entry = self.get_entry(key)
        if entry is None:
            self._stats["misses"] += 1
            return None

        self._stats["hits"] += 1
        return entry.data

    def set(self, key: str, data: Any, ttl: float | None = None) -> None:
        """Store *data* under *key* with a fresh timestamp."""
        self._entries[key] = CacheEntry(
            data=data,
            timestamp=self.now(),
            ttl=ttl if ttl is not None else self.default_ttl,
        )

        if len(self._entries) > self.high_water_mark:
            self.sweep()

    def update_in_place(self, key: str, updater: Callable[[Any], Any]) -> bool:
        """
        Write-through update that preserves the entry's expiry window.

        ``updater`` receives the current data and returns the replacement.
        Returns False (and changes nothing) if the entry is missing or expired.
        """
        entry = self.get_entry(key)
        if entry is None:
            return False

        self._entries[key] = CacheEntry(
            data=updater(entry.data),
            timestamp=entry.timestamp,
            ttl=entry.ttl,
        )
        return True

    def delete(self, key: str) -> bool:
        """Remove *key*. Idempotent; returns whether something was removed."""
        if self._entries.pop(key, None) is not None:
            self._stats["invalidations"] += 1
            return True
        return False

    def delete_by_prefix(self, prefix: str) -> int:
        """Remove every key starting with *prefix*; returns the count."""
        to_remove = [key for key in self._entries if key.startswith(prefix)]
        for key in to_remove:
            del self._entries[key]
        self._stats["invalidations"] += len(to_remove)
        return len(to_remove)

    def sweep(self) -> int:
        """Drop all expired entries; returns how many were removed."""
        now = self.now()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        self._stats["sweeps"] += 1
        self._stats["expirations"] += len(expired)
        if expired:
            logger.debug(f"[Cache] sweep removed {len(expired)} expired entries, size={len(self._entries)}")
        return len(expired)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        self._stats["invalidations"] += count
        return count

    # ------------------------------------------------------------------
    # Cache-aside
    # ------------------------------------------------------------------

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl: float | None = None,
        *,
        label: str = "value",
        validator: Callable[[Any], Any] | None = None,
        cache_value: Callable[[Any], Any] | None = None,
    ) -> CacheLookup:
        """
        Return the cached value for *key*, or load, store and return it.

        Args:
            key: Cache key.
            loader: Coroutine function producing the value on a miss.
            ttl: TTL for a freshly loaded value.
            label: Name used in log lines ("state", "history", ...).
            validator: Checks (and may coerce) a cached value. Raising
                CacheCorruption, ValueError or ValidationError turns the hit
                into a miss.
            cache_value: Maps the loaded value to what gets cached, when the
                two differ.
        """
        key_hash = hash_key(key)
        reason = "expired" if key in self._entries else "not_found"
        entry = self.get_entry(key)

        if entry is not None:
            try:
                value = validator(entry.data) if validator else entry.data
            except (CacheCorruption, ValueError, ValidationError) as e:
                logger.warning(f"[Cache] {label} CORRUPT key={key_hash} error={e}")
                self._entries.pop(key, None)
                reason = "corrupt"
            else:
                remaining = entry.remaining_ttl(self.now())
                self._stats["hits"] += 1
                logger.debug(f"[Cache] {label} HIT key={key_hash} ttl={remaining * 1000:.0f}ms remaining")
                return CacheLookup(value=value, cached=True, remaining_ttl=remaining)

        self._stats["misses"] += 1
        logger.debug(f"[Cache] {label} MISS key={key_hash} reason={reason}")

        value = await loader()
        effective_ttl = ttl if ttl is not None else self.default_ttl
        self.set(key, cache_value(value) if cache_value else value, effective_ttl)
        logger.debug(f"[Cache] {label} SET key={key_hash} ttl={effective_ttl * 1000:.0f}ms")
        return CacheLookup(value=value, cached=False)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    @property
    def hit_rate(self) -> float:
        total = self._stats["hits"] + self._stats["misses"]
        if total == 0:
            return 0.0
        return self._stats["hits"] / total

    def get_stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._entries),
            high_water_mark=self.high_water_mark,
            **self._stats,
        )
