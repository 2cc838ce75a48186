"""Metadata response cache: interface and in-memory implementation.

Hey future me - WebhookSyncExecutor keeps successful results here (keyed by
"sync:movie:603:{options}") so duplicate jobs for the same target don't burn quota
twice. A host executor can use SyncEngine.cache the same way. Maintenance calls
purge_expired() daily to drop what's past its TTL.
"""

import asyncio
import time
from abc import abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from reelsync.domain.ports import ICache

DEFAULT_TTL_SECONDS = 86400  # one day, API data doesn't change faster than the sync


@dataclass
class CacheEntry[V]:
    """Cached value with its expiry."""

    value: V
    created_at: float
    ttl_seconds: int

    def is_expired(self, now: float) -> bool:
        return now > self.created_at + self.ttl_seconds


class BaseCache[K, V](ICache):
    """Cache interface used by executors; purge_expired() comes from ICache."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Cached value, or None if missing or expired."""
        pass

    @abstractmethod
    async def set(self, key: K, value: V, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        pass

    @abstractmethod
    async def delete(self, key: K) -> bool:
        """Delete a key. True if it existed."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    def get_stats(self) -> dict[str, Any]:
        """Entry counts for monitoring; backends that can't count cheaply return {}."""
        return {}


class InMemoryCache[K, V](BaseCache[K, V]):
    """Process-local dict cache.

    Lost on restart and not shared between processes - fine for a single worker
    process, use a shared backend behind BaseCache otherwise.
    """

    # Listen up, ALWAYS hold _lock when touching _entries - purge_expired() runs from
    # the maintenance job while executors read and write concurrently.
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[K, CacheEntry[V]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, key: K) -> V | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    async def set(self, key: K, value: V, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        async with self._lock:
            self._entries[key] = CacheEntry(
                value=value, created_at=self._clock(), ttl_seconds=ttl_seconds
            )

    async def delete(self, key: K) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def purge_expired(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def get_stats(self) -> dict[str, Any]:
        """Entry counts (unlocked snapshot, for monitoring only)."""
        now = self._clock()
        total = len(self._entries)
        expired = sum(1 for entry in self._entries.values() if entry.is_expired(now))
        return {
            "total_entries": total,
            "active_entries": total - expired,
            "expired_entries": expired,
        }
