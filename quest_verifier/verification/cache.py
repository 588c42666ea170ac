"""
TTL (Time-To-Live) in-memory caching of verification verdicts.

This module provides:
1. A TTL cache keyed by contract, window and address
2. A helper building those keys
3. Optional periodic sweeping of expired entries

Entries expire a fixed time after insertion; reads never extend them. A read
of an expired key behaves as a miss whether or not the sweeper has run.

Every clear() starts a new generation. A writer that read the cache before a
clear passes the generation it saw, and its write is dropped.
"""

import asyncio
import threading
import time
from typing import Callable, Dict, Optional

from quest_verifier.shared.constants import CacheKeys
from quest_verifier.shared.logging import get_logger

logger = get_logger(__name__)


def make_cache_key(
    contract_id: str,
    address: str,
    campaign_id: Optional[str] = None,
    start_timestamp: Optional[int] = None,
    end_timestamp: Optional[int] = None,
) -> str:
    """
    Build the cache key for one verification.

    Campaign windows are keyed by campaign id, explicit windows by their
    bounds under the "custom" label, and unbounded checks under "all".
    """
    address = address.lower()
    if campaign_id:
        return f"{contract_id}:{campaign_id}:{address}"
    if start_timestamp is not None and end_timestamp is not None:
        return (
            f"{contract_id}:{CacheKeys.CUSTOM_RANGE}:{address}:"
            f"{start_timestamp}:{end_timestamp}"
        )
    return f"{contract_id}:{CacheKeys.ALL_TIME}:{address}"


class CacheEntry:
    """A cache entry with expiration time."""

    __slots__ = ("value", "expiry_time")

    def __init__(self, value: bool, ttl: float, now: float):
        self.value = value
        self.expiry_time = now + ttl

    def is_expired(self, now: float) -> bool:
        """Check if this cache entry has expired."""
        return now >= self.expiry_time


class ResultCache:
    """In-memory TTL cache of boolean verdicts."""

    def __init__(
        self,
        default_ttl: float = 86400,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize TTL cache.

        Args:
            default_ttl: Default time-to-live in seconds (default: 86400 = 1 day)
            clock: Monotonic time source, injectable for tests
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._generation = 0
        self._lock = threading.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None

    @property
    def generation(self) -> int:
        """Number of clears so far."""
        with self._lock:
            return self._generation

    def get(self, key: str) -> Optional[bool]:
        """Get value from cache if not expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                del self._entries[key]
                return None
            return entry.value

    def set(
        self,
        key: str,
        value: bool,
        ttl: Optional[float] = None,
        generation: Optional[int] = None,
    ) -> bool:
        """
        Set value in cache with TTL.

        When ``generation`` is given the write only lands if the cache has
        not been cleared since. Returns whether the entry was stored.
        """
        if ttl is None:
            ttl = self.default_ttl
        entry = CacheEntry(bool(value), ttl, self._clock())
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug(f"Dropped write for {key} from generation {generation}")
                return False
            self._entries[key] = entry
        return True

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            count = len(self._entries)
            self._entries = {}
            self._generation += 1
        logger.info(f"Result cache cleared ({count} entries)")

    def cleanup_expired(self) -> int:
        """Remove all expired entries, returning how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def start_cleanup_task(self, interval: float = 600) -> None:
        """Start periodic cleanup of expired entries."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(
                self._periodic_cleanup(interval)
            )

    async def stop_cleanup_task(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def _periodic_cleanup(self, interval: float) -> None:
        """Periodically clean up expired entries."""
        while True:
            await asyncio.sleep(interval)
            self.cleanup_expired()

    def get_stats(self) -> Dict[str, int]:
        """Get cache statistics."""
        now = self._clock()
        with self._lock:
            total = len(self._entries)
            expired = sum(1 for e in self._entries.values() if e.is_expired(now))
        return {
            "total_entries": total,
            "active_entries": total - expired,
            "expired_entries": expired,
        }
