"""
Result Cache

In-memory cache for search results, summaries and audio records.
Uses cachetools.TLRUCache for LRU eviction plus a per-entry time-to-live.

Features:
- Per-entry TTL (defaults to the cache-wide TTL)
- LRU eviction when max size reached
- Thread-safe; callers never hold a lock
- Hit/miss/eviction/expiration counters and an estimated byte size
- Async read/write wrappers with a read timeout that counts as a miss
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, is_dataclass
from typing import Any, NamedTuple

from cachetools import TLRUCache

logger = logging.getLogger(__name__)


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _entry_ttu(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class _CountingTLRUCache(TLRUCache):
    """TLRUCache that reports evicted and expired keys to callbacks."""

    def __init__(
        self,
        maxsize: int,
        timer: Callable[[], float],
        on_evict: Callable[[str], None],
        on_expire: Callable[[list[str]], None],
    ):
        super().__init__(maxsize=maxsize, ttu=_entry_ttu, timer=timer)
        self._on_evict = on_evict
        self._on_expire = on_expire

    def popitem(self):
        key, value = super().popitem()
        self._on_evict(key)
        return key, value

    def expire(self, time=None):
        # Also runs inside __setitem__ and popitem
        expired = super().expire(time)
        if expired:
            self._on_expire([key for key, _ in expired])
        return expired


def estimate_size(obj: Any, _seen: set[int] | None = None) -> int:
    """Rough deep ``sys.getsizeof`` over containers and dataclasses."""
    seen = _seen if _seen is not None else set()
    if id(obj) in seen:
        return 0
    seen.add(id(obj))
    size = sys.getsizeof(obj)
    if isinstance(obj, (str, bytes, bytearray, int, float, bool)) or obj is None:
        return size
    if isinstance(obj, Mapping):
        size += sum(estimate_size(k, seen) + estimate_size(v, seen) for k, v in obj.items())
    elif isinstance(obj, (list, tuple, set, frozenset)):
        size += sum(estimate_size(item, seen) for item in obj)
    elif is_dataclass(obj) and not isinstance(obj, type):
        size += sum(estimate_size(getattr(obj, f.name), seen) for f in fields(obj))
    return size


def make_cache_key(operation: str, **params: Any) -> str:
    """
    Deterministic key for ``operation`` and its parameters.

    Example:
        make_cache_key("summary", book_id="gutenberg:1342", language="en", style="concise")
        # 'summary:book_id=gutenberg:1342|language=en|style=concise'
    """
    parts = "|".join(f"{name}={params[name]}" for name in sorted(params))
    return f"{operation}:{parts}"


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache statistics."""

    entry_count: int
    estimated_size: int
    hits: int
    misses: int
    evictions: int
    expirations: int
    read_timeouts: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Cache hit rate (0-1)."""
        total = self.total_requests
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_count": self.entry_count,
            "estimated_size": self.estimated_size,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "read_timeouts": self.read_timeouts,
            "hit_rate": round(self.hit_rate, 4),
        }


class ResultCache:
    """
    Shared cache for expensive results.

    Example:
        cache = ResultCache(max_size=1000, ttl=3600)

        cache.set("search:limit=10|query=dune", result)
        result = cache.get("search:limit=10|query=dune")

        # Hot path: a slow read is treated as a miss
        result = await cache.aget(key, timeout=0.05)
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl: float = 3600.0,
        timer: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache.

        Args:
            max_size: Maximum number of entries
            ttl: Default time-to-live in seconds
            timer: Clock used for expiry; injectable for tests
        """
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        self._max_size = max_size
        self._ttl = ttl
        self._timer = timer
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._read_timeouts = 0
        # Byte estimates for stored keys; dropped when an entry leaves the cache
        self._sizes: dict[str, int] = {}
        self._cache = self._new_cache()

    def _new_cache(self) -> _CountingTLRUCache:
        return _CountingTLRUCache(self._max_size, self._timer, self._record_eviction, self._record_expiry)

    # Callbacks run with the lock held

    def _record_eviction(self, key: str) -> None:
        self._evictions += 1
        self._sizes.pop(key, None)

    def _record_expiry(self, keys: list[str]) -> None:
        self._expirations += len(keys)
        for key in keys:
            self._sizes.pop(key, None)

    def _record_read(self, found: bool) -> None:
        with self._lock:
            if found:
                self._hits += 1
            else:
                self._misses += 1

    def _estimated_size(self) -> int:
        return sum(self._sizes.values())

    def _purge_expired(self) -> None:
        # Caller holds the lock
        self._cache.expire()

    def _lookup(self, key: str) -> tuple[bool, Any]:
        """Read without touching hit/miss counters."""
        with self._lock:
            self._purge_expired()
            try:
                entry = self._cache[key]
            except KeyError:
                return False, None
            return True, entry.value

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> Any | None:
        """
        Get value from cache (sync).

        Returns:
            Cached value or None if not found/expired
        """
        found, value = self._lookup(key)
        self._record_read(found)
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """
        Set value in cache (sync).

        Args:
            key: Cache key
            value: Value to cache
            ttl: Entry lifetime in seconds, defaults to the cache TTL
        """
        entry_ttl = self._ttl if ttl is None else ttl
        if entry_ttl <= 0:
            return
        entry = _Entry(value, entry_ttl)
        size = estimate_size(value)
        with self._lock:
            self._purge_expired()
            self._cache[key] = entry
            self._sizes[key] = size

    def invalidate(self, key: str) -> bool:
        """
        Invalidate cache entry.

        Returns:
            True if entry was removed
        """
        with self._lock:
            self._sizes.pop(key, None)
            return self._cache.pop(key, None) is not None

    def invalidate_all(self) -> int:
        """
        Drop every entry by swapping in a fresh cache.

        Returns:
            Number of live entries dropped
        """
        with self._lock:
            self._purge_expired()
            count = len(self._cache)
            self._cache = self._new_cache()
            self._sizes = {}
        logger.info(f"Result cache invalidated ({count} entries)")
        return count

    def stats(self) -> CacheStats:
        """Get cache statistics."""
        with self._lock:
            self._purge_expired()
            return CacheStats(
                entry_count=len(self._cache),
                estimated_size=self._estimated_size(),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                read_timeouts=self._read_timeouts,
            )

    async def aget(self, key: str, timeout: float | None = None) -> Any | None:
        """
        Async read, bounded by ``timeout`` seconds.

        A read that does not finish in time is logged and reported as a miss.
        The abandoned lookup keeps running but is counted once, here.
        """
        try:
            found, value = await asyncio.wait_for(asyncio.to_thread(self._lookup, key), timeout=timeout)
        except TimeoutError:
            with self._lock:
                self._read_timeouts += 1
                self._misses += 1
            logger.debug(f"Cache read timed out after {timeout}s: {key}")
            return None
        self._record_read(found)
        return value

    async def aset(self, key: str, value: Any, ttl: float | None = None) -> None:
        await asyncio.to_thread(self.set, key, value, ttl)

    def __len__(self) -> int:
        """Get number of live entries."""
        with self._lock:
            self._purge_expired()
            return len(self._cache)

    def __contains__(self, key: str) -> bool:
        """Check if key holds a live entry. Does not touch hit/miss counters."""
        with self._lock:
            return key in self._cache
