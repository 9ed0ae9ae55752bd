"""
Cache Infrastructure

Provides the shared result cache and the background write queue that
fills it.
"""

from __future__ import annotations

from bookwise.infrastructure.cache.result_cache import (
    CacheStats,
    ResultCache,
    estimate_size,
    make_cache_key,
)
from bookwise.infrastructure.cache.write_queue import (
    BackgroundWriteQueue,
    WriteQueueStats,
)

__all__ = [
    "BackgroundWriteQueue",
    "CacheStats",
    "ResultCache",
    "WriteQueueStats",
    "estimate_size",
    "make_cache_key",
]
