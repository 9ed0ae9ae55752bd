"""
Background Write Queue

Fire-and-forget execution of cache and persistence writes so request
paths never wait on them.

- ``submit()`` never blocks and never raises for a full queue
- Bounded: when full, the oldest pending job is dropped (and counted)
- A failing job is logged; it is not retried and does not stop the worker
- ``drain()`` waits until every accepted job has finished
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

WriteJob = Callable[[], Awaitable[Any]]


@dataclass
class WriteQueueStats:
    submitted: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "submitted": self.submitted,
            "completed": self.completed,
            "failed": self.failed,
            "dropped": self.dropped,
        }


class BackgroundWriteQueue:
    """
    Single-worker queue of async write jobs.

    The worker task is started lazily on the first ``submit()`` from inside
    a running event loop.

    Example:
        queue = BackgroundWriteQueue(max_pending=256)
        queue.submit(lambda: store.save(record), name="summary.save")
        ...
        await queue.drain()   # tests, shutdown
        await queue.close()
    """

    def __init__(self, max_pending: int = 256):
        if max_pending < 1:
            raise ValueError("max_pending must be >= 1")
        self._max_pending = max_pending
        self._pending: deque[tuple[str, WriteJob]] = deque()
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._worker: asyncio.Task[None] | None = None
        self._closed = False
        self._stats = WriteQueueStats()

    @property
    def stats(self) -> WriteQueueStats:
        return self._stats

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, job: WriteJob, *, name: str = "write") -> bool:
        """
        Enqueue ``job`` without waiting for it.

        Returns:
            False if the queue is closed and the job was discarded
        """
        if self._closed:
            logger.warning(f"Write queue closed, discarding job '{name}'")
            return False
        self._ensure_worker()
        if len(self._pending) >= self._max_pending:
            dropped_name, _ = self._pending.popleft()
            self._stats.dropped += 1
            logger.warning(
                f"Write queue full ({self._max_pending}), dropped oldest job '{dropped_name}'"
            )
        self._pending.append((name, job))
        self._stats.submitted += 1
        self._idle.clear()
        self._wakeup.set()
        return True

    def _ensure_worker(self) -> None:
        if self._worker is not None and not self._worker.done():
            return
        self._worker = asyncio.get_running_loop().create_task(self._run(), name="bookwise-write-queue")

    async def _run(self) -> None:
        while True:
            if not self._pending:
                self._idle.set()
                if self._closed:
                    return
                self._wakeup.clear()
                await self._wakeup.wait()
                continue

            name, job = self._pending.popleft()
            try:
                await job()
                self._stats.completed += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                self._stats.failed += 1
                logger.exception(f"Background write '{name}' failed")

    async def drain(self) -> None:
        """Wait until all accepted jobs have run."""
        if self._worker is None or self._worker.done():
            return
        await self._idle.wait()

    async def close(self) -> None:
        """Finish pending jobs, then stop the worker."""
        self._closed = True
        if self._worker is None:
            return
        self._wakeup.set()
        try:
            await self._worker
        finally:
            self._worker = None
        logger.debug(f"Write queue closed: {self._stats.to_dict()}")
