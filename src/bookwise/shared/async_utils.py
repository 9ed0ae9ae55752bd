"""
Async Utilities for Time-Boxed Collaborator Calls.

Provides:
- Timeout guard that raises a typed error naming the step
- Circuit breaker for fault tolerance of HTTP clients
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .exceptions import RateLimitError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Timeouts
# =============================================================================

async def run_with_timeout(
    coro: Awaitable[T],
    timeout: float,
    *,
    operation: str,
    detail: str | None = None,
) -> T:
    """
    Await ``coro`` for at most ``timeout`` seconds.

    The awaited task is cancelled on expiry and an UpstreamTimeoutError
    naming ``operation`` is raised in place of the bare TimeoutError.

    Example:
        text = await run_with_timeout(
            resolver.resolve(book_id), 30.0, operation="content resolution"
        )
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        logger.warning(f"{operation} exceeded {timeout:g}s budget")
        raise UpstreamTimeoutError(operation, timeout, detail=detail) from e


# =============================================================================
# Circuit Breaker Pattern
# =============================================================================

@dataclass
class CircuitBreaker:
    """
    Circuit breaker for fault tolerance.

    States:
    - CLOSED: Normal operation
    - OPEN: Failing, reject requests immediately
    - HALF_OPEN: Testing if service recovered

    Example:
        breaker = CircuitBreaker(failure_threshold=5)

        async with breaker:
            result = await risky_api_call()
    """
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3
    name: str = "upstream"

    _failure_count: int = field(init=False, default=0)
    _last_failure_time: float | None = field(init=False, default=None)
    _state: str = field(init=False, default="closed")
    _half_open_calls: int = field(init=False, default=0)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (rejecting requests)."""
        if self._state == "open":
            if self._last_failure_time is not None:
                if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                    return False  # half-open on next entry
            return True
        return False

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock:
            if self.is_open:
                raise RateLimitError(
                    "circuit breaker is open",
                    retry_after=self.recovery_timeout,
                    service=self.name,
                )

            if self._state == "open":
                self._state = "half_open"
                self._half_open_calls = 0

            if self._state == "half_open":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise RateLimitError(
                        "circuit breaker is half-open (max calls reached)",
                        retry_after=self.recovery_timeout / 2,
                        service=self.name,
                    )
                self._half_open_calls += 1

        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        async with self._lock:
            if exc_val is not None and not isinstance(exc_val, asyncio.CancelledError):
                self._failure_count += 1
                self._last_failure_time = time.monotonic()

                if self._failure_count >= self.failure_threshold:
                    self._state = "open"
                    logger.warning(
                        f"Circuit breaker for {self.name} opened after {self._failure_count} failures"
                    )
            elif exc_val is None:
                if self._state == "half_open":
                    self._state = "closed"
                    self._failure_count = 0
                    logger.info(f"Circuit breaker for {self.name} closed (recovered)")
                elif self._state == "closed":
                    self._failure_count = max(0, self._failure_count - 1)
