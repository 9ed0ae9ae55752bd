"""
Base API Client - Common HTTP request pattern with retry, rate limiting, and circuit breaker.

Shared by the catalog clients and the Hugging Face client:
- Automatic retry on 429 (rate limit) with Retry-After support
- Retry on 5xx and transport errors with exponential backoff
- Rate limiting (configurable interval between requests)
- Circuit breaker for fault tolerance
- Typed errors: every failure surfaces as an UpstreamError subclass
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
from typing_extensions import Self

from bookwise.shared.async_utils import CircuitBreaker
from bookwise.shared.exceptions import (
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "bookwise/0.1 (+https://github.com/bookwise)"


class BaseAPIClient:
    """
    Base class for external API clients.

    Provides common infrastructure:
    - httpx.AsyncClient management (redirects followed)
    - Rate limiting with configurable interval
    - Retry on 429/5xx/transport errors with exponential backoff
    - Circuit breaker for fault tolerance
    - Consistent error handling

    Subclasses should set `_service_name` and can override:
    - `_execute_request()`: Add service-specific headers/params
    - `_handle_expected_status()`: Handle service-specific status codes (e.g., 404)
    - `_parse_response()`: Custom response processing

    Example:
        class MyClient(BaseAPIClient):
            _service_name = "MyAPI"

            def __init__(self):
                super().__init__(base_url="https://api.example.com", min_interval=0.1)

            async def get_item(self, item_id: str) -> dict | None:
                return await self._make_request(f"/items/{item_id}")
    """

    _service_name: str = "API"
    _MAX_RETRIES: int = 3

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        min_interval: float = 0.1,
        headers: dict[str, str] | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_delay: float = 1.0,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API (optional, can pass full URLs)
            timeout: Request timeout in seconds
            min_interval: Minimum seconds between requests (rate limiting)
            headers: Default headers for all requests
            circuit_breaker: Optional circuit breaker for fault tolerance.
                             If None, a default one is created (threshold=10, recovery=60s).
            transport: Optional httpx transport (tests pass an httpx.MockTransport)
            retry_delay: Base backoff in seconds between retries
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._min_interval = min_interval
        self._retry_delay = retry_delay
        self._last_request_time = 0.0
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers={"User-Agent": DEFAULT_USER_AGENT, **(headers or {})},
            follow_redirects=True,
            transport=transport,
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=10, recovery_timeout=60.0, name=self._service_name
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _rate_limit(self) -> None:
        """Enforce minimum interval between requests."""
        elapsed = time.monotonic() - self._last_request_time
        if elapsed < self._min_interval:
            await asyncio.sleep(self._min_interval - elapsed)
        self._last_request_time = time.monotonic()

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}{url}"

    async def _make_request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        expect_json: bool = True,
    ) -> Any:
        """
        Make HTTP request with retries and circuit breaker protection.

        Args:
            url: Full URL or path (appended to base_url)
            method: HTTP method (GET or POST)
            params: Query string parameters
            data: JSON body for POST requests
            headers: Additional headers for this request
            expect_json: If True, parse response as JSON; otherwise return text

        Returns:
            Parsed response, or whatever `_handle_expected_status` short-circuits with

        Raises:
            RateLimitError: still rate limited after retries, or the circuit is open
            ServiceUnavailableError: 5xx after retries
            NetworkError: transport failure after retries
            UpstreamError: any other non-success status
            ParseError: the body could not be decoded
        """
        full_url = self._build_url(url)

        for attempt in range(self._MAX_RETRIES + 1):
            await self._rate_limit()
            try:
                async with self._circuit_breaker:
                    response = await self._execute_request(
                        full_url, method=method, params=params, data=data, headers=headers
                    )

                    # Handle expected error codes (e.g., 404 = not found)
                    expected = self._handle_expected_status(response, full_url)
                    if expected is not _CONTINUE:
                        return expected

                    # Handle 429 rate limiting
                    if response.status_code == 429:
                        retry_after = self._get_retry_after(response, attempt, self._retry_delay)
                        if attempt < self._MAX_RETRIES:
                            logger.warning(
                                f"{self._service_name}: Rate limited (429), "
                                f"retry {attempt + 1}/{self._MAX_RETRIES} in {retry_after:.1f}s"
                            )
                            await asyncio.sleep(retry_after)
                            continue
                        raise RateLimitError(
                            f"{self._service_name}: rate limit exceeded after {self._MAX_RETRIES} retries",
                            retry_after=retry_after,
                            service=self._service_name,
                        )

                    response.raise_for_status()
                    return self._parse_response(response, expect_json)

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status >= 500 and attempt < self._MAX_RETRIES:
                    logger.warning(
                        f"{self._service_name} HTTP {status} (attempt {attempt + 1}), retrying"
                    )
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                logger.warning(f"{self._service_name} HTTP error {status}: {e.response.reason_phrase}")
                raise self._status_error(e.response) from e
            except httpx.RequestError as e:
                if attempt < self._MAX_RETRIES:
                    logger.warning(f"{self._service_name} request error (attempt {attempt + 1}): {e}")
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                logger.error(f"{self._service_name} request failed: {e}")
                raise NetworkError(
                    f"{self._service_name}: request failed: {str(e) or type(e).__name__}",
                    service=self._service_name,
                ) from e
            except ValueError as e:
                raise ParseError(
                    f"malformed response body: {e}",
                    source=self._service_name,
                ) from e

        # Unreachable: the last attempt either returns or raises
        raise UpstreamError(f"{self._service_name}: request failed", service=self._service_name)

    async def _execute_request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute the actual HTTP request. Override for custom behavior."""
        if method == "POST":
            return await self._client.post(url, params=params, json=data, headers=headers or {})
        return await self._client.get(url, params=params, headers=headers or {})

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """
        Handle expected non-200 status codes that shouldn't trigger retry.

        Override in subclasses for service-specific behavior.
        Return a value to short-circuit (e.g., None for 404).
        Return the sentinel _CONTINUE to continue normal processing.

        Default: no special handling.
        """
        return _CONTINUE

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        """Parse response body. Override for custom extraction logic."""
        if expect_json:
            return response.json()
        return response.text

    def _status_error(self, response: httpx.Response) -> UpstreamError:
        status = response.status_code
        if status >= 500:
            return ServiceUnavailableError(
                f"HTTP {status} {response.reason_phrase}".strip(),
                service=self._service_name,
                status_code=status,
            )
        return UpstreamError(
            f"{self._service_name}: HTTP {status} {response.reason_phrase}".strip(),
            service=self._service_name,
            status_code=status,
            retryable=False,
        )

    def _backoff(self, attempt: int) -> float:
        return self._retry_delay * (2**attempt)

    @staticmethod
    def _get_retry_after(response: httpx.Response, attempt: int, base: float = 1.0) -> float:
        """Extract Retry-After from response headers, with exponential backoff fallback."""
        fallback = base * 2 ** (attempt + 1)
        try:
            return float(response.headers.get("Retry-After", fallback))
        except (ValueError, TypeError):
            return fallback

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


# Sentinel object to indicate "continue normal processing" from _handle_expected_status
_CONTINUE = object()
