"""
Unified Exception Hierarchy for Bookwise.

Every failure that crosses a component boundary is one of these types, so
callers can tell bad input from a missing book from a flaky upstream.

Exception Hierarchy:
    BookwiseError (base)
    ├── InvalidInputError
    │   ├── InvalidQueryError
    │   └── InvalidParameterError
    ├── DataError
    │   ├── NotFoundError
    │   └── ParseError
    ├── APIError
    │   ├── UpstreamError
    │   │   ├── RateLimitError
    │   │   ├── NetworkError
    │   │   ├── ServiceUnavailableError
    │   │   └── PartialSourceFailure
    │   └── UpstreamTimeoutError
    └── ConfigurationError
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = auto()      # Caller mistake, fix input
    ERROR = auto()        # Failed, may retry
    CRITICAL = auto()     # Cannot continue
    TRANSIENT = auto()    # Temporary, retry later


class ErrorCategory(Enum):
    """Categories for error classification."""
    UPSTREAM = "upstream"
    VALIDATION = "validation"
    DATA = "data"
    CONFIGURATION = "config"
    NETWORK = "network"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Structured context attached to every error."""
    operation: str | None = None
    service: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    related_errors: tuple[BaseException, ...] = field(default_factory=tuple)
    metadata: dict[str, Any] = field(default_factory=dict)


class BookwiseError(Exception):
    """
    Base exception for all Bookwise errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    __slots__ = ("context", "severity", "category", "retryable")

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.UPSTREAM,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "type": type(self).__name__,
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.operation:
            result["operation"] = self.context.operation
        if self.context.service:
            result["service"] = self.context.service
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        if self.context.related_errors:
            result["causes"] = [str(e) for e in self.context.related_errors]
        return result

    def to_user_message(self) -> str:
        """Short human-readable explanation, one line per hint."""
        parts = [f"Error: {self}"]
        if self.context.suggestion:
            parts.append(f"Suggestion: {self.context.suggestion}")
        if self.retryable:
            if self.context.retry_after:
                parts.append(f"Retry after {self.context.retry_after:.1f} seconds")
            else:
                parts.append("This error is retryable")
        return "\n".join(parts)


# =============================================================================
# Validation Errors
# =============================================================================

class InvalidInputError(BookwiseError):
    """Caller supplied an input that can never succeed. Never retried."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidQueryError(InvalidInputError):
    """Raised when a search query is empty or out of bounds."""

    def __init__(
        self,
        query: str | None,
        reason: str = "query cannot be empty",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = replace(
            context or ErrorContext(),
            input_value=query,
        )
        if not ctx.suggestion:
            ctx = replace(ctx, suggestion="Provide a title, author or topic of 2-500 characters")
        super().__init__(f"Invalid query: {reason}", context=ctx)
        self.query = query
        self.reason = reason


class InvalidParameterError(InvalidInputError):
    """Raised when a parameter value is invalid."""

    def __init__(
        self,
        param_name: str,
        value: Any,
        expected: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = replace(
            context or ErrorContext(),
            input_value=value,
            suggestion=f"Expected {expected}",
        )
        super().__init__(
            f"Invalid parameter '{param_name}': {value!r} (expected {expected})",
            context=ctx,
        )
        self.param_name = param_name
        self.value = value
        self.expected = expected


# =============================================================================
# Data Errors
# =============================================================================

class DataError(BookwiseError):
    """Base class for data-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class NotFoundError(DataError):
    """Raised when a book, summary or its content does not exist."""

    def __init__(
        self,
        resource: str,
        identifier: str | None = None,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        msg = f"{resource} not found"
        if identifier:
            msg = f"{resource} not found: {identifier}"
        ctx = replace(context or ErrorContext(), input_value=identifier)
        if not ctx.suggestion:
            ctx = replace(ctx, suggestion="Check the identifier and try again")
        super().__init__(msg, context=ctx)
        self.resource = resource
        self.identifier = identifier


class ParseError(DataError):
    """Raised when an upstream payload cannot be understood."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        full_msg = f"Parse error: {message}"
        if source:
            full_msg = f"Parse error ({source}): {message}"
        super().__init__(full_msg, context=context)


# =============================================================================
# Upstream Errors
# =============================================================================

class APIError(BookwiseError):
    """Base class for failures of an external collaborator."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        retryable: bool = True,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=severity,
            category=ErrorCategory.UPSTREAM,
            retryable=retryable,
        )


class UpstreamError(APIError):
    """An upstream collaborator failed; the message names it and the cause."""

    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        status_code: int | None = None,
        context: ErrorContext | None = None,
        retryable: bool = True,
    ) -> None:
        ctx = context or ErrorContext()
        if service and not ctx.service:
            ctx = replace(ctx, service=service)
        super().__init__(message, context=ctx, retryable=retryable)
        self.service = ctx.service
        self.status_code = status_code


class RateLimitError(UpstreamError):
    """Raised when an upstream rate limit is exceeded."""

    def __init__(
        self,
        message: str = "rate limit exceeded",
        *,
        retry_after: float = 1.0,
        service: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = replace(context or ErrorContext(), retry_after=retry_after)
        if not ctx.suggestion:
            ctx = replace(ctx, suggestion="Wait and retry the request")
        super().__init__(message, service=service, status_code=429, context=ctx)
        self.severity = ErrorSeverity.TRANSIENT


class NetworkError(UpstreamError):
    """Raised for connectivity problems reaching an upstream."""

    def __init__(
        self,
        message: str = "network connection failed",
        *,
        service: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message, service=service, context=context)
        self.category = ErrorCategory.NETWORK


class ServiceUnavailableError(UpstreamError):
    """Raised when the upstream answers with a 5xx status."""

    def __init__(
        self,
        message: str = "service temporarily unavailable",
        *,
        service: str = "upstream",
        status_code: int | None = 503,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            f"{service}: {message}",
            service=service,
            status_code=status_code,
            context=context,
        )
        self.severity = ErrorSeverity.TRANSIENT


class PartialSourceFailure(UpstreamError):
    """One catalog failed during an aggregated search; the search continues."""

    def __init__(
        self,
        source: str,
        cause: BaseException,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        reason = str(cause) or type(cause).__name__
        ctx = replace(
            context or ErrorContext(),
            service=source,
            related_errors=(cause,),
        )
        super().__init__(f"{source}: {reason}", service=source, context=ctx)
        self.source = source
        self.cause = cause


class UpstreamTimeoutError(APIError):
    """A collaborator call exceeded its time budget."""

    def __init__(
        self,
        operation: str,
        timeout_seconds: float,
        *,
        detail: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        msg = f"{operation} timed out after {timeout_seconds:g}s"
        if detail:
            msg = f"{msg} {detail}"
        ctx = replace(context or ErrorContext(), operation=operation)
        super().__init__(
            msg,
            context=ctx,
            retryable=True,
            severity=ErrorSeverity.TRANSIENT,
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(BookwiseError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )


# =============================================================================
# Retry helpers
# =============================================================================

def is_retryable_error(error: BaseException) -> bool:
    """Check if an error should be retried."""
    if isinstance(error, BookwiseError):
        return error.retryable

    error_str = str(error).lower()
    transient_patterns = [
        "rate limit",
        "too many requests",
        "temporarily unavailable",
        "service unavailable",
        "model is currently loading",
        "connection reset",
        "timeout",
    ]
    return any(pattern in error_str for pattern in transient_patterns)


def get_retry_delay(
    error: BaseException | None,
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> float:
    """
    Calculate retry delay with exponential backoff.

    A server-supplied Retry-After on the error replaces ``base_delay``.

    Args:
        error: The exception that occurred
        attempt: Current attempt number (0-based)
        base_delay: Delay before the first retry
        max_delay: Upper bound on the returned delay

    Returns:
        Delay in seconds before next retry
    """
    if isinstance(error, BookwiseError) and error.context.retry_after:
        base_delay = error.context.retry_after

    delay = base_delay * (2 ** attempt)
    jitter = random.uniform(0, 0.1 * delay)
    return min(delay + jitter, max_delay)
