"""
Shared building blocks for Bookwise.

Provides:
- Unified exception hierarchy
- Timeout guards and circuit breaker
- Runtime settings
"""

from .async_utils import (
    CircuitBreaker,
    run_with_timeout,
)
from .exceptions import (
    # Upstream errors
    APIError,
    # Base
    BookwiseError,
    # Configuration errors
    ConfigurationError,
    # Data errors
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    # Validation errors
    InvalidInputError,
    InvalidParameterError,
    InvalidQueryError,
    NetworkError,
    NotFoundError,
    ParseError,
    PartialSourceFailure,
    RateLimitError,
    ServiceUnavailableError,
    UpstreamError,
    UpstreamTimeoutError,
    # Helpers
    get_retry_delay,
    is_retryable_error,
)
from .settings import (
    SUMMARY_STYLES,
    SUPPORTED_LANGUAGES,
    AudioSettings,
    CacheSettings,
    SearchSettings,
    ServiceSettings,
    Settings,
    SummarySettings,
)

__all__ = [
    # Async
    "CircuitBreaker",
    "run_with_timeout",
    # Exceptions
    "APIError",
    "BookwiseError",
    "ConfigurationError",
    "DataError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "InvalidInputError",
    "InvalidParameterError",
    "InvalidQueryError",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "PartialSourceFailure",
    "RateLimitError",
    "ServiceUnavailableError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "get_retry_delay",
    "is_retryable_error",
    # Settings
    "SUMMARY_STYLES",
    "SUPPORTED_LANGUAGES",
    "AudioSettings",
    "CacheSettings",
    "SearchSettings",
    "ServiceSettings",
    "Settings",
    "SummarySettings",
]
