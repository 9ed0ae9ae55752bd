"""Tests for exceptions.py: the exception hierarchy and retry helpers."""

import pytest

from bookwise.shared.exceptions import (
    APIError,
    BookwiseError,
    ConfigurationError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
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
    get_retry_delay,
    is_retryable_error,
)


class TestBookwiseError:
    def test_basic_creation(self):
        e = BookwiseError("test error")
        assert str(e) == "test error"
        assert e.severity == ErrorSeverity.ERROR
        assert e.category == ErrorCategory.UPSTREAM
        assert e.retryable is False

    def test_to_dict(self):
        ctx = ErrorContext(operation="search", service="gutendex", suggestion="s", retry_after=5.0)
        e = BookwiseError("fail", context=ctx, retryable=True)
        d = e.to_dict()
        assert d["error"] == "fail"
        assert d["type"] == "BookwiseError"
        assert d["operation"] == "search"
        assert d["service"] == "gutendex"
        assert d["suggestion"] == "s"
        assert d["retry_after_seconds"] == 5.0
        assert d["retryable"] is True

    def test_to_dict_minimal(self):
        d = BookwiseError("fail").to_dict()
        assert "service" not in d
        assert "causes" not in d

    def test_to_user_message(self):
        ctx = ErrorContext(suggestion="fix it", retry_after=3.0)
        msg = BookwiseError("fail", context=ctx, retryable=True).to_user_message()
        assert msg.splitlines() == ["Error: fail", "Suggestion: fix it", "Retry after 3.0 seconds"]


class TestValidationErrors:
    def test_invalid_query(self):
        e = InvalidQueryError("", "query cannot be empty")
        assert isinstance(e, InvalidInputError)
        assert str(e) == "Invalid query: query cannot be empty"
        assert e.severity == ErrorSeverity.WARNING
        assert e.category == ErrorCategory.VALIDATION
        assert e.retryable is False
        assert e.context.suggestion

    def test_invalid_parameter(self):
        e = InvalidParameterError("style", "poetic", "one of concise, detailed")
        assert e.param_name == "style"
        assert e.value == "poetic"
        assert "'style'" in str(e)
        assert "'poetic'" in str(e)
        assert e.context.suggestion == "Expected one of concise, detailed"


class TestDataErrors:
    def test_not_found_with_id(self):
        e = NotFoundError("Book", "gutenberg:0")
        assert isinstance(e, DataError)
        assert str(e) == "Book not found: gutenberg:0"
        assert e.resource == "Book"
        assert e.identifier == "gutenberg:0"

    def test_not_found_without_id(self):
        assert str(NotFoundError("Summary")) == "Summary not found"

    def test_parse_error(self):
        assert str(ParseError("bad json", source="openlibrary")) == "Parse error (openlibrary): bad json"
        assert str(ParseError("bad json")) == "Parse error: bad json"


class TestUpstreamErrors:
    def test_api_error_retryable_by_default(self):
        assert APIError("fail").retryable is True

    def test_upstream_error_fields(self):
        e = UpstreamError("boom", service="huggingface", status_code=502)
        assert e.service == "huggingface"
        assert e.status_code == 502
        assert e.context.service == "huggingface"

    def test_rate_limit(self):
        e = RateLimitError(retry_after=7.0, service="googlebooks")
        assert e.status_code == 429
        assert e.context.retry_after == 7.0
        assert e.severity == ErrorSeverity.TRANSIENT

    def test_network_error_category(self):
        assert NetworkError().category == ErrorCategory.NETWORK

    def test_service_unavailable_message(self):
        e = ServiceUnavailableError("HTTP 503", service="gutendex")
        assert str(e) == "gutendex: HTTP 503"
        assert e.status_code == 503

    def test_partial_source_failure(self):
        cause = TimeoutError()
        e = PartialSourceFailure("openlibrary", cause)
        assert str(e) == "openlibrary: TimeoutError"
        assert e.source == "openlibrary"
        assert e.cause is cause
        assert e.context.related_errors == (cause,)
        assert e.to_dict()["causes"] == [""]

    def test_upstream_timeout(self):
        e = UpstreamTimeoutError("speech synthesis", 120.0)
        assert str(e) == "speech synthesis timed out after 120s"
        assert e.retryable is True
        assert e.context.operation == "speech synthesis"

    def test_configuration_error(self):
        e = ConfigurationError("missing key")
        assert e.severity == ErrorSeverity.CRITICAL
        assert e.category == ErrorCategory.CONFIGURATION


class TestRetryHelpers:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (RateLimitError(), True),
            (InvalidQueryError("", "empty"), False),
            (NotFoundError("Book"), False),
            (RuntimeError("Model is currently loading"), True),
            (RuntimeError("connection reset by peer"), True),
            (ValueError("bad value"), False),
        ],
    )
    def test_is_retryable(self, error, expected):
        assert is_retryable_error(error) is expected

    def test_delay_grows_exponentially(self):
        first = get_retry_delay(RuntimeError(), 0)
        third = get_retry_delay(RuntimeError(), 2)
        assert 1.0 <= first <= 1.1
        assert 4.0 <= third <= 4.4

    def test_delay_uses_retry_after(self):
        delay = get_retry_delay(RateLimitError(retry_after=5.0), 0)
        assert 5.0 <= delay <= 5.5

    def test_delay_is_capped(self):
        assert get_retry_delay(RuntimeError(), 10) == 30.0

    def test_delay_from_custom_base(self):
        assert get_retry_delay(RuntimeError(), 0, base_delay=0.0) == 0.0
        assert 2.0 <= get_retry_delay(RuntimeError(), 2, base_delay=0.5) <= 2.2

    def test_custom_cap(self):
        assert get_retry_delay(RateLimitError(retry_after=60.0), 0, max_delay=10.0) == 10.0
