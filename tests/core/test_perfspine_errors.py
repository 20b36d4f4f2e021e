"""Tests for the perfspine error hierarchy."""

import pytest

from perfspine.core.errors import (
    CircuitOpenError,
    ConfigError,
    ErrorCategory,
    NetworkError,
    ParseError,
    PerfSpineError,
    RateLimitError,
    SourceError,
    SourceNotFoundError,
    StorageError,
    TransientError,
    ValidationError,
    categorize_error,
    is_retryable,
)


class TestPerfSpineError:
    """Tests for the base error."""

    def test_defaults(self):
        err = PerfSpineError("boom")
        assert err.message == "boom"
        assert err.category == ErrorCategory.INTERNAL
        assert err.retryable is False
        assert str(err) == "boom"

    def test_with_context_sets_known_and_extra_fields(self):
        err = StorageError("nope").with_context(unit_id="42", path="/x", attempt=3)
        assert err.context.unit_id == "42"
        assert err.context.path == "/x"
        assert err.context.metadata == {"attempt": 3}

    def test_to_dict(self):
        cause = OSError("disk")
        err = StorageError("write failed", cause=cause).with_context(date="2025-01-05")
        data = err.to_dict()
        assert data["error_type"] == "StorageError"
        assert data["category"] == "STORAGE"
        assert data["retryable"] is False
        assert data["context"] == {"date": "2025-01-05"}
        assert data["cause"] == "disk"
        assert err.__cause__ is cause

    def test_explicit_retryable_overrides_default(self):
        assert NetworkError("x", retryable=False).retryable is False


class TestSubclasses:
    """Category and retry defaults of each subclass."""

    @pytest.mark.parametrize(
        "cls,category,retryable",
        [
            (NetworkError, ErrorCategory.NETWORK, True),
            (TransientError, ErrorCategory.NETWORK, True),
            (CircuitOpenError, ErrorCategory.RESOURCE, False),
            (SourceNotFoundError, ErrorCategory.SOURCE, False),
            (ParseError, ErrorCategory.PARSE, False),
            (ValidationError, ErrorCategory.VALIDATION, False),
            (ConfigError, ErrorCategory.CONFIG, False),
            (StorageError, ErrorCategory.STORAGE, False),
        ],
    )
    def test_defaults(self, cls, category, retryable):
        err = cls("msg")
        assert err.category == category
        assert err.retryable is retryable

    def test_rate_limit_has_retry_after(self):
        err = RateLimitError()
        assert err.retry_after == 60
        assert err.to_dict()["retry_after"] == 60

    def test_parse_error_is_a_source_error(self):
        assert isinstance(ParseError("x"), SourceError)


class TestIsRetryable:
    """Tests for is_retryable / categorize_error."""

    def test_perfspine_errors_answer_for_themselves(self):
        assert is_retryable(NetworkError("x")) is True
        assert is_retryable(ValidationError("x")) is False

    def test_foreign_errors_are_retryable(self):
        assert is_retryable(ConnectionError()) is True
        assert is_retryable(RuntimeError("flaky")) is True

    def test_programming_errors_are_not_retryable(self):
        assert is_retryable(TypeError()) is False
        assert is_retryable(AttributeError()) is False

    def test_categorize(self):
        assert categorize_error(TimeoutError()) == ErrorCategory.NETWORK
        assert categorize_error(PermissionError()) == ErrorCategory.STORAGE
        assert categorize_error(ValueError()) == ErrorCategory.VALIDATION
        assert categorize_error(KeyError()) == ErrorCategory.INTERNAL
