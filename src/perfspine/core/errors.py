"""
Structured error types for perfspine.

Every failure in the pipeline falls into one of a small number of buckets,
and each bucket has a different handling policy:

    ┌──────────────────────┬───────────────────────────┬─────────────────────┐
    │ Bucket               │ Exception                 │ Handling            │
    ├──────────────────────┼───────────────────────────┼─────────────────────┤
    │ transient fetch      │ TransientError and kids   │ retried             │
    │ resource exhausted   │ CircuitOpenError          │ fail fast, per run  │
    │ missing input        │ SourceNotFoundError       │ fatal for the run   │
    │ malformed input      │ ParseError                │ fatal for the unit  │
    │ caller mistake       │ ValidationError           │ raised, not retried │
    │ bad configuration    │ ConfigError               │ fatal for the run   │
    │ disk failure         │ StorageError              │ fatal for the unit  │
    └──────────────────────┴───────────────────────────┴─────────────────────┘

Degraded-but-usable inputs (missing rankings, missing prior-year snapshot,
unreadable closing-period metadata) never raise. They are logged as
warnings by the component that tolerates them.

Usage:
    from perfspine.core.errors import NetworkError, SourceNotFoundError

    try:
        text = await fetcher.fetch_report(unit_id, "club-performance", date)
    except TimeoutError as e:
        raise NetworkError("dashboard timed out", cause=e).with_context(
            unit_id=unit_id, date=date
        )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for log routing and retry decisions."""

    NETWORK = "NETWORK"           # Dashboard timeouts, connection resets
    RESOURCE = "RESOURCE"         # Circuit breaker open
    SOURCE = "SOURCE"             # Raw input or snapshot missing
    PARSE = "PARSE"               # Malformed CSV / JSON
    VALIDATION = "VALIDATION"     # Bad unit id, bad date
    CONFIG = "CONFIG"             # Unit configuration problems
    STORAGE = "STORAGE"           # Disk / rename failures
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error for logging.

    Attributes:
        unit_id: Collection target the error relates to
        date: Requested or resolved snapshot date
        operation: Name of the operation (``transform``, ``fetch``, ...)
        path: Filesystem path involved, if any
        metadata: Additional key-value pairs
    """

    unit_id: str | None = None
    date: str | None = None
    operation: str | None = None
    path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["unit_id", "date", "operation", "path"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class PerfSpineError(Exception):
    """
    Base exception for all perfspine errors.

    Carries a category, an explicit retry flag, an optional retry-after hint
    and an :class:`ErrorContext`. Subclasses set ``default_category`` and
    ``default_retryable`` so call sites rarely pass them explicitly.

    Example:
        >>> err = PerfSpineError("boom", category=ErrorCategory.STORAGE)
        >>> err.to_dict()["category"]
        'STORAGE'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PerfSpineError:
        """
        Add context to this error (fluent API).

        Unknown keys land in ``context.metadata``.
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (retried)
# =============================================================================


class TransientError(PerfSpineError):
    """Temporary failure that may succeed on retry."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Dashboard could not be reached or returned a server error."""


class RateLimitError(TransientError):
    """Dashboard asked us to slow down."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: int = 60,
        **kwargs: Any,
    ):
        super().__init__(message, retry_after=retry_after, **kwargs)


# =============================================================================
# RESOURCE ERRORS
# =============================================================================


class CircuitOpenError(PerfSpineError):
    """Raised when the circuit breaker rejects a call without invoking it."""

    default_category = ErrorCategory.RESOURCE
    default_retryable = False

    def __init__(
        self,
        message: str = "Circuit breaker is open",
        *,
        next_retry_time: datetime | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.next_retry_time = next_retry_time


# =============================================================================
# SOURCE ERRORS
# =============================================================================


class SourceError(PerfSpineError):
    """Error reading input data."""

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class SourceNotFoundError(SourceError):
    """Raw CSV directory or snapshot file does not exist."""


class ParseError(SourceError):
    """Input exists but cannot be parsed."""

    default_category = ErrorCategory.PARSE


# =============================================================================
# VALIDATION / CONFIG / STORAGE
# =============================================================================


class ValidationError(PerfSpineError):
    """Caller supplied a malformed unit id or date. Never retryable."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class ConfigError(PerfSpineError):
    """Unit configuration is malformed."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class StorageError(PerfSpineError):
    """Writing to the cache directory failed."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is worth retrying.

    perfspine errors answer for themselves. Foreign exceptions come from the
    external fetcher, whose failure modes we cannot classify, so they are
    treated as transient unless they are programming errors.
    """
    if isinstance(error, PerfSpineError):
        return error.retryable
    return not isinstance(error, (TypeError, AttributeError, NotImplementedError))


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, PerfSpineError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PerfSpineError",
    "TransientError",
    "NetworkError",
    "RateLimitError",
    "CircuitOpenError",
    "SourceError",
    "SourceNotFoundError",
    "ParseError",
    "ValidationError",
    "ConfigError",
    "StorageError",
    "is_retryable",
    "categorize_error",
]
