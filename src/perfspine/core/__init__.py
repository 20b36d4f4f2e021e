"""
Core primitives shared by every perfspine stage.

Errors, structured logging, settings, hashing, atomic JSON storage and the
date arithmetic (program years, closing periods) that decides where a
given month's data lives in the cache.
"""

from perfspine.core.closing_period import (
    ClosingPeriodInfo,
    detect_closing_period,
    get_last_day_of_month,
    parse_data_month,
)
from perfspine.core.errors import (
    CircuitOpenError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    NetworkError,
    ParseError,
    PerfSpineError,
    SourceError,
    SourceNotFoundError,
    StorageError,
    TransientError,
    ValidationError,
    is_retryable,
)
from perfspine.core.hashing import checksum_payload, sha256_bytes, sha256_file
from perfspine.core.program_year import program_year_bounds, program_year_for
from perfspine.core.storage import read_json, write_bytes_atomic, write_json_atomic

__all__ = [
    # closing period
    "ClosingPeriodInfo",
    "detect_closing_period",
    "get_last_day_of_month",
    "parse_data_month",
    # errors
    "PerfSpineError",
    "ErrorCategory",
    "ErrorContext",
    "TransientError",
    "NetworkError",
    "CircuitOpenError",
    "SourceError",
    "SourceNotFoundError",
    "ParseError",
    "ValidationError",
    "ConfigError",
    "StorageError",
    "is_retryable",
    # hashing
    "sha256_bytes",
    "sha256_file",
    "checksum_payload",
    # program year
    "program_year_for",
    "program_year_bounds",
    # storage
    "read_json",
    "write_json_atomic",
    "write_bytes_atomic",
]
