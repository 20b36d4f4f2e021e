"""
UTC timestamp helpers (stdlib-only).

Every ``createdAt`` / ``computedAt`` / ``lastUpdated`` field in the cache is
an ISO 8601 UTC string produced by :func:`utc_now_iso`. Dates (snapshot
keys, program-year bounds) are plain ``YYYY-MM-DD`` strings; they are
zero-padded, so string comparison is chronological comparison.
"""

import re
import time
from datetime import UTC, date, datetime

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to datetime."""
    if s is None:
        return None
    return datetime.fromisoformat(s)


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return utc_now().isoformat()


def today_iso() -> str:
    """Current UTC calendar date as ``YYYY-MM-DD``."""
    return utc_now().date().isoformat()


def parse_iso_date(value: str) -> date | None:
    """Parse a strict ``YYYY-MM-DD`` string, returning None when invalid."""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def is_iso_date(value: str) -> bool:
    """True when ``value`` is a real calendar date in ``YYYY-MM-DD`` form."""
    return parse_iso_date(value) is not None


class _Timer:
    """Minimal stopwatch for timing operations."""

    __slots__ = ("_start",)

    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._start) * 1000)


def start_timer() -> _Timer:
    """Return a lightweight timer.  Use ``timer.elapsed_ms`` when done."""
    return _Timer()


__all__ = [
    "DATE_PATTERN",
    "utc_now",
    "utc_now_iso",
    "today_iso",
    "to_iso8601",
    "from_iso8601",
    "parse_iso_date",
    "is_iso_date",
    "start_timer",
]
