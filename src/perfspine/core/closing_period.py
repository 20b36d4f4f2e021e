"""
Closing-period date resolution.

During the first days of a month the dashboard keeps serving the *previous*
month's figures while they are being finalized. Data requested on
2025-01-05 may therefore describe December 2024, and must be filed under
2024-12-31 so that collection and analytics agree on where December's
truth lives.

The collector records what it saw in ``raw-csv/{date}/metadata.json``::

    {"date": "2025-01-05", "isClosingPeriod": true, "dataMonth": "2024-12"}

and :func:`detect_closing_period` turns that into a :class:`ClosingPeriodInfo`:

    ┌───────────────────────────┬──────────────┬──────────────┬─────────┐
    │ metadata                  │ collection   │ snapshot     │ closing │
    ├───────────────────────────┼──────────────┼──────────────┼─────────┤
    │ None / {}                 │ 2025-01-05   │ 2025-01-05   │ False   │
    │ isClosingPeriod: false    │ 2025-01-05   │ 2025-01-05   │ False   │
    │ true, dataMonth "2024-12" │ 2025-01-05   │ 2024-12-31   │ True    │
    │ true, dataMonth "12"      │ 2025-01-05   │ 2024-12-31   │ True    │
    │ true, dataMonth "garbage" │ 2025-01-05   │ 2025-01-05   │ False   │
    └───────────────────────────┴──────────────┴──────────────┴─────────┘

Resolution never raises. Anything unparseable falls back to the
non-closing result.

Examples:
    >>> info = detect_closing_period("2025-01-05", {"isClosingPeriod": True, "dataMonth": "2024-12"})
    >>> info.snapshot_date, info.collection_date
    ('2024-12-31', '2025-01-05')
    >>> parse_data_month("12", 2025, 1)
    (2024, 12)
    >>> get_last_day_of_month(2024, 2)
    29
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from perfspine.core.logging import get_logger
from perfspine.core.timestamps import parse_iso_date

logger = get_logger(__name__)

_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{2})$")
_BARE_MONTH = re.compile(r"^(\d{1,2})$")

_DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


@dataclass(frozen=True, slots=True)
class ClosingPeriodInfo:
    """Resolved date mapping for one requested date.

    Attributes:
        is_closing_period: True when the data describes an earlier month
        data_month: ``YYYY-MM`` of the month the data describes
        collection_date: The date the data was requested/collected
        snapshot_date: Where the data is filed in the cache
        logical_date: Always equal to ``snapshot_date``
    """

    is_closing_period: bool
    data_month: str
    collection_date: str
    snapshot_date: str
    logical_date: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def is_leap_year(year: int) -> bool:
    """Gregorian rule: divisible by 4, except centuries not divisible by 400."""
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def get_last_day_of_month(year: int, month: int) -> int:
    """Number of days in ``month`` of ``year``.

    Raises:
        ValueError: If month is outside 1..12.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    if month == 2 and is_leap_year(year):
        return 29
    return _DAYS_IN_MONTH[month - 1]


def parse_data_month(raw: Any, ref_year: int, ref_month: int) -> tuple[int, int] | None:
    """Parse a ``dataMonth`` value into ``(year, month)``.

    Accepts ``YYYY-MM`` or a bare ``MM``. A bare month greater than the
    reference month belongs to the previous year (December data collected
    in January).

    Returns:
        ``(year, month)``, or None when ``raw`` is not a valid month.
    """
    if not isinstance(raw, str):
        return None
    value = raw.strip()

    match = _YEAR_MONTH.match(value)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        return (year, month) if 1 <= month <= 12 else None

    match = _BARE_MONTH.match(value)
    if match:
        month = int(match.group(1))
        if not 1 <= month <= 12:
            return None
        year = ref_year - 1 if month > ref_month else ref_year
        return year, month

    return None


def _non_closing(requested_date: str) -> ClosingPeriodInfo:
    return ClosingPeriodInfo(
        is_closing_period=False,
        data_month=requested_date[:7],
        collection_date=requested_date,
        snapshot_date=requested_date,
        logical_date=requested_date,
    )


def detect_closing_period(
    requested_date: str, metadata: Mapping[str, Any] | None
) -> ClosingPeriodInfo:
    """Resolve the canonical snapshot date for ``requested_date``.

    Args:
        requested_date: ``YYYY-MM-DD`` date the data was requested for
        metadata: Raw cache metadata (``isClosingPeriod``, ``dataMonth``), or None

    Returns:
        ClosingPeriodInfo. Never raises.
    """
    if not metadata or metadata.get("isClosingPeriod") is not True:
        return _non_closing(requested_date)

    raw_month = metadata.get("dataMonth")
    if not raw_month:
        return _non_closing(requested_date)

    requested = parse_iso_date(requested_date)
    if requested is None:
        logger.warning("closing_period_invalid_requested_date", requested_date=requested_date)
        return _non_closing(requested_date)

    parsed = parse_data_month(raw_month, requested.year, requested.month)
    if parsed is None:
        logger.warning(
            "closing_period_invalid_data_month",
            requested_date=requested_date,
            data_month=raw_month,
        )
        return _non_closing(requested_date)

    year, month = parsed
    snapshot_date = f"{year:04d}-{month:02d}-{get_last_day_of_month(year, month):02d}"
    return ClosingPeriodInfo(
        is_closing_period=True,
        data_month=f"{year:04d}-{month:02d}",
        collection_date=requested_date,
        snapshot_date=snapshot_date,
        logical_date=snapshot_date,
    )


__all__ = [
    "ClosingPeriodInfo",
    "detect_closing_period",
    "get_last_day_of_month",
    "parse_data_month",
    "is_leap_year",
]
