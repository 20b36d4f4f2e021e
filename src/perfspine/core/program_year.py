"""
Program-year arithmetic.

The organization's year runs July 1 through June 30 and is written
``"2024-2025"``. Time-series partitions, DCP checkpoints and year-over-year
comparisons are all keyed off it.

Examples:
    >>> program_year_for("2024-07-01")
    '2024-2025'
    >>> program_year_for("2025-06-30")
    '2024-2025'
    >>> program_year_bounds("2024-2025")
    ('2024-07-01', '2025-06-30')
    >>> program_month("2024-10-15")
    4
    >>> previous_year_date("2024-02-29")
    '2023-02-28'
"""

from __future__ import annotations

import re
from datetime import date

from perfspine.core.errors import ValidationError
from perfspine.core.timestamps import parse_iso_date

PROGRAM_YEAR_PATTERN = re.compile(r"^(\d{4})-(\d{4})$")
PROGRAM_YEAR_START_MONTH = 7


def _require_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    parsed = parse_iso_date(value)
    if parsed is None:
        raise ValidationError(f"Invalid date format: {value!r} (expected YYYY-MM-DD)")
    return parsed


def program_year_for(value: str | date) -> str:
    """Program year label containing ``value``."""
    d = _require_date(value)
    if d.month >= PROGRAM_YEAR_START_MONTH:
        return f"{d.year}-{d.year + 1}"
    return f"{d.year - 1}-{d.year}"


def program_year_bounds(program_year: str) -> tuple[str, str]:
    """(start, end) dates of a program year label."""
    match = PROGRAM_YEAR_PATTERN.match(program_year)
    if not match:
        raise ValidationError(f"Invalid program year: {program_year!r} (expected YYYY-YYYY)")
    start_year, end_year = int(match.group(1)), int(match.group(2))
    if end_year != start_year + 1:
        raise ValidationError(f"Invalid program year: {program_year!r} (years must be consecutive)")
    return f"{start_year}-07-01", f"{end_year}-06-30"


def is_program_year(value: str) -> bool:
    """True for well-formed ``YYYY-YYYY`` labels."""
    match = PROGRAM_YEAR_PATTERN.match(value)
    return bool(match) and int(match.group(2)) == int(match.group(1)) + 1


def program_month(value: str | date) -> int:
    """1-based month within the program year (July = 1, June = 12)."""
    d = _require_date(value)
    return (d.month - PROGRAM_YEAR_START_MONTH) % 12 + 1


def previous_year_date(value: str | date) -> str:
    """Same calendar day one year earlier (Feb 29 maps to Feb 28)."""
    d = _require_date(value)
    try:
        return d.replace(year=d.year - 1).isoformat()
    except ValueError:
        return d.replace(year=d.year - 1, day=28).isoformat()


__all__ = [
    "PROGRAM_YEAR_PATTERN",
    "program_year_for",
    "program_year_bounds",
    "is_program_year",
    "program_month",
    "previous_year_date",
]
