"""
Membership and payment trends.

History comes from the unit's time-series partition for the snapshot's
program year; the point for the snapshot itself is built fresh so the
trend is correct even before the time-series append has run.
"""

from __future__ import annotations

from typing import Any

from perfspine.core.program_year import program_year_bounds, program_year_for
from perfspine.timeseries.models import TimeSeriesDataPoint
from perfspine.timeseries.writer import TimeSeriesIndexWriter

# Relative change below this counts as flat
TREND_THRESHOLD = 0.02


def trend_direction(start: int, end: int, threshold: float = TREND_THRESHOLD) -> str:
    if start <= 0:
        return "up" if end > 0 else "flat"
    change = (end - start) / start
    if change > threshold:
        return "up"
    if change < -threshold:
        return "down"
    return "flat"


def merge_current(history: list[TimeSeriesDataPoint], current: TimeSeriesDataPoint) -> list[TimeSeriesDataPoint]:
    """History up to and including ``current``, with ``current`` replacing any same-date point."""
    points = [p for p in history if p.date < current.date]
    points.append(current)
    return points


def load_history(
    writer: TimeSeriesIndexWriter, unit_id: str, snapshot_date: str
) -> list[TimeSeriesDataPoint]:
    start, _ = program_year_bounds(program_year_for(snapshot_date))
    return writer.read_range(unit_id, start, snapshot_date)


def compute_membership(points: list[TimeSeriesDataPoint], membership_base: int) -> dict[str, Any]:
    if not points:
        return {
            "totalMembership": 0,
            "membershipBase": membership_base,
            "membershipChange": 0,
            "trendDirection": "flat",
            "paymentsDirection": "flat",
            "membershipTrend": [],
            "paymentsTrend": [],
            "peak": 0,
            "low": 0,
        }

    first, last = points[0], points[-1]
    # Against the July base when known, else against the first observation
    baseline = membership_base if membership_base > 0 else first.membership
    return {
        "totalMembership": last.membership,
        "membershipBase": membership_base,
        "membershipChange": last.membership - baseline,
        "trendDirection": trend_direction(first.membership, last.membership),
        "paymentsDirection": trend_direction(first.payments, last.payments),
        "membershipTrend": [{"date": p.date, "count": p.membership} for p in points],
        "paymentsTrend": [{"date": p.date, "payments": p.payments} for p in points],
        "peak": max(p.membership for p in points),
        "low": min(p.membership for p in points),
    }


__all__ = [
    "TREND_THRESHOLD",
    "trend_direction",
    "merge_current",
    "load_history",
    "compute_membership",
]
