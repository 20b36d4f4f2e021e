"""Comparison of a snapshot with the same calendar day one year earlier."""

from __future__ import annotations

from typing import Any

from perfspine.core.program_year import previous_year_date
from perfspine.snapshots.clubs import club_records, parse_int
from perfspine.snapshots.models import UnitSnapshot

INSUFFICIENT_HISTORY = "insufficient historical data"


def _metrics(snapshot: UnitSnapshot) -> dict[str, int]:
    records = club_records(snapshot.clubs)
    totals = snapshot.totals
    if "totalMembership" in totals:
        membership = parse_int(totals["totalMembership"])
    else:
        membership = sum(r.membership for r in records)
    return {
        "membership": membership,
        "payments": sum(r.payments for r in records),
        "totalClubs": len(records),
        "distinguishedClubs": sum(1 for r in records if r.is_distinguished),
        "dcpGoals": sum(r.goals_met for r in records),
    }


def compare(current: int, previous: int) -> dict[str, Any]:
    change = current - previous
    return {
        "current": current,
        "previous": previous,
        "change": change,
        "percentageChange": round(change / previous * 100, 2) if previous else None,
    }


def compute_year_over_year(current: UnitSnapshot, previous: UnitSnapshot | None) -> dict[str, Any]:
    previous_date = previous_year_date(current.snapshot_date)
    if previous is None:
        return {
            "currentDate": current.snapshot_date,
            "previousDate": previous_date,
            "dataAvailable": False,
            "message": INSUFFICIENT_HISTORY,
        }

    now, then = _metrics(current), _metrics(previous)
    return {
        "currentDate": current.snapshot_date,
        "previousDate": previous.snapshot_date,
        "dataAvailable": True,
        "metrics": {name: compare(now[name], then[name]) for name in now},
    }


__all__ = ["INSUFFICIENT_HISTORY", "compare", "compute_year_over_year"]
