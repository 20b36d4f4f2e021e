"""
Distinguished-club counts and the year-end projection.

The projection assumes the clubs that are distinguished now earned it at a
steady rate over the months elapsed in the program year::

    projected = floor(current * 12 / program_month), capped at total clubs
"""

from __future__ import annotations

from typing import Any

from perfspine.snapshots.clubs import ClubRecord, DistinguishedLevel

MONTHS_IN_PROGRAM_YEAR = 12


def distinguished_counts(records: list[ClubRecord]) -> dict[str, int]:
    counts = {level.value: 0 for level in DistinguishedLevel}
    for record in records:
        level = record.distinguished_level
        if level is not None:
            counts[level.value] += 1
    counts["total"] = sum(counts.values())
    return counts


def project_distinguished(current: int, program_month: int, total_clubs: int) -> int:
    if program_month <= 0:
        return current
    projected = (current * MONTHS_IN_PROGRAM_YEAR) // program_month
    return min(projected, total_clubs)


def compute_distinguished(records: list[ClubRecord], program_month: int) -> dict[str, Any]:
    counts = distinguished_counts(records)
    total_clubs = len(records)
    projected = project_distinguished(counts["total"], program_month, total_clubs)
    close_to = sorted(
        (
            r
            for r in records
            if not r.is_distinguished and r.csp_submitted and r.goals_met >= 3
        ),
        key=lambda r: (-r.goals_met, r.club_number),
    )
    return {
        "counts": counts,
        "totalClubs": total_clubs,
        "percentDistinguished": round(counts["total"] / total_clubs * 100, 1) if total_clubs else 0.0,
        "projection": {
            "programMonth": program_month,
            "projectedDistinguished": projected,
            "projectedPercent": round(projected / total_clubs * 100, 1) if total_clubs else 0.0,
        },
        "closeToDistinguished": [
            {"clubId": r.club_number, "clubName": r.club_name, "goalsMet": r.goals_met}
            for r in close_to
        ],
    }


__all__ = [
    "distinguished_counts",
    "project_distinguished",
    "compute_distinguished",
]
