"""
Performance targets for the three headline metrics.

    paidClubs            current = total clubs,   target = base + max(1, ceil(base x 2%))
    membershipPayments   current = payments,      target = ceil(membership base x 105%)
    distinguishedClubs   current = distinguished, target = ceil(paid clubs x 50%)

``base`` for paid clubs is the ``Paid Club Base`` column of the unit
performance report when present, else the current club count (the growth
target then measures against today). Each metric carries the unit's
:class:`MetricRankings` for the matching ranked metric.
"""

from __future__ import annotations

import math
from typing import Any

from perfspine.analytics.rankings import MetricRankings, RankedMetric, UnitRankings
from perfspine.snapshots.clubs import parse_int
from perfspine.snapshots.models import UnitSnapshot

MEMBERSHIP_GROWTH = 1.05
DISTINGUISHED_SHARE = 0.5
CLUB_GROWTH_RATE = 0.02
ON_TRACK_PROGRESS = 0.8

PAID_CLUB_BASE_COLUMN = "Paid Club Base"


def membership_target(membership_base: int) -> int:
    return math.ceil(membership_base * MEMBERSHIP_GROWTH)


def distinguished_target(paid_clubs: int) -> int:
    return math.ceil(paid_clubs * DISTINGUISHED_SHARE)


def club_growth_target(base_club_count: int) -> int:
    return max(1, math.ceil(base_club_count * CLUB_GROWTH_RATE))


def _metric(current: int, base: int, target: int, rankings: MetricRankings) -> dict[str, Any]:
    progress = current / target if target > 0 else 0.0
    return {
        "current": current,
        "base": base,
        "target": target,
        "progress": round(progress, 3),
        "projectedAchievement": progress >= ON_TRACK_PROGRESS,
        "rankings": rankings.to_dict(),
    }


def base_club_count(snapshot: UnitSnapshot) -> int:
    rows = snapshot.data.get("unitPerformance") or []
    for row in rows:
        if isinstance(row, dict) and row.get(PAID_CLUB_BASE_COLUMN):
            value = parse_int(row[PAID_CLUB_BASE_COLUMN])
            if value > 0:
                return value
    return parse_int(snapshot.totals.get("totalClubs"))


def compute_targets(snapshot: UnitSnapshot, rankings: UnitRankings | None) -> dict[str, Any]:
    totals = snapshot.totals

    def ranked(metric: RankedMetric) -> MetricRankings:
        if rankings is None:
            return MetricRankings()
        return rankings.for_unit(snapshot.unit_id, metric)

    total_clubs = parse_int(totals.get("totalClubs"))
    paid_clubs = parse_int(totals.get("paidClubs"))
    membership_base = parse_int(totals.get("membershipBase"))
    club_base = base_club_count(snapshot)
    growth = club_growth_target(club_base)

    return {
        "unitId": snapshot.unit_id,
        "membershipTarget": membership_target(membership_base),
        "distinguishedTarget": distinguished_target(paid_clubs),
        "clubGrowthTarget": growth,
        "paidClubs": _metric(total_clubs, club_base, club_base + growth, ranked(RankedMetric.CLUBS)),
        "membershipPayments": _metric(
            parse_int(totals.get("totalPayments")),
            membership_base,
            membership_target(membership_base),
            ranked(RankedMetric.PAYMENTS),
        ),
        "distinguishedClubs": _metric(
            parse_int(totals.get("distinguishedClubs")),
            paid_clubs,
            distinguished_target(paid_clubs),
            ranked(RankedMetric.DISTINGUISHED),
        ),
    }


__all__ = [
    "membership_target",
    "distinguished_target",
    "club_growth_target",
    "base_club_count",
    "compute_targets",
]
