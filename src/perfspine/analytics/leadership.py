"""
Division and area leadership effectiveness.

Each group of clubs gets three 0-100 component scores:

    health   mean club health score x 100
    growth   share of clubs with positive net growth x 100
    dcp      mean goals met / 10 goals x 100 (capped at 100)

and an overall score weighted 40% health, 30% growth, 30% DCP. Groups are
ranked by overall score (ties by id); a group scoring at least
``BEST_PRACTICE_SCORE`` is flagged as a best practice.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from perfspine.snapshots.clubs import ClubRecord

HEALTH_WEIGHT = 0.4
GROWTH_WEIGHT = 0.3
DCP_WEIGHT = 0.3
DCP_GOALS = 10
BEST_PRACTICE_SCORE = 75.0


@dataclass
class EffectivenessScore:
    group_id: str
    club_count: int
    membership: int
    health_score: float
    growth_score: float
    dcp_score: float
    overall_score: float
    rank: int = 0
    is_best_practice: bool = False

    def to_dict(self, id_field: str) -> dict[str, Any]:
        return {
            id_field: self.group_id,
            "clubCount": self.club_count,
            "membership": self.membership,
            "healthScore": self.health_score,
            "growthScore": self.growth_score,
            "dcpScore": self.dcp_score,
            "overallScore": self.overall_score,
            "rank": self.rank,
            "isBestPractice": self.is_best_practice,
        }


def score_group(group_id: str, records: list[ClubRecord]) -> EffectivenessScore:
    n = len(records)
    health = sum(r.health_score for r in records) / n * 100 if n else 0.0
    growth = sum(1 for r in records if r.net_growth > 0) / n * 100 if n else 0.0
    dcp = min(100.0, sum(r.goals_met for r in records) / n / DCP_GOALS * 100) if n else 0.0
    overall = HEALTH_WEIGHT * health + GROWTH_WEIGHT * growth + DCP_WEIGHT * dcp
    return EffectivenessScore(
        group_id=group_id,
        club_count=n,
        membership=sum(r.membership for r in records),
        health_score=round(health, 1),
        growth_score=round(growth, 1),
        dcp_score=round(dcp, 1),
        overall_score=round(overall, 1),
        is_best_practice=overall >= BEST_PRACTICE_SCORE,
    )


def rank_groups(
    records: list[ClubRecord], key: Callable[[ClubRecord], str]
) -> list[EffectivenessScore]:
    groups: dict[str, list[ClubRecord]] = defaultdict(list)
    for record in records:
        group_id = key(record)
        if group_id:
            groups[group_id].append(record)

    scores = [score_group(group_id, members) for group_id, members in groups.items()]
    scores.sort(key=lambda s: (-s.overall_score, s.group_id))
    for position, score in enumerate(scores, start=1):
        score.rank = position
    return scores


def compute_leadership(records: list[ClubRecord]) -> dict[str, Any]:
    divisions = rank_groups(records, lambda r: r.division)
    areas = rank_groups(records, lambda r: f"{r.division}{r.area}" if r.area else "")
    return {
        "divisions": [s.to_dict("divisionId") for s in divisions],
        "areas": [s.to_dict("areaId") for s in areas],
        "bestPracticeDivisions": [s.group_id for s in divisions if s.is_best_practice],
        "weights": {"health": HEALTH_WEIGHT, "growth": GROWTH_WEIGHT, "dcp": DCP_WEIGHT},
    }


__all__ = [
    "EffectivenessScore",
    "score_group",
    "rank_groups",
    "compute_leadership",
]
