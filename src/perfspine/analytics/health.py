"""Club health classification: ``clubhealth`` and ``vulnerable-clubs`` artifacts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from perfspine.snapshots.clubs import ClubRecord, HealthStatus


@dataclass
class ClubHealthEntry:
    club_id: str
    club_name: str
    division: str
    area: str
    status: HealthStatus
    health_score: float
    membership: int
    membership_base: int
    net_growth: int
    goals_met: int
    payments: int
    csp_submitted: bool
    risk_factors: list[str] = field(default_factory=list)

    @classmethod
    def assess(cls, record: ClubRecord, program_month: int) -> ClubHealthEntry:
        status, risks = record.assess(program_month)
        return cls(
            club_id=record.club_number,
            club_name=record.club_name,
            division=record.division,
            area=record.area,
            status=status,
            health_score=record.health_score,
            membership=record.membership,
            membership_base=record.membership_base,
            net_growth=record.net_growth,
            goals_met=record.goals_met,
            payments=record.payments,
            csp_submitted=record.csp_submitted,
            risk_factors=risks,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "clubId": self.club_id,
            "clubName": self.club_name,
            "division": self.division,
            "area": self.area,
            "status": self.status.value,
            "healthScore": self.health_score,
            "membership": self.membership,
            "membershipBase": self.membership_base,
            "netGrowth": self.net_growth,
            "goalsMet": self.goals_met,
            "payments": self.payments,
            "cspSubmitted": self.csp_submitted,
            "riskFactors": self.risk_factors,
        }


def assess_clubs(records: list[ClubRecord], program_month: int) -> list[ClubHealthEntry]:
    return [ClubHealthEntry.assess(r, program_month) for r in records]


def health_counts(entries: list[ClubHealthEntry]) -> dict[str, int]:
    counts = {status.value: 0 for status in HealthStatus}
    for entry in entries:
        counts[entry.status.value] += 1
    return {
        "total": len(entries),
        "thriving": counts[HealthStatus.THRIVING.value],
        "vulnerable": counts[HealthStatus.VULNERABLE.value],
        "interventionRequired": counts[HealthStatus.INTERVENTION_REQUIRED.value],
    }


def compute_club_health(entries: list[ClubHealthEntry], program_month: int) -> dict[str, Any]:
    scores = [e.health_score for e in entries]
    return {
        "programMonth": program_month,
        "counts": health_counts(entries),
        "averageHealthScore": round(sum(scores) / len(scores), 3) if scores else 0.0,
        "clubs": [e.to_dict() for e in entries],
    }


def compute_vulnerable_clubs(entries: list[ClubHealthEntry]) -> dict[str, Any]:
    """Clubs that are not thriving, lowest membership first within each group."""
    def ordered(status: HealthStatus) -> list[dict[str, Any]]:
        subset = [e for e in entries if e.status == status]
        subset.sort(key=lambda e: (e.membership, e.club_id))
        return [e.to_dict() for e in subset]

    vulnerable = ordered(HealthStatus.VULNERABLE)
    intervention = ordered(HealthStatus.INTERVENTION_REQUIRED)
    return {
        "totalVulnerable": len(vulnerable),
        "totalInterventionRequired": len(intervention),
        "vulnerableClubs": vulnerable,
        "interventionRequiredClubs": intervention,
    }


__all__ = [
    "ClubHealthEntry",
    "assess_clubs",
    "health_counts",
    "compute_club_health",
    "compute_vulnerable_clubs",
]
