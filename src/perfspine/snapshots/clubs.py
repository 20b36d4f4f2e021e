"""
Typed view over one club row of a unit snapshot.

Snapshot rows keep the dashboard's column names verbatim. :class:`ClubRecord`
reads the handful of columns the analytics need and applies the club-level
business rules (net growth, CSP submission, distinguished status, health
classification) in one place, so the time-series builder and the analytics
modules cannot drift apart.

Health classification::

    membership < 12 and net growth < 3            -> intervention-required
    membership requirement (>= 20 or growth >= 3)
      and DCP checkpoint for the program month
      and CSP submitted                           -> thriving
    otherwise                                     -> vulnerable
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ClubColumn:
    """Dashboard column names used by perfspine."""

    NUMBER = "Club Number"
    NAME = "Club Name"
    DIVISION = "Division"
    AREA = "Area"
    ACTIVE_MEMBERS = "Active Members"
    MEMBERSHIP_BASE = "Mem. Base"
    GOALS_MET = "Goals Met"
    DISTINGUISHED_STATUS = "Club Distinguished Status"
    CSP = "CSP"
    OCT_RENEWALS = "Oct. Ren."
    APR_RENEWALS = "Apr. Ren."
    NEW_MEMBERS = "New Members"


class HealthStatus(str, Enum):
    THRIVING = "thriving"
    VULNERABLE = "vulnerable"
    INTERVENTION_REQUIRED = "intervention-required"


class DistinguishedLevel(str, Enum):
    SMEDLEY = "smedley"
    PRESIDENTS = "presidents"
    SELECT = "select"
    DISTINGUISHED = "distinguished"


INTERVENTION_MEMBERSHIP = 12
THRIVING_MEMBERSHIP = 20
GROWTH_OVERRIDE = 3
DISTINGUISHED_GOALS = 5

# Goals required by program month (July = 1)
DCP_CHECKPOINTS: dict[int, int] = {
    1: 0, 2: 0, 3: 0,    # Jul-Sep
    4: 1, 5: 1,          # Oct-Nov
    6: 2, 7: 2,          # Dec-Jan
    8: 3, 9: 3,          # Feb-Mar
    10: 4, 11: 4,        # Apr-May
    12: 5,               # Jun
}

_CSP_NOT_SUBMITTED = {"no", "false", "0", "not submitted", "n"}


def parse_int(value: Any) -> int:
    """Parse a dashboard number ("1,234", " 12 ", "") to int; blanks are 0."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip().replace(",", "")
    if not text:
        return 0
    try:
        return int(float(text))
    except ValueError:
        return 0


def dcp_checkpoint(program_month: int) -> int:
    """Goals a club should have met by ``program_month``."""
    return DCP_CHECKPOINTS.get(program_month, DISTINGUISHED_GOALS)


@dataclass(frozen=True)
class ClubRecord:
    """Normalized club row."""

    club_number: str
    club_name: str
    division: str
    area: str
    membership: int
    membership_base: int
    goals_met: int
    status_text: str
    csp_submitted: bool
    payments: int

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ClubRecord:
        raw_csp = row.get(ClubColumn.CSP)
        csp_submitted = raw_csp is None or str(raw_csp).strip().lower() not in _CSP_NOT_SUBMITTED
        return cls(
            club_number=str(row.get(ClubColumn.NUMBER, "")).strip(),
            club_name=str(row.get(ClubColumn.NAME, "")).strip(),
            division=str(row.get(ClubColumn.DIVISION, "")).strip(),
            area=str(row.get(ClubColumn.AREA, "")).strip(),
            membership=parse_int(row.get(ClubColumn.ACTIVE_MEMBERS)),
            membership_base=parse_int(row.get(ClubColumn.MEMBERSHIP_BASE)),
            goals_met=parse_int(row.get(ClubColumn.GOALS_MET)),
            status_text=str(row.get(ClubColumn.DISTINGUISHED_STATUS) or "").strip(),
            csp_submitted=csp_submitted,
            payments=(
                parse_int(row.get(ClubColumn.OCT_RENEWALS))
                + parse_int(row.get(ClubColumn.APR_RENEWALS))
                + parse_int(row.get(ClubColumn.NEW_MEMBERS))
            ),
        )

    @property
    def net_growth(self) -> int:
        return self.membership - self.membership_base

    @property
    def meets_membership_requirement(self) -> bool:
        return self.membership >= THRIVING_MEMBERSHIP or self.net_growth >= GROWTH_OVERRIDE

    @property
    def distinguished_level(self) -> DistinguishedLevel | None:
        """Level named by the status text, else the goals-based fallback."""
        if not self.csp_submitted:
            return None
        status = self.status_text.lower()
        if "smedley" in status:
            return DistinguishedLevel.SMEDLEY
        if "president" in status:
            return DistinguishedLevel.PRESIDENTS
        if "select" in status:
            return DistinguishedLevel.SELECT
        if "distinguished" in status:
            return DistinguishedLevel.DISTINGUISHED
        if self.goals_met >= DISTINGUISHED_GOALS and self.meets_membership_requirement:
            return DistinguishedLevel.DISTINGUISHED
        return None

    @property
    def is_distinguished(self) -> bool:
        return self.distinguished_level is not None

    @property
    def health_score(self) -> float:
        if self.membership >= THRIVING_MEMBERSHIP and self.goals_met >= DISTINGUISHED_GOALS:
            return 1.0
        if self.membership >= INTERVENTION_MEMBERSHIP or self.goals_met >= 3:
            return 0.5
        return 0.0

    def assess(self, program_month: int) -> tuple[HealthStatus, list[str]]:
        """Classify the club and list the reasons it is not thriving."""
        if self.membership < INTERVENTION_MEMBERSHIP and self.net_growth < GROWTH_OVERRIDE:
            return HealthStatus.INTERVENTION_REQUIRED, [
                f"Membership below {INTERVENTION_MEMBERSHIP} (critical)",
                f"Net growth since July: {self.net_growth} (need {GROWTH_OVERRIDE}+ to override)",
            ]

        required_goals = dcp_checkpoint(program_month)
        risks: list[str] = []
        if not self.meets_membership_requirement:
            risks.append(
                f"Membership below {THRIVING_MEMBERSHIP} with net growth {self.net_growth}"
            )
        if self.goals_met < required_goals:
            risks.append(
                f"DCP goals {self.goals_met} below checkpoint {required_goals} for program month {program_month}"
            )
        if not self.csp_submitted:
            risks.append("Club Success Plan not submitted")

        if risks:
            return HealthStatus.VULNERABLE, risks
        return HealthStatus.THRIVING, []


def club_records(rows: list[dict[str, Any]]) -> list[ClubRecord]:
    """Normalize club rows, dropping rows without a club number."""
    records = [ClubRecord.from_row(row) for row in rows]
    return [r for r in records if r.club_number]


__all__ = [
    "ClubColumn",
    "ClubRecord",
    "HealthStatus",
    "DistinguishedLevel",
    "DCP_CHECKPOINTS",
    "dcp_checkpoint",
    "club_records",
    "parse_int",
]
