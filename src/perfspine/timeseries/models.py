"""Time-series index records (camelCase on disk)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ClubCounts:
    total: int = 0
    thriving: int = 0
    vulnerable: int = 0
    intervention_required: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "thriving": self.thriving,
            "vulnerable": self.vulnerable,
            "interventionRequired": self.intervention_required,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> ClubCounts:
        payload = payload or {}
        return cls(
            total=int(payload.get("total", 0)),
            thriving=int(payload.get("thriving", 0)),
            vulnerable=int(payload.get("vulnerable", 0)),
            intervention_required=int(payload.get("interventionRequired", 0)),
        )


@dataclass
class TimeSeriesDataPoint:
    """One dated measurement of a unit."""

    date: str
    snapshot_id: str
    membership: int = 0
    payments: int = 0
    dcp_goals: int = 0
    distinguished_total: int = 0
    club_counts: ClubCounts = field(default_factory=ClubCounts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "snapshotId": self.snapshot_id,
            "membership": self.membership,
            "payments": self.payments,
            "dcpGoals": self.dcp_goals,
            "distinguishedTotal": self.distinguished_total,
            "clubCounts": self.club_counts.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TimeSeriesDataPoint:
        return cls(
            date=payload["date"],
            snapshot_id=payload.get("snapshotId", payload["date"]),
            membership=int(payload.get("membership", 0)),
            payments=int(payload.get("payments", 0)),
            dcp_goals=int(payload.get("dcpGoals", 0)),
            distinguished_total=int(payload.get("distinguishedTotal", 0)),
            club_counts=ClubCounts.from_dict(payload.get("clubCounts")),
        )


@dataclass
class ProgramYearSummary:
    total_data_points: int = 0
    membership_start: int = 0
    membership_end: int = 0
    membership_peak: int = 0
    membership_low: int = 0

    @classmethod
    def from_points(cls, points: list[TimeSeriesDataPoint]) -> ProgramYearSummary:
        """Summary over points already sorted by date."""
        if not points:
            return cls()
        memberships = [p.membership for p in points]
        return cls(
            total_data_points=len(points),
            membership_start=memberships[0],
            membership_end=memberships[-1],
            membership_peak=max(memberships),
            membership_low=min(memberships),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "totalDataPoints": self.total_data_points,
            "membershipStart": self.membership_start,
            "membershipEnd": self.membership_end,
            "membershipPeak": self.membership_peak,
            "membershipLow": self.membership_low,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> ProgramYearSummary:
        payload = payload or {}
        return cls(
            total_data_points=int(payload.get("totalDataPoints", 0)),
            membership_start=int(payload.get("membershipStart", 0)),
            membership_end=int(payload.get("membershipEnd", 0)),
            membership_peak=int(payload.get("membershipPeak", 0)),
            membership_low=int(payload.get("membershipLow", 0)),
        )


@dataclass
class ProgramYearIndexFile:
    """One program year's data points for one unit."""

    unit_id: str
    program_year: str
    start_date: str
    end_date: str
    last_updated: str
    data_points: list[TimeSeriesDataPoint] = field(default_factory=list)
    summary: ProgramYearSummary = field(default_factory=ProgramYearSummary)

    def upsert(self, point: TimeSeriesDataPoint) -> bool:
        """Insert or replace the point for ``point.date``; keeps dates sorted and unique.

        Returns:
            True if an existing point was replaced.
        """
        replaced = False
        kept = []
        for existing in self.data_points:
            if existing.date == point.date:
                replaced = True
            else:
                kept.append(existing)
        kept.append(point)
        kept.sort(key=lambda p: p.date)
        self.data_points = kept
        self.summary = ProgramYearSummary.from_points(kept)
        return replaced

    def to_dict(self) -> dict[str, Any]:
        return {
            "unitId": self.unit_id,
            "programYear": self.program_year,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "lastUpdated": self.last_updated,
            "dataPoints": [p.to_dict() for p in self.data_points],
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ProgramYearIndexFile:
        return cls(
            unit_id=str(payload["unitId"]),
            program_year=payload["programYear"],
            start_date=payload["startDate"],
            end_date=payload["endDate"],
            last_updated=payload.get("lastUpdated", ""),
            data_points=[TimeSeriesDataPoint.from_dict(p) for p in payload.get("dataPoints", [])],
            summary=ProgramYearSummary.from_dict(payload.get("summary")),
        )


@dataclass
class TimeSeriesIndexMetadata:
    """Cross-partition summary for one unit."""

    unit_id: str
    last_updated: str
    available_program_years: list[str] = field(default_factory=list)
    total_data_points: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "unitId": self.unit_id,
            "lastUpdated": self.last_updated,
            "availableProgramYears": self.available_program_years,
            "totalDataPoints": self.total_data_points,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TimeSeriesIndexMetadata:
        return cls(
            unit_id=str(payload["unitId"]),
            last_updated=payload.get("lastUpdated", ""),
            available_program_years=list(payload.get("availableProgramYears", [])),
            total_data_points=int(payload.get("totalDataPoints", 0)),
        )


__all__ = [
    "ClubCounts",
    "TimeSeriesDataPoint",
    "ProgramYearSummary",
    "ProgramYearIndexFile",
    "TimeSeriesIndexMetadata",
]
