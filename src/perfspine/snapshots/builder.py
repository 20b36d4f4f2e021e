"""
Raw CSV -> unit snapshot content.

The transform stage does not know how the dashboard's reports are laid out.
It hands each ``raw-csv/{date}/unit-{id}`` directory to a
:class:`StatisticsBuilder` and stores whatever structured content comes
back. :class:`CsvStatisticsBuilder` is the default: it keeps every report
row as a header-keyed dict and derives unit totals.

    unit-42/
      club-performance.csv       required -> data["clubPerformance"]
      division-performance.csv   optional -> data["divisionPerformance"]
      district-performance.csv   optional -> data["unitPerformance"]
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from perfspine.core.errors import ParseError, SourceNotFoundError
from perfspine.core.logging import get_logger
from perfspine.snapshots.clubs import club_records

logger = get_logger(__name__)


class ReportType:
    """Per-unit report names, as stored in the raw cache."""

    CLUB_PERFORMANCE = "club-performance"
    DIVISION_PERFORMANCE = "division-performance"
    UNIT_PERFORMANCE = "district-performance"

    ALL = (CLUB_PERFORMANCE, DIVISION_PERFORMANCE, UNIT_PERFORMANCE)


ALL_UNITS_REPORT = "all-units"


@runtime_checkable
class StatisticsBuilder(Protocol):
    """Turns one unit's raw report directory into snapshot ``data``."""

    def build(self, unit_id: str, unit_dir: Path) -> dict[str, Any]:
        ...


def read_csv_rows(path: Path) -> list[dict[str, str]]:
    """Read a dashboard CSV into header-keyed rows.

    Blank rows and the trailing ``Month of ...`` footer the dashboard appends
    are dropped. Values are stripped.
    """
    rows: list[dict[str, str]] = []
    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            reader = csv.DictReader(f)
            for row in reader:
                cleaned = {
                    (k or "").strip(): (v or "").strip() if isinstance(v, str) else ""
                    for k, v in row.items()
                    if k is not None
                }
                values = [v for v in cleaned.values() if v]
                if not values:
                    continue
                if values[0].lower().startswith("month of"):
                    continue
                rows.append(cleaned)
    except csv.Error as e:
        raise ParseError(f"CSV parsing failed for {path}: {e}", cause=e).with_context(
            path=str(path)
        ) from e
    return rows


class CsvStatisticsBuilder:
    """Default :class:`StatisticsBuilder` over the raw CSV cache."""

    def build(self, unit_id: str, unit_dir: Path) -> dict[str, Any]:
        club_path = unit_dir / f"{ReportType.CLUB_PERFORMANCE}.csv"
        if not club_path.is_file():
            raise SourceNotFoundError(
                f"Club performance CSV not found for unit {unit_id}"
            ).with_context(unit_id=unit_id, path=str(club_path))

        clubs = read_csv_rows(club_path)
        divisions = self._optional(unit_dir / f"{ReportType.DIVISION_PERFORMANCE}.csv")
        unit_rows = self._optional(unit_dir / f"{ReportType.UNIT_PERFORMANCE}.csv")

        records = club_records(clubs)
        totals = {
            "totalClubs": len(records),
            "totalMembership": sum(r.membership for r in records),
            "membershipBase": sum(r.membership_base for r in records),
            "totalPayments": sum(r.payments for r in records),
            "distinguishedClubs": sum(1 for r in records if r.is_distinguished),
            "paidClubs": sum(1 for r in records if r.membership > 0),
        }
        logger.debug(
            "unit_statistics_built",
            unit_id=unit_id,
            clubs=len(clubs),
            divisions=len(divisions),
        )
        return {
            "clubPerformance": clubs,
            "divisionPerformance": divisions,
            "unitPerformance": unit_rows,
            "totals": totals,
        }

    @staticmethod
    def _optional(path: Path) -> list[dict[str, str]]:
        if not path.is_file():
            return []
        return read_csv_rows(path)


__all__ = [
    "StatisticsBuilder",
    "CsvStatisticsBuilder",
    "ReportType",
    "ALL_UNITS_REPORT",
    "read_csv_rows",
]
