"""
Test support utilities for perfspine tests.

Builders for raw dashboard CSVs and cache layouts, plus deterministic
stand-ins for the clock, ``asyncio.sleep`` and the external fetcher.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from perfspine.collection.fetcher import FetchedReport

CLUB_HEADER = [
    "Division",
    "Area",
    "Club Number",
    "Club Name",
    "Club Status",
    "Mem. Base",
    "Active Members",
    "Goals Met",
    "Club Distinguished Status",
    "CSP",
    "Oct. Ren.",
    "Apr. Ren.",
    "New Members",
]


def club_row(
    number: str,
    *,
    name: str | None = None,
    division: str = "A",
    area: str = "1",
    members: int = 20,
    base: int = 18,
    goals: int = 5,
    status: str = "",
    csp: str = "Yes",
    oct_ren: int = 10,
    apr_ren: int = 5,
    new: int = 3,
) -> dict[str, Any]:
    return {
        "Division": division,
        "Area": area,
        "Club Number": number,
        "Club Name": name or f"Club {number}",
        "Club Status": "Active",
        "Mem. Base": base,
        "Active Members": members,
        "Goals Met": goals,
        "Club Distinguished Status": status,
        "CSP": csp,
        "Oct. Ren.": oct_ren,
        "Apr. Ren.": apr_ren,
        "New Members": new,
    }


def default_clubs() -> list[dict[str, Any]]:
    """Three clubs: one thriving, one vulnerable, one needing intervention."""
    return [
        club_row("1001", members=25, base=20, goals=6, status="Select Distinguished"),
        club_row("1002", division="B", members=15, base=15, goals=1, csp="No"),
        club_row("1003", division="B", area="2", members=8, base=10, goals=0),
    ]


def to_csv(rows: list[dict[str, Any]], header: list[str] | None = None, footer: str | None = None) -> str:
    buffer = io.StringIO()
    fields = header or (list(rows[0]) if rows else CLUB_HEADER)
    writer = csv.DictWriter(buffer, fieldnames=fields, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    if footer:
        buffer.write(footer + "\n")
    return buffer.getvalue()


def write_raw_unit(
    cache_dir: Path,
    date: str,
    unit_id: str,
    clubs: list[dict[str, Any]] | None = None,
    *,
    divisions: list[dict[str, Any]] | None = None,
    unit_rows: list[dict[str, Any]] | None = None,
) -> Path:
    """Lay down ``raw-csv/{date}/unit-{id}/`` the way the collector does."""
    unit_dir = cache_dir / "raw-csv" / date / f"unit-{unit_id}"
    unit_dir.mkdir(parents=True, exist_ok=True)
    (unit_dir / "club-performance.csv").write_text(
        to_csv(clubs if clubs is not None else default_clubs(), CLUB_HEADER, footer="Month of Jan, As of 01/05/2025"),
        encoding="utf-8",
    )
    if divisions is not None:
        (unit_dir / "division-performance.csv").write_text(to_csv(divisions), encoding="utf-8")
    if unit_rows is not None:
        (unit_dir / "district-performance.csv").write_text(to_csv(unit_rows), encoding="utf-8")
    return unit_dir


def write_raw_metadata(cache_dir: Path, date: str, **fields: Any) -> Path:
    path = cache_dir / "raw-csv" / date / "metadata.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"date": date, **fields}), encoding="utf-8")
    return path


def write_rankings(cache_dir: Path, snapshot_date: str, rankings: list[dict[str, Any]]) -> Path:
    path = cache_dir / "snapshots" / snapshot_date / "all-units-rankings.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"rankings": rankings}), encoding="utf-8")
    return path


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 5, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSleep:
    """Drop-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeFetcher:
    """In-memory fetcher.

    ``failures`` maps a unit id to the exception every fetch for that unit
    raises (or to a list consumed one call at a time, ``None`` meaning
    success).
    """

    def __init__(
        self,
        clubs: list[dict[str, Any]] | None = None,
        *,
        failures: dict[str, Any] | None = None,
        data_month: str | None = None,
        is_closing_period: bool | None = None,
    ):
        self.clubs = clubs if clubs is not None else default_clubs()
        self.failures = failures or {}
        self.data_month = data_month
        self.is_closing_period = is_closing_period
        self.calls: list[tuple[str, str]] = []

    def _report(self, csv_text: str) -> FetchedReport:
        return FetchedReport(
            csv_text=csv_text,
            data_month=self.data_month,
            is_closing_period=self.is_closing_period,
        )

    def _maybe_fail(self, key: str) -> None:
        failure = self.failures.get(key)
        if isinstance(failure, list):
            failure = failure.pop(0) if failure else None
        if failure is not None:
            raise failure

    async def fetch_all_units(self, date: str) -> FetchedReport:
        self.calls.append(("all-units", date))
        self._maybe_fail("all-units")
        return self._report(to_csv([{"District": "42", "Region": "7"}]))

    async def fetch_report(self, unit_id: str, report_type: str, date: str) -> FetchedReport:
        self.calls.append((unit_id, report_type))
        if report_type == "club-performance":
            self._maybe_fail(unit_id)
            return self._report(to_csv(self.clubs, CLUB_HEADER))
        return self._report(to_csv([{"Division": "A", "Clubs": "3"}]))
