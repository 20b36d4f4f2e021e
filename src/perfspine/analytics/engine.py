"""
Analytics compute stage: unit snapshots -> analytics artifacts.

For one requested date the engine resolves the canonical snapshot date the
same way the transform stage does, then for each unit:

1. hashes ``unit_{id}.json`` and skips the unit when the ``analytics``
   artifact already records that checksum (unless forced);
2. computes every artifact type from the snapshot, the program year's
   time-series history and, when present, last year's snapshot;
3. writes the artifacts atomically, sentinel last;
4. appends the snapshot's time-series point (best effort).

A manifest over every artifact on disk closes the run.

Example:
    >>> engine = AnalyticsComputeEngine(cache_dir="/var/lib/perfspine")
    >>> result = engine.compute("2025-01-05")
    >>> result.date, result.units_succeeded
    ('2024-12-31', ['1', '2', '42'])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from perfspine.analytics.distinguished import compute_distinguished, distinguished_counts
from perfspine.analytics.health import (
    assess_clubs,
    compute_club_health,
    compute_vulnerable_clubs,
    health_counts,
)
from perfspine.analytics.leadership import compute_leadership
from perfspine.analytics.membership import compute_membership, load_history, merge_current
from perfspine.analytics.rankings import MetricRankings, RankedMetric, UnitRankings, load_rankings
from perfspine.analytics.targets import compute_targets
from perfspine.analytics.trends import compute_club_trends_index
from perfspine.analytics.writer import SENTINEL_ARTIFACT, AnalyticsWriter, ArtifactType
from perfspine.analytics.year_over_year import compute_year_over_year
from perfspine.core.closing_period import detect_closing_period
from perfspine.core.errors import PerfSpineError, SourceNotFoundError
from perfspine.core.hashing import sha256_file
from perfspine.core.logging import LogContext, get_logger
from perfspine.core.program_year import previous_year_date, program_month
from perfspine.core.timestamps import start_timer, utc_now_iso
from perfspine.snapshots.clubs import club_records, parse_int
from perfspine.snapshots.models import RunError, UnitSnapshot
from perfspine.snapshots.store import SnapshotStore
from perfspine.timeseries.builder import TimeSeriesDataPointBuilder
from perfspine.timeseries.models import TimeSeriesDataPoint
from perfspine.timeseries.writer import TimeSeriesIndexWriter, validate_unit_id

logger = get_logger(__name__)


@dataclass
class ComputeResult:
    """Outcome of :meth:`AnalyticsComputeEngine.compute`.

    ``date`` is the resolved snapshot date; ``requested_date`` is what the
    caller asked for. Time-series failures are reported separately and do
    not affect ``success``.
    """

    success: bool
    date: str
    requested_date: str
    is_closing_period: bool = False
    data_month: str | None = None
    units_processed: list[str] = field(default_factory=list)
    units_succeeded: list[str] = field(default_factory=list)
    units_failed: list[str] = field(default_factory=list)
    units_skipped: list[str] = field(default_factory=list)
    analytics_locations: list[str] = field(default_factory=list)
    errors: list[RunError] = field(default_factory=list)
    time_series_errors: list[RunError] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "date": self.date,
            "requestedDate": self.requested_date,
            "isClosingPeriod": self.is_closing_period,
            "unitsProcessed": self.units_processed,
            "unitsSucceeded": self.units_succeeded,
            "unitsFailed": self.units_failed,
            "unitsSkipped": self.units_skipped,
            "analyticsLocations": self.analytics_locations,
            "errors": [e.to_dict() for e in self.errors],
            "timeSeriesErrors": [e.to_dict() for e in self.time_series_errors],
            "duration_ms": self.duration_ms,
        }
        if self.data_month is not None:
            payload["dataMonth"] = self.data_month
        return payload


class AnalyticsComputeEngine:
    """Computes and stores analytics for the units of one snapshot date.

    Args:
        cache_dir: Root of the cache layout
    """

    def __init__(self, cache_dir: str | Path):
        self.store = SnapshotStore(cache_dir)
        self.writer = AnalyticsWriter(self.store)
        self.time_series = TimeSeriesIndexWriter(cache_dir)
        self.point_builder = TimeSeriesDataPointBuilder()

    def compute(
        self,
        date: str,
        units: list[str] | None = None,
        force: bool = False,
    ) -> ComputeResult:
        """Compute analytics for the snapshot that ``date`` resolves to.

        Args:
            date: Requested date, ``YYYY-MM-DD``
            units: Explicit unit ids; discovered from the snapshot directory when empty
            force: Recompute even when the source snapshot checksum is unchanged

        Returns:
            ComputeResult with per-unit outcomes. Never raises for unit failures.
        """
        timer = start_timer()
        info = detect_closing_period(date, self.store.read_raw_metadata(date))
        snapshot_date = info.snapshot_date
        result = ComputeResult(
            success=False,
            date=snapshot_date,
            requested_date=date,
            is_closing_period=info.is_closing_period,
            data_month=info.data_month if info.is_closing_period else None,
        )

        with LogContext(run_date=date, snapshot_date=snapshot_date, stage="compute"):
            logger.info("compute_started", is_closing_period=info.is_closing_period, force=force)

            if not self.store.has_snapshot(snapshot_date):
                if info.is_closing_period:
                    message = (
                        f"Snapshot not found for closing period date {snapshot_date} "
                        f"(requested: {date}). Run transform first."
                    )
                else:
                    message = f"Snapshot not found for date {snapshot_date}"
                logger.error("compute_snapshot_missing", message=message)
                result.errors.append(RunError("N/A", message, utc_now_iso()))
                result.duration_ms = timer.elapsed_ms
                return result

            unit_ids = list(units) if units else self.store.discover_snapshot_units(snapshot_date)
            if not unit_ids:
                message = f"No unit snapshots found for date {snapshot_date}"
                logger.error("compute_no_units", message=message)
                result.errors.append(RunError("N/A", message, utc_now_iso()))
                result.duration_ms = timer.elapsed_ms
                return result

            rankings = load_rankings(self.store, snapshot_date)

            for unit_id in unit_ids:
                result.units_processed.append(unit_id)
                try:
                    self._compute_unit(snapshot_date, unit_id, rankings, force, result)
                except Exception as e:
                    logger.error("unit_compute_failed", unit_id=unit_id, error=str(e))
                    result.units_failed.append(unit_id)
                    result.errors.append(RunError(unit_id, str(e), utc_now_iso()))

            # An all-skipped run leaves the manifest as it was
            if result.units_succeeded:
                try:
                    self.writer.write_manifest(snapshot_date)
                    result.analytics_locations.append(str(self.writer.manifest_path(snapshot_date)))
                except PerfSpineError as e:
                    logger.error("analytics_manifest_failed", error=str(e))
                    result.errors.append(
                        RunError("N/A", f"Failed to write analytics manifest: {e}", utc_now_iso())
                    )

            result.success = not result.units_failed and not result.errors
            result.duration_ms = timer.elapsed_ms
            logger.info(
                "compute_completed",
                success=result.success,
                processed=len(result.units_processed),
                succeeded=len(result.units_succeeded),
                failed=len(result.units_failed),
                skipped=len(result.units_skipped),
                time_series_errors=len(result.time_series_errors),
                duration_ms=result.duration_ms,
            )
            return result

    # ── Per-unit ─────────────────────────────────────────────────

    def _compute_unit(
        self,
        snapshot_date: str,
        unit_id: str,
        rankings: UnitRankings | None,
        force: bool,
        result: ComputeResult,
    ) -> None:
        validate_unit_id(unit_id)
        path = self.store.unit_snapshot_path(snapshot_date, unit_id)
        if not path.is_file():
            raise SourceNotFoundError(
                f"Snapshot not found for unit {unit_id} at {snapshot_date}"
            ).with_context(unit_id=unit_id, date=snapshot_date, path=str(path))

        checksum = sha256_file(path)
        if not force:
            existing = self.writer.read_metadata(snapshot_date, unit_id, SENTINEL_ARTIFACT)
            if existing is not None and existing.source_snapshot_checksum == checksum:
                logger.debug("unit_analytics_current_skipping", unit_id=unit_id)
                result.units_skipped.append(unit_id)
                return

        snapshot = self.store.read_unit_snapshot(snapshot_date, unit_id)
        if snapshot is None:
            raise SourceNotFoundError(f"Snapshot not found for unit {unit_id} at {snapshot_date}")

        current_point = self.point_builder.build(snapshot)
        artifacts = self.build_artifacts(snapshot, current_point, rankings)

        # Sentinel last: an interrupted unit still looks stale on the next run
        ordered = [t for t in artifacts if t != SENTINEL_ARTIFACT] + [SENTINEL_ARTIFACT]
        for artifact_type in ordered:
            location = self.writer.write_artifact(
                snapshot_date, unit_id, artifact_type, artifacts[artifact_type], checksum
            )
            result.analytics_locations.append(str(location))

        result.units_succeeded.append(unit_id)
        logger.info("unit_analytics_computed", unit_id=unit_id, artifacts=len(artifacts))

        self._append_time_series(unit_id, current_point, result)

    def build_artifacts(
        self,
        snapshot: UnitSnapshot,
        current_point: TimeSeriesDataPoint,
        rankings: UnitRankings | None,
    ) -> dict[ArtifactType, dict[str, Any]]:
        """Every artifact's ``data`` for one snapshot, keyed by type."""
        unit_id = snapshot.unit_id
        month = program_month(snapshot.snapshot_date)
        records = club_records(snapshot.clubs)
        entries = assess_clubs(records, month)
        previous = self._previous_year_snapshot(snapshot)
        points = merge_current(self._history(unit_id, snapshot.snapshot_date), current_point)
        membership = compute_membership(points, parse_int(snapshot.totals.get("membershipBase")))

        unit_rankings: dict[str, dict[str, Any]] = {}
        for metric in RankedMetric:
            ranked = rankings.for_unit(unit_id, metric) if rankings else MetricRankings()
            unit_rankings[metric.value] = ranked.to_dict()

        summary = {
            "unitId": unit_id,
            "snapshotDate": snapshot.snapshot_date,
            "collectionDate": snapshot.collection_date,
            "programMonth": month,
            "totals": snapshot.totals,
            "membership": current_point.membership,
            "payments": current_point.payments,
            "dcpGoals": current_point.dcp_goals,
            "trendDirection": membership["trendDirection"],
            "clubHealth": health_counts(entries),
            "distinguished": distinguished_counts(records),
            "rankings": unit_rankings,
            "rankingsAvailable": rankings is not None,
        }

        return {
            ArtifactType.ANALYTICS: summary,
            ArtifactType.MEMBERSHIP: membership,
            ArtifactType.CLUB_HEALTH: compute_club_health(entries, month),
            ArtifactType.VULNERABLE_CLUBS: compute_vulnerable_clubs(entries),
            ArtifactType.LEADERSHIP: compute_leadership(records),
            ArtifactType.DISTINGUISHED: compute_distinguished(records, month),
            ArtifactType.YEAR_OVER_YEAR: compute_year_over_year(snapshot, previous),
            ArtifactType.PERFORMANCE_TARGETS: compute_targets(snapshot, rankings),
            ArtifactType.CLUB_TRENDS_INDEX: compute_club_trends_index(
                entries, club_records(previous.clubs) if previous else None
            ),
        }

    def _previous_year_snapshot(self, snapshot: UnitSnapshot) -> UnitSnapshot | None:
        previous_date = previous_year_date(snapshot.snapshot_date)
        try:
            previous = self.store.read_unit_snapshot(previous_date, snapshot.unit_id)
        except PerfSpineError as e:
            logger.warning(
                "previous_year_snapshot_unreadable",
                unit_id=snapshot.unit_id,
                previous_date=previous_date,
                error=str(e),
            )
            return None
        if previous is None:
            logger.debug("previous_year_snapshot_missing", unit_id=snapshot.unit_id, previous_date=previous_date)
        return previous

    def _history(self, unit_id: str, snapshot_date: str) -> list[TimeSeriesDataPoint]:
        try:
            return load_history(self.time_series, unit_id, snapshot_date)
        except PerfSpineError as e:
            logger.warning("time_series_history_unreadable", unit_id=unit_id, error=str(e))
            return []

    def _append_time_series(
        self, unit_id: str, point: TimeSeriesDataPoint, result: ComputeResult
    ) -> None:
        try:
            self.time_series.write_data_point(unit_id, point)
            self.time_series.update_metadata(unit_id)
        except PerfSpineError as e:
            logger.warning("time_series_append_failed", unit_id=unit_id, error=str(e))
            result.time_series_errors.append(RunError(unit_id, str(e), utc_now_iso()))


__all__ = ["AnalyticsComputeEngine", "ComputeResult"]
