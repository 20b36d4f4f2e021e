"""
Transform stage: raw CSV cache -> per-unit snapshots.

For one requested date the service:

1. reads ``raw-csv/{date}/metadata.json`` and resolves the canonical
   snapshot date (closing-period data is filed under the last day of the
   month it describes);
2. for closing-period data, refuses to overwrite a snapshot that was
   collected later than this run's data ("newer data wins");
3. builds and atomically writes ``unit_{id}.json`` for each unit, isolating
   per-unit failures;
4. writes the run metadata and manifest;
5. advances ``latest-successful.json`` when every unit succeeded.

Example:
    >>> service = TransformService(cache_dir="/var/lib/perfspine")
    >>> result = service.transform("2025-01-05")
    >>> result.snapshot_date, result.units_succeeded
    ('2024-12-31', ['1', '2', '42'])
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from perfspine.core.closing_period import ClosingPeriodInfo, detect_closing_period
from perfspine.core.errors import PerfSpineError
from perfspine.core.hashing import sha256_file
from perfspine.core.logging import LogContext, get_logger
from perfspine.core.storage import write_json_atomic
from perfspine.core.timestamps import start_timer, utc_now_iso
from perfspine.snapshots.builder import CsvStatisticsBuilder, StatisticsBuilder
from perfspine.snapshots.models import (
    ManifestEntry,
    RunError,
    RunStatus,
    SnapshotManifest,
    SnapshotRunMetadata,
    UnitSnapshot,
)
from perfspine.snapshots.store import SnapshotStore

logger = get_logger(__name__)

UNIT_ID_PATTERN = re.compile(r"^[A-Za-z0-9]+$")


@dataclass
class TransformResult:
    """Outcome of :meth:`TransformService.transform`."""

    success: bool
    date: str
    snapshot_date: str
    is_closing_period: bool = False
    units_processed: list[str] = field(default_factory=list)
    units_succeeded: list[str] = field(default_factory=list)
    units_failed: list[str] = field(default_factory=list)
    units_skipped: list[str] = field(default_factory=list)
    snapshot_locations: list[str] = field(default_factory=list)
    errors: list[RunError] = field(default_factory=list)
    duration_ms: int = 0
    skipped_reason: str | None = None
    pointer_updated: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "date": self.date,
            "snapshotDate": self.snapshot_date,
            "isClosingPeriod": self.is_closing_period,
            "unitsProcessed": self.units_processed,
            "unitsSucceeded": self.units_succeeded,
            "unitsFailed": self.units_failed,
            "unitsSkipped": self.units_skipped,
            "snapshotLocations": self.snapshot_locations,
            "errors": [e.to_dict() for e in self.errors],
            "duration_ms": self.duration_ms,
            "pointerUpdated": self.pointer_updated,
        }
        if self.skipped_reason:
            payload["skippedReason"] = self.skipped_reason
        return payload


class TransformService:
    """Builds the snapshot cache from the raw CSV cache.

    Args:
        cache_dir: Root of the cache layout
        builder: Raw-report -> snapshot content collaborator
    """

    def __init__(
        self,
        cache_dir: str | Path,
        builder: StatisticsBuilder | None = None,
    ):
        self.store = SnapshotStore(cache_dir)
        self.builder = builder or CsvStatisticsBuilder()

    # ── Newer data wins ──────────────────────────────────────────

    def should_update_snapshot(self, snapshot_date: str, collection_date: str) -> bool:
        """True if data collected on ``collection_date`` may replace the snapshot at ``snapshot_date``.

        Existing metadata that is missing, unreadable, or records no
        collection date never blocks an update. Otherwise the new collection
        date must be strictly newer than the recorded one.
        """
        try:
            existing = self.store.read_run_metadata(snapshot_date)
        except PerfSpineError as e:
            logger.warning(
                "snapshot_metadata_unreadable",
                snapshot_date=snapshot_date,
                error=str(e),
            )
            return True

        if existing is None:
            return True

        recorded = existing.collection_date or existing.data_as_of_date
        if not recorded:
            return True

        if collection_date > recorded:
            logger.info(
                "newer_data_accepted",
                snapshot_date=snapshot_date,
                existing_collection_date=recorded,
                new_collection_date=collection_date,
            )
            return True

        logger.info(
            "existing_snapshot_is_newer",
            snapshot_date=snapshot_date,
            existing_collection_date=recorded,
            new_collection_date=collection_date,
        )
        return False

    # ── Per-unit ─────────────────────────────────────────────────

    def _transform_unit(
        self, date: str, unit_id: str, info: ClosingPeriodInfo
    ) -> Path:
        unit_dir = self.store.raw_unit_dir(date, unit_id)
        data = self.builder.build(unit_id, unit_dir)
        snapshot = UnitSnapshot(
            unit_id=unit_id,
            snapshot_date=info.snapshot_date,
            collection_date=info.collection_date,
            created_at=utc_now_iso(),
            data=data,
        )
        return write_json_atomic(
            self.store.unit_snapshot_path(info.snapshot_date, unit_id),
            snapshot.to_dict(),
        )

    def _manifest_entry(self, snapshot_date: str, unit_id: str) -> ManifestEntry | None:
        path = self.store.unit_snapshot_path(snapshot_date, unit_id)
        if not path.is_file():
            return None
        stat = path.stat()
        return ManifestEntry(
            unit_id=unit_id,
            file_name=path.name,
            status="success",
            file_size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
            checksum=sha256_file(path),
        )

    # ── Run ──────────────────────────────────────────────────────

    def transform(
        self,
        date: str,
        units: list[str] | None = None,
        force: bool = False,
    ) -> TransformResult:
        """Transform the raw cache at ``date`` into snapshots.

        Args:
            date: Requested (collection) date, ``YYYY-MM-DD``
            units: Explicit unit ids; discovered from the raw cache when empty
            force: Overwrite existing snapshots and bypass newer-data-wins

        Returns:
            TransformResult with per-unit outcomes. Never raises for unit failures.
        """
        timer = start_timer()
        info = detect_closing_period(date, self.store.read_raw_metadata(date))
        snapshot_date = info.snapshot_date

        with LogContext(run_date=date, snapshot_date=snapshot_date, stage="transform"):
            logger.info(
                "transform_started",
                is_closing_period=info.is_closing_period,
                force=force,
                requested_units=units or "discover",
            )

            result = TransformResult(
                success=False,
                date=date,
                snapshot_date=snapshot_date,
                is_closing_period=info.is_closing_period,
            )

            if info.is_closing_period and not force:
                if not self.should_update_snapshot(snapshot_date, info.collection_date):
                    result.success = True
                    result.skipped_reason = (
                        f"Existing snapshot at {snapshot_date} has data collected on or after "
                        f"{info.collection_date}"
                    )
                    result.duration_ms = timer.elapsed_ms
                    return result

            unit_ids = list(units) if units else self.store.discover_raw_units(date)
            has_any_raw = any(
                UNIT_ID_PATTERN.match(u) and self.store.raw_unit_dir(date, u).is_dir()
                for u in unit_ids
            )
            if not has_any_raw:
                message = f"No raw CSV data found for date {date}"
                logger.error("transform_no_raw_data", units=unit_ids)
                result.errors.append(RunError("N/A", message, utc_now_iso()))
                result.duration_ms = timer.elapsed_ms
                return result

            # Closing-period data that passed the newer-data check replaces what is there
            overwrite = force or info.is_closing_period

            for unit_id in unit_ids:
                result.units_processed.append(unit_id)
                error = self._process_unit(date, unit_id, info, overwrite, result)
                if error is not None:
                    result.units_failed.append(unit_id)
                    result.errors.append(RunError(unit_id, error, utc_now_iso()))

            self._write_run_files(info, unit_ids, result, timer.elapsed_ms)

            present = [u for u in unit_ids if self.store.snapshot_exists(snapshot_date, u)]
            if present and not result.units_failed and not result.errors:
                result.pointer_updated = self.store.update_pointer(snapshot_date, force=force)

            result.success = not result.units_failed and not result.errors
            result.duration_ms = timer.elapsed_ms
            logger.info(
                "transform_completed",
                success=result.success,
                processed=len(result.units_processed),
                succeeded=len(result.units_succeeded),
                failed=len(result.units_failed),
                skipped=len(result.units_skipped),
                duration_ms=result.duration_ms,
            )
            return result

    def _process_unit(
        self,
        date: str,
        unit_id: str,
        info: ClosingPeriodInfo,
        overwrite: bool,
        result: TransformResult,
    ) -> str | None:
        """Transform one unit; returns an error message on failure."""
        if not UNIT_ID_PATTERN.match(unit_id):
            return f"Invalid unit id: {unit_id!r}"

        if not overwrite and self.store.snapshot_exists(info.snapshot_date, unit_id):
            logger.debug("unit_snapshot_exists_skipping", unit_id=unit_id)
            result.units_skipped.append(unit_id)
            return None

        if not self.store.raw_unit_dir(date, unit_id).is_dir():
            logger.warning("unit_raw_data_missing", unit_id=unit_id)
            return f"No raw CSV data found for unit {unit_id}"

        try:
            path = self._transform_unit(date, unit_id, info)
        except Exception as e:
            logger.error("unit_transform_failed", unit_id=unit_id, error=str(e))
            return str(e)

        result.units_succeeded.append(unit_id)
        result.snapshot_locations.append(str(path))
        logger.info("unit_transformed", unit_id=unit_id, path=str(path))
        return None

    def _write_run_files(
        self,
        info: ClosingPeriodInfo,
        unit_ids: list[str],
        result: TransformResult,
        elapsed_ms: int,
    ) -> None:
        snapshot_date = info.snapshot_date
        entries = [
            entry
            for u in unit_ids
            if u not in result.units_failed
            and (entry := self._manifest_entry(snapshot_date, u)) is not None
        ]
        if not entries:
            return

        # An all-skipped rerun leaves the existing run files untouched
        wrote_nothing = not result.units_succeeded and not result.units_failed
        if wrote_nothing and self.store.run_metadata_path(snapshot_date).is_file():
            return

        error_by_unit = {e.unit_id: e.error for e in result.errors}
        manifest = SnapshotManifest(
            snapshot_id=snapshot_date,
            created_at=utc_now_iso(),
            units=entries
            + [
                ManifestEntry(unit_id=u, file_name=f"unit_{u}.json", status="failed", error=error_by_unit.get(u))
                for u in result.units_failed
            ],
        )
        successful = [e.unit_id for e in entries]
        metadata = SnapshotRunMetadata(
            snapshot_id=snapshot_date,
            created_at=utc_now_iso(),
            status=RunStatus.from_counts(len(successful), len(result.units_failed)),
            configured_units=list(unit_ids),
            successful_units=successful,
            failed_units=list(result.units_failed),
            errors=list(result.errors),
            processing_duration=elapsed_ms,
            data_as_of_date=snapshot_date,
            is_closing_period_data=info.is_closing_period,
            collection_date=info.collection_date if info.is_closing_period else None,
            logical_date=info.logical_date if info.is_closing_period else None,
        )

        try:
            write_json_atomic(self.store.run_metadata_path(snapshot_date), metadata.to_dict())
            write_json_atomic(self.store.manifest_path(snapshot_date), manifest.to_dict())
        except PerfSpineError as e:
            logger.error("run_files_write_failed", error=str(e))
            result.errors.append(
                RunError("N/A", f"Failed to write metadata/manifest: {e}", utc_now_iso())
            )
            return

        result.snapshot_locations.append(str(self.store.run_metadata_path(snapshot_date)))
        result.snapshot_locations.append(str(self.store.manifest_path(snapshot_date)))
        logger.info(
            "run_files_written",
            status=metadata.status.value,
            successful=len(successful),
            failed=len(result.units_failed),
        )


__all__ = ["TransformService", "TransformResult", "UNIT_ID_PATTERN"]
