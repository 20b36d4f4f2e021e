"""
Program-year-partitioned time-series index.

Each unit has one JSON file per program year plus a metadata file that is
rebuilt by scanning the partitions::

    time-series/unit_42/
      2023-2024.json          ProgramYearIndexFile
      2024-2025.json          ProgramYearIndexFile
      index-metadata.json     TimeSeriesIndexMetadata

Writes are upserts keyed by date (last write wins), keep the partition
sorted ascending, recompute the summary, and go through the shared atomic
write so readers always see a complete file.

Example:
    >>> writer = TimeSeriesIndexWriter(cache_dir)
    >>> writer.write_data_point("42", point)
    >>> writer.update_metadata("42").available_program_years
    ['2024-2025']
"""

from __future__ import annotations

import re
from pathlib import Path

from perfspine.core.errors import ParseError, PerfSpineError, StorageError, ValidationError
from perfspine.core.logging import get_logger
from perfspine.core.program_year import (
    is_program_year,
    program_year_bounds,
    program_year_for,
)
from perfspine.core.storage import read_json, write_json_atomic
from perfspine.core.timestamps import is_iso_date, utc_now_iso
from perfspine.timeseries.models import (
    ProgramYearIndexFile,
    TimeSeriesDataPoint,
    TimeSeriesIndexMetadata,
)

logger = get_logger(__name__)

INDEX_METADATA_FILE = "index-metadata.json"
_UNIT_ID = re.compile(r"^[A-Za-z0-9]+$")


def validate_unit_id(unit_id: str) -> None:
    """Reject empty or non-alphanumeric unit ids (no path separators, no dots)."""
    if not isinstance(unit_id, str) or not _UNIT_ID.match(unit_id):
        raise ValidationError(
            f"Invalid unit id: {unit_id!r} (must be non-empty and alphanumeric)"
        ).with_context(unit_id=str(unit_id))


def validate_date(value: str, field_name: str = "date") -> None:
    if not is_iso_date(value):
        raise ValidationError(
            f"Invalid {field_name}: {value!r} (expected YYYY-MM-DD)"
        ).with_context(date=str(value))


def _decode(model, payload, path: Path):
    if payload is None:
        return None
    try:
        return model.from_dict(payload)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ParseError(f"Malformed time-series file {path}: {e!r}", cause=e).with_context(
            path=str(path)
        ) from e


class TimeSeriesIndexWriter:
    """Reads and writes one cache directory's time-series index."""

    def __init__(self, cache_dir: str | Path):
        self.root = Path(cache_dir) / "time-series"

    def unit_dir(self, unit_id: str) -> Path:
        return self.root / f"unit_{unit_id}"

    def partition_path(self, unit_id: str, program_year: str) -> Path:
        return self.unit_dir(unit_id) / f"{program_year}.json"

    def metadata_path(self, unit_id: str) -> Path:
        return self.unit_dir(unit_id) / INDEX_METADATA_FILE

    # ── Reads ────────────────────────────────────────────────────

    def read_program_year(self, unit_id: str, program_year: str) -> ProgramYearIndexFile | None:
        """Load one partition, or ``None`` if it does not exist.

        Raises:
            ParseError: If the file is not valid JSON or lacks required fields
        """
        validate_unit_id(unit_id)
        path = self.partition_path(unit_id, program_year)
        return _decode(ProgramYearIndexFile, read_json(path), path)

    def list_program_years(self, unit_id: str) -> list[str]:
        """Program years with a partition file on disk, oldest first."""
        validate_unit_id(unit_id)
        directory = self.unit_dir(unit_id)
        if not directory.is_dir():
            return []
        years = [
            p.stem
            for p in directory.glob("*.json")
            if p.name != INDEX_METADATA_FILE and is_program_year(p.stem)
        ]
        return sorted(years)

    def read_range(self, unit_id: str, start_date: str, end_date: str) -> list[TimeSeriesDataPoint]:
        """All points with ``start_date <= date <= end_date``, across partitions."""
        validate_date(start_date, "start_date")
        validate_date(end_date, "end_date")
        points: list[TimeSeriesDataPoint] = []
        for program_year in self.list_program_years(unit_id):
            partition = self.read_program_year(unit_id, program_year)
            if partition is None:
                continue
            points.extend(p for p in partition.data_points if start_date <= p.date <= end_date)
        return sorted(points, key=lambda p: p.date)

    def read_metadata(self, unit_id: str) -> TimeSeriesIndexMetadata | None:
        validate_unit_id(unit_id)
        path = self.metadata_path(unit_id)
        return _decode(TimeSeriesIndexMetadata, read_json(path), path)

    # ── Writes ───────────────────────────────────────────────────

    def write_data_point(self, unit_id: str, point: TimeSeriesDataPoint) -> ProgramYearIndexFile:
        """Upsert ``point`` into its program-year partition.

        Raises:
            ValidationError: For a malformed unit id or point date (before any I/O)
            StorageError: If the partition cannot be read or written
        """
        validate_unit_id(unit_id)
        validate_date(point.date, "point.date")

        program_year = program_year_for(point.date)
        try:
            partition = self.read_program_year(unit_id, program_year)
            if partition is None:
                start, end = program_year_bounds(program_year)
                partition = ProgramYearIndexFile(
                    unit_id=unit_id,
                    program_year=program_year,
                    start_date=start,
                    end_date=end,
                    last_updated=utc_now_iso(),
                )
                logger.debug("time_series_partition_created", unit_id=unit_id, program_year=program_year)

            replaced = partition.upsert(point)
            partition.last_updated = utc_now_iso()
            write_json_atomic(self.partition_path(unit_id, program_year), partition.to_dict())
        except PerfSpineError as e:
            logger.error(
                "time_series_write_failed",
                unit_id=unit_id,
                date=point.date,
                error=str(e),
            )
            raise StorageError(f"Failed to write data point: {e.message}", cause=e).with_context(
                unit_id=unit_id, date=point.date
            ) from e

        logger.info(
            "time_series_point_written",
            unit_id=unit_id,
            program_year=program_year,
            date=point.date,
            replaced=replaced,
            total_data_points=len(partition.data_points),
        )
        return partition

    def update_metadata(self, unit_id: str) -> TimeSeriesIndexMetadata:
        """Rebuild ``index-metadata.json`` from the partitions on disk."""
        validate_unit_id(unit_id)
        available: list[str] = []
        total = 0
        for program_year in self.list_program_years(unit_id):
            partition = self.read_program_year(unit_id, program_year)
            if partition is not None:
                available.append(program_year)
                total += len(partition.data_points)

        metadata = TimeSeriesIndexMetadata(
            unit_id=unit_id,
            last_updated=utc_now_iso(),
            available_program_years=available,
            total_data_points=total,
        )
        write_json_atomic(self.metadata_path(unit_id), metadata.to_dict())
        logger.info(
            "time_series_metadata_updated",
            unit_id=unit_id,
            program_years=len(available),
            total_data_points=total,
        )
        return metadata


__all__ = [
    "TimeSeriesIndexWriter",
    "INDEX_METADATA_FILE",
    "validate_unit_id",
    "validate_date",
]
