"""
Cache directory layout and the latest-successful pointer.

    CACHE_DIR/
      raw-csv/{date}/metadata.json                 raw collection metadata
      raw-csv/{date}/unit-{id}/{report}.csv        collector output
      snapshots/{date}/unit_{id}.json              UnitSnapshot
      snapshots/{date}/metadata.json               SnapshotRunMetadata
      snapshots/{date}/manifest.json               SnapshotManifest
      snapshots/{date}/all-units-rankings.json     cross-unit rankings (optional)
      snapshots/{date}/analytics/unit_{id}_*.json  analytics artifacts
      snapshots/{date}/analytics/manifest.json     AnalyticsManifest
      snapshots/latest-successful.json             SnapshotPointer
      time-series/unit_{id}/{programYear}.json     ProgramYearIndexFile
      time-series/unit_{id}/index-metadata.json    TimeSeriesIndexMetadata

:class:`SnapshotStore` owns the path arithmetic for all of it so no other
module builds cache paths by hand.

The pointer is forward-only: an update whose ``snapshotId`` sorts before
the current one is ignored (dates are zero-padded ISO strings, so string
order is chronological order). Equal ids are a no-op. Only ``force``
may move the pointer backwards.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from perfspine.core.errors import ParseError
from perfspine.core.logging import get_logger
from perfspine.core.storage import read_json, write_json_atomic
from perfspine.core.timestamps import is_iso_date, utc_now_iso
from perfspine.snapshots.models import (
    SnapshotManifest,
    SnapshotPointer,
    SnapshotRunMetadata,
    UnitSnapshot,
)

logger = get_logger(__name__)

POINTER_FILE = "latest-successful.json"
RUN_METADATA_FILE = "metadata.json"
MANIFEST_FILE = "manifest.json"
RANKINGS_FILE = "all-units-rankings.json"
ANALYTICS_DIR = "analytics"

_UNIT_FILE = re.compile(r"^unit_([A-Za-z0-9]+)\.json$")
_RAW_UNIT_DIR = re.compile(r"^unit-([A-Za-z0-9]+)$")


def sort_unit_ids(unit_ids: list[str]) -> list[str]:
    """Numeric order when every id is numeric, otherwise lexicographic."""
    if all(u.isdigit() for u in unit_ids):
        return sorted(unit_ids, key=int)
    return sorted(unit_ids)


class SnapshotStore:
    """Path helpers and small readers/writers over one cache directory.

    Args:
        cache_dir: Root of the cache layout
    """

    def __init__(self, cache_dir: str | Path):
        self.cache_dir = Path(cache_dir)

    # ── Paths ────────────────────────────────────────────────────

    @property
    def snapshots_root(self) -> Path:
        return self.cache_dir / "snapshots"

    @property
    def raw_root(self) -> Path:
        return self.cache_dir / "raw-csv"

    @property
    def time_series_root(self) -> Path:
        return self.cache_dir / "time-series"

    @property
    def pointer_path(self) -> Path:
        return self.snapshots_root / POINTER_FILE

    def raw_dir(self, date: str) -> Path:
        return self.raw_root / date

    def raw_unit_dir(self, date: str, unit_id: str) -> Path:
        return self.raw_dir(date) / f"unit-{unit_id}"

    def raw_metadata_path(self, date: str) -> Path:
        return self.raw_dir(date) / RUN_METADATA_FILE

    def snapshot_dir(self, date: str) -> Path:
        return self.snapshots_root / date

    def unit_snapshot_path(self, date: str, unit_id: str) -> Path:
        return self.snapshot_dir(date) / f"unit_{unit_id}.json"

    def run_metadata_path(self, date: str) -> Path:
        return self.snapshot_dir(date) / RUN_METADATA_FILE

    def manifest_path(self, date: str) -> Path:
        return self.snapshot_dir(date) / MANIFEST_FILE

    def rankings_path(self, date: str) -> Path:
        return self.snapshot_dir(date) / RANKINGS_FILE

    def analytics_dir(self, date: str) -> Path:
        return self.snapshot_dir(date) / ANALYTICS_DIR

    # ── Discovery ────────────────────────────────────────────────

    def list_snapshot_dates(self) -> list[str]:
        """Snapshot dates present on disk, oldest first."""
        if not self.snapshots_root.is_dir():
            return []
        return sorted(
            p.name for p in self.snapshots_root.iterdir() if p.is_dir() and is_iso_date(p.name)
        )

    def discover_raw_units(self, date: str) -> list[str]:
        """Unit ids with a ``raw-csv/{date}/unit-{id}`` directory."""
        raw = self.raw_dir(date)
        if not raw.is_dir():
            logger.warning("raw_directory_missing", date=date, path=str(raw))
            return []
        ids = [
            m.group(1)
            for p in raw.iterdir()
            if p.is_dir() and (m := _RAW_UNIT_DIR.match(p.name))
        ]
        return sort_unit_ids(ids)

    def discover_snapshot_units(self, date: str) -> list[str]:
        """Unit ids with a snapshot file at ``date``."""
        directory = self.snapshot_dir(date)
        if not directory.is_dir():
            return []
        ids = [
            m.group(1)
            for p in directory.iterdir()
            if p.is_file() and (m := _UNIT_FILE.match(p.name))
        ]
        return sort_unit_ids(ids)

    def snapshot_exists(self, date: str, unit_id: str) -> bool:
        return self.unit_snapshot_path(date, unit_id).is_file()

    def has_snapshot_dir(self, date: str) -> bool:
        return self.snapshot_dir(date).is_dir()

    def has_snapshot(self, date: str) -> bool:
        """A transform ran for ``date``: run metadata or at least one unit file.

        A directory holding only a rankings file or analytics output is not a
        snapshot.
        """
        if self.run_metadata_path(date).is_file():
            return True
        return bool(self.discover_snapshot_units(date))

    # ── Readers ──────────────────────────────────────────────────

    def read_unit_snapshot(self, date: str, unit_id: str) -> UnitSnapshot | None:
        payload = read_json(self.unit_snapshot_path(date, unit_id))
        if payload is None:
            return None
        return UnitSnapshot.from_dict(payload)

    def read_run_metadata(self, date: str) -> SnapshotRunMetadata | None:
        payload = read_json(self.run_metadata_path(date))
        if payload is None:
            return None
        return SnapshotRunMetadata.from_dict(payload)

    def read_manifest(self, date: str) -> SnapshotManifest | None:
        payload = read_json(self.manifest_path(date))
        if payload is None:
            return None
        return SnapshotManifest.from_dict(payload)

    def read_raw_metadata(self, date: str) -> dict[str, Any] | None:
        """Raw collection metadata, or None when missing or unreadable."""
        try:
            payload = read_json(self.raw_metadata_path(date))
        except ParseError as e:
            logger.warning("raw_metadata_unreadable", date=date, error=str(e))
            return None
        if payload is not None and not isinstance(payload, dict):
            logger.warning("raw_metadata_unreadable", date=date, error="not a JSON object")
            return None
        return payload

    # ── Pointer ──────────────────────────────────────────────────

    def read_pointer(self) -> SnapshotPointer | None:
        try:
            payload = read_json(self.pointer_path)
        except ParseError as e:
            logger.warning("pointer_unreadable", path=str(self.pointer_path), error=str(e))
            return None
        if payload is None:
            return None
        return SnapshotPointer.from_dict(payload)

    def latest_successful(self) -> str | None:
        """Snapshot id the pointer currently names."""
        pointer = self.read_pointer()
        return pointer.snapshot_id if pointer else None

    def update_pointer(self, snapshot_id: str, *, force: bool = False) -> bool:
        """Move the pointer to ``snapshot_id`` if that is not a regression.

        Returns:
            True if the pointer file was written.
        """
        current = self.read_pointer()
        if current is not None and not force:
            if current.snapshot_id > snapshot_id:
                logger.info(
                    "pointer_update_skipped_older",
                    current=current.snapshot_id,
                    candidate=snapshot_id,
                )
                return False
            if current.snapshot_id == snapshot_id:
                return False

        pointer = SnapshotPointer(snapshot_id=snapshot_id, updated_at=utc_now_iso())
        write_json_atomic(self.pointer_path, pointer.to_dict())
        logger.info(
            "pointer_updated",
            snapshot_id=snapshot_id,
            previous=current.snapshot_id if current else None,
        )
        return True


__all__ = [
    "SnapshotStore",
    "sort_unit_ids",
    "POINTER_FILE",
    "RUN_METADATA_FILE",
    "MANIFEST_FILE",
    "RANKINGS_FILE",
    "ANALYTICS_DIR",
]
