"""
Raw CSV cache written by the collector.

    raw-csv/{date}/all-units.csv
    raw-csv/{date}/unit-{id}/{report}.csv
    raw-csv/{date}/metadata.json

``metadata.json`` is rewritten after every file so that it always
describes what is on disk: which reports exist, their checksums, and the
closing-period flags the dashboard reported. The transform stage reads
the closing-period fields from here.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

from perfspine.core.hashing import sha256_text
from perfspine.core.logging import get_logger
from perfspine.core.program_year import program_year_for
from perfspine.core.storage import write_json_atomic, write_text_atomic
from perfspine.snapshots.builder import ALL_UNITS_REPORT, ReportType
from perfspine.snapshots.store import SnapshotStore

logger = get_logger(__name__)

CACHE_VERSION = 1
CACHE_SOURCE = "collector"

_CSV_FILE_KEYS = {
    ReportType.CLUB_PERFORMANCE: "clubPerformance",
    ReportType.DIVISION_PERFORMANCE: "divisionPerformance",
    ReportType.UNIT_PERFORMANCE: "unitPerformance",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


class RawCacheWriter:
    """Writes collector output and its metadata into the raw cache."""

    def __init__(self, cache_dir: str | Path):
        self.store = SnapshotStore(cache_dir)

    def report_path(self, date: str, report_type: str, unit_id: str | None = None) -> Path:
        if unit_id is None:
            return self.store.raw_dir(date) / f"{ALL_UNITS_REPORT}.csv"
        return self.store.raw_unit_dir(date, unit_id) / f"{report_type}.csv"

    def has_cached(self, date: str, report_type: str, unit_id: str | None = None) -> bool:
        return self.report_path(date, report_type, unit_id).is_file()

    def has_cached_unit(self, date: str, unit_id: str) -> bool:
        """True when every per-unit report for ``unit_id`` is already on disk."""
        return all(self.has_cached(date, t, unit_id) for t in ReportType.ALL)

    # ── Metadata ─────────────────────────────────────────────────

    def _new_metadata(self, date: str) -> dict[str, Any]:
        return {
            "date": date,
            "timestamp": _now_ms(),
            "programYear": program_year_for(date),
            "isClosingPeriod": False,
            "csvFiles": {"allUnits": False, "units": {}},
            "downloadStats": {"totalDownloads": 0, "cacheHits": 0, "cacheMisses": 0, "lastAccessed": _now_ms()},
            "integrity": {"checksums": {}, "totalSize": 0, "fileCount": 0},
            "source": CACHE_SOURCE,
            "cacheVersion": CACHE_VERSION,
        }

    def read_metadata(self, date: str) -> dict[str, Any]:
        """Existing metadata for ``date``, or a fresh skeleton."""
        payload = self.store.read_raw_metadata(date)
        if not payload:
            return self._new_metadata(date)
        return payload

    def save_metadata(self, date: str, metadata: dict[str, Any]) -> None:
        integrity = metadata.setdefault("integrity", {"checksums": {}})
        integrity["fileCount"] = len(integrity.get("checksums", {}))
        metadata["timestamp"] = _now_ms()
        write_json_atomic(self.store.raw_metadata_path(date), metadata)

    def record_cache_hit(self, date: str) -> None:
        metadata = self.read_metadata(date)
        stats = metadata.setdefault("downloadStats", {})
        stats["cacheHits"] = int(stats.get("cacheHits", 0)) + 1
        stats["lastAccessed"] = _now_ms()
        self.save_metadata(date, metadata)

    # ── Writes ───────────────────────────────────────────────────

    def write_report(
        self,
        date: str,
        report_type: str,
        csv_text: str,
        unit_id: str | None = None,
        *,
        requested_date: str | None = None,
        is_closing_period: bool | None = None,
        data_month: str | None = None,
    ) -> Path:
        """Atomically store one CSV and fold it into ``metadata.json``."""
        path = write_text_atomic(self.report_path(date, report_type, unit_id), csv_text)

        metadata = self.read_metadata(date)
        if requested_date:
            metadata["requestedDate"] = requested_date
        if is_closing_period is not None:
            metadata["isClosingPeriod"] = is_closing_period
        if data_month:
            metadata["dataMonth"] = data_month

        csv_files = metadata.setdefault("csvFiles", {"allUnits": False, "units": {}})
        if unit_id is None:
            csv_files["allUnits"] = True
        else:
            unit_files = csv_files.setdefault("units", {}).setdefault(
                unit_id, {key: False for key in _CSV_FILE_KEYS.values()}
            )
            unit_files[_CSV_FILE_KEYS.get(report_type, report_type)] = True

        relative = path.relative_to(self.store.raw_dir(date)).as_posix()
        integrity = metadata.setdefault("integrity", {"checksums": {}, "totalSize": 0})
        checksums = integrity.setdefault("checksums", {})
        size = len(csv_text.encode("utf-8"))
        previous_size = integrity.setdefault("sizes", {}).get(relative, 0)
        checksums[relative] = sha256_text(csv_text)
        integrity["sizes"][relative] = size
        integrity["totalSize"] = int(integrity.get("totalSize", 0)) - previous_size + size

        stats = metadata.setdefault("downloadStats", {})
        stats["totalDownloads"] = int(stats.get("totalDownloads", 0)) + 1
        stats["cacheMisses"] = int(stats.get("cacheMisses", 0)) + 1
        stats["lastAccessed"] = _now_ms()

        self.save_metadata(date, metadata)
        logger.debug(
            "raw_report_cached",
            date=date,
            unit_id=unit_id,
            report_type=report_type,
            size=size,
        )
        return path


__all__ = ["RawCacheWriter", "CACHE_VERSION", "CACHE_SOURCE"]
