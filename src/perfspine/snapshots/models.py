"""
Snapshot cache records.

Each record is a dataclass with ``to_dict()`` / ``from_dict()`` that map
to the camelCase JSON stored on disk. There is exactly one on-disk shape
per record: the unit snapshot is a tagged envelope (``kind:
"unit-snapshot"``) written once by the transform stage, and the read path
rejects anything else instead of guessing.

    snapshots/{date}/unit_{id}.json     UnitSnapshot
    snapshots/{date}/metadata.json      SnapshotRunMetadata
    snapshots/{date}/manifest.json      SnapshotManifest
    snapshots/latest-successful.json    SnapshotPointer
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from perfspine.core.errors import ParseError

SNAPSHOT_SCHEMA_VERSION = "1.0.0"
CALCULATION_VERSION = "1.0.0"
UNIT_SNAPSHOT_KIND = "unit-snapshot"


class RunStatus(str, Enum):
    """Outcome of a transform run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    @classmethod
    def from_counts(cls, succeeded: int, failed: int) -> RunStatus:
        if failed == 0 and succeeded > 0:
            return cls.SUCCESS
        if succeeded > 0:
            return cls.PARTIAL
        return cls.FAILED


def _require(payload: dict[str, Any], key: str, record: str) -> Any:
    try:
        return payload[key]
    except KeyError:
        raise ParseError(f"{record} is missing required field '{key}'") from None


@dataclass
class UnitSnapshot:
    """One unit's structured statistics for one canonical date.

    ``data`` holds ``clubPerformance``, ``divisionPerformance``,
    ``unitPerformance`` (lists of header-keyed rows) and ``totals``.
    """

    unit_id: str
    snapshot_date: str
    collection_date: str
    created_at: str
    data: dict[str, Any]
    schema_version: str = SNAPSHOT_SCHEMA_VERSION
    calculation_version: str = CALCULATION_VERSION

    @property
    def clubs(self) -> list[dict[str, Any]]:
        return list(self.data.get("clubPerformance") or [])

    @property
    def divisions(self) -> list[dict[str, Any]]:
        return list(self.data.get("divisionPerformance") or [])

    @property
    def totals(self) -> dict[str, Any]:
        return dict(self.data.get("totals") or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": UNIT_SNAPSHOT_KIND,
            "schemaVersion": self.schema_version,
            "calculationVersion": self.calculation_version,
            "unitId": self.unit_id,
            "snapshotDate": self.snapshot_date,
            "collectionDate": self.collection_date,
            "createdAt": self.created_at,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> UnitSnapshot:
        if not isinstance(payload, dict) or payload.get("kind") != UNIT_SNAPSHOT_KIND:
            raise ParseError("Not a unit snapshot (missing or unexpected 'kind')")
        return cls(
            unit_id=str(_require(payload, "unitId", "UnitSnapshot")),
            snapshot_date=_require(payload, "snapshotDate", "UnitSnapshot"),
            collection_date=payload.get("collectionDate") or payload["snapshotDate"],
            created_at=payload.get("createdAt", ""),
            data=dict(_require(payload, "data", "UnitSnapshot")),
            schema_version=payload.get("schemaVersion", SNAPSHOT_SCHEMA_VERSION),
            calculation_version=payload.get("calculationVersion", CALCULATION_VERSION),
        )


@dataclass
class RunError:
    """One timestamped per-unit error, as reported in every result object."""

    unit_id: str
    error: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {"unitId": self.unit_id, "error": self.error, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> RunError:
        return cls(
            unit_id=str(payload.get("unitId", "")),
            error=str(payload.get("error", "")),
            timestamp=str(payload.get("timestamp", "")),
        )


@dataclass
class SnapshotRunMetadata:
    """Summary of one transform run at ``snapshot_id``.

    The closing-period fields are written only for closing-period runs;
    their presence on disk is itself the signal.
    """

    snapshot_id: str
    created_at: str
    status: RunStatus
    configured_units: list[str] = field(default_factory=list)
    successful_units: list[str] = field(default_factory=list)
    failed_units: list[str] = field(default_factory=list)
    errors: list[RunError] = field(default_factory=list)
    processing_duration: int = 0
    data_as_of_date: str = ""
    source: str = "transform"
    schema_version: str = SNAPSHOT_SCHEMA_VERSION
    calculation_version: str = CALCULATION_VERSION
    is_closing_period_data: bool = False
    collection_date: str | None = None
    logical_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "snapshotId": self.snapshot_id,
            "createdAt": self.created_at,
            "schemaVersion": self.schema_version,
            "calculationVersion": self.calculation_version,
            "status": self.status.value,
            "configuredUnits": self.configured_units,
            "successfulUnits": self.successful_units,
            "failedUnits": self.failed_units,
            "errors": [e.to_dict() for e in self.errors],
            "processingDuration": self.processing_duration,
            "source": self.source,
            "dataAsOfDate": self.data_as_of_date,
        }
        if self.is_closing_period_data:
            payload["isClosingPeriodData"] = True
            payload["collectionDate"] = self.collection_date
            payload["logicalDate"] = self.logical_date
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SnapshotRunMetadata:
        return cls(
            snapshot_id=_require(payload, "snapshotId", "SnapshotRunMetadata"),
            created_at=payload.get("createdAt", ""),
            status=RunStatus(payload.get("status", RunStatus.FAILED.value)),
            configured_units=list(payload.get("configuredUnits", [])),
            successful_units=list(payload.get("successfulUnits", [])),
            failed_units=list(payload.get("failedUnits", [])),
            errors=[RunError.from_dict(e) for e in payload.get("errors", [])],
            processing_duration=int(payload.get("processingDuration", 0)),
            data_as_of_date=payload.get("dataAsOfDate", ""),
            source=payload.get("source", "transform"),
            schema_version=payload.get("schemaVersion", SNAPSHOT_SCHEMA_VERSION),
            calculation_version=payload.get("calculationVersion", CALCULATION_VERSION),
            is_closing_period_data=payload.get("isClosingPeriodData") is True,
            collection_date=payload.get("collectionDate"),
            logical_date=payload.get("logicalDate"),
        )


@dataclass
class ManifestEntry:
    """One unit file listed in a :class:`SnapshotManifest`."""

    unit_id: str
    file_name: str
    status: str
    file_size: int = 0
    last_modified: str = ""
    checksum: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "unitId": self.unit_id,
            "fileName": self.file_name,
            "status": self.status,
            "fileSize": self.file_size,
            "lastModified": self.last_modified,
        }
        if self.checksum is not None:
            payload["checksum"] = self.checksum
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ManifestEntry:
        return cls(
            unit_id=str(payload.get("unitId", "")),
            file_name=payload.get("fileName", ""),
            status=payload.get("status", ""),
            file_size=int(payload.get("fileSize", 0)),
            last_modified=payload.get("lastModified", ""),
            checksum=payload.get("checksum"),
            error=payload.get("error"),
        )


@dataclass
class SnapshotManifest:
    """Inventory of the unit files produced by a transform run."""

    snapshot_id: str
    created_at: str
    units: list[ManifestEntry] = field(default_factory=list)

    @property
    def total_units(self) -> int:
        return len(self.units)

    @property
    def successful_units(self) -> int:
        return sum(1 for u in self.units if u.status == "success")

    @property
    def failed_units(self) -> int:
        return sum(1 for u in self.units if u.status != "success")

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshotId": self.snapshot_id,
            "createdAt": self.created_at,
            "units": [u.to_dict() for u in self.units],
            "totalUnits": self.total_units,
            "successfulUnits": self.successful_units,
            "failedUnits": self.failed_units,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SnapshotManifest:
        return cls(
            snapshot_id=_require(payload, "snapshotId", "SnapshotManifest"),
            created_at=payload.get("createdAt", ""),
            units=[ManifestEntry.from_dict(u) for u in payload.get("units", [])],
        )


@dataclass
class SnapshotPointer:
    """Marker for the most recent fully successful snapshot."""

    snapshot_id: str
    updated_at: str
    schema_version: str = SNAPSHOT_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshotId": self.snapshot_id,
            "updatedAt": self.updated_at,
            "schemaVersion": self.schema_version,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SnapshotPointer:
        return cls(
            snapshot_id=_require(payload, "snapshotId", "SnapshotPointer"),
            updated_at=payload.get("updatedAt", ""),
            schema_version=payload.get("schemaVersion", SNAPSHOT_SCHEMA_VERSION),
        )


__all__ = [
    "SNAPSHOT_SCHEMA_VERSION",
    "CALCULATION_VERSION",
    "UNIT_SNAPSHOT_KIND",
    "RunStatus",
    "RunError",
    "UnitSnapshot",
    "SnapshotRunMetadata",
    "ManifestEntry",
    "SnapshotManifest",
    "SnapshotPointer",
]
