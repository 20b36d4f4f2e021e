"""
Analytics artifact files and the per-date analytics manifest.

Every artifact is wrapped in the same envelope::

    {
      "metadata": {
        "schemaVersion": "1.0.0",
        "computedAt": "...",
        "snapshotDate": "2024-12-31",
        "unitId": "42",
        "checksum": "<sha256 of canonical data>",
        "sourceSnapshotChecksum": "<sha256 of unit_42.json bytes>"
      },
      "data": {...}
    }

``sourceSnapshotChecksum`` is what makes recomputation checksum-gated: the
engine compares it with the checksum of the snapshot file it is about to
read and skips the unit when they match.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from perfspine.core.errors import ParseError
from perfspine.core.hashing import checksum_payload, sha256_file
from perfspine.core.logging import get_logger
from perfspine.core.storage import read_json, write_json_atomic
from perfspine.core.timestamps import utc_now_iso
from perfspine.snapshots.store import MANIFEST_FILE, SnapshotStore

logger = get_logger(__name__)

ANALYTICS_SCHEMA_VERSION = "1.0.0"


class ArtifactType(str, Enum):
    """Artifact kinds, in the order the engine writes them."""

    ANALYTICS = "analytics"
    MEMBERSHIP = "membership"
    CLUB_HEALTH = "clubhealth"
    VULNERABLE_CLUBS = "vulnerable-clubs"
    LEADERSHIP = "leadership-insights"
    DISTINGUISHED = "distinguished-analytics"
    YEAR_OVER_YEAR = "year-over-year"
    PERFORMANCE_TARGETS = "performance-targets"
    CLUB_TRENDS_INDEX = "club-trends-index"


# Its sourceSnapshotChecksum gates the whole unit
SENTINEL_ARTIFACT = ArtifactType.ANALYTICS


def artifact_file_name(unit_id: str, artifact_type: ArtifactType) -> str:
    return f"unit_{unit_id}_{artifact_type.value}.json"


@dataclass
class ArtifactMetadata:
    snapshot_date: str
    unit_id: str
    checksum: str
    source_snapshot_checksum: str
    computed_at: str = field(default_factory=utc_now_iso)
    schema_version: str = ANALYTICS_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "computedAt": self.computed_at,
            "snapshotDate": self.snapshot_date,
            "unitId": self.unit_id,
            "checksum": self.checksum,
            "sourceSnapshotChecksum": self.source_snapshot_checksum,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ArtifactMetadata:
        return cls(
            snapshot_date=payload.get("snapshotDate", ""),
            unit_id=str(payload.get("unitId", "")),
            checksum=payload.get("checksum", ""),
            source_snapshot_checksum=payload.get("sourceSnapshotChecksum", ""),
            computed_at=payload.get("computedAt", ""),
            schema_version=payload.get("schemaVersion", ANALYTICS_SCHEMA_VERSION),
        )


@dataclass
class ManifestFile:
    filename: str
    unit_id: str
    type: str
    size: int
    checksum: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "unitId": self.unit_id,
            "type": self.type,
            "size": self.size,
            "checksum": self.checksum,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ManifestFile:
        return cls(
            filename=payload["filename"],
            unit_id=str(payload["unitId"]),
            type=payload["type"],
            size=int(payload.get("size", 0)),
            checksum=payload.get("checksum", ""),
        )


@dataclass
class AnalyticsManifest:
    """Every artifact file at one snapshot date. Totals are derived, never stored separately."""

    snapshot_date: str
    generated_at: str
    files: list[ManifestFile] = field(default_factory=list)
    schema_version: str = ANALYTICS_SCHEMA_VERSION

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshotDate": self.snapshot_date,
            "generatedAt": self.generated_at,
            "schemaVersion": self.schema_version,
            "files": [f.to_dict() for f in self.files],
            "totalFiles": self.total_files,
            "totalSize": self.total_size,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> AnalyticsManifest:
        return cls(
            snapshot_date=payload["snapshotDate"],
            generated_at=payload.get("generatedAt", ""),
            files=[ManifestFile.from_dict(f) for f in payload.get("files", [])],
            schema_version=payload.get("schemaVersion", ANALYTICS_SCHEMA_VERSION),
        )


class AnalyticsWriter:
    """Reads and writes the ``snapshots/{date}/analytics`` directory."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    def artifact_path(self, snapshot_date: str, unit_id: str, artifact_type: ArtifactType) -> Path:
        return self.store.analytics_dir(snapshot_date) / artifact_file_name(unit_id, artifact_type)

    def manifest_path(self, snapshot_date: str) -> Path:
        return self.store.analytics_dir(snapshot_date) / MANIFEST_FILE

    def write_artifact(
        self,
        snapshot_date: str,
        unit_id: str,
        artifact_type: ArtifactType,
        data: dict[str, Any],
        source_snapshot_checksum: str,
    ) -> Path:
        metadata = ArtifactMetadata(
            snapshot_date=snapshot_date,
            unit_id=unit_id,
            checksum=checksum_payload(data),
            source_snapshot_checksum=source_snapshot_checksum,
        )
        path = write_json_atomic(
            self.artifact_path(snapshot_date, unit_id, artifact_type),
            {"metadata": metadata.to_dict(), "data": data},
        )
        logger.debug("analytics_artifact_written", unit_id=unit_id, type=artifact_type.value)
        return path

    def read_metadata(
        self, snapshot_date: str, unit_id: str, artifact_type: ArtifactType
    ) -> ArtifactMetadata | None:
        """Envelope metadata of an existing artifact; None if missing or unreadable."""
        path = self.artifact_path(snapshot_date, unit_id, artifact_type)
        try:
            payload = read_json(path)
        except ParseError as e:
            logger.warning("analytics_artifact_unreadable", path=str(path), error=str(e))
            return None
        if not isinstance(payload, dict) or not isinstance(payload.get("metadata"), dict):
            return None
        return ArtifactMetadata.from_dict(payload["metadata"])

    def read_artifact(
        self, snapshot_date: str, unit_id: str, artifact_type: ArtifactType
    ) -> dict[str, Any] | None:
        payload = read_json(self.artifact_path(snapshot_date, unit_id, artifact_type))
        if payload is None:
            return None
        return payload.get("data")

    def build_manifest(self, snapshot_date: str) -> AnalyticsManifest:
        """Scan the analytics directory for every artifact on disk."""
        directory = self.store.analytics_dir(snapshot_date)
        files: list[ManifestFile] = []
        known = {t.value for t in ArtifactType}
        if directory.is_dir():
            for path in sorted(directory.glob("unit_*.json")):
                unit_id, _, artifact_type = path.stem.removeprefix("unit_").partition("_")
                if artifact_type not in known:
                    continue
                files.append(
                    ManifestFile(
                        filename=path.name,
                        unit_id=unit_id,
                        type=artifact_type,
                        size=path.stat().st_size,
                        checksum=sha256_file(path),
                    )
                )
        return AnalyticsManifest(
            snapshot_date=snapshot_date,
            generated_at=utc_now_iso(),
            files=files,
        )

    def write_manifest(self, snapshot_date: str) -> AnalyticsManifest:
        manifest = self.build_manifest(snapshot_date)
        write_json_atomic(self.manifest_path(snapshot_date), manifest.to_dict())
        logger.info(
            "analytics_manifest_written",
            snapshot_date=snapshot_date,
            total_files=manifest.total_files,
            total_size=manifest.total_size,
        )
        return manifest

    def read_manifest(self, snapshot_date: str) -> AnalyticsManifest | None:
        payload = read_json(self.manifest_path(snapshot_date))
        if payload is None:
            return None
        return AnalyticsManifest.from_dict(payload)


__all__ = [
    "ANALYTICS_SCHEMA_VERSION",
    "ArtifactType",
    "SENTINEL_ARTIFACT",
    "ArtifactMetadata",
    "ManifestFile",
    "AnalyticsManifest",
    "AnalyticsWriter",
    "artifact_file_name",
]
