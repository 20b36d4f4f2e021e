"""
Snapshot cache: tagged per-unit snapshots, run metadata, manifests and the
forward-only latest-successful pointer.
"""

from perfspine.snapshots.builder import CsvStatisticsBuilder, StatisticsBuilder
from perfspine.snapshots.models import (
    ManifestEntry,
    RunError,
    RunStatus,
    SnapshotManifest,
    SnapshotPointer,
    SnapshotRunMetadata,
    UnitSnapshot,
)
from perfspine.snapshots.store import SnapshotStore
from perfspine.snapshots.transform import TransformResult, TransformService

__all__ = [
    "CsvStatisticsBuilder",
    "StatisticsBuilder",
    "ManifestEntry",
    "RunError",
    "RunStatus",
    "SnapshotManifest",
    "SnapshotPointer",
    "SnapshotRunMetadata",
    "UnitSnapshot",
    "SnapshotStore",
    "TransformResult",
    "TransformService",
]
