"""
Analytics over unit snapshots.

:class:`AnalyticsComputeEngine` is the entry point; the remaining modules
are pure functions from snapshot content to artifact ``data``.
"""

from perfspine.analytics.engine import AnalyticsComputeEngine, ComputeResult
from perfspine.analytics.rankings import (
    MetricRankings,
    RankedMetric,
    UnitRankings,
    load_rankings,
    world_percentile,
)
from perfspine.analytics.writer import (
    AnalyticsManifest,
    AnalyticsWriter,
    ArtifactMetadata,
    ArtifactType,
    ManifestFile,
)

__all__ = [
    "AnalyticsComputeEngine",
    "ComputeResult",
    "AnalyticsWriter",
    "AnalyticsManifest",
    "ArtifactMetadata",
    "ArtifactType",
    "ManifestFile",
    "MetricRankings",
    "RankedMetric",
    "UnitRankings",
    "load_rankings",
    "world_percentile",
]
