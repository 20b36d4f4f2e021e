"""
perfspine - periodic performance snapshot collection, caching and analytics.

Pipeline stages, in data-flow order:

    collection  -> raw CSV cache        (CollectionOrchestrator)
    snapshots   -> per-unit snapshots   (TransformService)
    analytics   -> derived artifacts    (AnalyticsComputeEngine)
    timeseries  -> program-year index   (TimeSeriesIndexWriter)

Every stage reads and writes a single cache directory whose layout is
described in :mod:`perfspine.snapshots.store`.
"""

__version__ = "0.1.0"
