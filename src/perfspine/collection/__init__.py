"""
Collection of raw dashboard reports into the raw CSV cache.

The fetcher itself is external; this package supplies the unit
configuration, the raw cache writer and the breaker-guarded orchestrator.
"""

from perfspine.collection.fetcher import FetchedReport, Fetcher
from perfspine.collection.orchestrator import CollectionOrchestrator, ScrapeResult
from perfspine.collection.raw_cache import RawCacheWriter
from perfspine.collection.unit_config import UnitConfigLoader, UnitConfiguration

__all__ = [
    "CollectionOrchestrator",
    "ScrapeResult",
    "Fetcher",
    "FetchedReport",
    "RawCacheWriter",
    "UnitConfigLoader",
    "UnitConfiguration",
]
