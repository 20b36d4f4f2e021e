"""Per-unit, program-year-partitioned time-series index."""

from perfspine.timeseries.builder import TimeSeriesDataPointBuilder
from perfspine.timeseries.models import (
    ClubCounts,
    ProgramYearIndexFile,
    ProgramYearSummary,
    TimeSeriesDataPoint,
    TimeSeriesIndexMetadata,
)
from perfspine.timeseries.writer import TimeSeriesIndexWriter

__all__ = [
    "ClubCounts",
    "ProgramYearIndexFile",
    "ProgramYearSummary",
    "TimeSeriesDataPoint",
    "TimeSeriesDataPointBuilder",
    "TimeSeriesIndexMetadata",
    "TimeSeriesIndexWriter",
]
