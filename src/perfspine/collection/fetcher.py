"""
Fetcher protocol.

Talking to the dashboard (HTTP, a headless browser, a file drop) lives
outside perfspine. The orchestrator needs only two coroutines and retries
and circuit-breaks around them. Implementations signal transient trouble
by raising :class:`~perfspine.core.errors.NetworkError` or
:class:`~perfspine.core.errors.RateLimitError`; anything raising
:class:`~perfspine.core.errors.SourceNotFoundError` is not retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class FetchedReport:
    """One downloaded CSV plus what the dashboard said about it.

    ``data_month`` / ``is_closing_period`` are set when the page showed that
    it was still serving the previous month's figures.
    """

    csv_text: str
    data_month: str | None = None
    is_closing_period: bool | None = None


@runtime_checkable
class Fetcher(Protocol):
    async def fetch_all_units(self, date: str) -> FetchedReport:
        """The unit-independent summary report for ``date``."""
        ...

    async def fetch_report(self, unit_id: str, report_type: str, date: str) -> FetchedReport:
        """One per-unit report (see :class:`~perfspine.snapshots.builder.ReportType`)."""
        ...


__all__ = ["Fetcher", "FetchedReport"]
