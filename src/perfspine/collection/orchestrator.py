"""
Collection stage: dashboard -> raw CSV cache.

One run for one date:

1. resolve the unit list (explicit list as given, else the unit config);
2. abort immediately if the breaker is open;
3. fetch the all-units summary (best effort);
4. for each unit, sequentially: stop if the breaker has opened, skip on a
   cache hit, otherwise fetch the unit's reports through
   ``breaker.execute(execute_with_retry(...))`` and cache them;
5. record a run summary in ``raw-csv/{date}/metadata.json``.

Units are never fetched concurrently. The dashboard rate-limits per client
and the breaker must see one failure history.

Example:
    >>> orchestrator = CollectionOrchestrator(fetcher, cache_dir="/var/lib/perfspine")
    >>> result = await orchestrator.scrape(date="2025-01-05")
    >>> result.units_succeeded, result.units_failed
    (['42', '61'], ['F'])
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from perfspine.collection.fetcher import FetchedReport, Fetcher
from perfspine.collection.raw_cache import RawCacheWriter
from perfspine.collection.unit_config import UnitConfigLoader
from perfspine.core.errors import PerfSpineError, ValidationError
from perfspine.core.logging import LogContext, get_logger
from perfspine.core.settings import PerfSpineSettings
from perfspine.core.timestamps import is_iso_date, start_timer, today_iso, utc_now_iso
from perfspine.execution.circuit_breaker import CircuitBreaker
from perfspine.execution.retry import ExponentialBackoff, execute_with_retry
from perfspine.snapshots.builder import ALL_UNITS_REPORT, ReportType
from perfspine.snapshots.models import RunError

logger = get_logger(__name__)

BREAKER_SKIP_MESSAGE = "Skipped due to circuit breaker opening"
CANCELLED_MESSAGE = "Skipped because the run was cancelled"


@dataclass
class ScrapeResult:
    """Outcome of :meth:`CollectionOrchestrator.scrape`.

    Cache hits count as succeeded (there is nothing left to fetch);
    ``units_skipped`` holds units never attempted because the breaker
    opened or the run was cancelled.
    """

    success: bool
    date: str
    units_processed: list[str] = field(default_factory=list)
    units_succeeded: list[str] = field(default_factory=list)
    units_failed: list[str] = field(default_factory=list)
    units_skipped: list[str] = field(default_factory=list)
    cache_locations: list[str] = field(default_factory=list)
    errors: list[RunError] = field(default_factory=list)
    duration_ms: int = 0
    circuit_breaker: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "date": self.date,
            "unitsProcessed": self.units_processed,
            "unitsSucceeded": self.units_succeeded,
            "unitsFailed": self.units_failed,
            "unitsSkipped": self.units_skipped,
            "cacheLocations": self.cache_locations,
            "errors": [e.to_dict() for e in self.errors],
            "duration_ms": self.duration_ms,
            "circuitBreaker": self.circuit_breaker,
        }


class CollectionOrchestrator:
    """Sequential, breaker-guarded collection into the raw cache.

    Args:
        fetcher: Dashboard access (see :class:`~perfspine.collection.fetcher.Fetcher`)
        cache_dir: Root of the cache layout (defaults to ``settings.cache_dir``)
        settings: Breaker, backoff and unit-config settings
        breaker: Shared breaker; one is built from ``settings`` when omitted
        backoff: Retry policy; built from ``settings`` when omitted
        sleep: Awaitable sleep used between retries
    """

    def __init__(
        self,
        fetcher: Fetcher,
        cache_dir: str | Path | None = None,
        *,
        settings: PerfSpineSettings | None = None,
        breaker: CircuitBreaker | None = None,
        backoff: ExponentialBackoff | None = None,
        unit_config: UnitConfigLoader | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        settings = settings or PerfSpineSettings()
        self.fetcher = fetcher
        self.cache = RawCacheWriter(cache_dir if cache_dir is not None else settings.cache_dir)
        self.breaker = breaker or CircuitBreaker(
            name="dashboard",
            failure_threshold=settings.failure_threshold,
            recovery_timeout=settings.recovery_timeout,
        )
        self.backoff = backoff or ExponentialBackoff.from_settings(settings)
        self.unit_config = unit_config or UnitConfigLoader(settings.resolved_unit_config_path)
        self._sleep = sleep
        self._cancelled = False

    def cancel(self) -> None:
        """Stop before the next unit. The unit in flight finishes."""
        self._cancelled = True

    # ── Run ──────────────────────────────────────────────────────

    async def scrape(
        self,
        date: str | None = None,
        units: list[str] | None = None,
        force: bool = False,
    ) -> ScrapeResult:
        """Collect every unit's reports for ``date`` (default: today, UTC).

        Raises:
            ValidationError: If ``date`` is not ``YYYY-MM-DD``
        """
        timer = start_timer()
        target = date or today_iso()
        if not is_iso_date(target):
            raise ValidationError(f"Invalid date: {target!r} (expected YYYY-MM-DD)")

        self._cancelled = False
        result = ScrapeResult(success=False, date=target)

        with LogContext(run_date=target, stage="scrape"):
            unit_ids = self._resolve_units(units, result)
            if unit_ids is None:
                return self._finish(result, timer.elapsed_ms)

            logger.info("scrape_started", units=len(unit_ids), force=force)

            if not self.breaker.allow_request():
                stats = self.breaker.get_stats()
                retry_at = stats.next_retry_time.isoformat() if stats.next_retry_time else "unknown"
                logger.error(
                    "scrape_aborted_circuit_open",
                    failure_count=stats.failure_count,
                    next_retry_time=retry_at,
                )
                result.units_skipped.extend(unit_ids)
                result.errors.append(
                    RunError("N/A", f"Circuit breaker is open. Next retry at {retry_at}", utc_now_iso())
                )
                return self._finish(result, timer.elapsed_ms)

            await self._scrape_summary(target, force, result)

            for index, unit_id in enumerate(unit_ids):
                if self._cancelled or not self.breaker.allow_request():
                    self._skip_remaining(unit_ids[index:], result)
                    break

                result.units_processed.append(unit_id)
                # A cache hit never contacts the dashboard, so it must not feed the breaker
                if not force and self.cache.has_cached_unit(target, unit_id):
                    logger.info("unit_cache_hit", unit_id=unit_id)
                    self.cache.record_cache_hit(target)
                    result.units_succeeded.append(unit_id)
                    continue

                try:
                    locations = await self.breaker.execute(self._scrape_unit, target, unit_id)
                except Exception as e:
                    logger.error("unit_scrape_failed", unit_id=unit_id, error=str(e))
                    result.units_failed.append(unit_id)
                    result.errors.append(RunError(unit_id, str(e), utc_now_iso()))
                else:
                    result.units_succeeded.append(unit_id)
                    result.cache_locations.extend(locations)

            result.success = not result.units_failed and bool(result.units_succeeded)
            self._write_summary(target, result, timer.elapsed_ms)
            return self._finish(result, timer.elapsed_ms)

    def _resolve_units(self, units: list[str] | None, result: ScrapeResult) -> list[str] | None:
        if units:
            logger.info("using_explicit_unit_list", units=len(units))
            return list(units)

        try:
            unit_ids = self.unit_config.configured_units()
        except PerfSpineError as e:
            logger.error("unit_config_load_failed", error=str(e))
            result.errors.append(
                RunError("N/A", f"Failed to load unit configuration: {e}", utc_now_iso())
            )
            return None

        if not unit_ids:
            logger.warning("no_units_to_scrape")
            result.errors.append(
                RunError("N/A", "No units configured or specified for scraping", utc_now_iso())
            )
            return None
        return unit_ids

    def _skip_remaining(self, remaining: list[str], result: ScrapeResult) -> None:
        message = CANCELLED_MESSAGE if self._cancelled else BREAKER_SKIP_MESSAGE
        logger.warning(
            "scrape_stopped_early",
            reason="cancelled" if self._cancelled else "circuit_open",
            processed=len(result.units_processed),
            remaining=len(remaining),
        )
        for unit_id in remaining:
            result.units_skipped.append(unit_id)
            result.errors.append(RunError(unit_id, message, utc_now_iso()))

    def _finish(self, result: ScrapeResult, elapsed_ms: int) -> ScrapeResult:
        result.duration_ms = elapsed_ms
        result.circuit_breaker = self.breaker.get_stats().to_dict()
        logger.info(
            "scrape_completed",
            success=result.success,
            succeeded=len(result.units_succeeded),
            failed=len(result.units_failed),
            skipped=len(result.units_skipped),
            duration_ms=elapsed_ms,
        )
        return result

    # ── Fetching ─────────────────────────────────────────────────

    async def _with_retry(self, operation: Callable[[], Awaitable[Any]], **context: Any) -> Any:
        outcome = await execute_with_retry(operation, self.backoff, context, sleep=self._sleep)
        # Re-raise so the breaker counts an exhausted retry as one failure
        return outcome.unwrap()

    async def _scrape_summary(self, date: str, force: bool, result: ScrapeResult) -> None:
        if not force and self.cache.has_cached(date, ALL_UNITS_REPORT):
            logger.info("all_units_cache_hit")
            return
        try:
            report: FetchedReport = await self.breaker.execute(
                self._with_retry,
                lambda: self.fetcher.fetch_all_units(date),
                unit_id=ALL_UNITS_REPORT,
                date=date,
            )
            path = self.cache.write_report(
                date,
                ALL_UNITS_REPORT,
                report.csv_text,
                requested_date=date,
                is_closing_period=report.is_closing_period,
                data_month=report.data_month,
            )
        except Exception as e:
            logger.warning("all_units_scrape_failed", error=str(e))
            result.errors.append(RunError(ALL_UNITS_REPORT, str(e), utc_now_iso()))
            return
        result.cache_locations.append(str(path))

    async def _scrape_unit(self, date: str, unit_id: str) -> list[str]:
        """Fetch and cache one unit's reports; returns the written paths."""

        async def fetch_all() -> dict[str, FetchedReport]:
            reports = {}
            for report_type in ReportType.ALL:
                reports[report_type] = await self.fetcher.fetch_report(unit_id, report_type, date)
            return reports

        # All reports are fetched before any is written so a unit is cached whole or not at all
        reports = await self._with_retry(fetch_all, unit_id=unit_id, date=date)
        locations = []
        for report_type, report in reports.items():
            path = self.cache.write_report(
                date,
                report_type,
                report.csv_text,
                unit_id,
                requested_date=date,
                is_closing_period=report.is_closing_period,
                data_month=report.data_month,
            )
            locations.append(str(path))
        logger.info("unit_scraped", unit_id=unit_id, files=len(locations))
        return locations

    def _write_summary(self, date: str, result: ScrapeResult, elapsed_ms: int) -> None:
        try:
            metadata = self.cache.read_metadata(date)
            metadata["lastCollection"] = {
                "completedAt": utc_now_iso(),
                "success": result.success,
                "unitsSucceeded": result.units_succeeded,
                "unitsFailed": result.units_failed,
                "unitsSkipped": result.units_skipped,
                "errors": [e.to_dict() for e in result.errors],
                "duration_ms": elapsed_ms,
            }
            self.cache.save_metadata(date, metadata)
        except PerfSpineError as e:
            logger.error("scrape_summary_write_failed", error=str(e))
            result.errors.append(RunError("N/A", f"Failed to write metadata: {e}", utc_now_iso()))


__all__ = ["CollectionOrchestrator", "ScrapeResult", "BREAKER_SKIP_MESSAGE", "CANCELLED_MESSAGE"]
