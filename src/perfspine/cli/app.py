"""
Root Typer application for the perfspine CLI.

    perfspine transform 2025-01-05 [--unit 42 ...] [--force] [--json]
    perfspine compute 2025-01-05 [--unit 42 ...] [--force] [--json]
    perfspine scrape --fetcher mypkg.fetch:DashboardFetcher [--date ...]
    perfspine status [--json]

Global options set the cache directory and logging; everything else comes
from ``PERFSPINE_*`` environment variables via :class:`PerfSpineSettings`.
Logs go to stderr so ``--json`` output on stdout stays machine-readable.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.table import Table

from perfspine.core.errors import PerfSpineError
from perfspine.core.logging import configure_logging
from perfspine.core.settings import PerfSpineSettings
from perfspine.core.timestamps import is_iso_date

from perfspine.cli.utils import console, err_console, load_fetcher, output_dict, output_run

app = typer.Typer(
    name="perfspine",
    help="perfspine: collect, snapshot and analyze unit performance data.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from perfspine import __version__

        typer.echo(f"perfspine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    cache_dir: Path | None = typer.Option(
        None, "--cache-dir", "-c", help="Cache root (default: $PERFSPINE_CACHE_DIR or ./cache)."
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
    json_logs: bool | None = typer.Option(None, "--json-logs/--console-logs", help="Log format."),
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """perfspine CLI: transform, compute, scrape and inspect the cache."""
    overrides = {
        key: value
        for key, value in (("cache_dir", cache_dir), ("log_level", log_level), ("json_logs", json_logs))
        if value is not None
    }
    settings = PerfSpineSettings(**overrides)
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    ctx.obj = settings


def _settings(ctx: typer.Context) -> PerfSpineSettings:
    return ctx.obj if isinstance(ctx.obj, PerfSpineSettings) else PerfSpineSettings()


def _require_date(value: str) -> str:
    if not is_iso_date(value):
        raise typer.BadParameter(f"Expected YYYY-MM-DD, got {value!r}", param_hint="DATE")
    return value


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def transform(
    ctx: typer.Context,
    date: str = typer.Argument(..., help="Collection date, YYYY-MM-DD."),
    units: list[str] | None = typer.Option(None, "--unit", "-u", help="Unit id; repeat for several."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite snapshots and bypass newer-data-wins."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Build unit snapshots from the raw CSV cache."""
    from perfspine.snapshots.transform import TransformService

    service = TransformService(_settings(ctx).cache_dir)
    result = service.transform(_require_date(date), units=units or None, force=force)
    output_run(result.to_dict(), as_json=json_out, title=f"Transform {date}")


@app.command()
def compute(
    ctx: typer.Context,
    date: str = typer.Argument(..., help="Requested date, YYYY-MM-DD."),
    units: list[str] | None = typer.Option(None, "--unit", "-u", help="Unit id; repeat for several."),
    force: bool = typer.Option(False, "--force", "-f", help="Recompute even if snapshots are unchanged."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Compute analytics artifacts for a snapshot date."""
    from perfspine.analytics.engine import AnalyticsComputeEngine

    engine = AnalyticsComputeEngine(_settings(ctx).cache_dir)
    result = engine.compute(_require_date(date), units=units or None, force=force)
    output_run(result.to_dict(), as_json=json_out, title=f"Compute {date}")


@app.command()
def scrape(
    ctx: typer.Context,
    fetcher: str = typer.Option(..., "--fetcher", help="Fetcher import path, module:attr."),
    date: str | None = typer.Option(None, "--date", "-d", help="Target date (default: today, UTC)."),
    units: list[str] | None = typer.Option(None, "--unit", "-u", help="Unit id; repeat for several."),
    force: bool = typer.Option(False, "--force", "-f", help="Re-download cached reports."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Download dashboard reports into the raw CSV cache."""
    from perfspine.collection.orchestrator import CollectionOrchestrator

    settings = _settings(ctx)
    orchestrator = CollectionOrchestrator(load_fetcher(fetcher), settings.cache_dir, settings=settings)
    try:
        result = asyncio.run(
            orchestrator.scrape(
                date=_require_date(date) if date else None,
                units=units or None,
                force=force,
            )
        )
    except PerfSpineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        raise typer.Exit(code=1) from e
    output_run(result.to_dict(), as_json=json_out, title=f"Scrape {result.date}")


@app.command()
def status(
    ctx: typer.Context,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the latest-successful pointer, snapshot dates and unit config."""
    from perfspine.collection.unit_config import UnitConfigLoader
    from perfspine.snapshots.store import SnapshotStore

    settings = _settings(ctx)
    store = SnapshotStore(settings.cache_dir)
    try:
        config = UnitConfigLoader(settings.resolved_unit_config_path).load()
    except PerfSpineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        raise typer.Exit(code=1) from e

    dates = store.list_snapshot_dates()
    data = {
        "cacheDir": str(settings.cache_dir),
        "latestSuccessful": store.latest_successful(),
        "snapshotDates": dates,
        "configuredUnits": config.configured_units,
        "configVersion": config.version,
    }
    if json_out:
        output_dict(data, as_json=True)
        return

    output_dict(
        {k: v for k, v in data.items() if k != "snapshotDates"},
        title="perfspine status",
    )
    if dates:
        table = Table(title="Snapshots", pad_edge=False)
        table.add_column("date")
        table.add_column("units", justify="right")
        table.add_column("status")
        for snapshot_date in dates[-20:]:
            try:
                metadata = store.read_run_metadata(snapshot_date)
                run_status = metadata.status.value if metadata else "-"
            except PerfSpineError:
                run_status = "unreadable"
            table.add_row(
                snapshot_date,
                str(len(store.discover_snapshot_units(snapshot_date))),
                run_status,
            )
        console.print(table)
    else:
        console.print("[dim]No snapshots.[/dim]")


__all__ = ["app"]
