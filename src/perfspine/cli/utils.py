"""
CLI output helpers.
"""

from __future__ import annotations

import importlib
import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from perfspine.collection.fetcher import Fetcher

console = Console()
err_console = Console(stderr=True)


# ── Fetcher loading ──────────────────────────────────────────────────────


def load_fetcher(spec: str) -> Fetcher:
    """Resolve ``module:attr`` to a fetcher.

    ``attr`` may be a fetcher instance or a zero-argument factory (a class
    works) returning one.
    """
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise typer.BadParameter(f"Expected 'module:attr', got {spec!r}", param_hint="--fetcher")
    try:
        target = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise typer.BadParameter(f"Cannot load {spec!r}: {e}", param_hint="--fetcher") from e

    if isinstance(target, type) or (callable(target) and not isinstance(target, Fetcher)):
        fetcher = target()
    else:
        fetcher = target
    if isinstance(fetcher, type) or not isinstance(fetcher, Fetcher):
        raise typer.BadParameter(
            f"{spec!r} does not provide fetch_all_units/fetch_report", param_hint="--fetcher"
        )
    return fetcher


# ── Output helpers ───────────────────────────────────────────────────────


def output_run(payload: dict[str, Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a stage result (``to_dict()`` output) and exit 1 when it failed."""
    if as_json:
        console.print_json(json.dumps(payload, default=str))
    else:
        _print_summary(payload, title=title)
        if payload.get("errors"):
            _print_errors(payload["errors"], title="Errors")
        if payload.get("timeSeriesErrors"):
            _print_errors(payload["timeSeriesErrors"], title="Time-series errors")

    if not payload.get("success"):
        raise typer.Exit(code=1)


def output_dict(data: dict[str, Any], *, as_json: bool = False, title: str = "") -> None:
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


# ── Private helpers ──────────────────────────────────────────────────────


def _format(value: Any) -> str:
    if isinstance(value, list):
        return f"{len(value)}: {', '.join(map(str, value))}" if value else "0"
    if isinstance(value, bool):
        return "[green]yes[/green]" if value else "[red]no[/red]"
    return str(value)


def _print_summary(payload: dict[str, Any], *, title: str = "") -> None:
    table = Table(title=title or None, show_header=False, pad_edge=False)
    table.add_column("field", style="cyan")
    table.add_column("value", overflow="fold")
    for key, value in payload.items():
        if key in ("errors", "timeSeriesErrors") or key.endswith("Locations"):
            continue
        if isinstance(value, dict):
            value = ", ".join(f"{k}={v}" for k, v in value.items())
        table.add_row(key, _format(value))
    console.print(table)


def _print_errors(errors: list[dict[str, Any]], *, title: str) -> None:
    table = Table(title=title, pad_edge=False)
    table.add_column("unit")
    table.add_column("error", overflow="fold", style="red")
    table.add_column("timestamp", style="dim")
    for error in errors:
        table.add_row(str(error.get("unitId")), str(error.get("error")), str(error.get("timestamp")))
    err_console.print(table)
