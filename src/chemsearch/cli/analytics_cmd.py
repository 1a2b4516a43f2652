"""Analytics subcommands: show, reset, export, import."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from chemsearch.cli._shared import FORMAT_OPTION, get_analytics
from chemsearch.core.analytics import AnalyticsImportError
from chemsearch.utils.output import console, error, info, output_json, output_table, resolve_format, success

analytics_app = typer.Typer(no_args_is_help=True)


@analytics_app.command("show")
def analytics_show(
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Entries per list"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Show search counts, popular queries and filter usage."""
    state = get_analytics().snapshot()
    if resolve_format(fmt) == "json":
        output_json(state)
        return
    console.print(f"[bold]Total searches:[/bold] {state.total_searches}")
    if state.popular_queries:
        output_table(
            [q.model_dump() for q in state.popular_queries[:limit]],
            columns=["query", "count"],
            fmt="text",
            title="Popular queries",
        )
    if state.no_results_queries:
        output_table(
            [q.model_dump() for q in state.no_results_queries[:limit]],
            columns=["query", "count"],
            fmt="text",
            title="Queries without results",
        )
    if state.filter_usage:
        rows = [{"filter": k, "count": v} for k, v in list(state.filter_usage.items())[:limit]]
        output_table(rows, columns=["filter", "count"], fmt="text", title="Filter usage")
    if state.search_type_distribution:
        rows = [{"type": k, "count": v} for k, v in state.search_type_distribution.items()]
        output_table(rows, columns=["type", "count"], fmt="text", title="Searches by type")
    if not state.total_searches:
        info("No searches recorded yet")


@analytics_app.command("reset")
def analytics_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Clear all analytics counters."""
    if not yes and not typer.confirm("Reset all search analytics?"):
        raise typer.Abort()
    get_analytics().reset()
    if resolve_format(fmt) == "json":
        output_json({"status": "reset"})
    else:
        success("Analytics reset")


@analytics_app.command("export")
def analytics_export(
    output_path: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
) -> None:
    """Export analytics as JSON."""
    text = get_analytics().export_json()
    if output_path is None:
        print(text)
    else:
        output_path.write_text(text + "\n")
        success(f"Analytics exported to {output_path}")


@analytics_app.command("import")
def analytics_import(
    path: Path = typer.Argument(..., help="JSON file produced by `analytics export`"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Replace analytics with an exported document."""
    try:
        text = path.read_text()
    except OSError as e:
        error(f"Cannot read {path}: {e}")
        raise typer.Exit(1)
    try:
        state = get_analytics().import_json(text)
    except AnalyticsImportError as e:
        error(str(e))
        raise typer.Exit(1)
    if resolve_format(fmt) == "json":
        output_json(state)
    else:
        success(f"Imported analytics ({state.total_searches} searches)")
