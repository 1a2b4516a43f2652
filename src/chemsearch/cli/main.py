"""Typer app: top-level command groups and root commands (search, suggest, stats)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from chemsearch.cli._shared import (
    FORMAT_OPTION,
    TYPE_OPTION,
    build_filters,
    get_engine,
    get_session,
    parse_entity_types,
    set_dataset,
)
from chemsearch.core.export import EXPORT_FORMATS, export_results
from chemsearch.core.schema import SearchOptions, SortKey, SortOrder
from chemsearch.utils.output import (
    error,
    info,
    output_json,
    output_results,
    output_table,
    resolve_format,
    success,
)

app = typer.Typer(
    name="chemsearch",
    help="Chemsearch: fuzzy search over compounds, elements, calculators and help articles.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    dataset: Optional[Path] = typer.Option(
        None, "--dataset", "-d", help="Dataset JSON file (default: bundled sample or $CHEMSEARCH_DATASET)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Search chemistry content with a small query language."""
    set_dataset(dataset)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def search(
    query: str = typer.Argument("", help='Query, e.g. \'"sodium chloride"\', "acid NOT organic", "MW:100-200"'),
    types: Optional[List[str]] = TYPE_OPTION,
    categories: Optional[List[str]] = typer.Option(None, "--category", "-c", help="Restrict to a category (repeatable)"),
    ranges: Optional[List[str]] = typer.Option(None, "--range", "-r", help="Numeric range, e.g. mw:100-200 (repeatable)"),
    enums: Optional[List[str]] = typer.Option(None, "--filter", help="Enumerated filter, e.g. difficulty=basic (repeatable)"),
    sort_by: SortKey = typer.Option(SortKey.relevance, "--sort", "-s", help="Sort key"),
    sort_order: Optional[SortOrder] = typer.Option(None, "--order", help="asc or desc (default depends on sort key)"),
    limit: int = typer.Option(20, "--limit", "-n", min=0, help="Maximum results to show"),
    offset: int = typer.Option(0, "--offset", min=0, help="Results to skip"),
    export_fmt: Optional[str] = typer.Option(None, "--export", help="Export results: json or csv"),
    output_path: Optional[Path] = typer.Option(None, "--output", "-o", help="File for --export (default: stdout)"),
    voice: bool = typer.Option(False, "--voice", help="Query was transcribed from voice input"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Search the index."""
    if export_fmt is not None and export_fmt.lower() not in EXPORT_FORMATS:
        error(f"Unsupported export format: {export_fmt}. Choose from: {', '.join(EXPORT_FORMATS)}")
        raise typer.Exit(1)

    filters = build_filters(types, categories, ranges, enums)
    options = SearchOptions(limit=limit, offset=offset, sort_by=sort_by, sort_order=sort_order)
    session = get_session()
    response = session.submit(query, filters, options, voice=voice)

    if export_fmt is None:
        output_results(response, fmt)
        return

    text = export_results(response.results, export_fmt)
    session.analytics.record_export(export_fmt.lower(), len(response.results))
    if output_path is None:
        print(text)
    else:
        output_path.write_text(text)
        success(f"Exported {len(response.results)} results to {output_path}")


@app.command()
def suggest(
    partial: str = typer.Argument(..., help="Partial query"),
    entity_type: Optional[str] = typer.Option(None, "--type", "-t", help="Only suggest terms from one entity type"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Suggest completions for a partial query."""
    types = parse_entity_types([entity_type] if entity_type else None)
    session = get_session()
    suggestions = session.get_suggestions(partial, types[0] if types else None)
    if resolve_format(fmt) == "json":
        output_json(suggestions)
    elif not suggestions:
        info(f"No suggestions for '{partial}'")
    else:
        for s in suggestions:
            typer.echo(s)


@app.command()
def stats(fmt: Optional[str] = FORMAT_OPTION) -> None:
    """Show index size per entity type and the active search settings."""
    engine = get_engine()
    index = engine.index
    data = {
        "total": len(index),
        "by_type": index.counts(),
        "vocabulary_size": len(index.vocabulary),
        "threshold": engine.config.threshold,
        "min_similarity": engine.config.min_similarity,
        "distance": engine.config.distance,
    }
    if resolve_format(fmt) == "json":
        output_json(data)
        return
    rows = [{"type": t, "records": n} for t, n in data["by_type"].items()]
    output_table(rows, columns=["type", "records"], fmt="text", title=f"{data['total']} records indexed")
    info(
        f"Vocabulary: {data['vocabulary_size']} terms, threshold {data['threshold']}, "
        f"min similarity {data['min_similarity']}, phrase distance {data['distance']}"
    )


# Register subcommand groups
from chemsearch.cli.analytics_cmd import analytics_app
from chemsearch.cli.bookmark_cmd import bookmark_app
from chemsearch.cli.config_cmd import config_app
from chemsearch.cli.history_cmd import history_app

app.add_typer(history_app, name="history", help="Browse and clear search history")
app.add_typer(bookmark_app, name="bookmark", help="Manage saved searches")
app.add_typer(analytics_app, name="analytics", help="Search usage analytics")
app.add_typer(config_app, name="config", help="Manage search configuration")
