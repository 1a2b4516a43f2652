"""Output formatting: JSON for pipes and --format json, rich tables for terminals."""

from __future__ import annotations

import json
import sys
from typing import Any, Sequence

from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from chemsearch.core.schema import SearchResponse

console = Console()
error_console = Console(stderr=True)

RESULT_COLUMNS = ("type", "id", "title", "score", "matched")


def is_piped() -> bool:
    return not sys.stdout.isatty()


def resolve_format(fmt: str | None) -> str:
    """An explicit --format wins; otherwise json when piped, text for a TTY."""
    if fmt:
        return fmt.lower()
    return "json" if is_piped() else "text"


def _jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, (list, tuple)):
        return [_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {key: _jsonable(value) for key, value in data.items()}
    return data


def output_json(data: Any) -> None:
    """Print models, lists of models or plain containers as indented JSON."""
    print(json.dumps(_jsonable(data), indent=2, default=str))


def output_table(
    rows: list[dict[str, Any]],
    columns: Sequence[str],
    fmt: str | None = None,
    title: str | None = None,
) -> None:
    if resolve_format(fmt) == "json":
        output_json(rows)
        return
    table = Table(title=title)
    for col in columns:
        table.add_column(col.replace("_", " ").title())
    for row in rows:
        table.add_row(*[str(row.get(col, "")) for col in columns])
    console.print(table)


def result_rows(response: SearchResponse) -> list[dict[str, Any]]:
    return [
        {
            "type": r.record.entity_type,
            "id": r.record.id,
            "title": r.record.title,
            "score": f"{r.relevance_score:.3f}",
            "matched": ", ".join(r.matched_fields),
        }
        for r in response.results
    ]


def output_results(response: SearchResponse, fmt: str | None = None) -> None:
    """Search results as a table, or the full response as JSON."""
    if resolve_format(fmt) == "json":
        print(response.model_dump_json(indent=2))
        return
    if not response.results:
        info(f"No results for '{response.query}'" if response.query else "No results")
        return
    output_table(
        result_rows(response),
        columns=RESULT_COLUMNS,
        fmt="text",
        title=f"{len(response.results)} of {response.total_count} results",
    )


def error(msg: str) -> None:
    error_console.print(f"[red]Error:[/red] {msg}")


def success(msg: str) -> None:
    console.print(f"[green]{msg}[/green]")


def info(msg: str) -> None:
    console.print(f"[dim]{msg}[/dim]")
