"""History subcommands: list, rm, clear."""

from __future__ import annotations

from typing import Optional

import typer

from chemsearch.cli._shared import FORMAT_OPTION, get_session
from chemsearch.utils.output import info, output_json, output_table, resolve_format, success

history_app = typer.Typer(no_args_is_help=True)


@history_app.command("list")
def history_list(
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Number of entries to show"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """List recent searches, newest first."""
    items = get_session().history()[:limit]
    if resolve_format(fmt) == "json":
        output_json(items)
        return
    if not items:
        info("No search history yet. Run `chemsearch search <query>` to add one.")
        return
    rows = [
        {
            "id": item.id[:8],
            "query": item.query,
            "results": item.result_count,
            "when": item.timestamp.strftime("%Y-%m-%d %H:%M"),
        }
        for item in items
    ]
    output_table(rows, columns=["id", "query", "results", "when"])


@history_app.command("rm")
def history_rm(
    item_id: str = typer.Argument(..., help="History item id (or unique prefix)"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Remove one history entry. Unknown ids are ignored."""
    session = get_session()
    matches = [h.id for h in session.history() if h.id.startswith(item_id)]
    removed = len(matches) == 1 and session.remove_history_item(matches[0])
    if resolve_format(fmt) == "json":
        output_json({"id": item_id, "status": "removed" if removed else "not_found"})
    elif removed:
        success(f"History entry {item_id} removed")
    else:
        info(f"No single history entry matches '{item_id}'; nothing removed")


@history_app.command("clear")
def history_clear(fmt: Optional[str] = FORMAT_OPTION) -> None:
    """Delete all search history."""
    get_session().clear_history()
    if resolve_format(fmt) == "json":
        output_json({"status": "cleared"})
    else:
        success("Search history cleared")
