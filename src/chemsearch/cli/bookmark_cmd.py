"""Bookmark subcommands: add, list, rm, run."""

from __future__ import annotations

from typing import List, Optional

import typer

from chemsearch.cli._shared import FORMAT_OPTION, TYPE_OPTION, build_filters, get_session
from chemsearch.core.schema import SearchBookmark, SearchOptions
from chemsearch.core.session import BookmarkCapacityError, SearchSession
from chemsearch.utils.output import (
    error,
    info,
    output_json,
    output_results,
    output_table,
    resolve_format,
    success,
)

bookmark_app = typer.Typer(no_args_is_help=True)


def _resolve(session: SearchSession, bookmark_id: str) -> SearchBookmark | None:
    matches = [b for b in session.bookmarks() if b.id.startswith(bookmark_id)]
    return matches[0] if len(matches) == 1 else None


@bookmark_app.command("add")
def bookmark_add(
    name: str = typer.Argument(..., help="Bookmark name"),
    query: str = typer.Argument(..., help="Query to save"),
    types: Optional[List[str]] = TYPE_OPTION,
    categories: Optional[List[str]] = typer.Option(None, "--category", "-c", help="Category filter (repeatable)"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Save a query (and its filters) as a bookmark."""
    filters = build_filters(types, categories)
    try:
        bookmark = get_session().add_bookmark(name, query, filters)
    except BookmarkCapacityError as e:
        error(str(e))
        raise typer.Exit(1)
    if resolve_format(fmt) == "json":
        output_json(bookmark)
    else:
        success(f"Bookmark '{bookmark.name}' saved ({bookmark.id[:8]})")


@bookmark_app.command("list")
def bookmark_list(fmt: Optional[str] = FORMAT_OPTION) -> None:
    """List saved bookmarks."""
    bookmarks = get_session().bookmarks()
    if resolve_format(fmt) == "json":
        output_json(bookmarks)
        return
    if not bookmarks:
        info("No bookmarks yet. Use `chemsearch bookmark add <name> <query>` to add one.")
        return
    rows = [
        {"id": b.id[:8], "name": b.name, "query": b.query, "created": str(b.created_at.date())}
        for b in bookmarks
    ]
    output_table(rows, columns=["id", "name", "query", "created"])


@bookmark_app.command("rm")
def bookmark_rm(
    bookmark_id: str = typer.Argument(..., help="Bookmark id (or unique prefix)"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Remove a bookmark. Removing an unknown id is not an error."""
    session = get_session()
    bookmark = _resolve(session, bookmark_id)
    removed = bookmark is not None and session.remove_bookmark(bookmark.id)
    if resolve_format(fmt) == "json":
        output_json({"id": bookmark_id, "status": "removed" if removed else "not_found"})
    elif removed:
        success(f"Bookmark '{bookmark.name}' removed")
    else:
        info(f"No bookmark matches '{bookmark_id}'; nothing removed")


@bookmark_app.command("run")
def bookmark_run(
    bookmark_id: str = typer.Argument(..., help="Bookmark id (or unique prefix)"),
    limit: int = typer.Option(20, "--limit", "-n", min=0, help="Maximum results to show"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Run a saved search."""
    session = get_session()
    bookmark = _resolve(session, bookmark_id)
    if bookmark is None:
        error(f"Bookmark '{bookmark_id}' not found")
        raise typer.Exit(1)
    response = session.run_bookmark(bookmark.id, SearchOptions(limit=limit))
    output_results(response, fmt)
