"""MCP server exposing a SearchSession as tools, resources, and prompts."""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from chemsearch.core.analytics import AnalyticsTracker
from chemsearch.core.dataset import DatasetError, load_bundled_records, load_records
from chemsearch.core.engine import SearchEngine
from chemsearch.core.fields import ConfigError
from chemsearch.core.filters import build_filters
from chemsearch.core.reload import DatasetWatcher
from chemsearch.core.schema import SearchOptions, SortKey, SortOrder
from chemsearch.core.session import BookmarkCapacityError, SearchSession
from chemsearch.core.storage import JsonFileStorage
from chemsearch.utils.config import load_search_config
from chemsearch.utils.paths import dataset_path, store_dir

logger = logging.getLogger(__name__)

_INSTRUCTIONS = (
    "Chemsearch searches chemistry content: compounds, elements, calculators and help articles. "
    "Use chem_search with the query language (\"exact phrase\", NOT term, a OR b, mw:100-200, "
    "type:element, difficulty:basic) and chem_suggest for completions. "
    "Read chemsearch://history, chemsearch://bookmarks and chemsearch://analytics for session state."
)


@asynccontextmanager
async def _server_lifespan(app: FastMCP) -> AsyncIterator[None]:
    """MCP server lifespan: watch the dataset file (if any) and rebuild the index on change."""
    watcher: DatasetWatcher | None = None
    path = dataset_path()
    if path is not None:
        try:
            watcher = DatasetWatcher(path, _get_session().engine)
            watcher.start()
        except Exception as e:
            logger.warning("Dataset watcher not started: %s", e)
            watcher = None
    try:
        yield
    finally:
        if watcher is not None:
            watcher.stop()


mcp = FastMCP(
    "chemsearch",
    instructions=_INSTRUCTIONS,
    lifespan=_server_lifespan,
)

_session: SearchSession | None = None


def _get_session() -> SearchSession:
    """Return the module-level session, building it from config and dataset if needed."""
    global _session
    if _session is None:
        path = dataset_path()
        records = load_records(path) if path is not None else load_bundled_records()
        storage = JsonFileStorage(store_dir())
        engine = SearchEngine(records, load_search_config())
        _session = SearchSession(engine, storage=storage, analytics=AnalyticsTracker(storage))
    return _session


def set_session(session: SearchSession | None) -> None:
    """Override the module-level session (used in tests)."""
    global _session
    _session = session


def _error(msg: str) -> str:
    return json.dumps({"error": msg})


def _guarded(fn: Callable[..., str]) -> Callable[..., str]:
    """Report a dataset or configuration that cannot be loaded as a JSON error."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs) -> str:
        try:
            return fn(*args, **kwargs)
        except (DatasetError, ConfigError) as e:
            logger.warning("%s failed: %s", fn.__name__, e)
            return _error(str(e))

    return wrapper


# ---------------------------------------------------------------------------
# Resources (read-only)
# ---------------------------------------------------------------------------


@mcp.resource("chemsearch://analytics")
@_guarded
def resource_analytics() -> str:
    """Search counts, popular queries, zero-result queries and filter usage."""
    return _get_session().analytics.snapshot().model_dump_json(indent=2)


@mcp.resource("chemsearch://history")
@_guarded
def resource_history() -> str:
    """Recent searches, newest first."""
    items = _get_session().history()
    return json.dumps([h.model_dump(mode="json") for h in items], indent=2)


@mcp.resource("chemsearch://bookmarks")
@_guarded
def resource_bookmarks() -> str:
    """Saved searches."""
    bookmarks = _get_session().bookmarks()
    return json.dumps([b.model_dump(mode="json") for b in bookmarks], indent=2)


@mcp.resource("chemsearch://stats")
@_guarded
def resource_stats() -> str:
    """Index size per entity type and scoring settings."""
    engine = _get_session().engine
    return json.dumps(
        {
            "total": len(engine.index),
            "by_type": engine.index.counts(),
            "vocabulary_size": len(engine.index.vocabulary),
            "config": engine.config.model_dump(),
        },
        indent=2,
    )


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
@_guarded
def chem_search(
    query: str,
    types: list[str] | None = None,
    categories: list[str] | None = None,
    filters: list[str] | None = None,
    sort_by: str = "relevance",
    sort_order: str = "",
    limit: int = 20,
    offset: int = 0,
    voice: bool = False,
) -> str:
    """Search compounds, elements, calculators and help articles.

    Args:
        query: Query text, e.g. '"sodium chloride"', 'acid NOT organic', 'MW:100-200'
        types: Entity types to restrict to (compound, element, calculator, help)
        categories: Categories to restrict to
        filters: Field filters in query syntax, e.g. ['mw:100-200', 'difficulty:basic']
        sort_by: relevance, name, date, popularity, molecular_weight or atomic_number
        sort_order: asc or desc; empty uses the sort key's default
        limit: Maximum results to return
        offset: Results to skip
        voice: True when the query was transcribed from speech
    """
    try:
        search_filters = build_filters(types, categories, filters)
        options = SearchOptions(
            limit=max(0, limit),
            offset=max(0, offset),
            sort_by=SortKey(sort_by),
            sort_order=SortOrder(sort_order) if sort_order else None,
        )
    except ValueError as e:
        return _error(str(e))

    response = _get_session().submit(query, search_filters, options, voice=voice)
    return json.dumps(
        {
            "query": response.query,
            "total_count": response.total_count,
            "results": [
                {
                    "type": r.record.entity_type,
                    "id": r.record.id,
                    "title": r.record.title,
                    "url": r.record.url,
                    "score": r.relevance_score,
                    "matched_fields": r.matched_fields,
                }
                for r in response.results
            ],
        },
        indent=2,
    )


@mcp.tool()
@_guarded
def chem_suggest(partial: str, entity_type: str = "") -> str:
    """Suggest completions for a partial query.

    Args:
        partial: What the user has typed so far
        entity_type: Optional entity type to draw vocabulary from
    """
    try:
        types = build_filters([entity_type] if entity_type else None).entity_types
    except ValueError as e:
        return _error(str(e))
    return json.dumps(_get_session().get_suggestions(partial, types[0] if types else None))


@mcp.tool()
@_guarded
def chem_add_bookmark(
    name: str,
    query: str,
    types: list[str] | None = None,
    categories: list[str] | None = None,
    filters: list[str] | None = None,
) -> str:
    """Save a query as a bookmark.

    Args:
        name: Bookmark name (the query is used when empty)
        query: Query text to save
        types: Entity types to restrict to
        categories: Categories to restrict to
        filters: Field filters in query syntax
    """
    try:
        search_filters = build_filters(types, categories, filters)
        bookmark = _get_session().add_bookmark(name, query, search_filters)
    except (ValueError, BookmarkCapacityError) as e:
        return _error(str(e))
    return json.dumps({"status": "ok", "id": bookmark.id, "name": bookmark.name})


@mcp.tool()
@_guarded
def chem_remove_bookmark(bookmark_id: str) -> str:
    """Remove a bookmark by id. Unknown ids are a no-op.

    Args:
        bookmark_id: Bookmark identifier
    """
    removed = _get_session().remove_bookmark(bookmark_id)
    return json.dumps({"status": "removed" if removed else "not_found", "id": bookmark_id})


@mcp.tool()
@_guarded
def chem_record_click(entity_type: str, record_id: str, query: str = "") -> str:
    """Record that a search result was opened; feeds the popularity sort.

    Args:
        entity_type: compound, element, calculator or help
        record_id: Record identifier
        query: The query that produced the result
    """
    session = _get_session()
    indexed = session.engine.index.by_key.get(f"{entity_type.lower()}:{record_id}")
    if indexed is None:
        return _error(f"Record '{entity_type}:{record_id}' not found")
    session.analytics.record_result_click(indexed.record, query)
    return json.dumps({"status": "ok", "key": indexed.key})


@mcp.tool()
@_guarded
def chem_clear_history() -> str:
    """Delete all search history."""
    _get_session().clear_history()
    return json.dumps({"status": "cleared"})


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


@mcp.prompt()
def chem_query_help() -> str:
    """Explain the search query language."""
    return "\n".join([
        "# Chemsearch query language",
        "",
        "- `word` - fuzzy match on names, formulas, tags and descriptions",
        '- `"exact phrase"` - words in order',
        "- `NOT word` - exclude records containing the word",
        "- `a OR b` - either term raises relevance",
        "- `mw:100-200`, `mp:-10-50`, `an:1-20` - numeric ranges",
        "- `type:element`, `category:acid`, `difficulty:basic` - field filters",
    ])


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the MCP server on stdio."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
