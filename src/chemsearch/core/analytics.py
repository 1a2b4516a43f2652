"""Analytics aggregator: counters over searches, filters and result clicks.

Recording methods are fire-and-forget: any failure is logged and swallowed so
the search flow never sees it. Top-N lists are recomputed from the full
counters after every mutation and the whole record is replaced, then persisted.
"""

from __future__ import annotations

import functools
import json
import logging
from enum import Enum
from typing import Any, Callable, TypeVar

from pydantic import ValidationError

from chemsearch.core.schema import (
    AnalyticsRecord,
    AnalyticsState,
    QueryCount,
    SearchableRecord,
    SearchFilters,
    SearchResult,
)
from chemsearch.core.storage import ANALYTICS_KEY, KeyValueStorage, StorageError

logger = logging.getLogger(__name__)

POPULAR_QUERY_LIMIT = 20
NO_RESULTS_LIMIT = 10

F = TypeVar("F", bound=Callable[..., Any])


class AnalyticsImportError(ValueError):
    pass


class AnalyticsEvent(str, Enum):
    search_performed = "search_performed"
    filter_applied = "filter_applied"
    result_clicked = "result_clicked"
    voice_search_used = "voice_search_used"
    bookmark_created = "bookmark_created"
    history_cleared = "history_cleared"
    export_used = "export_used"


def _fire_and_forget(method: F) -> F:
    @functools.wraps(method)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        try:
            method(*args, **kwargs)
        except Exception as e:
            logger.warning("Analytics %s failed: %s", method.__name__, e)

    return wrapper  # type: ignore[return-value]


def _top(counts: dict[str, int], limit: int) -> list[QueryCount]:
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [QueryCount(query=q, count=c) for q, c in ordered[:limit]]


def _by_count(counts: dict[str, int]) -> dict[str, int]:
    return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))


def _bump(counts: dict[str, int], key: str, by: int = 1) -> dict[str, int]:
    updated = dict(counts)
    updated[key] = updated.get(key, 0) + by
    return updated


def _normalize_query(query: str) -> str:
    return " ".join(query.lower().split())


class AnalyticsTracker:
    """Owns one AnalyticsRecord. Construct one per application context."""

    def __init__(self, storage: KeyValueStorage | None = None) -> None:
        self.storage = storage
        self._record = self._load()

    # -- persistence --

    def _load(self) -> AnalyticsRecord:
        if self.storage is None:
            return AnalyticsRecord()
        try:
            raw = self.storage.get(ANALYTICS_KEY)
            if raw is None:
                return AnalyticsRecord()
            return AnalyticsRecord.model_validate_json(raw)
        except (StorageError, ValidationError) as e:
            logger.warning("Ignoring unreadable analytics state: %s", e)
            return AnalyticsRecord()

    def _commit(self, record: AnalyticsRecord) -> None:
        """Swap in a new record with recomputed top-N lists, then persist it."""
        state = record.state.model_copy(
            update={
                "popular_queries": _top(record.query_counts, POPULAR_QUERY_LIMIT),
                "no_results_queries": _top(record.no_results_counts, NO_RESULTS_LIMIT),
                "filter_usage": _by_count(record.state.filter_usage),
                "search_type_distribution": _by_count(record.state.search_type_distribution),
            }
        )
        self._record = record.model_copy(update={"state": state})
        if self.storage is not None:
            try:
                self.storage.set(ANALYTICS_KEY, self._record.model_dump_json(indent=2))
            except StorageError as e:
                logger.warning("Could not persist analytics: %s", e)

    def _event(self, event: AnalyticsEvent, **properties: Any) -> None:
        logger.debug("analytics event %s %s", event.value, properties)

    # -- recording --

    @_fire_and_forget
    def record_search(
        self, query: str, result_count: int, filters: SearchFilters | None = None
    ) -> None:
        record = self._record
        state = record.state
        query_counts = record.query_counts
        no_results_counts = record.no_results_counts
        filter_usage = state.filter_usage
        type_distribution = state.search_type_distribution

        normalized = _normalize_query(query)
        if normalized:
            query_counts = _bump(query_counts, normalized)
            if result_count == 0:
                no_results_counts = _bump(no_results_counts, normalized)
        if filters is not None:
            for key in filters.active_keys():
                filter_usage = _bump(filter_usage, key)
            for entity_type in filters.entity_types or []:
                type_distribution = _bump(type_distribution, entity_type.value)

        self._commit(
            AnalyticsRecord(
                state=state.model_copy(
                    update={
                        "total_searches": state.total_searches + 1,
                        "filter_usage": filter_usage,
                        "search_type_distribution": type_distribution,
                    }
                ),
                query_counts=query_counts,
                no_results_counts=no_results_counts,
            )
        )
        self._event(AnalyticsEvent.search_performed, query=normalized, result_count=result_count)

    @_fire_and_forget
    def record_filter_usage(self, filter_key: str, value: Any = None) -> None:
        record = self._record
        state = record.state.model_copy(
            update={"filter_usage": _bump(record.state.filter_usage, filter_key)}
        )
        self._commit(record.model_copy(update={"state": state}))
        self._event(AnalyticsEvent.filter_applied, filter=filter_key, value=value)

    @_fire_and_forget
    def record_result_click(
        self, result: SearchResult | SearchableRecord, query: str = ""
    ) -> None:
        target = result.record if isinstance(result, SearchResult) else result
        record = self._record
        state = record.state.model_copy(
            update={"result_clicks": _bump(record.state.result_clicks, target.key)}
        )
        self._commit(record.model_copy(update={"state": state}))
        self._event(AnalyticsEvent.result_clicked, key=target.key, title=target.title, query=query)

    @_fire_and_forget
    def record_voice_search(self, query: str) -> None:
        self._event(AnalyticsEvent.voice_search_used, query=query)

    @_fire_and_forget
    def record_bookmark_created(self, name: str, query: str) -> None:
        self._event(AnalyticsEvent.bookmark_created, name=name, query=query)

    @_fire_and_forget
    def record_history_cleared(self) -> None:
        self._event(AnalyticsEvent.history_cleared)

    @_fire_and_forget
    def record_export(self, fmt: str, result_count: int) -> None:
        self._event(AnalyticsEvent.export_used, format=fmt, result_count=result_count)

    @_fire_and_forget
    def reset(self) -> None:
        """Clear every counter at once."""
        self._commit(AnalyticsRecord())

    # -- reading --

    def snapshot(self) -> AnalyticsState:
        """Read-only copy of the current state."""
        return self._record.state.model_copy(deep=True)

    def popular_queries(self, limit: int = 10) -> list[str]:
        return [item.query for item in self._record.state.popular_queries[:limit]]

    def no_results_queries(self, limit: int = 10) -> list[str]:
        return [item.query for item in self._record.state.no_results_queries[:limit]]

    def most_used_filters(self, limit: int = 10) -> list[tuple[str, int]]:
        return list(self._record.state.filter_usage.items())[:limit]

    def click_counts(self) -> dict[str, int]:
        """Clicks per record key, the popularity signal for ranking."""
        return dict(self._record.state.result_clicks)

    # -- import / export --

    def export_json(self) -> str:
        return self._record.model_dump_json(indent=2)

    def import_json(self, data: str) -> AnalyticsState:
        """Replace all counters with an exported document.

        Accepts either a full export or a bare state document, in which case
        the query counters are rebuilt from its top-N lists.
        """
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise AnalyticsImportError(f"Invalid analytics data: {e}") from e
        if not isinstance(payload, dict):
            raise AnalyticsImportError("Invalid analytics data: expected a JSON object")

        try:
            if "state" in payload:
                record = AnalyticsRecord.model_validate(payload)
            else:
                state = AnalyticsState.model_validate(payload)
                record = AnalyticsRecord(
                    state=state,
                    query_counts={q.query: q.count for q in state.popular_queries},
                    no_results_counts={q.query: q.count for q in state.no_results_queries},
                )
        except ValidationError as e:
            raise AnalyticsImportError(f"Invalid analytics data: {e}") from e

        self._commit(record)
        return self.snapshot()
