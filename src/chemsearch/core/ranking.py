"""Ranker: ordering and pagination of scored results."""

from __future__ import annotations

from datetime import timezone
from typing import Callable, Mapping

from chemsearch.core.index import normalize_text
from chemsearch.core.schema import SearchResult, SortKey, SortOrder

MAX_RESULTS = 1000

_DEFAULT_ORDER: dict[SortKey, SortOrder] = {
    SortKey.relevance: SortOrder.desc,
    SortKey.date: SortOrder.desc,
    SortKey.popularity: SortOrder.desc,
    SortKey.name: SortOrder.asc,
    SortKey.molecular_weight: SortOrder.asc,
    SortKey.atomic_number: SortOrder.asc,
}


def default_order(sort_by: SortKey) -> SortOrder:
    return _DEFAULT_ORDER[sort_by]


def _date_value(result: SearchResult) -> float | None:
    updated = result.record.updated_at
    if updated is None:
        return None
    if updated.tzinfo is None:
        updated = updated.replace(tzinfo=timezone.utc)
    return updated.timestamp()


def _sort_value(
    sort_by: SortKey, popularity: Mapping[str, float]
) -> Callable[[SearchResult], object]:
    if sort_by == SortKey.name:
        return lambda r: normalize_text(r.record.title)
    if sort_by == SortKey.date:
        return _date_value
    if sort_by == SortKey.popularity:
        return lambda r: float(popularity.get(r.record.key, 0))
    if sort_by == SortKey.molecular_weight:
        return lambda r: getattr(r.record, "molecular_mass", None)
    if sort_by == SortKey.atomic_number:
        return lambda r: getattr(r.record, "atomic_number", None)
    return lambda r: r.relevance_score


def rank(
    results: list[SearchResult],
    sort_by: SortKey = SortKey.relevance,
    sort_order: SortOrder | None = None,
    popularity: Mapping[str, float] | None = None,
) -> list[SearchResult]:
    """Order results by a sort key.

    Records lacking the key's value go last in either order. Equal keys keep
    (id, entity type) ascending order, so identical inputs give identical output.
    """
    order = sort_order or default_order(sort_by)
    value = _sort_value(sort_by, popularity or {})

    ordered = sorted(results, key=lambda r: (r.record.id, r.record.entity_type))
    present = [r for r in ordered if value(r) is not None]
    missing = [r for r in ordered if value(r) is None]
    # list.sort is stable for reverse=True too, so the id order survives ties.
    present.sort(key=value, reverse=order == SortOrder.desc)
    return present + missing


def paginate(results: list[SearchResult], limit: int, offset: int = 0) -> list[SearchResult]:
    """Slice a page. An offset past the end yields an empty page."""
    limit = max(0, min(limit, MAX_RESULTS))
    offset = max(0, offset)
    return results[offset : offset + limit]
