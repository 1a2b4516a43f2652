"""Filter engine: structural constraints applied as a set intersection."""

from __future__ import annotations

import logging
from typing import Iterable

from chemsearch.core.fields import (
    TYPE_FIELD,
    EntityType,
    all_enum_fields,
    all_numeric_fields,
    is_multi_valued,
    resolve_field,
)
from chemsearch.core.index import IndexedRecord, normalize_text
from chemsearch.core.query import parse_field_token
from chemsearch.core.schema import FieldFilter, ParsedQuery, RangeFilter, SearchFilters

logger = logging.getLogger(__name__)


def _canonical(name: str) -> str:
    return resolve_field(name) or name


def filters_from_query(parsed: ParsedQuery) -> SearchFilters:
    """Turn a query's field filters and ranges into a SearchFilters of their own.

    Repeated filters on one dimension widen that dimension (``type:compound
    type:element`` selects both types); the result is still ANDed with the
    user's filters by the caller.
    """
    entity_types: list[EntityType] = []
    categories: list[str] = []
    ranges = list(parsed.ranges)
    enums: dict[str, list[str]] = {}

    for f in parsed.field_filters:
        if f.field == TYPE_FIELD:
            entity_types.append(EntityType(f.value))
        elif f.field == "category":
            categories.append(f.value)
        elif f.field in all_numeric_fields():
            value = float(f.value)
            ranges.append(RangeFilter(field=f.field, min=value, max=value))
        else:
            enums.setdefault(f.field, []).append(f.value)

    return SearchFilters(
        entity_types=entity_types or None,
        categories=categories or None,
        ranges=ranges,
        enums=enums,
    )


def _passes_range(record: IndexedRecord, rng: RangeFilter) -> bool:
    value = record.numeric.get(_canonical(rng.field))
    if value is None:
        return False
    return rng.contains(value)


def _passes_enum(record: IndexedRecord, name: str, selected: list[str]) -> bool:
    wanted = {normalize_text(v) for v in selected if v}
    if not wanted:
        return True
    field_name = _canonical(name)
    have = record.enums.get(field_name)
    if not have:
        return False
    if is_multi_valued(record.entity_type, field_name):
        return wanted <= have
    return bool(wanted & have)


def record_passes(record: IndexedRecord, filters: SearchFilters) -> bool:
    """True if the record satisfies every filter dimension present."""
    if filters.entity_types and record.entity_type not in filters.entity_types:
        return False
    if filters.categories:
        wanted = {normalize_text(c) for c in filters.categories}
        if normalize_text(record.record.category) not in wanted:
            return False
    for rng in filters.ranges:
        if not _passes_range(record, rng):
            return False
    for name, selected in filters.enums.items():
        if not _passes_enum(record, name, selected):
            return False
    return True


def unknown_filter_fields(filters: SearchFilters) -> list[str]:
    """Range or enum field names that no entity type declares."""
    unknown = [r.field for r in filters.ranges if _canonical(r.field) not in all_numeric_fields()]
    unknown.extend(name for name in filters.enums if _canonical(name) not in all_enum_fields())
    return unknown


def apply_filters(
    candidates: Iterable[IndexedRecord], filters: SearchFilters
) -> list[IndexedRecord]:
    """Keep the candidates that satisfy every filter. Order is preserved."""
    unknown = unknown_filter_fields(filters)
    if unknown:
        logger.warning("Filters on unknown fields match nothing: %s", ", ".join(unknown))
    return [rec for rec in candidates if record_passes(rec, filters)]


def build_filters(
    entity_types: Iterable[str] | None = None,
    categories: Iterable[str] | None = None,
    tokens: Iterable[str] | None = None,
) -> SearchFilters:
    """SearchFilters from loose values, as collected by the CLI and MCP tools.

    ``tokens`` use the query field syntax (``mw:100-200``, ``difficulty:basic``).
    Repeated values on one dimension widen it. Raises ValueError on an unknown
    entity type or a token that is not a filter.
    """
    field_filters: list[FieldFilter] = []
    ranges: list[RangeFilter] = []
    for raw in tokens or []:
        parsed = parse_field_token(raw.replace("=", ":", 1) if ":" not in raw else raw)
        if parsed is None:
            raise ValueError(f"Invalid filter: {raw}")
        if isinstance(parsed, RangeFilter):
            ranges.append(parsed)
        else:
            field_filters.append(parsed)
    derived = filters_from_query(ParsedQuery(field_filters=field_filters, ranges=ranges))

    types: list[EntityType] = []
    for value in entity_types or []:
        try:
            entity = EntityType(value.strip().lower())
        except ValueError:
            valid = ", ".join(t.value for t in EntityType)
            raise ValueError(f"Unknown type: {value}. Valid types: {valid}") from None
        if entity not in types:
            types.append(entity)
    types.extend(t for t in derived.entity_types or [] if t not in types)
    selected_categories = [*(c for c in categories or [] if c), *(derived.categories or [])]
    return derived.model_copy(
        update={"entity_types": types or None, "categories": selected_categories or None}
    )
