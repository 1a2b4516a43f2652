"""Shared CLI utilities to avoid circular imports."""

from __future__ import annotations

from pathlib import Path

import typer

from chemsearch.core.analytics import AnalyticsTracker
from chemsearch.core.dataset import DatasetError, load_bundled_records, load_records
from chemsearch.core.engine import SearchEngine
from chemsearch.core.fields import ConfigError, EntityType
from chemsearch.core.filters import build_filters as make_filters
from chemsearch.core.schema import SearchFilters
from chemsearch.core.session import SearchSession
from chemsearch.core.storage import JsonFileStorage
from chemsearch.utils.config import load_search_config
from chemsearch.utils.output import error
from chemsearch.utils.paths import dataset_path, store_dir

FORMAT_OPTION = typer.Option(None, "--format", "-F", help="Output format: json or text")
TYPE_OPTION = typer.Option(None, "--type", "-t", help="Restrict to an entity type (repeatable)")

_dataset: Path | None = None


def set_dataset(path: Path | None) -> None:
    global _dataset
    _dataset = path


def get_engine() -> SearchEngine:
    """Build the engine from the configured dataset and search settings."""
    try:
        config = load_search_config()
    except ConfigError as e:
        error(str(e))
        raise typer.Exit(1)
    path = dataset_path(_dataset)
    try:
        records = load_records(path) if path is not None else load_bundled_records()
    except DatasetError as e:
        error(str(e))
        raise typer.Exit(1)
    return SearchEngine(records, config)


def get_storage() -> JsonFileStorage:
    return JsonFileStorage(store_dir())


def get_session() -> SearchSession:
    storage = get_storage()
    return SearchSession(get_engine(), storage=storage, analytics=AnalyticsTracker(storage))


def get_analytics() -> AnalyticsTracker:
    return AnalyticsTracker(get_storage())


def build_filters(
    types: list[str] | None = None,
    categories: list[str] | None = None,
    ranges: list[str] | None = None,
    enums: list[str] | None = None,
) -> SearchFilters:
    """Turn CLI filter options into SearchFilters, exiting on invalid values."""
    try:
        return make_filters(types, categories, [*(ranges or []), *(enums or [])])
    except ValueError as e:
        error(str(e))
        raise typer.Exit(1)


def parse_entity_types(values: list[str] | None) -> list[EntityType] | None:
    return build_filters(types=values).entity_types
