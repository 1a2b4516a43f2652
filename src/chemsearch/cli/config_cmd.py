"""Config subcommands: show, set, set-weight, reset for search tuning."""

from __future__ import annotations

from typing import Optional

import typer

from chemsearch.cli._shared import FORMAT_OPTION
from chemsearch.core.fields import ConfigError
from chemsearch.utils.config import (
    SEARCH_SECTION,
    load_global_config,
    load_search_config,
    save_search_section,
)
from chemsearch.utils.output import error, info, output_json, output_table, resolve_format, success

config_app = typer.Typer(no_args_is_help=True)

_NUMERIC_KEYS = {"threshold": float, "min_similarity": float, "distance": int}


def _section() -> dict:
    try:
        section = load_global_config().get(SEARCH_SECTION) or {}
    except ConfigError as e:
        error(str(e))
        raise typer.Exit(1)
    return dict(section) if isinstance(section, dict) else {}


def _save(section: dict) -> None:
    try:
        save_search_section(section)
    except ConfigError as e:
        error(str(e))
        raise typer.Exit(1)


@config_app.command("show")
def config_show(fmt: Optional[str] = FORMAT_OPTION) -> None:
    """Show the effective search configuration (defaults plus overrides)."""
    try:
        config = load_search_config()
    except ConfigError as e:
        error(str(e))
        raise typer.Exit(1)
    if resolve_format(fmt) == "json":
        output_json(config)
        return
    info(
        f"threshold: {config.threshold}  min_similarity: {config.min_similarity}  "
        f"distance: {config.distance}"
    )
    rows = [{"field": k, "weight": v} for k, v in sorted(config.weights.items(), key=lambda kv: -kv[1])]
    output_table(rows, columns=["field", "weight"], fmt="text")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="threshold, min_similarity or distance"),
    value: str = typer.Argument(..., help="Value to set"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Set a scoring parameter."""
    if key not in _NUMERIC_KEYS:
        error(f"Unknown key: {key}. Valid keys: {', '.join(sorted(_NUMERIC_KEYS))}")
        raise typer.Exit(1)
    try:
        parsed = _NUMERIC_KEYS[key](value)
    except ValueError:
        error(f"Invalid value for {key}: {value}")
        raise typer.Exit(1)

    section = _section()
    section[key] = parsed
    _save(section)
    if resolve_format(fmt) == "json":
        output_json({"key": key, "value": parsed})
    else:
        success(f"{key} = {parsed}")


@config_app.command("set-weight")
def config_set_weight(
    field: str = typer.Argument(..., help="Text field name, e.g. title or tags"),
    weight: float = typer.Argument(..., help="Weight in (0, 1]"),
    fmt: Optional[str] = FORMAT_OPTION,
) -> None:
    """Override the weight of one field."""
    section = _section()
    weights = dict(section.get("weights") or {})
    weights[field] = weight
    section["weights"] = weights
    _save(section)
    if resolve_format(fmt) == "json":
        output_json({"field": field, "weight": weight})
    else:
        success(f"weight[{field}] = {weight}")


@config_app.command("reset")
def config_reset(fmt: Optional[str] = FORMAT_OPTION) -> None:
    """Drop all search overrides and go back to the defaults."""
    _save({})
    if resolve_format(fmt) == "json":
        output_json({"status": "reset"})
    else:
        success("Search configuration reset to defaults")
