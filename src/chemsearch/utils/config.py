"""Global configuration: search weights and tuning in ~/.config/chemsearch/config.json."""

from __future__ import annotations

import json
from pathlib import Path

from chemsearch.core.fields import ConfigError, FieldWeightConfig, build_config

SEARCH_SECTION = "search"


def global_config_dir() -> Path:
    config = Path.home() / ".config" / "chemsearch"
    config.mkdir(parents=True, exist_ok=True)
    return config


def load_global_config() -> dict:
    path = global_config_dir() / "config.json"
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data


def save_global_config(config: dict) -> None:
    path = global_config_dir() / "config.json"
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")


def load_search_config() -> FieldWeightConfig:
    """Defaults overridden key by key by the "search" section. Raises ConfigError."""
    section = load_global_config().get(SEARCH_SECTION) or {}
    if not isinstance(section, dict):
        raise ConfigError(f'"{SEARCH_SECTION}" section must be a JSON object')
    return build_config(section)


def save_search_section(section: dict) -> FieldWeightConfig:
    """Validate and store a new "search" section. Nothing is written if it is invalid."""
    validated = build_config(section)
    config = load_global_config()
    config[SEARCH_SECTION] = section
    save_global_config(config)
    return validated
