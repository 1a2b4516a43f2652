"""Load record collections from a JSON dataset file."""

from __future__ import annotations

import json
import logging
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from chemsearch.core.schema import Calculator, Compound, Element, HelpArticle, SearchableRecord

logger = logging.getLogger(__name__)

# Top-level dataset keys and the model each collection holds.
COLLECTIONS: dict[str, type[BaseModel]] = {
    "compounds": Compound,
    "elements": Element,
    "calculators": Calculator,
    "help": HelpArticle,
}

BUNDLED_DATASET = "sample_records.json"


class DatasetError(Exception):
    pass


def _required_fields(model: type[BaseModel]) -> set[str]:
    return {name for name, info in model.model_fields.items() if info.is_required()}


def parse_record(model: type[BaseModel], item: dict[str, Any]) -> SearchableRecord | None:
    """Validate one raw record, dropping optional fields that fail validation.

    Returns None when a required field (id, title, ...) is missing or invalid.
    """
    data = {k: v for k, v in item.items() if k != "entity_type"}
    required = _required_fields(model)
    while True:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            bad = {err["loc"][0] for err in e.errors() if err["loc"]}
            if not bad or bad & required or not bad & data.keys():
                label = item.get("id") or item.get("title") or "<unnamed>"
                logger.warning("Skipping %s record %s: %s", model.__name__, label, e.errors()[0]["msg"])
                return None
            for name in bad:
                logger.warning(
                    "Dropping invalid field %r from %s record %s", name, model.__name__, item.get("id")
                )
                data.pop(name, None)


def parse_dataset(payload: dict[str, Any]) -> list[SearchableRecord]:
    records: list[SearchableRecord] = []
    for key, model in COLLECTIONS.items():
        items = payload.get(key) or []
        if not isinstance(items, list):
            logger.warning("Ignoring dataset section %r: expected a list", key)
            continue
        for item in items:
            if not isinstance(item, dict):
                logger.warning("Ignoring non-object entry in %r", key)
                continue
            record = parse_record(model, item)
            if record is not None:
                records.append(record)
    return records


def load_records(path: Path) -> list[SearchableRecord]:
    """Read every collection of a dataset file. Bad records are skipped, not fatal."""
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise DatasetError(f"Dataset not found: {path}") from e
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DatasetError(f"Cannot read dataset {path}: {e}") from e
    if not isinstance(payload, dict):
        raise DatasetError(f"Dataset {path} must be a JSON object")
    return parse_dataset(payload)


def load_bundled_records() -> list[SearchableRecord]:
    """The sample dataset shipped with the package."""
    text = resources.files("chemsearch.data").joinpath(BUNDLED_DATASET).read_text(encoding="utf-8")
    return parse_dataset(json.loads(text))
