"""Field registry: which fields each entity type exposes, and how they are weighted."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


class EntityType(str, Enum):
    compound = "compound"
    element = "element"
    calculator = "calculator"
    help = "help"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class EntityFields:
    """Fields a single entity type contributes to the index."""

    text: tuple[str, ...]
    numeric: tuple[str, ...] = ()
    enums: tuple[str, ...] = ()
    # Enum fields holding several values; a filter on these needs every selected value.
    multi_valued: frozenset[str] = field(default_factory=frozenset)


REGISTRY: dict[EntityType, EntityFields] = {
    EntityType.compound: EntityFields(
        text=("title", "formula", "cas_number", "tags", "hazard_tags", "uses", "category"),
        numeric=("molecular_mass", "melting_point", "boiling_point", "density", "pka", "pkb"),
        enums=("hazard_tags", "category"),
        multi_valued=frozenset({"hazard_tags"}),
    ),
    EntityType.element: EntityFields(
        text=("title", "symbol", "electron_configuration", "discoverer", "tags", "category"),
        numeric=("atomic_number", "atomic_mass", "group", "period", "electronegativity"),
        enums=("block", "category"),
    ),
    EntityType.calculator: EntityFields(
        text=("title", "description", "calc_type", "formula", "examples", "tags", "category"),
        enums=("difficulty", "educational_level", "category"),
        multi_valued=frozenset({"educational_level"}),
    ),
    EntityType.help: EntityFields(
        text=("title", "content", "tags", "related_topics", "category"),
        enums=("difficulty", "category"),
    ),
}

# Query-side spellings (lowercased) mapped to registry field names.
FIELD_ALIASES: dict[str, str] = {
    "mw": "molecular_mass",
    "molecularweight": "molecular_mass",
    "molecular_weight": "molecular_mass",
    "molarmass": "molecular_mass",
    "molecular_mass": "molecular_mass",
    "mp": "melting_point",
    "meltingpoint": "melting_point",
    "melting_point": "melting_point",
    "bp": "boiling_point",
    "boilingpoint": "boiling_point",
    "boiling_point": "boiling_point",
    "density": "density",
    "pka": "pka",
    "pkb": "pkb",
    "an": "atomic_number",
    "z": "atomic_number",
    "atomicnumber": "atomic_number",
    "atomic_number": "atomic_number",
    "atomicmass": "atomic_mass",
    "atomic_mass": "atomic_mass",
    "group": "group",
    "period": "period",
    "en": "electronegativity",
    "electronegativity": "electronegativity",
    "type": "type",
    "category": "category",
    "difficulty": "difficulty",
    "block": "block",
    "hazard": "hazard_tags",
    "hazards": "hazard_tags",
    "hazard_tags": "hazard_tags",
    "level": "educational_level",
    "educational_level": "educational_level",
}

TYPE_FIELD = "type"


def resolve_field(name: str) -> str | None:
    """Map a query-side field name to its registry name, or None if unknown."""
    return FIELD_ALIASES.get(name.strip().lower())


def all_text_fields() -> set[str]:
    return {f for entity in REGISTRY.values() for f in entity.text}


def all_numeric_fields() -> set[str]:
    return {f for entity in REGISTRY.values() for f in entity.numeric}


def all_enum_fields() -> set[str]:
    return {f for entity in REGISTRY.values() for f in entity.enums}


def is_numeric_field(name: str) -> bool:
    return name in all_numeric_fields()


def is_enum_field(name: str) -> bool:
    return name in all_enum_fields()


def is_multi_valued(entity_type: EntityType, name: str) -> bool:
    return name in REGISTRY[entity_type].multi_valued


DEFAULT_WEIGHTS: dict[str, float] = {
    "title": 0.4,
    "symbol": 0.3,
    "description": 0.3,
    "formula": 0.25,
    "content": 0.2,
    "tags": 0.2,
    "uses": 0.15,
    "examples": 0.15,
    "category": 0.1,
    "calc_type": 0.1,
    "cas_number": 0.1,
    "hazard_tags": 0.1,
    "electron_configuration": 0.1,
    "discoverer": 0.1,
    "related_topics": 0.1,
}


class FieldWeightConfig(BaseModel):
    """Immutable scoring configuration shared by every query."""

    model_config = ConfigDict(frozen=True)

    weights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    threshold: float = 0.1
    min_similarity: float = 0.8
    distance: int = 1

    @model_validator(mode="after")
    def _check(self) -> FieldWeightConfig:
        known = all_text_fields()
        unknown = sorted(set(self.weights) - known)
        if unknown:
            raise ValueError(f"Unknown fields in weights: {', '.join(unknown)}")
        for name, weight in self.weights.items():
            if not 0 < weight <= 1:
                raise ValueError(f"Weight for '{name}' must be in (0, 1], got {weight}")
        if not 0 <= self.threshold <= 1:
            raise ValueError(f"threshold must be in [0, 1], got {self.threshold}")
        if not 0 < self.min_similarity <= 1:
            raise ValueError(f"min_similarity must be in (0, 1], got {self.min_similarity}")
        if self.distance < 0:
            raise ValueError(f"distance must be >= 0, got {self.distance}")
        return self

    def weight(self, field_name: str) -> float:
        return self.weights.get(field_name, 0.0)


def build_config(data: dict | None = None) -> FieldWeightConfig:
    """Validate raw configuration data, raising ConfigError on any problem.

    Weights given in ``data`` override the defaults one field at a time.
    """
    data = dict(data or {})
    if isinstance(data.get("weights"), dict):
        data["weights"] = {**DEFAULT_WEIGHTS, **data["weights"]}
    try:
        return FieldWeightConfig.model_validate(data)
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise ConfigError(f"Invalid search configuration: {messages}") from e
