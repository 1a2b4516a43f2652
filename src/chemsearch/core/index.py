"""Index builder: normalize heterogeneous records into uniform searchable fields."""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from chemsearch.core.fields import REGISTRY, ConfigError, EntityType, FieldWeightConfig
from chemsearch.core.schema import SearchableRecord

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[^\W_]+")

# Fields whose raw values are offered as suggestion vocabulary.
_VOCABULARY_FIELDS = ("title", "symbol", "formula", "tags", "calc_type")


def normalize_text(text: str) -> str:
    """Case-fold and strip diacritics (NFKD, combining marks dropped)."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def tokenize(text: str) -> list[str]:
    """Split text into normalized alphanumeric tokens, punctuation-insensitive."""
    return _TOKEN_RE.findall(normalize_text(text))


@dataclass(frozen=True)
class IndexedField:
    """One field of one record: raw values kept next to their token runs."""

    name: str
    raw: tuple[str, ...]
    segments: tuple[tuple[str, ...], ...]
    token_set: frozenset[str]

    @property
    def text(self) -> str:
        return " ".join(self.raw)


@dataclass(frozen=True)
class IndexedRecord:
    record: SearchableRecord
    entity_type: EntityType
    fields: dict[str, IndexedField]
    numeric: dict[str, float]
    enums: dict[str, frozenset[str]]

    @property
    def key(self) -> str:
        return self.record.key

    @property
    def id(self) -> str:
        return self.record.id


@dataclass(frozen=True)
class SearchIndex:
    records: tuple[IndexedRecord, ...]
    config: FieldWeightConfig
    vocabulary: tuple[str, ...] = ()
    by_key: dict[str, IndexedRecord] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.records)

    def counts(self) -> dict[str, int]:
        """Number of indexed records per entity type."""
        result = {t.value: 0 for t in EntityType}
        for rec in self.records:
            result[rec.entity_type.value] += 1
        return result


def _as_strings(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(str(v) for v in value if v not in (None, ""))
    text = str(value)
    return (text,) if text else ()


def _index_field(name: str, value: object) -> IndexedField | None:
    raw = _as_strings(value)
    if not raw:
        return None
    segments = tuple(tuple(tokenize(v)) for v in raw)
    token_set = frozenset(t for seg in segments for t in seg)
    if not token_set:
        return None
    return IndexedField(name=name, raw=raw, segments=segments, token_set=token_set)


def _check_registry(record: SearchableRecord) -> None:
    entity_fields = REGISTRY[record.kind]
    declared = type(record).model_fields
    missing = [
        name
        for name in (*entity_fields.text, *entity_fields.numeric, *entity_fields.enums)
        if name not in declared
    ]
    if missing:
        raise ConfigError(
            f"Field registry for '{record.entity_type}' names unknown fields: {', '.join(missing)}"
        )


def index_record(record: SearchableRecord) -> IndexedRecord:
    """Build the uniform representation of one record. Absent fields are skipped."""
    _check_registry(record)
    entity_fields = REGISTRY[record.kind]

    fields: dict[str, IndexedField] = {}
    for name in entity_fields.text:
        indexed = _index_field(name, getattr(record, name, None))
        if indexed is not None:
            fields[name] = indexed

    numeric: dict[str, float] = {}
    for name in entity_fields.numeric:
        value = getattr(record, name, None)
        if value is not None:
            numeric[name] = float(value)

    enums: dict[str, frozenset[str]] = {}
    for name in entity_fields.enums:
        values = frozenset(normalize_text(v) for v in _as_strings(getattr(record, name, None)))
        if values:
            enums[name] = values

    return IndexedRecord(
        record=record,
        entity_type=record.kind,
        fields=fields,
        numeric=numeric,
        enums=enums,
    )


def build_vocabulary(records: Iterable[IndexedRecord]) -> tuple[str, ...]:
    seen: dict[str, str] = {}
    for rec in records:
        for name in _VOCABULARY_FIELDS:
            indexed = rec.fields.get(name)
            if indexed is None:
                continue
            for raw in indexed.raw:
                seen.setdefault(normalize_text(raw), raw)
    return tuple(seen[k] for k in sorted(seen))


def build_index(records: Iterable[SearchableRecord], config: FieldWeightConfig) -> SearchIndex:
    """Build an immutable index. Same input always yields the same index.

    Records repeating an already indexed (type, id) pair, or an already indexed
    atomic number, are skipped with a warning.
    """
    indexed: list[IndexedRecord] = []
    by_key: dict[str, IndexedRecord] = {}
    atomic_numbers: set[int] = set()

    for record in records:
        if record.key in by_key:
            logger.warning("Skipping duplicate record %s", record.key)
            continue
        atomic_number = getattr(record, "atomic_number", None)
        if atomic_number is not None:
            if atomic_number in atomic_numbers:
                logger.warning(
                    "Skipping %s: atomic number %d already indexed", record.key, atomic_number
                )
                continue
            atomic_numbers.add(atomic_number)
        rec = index_record(record)
        indexed.append(rec)
        by_key[rec.key] = rec

    return SearchIndex(
        records=tuple(indexed),
        config=config,
        vocabulary=build_vocabulary(indexed),
        by_key=by_key,
    )
