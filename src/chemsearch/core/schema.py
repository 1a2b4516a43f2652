"""Pydantic v2 models for records, queries, results and session state."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chemsearch.core.fields import EntityType


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


# -- Records --


class _RecordBase(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)
    url: str = ""
    category: str = ""
    updated_at: datetime | None = None

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(t for t in v if t))

    @property
    def key(self) -> str:
        """Identifier unique across entity types."""
        return f"{self.entity_type}:{self.id}"

    @property
    def kind(self) -> EntityType:
        return EntityType(self.entity_type)


class Compound(_RecordBase):
    entity_type: Literal["compound"] = "compound"
    formula: str = ""
    molecular_mass: float | None = Field(default=None, gt=0)
    cas_number: str = ""
    hazard_tags: list[str] = Field(default_factory=list)
    uses: list[str] = Field(default_factory=list)
    melting_point: float | None = None
    boiling_point: float | None = None
    density: float | None = Field(default=None, ge=0)
    pka: float | None = None
    pkb: float | None = None


class Element(_RecordBase):
    entity_type: Literal["element"] = "element"
    atomic_number: int = Field(ge=1, le=118)
    symbol: str = ""
    atomic_mass: float | None = Field(default=None, gt=0)
    group: int | None = Field(default=None, ge=1, le=18)
    period: int | None = Field(default=None, ge=1, le=7)
    block: str = ""
    electron_configuration: str = ""
    electronegativity: float | None = Field(default=None, ge=0)
    discoverer: str = ""


class Difficulty(str, Enum):
    basic = "basic"
    intermediate = "intermediate"
    advanced = "advanced"


class Calculator(_RecordBase):
    entity_type: Literal["calculator"] = "calculator"
    description: str = ""
    calc_type: str = ""
    formula: str = ""
    examples: list[str] = Field(default_factory=list)
    difficulty: Difficulty = Difficulty.basic
    educational_level: list[str] = Field(default_factory=list)


class HelpArticle(_RecordBase):
    entity_type: Literal["help"] = "help"
    content: str = ""
    related_topics: list[str] = Field(default_factory=list)
    difficulty: str = ""


SearchableRecord = Annotated[
    Union[Compound, Element, Calculator, HelpArticle],
    Field(discriminator="entity_type"),
]


# -- Queries and filters --


class FieldFilter(BaseModel):
    field: str
    value: str


class RangeFilter(BaseModel):
    field: str
    min: float | None = None
    max: float | None = None

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class ParsedQuery(BaseModel):
    must_include: list[str] = Field(default_factory=list)
    must_exclude: list[str] = Field(default_factory=list)
    exact_phrases: list[str] = Field(default_factory=list)
    or_groups: list[list[str]] = Field(default_factory=list)
    field_filters: list[FieldFilter] = Field(default_factory=list)
    ranges: list[RangeFilter] = Field(default_factory=list)

    @property
    def has_terms(self) -> bool:
        """True when the query carries anything that contributes to relevance."""
        return bool(self.must_include or self.exact_phrases or self.or_groups)

    @property
    def is_empty(self) -> bool:
        return not (
            self.has_terms or self.must_exclude or self.field_filters or self.ranges
        )


class SearchFilters(BaseModel):
    """User-selected structural constraints. Unset dimensions mean no constraint."""

    entity_types: list[EntityType] | None = None
    categories: list[str] | None = None
    ranges: list[RangeFilter] = Field(default_factory=list)
    enums: dict[str, list[str]] = Field(default_factory=dict)

    def active_keys(self) -> list[str]:
        """Names of the filter dimensions that constrain anything."""
        keys = []
        if self.entity_types:
            keys.append("type")
        if self.categories:
            keys.append("category")
        keys.extend(r.field for r in self.ranges)
        keys.extend(name for name, values in self.enums.items() if values)
        return list(dict.fromkeys(keys))


class SortKey(str, Enum):
    relevance = "relevance"
    name = "name"
    date = "date"
    popularity = "popularity"
    molecular_weight = "molecular_weight"
    atomic_number = "atomic_number"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class SearchOptions(BaseModel):
    limit: int = Field(default=20, ge=0)
    offset: int = Field(default=0, ge=0)
    sort_by: SortKey = SortKey.relevance
    sort_order: SortOrder | None = None


# -- Results --


class SearchResult(BaseModel):
    record: SearchableRecord
    relevance_score: float = Field(ge=0, le=1)
    matched_fields: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    query: str = ""
    results: list[SearchResult] = Field(default_factory=list)
    total_count: int = 0
    parsed: ParsedQuery = Field(default_factory=ParsedQuery)


# -- Session state --


class SearchHistoryItem(BaseModel):
    id: str = Field(default_factory=_uuid)
    query: str
    filters: SearchFilters = Field(default_factory=SearchFilters)
    timestamp: datetime = Field(default_factory=_now)
    result_count: int = 0


class SearchBookmark(BaseModel):
    id: str = Field(default_factory=_uuid)
    name: str
    query: str
    filters: SearchFilters = Field(default_factory=SearchFilters)
    created_at: datetime = Field(default_factory=_now)


# -- Analytics --


class QueryCount(BaseModel):
    query: str
    count: int


class AnalyticsState(BaseModel):
    total_searches: int = 0
    popular_queries: list[QueryCount] = Field(default_factory=list)
    no_results_queries: list[QueryCount] = Field(default_factory=list)
    filter_usage: dict[str, int] = Field(default_factory=dict)
    search_type_distribution: dict[str, int] = Field(default_factory=dict)
    result_clicks: dict[str, int] = Field(default_factory=dict)


class AnalyticsRecord(BaseModel):
    """Persisted analytics: the public state plus the full counters behind its top-N lists."""

    state: AnalyticsState = Field(default_factory=AnalyticsState)
    query_counts: dict[str, int] = Field(default_factory=dict)
    no_results_counts: dict[str, int] = Field(default_factory=dict)
