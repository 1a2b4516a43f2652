"""Tests for the filter engine."""

import pytest

from chemsearch.core.fields import EntityType
from chemsearch.core.filters import apply_filters, build_filters, filters_from_query
from chemsearch.core.query import parse_query
from chemsearch.core.schema import RangeFilter, SearchFilters


def _ids(records):
    return sorted(r.id for r in records)


class TestApplyFilters:
    def test_no_filters_keeps_everything(self, index):
        assert len(apply_filters(index.records, SearchFilters())) == len(index)

    def test_entity_type(self, index):
        kept = apply_filters(index.records, SearchFilters(entity_types=[EntityType.element]))
        assert _ids(kept) == ["Cl", "H", "Na"]

    def test_category_normalized(self, index):
        kept = apply_filters(index.records, SearchFilters(categories=["ACID"]))
        assert _ids(kept) == ["acetic", "citric", "hcl"]

    def test_range_inclusive(self, index):
        rng = RangeFilter(field="molecular_mass", min=58.44, max=84.007)
        assert _ids(apply_filters(index.records, SearchFilters(ranges=[rng]))) == [
            "acetic",
            "nacl",
            "nahco3",
        ]

    def test_range_alias(self, index):
        rng = RangeFilter(field="an", min=10, max=20)
        assert _ids(apply_filters(index.records, SearchFilters(ranges=[rng]))) == ["Cl", "Na"]

    def test_multi_valued_enum_needs_every_value(self, index):
        filters = SearchFilters(enums={"hazard_tags": ["corrosive", "toxic"]})
        assert _ids(apply_filters(index.records, filters)) == ["hcl"]

    def test_scalar_enum_membership(self, index):
        filters = SearchFilters(enums={"difficulty": ["basic", "intermediate"]})
        assert _ids(apply_filters(index.records, filters)) == [
            "acid-base",
            "molecular-weight",
            "stoichiometry",
        ]

    def test_unknown_field_matches_nothing(self, index):
        filters = SearchFilters(ranges=[RangeFilter(field="colour", min=0, max=1)])
        assert apply_filters(index.records, filters) == []

    def test_preserves_order(self, index):
        kept = apply_filters(index.records, SearchFilters(entity_types=[EntityType.compound]))
        assert [r.id for r in kept] == [r.id for r in index.records if r.entity_type == EntityType.compound]


class TestFiltersFromQuery:
    def test_repeated_types_widen(self):
        filters = filters_from_query(parse_query("type:compound type:element"))
        assert filters.entity_types == [EntityType.compound, EntityType.element]

    def test_numeric_value_becomes_point_range(self):
        filters = filters_from_query(parse_query("group:1"))
        assert filters.ranges == [RangeFilter(field="group", min=1, max=1)]

    def test_enums_and_categories(self):
        filters = filters_from_query(parse_query("category:acid hazard:toxic"))
        assert filters.categories == ["acid"]
        assert filters.enums == {"hazard_tags": ["toxic"]}


class TestBuildFilters:
    def test_combines_sources(self):
        filters = build_filters(["Element"], ["halogen"], ["an:10-20", "block=p"])
        assert filters.entity_types == [EntityType.element]
        assert filters.categories == ["halogen"]
        assert filters.ranges == [RangeFilter(field="atomic_number", min=10, max=20)]
        assert filters.enums == {"block": ["p"]}

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown type"):
            build_filters(["mineral"])

    def test_invalid_token(self):
        with pytest.raises(ValueError, match="Invalid filter"):
            build_filters(tokens=["colour=blue"])
