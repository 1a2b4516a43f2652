"""Tests for the query parser."""

from chemsearch.core.query import MAX_QUERY_LENGTH, parse_field_token, parse_query
from chemsearch.core.schema import FieldFilter, RangeFilter


class TestParseQuery:
    def test_empty(self):
        parsed = parse_query("")
        assert parsed.is_empty
        assert not parsed.has_terms

    def test_plain_terms(self):
        parsed = parse_query("sodium chloride")
        assert parsed.must_include == ["sodium", "chloride"]

    def test_exact_phrase(self):
        parsed = parse_query('"sodium chloride"')
        assert parsed.exact_phrases == ["sodium chloride"]
        assert parsed.must_include == []

    def test_unclosed_quote_is_literal(self):
        parsed = parse_query('"sodium chloride')
        assert parsed.exact_phrases == []
        assert parsed.must_include == ['"sodium', "chloride"]

    def test_not_term(self):
        parsed = parse_query("acid NOT organic")
        assert parsed.must_include == ["acid"]
        assert parsed.must_exclude == ["organic"]

    def test_not_phrase(self):
        parsed = parse_query('acid NOT "acetic acid"')
        assert parsed.must_exclude == ["acetic acid"]

    def test_lowercase_not_keyword(self):
        parsed = parse_query("acid not organic")
        assert parsed.must_exclude == ["organic"]

    def test_trailing_not_is_a_term(self):
        parsed = parse_query("acid NOT")
        assert parsed.must_exclude == []
        assert "NOT" in parsed.must_include

    def test_or_group(self):
        parsed = parse_query("glucose OR citric OR acetic")
        assert parsed.or_groups == [["glucose", "citric", "acetic"]]
        assert parsed.must_include == []

    def test_or_chain_with_extra_terms(self):
        parsed = parse_query("acid glucose OR citric salt")
        assert parsed.must_include == ["acid", "salt"]
        assert parsed.or_groups == [["glucose", "citric"]]

    def test_dangling_or_ignored(self):
        parsed = parse_query("OR acid OR")
        assert parsed.must_include == ["acid"]
        assert parsed.or_groups == []

    def test_range(self):
        parsed = parse_query("MW:100-200")
        assert parsed.ranges == [RangeFilter(field="molecular_mass", min=100, max=200)]
        assert not parsed.has_terms

    def test_range_swapped_bounds(self):
        parsed = parse_query("mw:200-100")
        assert parsed.ranges[0].min == 100
        assert parsed.ranges[0].max == 200

    def test_field_filter(self):
        parsed = parse_query("type:elements group:1")
        assert FieldFilter(field="type", value="element") in parsed.field_filters
        assert FieldFilter(field="group", value="1") in parsed.field_filters

    def test_unknown_field_is_plain_term(self):
        parsed = parse_query("colour:blue")
        assert parsed.must_include == ["colour:blue"]

    def test_parens_stripped(self):
        parsed = parse_query("(acid)")
        assert parsed.must_include == ["acid"]

    def test_dedupes_case_insensitively(self):
        parsed = parse_query("Acid acid ACID")
        assert parsed.must_include == ["Acid"]

    def test_truncates_long_queries(self):
        parsed = parse_query("a" * (MAX_QUERY_LENGTH + 100))
        assert len(parsed.must_include[0]) == MAX_QUERY_LENGTH

    def test_never_raises(self):
        for raw in ['"', "NOT", "OR", ":", "mw:", "mw:-", "(((", '""', "mw:abc"]:
            parse_query(raw)


class TestParseFieldToken:
    def test_open_range(self):
        assert parse_field_token("mp:100-") == RangeFilter(field="melting_point", min=100, max=None)

    def test_negative_range(self):
        assert parse_field_token("mp:-10-50") == RangeFilter(field="melting_point", min=-10, max=50)

    def test_exact_number(self):
        assert parse_field_token("an:6") == FieldFilter(field="atomic_number", value="6")

    def test_enum_value_validated(self):
        assert parse_field_token("difficulty:basic") == FieldFilter(field="difficulty", value="basic")
        assert parse_field_token("difficulty:impossible") is None

    def test_unknown_type(self):
        assert parse_field_token("type:mineral") is None

    def test_not_a_field_token(self):
        assert parse_field_token("acid") is None
