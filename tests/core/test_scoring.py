"""Tests for token similarity, phrase matching and record scoring."""

from chemsearch.core.index import index_record
from chemsearch.core.query import parse_query
from chemsearch.core.schema import Compound
from chemsearch.core.scoring import PREFIX_SCORE, Scorer, phrase_in_field, score_record, token_similarity


class TestTokenSimilarity:
    def test_exact(self):
        assert token_similarity("acid", "acid", 0.8) == 1.0

    def test_prefix(self):
        assert token_similarity("chlor", "chloride", 0.8) == PREFIX_SCORE

    def test_short_prefix_not_counted(self):
        assert token_similarity("ch", "chloride", 0.8) == 0.0

    def test_typo(self):
        assert 0.8 <= token_similarity("sodim", "sodium", 0.8) < 1.0

    def test_unrelated(self):
        assert token_similarity("glucose", "chlorine", 0.8) == 0.0


class TestPhrase:
    def test_in_order(self):
        rec = index_record(Compound(id="x", title="Sodium Chloride"))
        assert phrase_in_field(("sodium", "chloride"), rec.fields["title"], 0)

    def test_reversed_does_not_match(self):
        rec = index_record(Compound(id="x", title="Chloride Sodium"))
        assert not phrase_in_field(("sodium", "chloride"), rec.fields["title"], 1)

    def test_distance_allows_gap(self):
        rec = index_record(Compound(id="x", title="Sodium Hydrogen Carbonate"))
        field = rec.fields["title"]
        assert phrase_in_field(("sodium", "carbonate"), field, 1)
        assert not phrase_in_field(("sodium", "carbonate"), field, 0)

    def test_does_not_span_values(self):
        rec = index_record(Compound(id="x", title="X", tags=["sodium", "chloride"]))
        assert not phrase_in_field(("sodium", "chloride"), rec.fields["tags"], 1)


class TestScorer:
    def test_no_units_scores_one(self, config):
        rec = index_record(Compound(id="x", title="Anything"))
        result = score_record(rec, parse_query(""), config)
        assert result.score == 1.0
        assert result.matched_fields == []

    def test_title_match_reports_field(self, config):
        rec = index_record(Compound(id="x", title="Sodium Chloride", formula="NaCl"))
        result = score_record(rec, parse_query("chloride"), config)
        assert result is not None
        assert result.matched_fields == ["title"]
        assert 0 < result.score <= 1

    def test_no_match_is_none(self, config):
        rec = index_record(Compound(id="x", title="Glucose"))
        assert score_record(rec, parse_query("chlorine"), config) is None

    def test_low_weight_hit_passes_threshold(self, config):
        rec = index_record(
            Compound(
                id="nacl",
                title="Sodium Chloride",
                formula="NaCl",
                cas_number="7647-14-5",
                tags=["salt"],
                hazard_tags=["irritant"],
                uses=["seasoning"],
                category="salt",
            )
        )
        result = score_record(rec, parse_query("irritant"), config)
        assert result is not None
        assert result.matched_fields == ["hazard_tags"]
        assert result.score < config.threshold

    def test_exclusion_wins(self, config):
        rec = index_record(Compound(id="x", title="Acetic Acid", tags=["organic"]))
        assert score_record(rec, parse_query("acid NOT organic"), config) is None

    def test_exclusion_substring(self, config):
        rec = index_record(Compound(id="x", title="Hydrochloric Acid", tags=["inorganic"]))
        scorer = Scorer(parse_query("NOT organic"), config)
        assert scorer.is_excluded(rec)

    def test_more_terms_matched_scores_higher(self, config):
        both = index_record(Compound(id="a", title="Citric Acid"))
        one = index_record(Compound(id="b", title="Acetic Acid"))
        scorer = Scorer(parse_query("citric acid"), config)
        assert scorer.score(both).score > scorer.score(one).score

    def test_or_group_is_soft(self, config):
        rec = index_record(Compound(id="x", title="Glucose"))
        scorer = Scorer(parse_query("glucose OR fructose"), config)
        assert scorer.score(rec) is not None

    def test_title_outweighs_tags(self, config):
        in_title = index_record(Compound(id="a", title="Salt", tags=["mineral"]))
        in_tags = index_record(Compound(id="b", title="Halite", tags=["salt"]))
        scorer = Scorer(parse_query("salt"), config)
        assert scorer.score(in_title).score > scorer.score(in_tags).score
