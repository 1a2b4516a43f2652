"""Scorer/matcher: fuzzy-match a parsed query against an indexed record."""

from __future__ import annotations

from dataclasses import dataclass

from rapidfuzz import fuzz

from chemsearch.core.fields import FieldWeightConfig
from chemsearch.core.index import IndexedField, IndexedRecord, normalize_text, tokenize
from chemsearch.core.schema import ParsedQuery

PREFIX_SCORE = 0.9
MIN_PREFIX_LENGTH = 3


@dataclass(frozen=True)
class ScoreResult:
    score: float
    matched_fields: list[str]


@dataclass(frozen=True)
class _Unit:
    """One scoring unit: a term, an OR-group or a phrase."""

    kind: str  # "term", "group" or "phrase"
    alternatives: tuple[tuple[str, ...], ...]


def token_similarity(query_token: str, field_token: str, min_similarity: float) -> float:
    """Similarity in [0, 1] between two normalized tokens; below min_similarity counts as 0."""
    if query_token == field_token:
        return 1.0
    if len(query_token) >= MIN_PREFIX_LENGTH and field_token.startswith(query_token):
        return PREFIX_SCORE
    ratio = fuzz.ratio(query_token, field_token) / 100.0
    return ratio if ratio >= min_similarity else 0.0


def phrase_in_field(tokens: tuple[str, ...], indexed: IndexedField, distance: int) -> bool:
    """True if tokens appear in order in one raw value, each within `distance` skipped positions."""
    if not tokens:
        return False
    for segment in indexed.segments:
        for start, token in enumerate(segment):
            if token == tokens[0] and _follows(segment, start, tokens[1:], distance):
                return True
    return False


def _follows(segment: tuple[str, ...], pos: int, rest: tuple[str, ...], distance: int) -> bool:
    if not rest:
        return True
    window = segment[pos + 1 : pos + 2 + distance]
    for offset, token in enumerate(window):
        if token == rest[0] and _follows(segment, pos + 1 + offset, rest[1:], distance):
            return True
    return False


class Scorer:
    """Scores records against one parsed query. Built once per search."""

    def __init__(self, parsed: ParsedQuery, config: FieldWeightConfig) -> None:
        self.config = config
        self.units: list[_Unit] = []
        for term in parsed.must_include:
            tokens = tuple(tokenize(term))
            if tokens:
                self.units.append(_Unit("term", (tokens,)))
        for group in parsed.or_groups:
            members = tuple(t for t in (tuple(tokenize(m)) for m in group) if t)
            if members:
                self.units.append(_Unit("group", members))
        for phrase in parsed.exact_phrases:
            tokens = tuple(tokenize(phrase))
            if tokens:
                self.units.append(_Unit("phrase", (tokens,)))
        self.excludes = [
            (tuple(tokenize(term)), normalize_text(term).strip()) for term in parsed.must_exclude
        ]
        self.excludes = [(tokens, text) for tokens, text in self.excludes if tokens]

    # -- exclusion --

    def is_excluded(self, record: IndexedRecord) -> bool:
        for tokens, text in self.excludes:
            for indexed in record.fields.values():
                if len(tokens) == 1:
                    if self._token_excluded(tokens[0], indexed):
                        return True
                elif text in normalize_text(indexed.text) or phrase_in_field(tokens, indexed, 0):
                    return True
        return False

    def _token_excluded(self, token: str, indexed: IndexedField) -> bool:
        for field_token in indexed.token_set:
            if token in field_token:
                return True
            if fuzz.ratio(token, field_token) / 100.0 >= self.config.min_similarity:
                return True
        return False

    # -- per-field matching --

    def _term_score(self, tokens: tuple[str, ...], indexed: IndexedField) -> float:
        total = 0.0
        for query_token in tokens:
            if query_token in indexed.token_set:
                total += 1.0
                continue
            total += max(
                (
                    token_similarity(query_token, t, self.config.min_similarity)
                    for t in indexed.token_set
                ),
                default=0.0,
            )
        return total / len(tokens)

    def _unit_score(self, unit: _Unit, indexed: IndexedField) -> float:
        if unit.kind == "phrase":
            return 1.0 if phrase_in_field(unit.alternatives[0], indexed, self.config.distance) else 0.0
        return max(self._term_score(tokens, indexed) for tokens in unit.alternatives)

    # -- aggregation --

    def score(self, record: IndexedRecord) -> ScoreResult | None:
        """Relevance of a record, or None when excluded or not matched well enough.

        The threshold gates on the best single field match (scaled by term
        coverage); the returned score is the normalized weighted aggregate used
        for ranking, so an exact hit in a low-weight field still matches.
        """
        if self.is_excluded(record):
            return None
        if not self.units:
            return ScoreResult(score=1.0, matched_fields=[])

        weighted = 0.0
        attainable = 0.0
        peak = 0.0
        matched_fields: list[str] = []
        unit_matched = [False] * len(self.units)

        for name, indexed in record.fields.items():
            weight = self.config.weight(name)
            if weight <= 0:
                continue
            attainable += weight
            best = 0.0
            for i, unit in enumerate(self.units):
                s = self._unit_score(unit, indexed)
                if s > 0:
                    unit_matched[i] = True
                    best = max(best, s)
            if best > 0:
                matched_fields.append(name)
                weighted += weight * best
                peak = max(peak, best)

        if attainable == 0 or weighted == 0:
            return None

        coverage = sum(unit_matched) / len(self.units)
        if peak * coverage < self.config.threshold:
            return None
        relevance = min(1.0, round(weighted / attainable * coverage, 6))
        return ScoreResult(score=relevance, matched_fields=matched_fields)


def score_record(
    record: IndexedRecord, parsed: ParsedQuery, config: FieldWeightConfig
) -> ScoreResult | None:
    """Score a single record. Prefer a shared Scorer when scoring many records."""
    return Scorer(parsed, config).score(record)
