"""SearchEngine: parse, filter, score and rank over an immutable index."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from rapidfuzz import fuzz

from chemsearch.core.fields import EntityType, FieldWeightConfig
from chemsearch.core.filters import apply_filters, filters_from_query
from chemsearch.core.index import SearchIndex, build_index, build_vocabulary, normalize_text
from chemsearch.core.query import parse_query
from chemsearch.core.ranking import paginate, rank
from chemsearch.core.schema import (
    SearchableRecord,
    SearchFilters,
    SearchOptions,
    SearchResponse,
    SearchResult,
)
from chemsearch.core.scoring import Scorer

logger = logging.getLogger(__name__)


class SearchEngine:
    """Primary entry point for queries over one record set.

    The index is never mutated: replace_records() builds a new one and swaps
    the reference, so a search in progress keeps the index it started with.
    """

    def __init__(
        self,
        records: Iterable[SearchableRecord] = (),
        config: FieldWeightConfig | None = None,
    ) -> None:
        self.config = config or FieldWeightConfig()
        self._index = build_index(records, self.config)

    @property
    def index(self) -> SearchIndex:
        return self._index

    def replace_records(self, records: Iterable[SearchableRecord]) -> SearchIndex:
        """Rebuild the index wholesale from a new record set."""
        new_index = build_index(records, self.config)
        self._index = new_index
        logger.debug("Index rebuilt with %d records", len(new_index))
        return new_index

    def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        options: SearchOptions | None = None,
        popularity: Mapping[str, float] | None = None,
    ) -> SearchResponse:
        """Run a query. Always returns a (possibly empty) response."""
        index = self._index
        filters = filters or SearchFilters()
        options = options or SearchOptions()
        parsed = parse_query(query)

        candidates = apply_filters(index.records, filters)
        candidates = apply_filters(candidates, filters_from_query(parsed))

        scorer = Scorer(parsed, index.config)
        scored: list[SearchResult] = []
        for rec in candidates:
            result = scorer.score(rec)
            if result is None:
                continue
            scored.append(
                SearchResult(
                    record=rec.record,
                    relevance_score=result.score,
                    matched_fields=result.matched_fields,
                )
            )

        ordered = rank(scored, options.sort_by, options.sort_order, popularity)
        return SearchResponse(
            query=query,
            results=paginate(ordered, options.limit, options.offset),
            total_count=len(ordered),
            parsed=parsed,
        )

    def vocabulary_matches(
        self,
        partial: str,
        entity_type: EntityType | None = None,
        limit: int = 20,
    ) -> list[str]:
        """Vocabulary entries matching a partial query.

        Whole-entry prefix matches come first, then entries with a word starting
        with the partial, then fuzzy word matches.
        """
        needle = normalize_text(partial).strip()
        if not needle:
            return []
        index = self._index
        if entity_type is None:
            vocabulary = index.vocabulary
        else:
            vocabulary = build_vocabulary(r for r in index.records if r.entity_type == entity_type)

        ranked: list[tuple[int, str, str]] = []
        for entry in vocabulary:
            normalized = normalize_text(entry)
            words = normalized.split()
            if normalized.startswith(needle):
                tier = 0
            elif any(w.startswith(needle) for w in words):
                tier = 1
            elif len(needle) >= 3 and any(
                fuzz.ratio(needle, w) / 100.0 >= self.config.min_similarity for w in words
            ):
                tier = 2
            else:
                continue
            ranked.append((tier, normalized, entry))

        ranked.sort()
        return [entry for _, _, entry in ranked[:limit]]
