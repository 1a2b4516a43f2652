"""SearchSession: history, bookmarks, suggestions and request sequencing."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from pydantic import TypeAdapter, ValidationError

from chemsearch.core.analytics import AnalyticsTracker
from chemsearch.core.engine import SearchEngine
from chemsearch.core.fields import EntityType
from chemsearch.core.filters import filters_from_query
from chemsearch.core.index import normalize_text
from chemsearch.core.schema import (
    SearchBookmark,
    SearchFilters,
    SearchHistoryItem,
    SearchOptions,
    SearchResponse,
)
from chemsearch.core.storage import BOOKMARKS_KEY, HISTORY_KEY, KeyValueStorage, StorageError

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 20
MAX_HISTORY_ITEMS = 50
MAX_BOOKMARKS = 100
SUGGEST_DEBOUNCE_SECONDS = 0.3

POPULAR_SEARCHES = (
    "water",
    "sodium chloride",
    "hydrochloric acid",
    "sulfuric acid",
    "methane",
    "ethanol",
    "benzene",
    "glucose",
    "aspirin",
    "caffeine",
    "periodic table",
    "molecular weight",
    "stoichiometry",
    "equation balancer",
    "gas laws",
    "thermodynamics",
    "kinetics",
    "titration",
    "electron configuration",
    "lewis structures",
    "vsepr theory",
    "acid base",
    "oxidation reduction",
    "organic chemistry",
)

_HISTORY_ADAPTER = TypeAdapter(list[SearchHistoryItem])
_BOOKMARKS_ADAPTER = TypeAdapter(list[SearchBookmark])


class SessionError(Exception):
    pass


class BookmarkCapacityError(SessionError):
    pass


class SessionState(str, Enum):
    idle = "idle"
    typing = "typing"
    suggesting = "suggesting"
    searched = "searched"


@dataclass(frozen=True)
class SuggestionToken:
    """Handle for one pending suggestion computation."""

    generation: int
    partial: str


def _merge_filters(user: SearchFilters, derived: SearchFilters) -> SearchFilters:
    """Union of both filter sets, used only to report which dimensions were used."""
    types = list(dict.fromkeys([*(user.entity_types or []), *(derived.entity_types or [])]))
    categories = list(dict.fromkeys([*(user.categories or []), *(derived.categories or [])]))
    enums = {name: list(values) for name, values in user.enums.items()}
    for name, values in derived.enums.items():
        enums.setdefault(name, []).extend(values)
    return SearchFilters(
        entity_types=types or None,
        categories=categories or None,
        ranges=[*user.ranges, *derived.ranges],
        enums=enums,
    )


class SearchSession:
    """One user's interaction with a SearchEngine.

    Typing hands out generation-numbered tokens; a suggestion computed for an
    older token is discarded. Submissions are numbered the same way and only
    the newest response is applied to history and analytics.
    """

    def __init__(
        self,
        engine: SearchEngine,
        storage: KeyValueStorage | None = None,
        analytics: AnalyticsTracker | None = None,
        popular_searches: Iterable[str] = POPULAR_SEARCHES,
    ) -> None:
        self.engine = engine
        self.storage = storage
        self.analytics = analytics or AnalyticsTracker(storage)
        self.popular_searches = tuple(popular_searches)
        self.state = SessionState.idle
        self.partial = ""
        self.last_response: SearchResponse | None = None
        self._generation = 0
        self._sequence = 0
        self._history: list[SearchHistoryItem] = self._load(HISTORY_KEY, _HISTORY_ADAPTER)[
            :MAX_HISTORY_ITEMS
        ]
        self._bookmarks: list[SearchBookmark] = self._load(BOOKMARKS_KEY, _BOOKMARKS_ADAPTER)

    # -- persistence --

    def _load(self, key: str, adapter: TypeAdapter) -> list:
        if self.storage is None:
            return []
        try:
            raw = self.storage.get(key)
            if raw is None:
                return []
            return adapter.validate_json(raw)
        except (StorageError, ValidationError) as e:
            logger.warning("Ignoring unreadable %s: %s", key, e)
            return []

    def _save(self, key: str, adapter: TypeAdapter, items: list) -> None:
        if self.storage is None:
            return
        try:
            self.storage.set(key, adapter.dump_json(items, indent=2).decode())
        except StorageError as e:
            logger.warning("Could not persist %s: %s", key, e)

    # -- typing and suggestions --

    def type(self, partial: str) -> SuggestionToken:
        """Register a keystroke. Any earlier pending suggestion becomes stale."""
        self._generation += 1
        self.partial = partial
        self.state = SessionState.typing if partial else SessionState.idle
        return SuggestionToken(self._generation, partial)

    def cancel_suggestions(self) -> None:
        self._generation += 1

    def is_current(self, token: SuggestionToken) -> bool:
        return token.generation == self._generation

    def suggest(
        self, token: SuggestionToken, entity_type: EntityType | None = None
    ) -> list[str] | None:
        """Compute suggestions for a token, or None if newer input superseded it."""
        if not self.is_current(token):
            logger.debug("Dropping stale suggestion for %r", token.partial)
            return None
        suggestions = self.get_suggestions(token.partial, entity_type)
        if token.partial:
            self.state = SessionState.suggesting
        return suggestions

    async def suggest_debounced(
        self,
        partial: str,
        entity_type: EntityType | None = None,
        delay: float = SUGGEST_DEBOUNCE_SECONDS,
    ) -> list[str] | None:
        """Wait out the quiet period, then suggest unless more input arrived."""
        token = self.type(partial)
        await asyncio.sleep(delay)
        return self.suggest(token, entity_type)

    def get_suggestions(
        self,
        partial: str,
        entity_type: EntityType | None = None,
        limit: int = MAX_SUGGESTIONS,
    ) -> list[str]:
        """Vocabulary matches, then history, then popular queries; deduplicated."""
        needle = normalize_text(partial).strip()
        if not needle:
            return []
        limit = max(0, min(limit, MAX_SUGGESTIONS))

        candidates: list[str] = list(self.engine.vocabulary_matches(partial, entity_type, limit))
        candidates.extend(
            item.query for item in self._history if needle in normalize_text(item.query)
        )
        popular = [*self.analytics.popular_queries(limit), *self.popular_searches]
        candidates.extend(q for q in popular if needle in normalize_text(q))

        seen: set[str] = set()
        suggestions: list[str] = []
        for candidate in candidates:
            key = normalize_text(candidate).strip()
            if not key or key in seen:
                continue
            seen.add(key)
            suggestions.append(candidate)
            if len(suggestions) >= limit:
                break
        return suggestions

    # -- searching --

    def begin_search(self) -> int:
        """Claim a request sequence number. Pending suggestions are cancelled."""
        self._sequence += 1
        self.cancel_suggestions()
        return self._sequence

    def is_latest(self, sequence: int) -> bool:
        return sequence == self._sequence

    def complete_search(
        self,
        sequence: int,
        response: SearchResponse,
        filters: SearchFilters | None = None,
        voice: bool = False,
    ) -> bool:
        """Apply a response if it belongs to the newest request. Returns whether it did."""
        if not self.is_latest(sequence):
            logger.debug("Discarding superseded response for %r", response.query)
            return False
        filters = filters or SearchFilters()
        self.last_response = response
        self.state = SessionState.searched
        self._append_history(response.query, filters, response.total_count)
        self.analytics.record_search(
            response.query,
            response.total_count,
            _merge_filters(filters, filters_from_query(response.parsed)),
        )
        if voice:
            self.analytics.record_voice_search(response.query)
        return True

    def submit(
        self,
        query: str,
        filters: SearchFilters | None = None,
        options: SearchOptions | None = None,
        voice: bool = False,
    ) -> SearchResponse:
        sequence = self.begin_search()
        response = self._run(query, filters, options)
        self.complete_search(sequence, response, filters, voice=voice)
        return response

    async def submit_async(
        self,
        query: str,
        filters: SearchFilters | None = None,
        options: SearchOptions | None = None,
        voice: bool = False,
    ) -> SearchResponse | None:
        """Submit without blocking the loop. Returns None if a newer submit superseded this one."""
        sequence = self.begin_search()
        await asyncio.sleep(0)
        if not self.is_latest(sequence):
            logger.debug("Skipping superseded search for %r", query)
            return None
        response = self._run(query, filters, options)
        await asyncio.sleep(0)
        if not self.complete_search(sequence, response, filters, voice=voice):
            return None
        return response

    def _run(
        self,
        query: str,
        filters: SearchFilters | None,
        options: SearchOptions | None,
    ) -> SearchResponse:
        return self.engine.search(
            query, filters, options, popularity=self.analytics.click_counts()
        )

    def reset(self) -> None:
        """Back to idle: cancels pending suggestions and clears the partial query."""
        self.cancel_suggestions()
        self.partial = ""
        self.state = SessionState.idle

    # -- history --

    def _append_history(self, query: str, filters: SearchFilters, result_count: int) -> None:
        item = SearchHistoryItem(query=query, filters=filters, result_count=result_count)
        self._history = [item, *self._history][:MAX_HISTORY_ITEMS]
        self._save(HISTORY_KEY, _HISTORY_ADAPTER, self._history)

    def history(self) -> list[SearchHistoryItem]:
        """History items, newest first."""
        return list(self._history)

    def remove_history_item(self, item_id: str) -> bool:
        remaining = [h for h in self._history if h.id != item_id]
        if len(remaining) == len(self._history):
            return False
        self._history = remaining
        self._save(HISTORY_KEY, _HISTORY_ADAPTER, self._history)
        return True

    def clear_history(self) -> None:
        self._history = []
        self._save(HISTORY_KEY, _HISTORY_ADAPTER, self._history)
        self.analytics.record_history_cleared()

    # -- bookmarks --

    def bookmarks(self) -> list[SearchBookmark]:
        return list(self._bookmarks)

    def get_bookmark(self, bookmark_id: str) -> SearchBookmark | None:
        for bookmark in self._bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    def add_bookmark(
        self, name: str, query: str, filters: SearchFilters | None = None
    ) -> SearchBookmark:
        """Save a query. Raises BookmarkCapacityError when the cap is reached."""
        if len(self._bookmarks) >= MAX_BOOKMARKS:
            raise BookmarkCapacityError(
                f"Bookmark limit reached ({MAX_BOOKMARKS}). Remove a bookmark first."
            )
        bookmark = SearchBookmark(
            name=name.strip() or query,
            query=query,
            filters=filters or SearchFilters(),
        )
        self._bookmarks = [*self._bookmarks, bookmark]
        self._save(BOOKMARKS_KEY, _BOOKMARKS_ADAPTER, self._bookmarks)
        self.analytics.record_bookmark_created(bookmark.name, query)
        return bookmark

    def remove_bookmark(self, bookmark_id: str) -> bool:
        """Remove a bookmark. Unknown ids are a no-op; returns whether one was removed."""
        remaining = [b for b in self._bookmarks if b.id != bookmark_id]
        if len(remaining) == len(self._bookmarks):
            return False
        self._bookmarks = remaining
        self._save(BOOKMARKS_KEY, _BOOKMARKS_ADAPTER, self._bookmarks)
        return True

    def run_bookmark(
        self, bookmark_id: str, options: SearchOptions | None = None
    ) -> SearchResponse | None:
        bookmark = self.get_bookmark(bookmark_id)
        if bookmark is None:
            return None
        return self.submit(bookmark.query, bookmark.filters, options)
