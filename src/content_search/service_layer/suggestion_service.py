"""Autocomplete over published post titles."""

from __future__ import annotations

from collections.abc import Sequence
import logging

from content_search.config import Settings
from content_search.domain.model import Document, DocumentType
from content_search.observability.metrics import SEARCH_COUNT, SEARCH_LATENCY, track_latency
from content_search.observability.tracing import create_span
from content_search.search.fuzzy import FuzzyMatcher, normalize, tokenize
from content_search.services.index_store import IndexStore
from content_search.services.result_cache import ResultCache


logger = logging.getLogger(__name__)


class SuggestionService:
    """Cheap, bounded title matching for search-as-you-type."""

    def __init__(
        self,
        settings: Settings,
        index_store: IndexStore,
        result_cache: ResultCache | None = None,
        matcher: FuzzyMatcher | None = None,
    ):
        self.settings = settings
        self.index_store = index_store
        self.result_cache = result_cache
        self.matcher = matcher or FuzzyMatcher()

    def suggest(self, prefix: str, limit: int | None = None) -> list[str]:
        """Distinct post titles matching ``prefix``, best match first.

        Prefixes shorter than the configured minimum yield an empty list.
        """
        text = normalize(prefix)
        limit = limit or self.settings.suggestion_limit
        if len(text) < self.settings.suggestion_min_length or limit < 1:
            return []

        with (
            create_span("search.suggest", attributes={"search.query": text}),
            track_latency(SEARCH_LATENCY, search_type="suggest"),
        ):
            snapshot = self.index_store.get_snapshot(DocumentType.POST)
            suggestions = None
            if self.result_cache is not None:
                suggestions = self.result_cache.get_suggestions(text, limit, snapshot.version)

            if suggestions is None:
                suggestions = self._rank_titles(text, snapshot.documents, limit)
                if self.result_cache is not None:
                    self.result_cache.put_suggestions(text, limit, snapshot.version, suggestions)

        SEARCH_COUNT.labels(search_type="suggest", outcome="hit" if suggestions else "empty").inc()
        logger.debug("Suggestions for %r: %d", text, len(suggestions))
        return suggestions

    def _rank_titles(self, text: str, documents: Sequence[Document], limit: int) -> list[str]:
        tokens = tokenize(text)
        threshold = float(self.settings.fuzzy_threshold)
        scored = []
        for document in documents:
            if not document.title:
                continue
            score = self.matcher.best_score(tokens, document.title, threshold)
            if score < threshold:
                continue
            starts_with = normalize(document.title).startswith(text)
            published = document.published_at.timestamp() if document.published_at else float("-inf")
            scored.append((-score, not starts_with, -published, document.id, document.title))

        suggestions: list[str] = []
        seen: set[str] = set()
        for *_, title in sorted(scored):
            key = normalize(title)
            if key in seen:
                continue
            seen.add(key)
            suggestions.append(title)
            if len(suggestions) >= limit:
                break
        return suggestions
