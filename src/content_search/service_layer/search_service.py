"""Search orchestration layer.

Resolves the post index, narrows it with structured filters, scores the
remaining documents against the query, orders them, then paginates and
highlights the requested page. Typed tag/category searches and the
aggregate helpers used by search forms live here as well.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
import logging
import time
from typing import Any

from content_search.adapters.content_source import AbstractContentSource, source_errors
from content_search.config import Settings
from content_search.domain.errors import CollaboratorUnavailableError
from content_search.domain.model import Document, DocumentType
from content_search.domain.search import (
    AuthorSummary,
    HighlightedResult,
    MatchTier,
    Page,
    QuickSearchResponse,
    ScoredResult,
    SearchFilter,
    SearchQuery,
    TagSummary,
)
from content_search.observability.metrics import SEARCH_COUNT, SEARCH_LATENCY, track_latency
from content_search.observability.tracing import create_span
from content_search.requests import SearchRequest, SearchType
from content_search.search.filters import FilterEngine, category_scope, count_active_filters
from content_search.search.fuzzy import FuzzyMatcher, normalize, tokenize
from content_search.search.highlight import Highlighter
from content_search.search.ranking import BODY_WEIGHT, Ranker
from content_search.services.analytics import AbstractSearchAnalytics
from content_search.services.index_store import IndexStore
from content_search.services.result_cache import ResultCache, results_namespace


logger = logging.getLogger(__name__)

POST_SEARCH_FIELDS = ("title", "excerpt", "content")


class SearchService:
    """High-level search API exposed to the web layer."""

    def __init__(
        self,
        settings: Settings,
        index_store: IndexStore,
        source: AbstractContentSource,
        result_cache: ResultCache | None = None,
        analytics: AbstractSearchAnalytics | None = None,
        *,
        matcher: FuzzyMatcher | None = None,
        ranker: Ranker | None = None,
        filter_engine: FilterEngine | None = None,
        highlighter: Highlighter | None = None,
    ):
        self.settings = settings
        self.index_store = index_store
        self.source = source
        self.result_cache = result_cache
        self.analytics = analytics if settings.analytics_enabled else None
        self.matcher = matcher or FuzzyMatcher()
        self.ranker = ranker or Ranker()
        self.filter_engine = filter_engine or FilterEngine()
        self.highlighter = highlighter or Highlighter(settings.highlight_class)

    # -- posts -----------------------------------------------------------------

    def search(self, query: SearchQuery) -> Page[HighlightedResult]:
        """Execute a post search and return one highlighted page.

        Args:
            query: Typed query; ``per_page`` falls back to the configured default.

        Returns:
            Page with ``total``, ``last_page`` and ``has_more_pages`` populated.

        Raises:
            CollaboratorUnavailableError: The cache store or content source failed.
        """
        per_page = min(query.per_page or self.settings.default_per_page, self.settings.max_per_page)
        started = time.perf_counter()
        cache_hit = False

        with (
            create_span(
                "search.posts",
                attributes={
                    "search.query": query.normalized_text,
                    "search.sort": str(query.sort),
                    "search.page": query.page,
                    "search.filters": count_active_filters(query.filters),
                },
            ) as span,
            track_latency(SEARCH_LATENCY, search_type="posts"),
        ):
            try:
                snapshot = self.index_store.get_snapshot(DocumentType.POST)
                options = self._cache_options(query, per_page)
                cached = self._cached(DocumentType.POST, query.text, options, snapshot.version)
                if cached is not None:
                    page = Page[HighlightedResult].model_validate(cached)
                    cache_hit = True
                else:
                    ordered = self._ordered_posts(query, snapshot.documents)
                    page = self._paginate(ordered, query, per_page)
                    self._store(DocumentType.POST, query.text, options, snapshot.version, page.model_dump(mode="json"))
            except CollaboratorUnavailableError:
                SEARCH_COUNT.labels(search_type="posts", outcome="error").inc()
                raise
            span.set_attribute("search.total", page.total)

        SEARCH_COUNT.labels(search_type="posts", outcome="hit" if page.total else "empty").inc()
        self._report(query.normalized_text, page.total, started, {"type": "posts", "cache_hit": cache_hit})
        return page

    def count_results(self, query: SearchQuery) -> int:
        """Number of matching posts, without ordering or materializing a page."""
        documents = self.index_store.get_index(DocumentType.POST)
        return len(self._match(query, self._apply_filters(documents, query.filters), POST_SEARCH_FIELDS))

    def get_authors_with_posts(self) -> list[AuthorSummary]:
        """Distinct authors with at least one indexed post, by name."""
        counts: dict[int, int] = {}
        names: dict[int, str] = {}
        for document in self.index_store.get_index(DocumentType.POST):
            if document.author_id is None:
                continue
            counts[document.author_id] = counts.get(document.author_id, 0) + 1
            names.setdefault(document.author_id, document.author)
        summaries = [
            AuthorSummary(id=author_id, name=names[author_id], post_count=count) for author_id, count in counts.items()
        ]
        return sorted(summaries, key=lambda summary: (summary.name.lower(), summary.id))

    def get_tags_with_posts(self) -> list[TagSummary]:
        """Distinct tags attached to at least one indexed post, by name."""
        counts: dict[int, int] = {}
        names: dict[int, str] = {}
        for document in self.index_store.get_index(DocumentType.POST):
            for tag_id, tag_name in zip(document.tag_ids, document.tags, strict=False):
                counts[tag_id] = counts.get(tag_id, 0) + 1
                names.setdefault(tag_id, tag_name)
        summaries = [TagSummary(id=tag_id, name=names[tag_id], post_count=count) for tag_id, count in counts.items()]
        return sorted(summaries, key=lambda summary: (summary.name.lower(), summary.id))

    def count_active_filters(self, filters: SearchFilter | None) -> int:
        return count_active_filters(filters)

    # -- tags and categories ---------------------------------------------------

    def search_tags(self, text: str, limit: int | None = None, threshold: int | None = None) -> list[ScoredResult]:
        """Tags whose name matches, best score first."""
        return self._search_taxonomy(DocumentType.TAG, text, limit, threshold, self._score_tag)

    def search_categories(
        self,
        text: str,
        limit: int | None = None,
        threshold: int | None = None,
    ) -> list[ScoredResult]:
        """Categories matching by name, or by description at half weight."""
        return self._search_taxonomy(DocumentType.CATEGORY, text, limit, threshold, self._score_category)

    def quick_search(self, request: SearchRequest) -> QuickSearchResponse:
        """Dispatch a validated request by ``type`` and group the answers."""
        limit = request.limit or self.settings.default_per_page
        query = request.to_search_query()
        posts: list[HighlightedResult] = []
        tags: list[ScoredResult] = []
        categories: list[ScoredResult] = []

        if request.type in (SearchType.POSTS, SearchType.ALL):
            posts = self.search(query.model_copy(update={"per_page": query.per_page or limit})).items
        if request.type in (SearchType.TAGS, SearchType.ALL):
            tags = self.search_tags(request.q, limit, request.threshold)
        if request.type in (SearchType.CATEGORIES, SearchType.ALL):
            categories = self.search_categories(request.q, limit, request.threshold)

        return QuickSearchResponse(query=request.q, posts=posts, tags=tags, categories=categories)

    # -- internals -------------------------------------------------------------

    def _ordered_posts(self, query: SearchQuery, documents: Sequence[Document]) -> list[ScoredResult]:
        filtered = self._apply_filters(documents, query.filters)
        matched = self._match(query, filtered, POST_SEARCH_FIELDS)
        return self.ranker.order(matched, query.sort)

    def _apply_filters(self, documents: Sequence[Document], filters: SearchFilter) -> list[Document]:
        scope = None
        if filters.category_id is not None:
            with source_errors("resolve_category_descendants"):
                descendants = self.source.resolve_category_descendants(filters.category_id)
            scope = category_scope(filters.category_id, descendants)
        return self.filter_engine.apply(documents, filters, scope)

    def _match(self, query: SearchQuery, documents: Sequence[Document], fields: Sequence[str]) -> list[ScoredResult]:
        # Empty text is filter-only browsing: everything that passed the filters matches
        if not query.tokens:
            return [ScoredResult(document=document, score=0.0, tier=MatchTier.BODY) for document in documents]

        threshold = self._threshold(query.threshold)
        results = []
        for document in documents:
            if query.exact:
                matched = self.matcher.match_fields_exact(query.text, document, fields)
            else:
                matched = self.matcher.match_fields(query.tokens, document, fields, threshold)
            if matched:
                results.append(self.ranker.score(document, query.normalized_text, matched))
        return results

    def _paginate(self, ordered: Sequence[ScoredResult], query: SearchQuery, per_page: int) -> Page[HighlightedResult]:
        start = (query.page - 1) * per_page
        terms = [query.normalized_text] if query.exact else query.tokens
        items = [self._present(result, terms) for result in ordered[start : start + per_page]]
        return Page[HighlightedResult](items=items, total=len(ordered), page=query.page, per_page=per_page)

    def _present(self, result: ScoredResult, terms: Sequence[str]) -> HighlightedResult:
        document = result.document
        return HighlightedResult(
            document=document,
            score=result.score,
            matched_fields=result.matched_fields,
            highlighted_title=self.highlighter.highlight(document.title, terms),
            highlighted_excerpt=self.highlighter.highlight(document.excerpt, terms),
        )

    def _search_taxonomy(
        self,
        document_type: DocumentType,
        text: str,
        limit: int | None,
        threshold: int | None,
        scorer: Callable[[Document, list[str], float], ScoredResult | None],
    ) -> list[ScoredResult]:
        limit = limit or self.settings.default_per_page
        cutoff = self._threshold(threshold)
        started = time.perf_counter()
        search_type = "tags" if document_type == DocumentType.TAG else "categories"

        with (
            create_span(f"search.{search_type}", attributes={"search.query": normalize(text)}),
            track_latency(SEARCH_LATENCY, search_type=search_type),
        ):
            snapshot = self.index_store.get_snapshot(document_type)
            options = {"limit": limit, "threshold": cutoff}
            cached = self._cached(document_type, text, options, snapshot.version)
            if cached is not None:
                results = [ScoredResult.model_validate(item) for item in cached]
            else:
                tokens = tokenize(text)
                scored = [scorer(document, tokens, cutoff) for document in snapshot.documents]
                matched = [result for result in scored if result is not None]
                matched.sort(key=lambda r: (-r.score, r.document.title.lower(), r.document.id))
                results = matched[:limit]
                self._store(
                    document_type,
                    text,
                    options,
                    snapshot.version,
                    [result.model_dump(mode="json") for result in results],
                )

        SEARCH_COUNT.labels(search_type=search_type, outcome="hit" if results else "empty").inc()
        self._report(normalize(text), len(results), started, {"type": search_type})
        return results

    def _score_tag(self, document: Document, tokens: list[str], threshold: float) -> ScoredResult | None:
        if not tokens:
            return ScoredResult(document=document, score=0.0)
        score = self.matcher.best_score(tokens, document.title, threshold)
        if score < threshold:
            return None
        return ScoredResult(document=document, score=score, tier=self._title_tier(score), matched_fields=("title",))

    def _score_category(self, document: Document, tokens: list[str], threshold: float) -> ScoredResult | None:
        if not tokens:
            return ScoredResult(document=document, score=0.0)
        name_score = self.matcher.best_score(tokens, document.title, threshold)
        description_score = self.matcher.best_score(tokens, document.excerpt, threshold) if document.excerpt else 0.0

        matched: dict[str, float] = {}
        if name_score >= threshold:
            matched["title"] = name_score
        if document.excerpt and description_score >= threshold:
            matched["excerpt"] = description_score * BODY_WEIGHT
        if not matched:
            return None
        score = max(matched.values())
        tier = self._title_tier(name_score) if "title" in matched else MatchTier.BODY
        return ScoredResult(document=document, score=round(score, 2), tier=tier, matched_fields=tuple(sorted(matched)))

    @staticmethod
    def _title_tier(score: float) -> MatchTier:
        if score >= 100:
            return MatchTier.TITLE_EXACT
        if score >= 95:
            return MatchTier.TITLE_SUBSTRING
        return MatchTier.TITLE_FUZZY

    def _threshold(self, threshold: int | None) -> float:
        return float(self.settings.fuzzy_threshold if threshold is None else threshold)

    def _cache_options(self, query: SearchQuery, per_page: int) -> dict[str, Any]:
        options = query.model_dump(mode="json", exclude={"text", "per_page", "threshold"})
        options["per_page"] = per_page
        options["threshold"] = self._threshold(query.threshold)
        return options

    def _cached(self, document_type: DocumentType, text: str, options: Mapping[str, Any], version: str) -> Any:
        if self.result_cache is None:
            return None
        cached = self.result_cache.get_results(document_type, text, options, version)
        self._record_cache_lookup(results_namespace(document_type), cached is not None)
        return cached

    def _store(
        self,
        document_type: DocumentType,
        text: str,
        options: Mapping[str, Any],
        version: str,
        payload: Any,
    ) -> None:
        if self.result_cache is not None:
            self.result_cache.put_results(document_type, text, options, version, payload)

    def _record_cache_lookup(self, namespace: str, hit: bool) -> None:
        if self.analytics is None:
            return
        try:
            if hit:
                self.analytics.record_cache_hit(namespace)
            else:
                self.analytics.record_cache_miss(namespace)
        except Exception as exc:
            logger.warning("Analytics cache lookup recording failed: %s", exc)

    def _report(self, query_text: str, result_count: int, started: float, metadata: dict[str, Any]) -> None:
        duration_ms = (time.perf_counter() - started) * 1000
        slow = duration_ms > self.settings.slow_query_ms
        if slow:
            logger.warning("Slow search (%.1f ms): %r %s", duration_ms, query_text, metadata)
        else:
            logger.debug("Search %r -> %d results in %.1f ms", query_text, result_count, duration_ms)

        if self.analytics is None:
            return
        try:
            self.analytics.record_query(query_text, result_count, duration_ms, metadata)
            if slow:
                self.analytics.record_slow_query(query_text, duration_ms, metadata)
        except Exception as exc:
            logger.warning("Analytics recording failed: %s", exc)
