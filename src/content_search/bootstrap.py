"""Composition root: wires settings and collaborators into a ready engine."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
import logging

from content_search.adapters.cache_store import AbstractCacheStore, InMemoryCacheStore, RedisCacheStore
from content_search.adapters.content_source import AbstractContentSource, utc_now
from content_search.config import Settings
from content_search.observability.logging import configure_logging
from content_search.service_layer.search_service import SearchService
from content_search.service_layer.suggestion_service import SuggestionService
from content_search.services.analytics import AbstractSearchAnalytics, InMemorySearchAnalytics
from content_search.services.index_store import IndexStore
from content_search.services.invalidation import InvalidationGateway
from content_search.services.result_cache import ResultCache


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchEngine:
    """Every engine component, sharing one settings object and cache store."""

    settings: Settings
    cache_store: AbstractCacheStore
    index_store: IndexStore
    result_cache: ResultCache
    search: SearchService
    suggestions: SuggestionService
    invalidation: InvalidationGateway
    analytics: AbstractSearchAnalytics | None


def build_cache_store(settings: Settings) -> AbstractCacheStore:
    if settings.redis_url:
        logger.info("Using Redis cache store")
        return RedisCacheStore.from_url(settings.redis_url, namespace=settings.cache_prefix)
    return InMemoryCacheStore()


def build_engine(
    settings: Settings,
    source: AbstractContentSource,
    cache_store: AbstractCacheStore | None = None,
    analytics: AbstractSearchAnalytics | None = None,
    clock: Callable[[], datetime] | None = None,
) -> SearchEngine:
    """Build a fully wired engine.

    Args:
        settings: Validated configuration.
        source: Read interface over the record store.
        cache_store: Shared cache; defaults to Redis when ``redis_url`` is set,
            otherwise an in-process store.
        analytics: Recorder; defaults to an in-memory one when analytics are enabled.
        clock: Wall clock used for visibility checks and snapshot timestamps.
    """
    clock = clock or utc_now
    cache_store = cache_store or build_cache_store(settings)
    if analytics is None and settings.analytics_enabled:
        analytics = InMemorySearchAnalytics()

    index_store = IndexStore(settings, source, cache_store, clock=clock)
    result_cache = ResultCache(settings, cache_store)
    engine = SearchEngine(
        settings=settings,
        cache_store=cache_store,
        index_store=index_store,
        result_cache=result_cache,
        search=SearchService(settings, index_store, source, result_cache, analytics),
        suggestions=SuggestionService(settings, index_store, result_cache),
        invalidation=InvalidationGateway(index_store, result_cache, clock=clock),
        analytics=analytics,
    )
    logger.debug("Search engine built (cache store: %s)", type(cache_store).__name__)
    return engine


def configure_from_settings(settings: Settings) -> None:
    """Apply the logging configuration carried by ``settings``."""
    configure_logging(settings.log_level, settings.log_json)
