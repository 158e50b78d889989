"""Stateful services over the cache store: index, derived caches, invalidation, analytics."""

from .analytics import AbstractSearchAnalytics, InMemorySearchAnalytics
from .index_store import IndexStore
from .invalidation import InvalidationAction, InvalidationGateway, InvalidationOutcome
from .result_cache import ResultCache


__all__ = [
    "AbstractSearchAnalytics",
    "InMemorySearchAnalytics",
    "IndexStore",
    "InvalidationAction",
    "InvalidationGateway",
    "InvalidationOutcome",
    "ResultCache",
]
