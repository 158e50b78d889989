"""Adapters layer - collaborator implementations.

The engine depends only on the abstract cache store and content source;
concrete in-memory and Redis implementations live here.
"""

from .cache_store import (
    AbstractCacheStore,
    InMemoryCacheStore,
    RedisCacheStore,
)
from .content_source import (
    AbstractContentSource,
    InMemoryContentSource,
)


__all__ = [
    "AbstractCacheStore",
    "AbstractContentSource",
    "InMemoryCacheStore",
    "InMemoryContentSource",
    "RedisCacheStore",
]
