"""Cache store abstractions and implementations.

The cache store is the only shared mutable resource of the engine. Single
get/set/has/forget calls are assumed atomic; nothing is transactional across
keys. Values are JSON-compatible structures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
import copy
import logging
import threading
import time
from typing import Any

import orjson
import redis

from content_search.domain.errors import CacheUnavailableError, SearchError


logger = logging.getLogger(__name__)


class AbstractCacheStore(ABC):
    """Key/value cache with optional per-key TTL (seconds)."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        raise NotImplementedError

    @abstractmethod
    def has(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def forget(self, key: str) -> bool:
        """Delete a key; returns True when something was removed."""
        raise NotImplementedError

    @abstractmethod
    def flush(self) -> None:
        """Drop every key owned by this store."""
        raise NotImplementedError


@contextmanager
def cache_errors(operation: str, key: str) -> Iterator[None]:
    """Translate arbitrary store failures into ``CacheUnavailableError``."""
    try:
        yield
    except SearchError:
        raise
    except Exception as exc:
        logger.error("Cache store %s failed for %s: %s", operation, key, exc)
        raise CacheUnavailableError(f"Cache store {operation} failed for {key}", operation=operation) from exc


class InMemoryCacheStore(AbstractCacheStore):
    """Process-local store with TTL support.

    Values are deep-copied in and out, so cached snapshots cannot be mutated
    through references held by callers.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()

    def _live_entry(self, key: str) -> tuple[Any, float | None] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return default
            return copy.deepcopy(entry[0])

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._entries[key] = (copy.deepcopy(value), expires_at)

    def has(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def forget(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def flush(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        """Live keys, mainly for inspection in tests and admin tooling."""
        with self._lock:
            return sorted(key for key in list(self._entries) if self._live_entry(key) is not None)


class RedisCacheStore(AbstractCacheStore):
    """Redis-backed store; values are serialized with orjson."""

    def __init__(self, client: redis.Redis, namespace: str):
        self.client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str) -> RedisCacheStore:
        return cls(redis.Redis.from_url(url), namespace)

    def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = self.client.get(key)
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"Redis GET failed for {key}", operation="get") from exc
        if raw is None:
            return default
        return orjson.loads(raw)

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        payload = orjson.dumps(value)
        try:
            self.client.set(key, payload, ex=ttl)
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"Redis SET failed for {key}", operation="set") from exc

    def has(self, key: str) -> bool:
        try:
            return bool(self.client.exists(key))
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"Redis EXISTS failed for {key}", operation="has") from exc

    def forget(self, key: str) -> bool:
        try:
            return bool(self.client.delete(key))
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"Redis DEL failed for {key}", operation="forget") from exc

    def flush(self) -> None:
        pattern = f"{self.namespace}:*"
        try:
            keys = list(self.client.scan_iter(match=pattern))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as exc:
            raise CacheUnavailableError(f"Redis flush failed for {pattern}", operation="flush") from exc
        logger.info("Flushed %d keys matching %s", len(keys), pattern)
