"""Derived caches built on top of index snapshots.

Entries are grouped in namespaces (``results:post``, ``suggestions``,
``category:3``, ...). The cache store has no pattern deletion, so every
namespace keeps a registry key listing its members; evicting a namespace
forgets each member and then the registry itself.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import hashlib
import logging
from typing import Any

import orjson

from content_search.adapters.cache_store import AbstractCacheStore, cache_errors
from content_search.config import Settings
from content_search.domain.model import DocumentType
from content_search.observability.metrics import CACHE_LOOKUPS


logger = logging.getLogger(__name__)

SUGGESTIONS_NAMESPACE = "suggestions"
HOME_NAMESPACE = "home"


def results_namespace(document_type: DocumentType | str) -> str:
    return f"results:{document_type}"


def category_namespace(category_id: int) -> str:
    return f"category:{category_id}"


def tag_namespace(tag_id: int) -> str:
    return f"tag:{tag_id}"


def post_namespace(post_id: int) -> str:
    return f"post:{post_id}"


def _md5(data: bytes) -> str:
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def options_key(text: str, options: Mapping[str, Any]) -> str:
    """Stable key suffix: hash of the query text plus hash of the canonical options."""
    text_hash = _md5(" ".join(text.lower().split()).encode("utf-8"))
    options_hash = _md5(orjson.dumps(dict(options), option=orjson.OPT_SORT_KEYS))
    return f"{text_hash}:{options_hash}"


class ResultCache:
    """Namespaced remember/evict helpers over an ``AbstractCacheStore``."""

    def __init__(self, settings: Settings, cache_store: AbstractCacheStore):
        self.settings = settings
        self.cache_store = cache_store

    def key(self, namespace: str, suffix: str) -> str:
        return f"{self.settings.cache_prefix}:{namespace}:{suffix}"

    # -- generic ---------------------------------------------------------------

    def lookup(self, namespace: str, suffix: str) -> Any:
        key = self.key(namespace, suffix)
        with cache_errors("get", key):
            value = self.cache_store.get(key)
        CACHE_LOOKUPS.labels(namespace=namespace.split(":", 1)[0], result="miss" if value is None else "hit").inc()
        return value

    def store(self, namespace: str, suffix: str, value: Any, ttl: int) -> None:
        key = self.key(namespace, suffix)
        with cache_errors("set", key):
            self.cache_store.set(key, value, ttl=ttl)
        self._register(namespace, key, ttl)

    def remember(self, namespace: str, suffix: str, ttl: int, builder: Callable[[], Any]) -> Any:
        """Return the cached value or build, store and return it."""
        cached = self.lookup(namespace, suffix)
        if cached is not None:
            return cached
        value = builder()
        self.store(namespace, suffix, value, ttl)
        return value

    def invalidate_namespace(self, namespace: str) -> int:
        """Forget every key registered under ``namespace``; returns how many were live."""
        registry_key = self.settings.registry_key(namespace)
        with cache_errors("get", registry_key):
            members = self.cache_store.get(registry_key) or []
        removed = 0
        for key in members:
            with cache_errors("forget", key):
                removed += int(self.cache_store.forget(key))
        with cache_errors("forget", registry_key):
            self.cache_store.forget(registry_key)
        if removed:
            logger.debug("Evicted %d entries from %s", removed, namespace)
        return removed

    def invalidate_namespaces(self, namespaces: list[str]) -> list[str]:
        for namespace in namespaces:
            self.invalidate_namespace(namespace)
        return namespaces

    def _register(self, namespace: str, key: str, ttl: int) -> None:
        # Expired members are dropped here; the registry lives as long as its newest member
        registry_key = self.settings.registry_key(namespace)
        with cache_errors("get", registry_key):
            members = self.cache_store.get(registry_key) or []
        live = [member for member in members if member != key and self._is_live(member)]
        live.append(key)
        with cache_errors("set", registry_key):
            self.cache_store.set(registry_key, live, ttl=ttl)

    def _is_live(self, key: str) -> bool:
        with cache_errors("has", key):
            return self.cache_store.has(key)

    # -- search results --------------------------------------------------------

    def get_results(
        self,
        document_type: DocumentType,
        text: str,
        options: Mapping[str, Any],
        version: str,
    ) -> Any:
        """Cached search payload, or None when missing or built on an older snapshot."""
        if not self.settings.results_cache_enabled:
            return None
        entry = self.lookup(results_namespace(document_type), options_key(text, options))
        if entry is None:
            return None
        if entry.get("version") != version:
            logger.debug("Discarding %s result cache entry built on stale snapshot", document_type)
            return None
        return entry["payload"]

    def put_results(
        self,
        document_type: DocumentType,
        text: str,
        options: Mapping[str, Any],
        version: str,
        payload: Any,
    ) -> None:
        if not self.settings.results_cache_enabled:
            return
        self.store(
            results_namespace(document_type),
            options_key(text, options),
            {"version": version, "payload": payload},
            self.settings.results_cache_ttl,
        )

    def get_suggestions(self, prefix: str, limit: int, version: str) -> list[str] | None:
        entry = self.lookup(SUGGESTIONS_NAMESPACE, options_key(prefix, {"limit": limit}))
        if entry is None or entry.get("version") != version:
            return None
        return entry["payload"]

    def put_suggestions(self, prefix: str, limit: int, version: str, suggestions: list[str]) -> None:
        self.store(
            SUGGESTIONS_NAMESPACE,
            options_key(prefix, {"limit": limit}),
            {"version": version, "payload": suggestions},
            self.settings.suggestion_cache_ttl,
        )

    # -- page and view caches --------------------------------------------------

    def remember_category_page(
        self,
        category_id: int,
        filters: Mapping[str, Any],
        builder: Callable[[], Any],
    ) -> Any:
        suffix = options_key("", filters)
        return self.remember(category_namespace(category_id), suffix, self.settings.page_cache_ttl, builder)

    def remember_tag_page(self, tag_id: int, filters: Mapping[str, Any], builder: Callable[[], Any]) -> Any:
        suffix = options_key("", filters)
        return self.remember(tag_namespace(tag_id), suffix, self.settings.page_cache_ttl, builder)

    def remember_post_view(self, post_id: int, builder: Callable[[], Any], variant: str = "view") -> Any:
        return self.remember(post_namespace(post_id), variant, self.settings.page_cache_ttl, builder)

    def remember_homepage(self, section: str, builder: Callable[[], Any]) -> Any:
        return self.remember(HOME_NAMESPACE, section, self.settings.page_cache_ttl, builder)
