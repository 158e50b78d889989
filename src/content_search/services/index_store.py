"""Cache-backed document index, one snapshot per document type.

Snapshots are persisted whole (array granularity) under ``{prefix}:index:{type}``
and rebuilt lazily from the content source on a miss. Concurrent first reads
may both rebuild; the result is identical, so the race is tolerated.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
import hashlib
import logging
from typing import Any

import orjson

from content_search.adapters.cache_store import AbstractCacheStore, cache_errors
from content_search.adapters.content_source import AbstractContentSource, source_errors, utc_now
from content_search.config import Settings
from content_search.domain.model import Document, DocumentType
from content_search.domain.search import IndexSnapshot
from content_search.observability.metrics import INDEX_DOC_COUNT, INDEX_REBUILD_COUNT
from content_search.observability.tracing import create_span


logger = logging.getLogger(__name__)


def snapshot_version(documents: Iterable[Document]) -> str:
    """Content hash of a document array, stable for equal content."""
    payload = [document.model_dump(mode="json") for document in documents]
    return hashlib.sha256(orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)).hexdigest()


class IndexStore:
    """Reads, rebuilds and patches cached index snapshots."""

    def __init__(
        self,
        settings: Settings,
        source: AbstractContentSource,
        cache_store: AbstractCacheStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings
        self.source = source
        self.cache_store = cache_store
        self._clock = clock

    def get_index(self, document_type: DocumentType) -> list[Document]:
        """Documents of one type, rebuilding the snapshot on a miss."""
        return list(self.get_snapshot(document_type).documents)

    def get_snapshot(self, document_type: DocumentType) -> IndexSnapshot:
        key = self.settings.index_key(document_type)
        with cache_errors("get", key):
            payload = self.cache_store.get(key)
        if payload is None:
            logger.debug("Index miss for %s, rebuilding", document_type)
            return self.rebuild(document_type)
        return IndexSnapshot.model_validate({"type": document_type, **payload})

    def rebuild(self, document_type: DocumentType) -> IndexSnapshot:
        """Reload every eligible record from the source and persist the snapshot."""
        with create_span("index.rebuild", attributes={"index.document_type": str(document_type)}):
            with source_errors("list_eligible"):
                records = self.source.list_eligible(document_type, self.settings.max_index_items)
            snapshot = self._persist(document_type, (record.to_document() for record in records))

        INDEX_REBUILD_COUNT.labels(document_type=str(document_type)).inc()
        logger.info(
            "Rebuilt %s index: %d documents (version %s)",
            document_type,
            len(snapshot.documents),
            snapshot.version[:12],
        )
        return snapshot

    def upsert(self, document: Document) -> IndexSnapshot:
        """Replace or insert one document by id and re-persist its snapshot."""
        snapshot = self.get_snapshot(document.type)
        documents = [existing for existing in snapshot.documents if existing.id != document.id]
        documents.append(document)
        return self._persist(document.type, documents)

    def remove(self, document_type: DocumentType, document_id: int) -> bool:
        """Drop one document; returns False when it was not indexed."""
        snapshot = self.get_snapshot(document_type)
        documents = [existing for existing in snapshot.documents if existing.id != document_id]
        if len(documents) == len(snapshot.documents):
            return False
        self._persist(document_type, documents)
        return True

    def invalidate(self, document_type: DocumentType) -> bool:
        """Forget the cached snapshot so the next read rebuilds it."""
        key = self.settings.index_key(document_type)
        with cache_errors("forget", key):
            removed = self.cache_store.forget(key)
        logger.debug("Invalidated %s index (cached=%s)", document_type, removed)
        return removed

    def clear(self) -> None:
        for document_type in DocumentType:
            self.invalidate(document_type)

    def stats(self) -> dict[str, dict[str, Any]]:
        """Per-type cache status without triggering rebuilds."""
        result: dict[str, dict[str, Any]] = {}
        for document_type in DocumentType:
            key = self.settings.index_key(document_type)
            with cache_errors("get", key):
                payload = self.cache_store.get(key)
            result[str(document_type)] = {
                "cached": payload is not None,
                "documents": len(payload["documents"]) if payload else 0,
                "version": payload["version"] if payload else None,
                "built_at": payload["built_at"] if payload else None,
            }
        return result

    def _persist(self, document_type: DocumentType, documents: Iterable[Document]) -> IndexSnapshot:
        ordered = tuple(sorted(documents, key=lambda document: document.id))
        snapshot = IndexSnapshot(
            type=document_type,
            version=snapshot_version(ordered),
            built_at=self._clock(),
            documents=ordered,
        )
        payload = snapshot.model_dump(mode="json", exclude={"type"})
        key = self.settings.index_key(document_type)
        with cache_errors("set", key):
            self.cache_store.set(key, payload, ttl=self.settings.index_ttl)
        INDEX_DOC_COUNT.labels(document_type=str(document_type)).set(len(ordered))
        return snapshot
