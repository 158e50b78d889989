"""Write-side notifications that keep the index and result caches coherent.

The persistence layer calls the gateway synchronously after each mutation.
When a handler returns, the index snapshot already reflects the write and
every derived cache that could show the old state has been evicted.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import StrEnum
import logging

from pydantic import BaseModel, ConfigDict

from content_search.adapters.content_source import utc_now
from content_search.domain.model import CategoryRecord, DocumentType, PostRecord, SourceRecord, TagRecord
from content_search.observability.metrics import INVALIDATION_COUNT
from content_search.observability.tracing import create_span
from content_search.services.index_store import IndexStore
from content_search.services.result_cache import (
    HOME_NAMESPACE,
    SUGGESTIONS_NAMESPACE,
    ResultCache,
    category_namespace,
    post_namespace,
    results_namespace,
    tag_namespace,
)


logger = logging.getLogger(__name__)

POST_RELEVANT_FIELDS = (
    "title",
    "excerpt",
    "content",
    "status",
    "published_at",
    "deleted_at",
    "author_id",
    "author_name",
    "category_id",
    "category_name",
    "tags",
)
TAG_RELEVANT_FIELDS = ("name", "slug")
CATEGORY_RELEVANT_FIELDS = ("name", "slug", "description", "parent_id")


class InvalidationAction(StrEnum):
    NOOP = "noop"
    UPSERTED = "upserted"
    REMOVED = "removed"


class InvalidationOutcome(BaseModel):
    """What a single notification did to the index and caches."""

    model_config = ConfigDict(frozen=True)

    record_type: DocumentType
    record_id: int
    event: str
    action: InvalidationAction
    changed_fields: tuple[str, ...] = ()
    evicted: tuple[str, ...] = ()


def record_type(record: SourceRecord) -> DocumentType:
    if isinstance(record, PostRecord):
        return DocumentType.POST
    if isinstance(record, TagRecord):
        return DocumentType.TAG
    if isinstance(record, CategoryRecord):
        return DocumentType.CATEGORY
    raise TypeError(f"Unsupported record: {type(record).__name__}")


def relevant_fields(document_type: DocumentType) -> tuple[str, ...]:
    return {
        DocumentType.POST: POST_RELEVANT_FIELDS,
        DocumentType.TAG: TAG_RELEVANT_FIELDS,
        DocumentType.CATEGORY: CATEGORY_RELEVANT_FIELDS,
    }[document_type]


def changed_fields(before: SourceRecord, after: SourceRecord) -> tuple[str, ...]:
    """Search-relevant fields that differ; view counts and the like are ignored."""
    changed = []
    for name in relevant_fields(record_type(after)):
        old, new = getattr(before, name, None), getattr(after, name, None)
        if name == "tags":
            old = sorted((tag.id, tag.name) for tag in old or ())
            new = sorted((tag.id, tag.name) for tag in new or ())
        if old != new:
            changed.append(name)
    return tuple(changed)


class InvalidationGateway:
    """Applies create/update/delete/restore notifications to the index."""

    def __init__(
        self,
        index_store: IndexStore,
        result_cache: ResultCache,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.index_store = index_store
        self.result_cache = result_cache
        self._clock = clock

    def on_created(self, record: SourceRecord) -> InvalidationOutcome:
        return self._apply("created", record)

    def on_updated(self, before: SourceRecord, after: SourceRecord) -> InvalidationOutcome:
        if record_type(before) != record_type(after) or before.id != after.id:
            raise ValueError("before/after must describe the same record")

        changed = changed_fields(before, after)
        if not changed:
            outcome = InvalidationOutcome(
                record_type=record_type(after),
                record_id=after.id,
                event="updated",
                action=InvalidationAction.NOOP,
            )
            self._report(outcome)
            return outcome

        # Force a rebuild on the next miss, then push the fresh document now
        self.index_store.invalidate(record_type(after))
        return self._apply("updated", after, before=before, changed=changed)

    def on_deleted(self, record: SourceRecord) -> InvalidationOutcome:
        return self._apply("deleted", record, eligible=False)

    def on_restored(self, record: SourceRecord) -> InvalidationOutcome:
        return self._apply("restored", record)

    def _apply(
        self,
        event: str,
        record: SourceRecord,
        *,
        before: SourceRecord | None = None,
        changed: tuple[str, ...] = (),
        eligible: bool | None = None,
    ) -> InvalidationOutcome:
        document_type = record_type(record)
        if eligible is None:
            eligible = self._is_eligible(record)

        with create_span(
            f"invalidation.{event}",
            attributes={"record.type": str(document_type), "record.id": record.id},
        ):
            if eligible:
                self.index_store.upsert(record.to_document())
                action = InvalidationAction.UPSERTED
            else:
                self.index_store.remove(document_type, record.id)
                action = InvalidationAction.REMOVED

            if document_type == DocumentType.POST:
                # Tag and category documents carry eligible post counts
                self.index_store.invalidate(DocumentType.TAG)
                self.index_store.invalidate(DocumentType.CATEGORY)
            else:
                # Post documents carry tag and category names
                self.index_store.invalidate(DocumentType.POST)

            evicted = self.result_cache.invalidate_namespaces(self._namespaces(record, before))

        outcome = InvalidationOutcome(
            record_type=document_type,
            record_id=record.id,
            event=event,
            action=action,
            changed_fields=changed,
            evicted=tuple(evicted),
        )
        self._report(outcome)
        return outcome

    def _is_eligible(self, record: SourceRecord) -> bool:
        if isinstance(record, PostRecord):
            return record.is_publicly_visible(self._clock())
        return True

    def _namespaces(self, record: SourceRecord, before: SourceRecord | None) -> list[str]:
        namespaces: list[str] = [results_namespace(record_type(record))]

        if isinstance(record, PostRecord):
            namespaces += [SUGGESTIONS_NAMESPACE, post_namespace(record.id), HOME_NAMESPACE]
            category_ids = {record.category_id}
            tag_ids = {tag.id for tag in record.tags}
            if isinstance(before, PostRecord):
                category_ids.add(before.category_id)
                tag_ids |= {tag.id for tag in before.tags}
            namespaces += [category_namespace(cid) for cid in sorted(c for c in category_ids if c is not None)]
            namespaces += [tag_namespace(tid) for tid in sorted(tag_ids)]
        elif isinstance(record, TagRecord):
            namespaces += [results_namespace(DocumentType.POST), tag_namespace(record.id), HOME_NAMESPACE]
        elif isinstance(record, CategoryRecord):
            namespaces += [results_namespace(DocumentType.POST), category_namespace(record.id), HOME_NAMESPACE]
            parent_ids = {record.parent_id}
            if isinstance(before, CategoryRecord):
                parent_ids.add(before.parent_id)
            namespaces += [category_namespace(pid) for pid in sorted(p for p in parent_ids if p is not None)]

        return list(dict.fromkeys(namespaces))

    def _report(self, outcome: InvalidationOutcome) -> None:
        INVALIDATION_COUNT.labels(
            record_type=str(outcome.record_type),
            event=outcome.event,
            action=str(outcome.action),
        ).inc()
        logger.debug(
            "Invalidation %s %s#%d -> %s (changed=%s, evicted=%s)",
            outcome.event,
            outcome.record_type,
            outcome.record_id,
            outcome.action,
            ",".join(outcome.changed_fields) or "-",
            ",".join(outcome.evicted) or "-",
        )
