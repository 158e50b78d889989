"""Content source abstractions and an in-process implementation.

The source owns persistence; the engine only reads eligible records through
this interface. Writers notify the search side synchronously through the
listeners registered with ``subscribe`` (see ``InvalidationGateway``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
import logging
from typing import Protocol

from content_search.domain.errors import SearchError, SourceUnavailableError
from content_search.domain.model import (
    AuthorRecord,
    CategoryRecord,
    DocumentType,
    PostRecord,
    SourceRecord,
    TagRecord,
    TagRef,
)


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AbstractContentSource(ABC):
    """Read interface over the persistent record store."""

    @abstractmethod
    def list_eligible(self, document_type: DocumentType, limit: int | None = None) -> list[SourceRecord]:
        """Index-eligible records of one type with relations resolved.

        Posts must be publicly visible (published, live, not soft-deleted);
        tags and categories are returned unconditionally.
        """
        raise NotImplementedError

    @abstractmethod
    def resolve_category_descendants(self, category_id: int) -> list[int]:
        """Ids of all transitive child categories (empty for unknown ids)."""
        raise NotImplementedError

    @abstractmethod
    def find_category_by_slug(self, slug: str) -> CategoryRecord | None:
        raise NotImplementedError

    @abstractmethod
    def author_exists(self, author_id: int) -> bool:
        raise NotImplementedError


class ChangeListener(Protocol):
    def on_created(self, record: SourceRecord) -> object: ...

    def on_updated(self, before: SourceRecord, after: SourceRecord) -> object: ...

    def on_deleted(self, record: SourceRecord) -> object: ...

    def on_restored(self, record: SourceRecord) -> object: ...


@contextmanager
def source_errors(operation: str) -> Iterator[None]:
    """Translate arbitrary source failures into ``SourceUnavailableError``."""
    try:
        yield
    except SearchError:
        raise
    except Exception as exc:
        logger.error("Content source %s failed: %s", operation, exc)
        raise SourceUnavailableError(f"Content source {operation} failed", operation=operation) from exc


class InMemoryContentSource(AbstractContentSource):
    """Dictionary-backed record store that notifies listeners after each write.

    Relations (author, category and tag names) are resolved at read time, so
    renaming a tag or category is visible to the next index rebuild.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._posts: dict[int, PostRecord] = {}
        self._tags: dict[int, TagRecord] = {}
        self._categories: dict[int, CategoryRecord] = {}
        self._authors: dict[int, AuthorRecord] = {}
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    # -- reads -----------------------------------------------------------------

    def list_eligible(self, document_type: DocumentType, limit: int | None = None) -> list[SourceRecord]:
        records: list[SourceRecord]
        if document_type == DocumentType.POST:
            records = self._visible_posts()
        elif document_type == DocumentType.TAG:
            records = self._tags_with_counts()
        elif document_type == DocumentType.CATEGORY:
            records = self._categories_with_counts()
        else:
            return []
        return records[:limit] if limit is not None else records

    def resolve_category_descendants(self, category_id: int) -> list[int]:
        children: dict[int, list[int]] = {}
        for category in self._categories.values():
            if category.parent_id is not None:
                children.setdefault(category.parent_id, []).append(category.id)

        seen: set[int] = {category_id}
        descendants: list[int] = []
        queue = deque(children.get(category_id, []))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            descendants.append(current)
            queue.extend(children.get(current, []))
        return sorted(descendants)

    def find_category_by_slug(self, slug: str) -> CategoryRecord | None:
        return next((category for category in self._categories.values() if category.slug == slug), None)

    def author_exists(self, author_id: int) -> bool:
        return author_id in self._authors

    def get_post(self, post_id: int) -> PostRecord | None:
        post = self._posts.get(post_id)
        return self._resolve_relations(post) if post else None

    def _visible_posts(self) -> list[PostRecord]:
        now = self._clock()
        return [
            self._resolve_relations(post)
            for post_id, post in sorted(self._posts.items())
            if post.is_publicly_visible(now)
        ]

    def _resolve_relations(self, post: PostRecord) -> PostRecord:
        author = self._authors.get(post.author_id) if post.author_id is not None else None
        category = self._categories.get(post.category_id) if post.category_id is not None else None
        tags = tuple(
            TagRef(id=tag.id, name=self._tags[tag.id].name if tag.id in self._tags else tag.name) for tag in post.tags
        )
        return post.model_copy(
            update={
                "author_name": author.name if author else post.author_name,
                "category_name": category.name if category else post.category_name,
                "tags": tags,
            }
        )

    def get_tag(self, tag_id: int) -> TagRecord | None:
        tag = self._tags.get(tag_id)
        return self._counted_tag(tag) if tag else None

    def _counted_tag(self, tag: TagRecord) -> TagRecord:
        return tag.model_copy(update={"post_count": self._tag_counts().get(tag.id, 0)})

    def get_category(self, category_id: int) -> CategoryRecord | None:
        category = self._categories.get(category_id)
        return self._counted_category(category) if category else None

    def _counted_category(self, category: CategoryRecord) -> CategoryRecord:
        return category.model_copy(update={"post_count": self._category_counts().get(category.id, 0)})

    def _tag_counts(self) -> dict[int, int]:
        counts: dict[int, int] = {}
        for post in self._visible_posts():
            for tag in post.tags:
                counts[tag.id] = counts.get(tag.id, 0) + 1
        return counts

    def _category_counts(self) -> dict[int, int]:
        counts: dict[int, int] = {}
        for post in self._visible_posts():
            if post.category_id is not None:
                counts[post.category_id] = counts.get(post.category_id, 0) + 1
        return counts

    def _tags_with_counts(self) -> list[TagRecord]:
        counts = self._tag_counts()
        return [
            tag.model_copy(update={"post_count": counts.get(tag_id, 0)}) for tag_id, tag in sorted(self._tags.items())
        ]

    def _categories_with_counts(self) -> list[CategoryRecord]:
        counts = self._category_counts()
        return [
            category.model_copy(update={"post_count": counts.get(category_id, 0)})
            for category_id, category in sorted(self._categories.items())
        ]

    # -- writes ----------------------------------------------------------------

    def add_author(self, author: AuthorRecord) -> None:
        self._authors[author.id] = author

    def save_post(self, post: PostRecord) -> PostRecord:
        """Insert or update a post, then notify listeners."""
        before = self.get_post(post.id)
        self._posts[post.id] = post
        after = self._resolve_relations(post)
        for listener in self._listeners:
            if before is None:
                listener.on_created(after)
            else:
                listener.on_updated(before, after)
        return after

    def increment_views(self, post_id: int, amount: int = 1) -> PostRecord:
        post = self._posts[post_id]
        return self.save_post(post.model_copy(update={"view_count": post.view_count + amount}))

    def delete_post(self, post_id: int, *, force: bool = False) -> None:
        """Soft-delete (default) or remove a post, then notify listeners."""
        record = self.get_post(post_id)
        if record is None:
            return
        if force:
            del self._posts[post_id]
        else:
            self._posts[post_id] = self._posts[post_id].model_copy(update={"deleted_at": self._clock()})
            record = self.get_post(post_id)
        for listener in self._listeners:
            listener.on_deleted(record)

    def restore_post(self, post_id: int) -> PostRecord:
        self._posts[post_id] = self._posts[post_id].model_copy(update={"deleted_at": None})
        record = self._resolve_relations(self._posts[post_id])
        for listener in self._listeners:
            listener.on_restored(record)
        return record

    def save_tag(self, tag: TagRecord) -> TagRecord:
        before = self.get_tag(tag.id)
        self._tags[tag.id] = tag
        after = self._counted_tag(tag)
        for listener in self._listeners:
            if before is None:
                listener.on_created(after)
            else:
                listener.on_updated(before, after)
        return after

    def delete_tag(self, tag_id: int) -> None:
        """Delete a tag and detach it from every post."""
        tag = self.get_tag(tag_id)
        if tag is None:
            return
        del self._tags[tag_id]
        for post_id, post in list(self._posts.items()):
            if any(ref.id == tag_id for ref in post.tags):
                self._posts[post_id] = post.model_copy(
                    update={"tags": tuple(ref for ref in post.tags if ref.id != tag_id)}
                )
        for listener in self._listeners:
            listener.on_deleted(tag)

    def save_category(self, category: CategoryRecord) -> CategoryRecord:
        before = self.get_category(category.id)
        self._categories[category.id] = category
        after = self._counted_category(category)
        for listener in self._listeners:
            if before is None:
                listener.on_created(after)
            else:
                listener.on_updated(before, after)
        return after

    def delete_category(self, category_id: int) -> None:
        category = self.get_category(category_id)
        if category is None:
            return
        del self._categories[category_id]
        for listener in self._listeners:
            listener.on_deleted(category)
