"""Domain model - source records and indexed documents.

Source records are snapshots handed over by the persistence layer (posts, tags,
categories, authors with their relations already resolved). A ``Document`` is
the normalized, denormalized form of one searchable entity as stored in the
index. Both are immutable; a change produces a new instance.
"""

from datetime import datetime, timezone
from enum import StrEnum
import re
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps as UTC so all comparisons are well defined."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


def strip_markup(text: str) -> str:
    """Drop HTML tags from rich content and collapse whitespace."""
    if not text:
        return ""
    return _WHITESPACE_PATTERN.sub(" ", _TAG_PATTERN.sub(" ", text)).strip()


class DocumentType(StrEnum):
    POST = "post"
    TAG = "tag"
    CATEGORY = "category"


class PostStatus(StrEnum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class TagRef(BaseModel):
    """A tag attached to a post (identity plus display name)."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class AuthorRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class PostRecord(BaseModel):
    """Post snapshot as seen by the persistence layer."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str = ""
    slug: str = ""
    excerpt: str | None = None
    content: str | None = None
    status: PostStatus = PostStatus.DRAFT
    published_at: UtcDateTime | None = None
    deleted_at: UtcDateTime | None = None
    view_count: int = Field(default=0, ge=0)
    author_id: int | None = None
    author_name: str | None = None
    category_id: int | None = None
    category_name: str | None = None
    tags: tuple[TagRef, ...] = ()

    def is_publicly_visible(self, now: datetime) -> bool:
        """Published, already live and not soft-deleted."""
        return (
            self.status == PostStatus.PUBLISHED
            and self.published_at is not None
            and self.published_at <= now
            and self.deleted_at is None
        )

    def to_document(self) -> "Document":
        tags = sorted(self.tags, key=lambda tag: tag.id)
        return Document(
            id=self.id,
            type=DocumentType.POST,
            title=self.title or "",
            slug=self.slug or "",
            excerpt=self.excerpt or "",
            content=strip_markup(self.content or ""),
            author=self.author_name or "",
            author_id=self.author_id,
            category=self.category_name or "",
            category_id=self.category_id,
            tags=tuple(tag.name for tag in tags),
            tag_ids=tuple(tag.id for tag in tags),
            published_at=self.published_at,
            view_count=self.view_count,
        )


class TagRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    slug: str = ""
    post_count: int = Field(default=0, ge=0)

    def to_document(self) -> "Document":
        return Document(
            id=self.id,
            type=DocumentType.TAG,
            title=self.name,
            slug=self.slug,
            post_count=self.post_count,
        )


class CategoryRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    slug: str = ""
    description: str | None = None
    parent_id: int | None = None
    post_count: int = Field(default=0, ge=0)

    def to_document(self) -> "Document":
        return Document(
            id=self.id,
            type=DocumentType.CATEGORY,
            title=self.name,
            slug=self.slug,
            excerpt=self.description or "",
            category=self.name,
            category_id=self.id,
            post_count=self.post_count,
        )


SourceRecord = PostRecord | TagRecord | CategoryRecord


class Document(BaseModel):
    """One searchable entity in the index.

    Relations are denormalized (author/category/tag names) for matching and
    display; the ``*_id`` fields carry identity for filtering.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    type: DocumentType
    title: str = ""
    slug: str = ""
    excerpt: str = ""
    content: str = ""
    author: str = ""
    author_id: int | None = None
    category: str = ""
    category_id: int | None = None
    tags: tuple[str, ...] = ()
    tag_ids: tuple[int, ...] = ()
    published_at: UtcDateTime | None = None
    view_count: int = Field(default=0, ge=0)
    post_count: int = Field(default=0, ge=0)

    def field_text(self, field: str) -> str:
        """Text of a searchable field; missing fields read as empty."""
        value = getattr(self, field, "")
        if isinstance(value, tuple):
            return " ".join(str(item) for item in value)
        return value or ""
