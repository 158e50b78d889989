"""Domain models for search functionality.

Value objects are immutable (frozen=True). Queries, filters and results are
typed here; the engine never passes loosely-typed dictionaries around.
"""

from datetime import date, datetime
from enum import IntEnum, StrEnum
import math
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from content_search.domain.model import Document, DocumentType


T = TypeVar("T")


class SortOrder(StrEnum):
    RELEVANCE = "relevance"
    LATEST = "latest"
    OLDEST = "oldest"
    POPULAR = "popular"


class MatchTier(IntEnum):
    """Relevance precedence; higher tiers always rank first."""

    BODY = 0
    TITLE_FUZZY = 1
    TITLE_SUBSTRING = 2
    TITLE_EXACT = 3


class SearchFilter(BaseModel):
    """Structured predicates, AND-combined. ``None``/empty means unconstrained."""

    model_config = ConfigDict(frozen=True)

    date_from: date | None = None
    date_to: date | None = None
    author_id: int | None = None
    category_id: int | None = None
    tag_ids: tuple[int, ...] = ()

    def active_dimensions(self) -> list[str]:
        """Names of constrained dimensions; a date range is one dimension."""
        dimensions = []
        if self.date_from is not None or self.date_to is not None:
            dimensions.append("date")
        if self.author_id is not None:
            dimensions.append("author")
        if self.category_id is not None:
            dimensions.append("category")
        if self.tag_ids:
            dimensions.append("tags")
        return dimensions

    def is_empty(self) -> bool:
        return not self.active_dimensions()


class SearchQuery(BaseModel):
    """A fully typed search request as seen by the engine."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    filters: SearchFilter = Field(default_factory=SearchFilter)
    threshold: int | None = Field(default=None, ge=0, le=100)
    sort: SortOrder = SortOrder.RELEVANCE
    page: int = Field(default=1, ge=1)
    per_page: int | None = Field(default=None, ge=1)
    exact: bool = False

    @property
    def normalized_text(self) -> str:
        return " ".join(self.text.lower().split())

    @property
    def tokens(self) -> list[str]:
        """Lowercased whitespace-separated query tokens, duplicates removed."""
        return list(dict.fromkeys(self.normalized_text.split()))


class ScoredResult(BaseModel):
    """A candidate document with its relevance; transient, never persisted."""

    model_config = ConfigDict(frozen=True)

    document: Document
    score: float
    tier: MatchTier = MatchTier.BODY
    matched_fields: tuple[str, ...] = ()


class HighlightedResult(BaseModel):
    """Presentation DTO: a scored result plus HTML-safe highlighted fields."""

    model_config = ConfigDict(frozen=True)

    document: Document
    score: float
    matched_fields: tuple[str, ...] = ()
    highlighted_title: str = ""
    highlighted_excerpt: str = ""


class Page(BaseModel, Generic[T]):
    """One page of an ordered result list."""

    model_config = ConfigDict(frozen=True)

    items: list[T] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=15, ge=1)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_more_pages(self) -> bool:
        return self.page < self.last_page


class AuthorSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    post_count: int


class TagSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    post_count: int


class IndexSnapshot(BaseModel):
    """Cached, versioned document array for one type.

    ``version`` is a content hash; result caches built on top of a snapshot
    remember it and are discarded once it changes.
    """

    model_config = ConfigDict(frozen=True)

    type: DocumentType
    version: str
    built_at: datetime
    documents: tuple[Document, ...] = ()

    @model_validator(mode="after")
    def _check_types(self) -> "IndexSnapshot":
        if any(document.type != self.type for document in self.documents):
            raise ValueError(f"snapshot for {self.type} contains foreign document types")
        return self


class QuickSearchResponse(BaseModel):
    """Grouped answer of a typed search (``type=all`` fills every group)."""

    model_config = ConfigDict(frozen=True)

    query: str
    posts: list[HighlightedResult] = Field(default_factory=list)
    tags: list[ScoredResult] = Field(default_factory=list)
    categories: list[ScoredResult] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def count(self) -> int:
        return len(self.posts) + len(self.tags) + len(self.categories)
