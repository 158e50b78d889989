"""Boundary validation of raw search parameters.

Malformed input is rejected here and never reaches the engine. Validators
that need collaborators (category slugs, author ids) read them from the
pydantic validation context::

    SearchRequest.model_validate(params, context={"source": source, "settings": settings})
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from enum import StrEnum
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator, model_validator

from content_search.adapters.content_source import AbstractContentSource, source_errors
from content_search.config import Settings
from content_search.domain.errors import InvalidSearchRequestError
from content_search.domain.search import SearchFilter, SearchQuery, SortOrder


QUERY_PATTERN = re.compile(r"^[\w\s\-]+$", re.UNICODE)
FORBIDDEN_SEQUENCES = ("--", "/*", "*/")


class SearchType(StrEnum):
    POSTS = "posts"
    TAGS = "tags"
    CATEGORIES = "categories"
    ALL = "all"


def _settings(info: ValidationInfo) -> Settings:
    context = info.context or {}
    return context.get("settings") or Settings()


def _source(info: ValidationInfo) -> AbstractContentSource | None:
    context = info.context or {}
    return context.get("source")


def _clean_query(value: str, info: ValidationInfo) -> str:
    text = " ".join(value.split())
    if not text:
        raise ValueError("search query must not be empty")
    max_length = _settings(info).max_query_length
    if len(text) > max_length:
        raise ValueError(f"search query must be at most {max_length} characters")
    if not QUERY_PATTERN.match(text):
        raise ValueError("search query may only contain letters, numbers, spaces, hyphens and underscores")
    if any(sequence in text for sequence in FORBIDDEN_SEQUENCES):
        raise ValueError("search query contains a forbidden sequence")
    return text


class SearchRequest(BaseModel):
    """HTTP-level search parameters."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    q: str
    type: SearchType = SearchType.ALL
    threshold: int | None = Field(default=None, ge=0, le=100)
    limit: int | None = Field(default=None, ge=1)
    exact: bool = False
    category: str | None = None
    author: int | None = Field(default=None, ge=1)
    tags: list[int] = Field(default_factory=list)
    date_from: date | None = None
    date_to: date | None = None
    sort: SortOrder = SortOrder.RELEVANCE
    page: int = Field(default=1, ge=1)
    per_page: int | None = Field(default=None, ge=1)

    category_id: int | None = Field(default=None, exclude=True)

    @field_validator("q")
    @classmethod
    def _check_query(cls, value: str, info: ValidationInfo) -> str:
        return _clean_query(value, info)

    @field_validator("limit")
    @classmethod
    def _check_limit(cls, value: int | None, info: ValidationInfo) -> int | None:
        max_results = _settings(info).max_results
        if value is not None and value > max_results:
            raise ValueError(f"limit must be at most {max_results}")
        return value

    @field_validator("per_page")
    @classmethod
    def _check_per_page(cls, value: int | None, info: ValidationInfo) -> int | None:
        max_per_page = _settings(info).max_per_page
        if value is not None and value > max_per_page:
            raise ValueError(f"per_page must be at most {max_per_page}")
        return value

    @field_validator("author")
    @classmethod
    def _check_author(cls, value: int | None, info: ValidationInfo) -> int | None:
        source = _source(info)
        if value is None or source is None:
            return value
        with source_errors("author_exists"):
            exists = source.author_exists(value)
        if not exists:
            raise ValueError("selected author does not exist")
        return value

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[int]) -> list[int]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _resolve(self, info: ValidationInfo) -> SearchRequest:
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be on or before date_to")

        source = _source(info)
        if self.category:
            if source is None:
                raise ValueError("selected category cannot be resolved without a content source")
            with source_errors("find_category_by_slug"):
                category = source.find_category_by_slug(self.category)
            if category is None:
                raise ValueError("selected category does not exist")
            self.category_id = category.id
        return self

    def to_filter(self) -> SearchFilter:
        return SearchFilter(
            date_from=self.date_from,
            date_to=self.date_to,
            author_id=self.author,
            category_id=self.category_id,
            tag_ids=tuple(self.tags),
        )

    def to_search_query(self) -> SearchQuery:
        return SearchQuery(
            text=self.q,
            filters=self.to_filter(),
            threshold=self.threshold,
            sort=self.sort,
            page=self.page,
            per_page=self.per_page or self.limit,
            exact=self.exact,
        )


class SuggestRequest(BaseModel):
    """Autocomplete parameters; short prefixes are valid and yield no suggestions."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    q: str
    limit: int | None = Field(default=None, ge=1)

    @field_validator("q")
    @classmethod
    def _check_query(cls, value: str, info: ValidationInfo) -> str:
        return _clean_query(value, info)

    @field_validator("limit")
    @classmethod
    def _check_limit(cls, value: int | None, info: ValidationInfo) -> int | None:
        max_results = _settings(info).max_results
        if value is not None and value > max_results:
            raise ValueError(f"limit must be at most {max_results}")
        return value


def parse_search_request(
    params: Mapping[str, Any],
    source: AbstractContentSource | None = None,
    settings: Settings | None = None,
) -> SearchRequest:
    """Validate raw parameters, raising ``InvalidSearchRequestError`` on failure."""
    try:
        return SearchRequest.model_validate(dict(params), context={"source": source, "settings": settings})
    except ValidationError as exc:
        raise InvalidSearchRequestError(exc.errors(include_url=False)) from exc


def parse_suggest_request(params: Mapping[str, Any], settings: Settings | None = None) -> SuggestRequest:
    try:
        return SuggestRequest.model_validate(dict(params), context={"settings": settings})
    except ValidationError as exc:
        raise InvalidSearchRequestError(exc.errors(include_url=False)) from exc
