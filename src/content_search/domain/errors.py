"""Error taxonomy for the search engine.

Validation problems are rejected at the boundary (see ``content_search.requests``).
Empty corpora, unknown ids and zero matches are not errors at all: they yield
empty result sets. Only infrastructure failures propagate from the engine.
"""

from typing import Any


class SearchError(Exception):
    """Base class for all content-search errors."""


class CollaboratorUnavailableError(SearchError):
    """An external collaborator failed; callers may retry the whole request."""

    collaborator = "unknown"

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class SourceUnavailableError(CollaboratorUnavailableError):
    """The content source could not list records or resolve relations."""

    collaborator = "source"


class CacheUnavailableError(CollaboratorUnavailableError):
    """The cache store rejected a get/set/has/forget call."""

    collaborator = "cache"


class InvalidSearchRequestError(SearchError, ValueError):
    """Raw request parameters failed boundary validation."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        fields = sorted({".".join(str(part) for part in error.get("loc", ())) or "request" for error in errors})
        super().__init__(f"Invalid search request: {', '.join(fields)}")
        self.errors = errors

    @property
    def fields(self) -> list[str]:
        return sorted({str(error["loc"][0]) for error in self.errors if error.get("loc")})
