"""Domain layer - pure business types with no infrastructure dependencies.

- model: source records and the indexed ``Document``
- search: queries, filters, scored results and pages
- errors: the engine's exception taxonomy
"""

from content_search.domain.errors import (
    CacheUnavailableError,
    CollaboratorUnavailableError,
    InvalidSearchRequestError,
    SearchError,
    SourceUnavailableError,
)
from content_search.domain.model import (
    AuthorRecord,
    CategoryRecord,
    Document,
    DocumentType,
    PostRecord,
    PostStatus,
    SourceRecord,
    TagRecord,
    TagRef,
)
from content_search.domain.search import (
    AuthorSummary,
    HighlightedResult,
    IndexSnapshot,
    MatchTier,
    Page,
    QuickSearchResponse,
    ScoredResult,
    SearchFilter,
    SearchQuery,
    SortOrder,
    TagSummary,
)


__all__ = [
    "AuthorRecord",
    "AuthorSummary",
    "CacheUnavailableError",
    "CategoryRecord",
    "CollaboratorUnavailableError",
    "Document",
    "DocumentType",
    "HighlightedResult",
    "IndexSnapshot",
    "InvalidSearchRequestError",
    "MatchTier",
    "Page",
    "PostRecord",
    "PostStatus",
    "QuickSearchResponse",
    "ScoredResult",
    "SearchError",
    "SearchFilter",
    "SearchQuery",
    "SortOrder",
    "SourceRecord",
    "SourceUnavailableError",
    "TagRecord",
    "TagRef",
    "TagSummary",
]
