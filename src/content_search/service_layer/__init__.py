"""Service layer - query-side use cases.

- search_service: full post search, typed tag/category search, aggregates
- suggestion_service: autocomplete over post titles
"""

from .search_service import SearchService
from .suggestion_service import SuggestionService


__all__ = [
    "SearchService",
    "SuggestionService",
]
