"""Structured filters over indexed documents.

All predicates are AND-combined and never raise for data-shape reasons:
unknown ids simply match nothing. The category subtree is resolved once,
before filtering, into a closed set of ids.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from content_search.domain.model import Document
from content_search.domain.search import SearchFilter


def count_active_filters(search_filter: SearchFilter | None) -> int:
    """Number of constrained dimensions; a from/to date range counts once."""
    if search_filter is None:
        return 0
    return len(search_filter.active_dimensions())


def category_scope(category_id: int, descendant_ids: Iterable[int]) -> frozenset[int]:
    """The category itself plus its transitive descendants."""
    return frozenset({category_id, *descendant_ids})


class FilterEngine:
    """Pure filtering of candidate documents."""

    def apply(
        self,
        documents: Sequence[Document],
        search_filter: SearchFilter,
        scope: frozenset[int] | None = None,
    ) -> list[Document]:
        """Keep documents satisfying every active predicate.

        Args:
            documents: Candidate documents.
            search_filter: Predicates to apply.
            scope: Pre-resolved category subtree for ``search_filter.category_id``.
                Defaults to the category alone when not supplied.
        """
        if search_filter.is_empty():
            return list(documents)

        if search_filter.category_id is not None and scope is None:
            scope = frozenset({search_filter.category_id})
        required_tags = frozenset(search_filter.tag_ids)

        return [
            document
            for document in documents
            if self._passes(document, search_filter, scope, required_tags)
        ]

    def _passes(
        self,
        document: Document,
        search_filter: SearchFilter,
        scope: frozenset[int] | None,
        required_tags: frozenset[int],
    ) -> bool:
        if not self._in_date_range(document, search_filter):
            return False
        if search_filter.author_id is not None and document.author_id != search_filter.author_id:
            return False
        if scope is not None and document.category_id not in scope:
            return False
        if required_tags and not required_tags <= frozenset(document.tag_ids):
            return False
        return True

    def _in_date_range(self, document: Document, search_filter: SearchFilter) -> bool:
        if search_filter.date_from is None and search_filter.date_to is None:
            return True
        if document.published_at is None:
            return False
        # Whole calendar days: from 00:00 on date_from through 23:59:59 on date_to
        published_on = document.published_at.date()
        if search_filter.date_from is not None and published_on < search_filter.date_from:
            return False
        if search_filter.date_to is not None and published_on > search_filter.date_to:
            return False
        return True
