"""Relevance ranking with deterministic tie-breaks.

Two ordering modes exist and are never mixed:

- ``relevance``: match tier first (exact title > title substring > other title
  match > excerpt/content only), then ``published_at`` newest first.
- ``latest`` / ``oldest`` / ``popular``: plain field ordering over the already
  filtered and matched candidates; scores are ignored.

Every ordering ends on the document id so equal keys never reorder between calls.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime

from content_search.domain.model import Document
from content_search.domain.search import MatchTier, ScoredResult, SortOrder
from content_search.search.fuzzy import normalize


TITLE_FIELD = "title"
# Body-only matches are reported at half weight, mirroring their lower precedence
BODY_WEIGHT = 0.5


def _timestamp(document: Document) -> float:
    published_at: datetime | None = document.published_at
    return published_at.timestamp() if published_at is not None else float("-inf")


class Ranker:
    """Turns per-field matches into scored, ordered results."""

    def classify(self, document: Document, phrase: str, matched_fields: Mapping[str, float]) -> MatchTier:
        title = normalize(document.title)
        needle = normalize(phrase)
        if needle and title == needle:
            return MatchTier.TITLE_EXACT
        if needle and needle in title:
            return MatchTier.TITLE_SUBSTRING
        if TITLE_FIELD in matched_fields:
            return MatchTier.TITLE_FUZZY
        return MatchTier.BODY

    def score(self, document: Document, phrase: str, matched_fields: Mapping[str, float]) -> ScoredResult:
        tier = self.classify(document, phrase, matched_fields)
        if tier == MatchTier.TITLE_EXACT:
            value = 100.0
        elif tier == MatchTier.TITLE_SUBSTRING:
            value = max(95.0, matched_fields.get(TITLE_FIELD, 0.0))
        elif tier == MatchTier.TITLE_FUZZY:
            value = matched_fields[TITLE_FIELD]
        else:
            body_scores = [score for field, score in matched_fields.items() if field != TITLE_FIELD]
            value = max(body_scores, default=0.0) * BODY_WEIGHT
        return ScoredResult(
            document=document,
            score=round(value, 2),
            tier=tier,
            matched_fields=tuple(sorted(matched_fields)),
        )

    def rank(self, candidates: Sequence[ScoredResult]) -> list[ScoredResult]:
        """Relevance ordering: tier, then newest first, then id."""
        return sorted(
            candidates,
            key=lambda result: (-int(result.tier), -_timestamp(result.document), result.document.id),
        )

    def order(self, candidates: Sequence[ScoredResult], sort: SortOrder) -> list[ScoredResult]:
        """Apply the requested ordering mode."""
        if sort == SortOrder.RELEVANCE:
            return self.rank(candidates)
        if sort == SortOrder.LATEST:
            return sorted(candidates, key=lambda r: (-_timestamp(r.document), r.document.id))
        if sort == SortOrder.OLDEST:
            return sorted(candidates, key=lambda r: (_timestamp(r.document), r.document.id))
        if sort == SortOrder.POPULAR:
            return sorted(
                candidates,
                key=lambda r: (-r.document.view_count, -_timestamp(r.document), r.document.id),
            )
        raise ValueError(f"Unknown sort order: {sort}")
