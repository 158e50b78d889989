"""
Matching and ranking primitives.

This package provides the pure-Python search stack:

- fuzzy: edit-distance token scoring
- ranking: relevance tiers and field orderings
- filters: AND-combined structured predicates
- highlight: HTML-safe term marking
"""

from .filters import FilterEngine, category_scope, count_active_filters
from .fuzzy import FuzzyMatcher, levenshtein_distance, similarity
from .highlight import Highlighter
from .ranking import Ranker


__all__ = [
    "FilterEngine",
    "FuzzyMatcher",
    "Highlighter",
    "Ranker",
    "category_scope",
    "count_active_filters",
    "levenshtein_distance",
    "similarity",
]
