"""Fuzzy matching for typo-tolerant search.

Scores are on a 0-100 scale and case-insensitive:

- 100 for exact equality of the whole field
- 95 when the field contains the query token as a substring
- otherwise a normalized Levenshtein similarity, ``100 * (1 - d / max_len)``,
  taken as the best of the whole field and each of its words

A token matches a field when its score reaches the query threshold.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import math
import re

from content_search.domain.model import Document


EXACT_SCORE = 100.0
SUBSTRING_SCORE = 95.0
# Words shorter than this only match exactly or as substrings
MIN_FUZZY_LENGTH = 3

WORD_PATTERN = re.compile(r"\w+", re.UNICODE)


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Calculate the Levenshtein (edit) distance between two strings.

    Uses dynamic programming for O(m*n) time complexity, with optional
    early termination when distance exceeds max_distance.

    Args:
        s1: First string.
        s2: Second string.
        max_distance: If provided, return max_distance+1 early when
            distance is guaranteed to exceed this threshold.

    Returns:
        The minimum number of single-character edits (insertions,
        deletions, substitutions) needed to change s1 into s2.
        If max_distance is set and exceeded, returns max_distance+1.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("laravel", "laravle")
        2
    """
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    if len(s1) > len(s2):
        s1, s2 = s2, s1

    m, n = len(s1), len(s2)

    if max_distance is not None and n - m > max_distance:
        return max_distance + 1

    prev_row = list(range(m + 1))
    curr_row = [0] * (m + 1)

    for j in range(1, n + 1):
        curr_row[0] = j
        row_min = curr_row[0]
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            curr_row[i] = min(
                prev_row[i] + 1,  # deletion
                curr_row[i - 1] + 1,  # insertion
                prev_row[i - 1] + cost,  # substitution
            )
            row_min = min(row_min, curr_row[i])

        if max_distance is not None and row_min > max_distance:
            return max_distance + 1

        prev_row, curr_row = curr_row, prev_row

    return prev_row[m]


def similarity(s1: str, s2: str, minimum: float = 0.0) -> float:
    """Normalized edit-distance similarity on a 0-100 scale.

    When ``minimum`` is given, any pair that cannot reach it scores 0 without
    finishing the distance computation.
    """
    longest = max(len(s1), len(s2))
    if longest == 0:
        return EXACT_SCORE

    max_distance = None
    if minimum > 0:
        max_distance = math.floor(longest * (1 - minimum / 100.0) + 1e-9)

    distance = levenshtein_distance(s1, s2, max_distance)
    if max_distance is not None and distance > max_distance:
        return 0.0
    return max(0.0, round(100.0 * (1 - distance / longest), 2))


def normalize(text: str) -> str:
    return " ".join(text.lower().split())


def tokenize(text: str) -> list[str]:
    """Split free text into lowercase query tokens, keeping first occurrences."""
    return list(dict.fromkeys(normalize(text).split()))


class FuzzyMatcher:
    """Scores query tokens against document fields."""

    def __init__(self, min_fuzzy_length: int = MIN_FUZZY_LENGTH):
        self.min_fuzzy_length = min_fuzzy_length

    def score(self, query_token: str, field_value: str, threshold: float = 0.0) -> float:
        """Similarity of one token against one field value (0-100).

        ``threshold`` only enables early exit for pairs that cannot reach it;
        a returned value below the threshold is still meaningful as "no match".
        """
        token = normalize(query_token)
        text = normalize(field_value)
        if not token or not text:
            return 0.0
        if token == text:
            return EXACT_SCORE
        if token in text:
            return SUBSTRING_SCORE
        if len(token) < self.min_fuzzy_length:
            return 0.0

        best = similarity(token, text, threshold)
        for word in _unique_words(text):
            if len(word) < self.min_fuzzy_length:
                continue
            best = max(best, similarity(token, word, max(threshold, best)))
            if best >= SUBSTRING_SCORE:
                break
        return best

    def best_score(self, tokens: Iterable[str], field_value: str, threshold: float = 0.0) -> float:
        """Highest score any token reaches against the field."""
        return max((self.score(token, field_value, threshold) for token in tokens), default=0.0)

    def match_fields(
        self,
        tokens: Sequence[str],
        document: Document,
        fields: Sequence[str],
        threshold: float,
    ) -> dict[str, float]:
        """Per-field best score for every field that matches at or above threshold.

        Each field is evaluated independently; a document is a candidate when
        the returned mapping is non-empty.
        """
        matched: dict[str, float] = {}
        for field in fields:
            value = document.field_text(field)
            if not value:
                continue
            field_score = self.best_score(tokens, value, threshold)
            if field_score >= threshold:
                matched[field] = field_score
        return matched

    def match_fields_exact(self, phrase: str, document: Document, fields: Sequence[str]) -> dict[str, float]:
        """Exact mode: the whole phrase must appear verbatim (case-insensitive)."""
        needle = normalize(phrase)
        matched: dict[str, float] = {}
        if not needle:
            return matched
        for field in fields:
            text = normalize(document.field_text(field))
            if not text:
                continue
            if text == needle:
                matched[field] = EXACT_SCORE
            elif needle in text:
                matched[field] = SUBSTRING_SCORE
        return matched


def _unique_words(text: str) -> list[str]:
    return list(dict.fromkeys(WORD_PATTERN.findall(text)))
