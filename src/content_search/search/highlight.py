"""HTML-safe highlighting of matched query terms.

Matches are located on the raw text, then the text is rebuilt from escaped
segments; markup is only ever emitted by this module, so content such as
``<script>`` in a title always comes out escaped.
"""

from __future__ import annotations

from collections.abc import Sequence
import html
import re


DEFAULT_HIGHLIGHT_CLASS = "search-highlight"


class Highlighter:
    """Wraps every non-overlapping, case-insensitive term occurrence in ``<mark>``."""

    def __init__(self, css_class: str = DEFAULT_HIGHLIGHT_CLASS):
        self.open_tag = f'<mark class="{html.escape(css_class, quote=True)}">'
        self.close_tag = "</mark>"

    def highlight(self, text: str, terms: Sequence[str]) -> str:
        """Escape ``text`` and mark every occurrence of ``terms``.

        Args:
            text: Raw (untrusted) text.
            terms: Query terms; empty terms are ignored.

        Returns:
            HTML-safe string.
        """
        if not text:
            return ""

        spans = self._find_spans(text, terms)
        if not spans:
            return html.escape(text, quote=True)

        parts: list[str] = []
        cursor = 0
        for start, end in spans:
            parts.append(html.escape(text[cursor:start], quote=True))
            parts.append(self.open_tag + html.escape(text[start:end], quote=True) + self.close_tag)
            cursor = end
        parts.append(html.escape(text[cursor:], quote=True))
        return "".join(parts)

    def _find_spans(self, text: str, terms: Sequence[str]) -> list[tuple[int, int]]:
        matches: list[tuple[int, int]] = []
        for term in dict.fromkeys(term.strip() for term in terms):
            if not term:
                continue
            pattern = re.compile(re.escape(term), re.IGNORECASE)
            matches.extend((match.start(), match.end()) for match in pattern.finditer(text))

        # Earliest first; on equal start prefer the longer match
        matches.sort(key=lambda span: (span[0], -(span[1] - span[0])))

        selected: list[tuple[int, int]] = []
        last_end = -1
        for start, end in matches:
            if start >= last_end:
                selected.append((start, end))
                last_end = end
        return selected
