"""Unit tests for HTML-safe highlighting."""

import pytest

from content_search.search.highlight import Highlighter


MARK = '<mark class="search-highlight">'


@pytest.mark.unit
class TestHighlighter:
    def setup_method(self):
        self.highlighter = Highlighter()

    def test_wraps_every_occurrence_case_insensitively(self):
        result = self.highlighter.highlight("Python and more python", ["python"])
        assert result == f"{MARK}Python</mark> and more {MARK}python</mark>"

    def test_script_tags_are_escaped_and_term_still_marked(self):
        result = self.highlighter.highlight("<script>alert(1)</script> Python", ["python"])

        assert "<script>" not in result
        assert result.startswith("&lt;script&gt;alert(1)&lt;/script&gt; ")
        assert result.endswith(f"{MARK}Python</mark>")

    def test_term_inside_markup_is_escaped_within_marker(self):
        result = self.highlighter.highlight("say <b>hi</b>", ["<b>"])
        assert result == f"say {MARK}&lt;b&gt;</mark>hi&lt;/b&gt;"

    def test_overlapping_terms_prefer_longest_at_same_start(self):
        result = self.highlighter.highlight("python", ["py", "python"])
        assert result == f"{MARK}python</mark>"

    def test_overlaps_never_nest(self):
        result = self.highlighter.highlight("abcd", ["abc", "bcd"])
        assert result == f"{MARK}abc</mark>d"

    def test_no_terms_only_escapes(self):
        assert self.highlighter.highlight('Tom & "Jerry"', []) == "Tom &amp; &quot;Jerry&quot;"

    def test_blank_terms_ignored(self):
        assert self.highlighter.highlight("text", ["", "  "]) == "text"

    def test_empty_text(self):
        assert self.highlighter.highlight("", ["python"]) == ""

    def test_custom_css_class_is_escaped(self):
        highlighter = Highlighter('hl"x')
        assert highlighter.highlight("a", ["a"]) == '<mark class="hl&quot;x">a</mark>'
