"""
Tests for recognizer result parsing: hOCR and separator-delimited text.
"""

import pytest

from ocrfuse.exceptions import RecognitionIOError
from ocrfuse.geometry import BoundingBox
from ocrfuse.recognizer.results import (
    parse_hocr,
    parse_text,
    read_result,
    separator_patterns,
    split_separated,
)


class TestParseHocr:
    """Tests for hOCR word extraction."""

    def test_words_with_geometry(self, hocr):
        """Word spans yield text with their bbox."""
        markup = hocr([("Chapter", (13, 3, 93, 33)), ("1", (103, 3, 113, 33))])
        words = parse_hocr(markup)
        assert [w.text for w in words] == ["Chapter", "1"]
        assert words[0].box == BoundingBox(13, 93, 3, 33)

    def test_margin_subtracted(self, hocr):
        """Shifts move the boxes back into the unpadded raster."""
        words = parse_hocr(hocr([("word", (13, 3, 53, 23))]), x_shift=3, y_shift=3)
        assert words[0].box == BoundingBox(10, 50, 0, 20)

    def test_legacy_word_class(self):
        """The older ocr_word class is recognized too."""
        markup = "<span class='ocr_word' title='bbox 1 2 30 40'>old</span>"
        assert [w.text for w in parse_hocr(markup)] == ["old"]

    def test_non_word_spans_ignored(self):
        """Line spans and empty words are skipped."""
        markup = (
            "<span class='ocr_line' title='bbox 0 0 100 20'>"
            "<span class='ocrx_word' title='bbox 0 0 10 10'> </span>"
            "<span class='ocrx_word' title='bbox 20 0 40 10'>x</span>"
            "</span>"
        )
        words = parse_hocr(markup)
        assert len(words) == 1
        assert words[0].text == "x"

    def test_nested_markup(self):
        """Text inside formatting tags and nested spans belongs to the word."""
        markup = (
            "<span class='ocrx_word' title='bbox 0 0 50 10'>"
            "<strong>bo</strong><span class='ocrx_cinfo'>ld</span></span>"
        )
        assert parse_hocr(markup)[0].text == "bold"

    def test_entities_decoded(self):
        """Character references are decoded."""
        markup = "<span class='ocrx_word' title='bbox 0 0 50 10'>A&amp;B</span>"
        assert parse_hocr(markup)[0].text == "A&B"

    def test_missing_geometry_is_io_error(self):
        """A word span without bbox is malformed."""
        with pytest.raises(RecognitionIOError):
            parse_hocr("<span class='ocrx_word' title='x_wconf 90'>oops</span>")

    def test_inverted_geometry_is_io_error(self):
        """A bbox with x1 < x0 is malformed."""
        with pytest.raises(RecognitionIOError):
            parse_hocr("<span class='ocrx_word' title='bbox 50 0 10 10'>oops</span>")


class TestReadResult:
    """Tests for result file access."""

    def test_reads_utf8(self, tmp_path):
        """Result files are decoded as UTF-8."""
        path = tmp_path / "r.txt"
        path.write_bytes("31°48E".encode("utf-8"))
        assert read_result(path) == "31°48E"

    def test_missing_file_is_io_error(self, tmp_path):
        """An unreadable file raises RecognitionIOError."""
        with pytest.raises(RecognitionIOError):
            read_result(tmp_path / "absent.txt")

    def test_undecodable_file_is_io_error(self, tmp_path):
        """Invalid UTF-8 raises RecognitionIOError."""
        path = tmp_path / "r.txt"
        path.write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(RecognitionIOError):
            read_result(path)


class TestParseText:
    """Tests for plain-text result splitting."""

    def test_blank_lines_trimmed(self):
        """Leading and trailing blank lines are cut, inner ones kept."""
        assert parse_text("\n\nfirst\n\nsecond\n\n \n") == ["first", "", "second"]

    def test_empty(self):
        """Whitespace-only output has no lines."""
        assert parse_text("\n \n") == []


class TestSplitSeparated:
    """Tests for splitting a composited strip's text into word tokens."""

    def test_separator_as_emitted(self):
        """The separator string splits words."""
        assert split_separated("XXX The XXX quick XXX fox XXX", "XXX") == ["The", "quick", "fox"]

    def test_separator_any_case(self):
        """A lower-cased separator still splits words."""
        assert split_separated("xxx The xxx fox xxx", "XXX") == ["The", "fox"]

    def test_separator_loosely_spaced(self):
        """A spaced-out separator still splits words."""
        assert split_separated("X X X The X X X fox X X X", "XXX") == ["The", "fox"]

    def test_spaced_separator_after_word_ending_in_x(self):
        """A final x of a word is not taken for a spaced separator."""
        assert split_separated("X X X six X X X box X X X", "XXX") == ["six", "box"]

    def test_whitespace_fallback(self):
        """Without any separator, whitespace splits words."""
        assert split_separated("The quick fox", "XXX") == ["The", "quick", "fox"]

    def test_empty_token_kept_in_place(self):
        """A word without text keeps its slot as an empty token."""
        assert split_separated("XXX The XXX XXX fox XXX", "XXX") == ["The", "", "fox"]

    def test_standalone_x_kept(self):
        """A single X between separators is a word of its own."""
        assert split_separated("XXX X XXX fox XXX", "XXX") == ["X", "fox"]

    def test_separator_glued_to_words(self):
        """Separators glued to the first and last word are cut off."""
        assert split_separated("xxxThe XXX foxxxx", "XXX") == ["The", "fox"]

    def test_pattern_order(self):
        """Patterns are tried exact first, then any case, then spaced."""
        exact, any_case, spaced, spaced_any_case = separator_patterns("XXX")
        assert exact.split("axxxb") == ["axxxb"]
        assert any_case.split("axxxb") == ["a", "b"]
        assert spaced.split("aX X Xb") == ["a", "b"]
        assert spaced.split("ax x xb") == ["ax x xb"]
        assert spaced_any_case.split("ax x xb") == ["a", "b"]
