"""
Parsers for recognizer result files.

Two formats are understood:
- hOCR markup, where every recognized word is a ``<span>`` whose class
  ends with ``ocr_word`` (``ocrx_word`` in current Tesseract) and whose
  title carries the geometry as ``bbox x0 y0 x1 y1``
- plain text, where words of a composited strip are delimited by the
  reserved separator string
"""

from __future__ import annotations

import logging
import re
from html.parser import HTMLParser
from pathlib import Path

from ocrfuse.exceptions import GeometryMismatch, RecognitionIOError
from ocrfuse.geometry import BoundingBox
from ocrfuse.models import RecognizedWord

logger = logging.getLogger(__name__)

# First four consecutive integers in a title attribute; "bbox" and
# trailing properties such as "; x_wconf 93" are ignored
BBOX_PATTERN = re.compile(r"(-?\d+)\s+(-?\d+)\s+(-?\d+)\s+(-?\d+)")
WORD_CLASS_SUFFIXES = ("ocr_word", "ocrx_word")


# =============================================================================
# FILE ACCESS
# =============================================================================


def read_result(path: Path) -> str:
    """
    Read a recognizer result file (always UTF-8).

    Raises:
        RecognitionIOError: If the file cannot be read or decoded.
    """
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise RecognitionIOError(f"Cannot read recognizer result {path}: {e}") from e


# =============================================================================
# hOCR
# =============================================================================


class _HocrWordParser(HTMLParser):
    """Collects (text, bbox) pairs of hOCR word spans."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.words: list[tuple[str, tuple[int, int, int, int]]] = []
        self._bbox: tuple[int, int, int, int] | None = None
        self._parts: list[str] = []
        self._nested_spans = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag != "span":
            return
        if self._bbox is not None:
            self._nested_spans += 1
            return
        attributes = dict(attrs)
        classes = (attributes.get("class") or "").split()
        if not any(c.endswith(WORD_CLASS_SUFFIXES) for c in classes):
            return
        title = attributes.get("title") or ""
        match = BBOX_PATTERN.search(title)
        if match is None:
            raise RecognitionIOError(f"Word span without geometry: title={title!r}")
        self._bbox = tuple(int(v) for v in match.groups())
        self._parts = []

    def handle_endtag(self, tag: str) -> None:
        if tag != "span" or self._bbox is None:
            return
        if self._nested_spans:
            self._nested_spans -= 1
            return
        text = "".join(self._parts).strip()
        if text:
            self.words.append((text, self._bbox))
        self._bbox = None

    def handle_data(self, data: str) -> None:
        if self._bbox is not None:
            self._parts.append(data)


def parse_hocr(markup: str, x_shift: int = 0, y_shift: int = 0) -> list[RecognizedWord]:
    """
    Extract positioned words from hOCR markup.

    Args:
        markup: Content of the result file.
        x_shift: Columns to subtract, i.e. synthetic margin plus prefix width.
        y_shift: Rows to subtract, i.e. the synthetic margin.

    Returns:
        Words in document order, with image-local boxes.

    Raises:
        RecognitionIOError: If a word span carries no valid geometry.
    """
    parser = _HocrWordParser()
    parser.feed(markup)
    parser.close()

    words = []
    for text, (x0, y0, x1, y1) in parser.words:
        try:
            box = BoundingBox(x0 - x_shift, x1 - x_shift, y0 - y_shift, y1 - y_shift)
        except GeometryMismatch as e:
            raise RecognitionIOError(f"Invalid geometry for word {text!r}: {e}") from e
        words.append(RecognizedWord(text, box))
    logger.debug("Parsed %d words from hOCR", len(words))
    return words


# =============================================================================
# PLAIN TEXT
# =============================================================================


def parse_text(content: str) -> list[str]:
    """Split plain-text output into lines, cutting leading and trailing blank lines."""
    lines = content.splitlines()
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


def separator_patterns(separator: str) -> list[re.Pattern]:
    """
    Split patterns for a separator, in the order they are tried.

    1. as emitted
    2. in any letter case
    3. loosely spaced, as emitted
    4. loosely spaced, any letter case

    Ignoring case, the spaced form also matches a word's final x
    followed by a separator, so it is tried last.
    """
    escaped = re.escape(separator)
    spaced = r"\s*".join(re.escape(c) for c in separator)
    return [
        re.compile(rf"\s*{escaped}\s*"),
        re.compile(rf"\s*{escaped}\s*", re.IGNORECASE),
        re.compile(rf"\s*{spaced}\s*"),
        re.compile(rf"\s*{spaced}\s*", re.IGNORECASE),
    ]


def split_separated(line: str, separator: str) -> list[str]:
    """
    Split one line of a composited strip's text into word tokens.

    Tries the separator as emitted, in any case, and loosely spaced,
    then falls back to whitespace. A stand-alone ``X`` glued to a
    separator is kept as a word of its own.

    Args:
        line: First text line of the recognizer output.
        separator: The separator string rendered between words.

    Returns:
        One token per word; an empty token marks a word without text.
    """
    tokens: list[str] = []
    for pattern in separator_patterns(separator):
        tokens = pattern.split(line)
        if len(tokens) >= 2:
            break
    else:
        tokens = line.split()

    # a single-letter word next to a separator reads as part of it
    glyph = separator[0].lower()
    i = 0
    while i < len(tokens) - 1:
        if tokens[i] == "":
            following = tokens[i + 1]
            if following.lower() == glyph:
                del tokens[i]
                continue
            if following.lower().startswith(glyph + " "):
                tokens[i] = following[0]
                tokens[i + 1] = following[2:].strip()
        i += 1

    if tokens and tokens[0] == "":
        tokens.pop(0)
    if tokens:
        lowered = separator.lower()
        if tokens[0].lower().startswith(lowered):
            tokens[0] = tokens[0][len(separator) :]
        if tokens[-1].lower().endswith(lowered):
            tokens[-1] = tokens[-1][: -len(separator)]
    while tokens and tokens[-1] == "":
        tokens.pop()
    return [t.strip() for t in tokens]
