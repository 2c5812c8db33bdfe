"""
Data models for OCRFuse.

Two kinds of objects live here:
- RecognizedWord: ephemeral (text, box) pairs produced by either detection pass
- Page/BlockNode/LineNode/WordNode: the page annotation tree built by the
  structural layout analyzer, which reconciliation annotates in place
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from ocrfuse.geometry import BoundingBox

if TYPE_CHECKING:
    from ocrfuse.imaging.page import PageImage


class SlopeClass(Enum):
    """Direction of a text line's baseline from left to right."""

    ASCENDING = "ascending"
    EVEN = "even"
    DESCENDING = "descending"


@dataclass(frozen=True)
class RecognizedWord:
    """A word found by the recognizer, or a box found by the layout pass."""

    text: str
    box: BoundingBox

    def translate(self, dx: int, dy: int) -> RecognizedWord:
        return replace(self, box=self.box.translate(dx, dy))


# =============================================================================
# PAGE ANNOTATION TREE
# =============================================================================


@dataclass(eq=False)
class WordNode:
    """
    A word in the page structure.

    Attributes:
        box: Word geometry in page coordinates.
        text: Assigned text, None until reconciliation resolves it.
        ocr_text: Raw recognizer text, kept when a correction changed it.
        missing: Set when reconciliation could not resolve the word.
        italic: Render the word sheared upright before re-recognition.
        baseline: Known baseline row in page coordinates, if any.
        layout_box: Box found by the layout pass, kept while a join
            has widened ``box``.
    """

    box: BoundingBox
    text: str | None = None
    ocr_text: str | None = None
    missing: bool = False
    italic: bool = False
    baseline: int | None = None
    layout_box: BoundingBox | None = field(default=None, repr=False)

    def reset(self) -> None:
        """Forget any previously assigned text and restore the layout box."""
        self.text = None
        self.ocr_text = None
        self.missing = False
        if self.layout_box is not None:
            self.box = self.layout_box
            self.layout_box = None


@dataclass(eq=False)
class LineNode:
    """
    A text line: an ordered sequence of words.

    Joining words replaces ``words`` with a shorter list; the words
    found by the layout pass stay in ``layout_words`` until ``reset()``.
    """

    box: BoundingBox
    words: list[WordNode] = field(default_factory=list)
    baseline: int | None = None
    text: str | None = None
    layout_words: list[WordNode] | None = field(default=None, repr=False)

    def reset(self) -> None:
        """Undo joins and forget the text of all words."""
        if self.layout_words is not None:
            self.words = self.layout_words
            self.layout_words = None
        for word in self.words:
            word.reset()
        self.text = None

    def update_text(self) -> None:
        self.text = " ".join(w.text for w in self.words if w.text) or None


@dataclass(eq=False)
class BlockNode:
    """A text block made up of lines."""

    box: BoundingBox
    lines: list[LineNode] = field(default_factory=list)
    text: str | None = None

    @property
    def words(self) -> list[WordNode]:
        return [w for line in self.lines for w in line.words]

    def update_text(self) -> None:
        for line in self.lines:
            line.update_text()
        self.text = "\n".join(line.text for line in self.lines if line.text) or None


@dataclass(eq=False)
class Page:
    """A scanned page: its raster plus the blocks found by layout analysis."""

    image: PageImage
    blocks: list[BlockNode] = field(default_factory=list)

    @property
    def words(self) -> list[WordNode]:
        return [w for block in self.blocks for w in block.words]

    @property
    def missing_words(self) -> list[WordNode]:
        return [w for w in self.words if w.missing]
