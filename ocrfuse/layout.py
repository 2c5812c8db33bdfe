"""
Adapter to the structural layout analyzer.

The layout analyzer is an independent, recognizer-free pass that finds
word geometry only. Reconciliation uses it as a recall safety net for
words the recognizer missed. Its segmentation logic lives elsewhere;
this module only defines what reconciliation consumes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from ocrfuse.geometry import BoundingBox, reading_order_key
from ocrfuse.models import BlockNode, Page


class LayoutAnalyzer(ABC):
    """Source of word boxes for a page region."""

    @abstractmethod
    def words_for(self, page: Page, region: BoundingBox) -> list[BoundingBox]:
        """
        Find the word boxes within a region.

        Args:
            page: The page being processed.
            region: Region in page coordinates.

        Returns:
            Word boxes in page coordinates, same DPI as the page raster.
        """


class StaticLayoutAnalyzer(LayoutAnalyzer):
    """
    Serves word boxes computed by an earlier layout pass.

    Example:
        >>> layout = StaticLayoutAnalyzer([BoundingBox(10, 100, 10, 30)])
        >>> layout.words_for(page, BoundingBox(0, 200, 0, 50))
        [BoundingBox(left=10, right=100, top=10, bottom=30)]
    """

    def __init__(self, boxes: Iterable[BoundingBox]):
        self.boxes = sorted(boxes, key=reading_order_key)

    def words_for(self, page: Page, region: BoundingBox) -> list[BoundingBox]:
        return [b for b in self.boxes if b.lies_in(region, fuzzy=True)]


class NodeLayoutAnalyzer(LayoutAnalyzer):
    """Uses the word nodes already present in the page structure."""

    def words_for(self, page: Page, region: BoundingBox) -> list[BoundingBox]:
        return [w.box for w in page.words if w.box.lies_in(region, fuzzy=True)]


def analyzer_from_nodes(block: BlockNode) -> StaticLayoutAnalyzer:
    """Snapshot a block's current word boxes as a layout analyzer."""
    return StaticLayoutAnalyzer(w.box for w in block.words)
