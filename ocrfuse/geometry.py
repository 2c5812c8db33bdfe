"""
Bounding box geometry in page-pixel space.

Boxes are half-open integer rectangles: ``left <= x < right`` and
``top <= y < bottom``. Every other component works on these boxes,
mostly through the reading-order comparator below.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable
from dataclasses import dataclass

from ocrfuse.exceptions import GeometryMismatch


@dataclass(frozen=True)
class BoundingBox:
    """
    Immutable rectangle in page-pixel coordinates.

    Attributes:
        left: First column of the box.
        right: Column just past the box.
        top: First row of the box.
        bottom: Row just past the box.

    Example:
        >>> box = BoundingBox(10, 50, 10, 30)
        >>> str(box)
        '[10,50,10,30]'
        >>> box.width, box.height
        (40, 20)
    """

    left: int
    right: int
    top: int
    bottom: int

    def __post_init__(self) -> None:
        if self.left > self.right:
            raise GeometryMismatch(f"left ({self.left}) must not exceed right ({self.right})")
        if self.top > self.bottom:
            raise GeometryMismatch(f"top ({self.top}) must not exceed bottom ({self.bottom})")

    def __str__(self) -> str:
        return f"[{self.left},{self.right},{self.top},{self.bottom}]"

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_degenerate(self) -> bool:
        """True if the box has zero width or zero height."""
        return self.width == 0 or self.height == 0

    def translate(self, dx: int, dy: int) -> BoundingBox:
        return BoundingBox(self.left + dx, self.right + dx, self.top + dy, self.bottom + dy)

    def relative_to(self, box: BoundingBox) -> BoundingBox:
        """Express this box in the coordinate space whose origin is ``box``'s top left."""
        return self.translate(-box.left, -box.top)

    def scale(self, sx: float, sy: float | None = None) -> BoundingBox:
        if sy is None:
            sy = sx
        return BoundingBox(
            round(self.left * sx),
            round(self.right * sx),
            round(self.top * sy),
            round(self.bottom * sy),
        )

    def overlaps(self, box: BoundingBox) -> bool:
        return (
            self.left < box.right
            and box.left < self.right
            and self.top < box.bottom
            and box.top < self.bottom
        )

    def includes(self, box: BoundingBox, fuzzy: bool = False) -> bool:
        """
        Check if this box contains another one.

        Args:
            box: The box to test.
            fuzzy: Also accept boxes whose center lies inside this one.
        """
        if (
            self.left <= box.left
            and box.right <= self.right
            and self.top <= box.top
            and box.bottom <= self.bottom
        ):
            return True
        if fuzzy:
            cx = (box.left + box.right) // 2
            cy = (box.top + box.bottom) // 2
            return self.left <= cx < self.right and self.top <= cy < self.bottom
        return False

    def lies_in(self, box: BoundingBox | None, fuzzy: bool = False) -> bool:
        return box is not None and box.includes(self, fuzzy)

    @classmethod
    def parse(cls, data: str | None) -> BoundingBox | None:
        """
        Parse the ``[left,right,top,bottom]`` string form.

        Returns None for None or an empty string.

        Raises:
            ValueError: If the string does not hold exactly four integers.
        """
        if data is None:
            return None
        data = data.strip()
        if data.startswith("["):
            data = data[1:]
        if data.endswith("]"):
            data = data[:-1]
        data = data.strip()
        if not data:
            return None
        parts = [p.strip() for p in data.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Invalid bounding box data: {data!r}")
        left, right, top, bottom = (int(p) for p in parts)
        return cls(left, right, top, bottom)

    @staticmethod
    def aggregate(boxes: Iterable[BoundingBox | None]) -> BoundingBox | None:
        """
        Compute the smallest box enclosing all argument boxes.

        None entries are ignored. Returns None if there is nothing to
        aggregate or the union is degenerate.
        """
        boxes = [b for b in boxes if b is not None]
        if not boxes:
            return None
        if len(boxes) == 1:
            return boxes[0]
        left = min(b.left for b in boxes)
        right = max(b.right for b in boxes)
        top = min(b.top for b in boxes)
        bottom = max(b.bottom for b in boxes)
        if left < right and top < bottom:
            return BoundingBox(left, right, top, bottom)
        return None


# =============================================================================
# READING ORDER
# =============================================================================


def compare_reading_order(a: BoundingBox, b: BoundingBox) -> int:
    """
    Compare two boxes in reading order: rows first, then columns.

    A box entirely above another comes first; among vertically
    overlapping boxes, one entirely left of the other comes first.
    Boxes overlapping in both dimensions compare equal.

    The order is transitive for words laid out in rows, where boxes
    that share rows overlap vertically. Staggered boxes can form a
    cycle: with A=[0,10,10,20], B=[20,30,0,12] and C=[40,50,0,8],
    A < B and B < C by column, but C < A by row.

    Returns:
        -1, 0, or 1.
    """
    if a.bottom <= b.top:
        return -1
    if b.bottom <= a.top:
        return 1
    if a.right <= b.left:
        return -1
    if b.right <= a.left:
        return 1
    return 0


reading_order_key = functools.cmp_to_key(compare_reading_order)
