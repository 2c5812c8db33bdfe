"""
Baseline and skew estimation for text lines.

Slightly rotated scans yield lines whose words sit on a slanted
baseline. Before a line is composited into a synthetic strip for
re-recognition, every word gets a vertical shift that puts all words
on one common baseline.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from ocrfuse.geometry import BoundingBox
from ocrfuse.models import SlopeClass

logger = logging.getLogger(__name__)

# Share of word pairs (one direction plus ties) needed to call a line sloped
MIN_SLOPE_SHARE = 0.8


@dataclass
class LineGeometry:
    """
    Output of baseline and skew estimation for one line.

    Attributes:
        baseline: Baseline row, relative to ``top``.
        top: Page row of the (possibly re-expanded) line top.
        bottom: Page row just past the line bottom.
        slope: Detected slope of the line.
        shifts: Per-word upward shift in pixels, all >= 0.
    """

    baseline: int
    top: int
    bottom: int
    slope: SlopeClass = SlopeClass.EVEN
    shifts: list[int] = field(default_factory=list)

    @property
    def height(self) -> int:
        return self.bottom - self.top

    def word_top(self, box: BoundingBox, index: int) -> int:
        """Row of a word's top edge within the line strip, after shifting."""
        return box.top - self.shifts[index] - self.top


def find_baseline(gray: np.ndarray, boxes: Sequence[BoundingBox]) -> int:
    """
    Find the baseline of a set of words.

    Picks the row with the strongest increase in brightness to the row
    immediately below it, i.e. the lower rim of the letters (save for
    descenders). Only the lower half of the words' vertical extent is
    searched, bottom up.

    Args:
        gray: Brightness array (rows x columns, 0 = black).
        boxes: Word boxes in the array's coordinates, left to right.

    Returns:
        Baseline row in the array's coordinates, or -1 if none was found.
    """
    if not boxes or gray.size == 0:
        return -1

    left = max(0, boxes[0].left)
    right = min(gray.shape[1], boxes[-1].right)
    top = max(0, min(b.top for b in boxes))
    bottom = min(gray.shape[0], max(b.bottom for b in boxes))
    if right <= left or bottom - top < 2:
        return -1

    rows = gray[top:bottom, left:right].astype(np.int32).mean(axis=1)
    drops = rows[:-1] - rows[1:]  # negative where the next row is brighter
    height = len(rows)

    best_drop = 0.0
    best_row = -1
    for r in range(len(drops) - 1, height // 2, -1):
        if drops[r] < best_drop:
            best_drop = drops[r]
            best_row = r
    if best_row < 0:
        return -1
    return top + best_row


def classify_slope(baselines: Sequence[int | None]) -> SlopeClass:
    """
    Classify a line by comparing consecutive word baselines.

    Unknown baselines (None or < 1) are skipped. A line counts as
    sloped if one direction plus ties covers at least 80% of the
    comparisons and that direction wins more than half of the
    non-tied comparisons.
    """
    ascending = even = descending = 0
    for prev, cur in zip(baselines, baselines[1:]):
        if prev is None or cur is None or prev < 1 or cur < 1:
            continue
        if prev < cur:
            descending += 1
        elif prev == cur:
            even += 1
        else:
            ascending += 1

    compared = ascending + even + descending
    if compared == 0:
        return SlopeClass.EVEN
    tilted = ascending + descending
    if (ascending + even) >= MIN_SLOPE_SHARE * compared and ascending * 2 > tilted:
        return SlopeClass.ASCENDING
    if (descending + even) >= MIN_SLOPE_SHARE * compared and descending * 2 > tilted:
        return SlopeClass.DESCENDING
    return SlopeClass.EVEN


def estimate_line(
    line_box: BoundingBox,
    word_boxes: Sequence[BoundingBox],
    gray: np.ndarray,
    word_baselines: Sequence[int | None] | None = None,
    line_baseline: int | None = None,
) -> LineGeometry:
    """
    Compute one authoritative baseline and per-word shifts for a line.

    Args:
        line_box: Line geometry in page coordinates.
        word_boxes: Word geometries in page coordinates, left to right.
        gray: Brightness array of the line box area.
        word_baselines: Known word baselines in page coordinates (None = unknown).
        line_baseline: Known line baseline in page coordinates.

    Returns:
        LineGeometry with shifts that level all words on one baseline.
    """
    n = len(word_boxes)
    if word_baselines is None:
        word_baselines = [None] * n
    local_boxes = [b.relative_to(line_box) for b in word_boxes]

    # Word baselines relative to the line top, estimated where unknown
    baselines: list[int | None] = []
    for box, known in zip(local_boxes, word_baselines):
        if known is not None:
            baselines.append(known - line_box.top)
        else:
            found = find_baseline(gray, [box])
            baselines.append(found if found >= 0 else None)

    slope = classify_slope(baselines)

    if line_baseline is not None:
        baseline = line_baseline - line_box.top
    else:
        baseline = find_baseline(gray, local_boxes)
        if baseline < 0:
            baseline = line_box.height - 1

    if slope is SlopeClass.EVEN:
        logger.debug("Even line at %s, baseline %d", line_box, baseline)
        return LineGeometry(baseline, line_box.top, line_box.bottom, slope, [0] * n)

    known = [b for b in baselines if b is not None and b >= 1]
    mean = (sum(known) // len(known)) if known else baseline
    shifts = [(b - mean) if (b is not None and b >= 1) else 0 for b in baselines]
    min_shift = min(shifts)
    mean += min_shift
    shifts = [s - min_shift for s in shifts]

    top = min(box.top - s for box, s in zip(word_boxes, shifts))
    bottom = max(box.bottom - s for box, s in zip(word_boxes, shifts))
    page_baseline = line_box.top + mean
    logger.debug(
        "%s line at %s: baseline %d, shifts %s",
        slope.value.capitalize(),
        line_box,
        page_baseline,
        shifts,
    )
    return LineGeometry(page_baseline - top, top, bottom, slope, shifts)
