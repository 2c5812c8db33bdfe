"""
Word reconciliation: recognizer output fused with the layout pass.

The recognizer finds text but misses words, especially page numbers and
other number-only content. The structural layout pass finds every word
box but no text. Reconciliation merges both:

1. Recognize the whole block, translate the words to page coordinates
2. Subtract the recognized boxes from the layout boxes; what remains
   are words the recognizer missed
3. Recognize each missed box on its own (only after the block pass)
4. Merge, sort in reading order, assign text to word nodes by exact box
5. Containment pass: nodes still without text take the concatenated
   text of the leftover words overlapping them

Line mode instead composites a line into a separator-delimited strip
and assigns one token per word.

The merge steps are pure functions over word lists with an explicit
comparator, so they can be tested and re-run independently of the
recognizer.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, fields

from ocrfuse.config import ReconcileConfig
from ocrfuse.correction import DEFAULT_CORRECTIONS, TextCorrectionEngine
from ocrfuse.exceptions import (
    GeometryMismatch,
    OCRFuseError,
    RecognitionIOError,
    RecognizerLaunchError,
)
from ocrfuse.geometry import BoundingBox, compare_reading_order
from ocrfuse.imaging.baseline import estimate_line
from ocrfuse.layout import LayoutAnalyzer
from ocrfuse.models import BlockNode, LineNode, Page, RecognizedWord, WordNode
from ocrfuse.recognizer.engine import Recognizer

logger = logging.getLogger(__name__)

Comparator = Callable[[BoundingBox, BoundingBox], int]

# Left words that make a dashed right word an enumeration, as in "pre- and -post"
ENUMERATION_WORDS = frozenset({"and", "or"})


# =============================================================================
# STATISTICS
# =============================================================================


@dataclass
class ReconcileStats:
    """
    Counters of one reconciliation run.

    Attributes:
        words_recognized: Words found by the full block pass.
        words_recovered: Words found by re-recognizing missed boxes.
        words_assigned: Word nodes that got text by exact box match,
            or a token in line mode.
        words_contained: Recognized words consumed by the containment pass.
        words_missing: Word nodes left without text.
        words_corrected: Assigned texts changed by the correction engine.
        words_joined: Word pairs joined in line mode.
        sub_invocations: Recognizer runs beyond the block pass.
        failures: Sub-images lost to malformed results or bad geometry.
        processing_time_ms: Wall time spent.
        orphans: Recognized words matching no node and contained by none.
    """

    words_recognized: int = 0
    words_recovered: int = 0
    words_assigned: int = 0
    words_contained: int = 0
    words_missing: int = 0
    words_corrected: int = 0
    words_joined: int = 0
    sub_invocations: int = 0
    failures: int = 0
    processing_time_ms: float = 0.0
    orphans: list[RecognizedWord] = field(default_factory=list)

    def merge(self, other: ReconcileStats) -> ReconcileStats:
        """Add another run's counters to this one, returning self."""
        for f in fields(self):
            if f.name == "orphans":
                self.orphans.extend(other.orphans)
            else:
                setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self


# =============================================================================
# MERGE FUNCTIONS
# =============================================================================


def sort_words(
    words: Iterable[RecognizedWord], compare: Comparator = compare_reading_order
) -> list[RecognizedWord]:
    """Sort words by their boxes, in reading order by default."""
    return sorted(words, key=functools.cmp_to_key(lambda a, b: compare(a.box, b.box)))


def subtract_overlapping(
    layout_boxes: Iterable[BoundingBox],
    recognized: Sequence[RecognizedWord],
    compare: Comparator = compare_reading_order,
) -> list[BoundingBox]:
    """
    Find the layout boxes the recognizer missed.

    A layout box counts as found if it compares equal, i.e. overlaps,
    with any recognized word's box.

    Returns:
        The remaining layout boxes, in their original order.
    """
    return [
        box for box in layout_boxes if all(compare(box, word.box) != 0 for word in recognized)
    ]


def merge_words(
    recognized: Iterable[RecognizedWord],
    recovered: Iterable[RecognizedWord],
    compare: Comparator = compare_reading_order,
) -> list[RecognizedWord]:
    """
    Union of both word sets, one word per box, sorted.

    Where both sets hold a word with the same box, the recognized one wins.
    """
    merged: dict[BoundingBox, RecognizedWord] = {}
    for word in [*recognized, *recovered]:
        merged.setdefault(word.box, word)
    return sort_words(merged.values(), compare)


def assign_to_nodes(
    nodes: Sequence[WordNode], merged: Iterable[RecognizedWord]
) -> list[RecognizedWord]:
    """
    Assign word texts to the nodes with exactly the same box.

    Returns:
        The unassigned pool: words whose box matched no node without text.
    """
    by_box: dict[BoundingBox, WordNode] = {}
    for node in nodes:
        by_box.setdefault(node.box, node)

    pool = []
    for word in merged:
        node = by_box.get(word.box)
        if node is None or node.text is not None:
            pool.append(word)
            continue
        node.text = word.text
    return pool


def containment_pass(
    nodes: Sequence[WordNode],
    pool: Sequence[RecognizedWord],
    compare: Comparator = compare_reading_order,
) -> list[RecognizedWord]:
    """
    Salvage pool words for nodes the exact match left without text.

    The layout pass may have merged several recognized words into one
    node. Each such node takes the left-to-right concatenation of the
    pool words overlapping it.

    Example:
        >>> node = WordNode(BoundingBox(10, 100, 10, 30))
        >>> pool = [RecognizedWord("Doe", BoundingBox(60, 100, 10, 30)),
        ...         RecognizedWord("John", BoundingBox(10, 50, 10, 30))]
        >>> containment_pass([node], pool)
        []
        >>> node.text
        'JohnDoe'

    Returns:
        The words no node consumed.
    """
    remaining = list(pool)
    for node in nodes:
        if node.text is not None or not remaining:
            continue
        contained = [w for w in remaining if compare(node.box, w.box) == 0]
        if not contained:
            continue
        contained.sort(key=lambda w: w.box.left)
        node.text = "".join(w.text for w in contained)
        remaining = [w for w in remaining if w not in contained]
        logger.debug("Contained %d words in %s: %r", len(contained), node.box, node.text)
    return remaining


# =============================================================================
# RECONCILER
# =============================================================================


class Reconciler:
    """
    Annotates the word nodes of a page with recognized text.

    Attributes:
        recognizer: Runs the external recognizer.
        layout: Source of word boxes for the missed-word pass.
        corrections: Correction engine applied to assigned text.
        config: Reconciliation settings.

    Example:
        >>> reconciler = Reconciler(Recognizer(), StaticLayoutAnalyzer(boxes))
        >>> stats = reconciler.reconcile_page(page)
        >>> stats.words_missing
        0
    """

    def __init__(
        self,
        recognizer: Recognizer,
        layout: LayoutAnalyzer,
        corrections: TextCorrectionEngine | None = None,
        config: ReconcileConfig | None = None,
    ):
        self.recognizer = recognizer
        self.layout = layout
        self.corrections = corrections or TextCorrectionEngine(DEFAULT_CORRECTIONS)
        self.config = config or ReconcileConfig()

    # -------------------------------------------------------------------------
    # Shared steps
    # -------------------------------------------------------------------------

    def _apply_correction(self, node: WordNode, stats: ReconcileStats) -> None:
        if node.text is None or not self.config.apply_corrections:
            return
        result = self.corrections.correct(node.text)
        if result.was_modified:
            node.ocr_text = result.original_text
            node.text = result.corrected_text
            stats.words_corrected += 1

    @staticmethod
    def _mark_missing(nodes: Iterable[WordNode], stats: ReconcileStats) -> None:
        for node in nodes:
            if not node.text:
                node.text = None
                node.missing = True
                stats.words_missing += 1

    def _recognize_box(
        self, page: Page, box: BoundingBox, stats: ReconcileStats
    ) -> list[RecognizedWord]:
        """Recognize the page area of a layout word box, in page coordinates."""
        if box.is_degenerate:
            raise GeometryMismatch(f"Degenerate word box {box}")
        image = page.image.crop(box)
        if image is None:
            return []
        stats.sub_invocations += 1
        origin_x = max(box.left, page.image.left)
        origin_y = max(box.top, page.image.top)
        words = self.recognizer.recognize_words(
            image, page.image.dpi, self.recognizer.next_basename("word")
        )
        return [w.translate(origin_x, origin_y) for w in words]

    # -------------------------------------------------------------------------
    # Block mode
    # -------------------------------------------------------------------------

    def reconcile_block(self, block: BlockNode, page: Page) -> ReconcileStats:
        """
        Recognize a block and assign text to its word nodes.

        Any text assigned by an earlier run is discarded first, so
        running this twice on the same inputs gives the same result.

        Args:
            block: Block whose word nodes to annotate.
            page: Page holding the raster.

        Returns:
            ReconcileStats of this block.

        Raises:
            RecognizerLaunchError: If the recognizer cannot be started.
        """
        start = time.perf_counter()
        stats = ReconcileStats()
        for line in block.lines:
            line.reset()
        nodes = block.words

        recognized: list[RecognizedWord] = []
        image = page.image.crop(block.box)
        if image is not None:
            origin_x = max(block.box.left, page.image.left)
            origin_y = max(block.box.top, page.image.top)
            try:
                words = self.recognizer.recognize_words(
                    image, page.image.dpi, self.recognizer.next_basename("block")
                )
            except RecognitionIOError as e:
                logger.warning("Block %s: %s", block.box, e)
                stats.failures += 1
                words = []
            recognized = sort_words(w.translate(origin_x, origin_y) for w in words)
        stats.words_recognized = len(recognized)

        # the full block pass is complete; only now re-recognize what it missed
        missed = subtract_overlapping(self.layout.words_for(page, block.box), recognized)
        logger.debug("Block %s: %d words missed by the recognizer", block.box, len(missed))
        recovered: list[RecognizedWord] = []
        for box in missed:
            try:
                words = self._recognize_box(page, box, stats)
            except GeometryMismatch as e:
                logger.warning("Skipping word: %s", e)
                stats.failures += 1
                continue
            except RecognitionIOError as e:
                logger.warning("Word %s: %s", box, e)
                stats.failures += 1
                continue
            for word in words:
                logger.debug("Recovered %r at %s", word.text, word.box)
            recovered.extend(words)
        stats.words_recovered = len(recovered)

        merged = merge_words(recognized, recovered)
        pool = assign_to_nodes(nodes, merged)
        stats.words_assigned = sum(1 for n in nodes if n.text is not None)
        remaining = containment_pass(nodes, pool)
        stats.words_contained = len(pool) - len(remaining)
        if remaining:
            logger.debug(
                "Block %s: %d words left unassigned: %s",
                block.box,
                len(remaining),
                ", ".join(f"{w.text!r} at {w.box}" for w in remaining),
            )
        stats.orphans = remaining

        for node in nodes:
            self._apply_correction(node, stats)
        self._mark_missing(nodes, stats)
        block.update_text()

        stats.processing_time_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Block %s: %d recognized, %d recovered, %d contained, %d missing",
            block.box,
            stats.words_recognized,
            stats.words_recovered,
            stats.words_contained,
            stats.words_missing,
        )
        return stats

    # -------------------------------------------------------------------------
    # Line mode
    # -------------------------------------------------------------------------

    def _line_tokens(self, line: LineNode, page: Page) -> list[str]:
        words = line.words
        geometry = estimate_line(
            line.box,
            [w.box for w in words],
            page.image.gray_array(line.box),
            [w.baseline for w in words],
            line.baseline,
        )
        strip = self.recognizer.compositor.compose_line(page.image, words, geometry)
        tokens = self.recognizer.recognize_separated(strip, self.recognizer.next_basename("line"))
        if len(tokens) > len(words):
            raise RecognitionIOError(
                f"Too many words in line {line.box}: {' | '.join(tokens)}"
            )
        return tokens

    def _should_join(self, left: WordNode, right: WordNode) -> bool:
        gap = right.box.left - left.box.right
        if gap >= (5 * self.config.min_word_gap + 2) // 4:
            return False
        if not left.text or not right.text:
            return False
        if right.text.startswith("-"):
            # a dashed compound cut apart, unless it reads like an enumeration
            return gap < self.config.dpi // 100 and left.text.lower() not in ENUMERATION_WORDS
        boundary = right.text[0]
        return left.text[-1] == boundary and boundary in self.corrections.join_pair_characters

    @staticmethod
    def _join(left: WordNode, right: WordNode) -> None:
        """Merge the left word into the right one."""
        if left.ocr_text is not None or right.ocr_text is not None:
            right.ocr_text = f"{left.ocr_text or left.text} {right.ocr_text or right.text}"
        logger.debug("Joined %r with %r", left.text, right.text)
        right.text = left.text + right.text
        if right.layout_box is None:
            right.layout_box = right.box
        right.box = BoundingBox.aggregate([left.box, right.box]) or right.box

    def _join_words(self, line: LineNode, stats: ReconcileStats) -> None:
        kept: list[WordNode] = []
        for word in line.words:
            if kept and self._should_join(kept[-1], word):
                self._join(kept.pop(), word)
                stats.words_joined += 1
            kept.append(word)
        if len(kept) < len(line.words):
            line.layout_words = line.words
            line.words = kept

    def reconcile_line(self, line: LineNode, page: Page) -> ReconcileStats:
        """
        Recognize a line word by word through a separator-delimited strip.

        Words get one token each, in order; words beyond the last token
        are marked missing. Afterwards, words split apart at a dash or a
        doubled join character are joined again. Joins of an earlier run
        are undone first, so the layout words are the input every time.

        Args:
            line: Line whose word nodes to annotate.
            page: Page holding the raster.

        Returns:
            ReconcileStats of this line.

        Raises:
            RecognizerLaunchError: If the recognizer cannot be started.
        """
        start = time.perf_counter()
        stats = ReconcileStats()
        line.reset()
        words = line.words
        if not words:
            return stats

        stats.sub_invocations += 1
        try:
            tokens = self._line_tokens(line, page)
        except RecognitionIOError as e:
            logger.warning("Line %s: %s", line.box, e)
            stats.failures += 1
            tokens = []

        for word, token in zip(words, tokens):
            if not token:
                continue
            word.text = token
            stats.words_assigned += 1
            self._apply_correction(word, stats)
        self._mark_missing(words, stats)
        if stats.words_missing:
            logger.info("Line %s: missing %d words", line.box, stats.words_missing)

        if self.config.join_words:
            self._join_words(line, stats)
        line.update_text()

        stats.processing_time_ms = (time.perf_counter() - start) * 1000
        return stats

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def reconcile(self, node: BlockNode | LineNode, page: Page) -> ReconcileStats:
        """
        Annotate the word nodes of a block or line in place.

        Every word ends up with text, or with ``missing`` set.
        """
        if isinstance(node, BlockNode):
            return self.reconcile_block(node, page)
        if isinstance(node, LineNode):
            return self.reconcile_line(node, page)
        raise TypeError(f"Cannot reconcile {type(node).__name__}")

    def reconcile_page(self, page: Page, line_mode: bool = False) -> ReconcileStats:
        """
        Reconcile all blocks of a page.

        Failures in one block never abort the page; only a recognizer
        that cannot be started does.

        Args:
            page: The page to annotate.
            line_mode: Recognize line by line instead of block by block.

        Returns:
            ReconcileStats summed over the page.

        Raises:
            RecognizerLaunchError: If the recognizer cannot be started.
        """
        start = time.perf_counter()
        total = ReconcileStats()
        for block in page.blocks:
            targets: list[BlockNode | LineNode] = list(block.lines) if line_mode else [block]
            for target in targets:
                try:
                    total.merge(self.reconcile(target, page))
                except RecognizerLaunchError:
                    raise
                except OCRFuseError as e:
                    logger.warning("Failed to reconcile %s: %s", target.box, e)
                    total.failures += 1
            if line_mode:
                block.update_text()

        total.processing_time_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Page: %d words, %d missing, %d corrected in %.0f ms",
            len(page.words),
            total.words_missing,
            total.words_corrected,
            total.processing_time_ms,
        )
        return total
