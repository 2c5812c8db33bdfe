"""
Recognizer front end: rasters in, positioned words or text out.

Every invocation writes its synthetic raster under a caller-unique
name into the shared cache directory, runs the supervised recognizer
process, and parses the result. Rasters and result files stay in the
cache directory for diagnostic replay.

Regions coming back empty (this tends to happen with number-only
content) are retried once with the separator glyphs rendered in front
as a marker prefix, which is stripped from the result again.
"""

from __future__ import annotations

import itertools
import logging
import re
import shutil
import threading
from collections.abc import Sequence
from pathlib import Path

from PIL import Image

from ocrfuse.config import CompositorConfig, RecognizerConfig
from ocrfuse.exceptions import RecognitionEmptyResult, RecognitionTimeout
from ocrfuse.geometry import BoundingBox
from ocrfuse.imaging.compositor import Compositor
from ocrfuse.imaging.page import DEFAULT_DPI
from ocrfuse.models import RecognizedWord
from ocrfuse.recognizer.process import ProcessResult, RecognizerProcess
from ocrfuse.recognizer.results import (
    parse_hocr,
    parse_text,
    read_result,
    separator_patterns,
    split_separated,
)

logger = logging.getLogger(__name__)


def _check_tesseract_available() -> bool:
    """Check if Tesseract is installed and usable."""
    try:
        import pytesseract

        pytesseract.get_tesseract_version()
        return True
    except ImportError:
        logger.debug("pytesseract not installed")
        return False
    except pytesseract.TesseractNotFoundError:
        logger.debug("Tesseract binary not found")
        return False


def strip_marker(words: list[RecognizedWord], marker: str, shift: int) -> list[RecognizedWord]:
    """
    Remove the marker prefix from the first recognized word.

    The first token is dropped if it is the marker. If it merely starts
    with the marker, the marker is cut from its text and its left edge
    moves right by the prefix width.
    """
    if not words:
        return words
    first, rest = words[0], words[1:]
    text = first.text
    if text.lower() == marker.lower():
        return rest
    if not text.lower().startswith(marker.lower()):
        return words
    text = text[len(marker) :].strip()
    if not text:
        return rest
    box = first.box
    left = min(box.left + shift, box.right)
    stripped = RecognizedWord(text, BoundingBox(left, box.right, box.top, box.bottom))
    return [stripped, *rest]


class Recognizer:
    """
    Runs the external recognizer on synthetic rasters.

    Attributes:
        config: Recognizer invocation and bounded-wait settings.
        compositor: Builds margins and marker prefixes.
        process: Supervised subprocess runner.

    Example:
        >>> recognizer = Recognizer(RecognizerConfig(cache_dir=Path("/tmp/ocr")))
        >>> words = recognizer.recognize_words(block_image, dpi=300)
        >>> [w.text for w in words]
        ['Chapter', '1']
    """

    def __init__(
        self,
        config: RecognizerConfig | None = None,
        compositor: Compositor | None = None,
        process: RecognizerProcess | None = None,
    ):
        self.config = config or RecognizerConfig()
        self.compositor = compositor or Compositor(CompositorConfig())
        self.process = process or RecognizerProcess(self.config)
        self.config.cache_dir.mkdir(parents=True, exist_ok=True)
        self._sequence = itertools.count()
        self._sequence_lock = threading.Lock()

    @property
    def marker(self) -> str:
        return self.compositor.separator

    def next_basename(self, kind: str = "block") -> str:
        """Working file name that no other invocation of this recognizer uses."""
        with self._sequence_lock:
            number = next(self._sequence)
        return f"{kind}.{number:04d}"

    def is_available(self) -> bool:
        """Check if the recognizer executable can be found."""
        executable = self.config.command[0]
        if Path(executable).name in ("tesseract", "tesseract.exe"):
            return _check_tesseract_available()
        return shutil.which(executable) is not None

    # -------------------------------------------------------------------------
    # Invocation
    # -------------------------------------------------------------------------

    def _invoke(
        self, image: Image.Image, basename: str, suffix: str, args: Sequence[str]
    ) -> ProcessResult:
        image_path = self.config.cache_dir / f"{basename}.{self.config.image_format}"
        image.save(image_path)
        return self.process.run(image_path, self.config.cache_dir / basename, suffix, args)

    def _result_text(self, result: ProcessResult, basename: str) -> str:
        if not result.has_output:
            if result.timed_out:
                raise RecognitionTimeout(f"No result for {basename} within {self.config.timeout}s")
            raise RecognitionEmptyResult(f"No result file for {basename}")
        return read_result(result.output_path)

    def _words_once(self, image: Image.Image, basename: str, x_shift: int) -> list[RecognizedWord]:
        result = self._invoke(image, basename, self.config.hocr_suffix, self.config.config_args)
        margin = self.compositor.margin
        words = parse_hocr(self._result_text(result, basename), x_shift + margin, margin)
        if not words:
            raise RecognitionEmptyResult(f"No words in {basename}")
        return words

    def _lines_once(self, image: Image.Image, basename: str) -> list[str]:
        result = self._invoke(image, basename, self.config.text_suffix, self.config.text_config_args)
        lines = parse_text(self._result_text(result, basename))
        if not lines:
            raise RecognitionEmptyResult(f"No text in {basename}")
        return lines

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def recognize_words(
        self,
        image: Image.Image,
        dpi: int = DEFAULT_DPI,
        basename: str | None = None,
    ) -> list[RecognizedWord]:
        """
        Recognize the positioned words in a raster.

        Args:
            image: Raster of a block or word, without synthetic margin.
            dpi: Resolution of the raster.
            basename: Working file name; a fresh unique one by default.

        Returns:
            Recognized words with boxes local to ``image``; empty if even
            the marker-prefix retry found nothing.

        Raises:
            RecognitionIOError: If the result file is malformed.
            RecognizerLaunchError: If the recognizer cannot be started.
        """
        basename = basename or self.next_basename("block")
        padded = self.compositor.pad(image)
        try:
            return self._words_once(padded, basename, 0)
        except (RecognitionEmptyResult, RecognitionTimeout) as e:
            logger.info("%s, re-trying with marker prefix", e)

        prefixed, shift = self.compositor.prefix_image(padded, dpi)
        try:
            words = self._words_once(prefixed, f"{basename}.p", shift)
        except (RecognitionEmptyResult, RecognitionTimeout) as e:
            logger.info("%s, giving up", e)
            return []
        return strip_marker(words, self.marker, shift)

    def recognize_lines(
        self,
        image: Image.Image,
        dpi: int = DEFAULT_DPI,
        basename: str | None = None,
    ) -> list[str]:
        """
        Recognize the text lines of a raster as plain text.

        Empty regions get the same marker-prefix retry as in
        recognize_words; the marker is split off the first line.

        Reconciliation works on positioned words and does not use this;
        it serves callers that only need the text of a region, such as
        a caption or a page header.
        """
        basename = basename or self.next_basename("line")
        padded = self.compositor.pad(image)
        try:
            return self._lines_once(padded, basename)
        except (RecognitionEmptyResult, RecognitionTimeout) as e:
            logger.info("%s, re-trying with marker prefix", e)

        prefixed, _ = self.compositor.prefix_image(padded, dpi)
        try:
            lines = self._lines_once(prefixed, f"{basename}.p")
        except (RecognitionEmptyResult, RecognitionTimeout) as e:
            logger.info("%s, giving up", e)
            return []

        pattern = separator_patterns(self.marker)[1]
        parts = [p.strip() for p in pattern.split(lines[0], maxsplit=1)]
        first = next((p for p in parts if p), "")
        if not first:
            return lines[1:]
        return [first, *lines[1:]]

    def recognize_separated(self, strip: Image.Image, basename: str | None = None) -> list[str]:
        """
        Recognize a composited line strip and split it into word tokens.

        Args:
            strip: Strip built by Compositor.compose_line (margin included).
            basename: Working file name; a fresh unique one by default.

        Returns:
            One token per word, possibly fewer than words in the strip.
        """
        basename = basename or self.next_basename("line")
        try:
            lines = self._lines_once(strip, basename)
        except (RecognitionEmptyResult, RecognitionTimeout) as e:
            logger.info("%s", e)
            return []
        first = next((line for line in lines if line.strip()), "")
        return split_separated(re.sub(r"\s+", " ", first), self.marker)
