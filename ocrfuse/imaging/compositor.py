"""
Synthetic strip images for targeted re-recognition.

Recognizers re-segment what they see. To keep the layout pass's word
segmentation, a line is re-rendered as a strip with a separator glyph
sequence ("XXX") between adjacent words; the recognizer's plain-text
output can then be split back into exactly one token per word.

The same separator doubles as the marker prefix that helps the
recognizer pick up number-only regions it otherwise returns empty.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from ocrfuse.config import CompositorConfig
from ocrfuse.exceptions import CompositionOverflow
from ocrfuse.imaging.baseline import LineGeometry
from ocrfuse.imaging.page import PageImage
from ocrfuse.models import WordNode

logger = logging.getLogger(__name__)

WHITE = 255
BLACK = 0


class Compositor:
    """
    Builds synthetic rasters for the recognizer.

    Attributes:
        config: Margins, separator string, shear angle and font settings.

    Example:
        >>> compositor = Compositor()
        >>> strip = compositor.compose_line(page_image, line.words, geometry)
        >>> strip.mode
        'L'
    """

    def __init__(self, config: CompositorConfig | None = None):
        self.config = config or CompositorConfig()
        self._fonts: dict[int, ImageFont.ImageFont | ImageFont.FreeTypeFont] = {}

    @property
    def separator(self) -> str:
        return self.config.separator

    @property
    def margin(self) -> int:
        return self.config.margin

    # -------------------------------------------------------------------------
    # Separator glyphs
    # -------------------------------------------------------------------------

    def _font(self, size: int):
        font = self._fonts.get(size)
        if font is None:
            try:
                font = ImageFont.truetype(self.config.font_path, size)
            except OSError:
                logger.debug("Font %s not found, using default font", self.config.font_path)
                font = ImageFont.load_default(size=size)
            self._fonts[size] = font
        return font

    def _text_bounds(self, size: int) -> tuple[int, int, int, int]:
        return self._font(size).getbbox(self.config.separator)

    def _fit_font_size(self, height: int) -> int:
        """Largest font size whose rendered separator is at most ``height`` high."""
        low, high = 1, self.config.max_font_size
        while low < high:
            mid = (low + high + 1) // 2
            _, top, _, bottom = self._text_bounds(mid)
            if bottom - top <= height:
                low = mid
            else:
                high = mid - 1
        return low

    def separator_image(self, height: int) -> Image.Image:
        """
        Render the separator string, bottom aligned, into an image of the given height.

        The font size is chosen as large as fits the height.
        """
        height = max(1, height)
        size = self._fit_font_size(height)
        left, top, right, bottom = self._text_bounds(size)
        image = Image.new("L", (max(1, right - left + 1), height), WHITE)
        draw = ImageDraw.Draw(image)
        draw.text((-left, height - bottom), self.config.separator, font=self._font(size), fill=BLACK)
        return image

    # -------------------------------------------------------------------------
    # Raster helpers
    # -------------------------------------------------------------------------

    def pad(self, image: Image.Image) -> Image.Image:
        """Surround a raster with a white margin."""
        m = self.config.margin
        padded = Image.new("L", (image.width + 2 * m, image.height + 2 * m), WHITE)
        padded.paste(image.convert("L"), (m, m))
        return padded

    def prefix_image(self, image: Image.Image, dpi: int) -> tuple[Image.Image, int]:
        """
        Put the separator in front of a padded raster as a marker prefix.

        Args:
            image: Raster that already carries the synthetic margin.
            dpi: Resolution, determines the gap after the prefix.

        Returns:
            Tuple of (prefixed image, x offset of the original raster in it).
        """
        m = self.config.margin
        prefix = self.separator_image(image.height - 2 * m)
        gap = dpi // 30
        shift = prefix.width + gap + m
        prefixed = Image.new("L", (shift + image.width + m, image.height), WHITE)
        self._paste(prefixed, prefix, m, m)
        self._paste(prefixed, image, shift, 0)
        return prefixed, shift

    def shear(self, image: Image.Image, degrees: float | None = None) -> Image.Image:
        """
        Shear an image horizontally, shifting lower rows further right.

        This puts italic glyphs upright, which recognizers handle better.
        """
        if degrees is None:
            degrees = self.config.italic_shear_deg
        pixels = np.asarray(image.convert("L"), dtype=np.uint8)
        height, width = pixels.shape
        total = round(height * math.tan(math.radians(degrees)))
        if height == 0 or total == 0:
            return image.convert("L")
        sheared = np.full((height, width + total), WHITE, dtype=np.uint8)
        for r in range(height):
            offset = (total * r) // height
            sheared[r, offset : offset + width] = pixels[r]
        return Image.fromarray(sheared, mode="L")

    @staticmethod
    def _check_bounds(canvas: Image.Image, image: Image.Image, x: int, y: int) -> None:
        inside_w = max(0, min(canvas.width, x + image.width) - max(0, x))
        inside_h = max(0, min(canvas.height, y + image.height) - max(0, y))
        lost = image.width * image.height - inside_w * inside_h
        if lost:
            raise CompositionOverflow(
                f"{image.width}x{image.height} image at ({x},{y}) exceeds "
                f"{canvas.width}x{canvas.height} canvas, {lost} pixels dropped"
            )

    def _paste(self, canvas: Image.Image, image: Image.Image, x: int, y: int) -> None:
        """Paste onto the canvas; pixels outside it are dropped and logged."""
        try:
            self._check_bounds(canvas, image, x, y)
        except CompositionOverflow as e:
            logger.warning("Composition overflow: %s", e)
        canvas.paste(image, (x, y))

    # -------------------------------------------------------------------------
    # Line strips
    # -------------------------------------------------------------------------

    def compose_line(
        self,
        page: PageImage,
        words: Sequence[WordNode],
        geometry: LineGeometry,
    ) -> Image.Image:
        """
        Render one line of words into a strip separated by separator glyphs.

        Words keep their relative horizontal positions, with room for a
        separator before every word and one terminating the line.
        Italic words are sheared upright, and every word is lifted by
        its baseline shift.

        Args:
            page: The page raster the words are cut from.
            words: Words of the line, left to right.
            geometry: Baseline and shifts from the skew estimator.

        Returns:
            The grayscale strip image.
        """
        cfg = self.config
        m = cfg.margin
        boxes = [w.box for w in words]
        min_gap = page.dpi // 30
        word_gap = max([min_gap] + [b.left - a.right for a, b in zip(boxes, boxes[1:])])
        max_shear = round(geometry.height * math.tan(math.radians(cfg.italic_shear_deg)))
        indent = boxes[0].left

        baseline = geometry.baseline
        separator = self.separator_image(
            baseline + cfg.separator_down_push + min(m, cfg.separator_up_shot)
        )
        word_gap = min(word_gap, separator.width)
        separator_span = word_gap + separator.width + word_gap
        line_width = (boxes[-1].right - indent) + (len(words) + 1) * separator_span

        strip = Image.new("L", (line_width + 2 * m + max_shear, geometry.height + 2 * m), WHITE)
        if baseline + m < separator.height:
            baseline = separator.height - m
        separator_y = m + baseline + cfg.separator_down_push - separator.height

        for i, (word, box) in enumerate(zip(words, boxes)):
            word_left = (box.left - indent) + (i + 1) * separator_span + m
            self._paste(strip, separator, word_left - word_gap - separator.width, separator_y)

            image = page.crop(box)
            if image is None:
                continue
            if word.italic:
                image = self.shear(image)
            self._paste(strip, image, word_left, m + geometry.word_top(box, i))

        self._paste(strip, separator, strip.width - word_gap - separator.width, separator_y)
        return strip
