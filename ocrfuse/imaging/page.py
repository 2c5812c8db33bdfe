"""
Page rasters in page-pixel space.

A PageImage wraps a grayscale PIL image together with its resolution
and the page coordinates of its top left pixel (scans are often
cropped to their content area before analysis).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image

from ocrfuse.geometry import BoundingBox

if TYPE_CHECKING:
    import fitz

logger = logging.getLogger(__name__)

DEFAULT_DPI = 300


@dataclass
class PageImage:
    """
    A page raster.

    Attributes:
        image: Grayscale ("L" mode) page image.
        dpi: Resolution of the image.
        left: Page column of the image's first pixel column.
        top: Page row of the image's first pixel row.
    """

    image: Image.Image
    dpi: int = DEFAULT_DPI
    left: int = 0
    top: int = 0

    def __post_init__(self) -> None:
        if self.image.mode != "L":
            self.image = self.image.convert("L")

    @property
    def box(self) -> BoundingBox:
        """Page coordinates covered by the image."""
        return BoundingBox(
            self.left, self.left + self.image.width, self.top, self.top + self.image.height
        )

    def crop(self, box: BoundingBox) -> Image.Image | None:
        """
        Cut the image part delimited by a page-coordinate box.

        Boxes reaching past the image edge are clamped. Returns None if
        nothing of the box lies within the image.
        """
        left = max(0, box.left - self.left)
        top = max(0, box.top - self.top)
        right = min(self.image.width, box.right - self.left)
        bottom = min(self.image.height, box.bottom - self.top)
        if right <= left or bottom <= top:
            logger.warning("Box %s lies outside the %dx%d page image", box, *self.image.size)
            return None
        if (right - left, bottom - top) != (box.width, box.height):
            logger.debug("Clamped box %s to the page image", box)
        return self.image.crop((left, top, right, bottom))

    def gray_array(self, box: BoundingBox | None = None) -> np.ndarray:
        """Brightness values (rows x columns, 0 = black) of the page or a part of it."""
        image = self.image if box is None else self.crop(box)
        if image is None:
            return np.zeros((0, 0), dtype=np.uint8)
        return np.asarray(image, dtype=np.uint8)

    @classmethod
    def from_file(cls, path: str | Path, dpi: int = DEFAULT_DPI) -> PageImage:
        with Image.open(path) as image:
            return cls(image.convert("L"), dpi=dpi)

    @classmethod
    def from_pdf_page(cls, page: fitz.Page, dpi: int = DEFAULT_DPI) -> PageImage:
        """
        Render a PDF page to a page image.

        Args:
            page: PyMuPDF page object.
            dpi: Rendering resolution.

        Returns:
            Grayscale PageImage of the rendered page.
        """
        import fitz as fitz_module

        scale = dpi / 72.0  # PDF points to pixels
        pix = page.get_pixmap(matrix=fitz_module.Matrix(scale, scale), colorspace=fitz_module.csGRAY)
        image = Image.frombytes("L", (pix.width, pix.height), pix.samples)
        return cls(image, dpi=dpi)
