"""
Imaging support: page rasters, baseline estimation, and strip composition.
"""

from ocrfuse.imaging.baseline import (
    LineGeometry,
    classify_slope,
    estimate_line,
    find_baseline,
)
from ocrfuse.imaging.compositor import Compositor
from ocrfuse.imaging.page import DEFAULT_DPI, PageImage

__all__ = [
    "PageImage",
    "DEFAULT_DPI",
    "LineGeometry",
    "classify_slope",
    "estimate_line",
    "find_baseline",
    "Compositor",
]
