"""
OCRFuse: Fuse external OCR output with structural layout analysis.

An external recognizer (Tesseract by default) finds text but misses
words; a recognizer-free layout pass finds every word box but no text.
OCRFuse merges both into one corrected set of positioned words.

Example:
    >>> import ocrfuse
    >>> recognizer = ocrfuse.Recognizer()
    >>> reconciler = ocrfuse.Reconciler(recognizer, ocrfuse.NodeLayoutAnalyzer())
    >>> stats = reconciler.reconcile_page(page)
    >>> [w.text for w in page.words]
    ['Chapter', '1']

    >>> # Words that could not be resolved are marked, not dropped
    >>> len(page.missing_words)
    0
"""

from ocrfuse.config import (
    CompositorConfig,
    FusionConfig,
    ReconcileConfig,
    RecognizerConfig,
)
from ocrfuse.correction import (
    DEFAULT_CORRECTIONS,
    CorrectionConfig,
    CorrectionResult,
    CorrectionRule,
    TextCorrectionEngine,
)
from ocrfuse.exceptions import (
    CompositionOverflow,
    ConfigurationError,
    GeometryMismatch,
    OCRFuseError,
    RecognitionEmptyResult,
    RecognitionError,
    RecognitionIOError,
    RecognitionTimeout,
    RecognizerLaunchError,
)
from ocrfuse.geometry import BoundingBox, compare_reading_order, reading_order_key
from ocrfuse.imaging import Compositor, LineGeometry, PageImage
from ocrfuse.layout import (
    LayoutAnalyzer,
    NodeLayoutAnalyzer,
    StaticLayoutAnalyzer,
    analyzer_from_nodes,
)
from ocrfuse.models import (
    BlockNode,
    LineNode,
    Page,
    RecognizedWord,
    SlopeClass,
    WordNode,
)
from ocrfuse.recognizer import ProcessResult, Recognizer, RecognizerProcess
from ocrfuse.reconcile import ReconcileStats, Reconciler

__version__ = "0.1.0"
__all__ = [
    # Main API
    "Reconciler",
    "ReconcileStats",
    "Recognizer",
    "RecognizerProcess",
    "ProcessResult",
    "TextCorrectionEngine",
    # Configuration
    "FusionConfig",
    "RecognizerConfig",
    "CompositorConfig",
    "ReconcileConfig",
    "CorrectionConfig",
    "CorrectionRule",
    "CorrectionResult",
    "DEFAULT_CORRECTIONS",
    # Geometry
    "BoundingBox",
    "compare_reading_order",
    "reading_order_key",
    # Page structure
    "Page",
    "BlockNode",
    "LineNode",
    "WordNode",
    "RecognizedWord",
    "SlopeClass",
    # Imaging
    "PageImage",
    "Compositor",
    "LineGeometry",
    # Layout
    "LayoutAnalyzer",
    "StaticLayoutAnalyzer",
    "NodeLayoutAnalyzer",
    "analyzer_from_nodes",
    # Exceptions
    "OCRFuseError",
    "RecognitionError",
    "RecognitionTimeout",
    "RecognitionIOError",
    "RecognitionEmptyResult",
    "RecognizerLaunchError",
    "GeometryMismatch",
    "CompositionOverflow",
    "ConfigurationError",
]
