"""
Exception classes for OCRFuse.

All OCRFuse exceptions inherit from OCRFuseError,
making it easy to catch all library errors.

Only RecognizerLaunchError is fatal for a whole page. Every other
error is local to one block, line, or word: it is logged and the
affected words are marked missing.

Example:
    >>> try:
    ...     reconciler.reconcile_page(page)
    ... except ocrfuse.RecognizerLaunchError as e:
    ...     print(f"Recognizer not installed: {e}")
"""


class OCRFuseError(Exception):
    """
    Base exception for all OCRFuse errors.

    Catch this to handle any OCRFuse-specific error.
    """

    pass


class RecognitionError(OCRFuseError):
    """Base class for failures of a single recognizer invocation."""

    pass


class RecognitionTimeout(RecognitionError):
    """
    Raised when the recognizer subprocess exceeded its bounded wait.

    Recovered as an empty result; the region is eligible for the
    marker-prefix retry.
    """

    pass


class RecognitionIOError(RecognitionError):
    """
    Raised when a recognizer result file is unreadable or malformed.

    Fatal only for the sub-image that produced it. The affected words
    stay unassigned and are marked missing.
    """

    pass


class RecognitionEmptyResult(RecognitionError):
    """
    Signal that the recognizer produced no words for a region.

    Not an error: this triggers the marker-prefix retry, which tends to
    rescue number-only regions.
    """

    pass


class RecognizerLaunchError(RecognitionError):
    """
    Raised when the recognizer executable cannot be started at all.

    This is the only failure surfaced for the whole page.
    """

    pass


class GeometryMismatch(OCRFuseError, ValueError):
    """
    Raised for invalid or degenerate bounding boxes.

    Example:
        >>> BoundingBox(left=10, right=5, top=0, bottom=10)
        GeometryMismatch: left (10) must not exceed right (5)
    """

    pass


class CompositionOverflow(OCRFuseError):
    """
    Raised when a paste falls outside the composition canvas.

    The compositor catches and logs it; composition continues.
    """

    pass


class ConfigurationError(OCRFuseError, ValueError):
    """
    Raised for invalid configuration.

    Example:
        >>> RecognizerConfig(timeout=0)
        ConfigurationError: timeout must be positive, got 0
    """

    pass
