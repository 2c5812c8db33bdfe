"""
External recognizer integration.

- RecognizerProcess: supervised subprocess with a bounded wait
- results: hOCR and separator-delimited plain-text parsing
- Recognizer: raster in, positioned words or text out, with the
  marker-prefix retry for empty regions
"""

from ocrfuse.recognizer.engine import Recognizer, strip_marker
from ocrfuse.recognizer.process import ProcessResult, RecognizerProcess
from ocrfuse.recognizer.results import (
    parse_hocr,
    parse_text,
    read_result,
    split_separated,
)

__all__ = [
    "Recognizer",
    "RecognizerProcess",
    "ProcessResult",
    "strip_marker",
    "parse_hocr",
    "parse_text",
    "read_result",
    "split_separated",
]
