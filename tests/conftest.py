"""
Pytest configuration and fixtures for OCRFuse tests.
"""

import json
import sys
from pathlib import Path

import pytest
from PIL import Image

from ocrfuse.config import RecognizerConfig
from ocrfuse.imaging.page import DEFAULT_DPI, PageImage
from ocrfuse.recognizer.engine import Recognizer

# Stand-in for the tesseract executable. Invoked as
# ``fake_tesseract.py image output_base [args...]``, it looks up what to
# do in the JSON plan next to it: by output name, then "p" for marker
# prefix retries, then "default".
FAKE_RECOGNIZER_SCRIPT = """\
import json
import sys
import time
from pathlib import Path

image, base, *args = sys.argv[1:]
plan = json.loads(Path(__file__).with_suffix(".json").read_text(encoding="utf-8"))
name = Path(base).name
step = plan.get(name) or (plan.get("p") if name.endswith(".p") else None) or plan.get("default") or {}
if step.get("hocr") is not None:
    Path(base + ".hocr").write_text(step["hocr"], encoding="utf-8")
if step.get("text") is not None:
    Path(base + ".txt").write_text(step["text"], encoding="utf-8")
time.sleep(step.get("sleep", 0))
sys.exit(step.get("exit", 0))
"""


def hocr_document(words) -> str:
    """Build hOCR markup from (text, (x0, y0, x1, y1)) pairs."""
    spans = "\n".join(
        f"<span class='ocrx_word' id='word_1_{i}' title='bbox {x0} {y0} {x1} {y1}; x_wconf 90'>"
        f"{text}</span>"
        for i, (text, (x0, y0, x1, y1)) in enumerate(words)
    )
    return (
        "<?xml version='1.0' encoding='UTF-8'?>\n"
        "<html><body><div class='ocr_page'>"
        f"<span class='ocr_line' title='bbox 0 0 500 50'>{spans}</span>"
        "</div></body></html>"
    )


@pytest.fixture
def hocr():
    """Return the hOCR markup builder."""
    return hocr_document


@pytest.fixture
def cache_dir(tmp_path) -> Path:
    """Working directory for recognizer invocations."""
    return tmp_path / "cache"


@pytest.fixture
def fake_recognizer(tmp_path, cache_dir):
    """
    Return a factory for RecognizerConfigs running the fake recognizer.

    The factory takes the plan (output name -> step) and config overrides.
    """
    script = tmp_path / "fake_tesseract.py"
    script.write_text(FAKE_RECOGNIZER_SCRIPT, encoding="utf-8")

    def configure(plan: dict, **overrides) -> RecognizerConfig:
        script.with_suffix(".json").write_text(json.dumps(plan), encoding="utf-8")
        options = {
            "command": (sys.executable, str(script)),
            "cache_dir": cache_dir,
            "poll_interval": 0.02,
            "timeout": 10.0,
            "tail": 0.5,
            "kill_grace": 1.0,
        }
        options.update(overrides)
        return RecognizerConfig(**options)

    return configure


class ScriptedRecognizer(Recognizer):
    """
    Recognizer answering from canned results instead of a subprocess.

    Attributes:
        block_words: Words returned for block passes (local coordinates).
        word_results: Words returned for missed-word passes, keyed by
            the (width, height) of the word image; an exception is raised.
        line_tokens: Tokens returned for composited line strips.
        calls: Basenames of all invocations, in order.
    """

    def __init__(self, cache_dir, block_words=(), word_results=None, line_tokens=()):
        super().__init__(RecognizerConfig(cache_dir=cache_dir))
        self.block_words = block_words
        self.word_results = word_results or {}
        self.line_tokens = line_tokens
        self.calls = []

    def recognize_words(self, image, dpi=DEFAULT_DPI, basename=None):
        basename = basename or self.next_basename("block")
        self.calls.append(basename)
        if basename.startswith("word."):
            result = self.word_results.get(image.size, [])
        else:
            result = self.block_words
        if isinstance(result, Exception):
            raise result
        return list(result)

    def recognize_separated(self, strip, basename=None):
        basename = basename or self.next_basename("line")
        self.calls.append(basename)
        if isinstance(self.line_tokens, Exception):
            raise self.line_tokens
        return list(self.line_tokens)


@pytest.fixture
def scripted_recognizer(cache_dir):
    """Return a factory for ScriptedRecognizers sharing the test cache dir."""

    def create(**kwargs) -> ScriptedRecognizer:
        return ScriptedRecognizer(cache_dir, **kwargs)

    return create


@pytest.fixture
def blank_page_image() -> PageImage:
    """A white 400x200 page at 300 DPI."""
    return PageImage(Image.new("L", (400, 200), 255), dpi=300)
