"""
Tests for configuration dataclasses and YAML loading.
"""

from pathlib import Path

import pytest

from ocrfuse.config import (
    CompositorConfig,
    FusionConfig,
    ReconcileConfig,
    RecognizerConfig,
)
from ocrfuse.exceptions import ConfigurationError


class TestRecognizerConfig:
    """Tests for recognizer settings."""

    def test_defaults(self):
        """Defaults target Tesseract with a 20 second ceiling."""
        config = RecognizerConfig()
        assert config.command == ("tesseract",)
        assert config.config_args == ("hocr",)
        assert config.timeout == 20.0
        assert config.tail == 2.0
        assert config.poll_interval == 0.1

    def test_normalized_types(self):
        """Lists become tuples and strings become paths."""
        config = RecognizerConfig(command=["tess", "--psm", "6"], cache_dir="/tmp/ocr")
        assert config.command == ("tess", "--psm", "6")
        assert config.cache_dir == Path("/tmp/ocr")

    @pytest.mark.parametrize("field", ["poll_interval", "timeout", "tail"])
    def test_non_positive_durations_rejected(self, field):
        """Durations must be positive."""
        with pytest.raises(ConfigurationError):
            RecognizerConfig(**{field: 0})

    def test_tail_longer_than_timeout_rejected(self):
        """The tail cannot exceed the ceiling."""
        with pytest.raises(ConfigurationError):
            RecognizerConfig(timeout=1.0, tail=2.0)

    def test_empty_command_rejected(self):
        """An executable is required."""
        with pytest.raises(ConfigurationError):
            RecognizerConfig(command=())


class TestCompositorConfig:
    """Tests for compositor settings."""

    def test_defaults(self):
        """Separator, margin and shear match the recognizer tuning."""
        config = CompositorConfig()
        assert config.separator == "XXX"
        assert config.margin == 3
        assert config.italic_shear_deg == 15.0

    def test_short_separator_rejected(self):
        """A one-character separator would be confused with text."""
        with pytest.raises(ConfigurationError):
            CompositorConfig(separator="X")

    def test_shear_range(self):
        """Shear angles must stay below 45 degrees."""
        with pytest.raises(ConfigurationError):
            CompositorConfig(italic_shear_deg=45)


class TestReconcileConfig:
    """Tests for reconciliation settings."""

    def test_min_word_gap(self):
        """The minimum word gap is a thirtieth of the resolution."""
        assert ReconcileConfig(dpi=300).min_word_gap == 10
        assert ReconcileConfig(dpi=600).min_word_gap == 20

    def test_low_dpi_rejected(self):
        """Resolutions below 30 DPI are rejected."""
        with pytest.raises(ConfigurationError):
            ReconcileConfig(dpi=10)


class TestFusionConfig:
    """Tests for the aggregate configuration."""

    def test_from_yaml(self, tmp_path):
        """Sections are read into their dataclasses; missing ones use defaults."""
        path = tmp_path / "ocrfuse.yaml"
        path.write_text(
            "recognizer:\n"
            "  command: [tesseract, --oem, '1']\n"
            "  timeout: 10\n"
            "reconcile:\n"
            "  dpi: 600\n"
            "  join_words: false\n",
            encoding="utf-8",
        )
        config = FusionConfig.from_yaml(path)
        assert config.recognizer.command == ("tesseract", "--oem", "1")
        assert config.recognizer.timeout == 10
        assert config.reconcile.dpi == 600
        assert not config.reconcile.join_words
        assert config.compositor == CompositorConfig()

    def test_empty_file(self, tmp_path):
        """An empty file gives the defaults."""
        path = tmp_path / "ocrfuse.yaml"
        path.write_text("", encoding="utf-8")
        assert FusionConfig.from_yaml(path) == FusionConfig()

    def test_unknown_section_rejected(self):
        """Typos in section names are reported."""
        with pytest.raises(ConfigurationError, match="recogniser"):
            FusionConfig.from_dict({"recogniser": {}})

    def test_unknown_key_rejected(self):
        """Typos in keys are reported."""
        with pytest.raises(ConfigurationError, match="timout"):
            FusionConfig.from_dict({"recognizer": {"timout": 5}})

    def test_invalid_value_rejected(self):
        """Section validation applies to loaded values."""
        with pytest.raises(ConfigurationError):
            FusionConfig.from_dict({"compositor": {"margin": -1}})

    def test_not_a_mapping(self, tmp_path):
        """The file must hold a mapping."""
        path = tmp_path / "ocrfuse.yaml"
        path.write_text("- recognizer\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            FusionConfig.from_yaml(path)
