"""
Configuration for OCRFuse.

All options have sensible defaults; the values mirror what works for
Tesseract on 300 DPI scans.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from ocrfuse.exceptions import ConfigurationError

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "ocrfuse"


@dataclass
class RecognizerConfig:
    """
    Configuration for the external recognizer subprocess.

    The recognizer is invoked as
    ``command... input_image output_base config_args...``.

    Example:
        >>> config = RecognizerConfig(command=("tesseract",), timeout=10.0)
    """

    # Invocation
    command: tuple[str, ...] = ("tesseract",)
    config_args: tuple[str, ...] = ("hocr",)  # word mode, markup result
    text_config_args: tuple[str, ...] = ()  # line mode, plain text result
    hocr_suffix: str = ".hocr"
    text_suffix: str = ".txt"
    image_format: str = "png"

    # Working directory shared by all invocations
    cache_dir: Path = DEFAULT_CACHE_DIR

    # Bounded wait (seconds)
    poll_interval: float = 0.1
    timeout: float = 20.0
    tail: float = 2.0  # remaining wait once a result file shows up
    kill_grace: float = 1.0

    def __post_init__(self):
        """Validate configuration."""
        self.command = tuple(self.command)
        self.config_args = tuple(self.config_args)
        self.text_config_args = tuple(self.text_config_args)
        self.cache_dir = Path(self.cache_dir)
        if not self.command:
            raise ConfigurationError("command must name the recognizer executable")
        for name in ("poll_interval", "timeout", "tail"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if self.tail > self.timeout:
            raise ConfigurationError(
                f"tail must not exceed timeout, got tail={self.tail}, timeout={self.timeout}"
            )
        if self.kill_grace < 0:
            raise ConfigurationError(f"kill_grace must be >= 0, got {self.kill_grace}")


@dataclass
class CompositorConfig:
    """Configuration for synthetic strip images fed to the recognizer."""

    margin: int = 3  # white border around every synthetic raster
    separator: str = "XXX"
    separator_up_shot: int = 1
    separator_down_push: int = 1
    italic_shear_deg: float = 15.0
    font_path: str = "DejaVuSans-Bold.ttf"
    max_font_size: int = 200

    def __post_init__(self):
        """Validate configuration."""
        if self.margin < 0:
            raise ConfigurationError(f"margin must be >= 0, got {self.margin}")
        if len(self.separator) < 2:
            raise ConfigurationError(
                f"separator needs at least 2 characters, got {self.separator!r}"
            )
        if not 0 <= self.italic_shear_deg < 45:
            raise ConfigurationError(
                f"italic_shear_deg must be in [0, 45), got {self.italic_shear_deg}"
            )
        if self.max_font_size < 1:
            raise ConfigurationError(f"max_font_size must be >= 1, got {self.max_font_size}")


@dataclass
class ReconcileConfig:
    """Configuration for word reconciliation."""

    dpi: int = 300
    apply_corrections: bool = True
    join_words: bool = True  # join words split apart at dashes and join characters

    def __post_init__(self):
        """Validate configuration."""
        if self.dpi < 30:
            raise ConfigurationError(f"dpi must be >= 30, got {self.dpi}")

    @property
    def min_word_gap(self) -> int:
        """Minimum gap between words in a composited line, in pixels."""
        return self.dpi // 30


@dataclass
class FusionConfig:
    """
    Top-level configuration bundling all components.

    Example:
        >>> config = FusionConfig.from_yaml("ocrfuse.yaml")
        >>> config.recognizer.timeout
        20.0
    """

    recognizer: RecognizerConfig = field(default_factory=RecognizerConfig)
    compositor: CompositorConfig = field(default_factory=CompositorConfig)
    reconcile: ReconcileConfig = field(default_factory=ReconcileConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FusionConfig:
        """
        Build a configuration from a nested dictionary.

        Unknown sections or keys raise ConfigurationError.
        """
        sections = {
            "recognizer": RecognizerConfig,
            "compositor": CompositorConfig,
            "reconcile": ReconcileConfig,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {sorted(unknown)}")

        kwargs = {}
        for name, section_cls in sections.items():
            values = data.get(name) or {}
            allowed = {f.name for f in fields(section_cls)}
            bad = set(values) - allowed
            if bad:
                raise ConfigurationError(f"Unknown keys in section {name!r}: {sorted(bad)}")
            kwargs[name] = section_cls(**values)
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str | Path) -> FusionConfig:
        """
        Load configuration from a YAML file.

        Args:
            path: YAML file with optional ``recognizer``, ``compositor``
                and ``reconcile`` sections.

        Returns:
            The parsed configuration.

        Raises:
            ConfigurationError: If the file is not a mapping or has unknown keys.
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
        return cls.from_dict(data)
