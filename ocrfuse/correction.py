"""
Context-sensitive correction of recognizer tokens.

Recognizers confuse glyphs that look alike: 'l', 'I' and '1', 'O' and
'0', lower and upper case 'c', 'o', 's', and so on. Which reading is
right depends on the neighbors: inside a digit run an 'I' is a '1',
inside a lower-case word a '0' is an 'o'.

Each rule pairs a regular expression describing such a context with a
single-character replacement map applied to every character of each
match. Rules run in fixed registration order. A separate dictionary of
whole-token corrections (merged prepositions like "ofthe") is checked
first.

Example:
    >>> engine = TextCorrectionEngine()
    >>> engine.correct("3I°48E).").corrected_text
    '31°48E).'
    >>> engine.correct("M,").was_modified
    False
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from ocrfuse.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Tokens shorter than this give no context for any rule
MIN_TOKEN_LENGTH = 2

# Name prefixes followed by a capital, as in "MacCallum" or "DellaTorre"
PREFIX_GUARD = re.compile(r"\A(Mac|Mc|Della|Delle)[A-Z]")


# =============================================================================
# RULES
# =============================================================================


@dataclass(frozen=True)
class CorrectionRule:
    """
    One context-guarded character substitution.

    Attributes:
        name: Identifier used in logs and results.
        pattern: Context the substitution applies in.
        replacements: Matched character -> replacement (may be empty).
        prefix_guard: Skip a leading name prefix such as "Mac" first.
    """

    name: str
    pattern: re.Pattern
    replacements: Mapping[str, str]
    prefix_guard: bool = False

    def __post_init__(self) -> None:
        for key in self.replacements:
            if len(key) != 1:
                raise ConfigurationError(
                    f"Rule {self.name!r}: replacement keys must be single characters, got {key!r}"
                )
        object.__setattr__(self, "replacements", MappingProxyType(dict(self.replacements)))

    @classmethod
    def create(
        cls,
        name: str,
        pattern: str,
        replacements: Mapping[str, str],
        prefix_guard: bool = False,
    ) -> CorrectionRule:
        try:
            compiled = re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(f"Rule {name!r}: invalid pattern {pattern!r}: {e}") from e
        return cls(name, compiled, replacements, prefix_guard)

    def _replace(self, match: re.Match) -> str:
        return "".join(self.replacements.get(c, c) for c in match.group())

    def _substitute(self, token: str) -> str:
        if len(token) < MIN_TOKEN_LENGTH:
            return token
        # matches may overlap, so substitute until nothing changes
        for _ in range(len(token) + 1):
            corrected = self.pattern.sub(self._replace, token)
            if corrected == token:
                break
            token = corrected
        return token

    def apply(self, token: str) -> str:
        """Apply the rule to one token, returning the (possibly unchanged) token."""
        if len(token) < MIN_TOKEN_LENGTH:
            return token
        if self.prefix_guard:
            match = PREFIX_GUARD.match(token)
            if match:
                end = match.end(1)
                return token[:end] + self._substitute(token[end:])
        return self._substitute(token)


DEFAULT_RULES: tuple[CorrectionRule, ...] = (
    # '1' and '0' in number blocks, possibly with degree signs and the like
    CorrectionRule.create(
        "digits",
        r"([0-9][^a-zA-Z\s\[]?)[\]IlOo]([^a-zA-Z\s\[]?[0-9])",
        {"I": "1", "l": "1", "]": "1", "O": "0", "o": "0"},
    ),
    # 'o' and 'l' in lower-case words
    CorrectionRule.create(
        "lower-word-digits",
        r"[a-z]+[0I1]+([^A-Z]+|\Z)",
        {"0": "o", "I": "l", "1": "l"},
        prefix_guard=True,
    ),
    # 'O', 'B' and 'I' in capital words
    CorrectionRule.create(
        "capital-word-digits",
        r"[A-Z]+[081l]+[A-Z]+",
        {"0": "O", "8": "B", "1": "I", "l": "I"},
    ),
    # lower-case letters read as their capital counterparts
    CorrectionRule.create(
        "lower-case-block",
        r"[a-z]+[CKOSVWXYZ]([^A-Z]|\Z)",
        {c: c.lower() for c in "CKOSVWXYZ"},
        prefix_guard=True,
    ),
    # capital letters read as their lower-case counterparts
    CorrectionRule.create(
        "capital-block",
        r"[A-Z][ckosvwxyz][A-Z]",
        {c: c.upper() for c in "ckosvwxyz"},
    ),
    # dots in un-spaced dates such as 20.viii.2003
    CorrectionRule.create("date-dots", r"[0-9],[vViIxX]", {",": "."}),
    # dots of abbreviations such as "Fr."
    CorrectionRule.create("abbreviation-dots", r"\A[B-HJ-Z][a-z],\Z", {",": "."}),
    # '0' read as a pair of parentheses
    CorrectionRule.create("parenthesis-zero", r"[0-9]\(\)[0-9]", {"(": "0", ")": ""}),
    # dashes in number blocks and in words
    CorrectionRule.create("number-dashes", r"[0-9]+~[0-9]+", {"~": "-"}),
    CorrectionRule.create("word-dashes", r"[A-Za-z]~[A-Za-z]", {"~": "-"}),
    # capital 'I' in capital words
    CorrectionRule.create(
        "capital-i",
        r"([A-Z]{2,}[1l](\Z|[^a-z]))|([A-Z]+[1l][A-Z]+)",
        {"1": "I", "l": "I"},
    ),
)

DEFAULT_WHOLE_TOKEN: Mapping[str, str] = MappingProxyType(
    {
        "ofthe": "of the",
        "ofa": "of a",
        "onthe": "on the",
        "tothe": "to the",
    }
)

# Characters that, when ending one word and starting the next, indicate
# a single word torn apart by the layout pass
DEFAULT_JOIN_PAIR_CHARACTERS = frozenset({"1"})


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class CorrectionConfig:
    """
    Immutable rule set, built once and shared by reference.

    Example:
        >>> config = CorrectionConfig.from_yaml("corrections.yaml")
        >>> engine = TextCorrectionEngine(config)
    """

    rules: tuple[CorrectionRule, ...] = DEFAULT_RULES
    whole_token: Mapping[str, str] = field(default_factory=lambda: DEFAULT_WHOLE_TOKEN)
    join_pair_characters: frozenset[str] = DEFAULT_JOIN_PAIR_CHARACTERS

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))
        object.__setattr__(self, "whole_token", MappingProxyType(dict(self.whole_token)))
        object.__setattr__(self, "join_pair_characters", frozenset(self.join_pair_characters))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CorrectionConfig:
        """
        Build a rule set from a dictionary.

        Entries extend the defaults unless ``replace_defaults`` is true.
        """
        replace_defaults = bool(data.get("replace_defaults", False))
        rules: list[CorrectionRule] = [] if replace_defaults else list(DEFAULT_RULES)
        whole: dict[str, str] = {} if replace_defaults else dict(DEFAULT_WHOLE_TOKEN)
        joins: set[str] = set() if replace_defaults else set(DEFAULT_JOIN_PAIR_CHARACTERS)

        for i, entry in enumerate(data.get("rules") or []):
            try:
                rules.append(
                    CorrectionRule.create(
                        entry.get("name", f"rule-{i}"),
                        entry["pattern"],
                        entry["replacements"],
                        bool(entry.get("prefix_guard", False)),
                    )
                )
            except (KeyError, TypeError, AttributeError) as e:
                raise ConfigurationError(f"Malformed correction rule #{i}: {entry!r}") from e
        whole.update({str(k): str(v) for k, v in (data.get("whole_token") or {}).items()})
        joins.update(str(c) for c in data.get("join_pair_characters") or [])
        return cls(tuple(rules), whole, frozenset(joins))

    @classmethod
    def from_yaml(cls, path: str | Path) -> CorrectionConfig:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Correction file {path} must contain a mapping")
        return cls.from_dict(data)


DEFAULT_CORRECTIONS = CorrectionConfig()


# =============================================================================
# ENGINE
# =============================================================================


@dataclass
class CorrectionResult:
    """Result of correcting one token."""

    original_text: str
    corrected_text: str
    rules_applied: list[str] = field(default_factory=list)

    @property
    def was_modified(self) -> bool:
        """Whether any changes were made."""
        return self.original_text != self.corrected_text


class TextCorrectionEngine:
    """
    Applies whole-token and pattern corrections to recognizer tokens.

    The rule chain is repeated until the token no longer changes, so
    correcting an already-corrected token is a no-op.
    """

    MAX_PASSES = 5

    def __init__(self, config: CorrectionConfig = DEFAULT_CORRECTIONS):
        self.config = config

    @property
    def join_pair_characters(self) -> frozenset[str]:
        return self.config.join_pair_characters

    def correct(self, token: str) -> CorrectionResult:
        """
        Correct a single token.

        Args:
            token: Raw recognizer token.

        Returns:
            CorrectionResult; the original text is kept as provenance.
        """
        if len(token) < MIN_TOKEN_LENGTH:
            return CorrectionResult(token, token)

        applied: list[str] = []
        text = token
        whole = self.config.whole_token.get(text)
        if whole is not None:
            applied.append("whole-token")
            text = whole

        for _ in range(self.MAX_PASSES):
            before = text
            for rule in self.config.rules:
                corrected = rule.apply(text)
                if corrected != text:
                    applied.append(rule.name)
                    text = corrected
            if text == before:
                break

        if text != token:
            logger.debug("Corrected %r to %r (%s)", token, text, ", ".join(applied))
        return CorrectionResult(token, text, applied)

    def correct_all(self, tokens: Iterable[str]) -> list[CorrectionResult]:
        return [self.correct(t) for t in tokens]
