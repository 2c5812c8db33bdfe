"""
Tests for the context-sensitive text correction engine.
"""

import dataclasses
import re

import pytest

from ocrfuse.correction import (
    DEFAULT_CORRECTIONS,
    DEFAULT_RULES,
    CorrectionConfig,
    CorrectionRule,
    TextCorrectionEngine,
)
from ocrfuse.exceptions import ConfigurationError


@pytest.fixture(scope="module")
def engine():
    """A correction engine with the default rules."""
    return TextCorrectionEngine(DEFAULT_CORRECTIONS)


# Recognizer output and what it should read
CORRECTIONS = [
    ("3I°48E).", "31°48E)."),
    ("[0.l84];", "[0.184];"),
    ("Entomol0gY,", "Entomology,"),
    ("AGOST1", "AGOSTI"),
    ("N0RTH", "NORTH"),
    ("20,viii.20()3", "20.viii.2003"),
    ("Fr,", "Fr."),
    ("12~15", "12-15"),
    ("north~west", "north-west"),
    ("ofthe", "of the"),
    ("tothe", "to the"),
]

UNCHANGED = ["M,", "Page", "1984", "MacCallum", "DellaTorre", "x", "", "I", "0"]


class TestTextCorrectionEngine:
    """Tests for the default correction chain."""

    @pytest.mark.parametrize("raw,expected", CORRECTIONS)
    def test_corrections(self, engine, raw, expected):
        """Known recognizer confusions are corrected in context."""
        result = engine.correct(raw)
        assert result.corrected_text == expected
        assert result.original_text == raw
        assert result.was_modified

    @pytest.mark.parametrize("token", UNCHANGED)
    def test_left_alone(self, engine, token):
        """Tokens without a matching context stay unchanged."""
        result = engine.correct(token)
        assert result.corrected_text == token
        assert not result.was_modified
        assert result.rules_applied == []

    @pytest.mark.parametrize("token", ["I", "0", "l", "O", "]", ","])
    def test_single_characters_never_changed(self, engine, token):
        """Tokens shorter than two characters give no context."""
        assert engine.correct(token).corrected_text == token

    @pytest.mark.parametrize("raw", [raw for raw, _ in CORRECTIONS])
    def test_fixed_point(self, engine, raw):
        """Correcting a corrected token changes nothing."""
        once = engine.correct(raw).corrected_text
        assert engine.correct(once).corrected_text == once

    def test_rules_reported(self, engine):
        """The result names the rules that fired."""
        assert engine.correct("3I°48E).").rules_applied == ["digits"]
        assert engine.correct("ofthe").rules_applied == ["whole-token"]

    def test_name_prefix_guarded(self):
        """The prefix guard keeps a rule off name prefixes such as Mac."""
        guarded = CorrectionRule.create("lower", r"[a-z]+[C]", {"C": "c"}, prefix_guard=True)
        unguarded = CorrectionRule.create("lower", r"[a-z]+[C]", {"C": "c"})
        assert guarded.apply("MacCallum") == "MacCallum"
        assert unguarded.apply("MacCallum") == "Maccallum"
        assert guarded.apply("MocCa") == "Mocca"

    def test_replacement_may_delete(self):
        """An empty replacement deletes the character."""
        rule = CorrectionRule.create("drop", r"[0-9]\(\)[0-9]", {"(": "0", ")": ""})
        assert rule.apply("2()3") == "203"

    def test_overlapping_matches(self):
        """Substitution repeats until overlapping matches are all handled."""
        rule = DEFAULT_RULES[0]
        assert rule.apply("1I1I1") == "11111"

    def test_correct_all(self, engine):
        """Batches are corrected token by token."""
        results = engine.correct_all(["N0RTH", "ok"])
        assert [r.corrected_text for r in results] == ["NORTH", "ok"]

    def test_join_pair_characters(self, engine):
        """The default join character is the digit one."""
        assert engine.join_pair_characters == frozenset({"1"})


class TestCorrectionConfig:
    """Tests for the immutable rule set and its YAML loading."""

    def test_defaults_immutable(self):
        """The default configuration cannot be modified."""
        with pytest.raises(TypeError):
            DEFAULT_CORRECTIONS.whole_token["tbe"] = "the"
        with pytest.raises(AttributeError):
            DEFAULT_CORRECTIONS.rules = ()

    def test_field_defaults_hashable(self):
        """Field defaults are hashable; mapping defaults come from a factory."""
        for f in dataclasses.fields(CorrectionConfig):
            if f.default is not dataclasses.MISSING:
                assert type(f.default).__hash__ is not None, f.name
        config = CorrectionConfig()
        assert dict(config.whole_token) == {
            "ofthe": "of the",
            "ofa": "of a",
            "onthe": "on the",
            "tothe": "to the",
        }
        assert config.whole_token is not CorrectionConfig().whole_token

    def test_rule_order(self):
        """Default rules are registered in a fixed order."""
        names = [r.name for r in DEFAULT_RULES]
        assert names[0] == "digits"
        assert names[-1] == "capital-i"
        assert len(names) == len(set(names)) == 11

    def test_multi_character_key_rejected(self):
        """Replacement keys are single characters."""
        with pytest.raises(ConfigurationError):
            CorrectionRule("bad", re.compile("ab"), {"ab": "c"})

    def test_invalid_pattern_rejected(self):
        """Patterns that do not compile are configuration errors."""
        with pytest.raises(ConfigurationError):
            CorrectionRule.create("bad", "[unclosed", {"a": "b"})

    def test_from_yaml_extends_defaults(self, tmp_path):
        """Rules and entries from YAML are added after the defaults."""
        path = tmp_path / "corrections.yaml"
        path.write_text(
            "rules:\n"
            "  - name: rn-to-m\n"
            "    pattern: '[a-z]rn[a-z]'\n"
            "    replacements: {r: '', n: m}\n"
            "whole_token:\n"
            "  tbe: the\n"
            "join_pair_characters: ['l']\n",
            encoding="utf-8",
        )
        config = CorrectionConfig.from_yaml(path)
        assert len(config.rules) == len(DEFAULT_RULES) + 1
        assert config.rules[-1].name == "rn-to-m"
        assert config.whole_token["tbe"] == "the"
        assert config.whole_token["ofthe"] == "of the"
        assert config.join_pair_characters == frozenset({"1", "l"})

        engine = TextCorrectionEngine(config)
        assert engine.correct("tbe").corrected_text == "the"
        assert engine.correct("rnorning").corrected_text == "rnoming"

    def test_from_yaml_replaces_defaults(self, tmp_path):
        """replace_defaults drops the built-in rules."""
        path = tmp_path / "corrections.yaml"
        path.write_text(
            "replace_defaults: true\nwhole_token:\n  tbe: the\n",
            encoding="utf-8",
        )
        config = CorrectionConfig.from_yaml(path)
        assert config.rules == ()
        assert dict(config.whole_token) == {"tbe": "the"}
        assert TextCorrectionEngine(config).correct("3I°48E).").corrected_text == "3I°48E)."

    def test_from_yaml_malformed_rule(self, tmp_path):
        """A rule without pattern is reported."""
        path = tmp_path / "corrections.yaml"
        path.write_text("rules:\n  - name: broken\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            CorrectionConfig.from_yaml(path)

    def test_from_yaml_not_a_mapping(self, tmp_path):
        """The file must hold a mapping."""
        path = tmp_path / "corrections.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            CorrectionConfig.from_yaml(path)
