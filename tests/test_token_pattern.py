"""
Tests for the Token Pattern module.

Tests compilation, group validation and in-place substitution of tokens.
"""

import os
import re
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from protected_config.config.token_pattern import TokenPattern
from protected_config.constants import Patterns
from protected_config.exceptions import ConfigurationError


def _upper_payload(match):
    return match.group("payload").upper()


# ===========================================================================
# Construction Tests
# ===========================================================================

class TestTokenPatternConstruction:
    """Tests for compiling token patterns."""

    def test_default_pattern(self):
        """No pattern should compile the Protected:{...} syntax."""
        pattern = TokenPattern()
        assert pattern.pattern == Patterns.PROTECTED
        assert pattern.has_payload_group
        assert pattern.has_qualifier_group

    def test_empty_string_uses_default(self):
        """An empty pattern string should fall back to the default."""
        assert TokenPattern("") == TokenPattern()

    def test_custom_pattern_with_payload(self):
        """A custom pattern only needs the payload group."""
        pattern = TokenPattern(r"ENC\[(?P<payload>[^\]]+)\]")
        assert pattern.has_payload_group
        assert not pattern.has_qualifier_group

    def test_compiled_pattern_accepted(self):
        """A precompiled regex should be accepted as is."""
        regex = re.compile(r"S\((?P<payload>.+?)\)")
        assert TokenPattern(regex).regex is regex

    def test_missing_payload_group_fails(self):
        """A pattern without the payload group should fail."""
        with pytest.raises(ConfigurationError):
            TokenPattern(r"Protected:\{(?P<data>.+?)\}")

    def test_missing_payload_group_fails_with_qualifier(self):
        """Other groups do not make up for a missing payload group."""
        with pytest.raises(ConfigurationError):
            TokenPattern(r"Protected:\{(?P<purpose_qualifier>.+?)\}:\{(.+?)\}")

    def test_invalid_regex_fails(self):
        """A regex that does not compile should raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            TokenPattern(r"Protected:{(?P<payload>.+?")

    def test_configuration_error_is_value_error(self):
        """ConfigurationError should be catchable as ValueError."""
        with pytest.raises(ValueError):
            TokenPattern(r"nothing")

    def test_immutable(self):
        """Token patterns cannot be modified after construction."""
        pattern = TokenPattern()
        with pytest.raises(AttributeError):
            pattern._regex = re.compile("x")


# ===========================================================================
# Matching Tests
# ===========================================================================

class TestTokenPatternMatching:
    """Tests for the default token syntax."""

    def test_payload_only(self):
        """Protected:{x} should capture the payload and no qualifier."""
        pattern = TokenPattern()
        match = next(pattern.finditer("Protected:{AQAAANCMnd8=}"))
        assert match.group("payload") == "AQAAANCMnd8="
        assert pattern.qualifier_of(match) is None

    def test_qualifier_and_payload(self):
        """Protected:{q}:{x} should capture both groups."""
        pattern = TokenPattern()
        match = next(pattern.finditer("Protected:{mykey}:{AQAAANCMnd8=}"))
        assert match.group("payload") == "AQAAANCMnd8="
        assert pattern.qualifier_of(match) == "mykey"

    def test_multiple_tokens_in_one_value(self):
        """Non-greedy payloads should allow several tokens per value."""
        pattern = TokenPattern()
        value = "a=Protected:{one};b=Protected:{db}:{two};c=Protected:{three}"
        payloads = [m.group("payload") for m in pattern.finditer(value)]
        assert payloads == ["one", "two", "three"]

    def test_qualifier_does_not_span_tokens(self):
        """A qualifier must not swallow a neighbouring token."""
        pattern = TokenPattern()
        value = "Protected:{a} x Protected:{b}:{c}"
        matches = list(pattern.finditer(value))
        assert [pattern.qualifier_of(m) for m in matches] == [None, "b"]
        assert [m.group("payload") for m in matches] == ["a", "c"]

    def test_qualifier_of_pattern_without_group(self):
        """Patterns without a qualifier group report no qualifier."""
        pattern = TokenPattern(r"ENC\[(?P<payload>[^\]]+)\]")
        match = next(pattern.finditer("ENC[abc]"))
        assert pattern.qualifier_of(match) is None

    def test_protect_marker_not_matched(self):
        """Protect:{...} tokens are not encrypted tokens."""
        assert not TokenPattern().contains_token("Protect:{plaintext}")


# ===========================================================================
# Substitution Tests
# ===========================================================================

class TestTokenPatternSubstitution:
    """Tests for substitute()."""

    def test_no_tokens_identity(self):
        """Values without tokens should be returned unchanged."""
        pattern = TokenPattern()
        for value in ["", "plain", "Protected", "Protected:", "{x}", "Protected:{"]:
            assert pattern.substitute(value, _upper_payload) == value

    def test_surrounding_text_preserved(self):
        """Only the matched span is replaced."""
        pattern = TokenPattern()
        result = pattern.substitute("user=Protected:{db}:{abc}pass", _upper_payload)
        assert result == "user=ABCpass"

    def test_substitution_order(self):
        """Replacements happen in original order."""
        pattern = TokenPattern()
        result = pattern.substitute("Protected:{a}-Protected:{b}-Protected:{c}", _upper_payload)
        assert result == "A-B-C"

    def test_replace_error_propagates(self):
        """An error from the replace callable should propagate."""
        pattern = TokenPattern()

        def fail(match):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            pattern.substitute("Protected:{a}", fail)


class TestTokenPatternEquality:
    def test_equal_patterns(self):
        """Equal patterns compare and hash equal."""
        assert TokenPattern(Patterns.PROTECT) == TokenPattern(Patterns.PROTECT)
        assert hash(TokenPattern()) == hash(TokenPattern())

    def test_different_patterns(self):
        """Different patterns compare unequal."""
        assert TokenPattern(Patterns.PROTECT) != TokenPattern(Patterns.PROTECTED)
