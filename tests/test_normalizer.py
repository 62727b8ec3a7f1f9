"""
Tests for /speak parameter normalization.

Tests cover:
- parse_text() - missing, non-string, blank, surrounding whitespace
- truncate_text() - limit boundaries, word-boundary cut, hard cut, marker
- parse_choice() - allowed values, case sensitivity, non-strings
- parse_speed() - numbers, numeric strings, garbage, NaN/inf, huge ints, clamping
- normalize() - full request shaping and BadRequest
"""
import math

import pytest

from speak_proxy.core.config import NormalizerConfig
from speak_proxy.services.normalizer import (
    NO_TEXT_MESSAGE,
    BadRequest,
    SynthesisRequest,
    normalize,
    parse_choice,
    parse_speed,
    parse_text,
    truncate_text,
)

VOICES = ("alena", "oksana", "jane", "filipp", "ermil", "zahar")
EMOTIONS = ("neutral", "good", "evil")


class TestParseText:
    """Tests for parse_text()."""

    def test_plain_text(self):
        """A normal string is returned unchanged."""
        assert parse_text("Привет, мир") == "Привет, мир"

    def test_strips_whitespace(self):
        """Surrounding whitespace is removed."""
        assert parse_text("  Привет\n") == "Привет"

    @pytest.mark.parametrize("raw", [None, "", "   ", "\t\n"])
    def test_missing_or_blank(self, raw):
        """Missing and whitespace-only text is rejected."""
        assert parse_text(raw) is None

    @pytest.mark.parametrize("raw", [123, 1.5, True, ["text"], {"text": "x"}])
    def test_non_string(self, raw):
        """Non-string values are rejected, not coerced."""
        assert parse_text(raw) is None


class TestTruncateText:
    """Tests for truncate_text()."""

    def test_short_text_untouched(self):
        """Text under the limit is returned as-is."""
        assert truncate_text("коротко", 300) == ("коротко", False)

    def test_exactly_at_limit_untouched(self):
        """Text of exactly max_chars is not trimmed."""
        text = "a" * 300
        assert truncate_text(text, 300) == (text, False)

    def test_one_over_limit_is_trimmed(self):
        """max_chars + 1 characters triggers truncation."""
        result, trimmed = truncate_text("a" * 301, 300)
        assert trimmed is True
        assert result == "a" * 300 + "…"

    def test_cuts_at_last_word_boundary(self):
        """The cut falls on whitespace and never splits a word."""
        text = " ".join(["слово"] * 100)
        result, trimmed = truncate_text(text, 300)

        assert trimmed is True
        assert result.endswith("…")
        body = result[:-1]
        assert len(body) <= 300
        assert not body.endswith(" ")
        assert all(word == "слово" for word in body.split(" "))

    def test_whitespace_exactly_at_limit(self):
        """A space right after the limit keeps the full max_chars prefix."""
        text = "a" * 300 + " " + "b" * 10
        result, trimmed = truncate_text(text, 300)
        assert trimmed is True
        assert result == "a" * 300 + "…"

    def test_hard_cut_without_whitespace(self):
        """One long token is cut at exactly max_chars."""
        result, trimmed = truncate_text("x" * 500, 300)
        assert trimmed is True
        assert result == "x" * 300 + "…"

    def test_docstring_example(self):
        assert truncate_text("one two three", 9) == ("one two…", True)

    def test_custom_marker(self):
        result, _ = truncate_text("one two three", 9, marker="...")
        assert result == "one two..."

    def test_trailing_spaces_before_boundary_removed(self):
        """Runs of whitespace before the cut do not leak into the result."""
        text = "word   " + "z" * 20
        result, trimmed = truncate_text(text, 10)
        assert trimmed is True
        assert result == "word…"


class TestParseChoice:
    """Tests for parse_choice()."""

    @pytest.mark.parametrize("voice", VOICES)
    def test_allowed_voice(self, voice):
        assert parse_choice(voice, VOICES, "alena") == voice

    def test_unknown_value_defaults(self):
        assert parse_choice("robot", VOICES, "alena") == "alena"

    def test_case_sensitive(self):
        """Matching is exact; "Jane" is not "jane"."""
        assert parse_choice("Jane", VOICES, "alena") == "alena"

    @pytest.mark.parametrize("raw", [None, 1, ["jane"], {"voice": "jane"}])
    def test_non_string_defaults(self, raw):
        assert parse_choice(raw, VOICES, "alena") == "alena"

    def test_emotions(self):
        assert parse_choice("evil", EMOTIONS, "neutral") == "evil"
        assert parse_choice("angry", EMOTIONS, "neutral") == "neutral"


class TestParseSpeed:
    """Tests for parse_speed()."""

    def _speed(self, raw):
        return parse_speed(raw, 1.0, 0.5, 1.5)

    def test_in_range_number(self):
        assert self._speed(1.2) == 1.2

    def test_integer(self):
        assert self._speed(1) == 1.0

    def test_numeric_string(self):
        assert self._speed("0.8") == 0.8

    def test_numeric_string_with_spaces(self):
        assert self._speed(" 1.3 ") == 1.3

    def test_clamped_high(self):
        assert self._speed(10) == 1.5

    def test_clamped_low(self):
        assert self._speed(0.1) == 0.5

    def test_negative_clamped(self):
        assert self._speed("-2") == 0.5

    def test_bounds_inclusive(self):
        assert self._speed(0.5) == 0.5
        assert self._speed(1.5) == 1.5

    @pytest.mark.parametrize("raw", [None, "fast", "", [1.2], {"v": 1}, True, False])
    def test_unparseable_defaults(self, raw):
        assert self._speed(raw) == 1.0

    @pytest.mark.parametrize("raw", [math.nan, math.inf, -math.inf, "nan", "inf"])
    def test_non_finite_defaults(self, raw):
        """NaN and infinity fall back to the default rather than a bound."""
        assert self._speed(raw) == 1.0

    def test_huge_integers_clamped(self):
        """JSON integers too large for a float clamp by sign."""
        assert self._speed(10**400) == 1.5
        assert self._speed(-10**400) == 0.5


class TestNormalize:
    """Tests for normalize()."""

    def test_defaults_applied(self):
        """Only text given: every other field gets its default."""
        result = normalize("Привет")
        assert result == SynthesisRequest(text="Привет", voice="alena", emotion="neutral", speed=1.0, trimmed=False)

    def test_all_fields(self):
        result = normalize("Привет", "jane", "good", "1.2")
        assert isinstance(result, SynthesisRequest)
        assert (result.voice, result.emotion, result.speed) == ("jane", "good", 1.2)

    def test_invalid_options_silently_replaced(self):
        """Bad voice, emotion and speed never reject the request."""
        result = normalize("Привет", "robot", 42, "fast")
        assert isinstance(result, SynthesisRequest)
        assert (result.voice, result.emotion, result.speed) == ("alena", "neutral", 1.0)

    @pytest.mark.parametrize("text", [None, "", "   ", 123, ["Привет"]])
    def test_bad_text(self, text):
        result = normalize(text, "jane")
        assert isinstance(result, BadRequest)
        assert result.message == NO_TEXT_MESSAGE == "No text provided"

    def test_long_text_trimmed(self):
        result = normalize("слово " * 100)
        assert isinstance(result, SynthesisRequest)
        assert result.trimmed is True
        assert result.text.endswith("…")
        assert len(result.text) <= 301

    def test_custom_config(self):
        """Limits come from NormalizerConfig."""
        config = NormalizerConfig(max_text_chars=5, default_voice="jane", max_speed=2.0)
        result = normalize("abc defgh", speed=1.8, config=config)
        assert isinstance(result, SynthesisRequest)
        assert result.text == "abc…"
        assert result.voice == "jane"
        assert result.speed == 1.8

    def test_huge_integer_speed(self):
        result = normalize("Привет", speed=10**400)
        assert isinstance(result, SynthesisRequest)
        assert result.speed == 1.5
