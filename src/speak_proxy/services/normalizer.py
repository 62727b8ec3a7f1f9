"""
Parameter Normalization for /speak.

Turns the untrusted JSON body of a /speak request into a SynthesisRequest
the provider will accept. Every field has its own parse-or-default function;
none of them raises, whatever type the caller sent.

Rules:
    - text: must be a string that is non-empty after stripping whitespace,
      otherwise the request is rejected with "No text provided". Text longer
      than max_text_chars is cut at the last whitespace at or before the
      limit (hard cut when there is none) and the truncation marker "…" is
      appended.
    - voice: one of the configured voices, else the default voice.
    - emotion: one of the configured emotions, else the default emotion.
    - speed: numbers and numeric strings are accepted; anything else, NaN or
      infinity becomes the default speed. The result is clamped into
      [min_speed, max_speed].

Invalid voice and emotion values are replaced silently; only missing text
is a client error.

Usage:
    outcome = normalize(body.get("text"), body.get("voice"),
                        body.get("emotion"), body.get("speed"), config)
    if isinstance(outcome, BadRequest):
        return 400, outcome.message
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple, Union

from speak_proxy.core.config import NormalizerConfig
from speak_proxy.core.logging import debug, get_logger

_LOG = get_logger("speak-proxy.normalizer")

NO_TEXT_MESSAGE = "No text provided"


@dataclass(frozen=True)
class SynthesisRequest:
    """
    A validated synthesis request, ready for the gateway.

    Attributes:
        text: Stripped text, at most max_text_chars plus the truncation marker.
        voice: Member of the allowed voice set.
        emotion: Member of the allowed emotion set.
        speed: Within [min_speed, max_speed].
        trimmed: True when the text was truncated.
    """
    text: str
    voice: str
    emotion: str
    speed: float
    trimmed: bool = False


@dataclass(frozen=True)
class BadRequest:
    """Normalization rejected the request (HTTP 400)."""
    message: str = NO_TEXT_MESSAGE


NormalizeOutcome = Union[SynthesisRequest, BadRequest]


def parse_text(raw: Any) -> Optional[str]:
    """Stripped text, or None when missing, blank or not a string."""
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    return text or None


def truncate_text(text: str, max_chars: int, marker: str = "…") -> Tuple[str, bool]:
    """
    Cap text at max_chars, preferring a word boundary.

    Returns:
        (text, trimmed). Untouched text is returned as-is with False.

    Example:
        >>> truncate_text("one two three", 9)
        ('one two…', True)
    """
    if len(text) <= max_chars:
        return text, False

    # A whitespace exactly at index max_chars still leaves max_chars chars.
    head = text[: max_chars + 1]
    boundary = -1
    for i in range(len(head) - 1, 0, -1):
        if head[i].isspace():
            boundary = i
            break

    if boundary > 0:
        cut = text[:boundary].rstrip()
    else:
        cut = text[:max_chars]
    return cut + marker, True


def parse_choice(raw: Any, allowed: Sequence[str], default: str) -> str:
    """raw when it is one of ``allowed`` (exact match), else default."""
    if isinstance(raw, str) and raw in allowed:
        return raw
    return default


def parse_speed(raw: Any, default: float, min_speed: float, max_speed: float) -> float:
    """
    Coerce a speed value and clamp it.

    >>> parse_speed("1.2", 1.0, 0.5, 1.5)
    1.2
    >>> parse_speed(10, 1.0, 0.5, 1.5)
    1.5
    >>> parse_speed("fast", 1.0, 0.5, 1.5)
    1.0
    """
    value: Optional[float] = None

    # bool is an int subclass; true/false are not speeds
    if isinstance(raw, bool):
        value = None
    elif isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            # JSON integers beyond float range still have a sign
            value = max_speed if raw > 0 else min_speed
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            value = None

    if value is None or not math.isfinite(value):
        value = default

    return min(max(value, min_speed), max_speed)


def normalize(
    text: Any,
    voice: Any = None,
    emotion: Any = None,
    speed: Any = None,
    config: Optional[NormalizerConfig] = None,
) -> NormalizeOutcome:
    """
    Validate and normalize raw /speak parameters.

    Args:
        text, voice, emotion, speed: Raw values from the request body, of
            any type (missing keys arrive as None).
        config: Limits and allowed values; defaults to the reference policy.

    Returns:
        SynthesisRequest, or BadRequest when there is no usable text.
    """
    config = config or NormalizerConfig()

    parsed_text = parse_text(text)
    if parsed_text is None:
        return BadRequest(NO_TEXT_MESSAGE)

    final_text, trimmed = truncate_text(parsed_text, config.max_text_chars, config.truncation_marker)

    request = SynthesisRequest(
        text=final_text,
        voice=parse_choice(voice, config.voices, config.default_voice),
        emotion=parse_choice(emotion, config.emotions, config.default_emotion),
        speed=parse_speed(speed, config.default_speed, config.min_speed, config.max_speed),
        trimmed=trimmed,
    )
    debug(
        _LOG, "normalized",
        chars=len(request.text),
        trimmed=request.trimmed,
        voice=request.voice,
        emotion=request.emotion,
        speed=request.speed,
    )
    return request
