"""Text and timestamp helpers for narration and captions."""

# This module is part of scenecast.utils package

import re
from typing import Any

_WHITESPACE = re.compile(r"\s+")
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([,.;:!?])")


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def first_number(value: Any, fallback: float) -> float:
    """
    Parse value as a finite float, returning fallback when it is not one.

    Args:
        value: Anything (number, numeric string, None).
        fallback: Value returned when parsing fails.

    Returns:
        Parsed float or fallback.
    """
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        return fallback
    return parsed


def normalize_caption(text: Any) -> str:
    """Collapse runs of whitespace and strip."""
    return _WHITESPACE.sub(" ", str(text or "")).strip()


def normalize_cue_text(text: Any) -> str:
    """Normalize caption text and drop spaces before punctuation."""
    return _SPACE_BEFORE_PUNCT.sub(r"\1", normalize_caption(text))


def to_srt_timestamp(seconds: float) -> str:
    """
    Format seconds as an SRT timestamp (HH:MM:SS,mmm).

    Negative values are clamped to zero.
    """
    total_ms = int(round(max(0.0, seconds) * 1000))
    ms = total_ms % 1000
    total_sec = total_ms // 1000
    sec = total_sec % 60
    total_min = total_sec // 60
    minute = total_min % 60
    hour = total_min // 60
    return f"{hour:02d}:{minute:02d}:{sec:02d},{ms:03d}"
