"""Word timings from provider alignment or from a length-weighted estimate."""

import re
from typing import Any, Optional

from scenecast.models.schemas import CharacterAlignment, Word
from scenecast.utils.text_utils import clamp, first_number, normalize_caption, normalize_cue_text

_WORD_BREAK = re.compile(r"[.!?;:]$")
_NON_WORD = re.compile(r"[^\w]")

MIN_CHAR_SECONDS = 0.02
DEFAULT_CHAR_SECONDS = 0.04


def _seconds(raw: dict, names: tuple[str, ...], ms_names: tuple[str, ...]) -> Optional[list[float]]:
    for name in names:
        if isinstance(raw.get(name), list):
            return [first_number(v, 0.0) for v in raw[name]]
    for name in ms_names:
        if isinstance(raw.get(name), list):
            return [first_number(v, 0.0) / 1000 for v in raw[name]]
    return None


def alignment_from_payload(raw: Any) -> Optional[CharacterAlignment]:
    """
    Parse a provider alignment payload.

    Accepts start/end arrays in seconds (``character_start_times_seconds``)
    or milliseconds (``character_start_times_ms``), with ``char_`` variants.

    Returns:
        Alignment, or None when the payload has no usable timing
    """
    if not isinstance(raw, dict):
        return None
    characters = raw.get("characters")
    if not isinstance(characters, list) or not characters:
        return None

    starts = _seconds(
        raw,
        ("character_start_times_seconds", "char_start_times_seconds"),
        ("character_start_times_ms", "char_start_times_ms"),
    )
    ends = _seconds(
        raw,
        ("character_end_times_seconds", "char_end_times_seconds"),
        ("character_end_times_ms", "char_end_times_ms"),
    )
    if starts is None or ends is None:
        return None
    if len(starts) != len(characters) or len(ends) != len(characters):
        return None

    return CharacterAlignment(
        characters=["" if ch is None else str(ch) for ch in characters],
        starts=starts,
        ends=ends,
    )


def words_from_alignment(alignment: Optional[CharacterAlignment]) -> list[Word]:
    """
    Collapse per-character timing into words.

    Words split on whitespace and after terminal punctuation (``.!?;:``).
    A word starts at its first character's start and ends at its last
    character's end.
    """
    if alignment is None:
        return []

    words: list[Word] = []
    current = ""
    start: Optional[float] = None
    end: Optional[float] = None

    def flush() -> None:
        nonlocal current, start, end
        text = normalize_cue_text(current)
        if text and start is not None and end is not None and end > start:
            words.append(Word(text=text, start=start, end=end))
        current, start, end = "", None, None

    for i, ch in enumerate(alignment.characters):
        s = first_number(alignment.starts[i] if i < len(alignment.starts) else None, end if end is not None else 0.0)
        e = first_number(alignment.ends[i] if i < len(alignment.ends) else None, s + DEFAULT_CHAR_SECONDS)
        e = max(s + MIN_CHAR_SECONDS, e)

        if not ch or ch.isspace():
            flush()
            continue

        if start is None:
            start = s
        current += ch
        end = e

        if _WORD_BREAK.search(ch):
            flush()
    flush()
    return words


def estimate_word_timings(text: str, duration: float) -> list[Word]:
    """
    Spread ``duration`` over the words of ``text``.

    Each word gets a share proportional to its alphanumeric length, clamped
    to [1, 12] so a long token cannot swallow the clip.
    """
    tokens = [w for w in normalize_caption(text).split(" ") if w.strip()]
    if not tokens or duration <= 0:
        return []

    weights = [clamp(len(_NON_WORD.sub("", w)), 1, 12) for w in tokens]
    total = sum(weights)
    words = []
    cursor = 0.0
    for token, weight in zip(tokens, weights):
        start = cursor
        cursor += duration * (weight / total)
        words.append(Word(text=token, start=start, end=min(duration, cursor)))
    return words
