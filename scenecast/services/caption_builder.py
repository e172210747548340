"""Caption Cue Builder - groups timed words into readable subtitle cues."""

import json
import re
from pathlib import Path
from typing import Any, Optional, Sequence

from scenecast.core.config import Settings
from scenecast.models.schemas import CaptionCue, CaptionMode, SceneEntry, SceneFit, TimelineSegment, Word
from scenecast.services.timeline_builder import slot_duration
from scenecast.services.word_timing import estimate_word_timings
from scenecast.utils.text_utils import clamp, normalize_cue_text, to_srt_timestamp

_SENTENCE_END = re.compile(r"[.!?]$")

MIN_WORD_SECONDS = 0.02
MIN_CUE_SECONDS = 0.05


def caption_mode_for(aligned_scenes: int, spoken_scenes: int) -> CaptionMode:
    """``aligned`` if every spoken scene had alignment, ``hybrid`` if some, else ``estimated``."""
    if spoken_scenes > 0 and aligned_scenes >= spoken_scenes:
        return CaptionMode.ALIGNED
    if aligned_scenes > 0:
        return CaptionMode.HYBRID
    return CaptionMode.ESTIMATED


def localize_words(words: Sequence[Word], fit: SceneFit) -> list[Word]:
    """Clamp words into the spoken part of a fitted scene, dropping slivers."""
    low = fit.cue_start_offset
    high = fit.cue_start_offset + fit.cue_duration
    localized = []
    for word in words:
        start = clamp(word.start + fit.cue_start_offset, low, high)
        end = clamp(word.end + fit.cue_start_offset, start, high)
        if end - start > MIN_WORD_SECONDS:
            localized.append(Word(text=word.text, start=start, end=end))
    return localized


class CaptionBuilder:
    """Builds, orders and writes caption cues."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the caption builder.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def chunk_words(self, words: Sequence[Word], scene_start: float, scene_duration: float) -> list[CaptionCue]:
        """
        Group scene-local words into cues placed on the global timeline.

        A cue closes when it reaches ``caption_max_words`` words, spans
        ``caption_max_seconds``, or ends a sentence once it holds at least
        ``caption_min_break_words`` words. Each cue lasts at least
        ``caption_min_seconds`` (bounded by the scene).

        Args:
            words: Word timings relative to the scene start
            scene_start: Scene offset on the timeline
            scene_duration: Scene slot duration

        Returns:
            Cues in time order
        """
        max_words = self.settings.caption_max_words
        max_seconds = self.settings.caption_max_seconds
        min_seconds = self.settings.caption_min_seconds
        min_break_words = self.settings.caption_min_break_words

        cues: list[CaptionCue] = []
        chunk: list[Word] = []

        def flush() -> None:
            if not chunk:
                return
            raw_start = clamp(chunk[0].start, 0.0, scene_duration)
            raw_end = clamp(chunk[-1].end, 0.0, scene_duration)
            local_end = max(raw_end, min(scene_duration, raw_start + min_seconds))
            text = normalize_cue_text(" ".join(w.text for w in chunk))
            if text and local_end - raw_start > MIN_CUE_SECONDS:
                cues.append(CaptionCue(start=scene_start + raw_start, end=scene_start + local_end, text=text))
            chunk.clear()

        for word in words:
            chunk.append(word)
            span = word.end - chunk[0].start
            over_words = len(chunk) >= max_words
            over_time = span >= max_seconds
            sentence_break = bool(_SENTENCE_END.search(word.text)) and len(chunk) >= min_break_words
            if over_words or over_time or sentence_break:
                flush()
        flush()
        return cues

    def scene_cues(
        self,
        words: Sequence[Word],
        segment: TimelineSegment,
        slot: float,
        fallback_text: str,
    ) -> list[CaptionCue]:
        """Cues for one scene; a single full-slot cue when no words survive chunking."""
        cues = self.chunk_words(words, segment.start, slot)
        if cues:
            return cues
        return [CaptionCue(start=segment.start, end=segment.start + slot, text=normalize_cue_text(fallback_text))]

    def estimated_cues(
        self,
        scenes: Sequence[SceneEntry],
        timeline: Sequence[TimelineSegment],
        fade: float,
    ) -> list[CaptionCue]:
        """Captions for a run without narration: estimated timings over each scene slot."""
        cues: list[CaptionCue] = []
        for segment in timeline:
            scene = scenes[segment.index]
            slot = slot_duration(timeline, segment.index, fade)
            text = scene.spoken_text() or scene.fallback_label(segment.index)
            cues.extend(self.scene_cues(estimate_word_timings(text, slot), segment, slot, text))
        return cues

    def finalize(self, cues: Sequence[CaptionCue], total_duration: Optional[float] = None) -> list[CaptionCue]:
        """
        Sort cues, drop empty ones and enforce ``end >= start + 0.05``.

        The last cue is stretched to ``total_duration`` so captions cover the
        whole video.
        """
        ordered = []
        for cue in cues:
            text = normalize_cue_text(cue.text)
            if not text:
                continue
            start = max(0.0, cue.start)
            end = max(start + MIN_CUE_SECONDS, cue.end)
            ordered.append(CaptionCue(start=start, end=end, text=text))
        ordered.sort(key=lambda c: c.start)

        if ordered and total_duration and total_duration > 0:
            last = ordered[-1]
            ordered[-1] = CaptionCue(start=last.start, end=max(last.end, total_duration), text=last.text)
        return ordered

    def write_srt(self, cues: Sequence[CaptionCue], out_path: Path, total_duration: Optional[float] = None) -> list[CaptionCue]:
        """
        Write an SRT file.

        Returns:
            The finalized cues that were written
        """
        final = self.finalize(cues, total_duration)
        blocks = [
            f"{i}\n{to_srt_timestamp(cue.start)} --> {to_srt_timestamp(cue.end)}\n{cue.text}\n"
            for i, cue in enumerate(final, 1)
        ]
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text("\n".join(blocks) + ("\n" if blocks else ""), encoding="utf-8")
        self.logger.info(f"Wrote {len(final)} caption cues: {out_path}")
        return final

    def write_cues_json(self, cues: Sequence[CaptionCue], out_path: Path) -> None:
        """Write raw cue data as JSON."""
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, "w", encoding="utf-8") as f:
            json.dump([cue.model_dump() for cue in cues], f, indent=2, ensure_ascii=False)
            f.write("\n")
