"""Voice-to-Scene Fitter - makes every scene's speech exactly as long as its slot."""

from pathlib import Path
from typing import Any

from scenecast.core.config import Settings
from scenecast.models.schemas import SceneFit
from scenecast.utils.media_tools import AUDIO_SAMPLE_RATE, ffmpeg

MIN_SPEECH_SECONDS = 0.08
FIT_TOLERANCE = 0.01


def plan_fit(raw_duration: float, slot: float, desired_gap: float, clip_fade: float) -> SceneFit:
    """
    Decide how raw speech is placed in a slot.

    Speech that fits in ``slot - gap`` is kept whole and followed by the gap.
    Longer speech drops the gap, is trimmed to the slot and faded out at the
    cut. Either way the fitted track is padded to exactly ``slot`` seconds.

    Args:
        raw_duration: Synthesized speech duration
        slot: Scene slot duration
        desired_gap: Trailing silence target
        clip_fade: Maximum fade-out at a trim point

    Returns:
        The fit plan
    """
    bounded_gap = min(desired_gap, max(0.0, slot - MIN_SPEECH_SECONDS))
    keep_gap = raw_duration <= slot - bounded_gap + FIT_TOLERANCE
    applied_gap = bounded_gap if keep_gap else 0.0
    speech_budget = max(MIN_SPEECH_SECONDS, slot - applied_gap)
    clipped = raw_duration > speech_budget + FIT_TOLERANCE
    spoken = min(raw_duration, speech_budget)

    fade_out = None
    if clipped:
        fade_out = min(clip_fade, max(0.03, spoken * 0.45))

    cue_duration = max(0.05, min(spoken, slot))
    return SceneFit(
        cue_start_offset=0.0,
        cue_duration=cue_duration,
        clipped=clipped,
        desired_gap=desired_gap,
        applied_gap=applied_gap,
        trailing_gap=max(0.0, slot - cue_duration),
        spoken_duration=spoken,
        fade_out=fade_out,
    )


def fit_filter(fit: SceneFit) -> str:
    """ffmpeg audio filter chain realising a fit plan."""
    filters = []
    if fit.clipped and fit.fade_out is not None:
        filters.append(f"atrim=end={fit.spoken_duration:.3f}")
        fade_start = max(0.0, fit.spoken_duration - fit.fade_out)
        filters.append(f"afade=t=out:st={fade_start:.3f}:d={fit.fade_out:.3f}")
    filters.append("apad")
    return ",".join(filters)


class VoiceFitter:
    """Renders fitted per-scene speech tracks."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the fitter.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def fit(self, raw_path: Path, out_path: Path, slot: float, raw_duration: float) -> SceneFit:
        """
        Write ``out_path`` holding exactly ``slot`` seconds of 48 kHz mono audio.

        Raises:
            CommandError: If ffmpeg fails
        """
        plan = plan_fit(raw_duration, slot, self.settings.scene_audio_gap, self.settings.scene_audio_clip_fade)
        if plan.clipped:
            self.logger.warning(
                f"Speech ({raw_duration:.2f}s) exceeds slot ({slot:.2f}s); trimming {out_path.name}"
            )
        ffmpeg(
            [
                "-i", raw_path,
                "-af", fit_filter(plan),
                "-t", f"{slot:.3f}",
                "-ar", str(AUDIO_SAMPLE_RATE),
                "-ac", "1",
                out_path,
            ]
        )
        return plan
