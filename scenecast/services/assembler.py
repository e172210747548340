"""Assembler - joins scene audio, muxes the final video and writes the build record."""

import shutil
from pathlib import Path
from typing import Any, Optional, Sequence

from scenecast.core.config import Settings
from scenecast.models.schemas import (
    BuildRecord,
    CaptionCue,
    CaptionMode,
    CaptionSummary,
    SceneEntry,
    TimelineEntry,
    TimelineSegment,
    VoiceoverResult,
)
from scenecast.utils.io_utils import write_json
from scenecast.utils.media_tools import AUDIO_SAMPLE_RATE, ffmpeg, probe_duration


class Assembler:
    """Produces the final narrated video and its companion artifacts."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the assembler.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def concat_scene_tracks(self, tracks: Sequence[Path], out_path: Path) -> Path:
        """
        Join fitted scene tracks end to end into one 48 kHz mono narration.

        Raises:
            CommandError: If ffmpeg fails
        """
        out_path.parent.mkdir(parents=True, exist_ok=True)
        if len(tracks) == 1:
            shutil.copyfile(tracks[0], out_path)
            return out_path

        args: list[Any] = []
        for track in tracks:
            args.extend(["-i", track])
        inputs = "".join(f"[{i}:a]" for i in range(len(tracks)))
        args.extend(
            [
                "-filter_complex", f"{inputs}concat=n={len(tracks)}:v=0:a=1[a]",
                "-map", "[a]",
                "-ar", str(AUDIO_SAMPLE_RATE),
                "-ac", "1",
                out_path,
            ]
        )
        ffmpeg(args)
        return out_path

    def create_silence_track(self, out_path: Path, duration: float) -> Path:
        """Write ``duration`` seconds of 48 kHz mono silence."""
        ffmpeg(
            [
                "-f", "lavfi",
                "-i", f"anullsrc=channel_layout=mono:sample_rate={AUDIO_SAMPLE_RATE}",
                "-t", f"{max(0.05, duration):.3f}",
                "-ar", str(AUDIO_SAMPLE_RATE),
                "-ac", "1",
                out_path,
            ]
        )
        return out_path

    def mux(self, video_path: Path, audio_path: Path, srt_path: Path, out_path: Path, master: bool = True) -> Path:
        """
        Combine video, narration and subtitles into the final MP4.

        The video stream is copied. Narration is AAC encoded, passing through
        the mastering chain unless ``master`` is False. Subtitles become a
        mov_text stream tagged as English.

        Args:
            video_path: Composite silent video
            audio_path: Narration (or silence) track
            srt_path: Caption file
            out_path: Final output
            master: Apply ``voice_mastering_filter`` to the audio

        Returns:
            out_path

        Raises:
            CommandError: If ffmpeg fails
        """
        args: list[Any] = ["-i", video_path, "-i", audio_path, "-i", srt_path]
        if master and self.settings.voice_mastering_filter:
            args.extend(["-filter:a", self.settings.voice_mastering_filter])
        args.extend(
            [
                "-map", "0:v:0",
                "-map", "1:a:0",
                "-map", "2:s:0",
                "-c:v", "copy",
                "-c:a", "aac",
                "-b:a", "192k",
                "-c:s", "mov_text",
                "-metadata:s:s:0", "language=eng",
                out_path,
            ]
        )
        self.logger.info(f"Muxing final video: {out_path}")
        ffmpeg(args)
        return out_path

    def write_narration_transcript(self, scenes: Sequence[SceneEntry], out_path: Path) -> Path:
        """Write ``narration.txt`` with one ``Scene N (id): text`` line per scene."""
        lines = [f"Scene {i} ({scene.id}): {scene.spoken_text()}" for i, scene in enumerate(scenes, 1)]
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return out_path

    def build_record(
        self,
        video_path: Path,
        scenes: Sequence[SceneEntry],
        timeline: Sequence[TimelineSegment],
        voice: VoiceoverResult,
        cues: Sequence[CaptionCue],
        caption_mode: CaptionMode,
        duration: Optional[float] = None,
    ) -> BuildRecord:
        """
        Collect the build metadata for one run.

        Args:
            video_path: Final video (probed for its duration unless ``duration`` is given)
            scenes: Manifest scenes
            timeline: Resolved timeline
            voice: Narration outcome
            cues: Finalized caption cues
            caption_mode: How caption timings were derived
            duration: Known output duration

        Returns:
            The build record
        """
        if duration is None:
            duration = probe_duration(video_path)

        return BuildRecord(
            output=video_path.name,
            scene_count=len(scenes),
            duration_seconds=round(duration, 2),
            voice_provider=voice.provider,
            requested_voice_provider=voice.requested_provider,
            voice_provider_availability=voice.provider_availability,
            attempted_voice_providers=voice.attempted_providers,
            strict_voice=self.settings.strict_voice,
            voice_provider_meta=voice.provider_meta,
            voiceover=Path(voice.voiceover_path).name if voice.voiceover_path else None,
            scene_audio=voice.scene_audio,
            voice_cache=voice.cache_stats,
            voice_audio=voice.audio_config,
            captions=CaptionSummary(cue_count=len(cues), mode=caption_mode),
            fade_seconds=self.settings.scene_fade,
            clip_trim_start_seconds=self.settings.scene_trim_start,
            clip_first_trim_start_seconds=self.settings.first_scene_trim_start,
            clip_settle_pad_seconds=self.settings.scene_settle_pad,
            timeline_seconds=[
                TimelineEntry(index=seg.index + 1, start=round(seg.start, 3), end=round(seg.end, 3))
                for seg in timeline
            ],
        )

    def write_build_record(self, record: BuildRecord, out_path: Path) -> Path:
        """Write ``tutorial-metadata.json``."""
        write_json(out_path, record.model_dump(mode="json"))
        self.logger.info(f"Wrote build metadata: {out_path}")
        return out_path
