"""Narration Engine - synthesizes, fits and captions every scene's voiceover."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

from scenecast.core.config import Settings
from scenecast.models.schemas import (
    AudioConfig,
    CacheStats,
    CaptionCue,
    ProviderAttempt,
    SceneEntry,
    SynthesisResult,
    TimelineSegment,
    VoiceoverResult,
    VoiceState,
)
from scenecast.services.assembler import Assembler
from scenecast.services.caption_builder import CaptionBuilder, caption_mode_for, localize_words
from scenecast.services.timeline_builder import slot_duration
from scenecast.services.tts_client import MIN_AUDIO_SECONDS, VoiceProvider, pick_voice_providers
from scenecast.services.voice_fitter import VoiceFitter
from scenecast.services.word_timing import estimate_word_timings, words_from_alignment
from scenecast.storage.voice_cache import VoiceCache
from scenecast.utils.error_handler import CommandError, MediaProbeError, ProviderError
from scenecast.utils.io_utils import reset_dir, scene_file_stem
from scenecast.utils.media_tools import probe_duration


@dataclass
class _ProviderProgress:
    """Work accumulated by one provider attempt; discarded if the attempt fails."""

    attempt: ProviderAttempt
    tracks: list[Path] = field(default_factory=list)
    cues: list[CaptionCue] = field(default_factory=list)
    meta: Optional[dict[str, Any]] = None
    aligned_scenes: int = 0
    spoken_scenes: int = 0


class NarrationEngine:
    """
    Runs the provider fallback chain.

    Each candidate provider must voice every scene. The first failure
    abandons that provider, discards its partial work and restarts the whole
    scene sequence under the next candidate, so the narration never mixes
    voices. Scenes and providers are processed strictly one at a time.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        providers: Sequence[VoiceProvider],
        cache: VoiceCache,
    ):
        """
        Initialize the narration engine.

        Args:
            settings: Application settings
            logger: Logger instance
            providers: All known providers in automatic priority order
            cache: Voice cache shared across runs
        """
        self.settings = settings
        self.logger = logger
        self.providers = list(providers)
        self.cache = cache
        self.fitter = VoiceFitter(settings, logger)
        self.captions = CaptionBuilder(settings, logger)
        self.assembler = Assembler(settings, logger)
        self.state = VoiceState.PENDING
        self.active_provider: Optional[str] = None

    def audio_config(self) -> AudioConfig:
        return AudioConfig(
            target_scene_gap_seconds=self.settings.scene_audio_gap,
            clip_fade_out_seconds=self.settings.scene_audio_clip_fade,
        )

    def synthesize_scene(self, provider: VoiceProvider, text: str, raw_path: Path, work_dir: Path) -> SynthesisResult:
        """
        Synthesize one scene, reusing the cache when the inputs are unchanged.

        Raises:
            ProviderError: If the provider fails
        """
        settings_snapshot = provider.cache_settings()
        cached = self.cache.lookup(provider.name, text, settings_snapshot, raw_path)
        if cached is not None:
            if cached.duration <= 0:
                cached = cached.model_copy(update={"duration": probe_duration(raw_path)})
            return cached

        output = provider.synthesize(text, raw_path, work_dir)
        duration = output.duration if output.duration > 0 else probe_duration(raw_path)
        key = self.cache.store(
            provider.name,
            text,
            settings_snapshot,
            raw_path,
            duration,
            alignment=output.alignment,
            meta=output.meta,
        )
        return SynthesisResult(
            duration=duration,
            alignment=output.alignment,
            meta=output.meta,
            cache_hit=False,
            cache_key=key,
        )

    def _measure(self, provider: VoiceProvider, raw_path: Path, reported: float) -> float:
        try:
            duration = probe_duration(raw_path)
        except MediaProbeError:
            duration = reported
        if duration <= 0:
            raise ProviderError(provider.name, "failed to read raw voice duration")
        if duration < MIN_AUDIO_SECONDS:
            raise ProviderError(provider.name, "raw voice track too short")
        return duration

    def _voice_scene(
        self,
        provider: VoiceProvider,
        index: int,
        scene: SceneEntry,
        timeline: Sequence[TimelineSegment],
        fade: float,
        voice_dir: Path,
        progress: _ProviderProgress,
    ) -> None:
        stem = scene_file_stem(index, scene.id)
        raw_path = voice_dir / f"{stem}-raw.wav"
        fitted_path = voice_dir / f"{stem}-fit.wav"
        text = scene.spoken_text()
        slot = slot_duration(timeline, index, fade)
        segment = timeline[index]
        scene_logger = self.logger.bind(provider=provider.name, scene_id=scene.id)

        if not text:
            scene_logger.info(f"Scene {index + 1} has no narration text; using silence")
            self.assembler.create_silence_track(fitted_path, slot)
            progress.tracks.append(fitted_path)
            progress.cues.append(
                CaptionCue(start=segment.start, end=segment.start + slot, text=scene.fallback_label(index))
            )
            return

        try:
            synth = self.synthesize_scene(provider, text, raw_path, voice_dir)
        except MediaProbeError as e:
            raise ProviderError(provider.name, "failed to read raw voice duration") from e
        if synth.cache_hit:
            progress.attempt.cache.hits += 1
        else:
            progress.attempt.cache.misses += 1
        if progress.meta is None and synth.meta:
            progress.meta = synth.meta

        raw_duration = self._measure(provider, raw_path, synth.duration)
        try:
            fit = self.fitter.fit(raw_path, fitted_path, slot, raw_duration)
        except CommandError as e:
            raise ProviderError(provider.name, "failed to fit voice track to scene duration") from e
        progress.tracks.append(fitted_path)
        progress.spoken_scenes += 1

        words = words_from_alignment(synth.alignment)
        if words:
            progress.aligned_scenes += 1
        else:
            words = estimate_word_timings(text, min(raw_duration, fit.cue_duration))

        progress.cues.extend(self.captions.scene_cues(localize_words(words, fit), segment, slot, text))
        scene_logger.info(
            f"Scene {index + 1}/{len(timeline)} voiced ({raw_duration:.2f}s into {slot:.2f}s slot"
            f"{', cached' if synth.cache_hit else ''}{', clipped' if fit.clipped else ''})"
        )

    def _run_provider(
        self,
        provider: VoiceProvider,
        scenes: Sequence[SceneEntry],
        timeline: Sequence[TimelineSegment],
        fade: float,
        work_dir: Path,
        out_dir: Path,
        attempt: ProviderAttempt,
    ) -> VoiceoverResult:
        """Voice every scene with one provider. Raises ProviderError on the first scene failure."""
        voice_dir = reset_dir(work_dir / f"scene-voice-{provider.name}")
        progress = _ProviderProgress(attempt)

        for i, scene in enumerate(scenes):
            try:
                self._voice_scene(provider, i, scene, timeline, fade, voice_dir, progress)
            except ProviderError:
                attempt.failed_scene = scene.id
                raise

        voiceover_path = out_dir / "voiceover.wav"
        self.assembler.concat_scene_tracks(progress.tracks, voiceover_path)
        attempt.scenes_completed = len(progress.tracks)

        return VoiceoverResult(
            provider=provider.name,
            state=VoiceState.SUCCEEDED,
            voiceover_path=str(voiceover_path),
            scene_audio=[t.name for t in progress.tracks],
            caption_cues=progress.cues,
            caption_mode=caption_mode_for(progress.aligned_scenes, progress.spoken_scenes),
            provider_meta=progress.meta,
            audio_config=self.audio_config(),
        )

    def render_voiceover(
        self,
        scenes: Sequence[SceneEntry],
        timeline: Sequence[TimelineSegment],
        fade: float,
        work_dir: Path,
        out_dir: Path,
    ) -> VoiceoverResult:
        """
        Produce the narration track with the first provider that voices every scene.

        Args:
            scenes: Manifest scenes in playback order
            timeline: Resolved timeline
            fade: Cross-fade duration
            work_dir: Scratch directory (per-provider subdirectories are recreated)
            out_dir: Directory receiving voiceover.wav

        Returns:
            Result with provider 'none' and state EXHAUSTED when every candidate failed
        """
        requested = self.settings.voice_provider
        candidates, availability = pick_voice_providers(self.providers, requested, self.settings.strict_voice)
        self.logger.info(
            f"Voice providers (requested={requested}): {', '.join(p.name for p in candidates) or 'none'}"
        )

        attempts: list[ProviderAttempt] = []
        cache_path = self.cache.relative_path(out_dir)
        self.state = VoiceState.PENDING

        for provider in candidates:
            self.state = VoiceState.TRYING
            self.active_provider = provider.name
            attempt = ProviderAttempt(provider=provider.name, ok=False)
            try:
                if not availability.get(provider.name, False):
                    raise ProviderError(provider.name, f"{provider.name} is not available")
                result = self._run_provider(provider, scenes, timeline, fade, work_dir, out_dir, attempt)
            except ProviderError as e:
                attempt.reason = e.reason or "provider failed"
                attempts.append(attempt)
                self.logger.warning(f"Voice provider {provider.name} abandoned: {attempt.reason}")
                continue

            attempt.ok = True
            attempts.append(attempt)
            self.state = VoiceState.SUCCEEDED
            self.logger.info(
                f"Narration voiced by {provider.name} "
                f"(cache {attempt.cache.hits} hit/{attempt.cache.misses} miss, captions={result.caption_mode.value})"
            )
            return result.model_copy(
                update={
                    "attempted_providers": attempts,
                    "provider_availability": availability,
                    "requested_provider": requested,
                    "cache_stats": CacheStats(
                        hits=attempt.cache.hits, misses=attempt.cache.misses, path=cache_path
                    ),
                }
            )

        self.state = VoiceState.EXHAUSTED
        self.active_provider = None
        if candidates:
            self.logger.warning("All voice providers failed; narration will be silent")
        return VoiceoverResult(
            provider="none",
            state=VoiceState.EXHAUSTED,
            attempted_providers=attempts,
            provider_availability=availability,
            requested_provider=requested,
            cache_stats=CacheStats(path=cache_path),
            audio_config=self.audio_config(),
        )
