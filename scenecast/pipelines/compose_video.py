"""Compose pipeline orchestrator - scene manifest → narrated, captioned tutorial video."""

import argparse
import sys
import time
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from scenecast.core.config import Settings
from scenecast.core.logging_config import get_logger, setup_logging
from scenecast.models.schemas import BuildRecord, CaptionMode, VoiceoverResult, VoiceState
from scenecast.services.assembler import Assembler
from scenecast.services.caption_builder import CaptionBuilder
from scenecast.services.clip_normalizer import ClipNormalizer
from scenecast.services.crossfade_composer import CrossfadeComposer
from scenecast.services.narration_engine import NarrationEngine
from scenecast.services.timeline_builder import build_timeline, total_duration
from scenecast.services.tts_client import build_providers
from scenecast.storage.repository import ManifestRepository
from scenecast.storage.voice_cache import VoiceCache
from scenecast.utils.error_handler import (
    ScenecastError,
    StrictVoiceError,
    ToolNotFoundError,
    format_error_message,
    get_fallback_suggestion,
)
from scenecast.utils.io_utils import reset_dir
from scenecast.utils.media_tools import has_command, probe_duration

REQUIRED_TOOLS = ("ffmpeg", "ffprobe")


def check_tools() -> None:
    """
    Make sure the media tools are installed.

    Raises:
        ToolNotFoundError: If ffmpeg or ffprobe is missing from PATH
    """
    missing = [tool for tool in REQUIRED_TOOLS if not has_command(tool)]
    if missing:
        raise ToolNotFoundError(
            f"{' and '.join(missing)} required for tutorial video composition but not found on PATH"
        )


def check_strict_voice(settings: Settings, voice: VoiceoverResult) -> None:
    """
    Enforce strict voice mode.

    Any run without narration fails. A pinned provider must also be the one
    that produced the narration.

    Raises:
        StrictVoiceError: If strict mode is on and the narration does not qualify
    """
    if not settings.strict_voice:
        return

    requested = voice.requested_provider
    if voice.provider == "none":
        raise StrictVoiceError(
            f"Strict voice mode failed: requested '{requested}', no provider succeeded.",
            requested,
            voice.attempted_providers,
        )
    if requested not in ("auto", "none") and voice.provider != requested:
        raise StrictVoiceError(
            f"Strict voice mode failed: requested '{requested}', produced '{voice.provider}'.",
            requested,
            voice.attempted_providers,
        )


def compose_video(settings: Settings, logger: Any) -> BuildRecord:
    """
    Run every composition step for one manifest.

    Args:
        settings: Application settings
        logger: Logger instance

    Returns:
        The build record written to tutorial-metadata.json

    Raises:
        ScenecastError: On any fatal failure
    """
    out_dir = Path(settings.out_dir)
    fade = settings.scene_fade

    # Nothing is written before the environment and manifest are known to be good
    check_tools()
    repository = ManifestRepository(settings, logger)
    manifest = repository.load_manifest()
    scenes = manifest.scenes

    work_dir = reset_dir(out_dir / "work")
    assembler = Assembler(settings, logger)
    captions = CaptionBuilder(settings, logger)

    # Step 1: Normalize clips
    logger.info("Step 1: Normalizing scene clips...")
    normalizer = ClipNormalizer(settings, logger)
    clip_paths = [repository.resolve_clip(scene.clip) for scene in scenes]
    normalized = normalizer.normalize(scenes, clip_paths, manifest.size, work_dir)

    # Step 2: Build timeline
    logger.info("Step 2: Building timeline...")
    durations = [probe_duration(clip) for clip in normalized]
    timeline = build_timeline(durations, fade)
    output_duration = total_duration(timeline)
    for seg in timeline:
        logger.debug(f"  Scene {seg.index + 1}: {seg.start:.3f}s → {seg.end:.3f}s")
    logger.info(f"Timeline: {len(timeline)} scenes, {output_duration:.2f}s total")

    # Step 3: Compose video
    logger.info("Step 3: Cross-fading clips...")
    joined_video = work_dir / "video-joined.mp4"
    CrossfadeComposer(settings, logger).compose(normalized, durations, fade, joined_video)

    # Step 4: Voiceover
    logger.info("Step 4: Rendering voiceover...")
    assembler.write_narration_transcript(scenes, out_dir / "narration.txt")
    cache_dir = Path(settings.voice_cache_dir) if settings.voice_cache_dir else out_dir / "cache" / "voice"
    cache = VoiceCache(cache_dir, logger)
    engine = NarrationEngine(settings, logger, build_providers(settings, logger), cache)
    voice = engine.render_voiceover(scenes, timeline, fade, work_dir, out_dir)
    check_strict_voice(settings, voice)

    # Step 5: Captions
    logger.info("Step 5: Writing captions...")
    cues = voice.caption_cues
    caption_mode = voice.caption_mode
    if not cues:
        cues = captions.estimated_cues(scenes, timeline, fade)
        caption_mode = CaptionMode.ESTIMATED
    srt_path = out_dir / "captions.srt"
    final_cues = captions.write_srt(cues, srt_path, output_duration)
    captions.write_cues_json(final_cues, out_dir / "caption-cues.json")

    # Step 6: Mux
    logger.info("Step 6: Muxing final video...")
    final_video = out_dir / "tutorial.mp4"
    if voice.state == VoiceState.SUCCEEDED and voice.voiceover_path:
        assembler.mux(joined_video, Path(voice.voiceover_path), srt_path, final_video, master=True)
    else:
        silence = assembler.create_silence_track(work_dir / "voiceover-silent.wav", output_duration)
        assembler.mux(joined_video, silence, srt_path, final_video, master=False)

    # Step 7: Build record
    logger.info("Step 7: Writing build metadata...")
    record = assembler.build_record(final_video, scenes, timeline, voice, final_cues, caption_mode)
    assembler.write_build_record(record, out_dir / "tutorial-metadata.json")

    logger.info(
        f"Tutorial video ready: {final_video} (voice={voice.provider}, captions={caption_mode.value}, "
        f"cues={len(final_cues)}, cache={voice.cache_stats.hits} hit/{voice.cache_stats.misses} miss)"
    )
    return record


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Scenecast - compose a narrated tutorial video from recorded scenes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--out-dir",
        type=str,
        default=None,
        help="Directory holding scene-manifest.json and the raw clips (default: artifacts/tutorial-video)",
    )
    parser.add_argument(
        "--manifest",
        type=str,
        default=None,
        help="Explicit scene manifest path (default: <out-dir>/scene-manifest.json)",
    )
    parser.add_argument(
        "--voice-provider",
        type=str,
        default=None,
        help="Voice provider: auto, none, elevenlabs, edge, say, espeak-ng, espeak (default: auto)",
    )
    parser.add_argument(
        "--strict-voice",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Fail unless the requested provider produced the narration",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entrypoint for the compose pipeline."""
    args = _build_parser().parse_args(argv)

    overrides: dict[str, Any] = {}
    if args.out_dir is not None:
        overrides["out_dir"] = args.out_dir
    if args.manifest is not None:
        overrides["manifest_path"] = args.manifest
    if args.voice_provider is not None:
        overrides["voice_provider"] = args.voice_provider
    if args.strict_voice is not None:
        overrides["strict_voice"] = args.strict_voice
    if args.log_level is not None:
        overrides["log_level"] = args.log_level

    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        get_logger(__name__).error(f"\n❌ Invalid configuration: {e}")
        return 1

    setup_logging(
        log_level=settings.log_level,
        log_file=Path(settings.log_file) if settings.log_file else None,
    )
    logger = get_logger(__name__, out_dir=settings.out_dir)

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} - Compose Tutorial Video")
    logger.info(f"Output directory: {settings.out_dir}")
    logger.info(f"Voice provider: {settings.voice_provider}{' (strict)' if settings.strict_voice else ''}")
    logger.info("=" * 60)

    start_time = time.time()
    try:
        record = compose_video(settings, logger)
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user")
        return 1
    except ScenecastError as e:
        logger.error(
            format_error_message(
                "Composing tutorial video",
                e,
                context={"out_dir": settings.out_dir},
                suggestion=get_fallback_suggestion(e),
            )
        )
        return 1

    logger.info("=" * 60)
    logger.info("COMPOSE COMPLETE!")
    logger.info("=" * 60)
    logger.info(f"Duration: {record.duration_seconds:.2f}s across {record.scene_count} scenes")
    logger.info(f"Elapsed: {time.time() - start_time:.2f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
