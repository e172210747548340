"""Tests for the compose pipeline orchestrator."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from scenecast.models.schemas import (
    AudioConfig,
    BuildRecord,
    CaptionCue,
    CaptionMode,
    CaptionSummary,
    ProviderAttempt,
    VoiceoverResult,
    VoiceState,
)
from scenecast.pipelines.compose_video import check_strict_voice, main
from scenecast.utils.error_handler import StrictVoiceError

AUDIO = AudioConfig(target_scene_gap_seconds=0.12, clip_fade_out_seconds=0.09)


@pytest.fixture
def out_dir(tmp_path):
    """Output directory holding a two-scene manifest."""
    out = tmp_path / "out"
    out.mkdir()
    (out / "scene-manifest.json").write_text(
        json.dumps(
            {
                "size": {"width": 1280, "height": 720},
                "scenes": [
                    {"id": "intro", "title": "Intro", "voiceover": "Welcome.", "clip": "raw/intro.webm"},
                    {"id": "run", "title": "Run", "voiceover": "Press play.", "clip": "raw/run.webm"},
                ],
            }
        ),
        encoding="utf-8",
    )
    return out


def _voice(provider="edge", state=VoiceState.SUCCEEDED, requested="auto", attempts=None, cues=None):
    return VoiceoverResult(
        provider=provider,
        state=state,
        voiceover_path="voiceover.wav" if state == VoiceState.SUCCEEDED else None,
        caption_cues=cues or [],
        caption_mode=CaptionMode.ESTIMATED,
        attempted_providers=attempts or [],
        requested_provider=requested,
        audio_config=AUDIO,
    )


@pytest.fixture
def pipeline_mocks():
    """Patch external tools and media steps used by the orchestrator."""
    with patch("scenecast.pipelines.compose_video.has_command", return_value=True), patch(
        "scenecast.pipelines.compose_video.ClipNormalizer"
    ) as normalizer_class, patch("scenecast.pipelines.compose_video.CrossfadeComposer") as composer_class, patch(
        "scenecast.pipelines.compose_video.probe_duration", return_value=3.0
    ), patch("scenecast.pipelines.compose_video.NarrationEngine") as engine_class, patch(
        "scenecast.pipelines.compose_video.Assembler"
    ) as assembler_class:
        normalizer_class.return_value.normalize.return_value = [Path("01-intro.mp4"), Path("02-run.mp4")]
        assembler = assembler_class.return_value
        assembler.build_record.return_value = BuildRecord(
            scene_count=2,
            duration_seconds=5.65,
            voice_provider="edge",
            requested_voice_provider="auto",
            voice_audio=AUDIO,
            captions=CaptionSummary(cue_count=1, mode=CaptionMode.ESTIMATED),
            fade_seconds=0.35,
            clip_trim_start_seconds=0.18,
            clip_first_trim_start_seconds=0.95,
            clip_settle_pad_seconds=0.06,
        )
        yield {
            "engine": engine_class.return_value,
            "assembler": assembler,
            "composer": composer_class.return_value,
        }


def test_pipeline_success(out_dir, pipeline_mocks):
    """Test a full run writes captions and muxes the mastered narration."""
    pipeline_mocks["engine"].render_voiceover.return_value = _voice(
        cues=[CaptionCue(start=0.0, end=2.0, text="Welcome."), CaptionCue(start=2.65, end=3.5, text="Press play.")]
    )

    result = main(["--out-dir", str(out_dir)])

    assert result == 0
    pipeline_mocks["composer"].compose.assert_called_once()
    mux_kwargs = pipeline_mocks["assembler"].mux.call_args
    assert mux_kwargs[1]["master"] is True
    srt = (out_dir / "captions.srt").read_text(encoding="utf-8")
    assert "00:00:05,650" in srt
    cues = json.loads((out_dir / "caption-cues.json").read_text(encoding="utf-8"))
    assert cues[-1]["end"] == pytest.approx(5.65)
    pipeline_mocks["assembler"].write_build_record.assert_called_once()
    assert (out_dir / "work").is_dir()


def test_exhausted_narration_uses_silence(out_dir, pipeline_mocks):
    """Test a run without any provider muxes an unmastered silent track and estimated captions."""
    pipeline_mocks["engine"].render_voiceover.return_value = _voice(provider="none", state=VoiceState.EXHAUSTED)
    assembler = pipeline_mocks["assembler"]
    assembler.create_silence_track.return_value = out_dir / "work" / "voiceover-silent.wav"

    result = main(["--out-dir", str(out_dir), "--voice-provider", "none"])

    assert result == 0
    assert assembler.create_silence_track.call_args[0][1] == pytest.approx(5.65)
    assert assembler.mux.call_args[1]["master"] is False
    cues = json.loads((out_dir / "caption-cues.json").read_text(encoding="utf-8"))
    assert cues[0]["text"] == "Welcome."
    record_args = assembler.build_record.call_args[0]
    assert record_args[5] == CaptionMode.ESTIMATED


def test_strict_pinned_provider_failure_returns_error(out_dir, pipeline_mocks):
    attempts = [ProviderAttempt(provider="say", ok=False, reason="say is not available")]
    pipeline_mocks["engine"].render_voiceover.return_value = _voice(
        provider="none", state=VoiceState.EXHAUSTED, requested="say", attempts=attempts
    )

    result = main(["--out-dir", str(out_dir), "--voice-provider", "say", "--strict-voice"])

    assert result == 1
    pipeline_mocks["assembler"].mux.assert_not_called()
    assert not (out_dir / "tutorial.mp4").exists()


def test_missing_manifest_returns_error(tmp_path, pipeline_mocks):
    """Test a missing manifest fails before anything is written."""
    out = tmp_path / "empty"

    assert main(["--out-dir", str(out)]) == 1
    assert not (out / "work").exists()


def test_missing_tools_return_error(out_dir):
    with patch("scenecast.pipelines.compose_video.has_command", return_value=False):
        assert main(["--out-dir", str(out_dir)]) == 1
    assert not (out_dir / "work").exists()


def test_invalid_provider_returns_error(out_dir):
    assert main(["--out-dir", str(out_dir), "--voice-provider", "festival"]) == 1


def test_strict_check_names_requested_provider(settings):
    strict = settings.model_copy(update={"strict_voice": True})
    attempts = [ProviderAttempt(provider="say", ok=False, reason="say is not available")]

    with pytest.raises(StrictVoiceError, match="requested 'say'") as exc_info:
        check_strict_voice(strict, _voice(provider="none", state=VoiceState.EXHAUSTED, requested="say", attempts=attempts))

    assert not any(a.ok for a in exc_info.value.attempts)


def test_strict_check_rejects_substitute_provider(settings):
    strict = settings.model_copy(update={"strict_voice": True})

    with pytest.raises(StrictVoiceError, match="produced 'edge'"):
        check_strict_voice(strict, _voice(provider="edge", requested="say"))


def test_strict_check_accepts_auto_success(settings):
    strict = settings.model_copy(update={"strict_voice": True})

    check_strict_voice(strict, _voice(provider="edge", requested="auto"))
    check_strict_voice(settings, _voice(provider="none", state=VoiceState.EXHAUSTED))
