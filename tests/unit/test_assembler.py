"""Tests for the assembler."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from scenecast.models.schemas import (
    AudioConfig,
    CaptionCue,
    CaptionMode,
    ProviderAttempt,
    SceneEntry,
    VoiceoverResult,
    VoiceState,
)
from scenecast.services.assembler import Assembler
from scenecast.services.timeline_builder import build_timeline


@pytest.fixture
def assembler(settings, logger):
    """Create Assembler instance for testing."""
    return Assembler(settings, logger)


@patch("scenecast.services.assembler.ffmpeg")
def test_concat_filter(mock_ffmpeg, assembler, tmp_path):
    tracks = [tmp_path / "01.wav", tmp_path / "02.wav", tmp_path / "03.wav"]

    assembler.concat_scene_tracks(tracks, tmp_path / "voiceover.wav")

    args = mock_ffmpeg.call_args[0][0]
    assert args[args.index("-filter_complex") + 1] == "[0:a][1:a][2:a]concat=n=3:v=0:a=1[a]"
    assert args[args.index("-ac") + 1] == "1"


@patch("scenecast.services.assembler.ffmpeg")
def test_concat_single_track_is_copied(mock_ffmpeg, assembler, tmp_path):
    track = tmp_path / "01.wav"
    track.write_bytes(b"wav")

    assembler.concat_scene_tracks([track], tmp_path / "out" / "voiceover.wav")

    mock_ffmpeg.assert_not_called()
    assert (tmp_path / "out" / "voiceover.wav").read_bytes() == b"wav"


@patch("scenecast.services.assembler.ffmpeg")
def test_mux_masters_narration(mock_ffmpeg, assembler, settings, tmp_path):
    assembler.mux(tmp_path / "v.mp4", tmp_path / "a.wav", tmp_path / "c.srt", tmp_path / "tutorial.mp4")

    args = mock_ffmpeg.call_args[0][0]
    assert args[args.index("-filter:a") + 1] == settings.voice_mastering_filter
    assert args[args.index("-c:s") + 1] == "mov_text"
    assert "language=eng" in args
    assert args[args.index("-b:a") + 1] == "192k"


@patch("scenecast.services.assembler.ffmpeg")
def test_mux_silence_is_not_mastered(mock_ffmpeg, assembler, tmp_path):
    assembler.mux(tmp_path / "v.mp4", tmp_path / "a.wav", tmp_path / "c.srt", tmp_path / "t.mp4", master=False)

    assert "-filter:a" not in mock_ffmpeg.call_args[0][0]


def test_narration_transcript(assembler, tmp_path):
    scenes = [
        SceneEntry(id="intro", voiceover="Hello  there.", clip="a.webm"),
        SceneEntry(id="run", caption="Run it", clip="b.webm"),
    ]
    path = tmp_path / "narration.txt"

    assembler.write_narration_transcript(scenes, path)

    assert path.read_text(encoding="utf-8") == "Scene 1 (intro): Hello there.\nScene 2 (run): Run it\n"


def test_build_record(assembler, tmp_path):
    """Test the build record rounds durations and uses a 1-based timeline."""
    scenes = [SceneEntry(id="a", clip="a.webm"), SceneEntry(id="b", clip="b.webm")]
    timeline = build_timeline([3.12345, 2.0], 0.35)
    voice = VoiceoverResult(
        provider="edge",
        state=VoiceState.SUCCEEDED,
        voiceover_path=str(tmp_path / "voiceover.wav"),
        scene_audio=["01-a-fit.wav", "02-b-fit.wav"],
        attempted_providers=[ProviderAttempt(provider="edge", ok=True, scenes_completed=2)],
        requested_provider="auto",
        audio_config=AudioConfig(target_scene_gap_seconds=0.12, clip_fade_out_seconds=0.09),
    )
    cues = [CaptionCue(start=0.0, end=4.77, text="hi")]

    record = assembler.build_record(
        tmp_path / "tutorial.mp4", scenes, timeline, voice, cues, CaptionMode.ESTIMATED, duration=4.77345
    )
    out = tmp_path / "tutorial-metadata.json"
    assembler.write_build_record(record, out)
    data = json.loads(out.read_text(encoding="utf-8"))

    assert data["duration_seconds"] == 4.77
    assert data["voiceover"] == "voiceover.wav"
    assert data["voice_provider"] == "edge"
    assert data["captions"] == {
        "file": "captions.srt",
        "cue_count": 1,
        "mode": "estimated",
        "cues_json": "caption-cues.json",
    }
    assert data["timeline_seconds"][1] == {"index": 2, "start": 2.773, "end": 4.773}
    assert data["clip_first_trim_start_seconds"] == 0.95
    assert data["attempted_voice_providers"][0]["scenes_completed"] == 2
