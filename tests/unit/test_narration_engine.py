"""Tests for the narration engine fallback chain."""

from unittest.mock import patch

import pytest

from scenecast.models.schemas import CaptionMode, CharacterAlignment, ProviderOutput, SceneEntry, VoiceState
from scenecast.services.narration_engine import NarrationEngine
from scenecast.services.timeline_builder import build_timeline
from scenecast.services.tts_client import VoiceProvider
from scenecast.storage.voice_cache import VoiceCache
from scenecast.utils.error_handler import ProviderError


class FakeProvider(VoiceProvider):
    """Provider that writes placeholder audio and can fail on chosen text."""

    def __init__(self, settings, logger, name, available=True, fail_on=None, aligned=False):
        super().__init__(settings, logger)
        self.name = name
        self.available = available
        self.fail_on = fail_on
        self.aligned = aligned
        self.calls = []

    def is_available(self):
        return self.available

    def cache_settings(self):
        return {"voice": f"{self.name}-test"}

    def synthesize(self, text, out_path, work_dir):
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise ProviderError(self.name, f"could not voice '{text}'")
        out_path.write_bytes(f"{self.name}:{text}".encode("utf-8"))
        alignment = None
        if self.aligned:
            alignment = CharacterAlignment(
                characters=list(text),
                starts=[i * 0.05 for i in range(len(text))],
                ends=[(i + 1) * 0.05 for i in range(len(text))],
            )
        return ProviderOutput(duration=1.0, alignment=alignment)


@pytest.fixture
def scenes():
    """Two narrated scenes."""
    return [
        SceneEntry(id="intro", title="Intro", voiceover="Welcome to the editor.", clip="intro.webm"),
        SceneEntry(id="run", title="Run", voiceover="Press play to run it.", clip="run.webm"),
    ]


@pytest.fixture
def timeline():
    return build_timeline([3.0, 3.0], 0.35)


@pytest.fixture
def dirs(tmp_path):
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    return tmp_path / "work", out_dir


@pytest.fixture
def media_stubs():
    """Stub every ffmpeg call and duration read the engine makes."""
    with patch("scenecast.services.voice_fitter.ffmpeg") as fit_ffmpeg, patch(
        "scenecast.services.assembler.ffmpeg"
    ) as assemble_ffmpeg, patch("scenecast.services.narration_engine.probe_duration", return_value=1.0):
        yield fit_ffmpeg, assemble_ffmpeg


def _engine(settings, logger, providers, tmp_path):
    return NarrationEngine(settings, logger, providers, VoiceCache(tmp_path / "cache", logger))


def test_first_available_provider_voices_everything(settings, logger, scenes, timeline, dirs, media_stubs, tmp_path):
    edge = FakeProvider(settings, logger, "edge")
    engine = _engine(settings, logger, [edge], tmp_path)

    result = engine.render_voiceover(scenes, timeline, 0.35, *dirs)

    assert result.provider == "edge"
    assert result.state == VoiceState.SUCCEEDED
    assert engine.state == VoiceState.SUCCEEDED
    assert result.scene_audio == ["01-intro-fit.wav", "02-run-fit.wav"]
    assert result.voiceover_path.endswith("voiceover.wav")
    assert result.caption_mode == CaptionMode.ESTIMATED
    assert result.cache_stats.misses == 2
    assert result.caption_cues[0].start == pytest.approx(0.0)
    assert result.caption_cues[-1].start >= timeline[1].start


def test_fallback_discards_failed_provider(settings, logger, scenes, timeline, dirs, media_stubs, tmp_path):
    """Test a provider failing mid-run is abandoned and the next one restarts from scene 1."""
    edge = FakeProvider(settings, logger, "edge", fail_on="Press play")
    say = FakeProvider(settings, logger, "say")
    engine = _engine(settings, logger, [edge, say], tmp_path)

    result = engine.render_voiceover(scenes, timeline, 0.35, *dirs)

    assert result.provider == "say"
    assert [a.provider for a in result.attempted_providers] == ["edge", "say"]
    failed, succeeded = result.attempted_providers
    assert failed.ok is False
    assert failed.scenes_completed == 0
    assert failed.failed_scene == "run"
    assert "Press play" in failed.reason
    assert succeeded.ok is True
    assert succeeded.scenes_completed == 2
    assert say.calls == ["Welcome to the editor.", "Press play to run it."]


def test_all_providers_fail(settings, logger, scenes, timeline, dirs, media_stubs, tmp_path):
    edge = FakeProvider(settings, logger, "edge", fail_on="Welcome")
    engine = _engine(settings, logger, [edge], tmp_path)

    result = engine.render_voiceover(scenes, timeline, 0.35, *dirs)

    assert result.provider == "none"
    assert result.state == VoiceState.EXHAUSTED
    assert result.voiceover_path is None
    assert result.caption_cues == []
    assert len(result.attempted_providers) == 1


def test_short_voice_track_abandons_provider(settings, logger, scenes, timeline, dirs, media_stubs, tmp_path):
    """Test a provider whose audio is too short to be speech is abandoned before any scene is kept."""
    edge = FakeProvider(settings, logger, "edge")
    say = FakeProvider(settings, logger, "say")
    engine = _engine(settings, logger, [edge, say], tmp_path)

    def durations(path):
        return 0.05 if "scene-voice-edge" in str(path) else 1.0

    with patch("scenecast.services.narration_engine.probe_duration", side_effect=durations):
        result = engine.render_voiceover(scenes, timeline, 0.35, *dirs)

    assert result.provider == "say"
    failed, succeeded = result.attempted_providers
    assert failed.provider == "edge"
    assert failed.ok is False
    assert failed.reason == "raw voice track too short"
    assert failed.scenes_completed == 0
    assert failed.failed_scene == "intro"
    assert edge.calls == ["Welcome to the editor."]
    assert succeeded.ok is True
    assert succeeded.scenes_completed == 2
    assert say.calls == ["Welcome to the editor.", "Press play to run it."]


def test_pinned_unavailable_is_recorded(settings, logger, scenes, timeline, dirs, media_stubs, tmp_path):
    """Test a strict pinned provider that is not installed yields an all-failed attempt log."""
    strict = settings.model_copy(update={"voice_provider": "say", "strict_voice": True})
    say = FakeProvider(strict, logger, "say", available=False)
    edge = FakeProvider(strict, logger, "edge")
    engine = _engine(strict, logger, [edge, say], tmp_path)

    result = engine.render_voiceover(scenes, timeline, 0.35, *dirs)

    assert result.provider == "none"
    assert result.requested_provider == "say"
    assert [(a.provider, a.ok) for a in result.attempted_providers] == [("say", False)]
    assert result.attempted_providers[0].reason == "say is not available"
    assert result.provider_availability == {"edge": True, "say": False}
    assert edge.calls == []


def test_second_run_hits_cache(settings, logger, scenes, timeline, dirs, media_stubs, tmp_path):
    """Test unchanged scenes are served from the cache on a re-run."""
    edge = FakeProvider(settings, logger, "edge")
    engine = _engine(settings, logger, [edge], tmp_path)

    engine.render_voiceover(scenes, timeline, 0.35, *dirs)
    result = engine.render_voiceover(scenes, timeline, 0.35, *dirs)

    assert len(edge.calls) == 2
    assert result.cache_stats.hits == 2
    assert result.cache_stats.misses == 0


def test_alignment_gives_aligned_captions(settings, logger, scenes, timeline, dirs, media_stubs, tmp_path):
    edge = FakeProvider(settings, logger, "edge", aligned=True)
    engine = _engine(settings, logger, [edge], tmp_path)

    result = engine.render_voiceover(scenes, timeline, 0.35, *dirs)

    assert result.caption_mode == CaptionMode.ALIGNED
    assert result.caption_cues[0].text == "Welcome to the editor."


def test_scene_without_text_gets_silence(settings, logger, timeline, dirs, media_stubs, tmp_path):
    """Test a scene with no narration gets a silent slot and its label as caption."""
    _, assemble_ffmpeg = media_stubs
    scenes = [
        SceneEntry(id="intro", voiceover="Welcome.", clip="intro.webm"),
        SceneEntry(id="outro", clip="outro.webm"),
    ]
    edge = FakeProvider(settings, logger, "edge")
    engine = _engine(settings, logger, [edge], tmp_path)

    result = engine.render_voiceover(scenes, timeline, 0.35, *dirs)

    assert edge.calls == ["Welcome."]
    assert result.caption_cues[-1].text == "Scene 2"
    assert result.caption_cues[-1].end == pytest.approx(timeline[1].end)
    silence_args = assemble_ffmpeg.call_args_list[0][0][0]
    assert "anullsrc=channel_layout=mono:sample_rate=48000" in silence_args
