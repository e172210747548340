"""Tests for fitting speech into scene slots."""

from pathlib import Path
from unittest.mock import patch

import pytest

from scenecast.services.voice_fitter import VoiceFitter, fit_filter, plan_fit


def test_speech_that_fits_is_not_trimmed():
    """Test speech shorter than slot minus gap keeps the gap and is only padded."""
    fit = plan_fit(raw_duration=3.0, slot=4.0, desired_gap=0.12, clip_fade=0.09)

    assert fit.clipped is False
    assert fit.applied_gap == 0.12
    assert fit.cue_duration == pytest.approx(3.0)
    assert fit.trailing_gap == pytest.approx(1.0)
    assert fit.fade_out is None
    assert fit_filter(fit) == "apad"


def test_speech_filling_the_gap_drops_it():
    """Test speech that only fits without the gap is kept whole."""
    fit = plan_fit(raw_duration=3.95, slot=4.0, desired_gap=0.12, clip_fade=0.09)

    assert fit.clipped is False
    assert fit.applied_gap == 0.0
    assert fit.cue_duration == pytest.approx(3.95)


def test_long_speech_is_trimmed_and_faded():
    """Test speech longer than the slot is cut at the slot with a fade-out."""
    fit = plan_fit(raw_duration=5.0, slot=4.0, desired_gap=0.12, clip_fade=0.09)

    assert fit.clipped is True
    assert fit.applied_gap == 0.0
    assert fit.spoken_duration == pytest.approx(4.0)
    assert fit.cue_duration == pytest.approx(4.0)
    assert fit.fade_out == pytest.approx(0.09)
    assert fit_filter(fit) == "atrim=end=4.000,afade=t=out:st=3.910:d=0.090,apad"


def test_gap_bounded_by_tiny_slot():
    fit = plan_fit(raw_duration=0.05, slot=0.1, desired_gap=0.5, clip_fade=0.09)

    assert fit.applied_gap == pytest.approx(0.02)
    assert fit.clipped is False


@patch("scenecast.services.voice_fitter.ffmpeg")
def test_fit_renders_exact_slot(mock_ffmpeg, settings, logger, tmp_path):
    """Test the ffmpeg call pads and cuts the track to exactly the slot length."""
    fitter = VoiceFitter(settings, logger)
    raw = tmp_path / "raw.wav"
    out = tmp_path / "fit.wav"

    fit = fitter.fit(raw, out, slot=4.65, raw_duration=2.0)

    args = mock_ffmpeg.call_args[0][0]
    assert args[args.index("-t") + 1] == "4.650"
    assert args[args.index("-af") + 1] == "apad"
    assert args[args.index("-ar") + 1] == "48000"
    assert args[-1] == out
    assert fit.clipped is False
