"""Blocking wrappers around ffmpeg and the other external command-line tools."""

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Union

from moviepy import AudioFileClip, VideoFileClip

from scenecast.utils.error_handler import CommandError, MediaProbeError

AUDIO_SUFFIXES = {".wav", ".mp3", ".aiff", ".aif", ".m4a", ".aac", ".flac", ".ogg"}

AUDIO_SAMPLE_RATE = 48000

PathLike = Union[str, Path]


@dataclass
class CommandResult:
    """Captured outcome of an external command."""

    ok: bool
    stdout: str
    stderr: str


def _spawn(cmd: str, args: Sequence[PathLike]) -> subprocess.CompletedProcess:
    return subprocess.run(
        [cmd, *[str(a) for a in args]],
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
        check=False,
    )


def run_command(cmd: str, args: Sequence[PathLike]) -> str:
    """
    Run a command to completion and return its stripped stdout.

    Raises:
        CommandError: If the command cannot be started or exits non-zero
    """
    try:
        result = _spawn(cmd, args)
    except OSError as e:
        raise CommandError([cmd, *map(str, args)], stderr=str(e)) from e
    if result.returncode != 0:
        raise CommandError([cmd, *map(str, args)], result.stdout.strip(), result.stderr.strip())
    return result.stdout.strip()


def try_command(cmd: str, args: Sequence[PathLike]) -> CommandResult:
    """Run a command and report success instead of raising."""
    try:
        result = _spawn(cmd, args)
    except OSError as e:
        return CommandResult(ok=False, stdout="", stderr=str(e))
    return CommandResult(
        ok=result.returncode == 0,
        stdout=(result.stdout or "").strip(),
        stderr=(result.stderr or "").strip(),
    )


def has_command(cmd: str) -> bool:
    """Whether an executable is on PATH."""
    return shutil.which(cmd) is not None


def ffmpeg(args: Sequence[PathLike]) -> str:
    """Run ffmpeg, always overwriting outputs."""
    return run_command("ffmpeg", ["-y", "-hide_banner", "-loglevel", "error", *args])


def to_mono_wav(source: PathLike, target: PathLike) -> None:
    """Convert any audio file to 48 kHz mono WAV."""
    ffmpeg(["-i", source, "-ar", str(AUDIO_SAMPLE_RATE), "-ac", "1", target])


def probe_duration(path: PathLike) -> float:
    """
    Measure the duration of an audio or video file.

    Args:
        path: Media file

    Returns:
        Duration in seconds (always > 0)

    Raises:
        MediaProbeError: If the file cannot be read or reports no duration
    """
    path = Path(path)
    if not path.exists():
        raise MediaProbeError(f"Could not detect duration for {path}: file does not exist")

    try:
        if path.suffix.lower() in AUDIO_SUFFIXES:
            clip = AudioFileClip(str(path))
        else:
            clip = VideoFileClip(str(path), audio=False)
    except Exception as e:
        raise MediaProbeError(f"Could not detect duration for {path}: {e}") from e

    try:
        duration = float(clip.duration or 0.0)
    finally:
        clip.close()

    if duration <= 0:
        raise MediaProbeError(f"Could not detect duration for {path}")
    return duration
