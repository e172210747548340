"""Error types and user-facing diagnostics for the composition pipeline."""

import json
from typing import Any, Optional, Sequence


class ScenecastError(Exception):
    """Base class for every error the pipeline reports to the user."""


class ToolNotFoundError(ScenecastError):
    """A required external tool (ffmpeg, ffprobe) is not installed."""


class ManifestError(ScenecastError):
    """The scene manifest is missing, unparseable, empty or points at missing clips."""


class CommandError(ScenecastError):
    """An external command exited with a non-zero status."""

    def __init__(self, command: Sequence[str], stdout: str = "", stderr: str = ""):
        self.command = list(command)
        self.stdout = stdout
        self.stderr = stderr
        details = "\n".join(part for part in (" ".join(self.command), stdout, stderr) if part)
        super().__init__(f"Command failed:\n{details}")


class MediaProbeError(ScenecastError):
    """The duration of a media file could not be determined."""


class ProviderError(ScenecastError):
    """A voice provider could not synthesize a scene. Recoverable: the next provider is tried."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")


class StrictVoiceError(ScenecastError):
    """Strict voice mode was requested and the demanded provider did not produce the narration."""

    def __init__(self, message: str, requested: str, attempts: Sequence[Any]):
        self.requested = requested
        self.attempts = list(attempts)
        super().__init__(f"{message}\nAttempts: {format_attempts(self.attempts)}")


def format_attempts(attempts: Sequence[Any]) -> str:
    """Render a provider attempt log as indented JSON."""
    payload = [a.model_dump(mode="json") if hasattr(a, "model_dump") else a for a in attempts]
    return json.dumps(payload, indent=2)


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a user-friendly error message.

    Args:
        operation: What operation was being performed (e.g., "Composing tutorial video")
        error: The exception that occurred
        context: Additional context (e.g., {"out_dir": "artifacts/tutorial-video"})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    error_type = type(error).__name__
    error_msg = str(error)

    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items()]
        context_str = f" ({', '.join(context_parts)})"

    message = f"❌ {operation} failed{context_str}\n"
    message += f"   Error: {error_type}: {error_msg}"

    if suggestion:
        message += f"\n   💡 Suggestion: {suggestion}"

    return message


def get_fallback_suggestion(error: Exception) -> Optional[str]:
    """
    Get a suggestion for how to recover from a pipeline failure.

    Args:
        error: The exception

    Returns:
        Suggestion string or None
    """
    error_msg = str(error).lower()

    if isinstance(error, ToolNotFoundError):
        return "Install ffmpeg (which ships ffprobe) and make sure both are on PATH."

    if isinstance(error, ManifestError):
        return "Re-run scene capture to regenerate scene-manifest.json, or pass --manifest."

    if isinstance(error, StrictVoiceError):
        if "api key" in error_msg or "missing elevenlabs_api_key" in error_msg:
            return "Set ELEVENLABS_API_KEY in .env, or drop --strict-voice to allow fallback providers."
        if "not available" in error_msg:
            return f"Install the '{error.requested}' voice engine, or drop --strict-voice."
        if "timeout" in error_msg or "timed out" in error_msg:
            return "The cloud voice call timed out. Raise TUTORIAL_ELEVENLABS_TIMEOUT_MS and retry."
        return "Inspect the attempts above, or drop --strict-voice to allow fallback providers."

    if isinstance(error, CommandError):
        return "An ffmpeg step failed. Check the command output above; the input clip may be corrupt."

    return None
