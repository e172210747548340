"""TTS (Text-to-Speech) provider abstraction for multiple backends."""

import base64
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import requests

from scenecast.core.config import Settings
from scenecast.models.schemas import ProviderOutput
from scenecast.services.word_timing import alignment_from_payload
from scenecast.utils.error_handler import CommandError, MediaProbeError, ProviderError
from scenecast.utils.media_tools import has_command, probe_duration, to_mono_wav, try_command

MIN_AUDIO_SECONDS = 0.08


class VoiceProvider(ABC):
    """
    One speech synthesis backend.

    ``synthesize`` writes a 48 kHz mono WAV to ``out_path`` and raises
    ProviderError on any failure.
    """

    name: str = ""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the provider.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the backend can be used on this machine."""

    @abstractmethod
    def cache_settings(self) -> dict[str, Any]:
        """Settings that change the produced audio; part of the cache key."""

    @abstractmethod
    def synthesize(self, text: str, out_path: Path, work_dir: Path) -> ProviderOutput:
        """Synthesize ``text`` to ``out_path``."""

    def _convert(self, source: Path, out_path: Path) -> float:
        try:
            to_mono_wav(source, out_path)
            return probe_duration(out_path)
        except (CommandError, MediaProbeError) as e:
            raise ProviderError(self.name, f"{self.name} produced invalid audio: {e}") from e
        finally:
            source.unlink(missing_ok=True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class ElevenLabsProvider(VoiceProvider):
    """Cloud TTS with per-character timestamps."""

    name = "elevenlabs"

    def is_available(self) -> bool:
        return bool(self.settings.elevenlabs_api_key)

    def cache_settings(self) -> dict[str, Any]:
        s = self.settings
        return {
            "voice_id": s.elevenlabs_voice_id,
            "model_id": s.elevenlabs_model_id,
            "output_format": s.elevenlabs_output_format,
            "endpoint": s.elevenlabs_endpoint,
            "stability": s.elevenlabs_stability,
            "similarity_boost": s.elevenlabs_similarity,
            "style": s.elevenlabs_style,
            "use_speaker_boost": s.elevenlabs_speaker_boost,
            "speed": s.elevenlabs_speed,
        }

    def synthesize(self, text: str, out_path: Path, work_dir: Path) -> ProviderOutput:
        if not self.settings.elevenlabs_api_key:
            raise ProviderError(self.name, "Missing ELEVENLABS_API_KEY")

        s = self.settings
        url = f"{s.elevenlabs_endpoint.rstrip('/')}/v1/text-to-speech/{s.elevenlabs_voice_id}/with-timestamps"
        headers = {
            "Content-Type": "application/json",
            "xi-api-key": s.elevenlabs_api_key,
        }
        data = {
            "text": text,
            "model_id": s.elevenlabs_model_id,
            "output_format": s.elevenlabs_output_format,
            "voice_settings": {
                "stability": s.elevenlabs_stability,
                "similarity_boost": s.elevenlabs_similarity,
                "style": s.elevenlabs_style,
                "use_speaker_boost": s.elevenlabs_speaker_boost,
                "speed": s.elevenlabs_speed,
            },
        }

        try:
            response = requests.post(url, json=data, headers=headers, timeout=s.elevenlabs_timeout_ms / 1000)
        except requests.exceptions.Timeout as e:
            raise ProviderError(self.name, f"ElevenLabs request timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ProviderError(self.name, f"Network error calling ElevenLabs API: {e}") from e

        if response.status_code != 200:
            raise ProviderError(self.name, f"ElevenLabs {response.status_code}: {response.text[:400]}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(self.name, f"ElevenLabs returned invalid JSON: {e}") from e

        audio_b64 = payload.get("audio_base64") if isinstance(payload, dict) else None
        if not audio_b64:
            raise ProviderError(self.name, "ElevenLabs did not return audio_base64")

        try:
            audio_bytes = base64.b64decode(audio_b64)
        except ValueError as e:
            raise ProviderError(self.name, f"ElevenLabs returned malformed audio: {e}") from e

        raw_alignment = payload.get("normalized_alignment") or payload.get("alignment")
        alignment = alignment_from_payload(raw_alignment)
        if raw_alignment is not None and alignment is None:
            raise ProviderError(self.name, "ElevenLabs returned malformed alignment")

        raw_audio = work_dir / f"{out_path.stem}.elevenlabs.mp3"
        raw_audio.write_bytes(audio_bytes)
        duration = self._convert(raw_audio, out_path)

        return ProviderOutput(
            duration=duration,
            alignment=alignment,
            meta={
                "voice_id": s.elevenlabs_voice_id,
                "model_id": s.elevenlabs_model_id,
                "output_format": s.elevenlabs_output_format,
            },
        )


class EdgeTTSProvider(VoiceProvider):
    """Neural voices through the ``edge-tts`` command."""

    name = "edge"
    default_voice = "en-US-JennyNeural"

    def is_available(self) -> bool:
        return has_command("edge-tts")

    def cache_settings(self) -> dict[str, Any]:
        return {
            "voice": self.settings.cli_voice_name(self.default_voice),
            "rate": self.settings.voice_rate,
            "pitch": self.settings.voice_pitch,
            "volume": self.settings.voice_volume,
        }

    def synthesize(self, text: str, out_path: Path, work_dir: Path) -> ProviderOutput:
        params = self.cache_settings()
        tmp_media = work_dir / f"{out_path.stem}.edge.mp3"
        result = try_command(
            "edge-tts",
            [
                "--voice", params["voice"],
                "--rate", params["rate"],
                "--pitch", params["pitch"],
                "--volume", params["volume"],
                "--text", text,
                "--write-media", tmp_media,
            ],
        )
        if not result.ok:
            tmp_media.unlink(missing_ok=True)
            raise ProviderError(self.name, result.stderr or "edge-tts failed")
        return ProviderOutput(duration=self._convert(tmp_media, out_path))


class SayProvider(VoiceProvider):
    """The macOS ``say`` speech engine."""

    name = "say"
    default_voice = "Samantha"

    def is_available(self) -> bool:
        return has_command("say")

    def cache_settings(self) -> dict[str, Any]:
        return {
            "voice": self.settings.cli_voice_name(self.default_voice),
            "rate_wpm": self.settings.cli_rate_wpm("168"),
        }

    def synthesize(self, text: str, out_path: Path, work_dir: Path) -> ProviderOutput:
        params = self.cache_settings()
        txt_file = work_dir / f"{out_path.stem}.say.txt"
        aiff_file = work_dir / f"{out_path.stem}.aiff"
        txt_file.write_text(f"{text}\n", encoding="utf-8")

        # configured voice, then the stock voice, then whatever the system default is
        attempts = [
            ["-v", params["voice"], "-r", params["rate_wpm"]],
            ["-v", self.default_voice, "-r", params["rate_wpm"]],
            ["-r", params["rate_wpm"]],
        ]
        last_error = "say failed"
        try:
            for voice_args in attempts:
                aiff_file.unlink(missing_ok=True)
                result = try_command("say", [*voice_args, "-f", txt_file, "-o", aiff_file])
                if not result.ok:
                    last_error = result.stderr or last_error
                    continue
                try:
                    duration = self._convert(aiff_file, out_path)
                except ProviderError as e:
                    last_error = e.reason
                    continue
                if duration > MIN_AUDIO_SECONDS:
                    return ProviderOutput(duration=duration)
                last_error = "say produced empty audio"
        finally:
            txt_file.unlink(missing_ok=True)
            aiff_file.unlink(missing_ok=True)

        out_path.unlink(missing_ok=True)
        raise ProviderError(self.name, last_error)


class EspeakProvider(VoiceProvider):
    """Formant synthesis through ``espeak-ng`` or ``espeak``."""

    default_voice = "en-us+f3"

    def __init__(self, settings: Settings, logger: Any, command: str = "espeak-ng"):
        super().__init__(settings, logger)
        self.command = command
        self.name = command

    def is_available(self) -> bool:
        return has_command(self.command)

    def cache_settings(self) -> dict[str, Any]:
        return {
            "voice": self.settings.cli_voice_name(self.default_voice),
            "rate_wpm": self.settings.cli_rate_wpm("160"),
        }

    def synthesize(self, text: str, out_path: Path, work_dir: Path) -> ProviderOutput:
        params = self.cache_settings()
        raw_audio = work_dir / f"{out_path.stem}.{self.command}.wav"
        result = try_command(self.command, ["-s", params["rate_wpm"], "-v", params["voice"], text, "-w", raw_audio])
        if not result.ok:
            raw_audio.unlink(missing_ok=True)
            raise ProviderError(self.name, result.stderr or f"{self.command} failed")
        return ProviderOutput(duration=self._convert(raw_audio, out_path))


def build_providers(settings: Settings, logger: Any) -> list[VoiceProvider]:
    """All known providers in automatic priority order."""
    return [
        ElevenLabsProvider(settings, logger),
        EdgeTTSProvider(settings, logger),
        SayProvider(settings, logger),
        EspeakProvider(settings, logger, "espeak-ng"),
        EspeakProvider(settings, logger, "espeak"),
    ]


def pick_voice_providers(
    providers: list[VoiceProvider],
    preferred: str,
    strict: bool = False,
) -> tuple[list[VoiceProvider], dict[str, bool]]:
    """
    Order the candidates for the fallback chain.

    ``auto`` keeps every available provider in priority order. A pinned
    provider goes first even when unavailable, followed by the available
    others; in strict mode it is the only candidate. ``none`` yields no
    candidates.

    Returns:
        Tuple of (candidates, availability by provider name)
    """
    availability = {p.name: p.is_available() for p in providers}
    if preferred == "none":
        return [], availability

    available = [p for p in providers if availability[p.name]]
    if preferred == "auto":
        return available, availability

    pinned: Optional[VoiceProvider] = next((p for p in providers if p.name == preferred), None)
    if pinned is None:
        return ([] if strict else available), availability
    if strict:
        return [pinned], availability
    return [pinned] + [p for p in available if p is not pinned], availability
