"""Application configuration using pydantic-settings."""

from typing import Annotated, Any, Optional

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

KNOWN_VOICE_PROVIDERS = ("auto", "none", "elevenlabs", "edge", "say", "espeak-ng", "espeak")

PROVIDER_ALIASES = {"11labs": "elevenlabs"}

DEFAULT_TRANSITIONS = [
    "fade",
    "smoothleft",
    "fadeblack",
    "wipeleft",
    "circleopen",
    "smoothup",
    "slideright",
    "fade",
]

DEFAULT_MASTERING_FILTER = (
    "highpass=f=65,lowpass=f=12000,"
    "acompressor=threshold=-18dB:ratio=2.6:attack=18:release=220:makeup=2,"
    "loudnorm=I=-16:TP=-1.5:LRA=7"
)

# (low, high) bounds applied to numeric settings; out-of-range values are clamped
CLAMPED_FIELDS: dict[str, tuple[float, float]] = {
    "scene_fade": (0.05, 1.2),
    "scene_trim_start": (0.0, 1.2),
    "scene_settle_pad": (0.0, 0.3),
    "caption_max_words": (3, 20),
    "caption_max_seconds": (0.8, 6.0),
    "caption_min_seconds": (0.2, 2.5),
    "scene_audio_gap": (0.0, 0.8),
    "scene_audio_clip_fade": (0.02, 0.4),
    "elevenlabs_stability": (0.0, 1.0),
    "elevenlabs_similarity": (0.0, 1.0),
    "elevenlabs_style": (0.0, 1.0),
    "elevenlabs_speed": (0.7, 1.2),
    "elevenlabs_timeout_ms": (2000, 180000),
}


def normalize_provider_name(value: Optional[str]) -> str:
    """Lower-case a provider name and resolve known aliases."""
    lowered = str(value or "").strip().lower()
    return PROVIDER_ALIASES.get(lowered, lowered)


class Settings(BaseSettings):
    """
    Composition settings loaded from environment variables.

    Every setting can be given as TUTORIAL_<FIELD_NAME> in the environment or
    in a .env file. The instance is frozen: build it once at startup and pass
    it to every service.
    """

    model_config = SettingsConfigDict(
        env_prefix="TUTORIAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="Scenecast", description="Application name")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")

    # ========================================================================
    # Input / Output
    # ========================================================================
    out_dir: str = Field(
        default="artifacts/tutorial-video",
        validation_alias=AliasChoices("TUTORIAL_VIDEO_OUT_DIR", "TUTORIAL_OUT_DIR"),
        description="Directory holding the manifest, raw clips and all outputs",
    )
    manifest_name: str = Field(default="scene-manifest.json", description="Manifest file name inside out_dir")
    manifest_path: Optional[str] = Field(default=None, description="Explicit manifest path (overrides manifest_name)")

    # ========================================================================
    # Clip Normalization & Timeline
    # ========================================================================
    frame_rate: int = Field(default=30, description="Output frame rate")
    scene_fade: float = Field(default=0.35, description="Cross-fade duration in seconds")
    scene_trim_start: float = Field(default=0.18, description="Lead-in trimmed from every clip")
    scene_first_trim_start: Optional[float] = Field(
        default=None,
        description="Lead-in trimmed from the first clip (default: max(scene_trim_start, 0.95))",
    )
    scene_settle_pad: float = Field(default=0.06, description="Seconds of cloned first frame prepended to each clip")
    scene_transitions: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_TRANSITIONS),
        description="Comma-separated xfade transition styles, used round-robin",
    )

    # ========================================================================
    # Captions
    # ========================================================================
    caption_max_words: int = Field(default=8, description="Maximum words per caption cue")
    caption_max_seconds: float = Field(default=2.6, description="Maximum seconds per caption cue")
    caption_min_seconds: float = Field(default=0.6, description="Minimum caption cue duration")
    caption_min_break_words: int = Field(
        default=3,
        ge=1,
        description="Words a cue must hold before sentence punctuation splits it",
    )

    # ========================================================================
    # Voice (TTS) Settings
    # ========================================================================
    voice_provider: str = Field(
        default="auto",
        description="Voice provider: auto, none, elevenlabs, edge, say, espeak-ng, espeak",
    )
    strict_voice: bool = Field(
        default=False,
        validation_alias=AliasChoices("TUTORIAL_VOICE_STRICT", "TUTORIAL_STRICT_VOICE"),
        description="Fail the run unless the requested provider produced the narration",
    )
    voice_cache_dir: Optional[str] = Field(default=None, description="Voice cache directory (default: <out_dir>/cache/voice)")
    voice_name: Optional[str] = Field(default=None, description="Voice name for CLI providers")
    voice_rate: str = Field(default="+0%", description="edge-tts rate")
    voice_pitch: str = Field(default="+0Hz", description="edge-tts pitch")
    voice_volume: str = Field(default="+0%", description="edge-tts volume")
    voice_rate_wpm: Optional[str] = Field(default=None, description="Words per minute for say/espeak")
    scene_audio_gap: float = Field(default=0.12, description="Trailing silence kept after each scene's speech")
    scene_audio_clip_fade: float = Field(default=0.09, description="Fade-out applied when speech is trimmed")
    voice_mastering_filter: str = Field(default=DEFAULT_MASTERING_FILTER, description="ffmpeg audio mastering chain")

    # ========================================================================
    # ElevenLabs
    # ========================================================================
    elevenlabs_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ELEVENLABS_API_KEY", "TUTORIAL_ELEVENLABS_API_KEY"),
        description="ElevenLabs API key",
    )
    elevenlabs_voice_id: str = Field(default="pqHfZKP75CvOlQylNhV4", description="ElevenLabs voice ID")
    elevenlabs_model_id: str = Field(default="eleven_turbo_v2_5", description="ElevenLabs model ID")
    elevenlabs_output_format: str = Field(default="mp3_44100_128", description="ElevenLabs output format")
    elevenlabs_endpoint: str = Field(default="https://api.elevenlabs.io", description="ElevenLabs API base URL")
    elevenlabs_stability: float = Field(default=0.4)
    elevenlabs_similarity: float = Field(default=0.7)
    elevenlabs_style: float = Field(default=0.25)
    elevenlabs_speaker_boost: bool = Field(default=True)
    elevenlabs_speed: float = Field(default=1.0)
    elevenlabs_timeout_ms: int = Field(default=90000, description="Request timeout in milliseconds")

    @field_validator("scene_transitions", mode="before")
    @classmethod
    def _split_transitions(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",")]
        if isinstance(value, (list, tuple)):
            cleaned = [str(part).strip() for part in value if str(part).strip()]
            return cleaned or list(DEFAULT_TRANSITIONS)
        return value

    @field_validator("voice_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> str:
        name = normalize_provider_name(value) or "auto"
        if name not in KNOWN_VOICE_PROVIDERS:
            raise ValueError(f"Unknown voice provider '{value}'. Expected one of: {', '.join(KNOWN_VOICE_PROVIDERS)}")
        return name

    @model_validator(mode="before")
    @classmethod
    def _clamp_ranges(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        clamped = dict(data)
        for key, value in data.items():
            bounds = CLAMPED_FIELDS.get(key.lower()) if isinstance(key, str) else None
            if bounds is None or value is None:
                continue
            try:
                number = float(value)
            except (TypeError, ValueError):
                continue
            low, high = bounds
            number = max(low, min(high, number))
            clamped[key] = int(number) if isinstance(low, int) and isinstance(high, int) else number
        return clamped

    @property
    def first_scene_trim_start(self) -> float:
        """Lead-in trimmed from the first clip, never shorter than the regular trim."""
        if self.scene_first_trim_start is None:
            base = max(self.scene_trim_start, 0.95)
        else:
            base = self.scene_first_trim_start
        return max(self.scene_trim_start, min(2.5, base))

    def cli_voice_name(self, default: str) -> str:
        """Voice name for a CLI provider, falling back to that provider's default."""
        return self.voice_name or default

    def cli_rate_wpm(self, default: str) -> str:
        """Speaking rate for say/espeak, falling back to that provider's default."""
        return self.voice_rate_wpm or default
