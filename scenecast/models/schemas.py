"""Pydantic models and schemas for the scene composition pipeline."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from scenecast.utils.text_utils import normalize_caption


# ============================================================================
# Enums
# ============================================================================


class CaptionMode(str, Enum):
    """How caption timings were derived."""

    ALIGNED = "aligned"
    HYBRID = "hybrid"
    ESTIMATED = "estimated"


class VoiceState(str, Enum):
    """States of the voice provider fallback chain."""

    PENDING = "pending"
    TRYING = "trying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


# ============================================================================
# Manifest Models
# ============================================================================


class FrameSize(BaseModel):
    """Declared output frame size."""

    width: int = Field(default=1280, gt=0, description="Output width in pixels")
    height: int = Field(default=720, gt=0, description="Output height in pixels")


class SceneEntry(BaseModel):
    """One recorded scene from the manifest. Immutable."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str = Field(..., description="Scene identifier")
    title: str = Field(default="", description="Scene title")
    caption: str = Field(default="", description="On-screen caption text")
    voiceover: str = Field(default="", description="Narration text")
    clip: str = Field(..., description="Raw clip path, relative to the output directory")
    frame: Optional[str] = Field(default=None, description="Reference frame image path")

    @model_validator(mode="before")
    @classmethod
    def _blank_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = {**data, **{k: "" for k in ("title", "caption", "voiceover") if data.get(k) is None}}
        return data

    def spoken_text(self) -> str:
        """Narration text, falling back to caption then title."""
        return normalize_caption(self.voiceover or self.caption or self.title)

    def fallback_label(self, index: int) -> str:
        """Caption used when no words could be timed (0-based index)."""
        return normalize_caption(self.caption or self.title) or f"Scene {index + 1}"


class SceneManifest(BaseModel):
    """The ordered scene list produced by scene capture."""

    scenes: list[SceneEntry] = Field(default_factory=list, description="Scenes in playback order")
    size: FrameSize = Field(default_factory=FrameSize, description="Output frame size")

    @model_validator(mode="before")
    @classmethod
    def _default_size(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("size") is None:
            data = {**data, "size": {}}
        return data


# ============================================================================
# Timeline Models
# ============================================================================


class TimelineSegment(BaseModel):
    """The span one scene occupies in the composite video."""

    index: int = Field(..., ge=0, description="Scene index (0-based)")
    start: float = Field(..., description="Start time in seconds")
    end: float = Field(..., description="End time in seconds")
    duration: float = Field(..., gt=0, description="Trimmed clip duration")


# ============================================================================
# Voice Models
# ============================================================================


class CharacterAlignment(BaseModel):
    """Per-character timing returned by a voice provider."""

    characters: list[str] = Field(default_factory=list)
    starts: list[float] = Field(default_factory=list, description="Character start times in seconds")
    ends: list[float] = Field(default_factory=list, description="Character end times in seconds")


class ProviderOutput(BaseModel):
    """What a provider's synthesize() returns."""

    duration: float = Field(default=0.0, description="Audio duration in seconds (0 if unknown)")
    alignment: Optional[CharacterAlignment] = None
    meta: Optional[dict[str, Any]] = None


class SynthesisResult(ProviderOutput):
    """A provider output, possibly served from the voice cache."""

    cache_hit: bool = False
    cache_key: str = ""


class VoiceCacheEntry(BaseModel):
    """Metadata stored next to each cached audio file."""

    provider: str
    cache_key: str
    text: str
    settings: dict[str, Any] = Field(default_factory=dict)
    duration: float = 0.0
    alignment: Optional[CharacterAlignment] = None
    meta: Optional[dict[str, Any]] = None
    created_at: datetime = Field(default_factory=datetime.now)


class CacheStats(BaseModel):
    """Cache hit/miss counts."""

    hits: int = 0
    misses: int = 0
    path: Optional[str] = None


class ProviderAttempt(BaseModel):
    """One step of the fallback chain, kept for diagnostics."""

    provider: str
    ok: bool
    reason: Optional[str] = None
    cache: CacheStats = Field(default_factory=CacheStats)
    scenes_completed: int = Field(default=0, description="Scenes of this attempt kept in the final narration")
    failed_scene: Optional[str] = Field(default=None, description="Scene id the attempt failed on")


class SceneFit(BaseModel):
    """How a raw speech clip was fitted into its scene slot."""

    cue_start_offset: float = 0.0
    cue_duration: float
    clipped: bool
    desired_gap: float
    applied_gap: float
    trailing_gap: float
    spoken_duration: float
    fade_out: Optional[float] = None


# ============================================================================
# Caption Models
# ============================================================================


class Word(BaseModel):
    """A timed word token."""

    text: str
    start: float
    end: float

    @model_validator(mode="after")
    def _positive_span(self) -> "Word":
        if self.end <= self.start:
            raise ValueError(f"word '{self.text}' must end after it starts ({self.start} >= {self.end})")
        return self


class CaptionCue(BaseModel):
    """One subtitle entry."""

    start: float
    end: float
    text: str


# ============================================================================
# Output Models
# ============================================================================


class AudioConfig(BaseModel):
    """Snapshot of the narration fitting settings."""

    target_scene_gap_seconds: float
    clip_fade_out_seconds: float
    silence_trimming: bool = False
    join_mode: str = "concat"
    speed_warping: bool = False


class VoiceoverResult(BaseModel):
    """Outcome of the voice provider fallback chain."""

    provider: str = Field(default="none", description="Provider that produced the narration, or 'none'")
    state: VoiceState = VoiceState.PENDING
    voiceover_path: Optional[str] = None
    scene_audio: list[str] = Field(default_factory=list)
    caption_cues: list[CaptionCue] = Field(default_factory=list)
    caption_mode: CaptionMode = CaptionMode.ESTIMATED
    attempted_providers: list[ProviderAttempt] = Field(default_factory=list)
    provider_meta: Optional[dict[str, Any]] = None
    provider_availability: dict[str, bool] = Field(default_factory=dict)
    requested_provider: str = "auto"
    cache_stats: CacheStats = Field(default_factory=CacheStats)
    audio_config: AudioConfig


class CaptionSummary(BaseModel):
    """Caption section of the build record."""

    file: str = "captions.srt"
    cue_count: int
    mode: CaptionMode
    cues_json: str = "caption-cues.json"


class TimelineEntry(BaseModel):
    """Resolved timeline segment as written to the build record (1-based index)."""

    index: int
    start: float
    end: float


class BuildRecord(BaseModel):
    """JSON metadata written next to the final video."""

    generated_at: datetime = Field(default_factory=datetime.now)
    output: str = "tutorial.mp4"
    scene_count: int
    duration_seconds: float
    voice_provider: str
    requested_voice_provider: str
    voice_provider_availability: dict[str, bool] = Field(default_factory=dict)
    attempted_voice_providers: list[ProviderAttempt] = Field(default_factory=list)
    strict_voice: bool = False
    voice_provider_meta: Optional[dict[str, Any]] = None
    voiceover: Optional[str] = None
    scene_audio: list[str] = Field(default_factory=list)
    voice_cache: CacheStats = Field(default_factory=CacheStats)
    voice_audio: AudioConfig
    captions: CaptionSummary
    fade_seconds: float
    clip_trim_start_seconds: float
    clip_first_trim_start_seconds: float
    clip_settle_pad_seconds: float
    timeline_seconds: list[TimelineEntry] = Field(default_factory=list)
