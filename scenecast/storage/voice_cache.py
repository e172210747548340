"""Content-addressed store for synthesized scene audio."""

import hashlib
import json
import shutil
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from scenecast.models.schemas import CharacterAlignment, SynthesisResult, VoiceCacheEntry
from scenecast.utils.text_utils import normalize_caption


def voice_cache_key(provider: str, text: str, settings: dict[str, Any]) -> str:
    """
    Hash the inputs that determine a provider's output.

    Args:
        provider: Provider name
        text: Narration text (normalized before hashing)
        settings: Provider settings snapshot

    Returns:
        Hex sha256 digest
    """
    descriptor = {"provider": provider, "text": normalize_caption(text), "settings": settings}
    encoded = json.dumps(descriptor, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class VoiceCache:
    """
    Keyed directory of ``<provider>/<key>.wav`` + ``<key>.json``.

    Entries are written once and never replaced or expired. A changed text or
    settings snapshot yields a different key, so stale entries are never read.
    """

    def __init__(self, cache_dir: Path, logger: Any):
        self.cache_dir = Path(cache_dir)
        self.logger = logger
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _paths(self, provider: str, key: str) -> tuple[Path, Path]:
        provider_dir = self.cache_dir / provider
        return provider_dir / f"{key}.wav", provider_dir / f"{key}.json"

    def lookup(self, provider: str, text: str, settings: dict[str, Any], out_path: Path) -> Optional[SynthesisResult]:
        """
        Copy a cached clip to out_path.

        Returns:
            Cached result, or None on a miss (including unreadable metadata)
        """
        key = voice_cache_key(provider, text, settings)
        audio_path, meta_path = self._paths(provider, key)
        if not (audio_path.exists() and meta_path.exists()):
            return None

        try:
            with open(meta_path, "r", encoding="utf-8") as f:
                entry = VoiceCacheEntry.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            self.logger.warning(f"Ignoring unreadable voice cache entry {meta_path.name}: {e}")
            return None

        out_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(audio_path, out_path)
        self.logger.debug(f"Voice cache hit: {provider}/{key[:12]}")
        return SynthesisResult(
            duration=entry.duration,
            alignment=entry.alignment,
            meta=entry.meta,
            cache_hit=True,
            cache_key=key,
        )

    def store(
        self,
        provider: str,
        text: str,
        settings: dict[str, Any],
        audio_path: Path,
        duration: float,
        alignment: Optional[CharacterAlignment] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> str:
        """
        Persist a freshly synthesized clip. Existing entries are left untouched.

        Returns:
            Cache key
        """
        key = voice_cache_key(provider, text, settings)
        cached_audio, meta_path = self._paths(provider, key)
        if cached_audio.exists() and meta_path.exists():
            return key

        cached_audio.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(audio_path, cached_audio)
        entry = VoiceCacheEntry(
            provider=provider,
            cache_key=key,
            text=normalize_caption(text),
            settings=settings,
            duration=duration,
            alignment=alignment,
            meta=meta,
        )
        # metadata last: an entry only counts once both files exist
        tmp_path = meta_path.with_suffix(".json.tmp")
        tmp_path.write_text(entry.model_dump_json(indent=2) + "\n", encoding="utf-8")
        tmp_path.replace(meta_path)
        self.logger.debug(f"Voice cache store: {provider}/{key[:12]}")
        return key

    def relative_path(self, base: Path) -> str:
        """Cache location relative to base, for the build record."""
        try:
            return str(self.cache_dir.resolve().relative_to(Path(base).resolve())) or "."
        except ValueError:
            return str(self.cache_dir)
