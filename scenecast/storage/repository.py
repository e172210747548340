"""Storage repository for scene manifests."""

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from scenecast.core.config import Settings
from scenecast.models.schemas import SceneManifest
from scenecast.utils.error_handler import ManifestError


class ManifestRepository:
    """Loads the scene manifest written by scene capture."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the repository.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.out_dir = Path(settings.out_dir)

    @property
    def manifest_path(self) -> Path:
        if self.settings.manifest_path:
            return Path(self.settings.manifest_path)
        return self.out_dir / self.settings.manifest_name

    def load_manifest(self) -> SceneManifest:
        """
        Load and validate the manifest.

        Returns:
            Parsed manifest with at least one scene

        Raises:
            ManifestError: If the manifest is missing, unparseable or has no scenes
        """
        file_path = self.manifest_path
        self.logger.info(f"Loading scene manifest: {file_path}")

        if not file_path.exists():
            raise ManifestError(f"Scene manifest not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ManifestError(f"Could not read scene manifest {file_path}: {e}") from e

        if not isinstance(raw, dict) or not isinstance(raw.get("scenes"), list):
            raise ManifestError(f"No scenes found in {file_path.name}")

        try:
            manifest = SceneManifest.model_validate(raw)
        except ValidationError as e:
            raise ManifestError(f"Invalid scene manifest {file_path}: {e}") from e

        if not manifest.scenes:
            raise ManifestError(f"No scenes found in {file_path.name}")

        self.logger.info(
            f"Manifest loaded: {len(manifest.scenes)} scenes at {manifest.size.width}x{manifest.size.height}"
        )
        return manifest

    def resolve_clip(self, clip: str) -> Path:
        """Resolve a manifest clip path against the output directory."""
        return (self.out_dir / clip).resolve()
