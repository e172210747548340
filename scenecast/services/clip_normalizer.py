"""Clip Normalizer - re-encodes raw scene clips to one geometry and frame rate."""

from pathlib import Path
from typing import Any, Sequence

from scenecast.core.config import Settings
from scenecast.models.schemas import FrameSize, SceneEntry
from scenecast.utils.error_handler import ManifestError
from scenecast.utils.io_utils import scene_file_stem
from scenecast.utils.media_tools import ffmpeg


class ClipNormalizer:
    """Trims, letterboxes and re-encodes every scene clip."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the normalizer.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def trim_for(self, index: int) -> float:
        """Lead-in trimmed from clip ``index``; the first clip skips setup motion."""
        if index == 0:
            return max(0.0, self.settings.first_scene_trim_start)
        return max(0.0, self.settings.scene_trim_start)

    def build_filter(self, index: int, size: FrameSize) -> str:
        """ffmpeg video filter chain for clip ``index``."""
        parts = [
            f"fps={self.settings.frame_rate}",
            f"trim=start={self.trim_for(index):.3f}",
            "setpts=PTS-STARTPTS",
        ]
        if self.settings.scene_settle_pad > 0:
            parts.append(f"tpad=start_duration={self.settings.scene_settle_pad:.3f}:start_mode=clone")
        parts.extend(
            [
                f"scale={size.width}:{size.height}:force_original_aspect_ratio=decrease",
                f"pad={size.width}:{size.height}:(ow-iw)/2:(oh-ih)/2",
                "format=yuv420p",
            ]
        )
        return ",".join(parts)

    def normalize(
        self,
        scenes: Sequence[SceneEntry],
        clip_paths: Sequence[Path],
        size: FrameSize,
        work_dir: Path,
    ) -> list[Path]:
        """
        Normalize every clip. Any failure aborts the run.

        Args:
            scenes: Manifest scenes in playback order
            clip_paths: Resolved raw clip path per scene
            size: Output frame size
            work_dir: Directory for normalized clips

        Returns:
            Normalized clip paths in scene order

        Raises:
            ManifestError: If a raw clip is missing
            CommandError: If ffmpeg fails
        """
        outputs = []
        for idx, (scene, src) in enumerate(zip(scenes, clip_paths)):
            if not Path(src).exists():
                raise ManifestError(f"Clip for scene '{scene.id}' not found: {src}")

            out = work_dir / f"{scene_file_stem(idx, scene.id)}.mp4"
            self.logger.info(f"Normalizing clip {idx + 1}/{len(scenes)}: {scene.id}")
            ffmpeg(
                [
                    "-i", src,
                    "-an",
                    "-vf", self.build_filter(idx, size),
                    "-c:v", "libx264",
                    "-preset", "veryfast",
                    "-crf", "20",
                    out,
                ]
            )
            outputs.append(out)
        return outputs
