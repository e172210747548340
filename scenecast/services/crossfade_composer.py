"""Crossfade Composer - joins normalized clips with chained xfade transitions."""

import shutil
from pathlib import Path
from typing import Any, Sequence

from scenecast.core.config import Settings
from scenecast.utils.media_tools import ffmpeg


class CrossfadeComposer:
    """Builds the continuous silent video track."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the composer.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def transition_sequence(self, count: int) -> list[str]:
        """Transition style for each of the ``count - 1`` joins, round-robin."""
        styles = self.settings.scene_transitions
        return [styles[i % len(styles)] for i in range(max(0, count - 1))]

    def build_filter_graph(self, durations: Sequence[float], fade: float) -> tuple[str, str]:
        """
        Build the xfade filter graph.

        Transition i starts at the sum of the first i clip durations minus
        ``i * fade``, i.e. at the timeline start of clip i.

        Returns:
            Tuple of (filter_complex, output label)
        """
        transitions = self.transition_sequence(len(durations))
        chains = []
        cumulative = 0.0
        previous = "[0:v]"
        for i in range(1, len(durations)):
            cumulative += durations[i - 1]
            offset = cumulative - fade * i
            label = f"[v{i}]"
            chains.append(
                f"{previous}[{i}:v]xfade=transition={transitions[i - 1]}:duration={fade}:offset={offset:.3f}{label}"
            )
            previous = label
        return ";".join(chains), previous

    def compose(self, clips: Sequence[Path], durations: Sequence[float], fade: float, out_path: Path) -> Path:
        """
        Compose the clips into one video at the fixed output frame rate.

        Args:
            clips: Normalized clips in scene order
            durations: Their durations
            fade: Cross-fade duration
            out_path: Output file

        Returns:
            out_path
        """
        if len(clips) == 1:
            self.logger.info("Single scene: no transitions to apply")
            shutil.copyfile(clips[0], out_path)
            return out_path

        graph, output_label = self.build_filter_graph(durations, fade)
        self.logger.info(f"Cross-fading {len(clips)} clips: {', '.join(self.transition_sequence(len(clips)))}")

        args: list[Any] = []
        for clip in clips:
            args.extend(["-i", clip])
        args.extend(
            [
                "-filter_complex", graph,
                "-map", output_label,
                "-r", str(self.settings.frame_rate),
                "-pix_fmt", "yuv420p",
                "-c:v", "libx264",
                "-preset", "veryfast",
                "-crf", "20",
                out_path,
            ]
        )
        ffmpeg(args)
        return out_path
