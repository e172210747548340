"""Pipeline orchestrators for Scenecast."""

from scenecast.pipelines.compose_video import compose_video, main

__all__ = ["compose_video", "main"]
