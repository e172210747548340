"""Utility functions for Scenecast."""

from scenecast.utils.io_utils import scene_file_stem, slugify
from scenecast.utils.text_utils import normalize_caption, to_srt_timestamp

__all__ = [
    "scene_file_stem",
    "slugify",
    "normalize_caption",
    "to_srt_timestamp",
]
