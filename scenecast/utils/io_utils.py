"""I/O utility functions for file and directory operations."""

# This module is part of scenecast.utils package

import json
import re
import shutil
from pathlib import Path
from typing import Any


def slugify(text: str) -> str:
    """
    Convert text to a filesystem-safe slug.

    Args:
        text: Input text to slugify.

    Returns:
        Filesystem-safe slug string.
    """
    text = str(text).lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s]+", "-", text)
    text = text.strip("-")
    if len(text) > 100:
        text = text[:100].rstrip("-")
    return text or "scene"


def scene_file_stem(index: int, scene_id: str) -> str:
    """Work file stem for a scene, e.g. ``03-open-editor`` (index is 0-based)."""
    return f"{index + 1:02d}-{slugify(scene_id)}"


def reset_dir(path: Path) -> Path:
    """Delete a directory tree if present and recreate it empty."""
    shutil.rmtree(path, ignore_errors=True)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_json(path: Path, payload: Any) -> None:
    """Write payload as indented UTF-8 JSON with a trailing newline."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False, default=str)
        f.write("\n")
