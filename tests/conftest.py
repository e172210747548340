"""Shared pytest fixtures and configuration."""

import os

import pytest

from scenecast.core.config import Settings
from scenecast.core.logging_config import get_logger


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep developer env vars and .env files out of the tests."""
    for key in list(os.environ):
        if key.startswith("TUTORIAL_") or key == "ELEVENLABS_API_KEY":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings(tmp_path):
    """Create test settings instance rooted in a temp output directory."""
    return Settings(out_dir=str(tmp_path / "out"))


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)
