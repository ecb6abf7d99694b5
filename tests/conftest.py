"""Shared fixtures for the image service tests.

Every test gets its own upload and processed directories through
environment variables, and the cached settings are cleared around it so
the application picks them up.
"""

import io
import sys
from pathlib import Path

import pytest
from PIL import Image  # type: ignore

# Make ``main`` and ``imaging`` importable when running from a checkout.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from imaging.config import get_settings  # noqa: E402


@pytest.fixture
def temp_dirs(tmp_path, monkeypatch):
    """Point UPLOAD_DIR and PROCESSED_DIR at a sandbox under ``tmp_path``."""
    upload_dir = tmp_path / "uploads"
    processed_dir = tmp_path / "processed"
    monkeypatch.setenv("UPLOAD_DIR", str(upload_dir))
    monkeypatch.setenv("PROCESSED_DIR", str(processed_dir))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    yield upload_dir, processed_dir
    get_settings.cache_clear()


@pytest.fixture
def client(temp_dirs):
    from fastapi.testclient import TestClient

    from main import create_app

    return TestClient(create_app())


@pytest.fixture
def make_image():
    """Factory returning encoded image bytes built with Pillow."""

    def _make(size=(64, 48), color=(200, 30, 30), mode="RGB", fmt="PNG", **save_params):
        img = Image.new(mode, size, color=color)
        buf = io.BytesIO()
        img.save(buf, format=fmt, **save_params)
        return buf.getvalue()

    return _make


@pytest.fixture
def png_bytes(make_image):
    return make_image()
