import pytest

from imaging.config import Settings, get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults(monkeypatch):
    for key in ("UPLOAD_DIR", "PROCESSED_DIR", "MAX_FILE_MB", "MAX_FILES", "ALLOW_TYPES", "PORT"):
        monkeypatch.delenv(key, raising=False)
    s = get_settings()
    assert s.UPLOAD_DIR == "uploads"
    assert s.PROCESSED_DIR == "processed"
    assert s.MAX_FILE_MB == 10
    assert s.max_file_bytes == 10 * 1024 * 1024
    assert s.MAX_FILES == 10
    assert "png" in s.ALLOW_TYPES and "jpeg" in s.ALLOW_TYPES
    assert s.WATERMARK_SCALE == 0.2
    assert s.PORT == 3000


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("UPLOAD_DIR", "/tmp/in")
    monkeypatch.setenv("MAX_FILES", "3")
    monkeypatch.setenv("ALLOW_TYPES", "PNG, .webp")
    monkeypatch.setenv("WATERMARK_SCALE", "0.5")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test,http://b.test")
    s = get_settings()
    assert s.UPLOAD_DIR == "/tmp/in"
    assert s.MAX_FILES == 3
    assert s.ALLOW_TYPES == ["png", "webp"]
    assert s.WATERMARK_SCALE == 0.5
    assert s.CORS_ORIGINS == ["http://a.test", "http://b.test"]


def test_malformed_numbers_fall_back(monkeypatch):
    monkeypatch.setenv("MAX_FILE_MB", "lots")
    monkeypatch.setenv("PORT", "")
    monkeypatch.setenv("WATERMARK_SCALE", "big")
    s = get_settings()
    assert s.MAX_FILE_MB == 10
    assert s.PORT == 3000
    assert s.WATERMARK_SCALE == 0.2


def test_settings_are_frozen():
    s = Settings()
    with pytest.raises(Exception):
        s.MAX_FILES = 1  # type: ignore[misc]
