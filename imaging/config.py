from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List


_DEFAULT_ALLOW_TYPES = ["jpg", "jpeg", "png", "gif", "webp", "bmp", "tiff", "tif"]


@dataclass(frozen=True)
class Settings:
    UPLOAD_DIR: str = "uploads"
    PROCESSED_DIR: str = "processed"
    MAX_FILE_MB: int = 10
    MAX_FILES: int = 10
    ALLOW_TYPES: List[str] = field(default_factory=lambda: list(_DEFAULT_ALLOW_TYPES))
    WATERMARK_SCALE: float = 0.2
    CORS_ORIGINS: List[str] = field(default_factory=lambda: ["*"])
    LOG_LEVEL: str = "INFO"
    SERVICE_VERSION: str = "1.0.0"
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    def __post_init__(self) -> None:
        object.__setattr__(self, "ALLOW_TYPES", [t.lower().lstrip(".") for t in self.ALLOW_TYPES])

    @property
    def max_file_bytes(self) -> int:
        return self.MAX_FILE_MB * 1024 * 1024


def _get_env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return [part.strip() for part in raw.split(",") if part.strip()]


def _get_env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw is not None else default
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw else default
    except (TypeError, ValueError):
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        UPLOAD_DIR=os.getenv("UPLOAD_DIR", "uploads"),
        PROCESSED_DIR=os.getenv("PROCESSED_DIR", "processed"),
        MAX_FILE_MB=_get_env_int("MAX_FILE_MB", 10),
        MAX_FILES=_get_env_int("MAX_FILES", 10),
        ALLOW_TYPES=_get_env_list("ALLOW_TYPES", list(_DEFAULT_ALLOW_TYPES)),
        WATERMARK_SCALE=_get_env_float("WATERMARK_SCALE", 0.2),
        CORS_ORIGINS=_get_env_list("CORS_ORIGINS", ["*"]),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        SERVICE_VERSION=os.getenv("SERVICE_VERSION", "1.0.0"),
        HOST=os.getenv("HOST", "0.0.0.0"),
        PORT=_get_env_int("PORT", 3000),
    )


__all__ = ["Settings", "get_settings"]
