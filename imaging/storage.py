"""Filesystem storage for uploaded and processed images.

Uploads are written to ``UPLOAD_DIR`` and processed results to
``PROCESSED_DIR`` (see ``imaging.config``). Both directories are served
statically by the application, so every save returns the URL path under
which the file can be fetched (``/uploads/<name>`` or
``/processed/<name>``). Nothing is ever deleted or deduplicated here.

Processed names follow ``<prefix>-<epoch ms>.<ext>``. Two requests for the
same operation inside the same millisecond will produce the same name and
the later write wins.
"""

from __future__ import annotations

import os
import re
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import UploadFile

from imaging.config import get_settings
from imaging.errors import ErrorCode, ServiceError


@dataclass(frozen=True)
class StoredUpload:
    """An uploaded file after it has been validated and written to disk."""

    path: str
    filename: str
    original_name: str
    size: int
    mimetype: str
    data: bytes

    @property
    def url(self) -> str:
        return f"/uploads/{self.filename}"


def _ensure_dir(path: str) -> None:
    """Create the directory (and parents) if it does not exist."""
    os.makedirs(path, exist_ok=True)


def file_ext(name: Optional[str]) -> str:
    """Lower-case extension without the dot, or an empty string.

    >>> file_ext("photos/Cat.JPG")
    'jpg'
    >>> file_ext("noext")
    ''
    """
    _, ext = os.path.splitext(name or "")
    return re.sub(r"[^a-z0-9]", "", ext.lower())


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def upload_name(original_name: str) -> str:
    """Unique on-disk name for an upload, keeping the original extension."""
    ext = file_ext(original_name)
    suffix = f".{ext}" if ext else ""
    return f"{timestamp_ms()}-{uuid.uuid4().hex[:8]}{suffix}"


def processed_name(prefix: str, ext: str) -> str:
    return f"{prefix}-{timestamp_ms()}.{ext.lstrip('.').lower()}"


def validate_upload(original_name: str, mimetype: Optional[str], size: int) -> None:
    """Reject uploads that are too large or are not images.

    Raises:
        ServiceError: ``FILE_TOO_LARGE`` or ``INVALID_FILE_TYPE`` (both 400).
    """
    settings = get_settings()
    if size > settings.max_file_bytes:
        raise ServiceError(
            ErrorCode.FILE_TOO_LARGE,
            400,
            f"Maximum file size is {settings.MAX_FILE_MB}MB",
        )
    ext = file_ext(original_name)
    mime_ok = not mimetype or mimetype.lower().startswith("image/")
    if ext not in settings.ALLOW_TYPES or not mime_ok:
        allowed = ", ".join(settings.ALLOW_TYPES)
        raise ServiceError(
            ErrorCode.INVALID_FILE_TYPE,
            400,
            f"Only image files are allowed ({allowed})",
        )


async def save_upload(file: UploadFile) -> StoredUpload:
    """Validate an uploaded file and persist it under ``UPLOAD_DIR``.

    At most one byte past the size limit is read, so an oversized upload is
    rejected without loading it into memory.
    """
    settings = get_settings()
    original_name = file.filename or ""
    mimetype = file.content_type or "application/octet-stream"
    declared_size = getattr(file, "size", None)
    if declared_size is not None:
        validate_upload(original_name, file.content_type, declared_size)

    data = await file.read(settings.max_file_bytes + 1)
    validate_upload(original_name, file.content_type, len(data))

    _ensure_dir(settings.UPLOAD_DIR)
    filename = upload_name(original_name)
    dest_path = os.path.join(settings.UPLOAD_DIR, filename)
    with open(dest_path, "wb") as f:
        f.write(data)
    return StoredUpload(
        path=dest_path,
        filename=filename,
        original_name=original_name,
        size=len(data),
        mimetype=mimetype,
        data=data,
    )


def save_processed(name: str, data: bytes) -> str:
    """Write a processed image under ``PROCESSED_DIR`` and return its URL path.

    Args:
        name: File name, normally built with ``processed_name``.
        data: Encoded image bytes.

    Returns:
        The URL path the file is served under, e.g. ``/processed/resized-1.png``.
    """
    settings = get_settings()
    _ensure_dir(settings.PROCESSED_DIR)
    with open(os.path.join(settings.PROCESSED_DIR, name), "wb") as f:
        f.write(data)
    return f"/processed/{name}"


__all__ = [
    "StoredUpload",
    "file_ext",
    "upload_name",
    "processed_name",
    "validate_upload",
    "save_upload",
    "save_processed",
]
