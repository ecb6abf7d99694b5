"""Pydantic response schemas for the image endpoints.

Field names are snake_case in Python and serialised in camelCase, which is
what the browser client reads (``processedPath``, ``hasAlpha``...). A few
size fields keep their historical upper-case unit suffix through an
explicit alias.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadResponse(ApiModel):
    """Response returned after storing an upload.

    Attributes:
        filename: Name the file was stored under.
        path: URL path of the stored file (``/uploads/<filename>``).
        size: Size in bytes.
        mimetype: MIME type reported by the client.
    """

    success: bool = True
    message: str
    filename: str
    path: str
    size: int
    mimetype: str


class ProcessResponse(ApiModel):
    """Response returned by every transform endpoint.

    ``original_path`` is absent for composites (there is no single
    original) and ``params`` is absent for parameterless operations.
    """

    success: bool = True
    message: str
    original_path: Optional[str] = None
    processed_path: str
    operation: str
    params: Optional[Dict[str, Any]] = None


class ImageMetadata(ApiModel):
    format: Optional[str] = None
    width: int
    height: int
    space: Optional[str] = None
    channels: int
    depth: Optional[str] = None
    density: Optional[int] = None
    has_alpha: bool
    orientation: Optional[int] = None
    size: int
    size_in_kb: str = Field(alias="sizeInKB")
    size_in_mb: str = Field(alias="sizeInMB")


class MetadataResponse(ApiModel):
    success: bool = True
    message: str
    metadata: ImageMetadata


class OptimizeStats(ApiModel):
    original_size: int
    original_size_kb: str = Field(alias="originalSizeKB")
    optimized_size: int
    optimized_size_kb: str = Field(alias="optimizedSizeKB")
    savings: str
    reduction: int


class OptimizeResponse(ApiModel):
    success: bool = True
    message: str
    original_path: str
    processed_path: str
    operation: str = "optimize"
    stats: OptimizeStats


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    code: str
    request_id: Optional[str] = None


__all__ = [
    "UploadResponse",
    "ProcessResponse",
    "ImageMetadata",
    "MetadataResponse",
    "OptimizeStats",
    "OptimizeResponse",
    "ErrorResponse",
]
