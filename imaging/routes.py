"""The ``/api/images`` endpoints.

Every route follows the same steps. It stores the upload, parses the form
fields, makes one ``image_ops`` call, writes the result to the processed
directory and describes it as JSON. The library call and the write run
inside ``_operation``, so any failure there becomes a ``ServiceError``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from fastapi import APIRouter, File, Form, UploadFile
from PIL import UnidentifiedImageError  # type: ignore[import]

from imaging import image_ops, storage
from imaging.config import get_settings
from imaging.errors import ErrorCode, ServiceError, validation_error
from imaging.models import (
    ErrorResponse,
    ImageMetadata,
    MetadataResponse,
    OptimizeResponse,
    OptimizeStats,
    ProcessResponse,
    UploadResponse,
)
from imaging.params import echo, parse_float, parse_int, parse_optional_int
from imaging.storage import StoredUpload


router = APIRouter(
    prefix="/api/images",
    tags=["images"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
logger = logging.getLogger(__name__)

INVALID_IMAGE_MESSAGE = "The uploaded file is not a valid image or is corrupted"


@contextmanager
def _operation(name: str) -> Iterator[None]:
    """Map failures of a single library call onto service errors."""
    try:
        yield
    except ServiceError:
        raise
    except UnidentifiedImageError as exc:
        raise ServiceError(ErrorCode.INVALID_IMAGE, 400, INVALID_IMAGE_MESSAGE) from exc
    except ValueError as exc:
        raise validation_error(str(exc)) from exc
    except Exception as exc:
        logger.exception("image operation failed", extra={"operation": name})
        raise ServiceError(ErrorCode.INTERNAL_ERROR, 500, str(exc)) from exc


async def _require_upload(file: Optional[UploadFile]) -> StoredUpload:
    if file is None or not file.filename:
        raise ServiceError(ErrorCode.UPLOAD_ERROR, 400, "No file uploaded")
    return await storage.save_upload(file)


def _processed(
    operation: str,
    message: str,
    prefix: str,
    ext: str,
    data: bytes,
    upload: Optional[StoredUpload] = None,
    params: Optional[Dict[str, Any]] = None,
) -> ProcessResponse:
    with _operation(operation):
        processed_path = storage.save_processed(storage.processed_name(prefix, ext), data)
    logger.info("image processed", extra={"operation": operation, "output": processed_path})
    return ProcessResponse(
        message=message,
        original_path=upload.url if upload else None,
        processed_path=processed_path,
        operation=operation,
        params=params,
    )


@router.post("/upload", response_model=UploadResponse)
async def upload_endpoint(image: Optional[UploadFile] = File(None)):
    upload = await _require_upload(image)
    logger.info("image uploaded", extra={"operation": "upload", "output": upload.url})
    return UploadResponse(
        message="Image uploaded successfully",
        filename=upload.filename,
        path=upload.url,
        size=upload.size,
        mimetype=upload.mimetype,
    )


@router.post("/resize", response_model=ProcessResponse, response_model_exclude_none=True)
async def resize_endpoint(
    image: Optional[UploadFile] = File(None),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    fit: str = Form("cover"),
):
    upload = await _require_upload(image)
    target_width = parse_optional_int(width, "width")
    target_height = parse_optional_int(height, "height")
    with _operation("resize"):
        data = image_ops.resize_image(upload.data, target_width, target_height, fit)
    return _processed(
        "resize",
        "Image resized successfully",
        "resized",
        "png",
        data,
        upload,
        {"width": width, "height": height, "fit": fit},
    )


@router.post("/crop", response_model=ProcessResponse, response_model_exclude_none=True)
async def crop_endpoint(
    image: Optional[UploadFile] = File(None),
    left: Optional[str] = Form(None),
    top: Optional[str] = Form(None),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
):
    upload = await _require_upload(image)
    region = (
        parse_int(left, "left", 0),
        parse_int(top, "top", 0),
        parse_int(width, "width"),
        parse_int(height, "height"),
    )
    with _operation("crop"):
        data = image_ops.crop_image(upload.data, *region)
    return _processed(
        "crop",
        "Image cropped successfully",
        "cropped",
        "png",
        data,
        upload,
        {"left": echo(left, 0), "top": echo(top, 0), "width": width, "height": height},
    )


@router.post("/rotate", response_model=ProcessResponse, response_model_exclude_none=True)
async def rotate_endpoint(
    image: Optional[UploadFile] = File(None),
    angle: Optional[str] = Form(None),
):
    upload = await _require_upload(image)
    degrees = parse_int(angle, "angle", 90)
    with _operation("rotate"):
        data = image_ops.rotate_image(upload.data, degrees)
    return _processed(
        "rotate",
        "Image rotated successfully",
        "rotated",
        "png",
        data,
        upload,
        {"angle": echo(angle, 90)},
    )


@router.post("/flip", response_model=ProcessResponse, response_model_exclude_none=True)
async def flip_endpoint(
    image: Optional[UploadFile] = File(None),
    direction: str = Form("horizontal"),
):
    upload = await _require_upload(image)
    with _operation("flip"):
        data = image_ops.flip_image(upload.data, direction)
    return _processed(
        "flip",
        "Image flipped successfully",
        "flipped",
        "png",
        data,
        upload,
        {"direction": direction},
    )


@router.post("/blur", response_model=ProcessResponse, response_model_exclude_none=True)
async def blur_endpoint(
    image: Optional[UploadFile] = File(None),
    sigma: Optional[str] = Form(None),
):
    upload = await _require_upload(image)
    radius = parse_float(sigma, "sigma", 5.0)
    with _operation("blur"):
        data = image_ops.blur_image(upload.data, radius)
    return _processed(
        "blur",
        "Blur effect applied successfully",
        "blurred",
        "png",
        data,
        upload,
        {"sigma": echo(sigma, 5)},
    )


@router.post("/sharpen", response_model=ProcessResponse, response_model_exclude_none=True)
async def sharpen_endpoint(
    image: Optional[UploadFile] = File(None),
    sigma: Optional[str] = Form(None),
    flat: Optional[str] = Form(None),
    jagged: Optional[str] = Form(None),
):
    upload = await _require_upload(image)
    options = {
        "sigma": parse_float(sigma, "sigma", 1.0),
        "flat": parse_float(flat, "flat", 1.0),
        "jagged": parse_float(jagged, "jagged", 2.0),
    }
    with _operation("sharpen"):
        data = image_ops.sharpen_image(upload.data, **options)
    return _processed(
        "sharpen",
        "Image sharpened successfully",
        "sharpened",
        "png",
        data,
        upload,
        {"sigma": echo(sigma, 1), "flat": echo(flat, 1), "jagged": echo(jagged, 2)},
    )


@router.post("/grayscale", response_model=ProcessResponse, response_model_exclude_none=True)
async def grayscale_endpoint(image: Optional[UploadFile] = File(None)):
    upload = await _require_upload(image)
    with _operation("grayscale"):
        data = image_ops.grayscale_image(upload.data)
    return _processed("grayscale", "Image converted to grayscale", "grayscale", "png", data, upload)


@router.post("/tint", response_model=ProcessResponse, response_model_exclude_none=True)
async def tint_endpoint(
    image: Optional[UploadFile] = File(None),
    color: str = Form("#0000FF"),
):
    upload = await _require_upload(image)
    with _operation("tint"):
        data = image_ops.tint_image(upload.data, color)
    return _processed(
        "tint",
        "Tint color applied successfully",
        "tinted",
        "png",
        data,
        upload,
        {"color": color},
    )


@router.post("/convert", response_model=ProcessResponse, response_model_exclude_none=True)
async def convert_endpoint(
    image: Optional[UploadFile] = File(None),
    format: str = Form("jpeg"),
    quality: Optional[str] = Form(None),
):
    upload = await _require_upload(image)
    level = parse_int(quality, "quality", 80)
    with _operation("convert"):
        data = image_ops.convert_image(upload.data, format, level)
    return _processed(
        "convert",
        f"Image converted to {format}",
        "converted",
        format.lower(),
        data,
        upload,
        {"format": format, "quality": echo(quality, 80)},
    )


@router.post("/metadata", response_model=MetadataResponse)
async def metadata_endpoint(image: Optional[UploadFile] = File(None)):
    upload = await _require_upload(image)
    with _operation("metadata"):
        metadata = image_ops.read_metadata(upload.data)
    return MetadataResponse(
        message="Metadata retrieved successfully",
        metadata=ImageMetadata(**metadata),
    )


@router.post("/optimize", response_model=OptimizeResponse)
async def optimize_endpoint(image: Optional[UploadFile] = File(None)):
    upload = await _require_upload(image)
    with _operation("optimize"):
        data = image_ops.optimize_image(upload.data)
        processed_path = storage.save_processed(storage.processed_name("optimized", "jpg"), data)
    logger.info("image processed", extra={"operation": "optimize", "output": processed_path})

    original_size = upload.size
    optimized_size = len(data)
    savings = (original_size - optimized_size) / original_size * 100
    return OptimizeResponse(
        message="Image optimized successfully",
        original_path=upload.url,
        processed_path=processed_path,
        stats=OptimizeStats(
            original_size=original_size,
            original_size_kb=f"{original_size / 1024:.2f}",
            optimized_size=optimized_size,
            optimized_size_kb=f"{optimized_size / 1024:.2f}",
            savings=f"{savings:.2f}%",
            reduction=original_size - optimized_size,
        ),
    )


@router.post("/effects", response_model=ProcessResponse, response_model_exclude_none=True)
async def effects_endpoint(
    image: Optional[UploadFile] = File(None),
    brightness: Optional[str] = Form(None),
    saturation: Optional[str] = Form(None),
    hue: Optional[str] = Form(None),
    contrast: Optional[str] = Form(None),
):
    upload = await _require_upload(image)
    options = {
        "brightness": parse_float(brightness, "brightness", 1.0),
        "saturation": parse_float(saturation, "saturation", 1.0),
        "hue": parse_int(hue, "hue", 0),
        "contrast": parse_float(contrast, "contrast", 1.0),
    }
    with _operation("effects"):
        data = image_ops.apply_effects(upload.data, **options)
    return _processed(
        "effects",
        "Effects applied successfully",
        "effects",
        "png",
        data,
        upload,
        {
            "brightness": echo(brightness, 1),
            "saturation": echo(saturation, 1),
            "hue": echo(hue, 0),
            "contrast": echo(contrast, 1),
        },
    )


@router.post("/watermark", response_model=ProcessResponse, response_model_exclude_none=True)
async def watermark_endpoint(
    image: Optional[UploadFile] = File(None),
    watermark: Optional[UploadFile] = File(None),
    position: str = Form("southeast"),
    opacity: Optional[str] = Form(None),
):
    if image is None or watermark is None:
        raise ServiceError(
            ErrorCode.UPLOAD_ERROR,
            400,
            "Both 'image' and 'watermark' files are required",
        )
    upload = await _require_upload(image)
    mark = await _require_upload(watermark)
    level = parse_float(opacity, "opacity", 0.5)
    with _operation("watermark"):
        data = image_ops.watermark_image(
            upload.data,
            mark.data,
            position,
            level,
            scale=get_settings().WATERMARK_SCALE,
        )
    return _processed(
        "watermark",
        "Watermark applied successfully",
        "watermarked",
        "png",
        data,
        upload,
        {"position": position, "opacity": echo(opacity, 0.5)},
    )


@router.post("/composite", response_model=ProcessResponse, response_model_exclude_none=True)
async def composite_endpoint(images: Optional[List[UploadFile]] = File(None)):
    files = [f for f in (images or []) if f.filename]
    max_files = get_settings().MAX_FILES
    if len(files) > max_files:
        raise ServiceError(ErrorCode.TOO_MANY_FILES, 400, f"Maximum {max_files} files allowed")
    if len(files) < 2:
        raise validation_error("At least 2 images required")

    uploads = [await _require_upload(f) for f in files]
    with _operation("composite"):
        data = image_ops.composite_images(uploads[0].data, [u.data for u in uploads[1:]])
    return _processed(
        "composite",
        "Images composited successfully",
        "composite",
        "png",
        data,
        params={"imageCount": len(uploads)},
    )


__all__ = ["router"]
