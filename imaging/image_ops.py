"""Image manipulation utilities.

This module wraps every transform offered by the API around Pillow. Each
public function takes the raw bytes of an uploaded image plus plain
parameters and returns the encoded result as bytes (PNG unless stated
otherwise), so the endpoints only have to deal with storage and JSON.

Invalid parameters raise ``ValueError``; bytes Pillow cannot identify
raise ``PIL.UnidentifiedImageError``. Alpha channels are carried through
every transform that writes PNG.
"""

from __future__ import annotations

from io import BytesIO
from typing import Dict, Optional, Sequence, Tuple

from PIL import Image, ImageColor, ImageEnhance, ImageFilter, ImageOps  # type: ignore[import]


RESIZE_FITS = ("cover", "contain", "fill", "inside", "outside")

# Output format name -> Pillow encoder.
CONVERT_FORMATS: Dict[str, str] = {
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "gif": "GIF",
    "tiff": "TIFF",
}

# Compass placement as (x, y) fractions of the free space around an overlay.
GRAVITY: Dict[str, Tuple[float, float]] = {
    "north": (0.5, 0.0),
    "northeast": (1.0, 0.0),
    "east": (1.0, 0.5),
    "southeast": (1.0, 1.0),
    "south": (0.5, 1.0),
    "southwest": (0.0, 1.0),
    "west": (0.0, 0.5),
    "northwest": (0.0, 0.0),
    "center": (0.5, 0.5),
    "centre": (0.5, 0.5),
}

BLUR_SIGMA_RANGE = (0.3, 1000.0)
EXIF_ORIENTATION = 0x0112

_WORKING_MODES = ("RGB", "RGBA", "L", "LA")
_QUARTER_TURNS = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}
_LANCZOS = Image.Resampling.LANCZOS


def _open_image(data: bytes) -> Image.Image:
    """Open and fully decode raw image bytes with Pillow."""
    img = Image.open(BytesIO(data))
    img.load()
    return img


def _has_alpha(img: Image.Image) -> bool:
    return "A" in img.getbands() or "transparency" in img.info


def _normalize(img: Image.Image) -> Image.Image:
    """Bring any decoded mode into one of L, LA, RGB or RGBA."""
    if img.mode in _WORKING_MODES:
        return img
    if img.mode == "1" or img.mode.startswith("I") or img.mode == "F":
        return img.convert("L")
    if _has_alpha(img):
        return img.convert("RGBA")
    return img.convert("RGB")


def _split_alpha(img: Image.Image) -> Tuple[Image.Image, Optional[Image.Image]]:
    if img.mode == "RGBA":
        return img.convert("RGB"), img.getchannel("A")
    if img.mode == "LA":
        return img.convert("L"), img.getchannel("A")
    return img, None


def _join_alpha(img: Image.Image, alpha: Optional[Image.Image]) -> Image.Image:
    if alpha is not None:
        img.putalpha(alpha)
    return img


def _flatten(img: Image.Image) -> Image.Image:
    """Drop alpha for encoders that cannot store it (JPEG)."""
    if img.mode == "RGBA":
        return img.convert("RGB")
    if img.mode == "LA":
        return img.convert("L")
    return img


def _black(mode: str):
    return {"L": 0, "LA": (0, 255), "RGB": (0, 0, 0), "RGBA": (0, 0, 0, 255)}[mode]


def _encode(img: Image.Image, fmt: str = "PNG", **params) -> bytes:
    buffer = BytesIO()
    img.save(buffer, format=fmt, **params)
    return buffer.getvalue()


def _clamp(value: float) -> int:
    return max(0, min(255, int(round(value))))


def _overlay(base: Image.Image, layer: Image.Image, gravity: Tuple[float, float]) -> None:
    """Alpha-composite ``layer`` onto ``base`` in place at a gravity position."""
    if layer.width > base.width or layer.height > base.height:
        raise ValueError("Image to composite must have same dimensions or smaller")
    fx, fy = gravity
    x = int((base.width - layer.width) * fx)
    y = int((base.height - layer.height) * fy)
    base.alpha_composite(layer, dest=(x, y))


def resize_image(
    data: bytes,
    width: Optional[int],
    height: Optional[int],
    fit: str = "cover",
) -> bytes:
    """Resize an image to ``width`` x ``height``.

    When only one dimension is given the other follows the aspect ratio and
    ``fit`` is irrelevant. Otherwise ``fit`` decides how the aspect ratio is
    reconciled with the target box, always anchored on the centre:

    - ``cover``: fill the box, cropping the overflow.
    - ``contain``: fit inside the box, letterboxed with black.
    - ``fill``: stretch to the exact box.
    - ``inside``: fit inside the box, no letterbox.
    - ``outside``: cover the box, no cropping.

    Args:
        data: Raw image bytes.
        width: Target width in pixels, or ``None``.
        height: Target height in pixels, or ``None``.
        fit: One of ``RESIZE_FITS``.

    Returns:
        The resized image as PNG bytes.
    """
    fit = (fit or "cover").lower()
    if fit not in RESIZE_FITS:
        raise ValueError(f"Unsupported fit '{fit}', expected one of: {', '.join(RESIZE_FITS)}")
    if width is None and height is None:
        raise ValueError("width or height is required")
    for name, value in (("width", width), ("height", height)):
        if value is not None and value <= 0:
            raise ValueError(f"{name} must be a positive integer")

    img = _normalize(_open_image(data))
    if width is None or height is None:
        if width is None:
            width = max(1, round(img.width * height / img.height))
        else:
            height = max(1, round(img.height * width / img.width))
        out = img.resize((width, height), _LANCZOS)
    elif fit == "cover":
        out = ImageOps.fit(img, (width, height), _LANCZOS, centering=(0.5, 0.5))
    elif fit == "contain":
        out = ImageOps.pad(img, (width, height), _LANCZOS, color=_black(img.mode), centering=(0.5, 0.5))
    elif fit == "fill":
        out = img.resize((width, height), _LANCZOS)
    elif fit == "inside":
        out = ImageOps.contain(img, (width, height), _LANCZOS)
    else:
        scale = max(width / img.width, height / img.height)
        size = (max(width, round(img.width * scale)), max(height, round(img.height * scale)))
        out = img.resize(size, _LANCZOS)
    return _encode(out)


def crop_image(data: bytes, left: int, top: int, width: int, height: int) -> bytes:
    """Extract the ``width`` x ``height`` region whose top-left corner is at (left, top)."""
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be positive integers")
    img = _normalize(_open_image(data))
    if left < 0 or top < 0 or left + width > img.width or top + height > img.height:
        raise ValueError(
            f"Crop area {width}x{height}+{left}+{top} lies outside the "
            f"{img.width}x{img.height} image"
        )
    return _encode(img.crop((left, top, left + width, top + height)))


def rotate_image(data: bytes, angle: int) -> bytes:
    """Rotate clockwise by ``angle`` degrees, growing the canvas to fit.

    Quarter turns are lossless transposes; other angles fill the exposed
    corners with black.
    """
    img = _normalize(_open_image(data))
    turn = angle % 360
    if turn == 0:
        out = img.copy()
    elif turn in _QUARTER_TURNS:
        out = img.transpose(_QUARTER_TURNS[turn])
    else:
        out = img.rotate(-turn, resample=Image.Resampling.BICUBIC, expand=True, fillcolor=_black(img.mode))
    return _encode(out)


def flip_image(data: bytes, direction: str = "horizontal") -> bytes:
    """Mirror horizontally, flip vertically, or (any other direction) both."""
    img = _normalize(_open_image(data))
    if direction == "horizontal":
        out = ImageOps.mirror(img)
    elif direction == "vertical":
        out = ImageOps.flip(img)
    else:
        out = img.transpose(Image.Transpose.ROTATE_180)
    return _encode(out)


def blur_image(data: bytes, sigma: float = 5.0) -> bytes:
    low, high = BLUR_SIGMA_RANGE
    if not low <= sigma <= high:
        raise ValueError(f"sigma must be between {low} and {high}")
    img = _normalize(_open_image(data))
    return _encode(img.filter(ImageFilter.GaussianBlur(radius=sigma)))


def sharpen_image(data: bytes, sigma: float = 1.0, flat: float = 1.0, jagged: float = 2.0) -> bytes:
    """Sharpen with an unsharp mask.

    ``sigma`` is the mask radius. ``flat`` and ``jagged`` are the
    sharpening levels for flat and edge areas; Pillow's unsharp mask has a
    single strength, so their mean drives it (1.0 == 100%).
    """
    if sigma <= 0:
        raise ValueError("sigma must be positive")
    if flat < 0 or jagged < 0:
        raise ValueError("flat and jagged must not be negative")
    percent = int(round((flat + jagged) / 2 * 100))
    base, alpha = _split_alpha(_normalize(_open_image(data)))
    out = base.filter(ImageFilter.UnsharpMask(radius=sigma, percent=percent, threshold=3))
    return _encode(_join_alpha(out, alpha))


def grayscale_image(data: bytes) -> bytes:
    base, alpha = _split_alpha(_normalize(_open_image(data)))
    return _encode(_join_alpha(ImageOps.grayscale(base), alpha))


def tint_image(data: bytes, color: str = "#0000FF") -> bytes:
    """Keep the luminance of the image and recolour it with ``color``.

    Any colour string Pillow understands is accepted (``#00f``,
    ``#0000ff``, ``rgb(0,0,255)``, ``blue``...).
    """
    rgb = ImageColor.getrgb(color)[:3]
    base, alpha = _split_alpha(_normalize(_open_image(data)))
    gray = ImageOps.grayscale(base)
    out = ImageOps.colorize(gray, black=(0, 0, 0), white=(255, 255, 255), mid=rgb)
    return _encode(_join_alpha(out, alpha))


def convert_image(data: bytes, fmt: str = "jpeg", quality: int = 80) -> bytes:
    """Re-encode an image in another format.

    ``quality`` applies to the lossy encoders (JPEG, WebP) and is ignored
    otherwise. JPEG output drops the alpha channel.
    """
    key = (fmt or "").lower()
    if key not in CONVERT_FORMATS:
        raise ValueError(f"Unsupported format '{fmt}', expected one of: {', '.join(CONVERT_FORMATS)}")
    if not 1 <= quality <= 100:
        raise ValueError("quality must be between 1 and 100")

    img = _normalize(_open_image(data))
    pil_format = CONVERT_FORMATS[key]
    params = {}
    if pil_format == "JPEG":
        img = _flatten(img)
        params["quality"] = quality
    elif pil_format == "WEBP":
        params["quality"] = quality
    return _encode(img, pil_format, **params)


def _colour_space(mode: str) -> str:
    if mode in ("1", "L", "LA"):
        return "b-w"
    if mode.startswith("I;16"):
        return "grey16"
    if mode == "CMYK":
        return "cmyk"
    if mode == "LAB":
        return "lab"
    return "srgb"


def _depth(mode: str) -> str:
    if mode.startswith("I;16"):
        return "ushort"
    if mode == "I":
        return "int"
    if mode == "F":
        return "float"
    return "uchar"


def read_metadata(data: bytes) -> dict:
    """Describe an image without transforming it.

    Returns:
        A dict with format, width, height, space, channels, depth, density
        (DPI, or ``None``), has_alpha, orientation (EXIF, or ``None``), size
        and the size in KB/MB as two-decimal strings.
    """
    img = _open_image(data)
    has_alpha = _has_alpha(img)
    if img.mode == "P":
        channels = 4 if has_alpha else 3
    else:
        channels = len(img.getbands())
    dpi = img.info.get("dpi")
    density = int(round(float(dpi[0]))) if dpi else None
    size = len(data)
    return {
        "format": img.format.lower() if img.format else None,
        "width": img.width,
        "height": img.height,
        "space": _colour_space(img.mode),
        "channels": channels,
        "depth": _depth(img.mode),
        "density": density,
        "has_alpha": has_alpha,
        "orientation": img.getexif().get(EXIF_ORIENTATION),
        "size": size,
        "size_in_kb": f"{size / 1024:.2f}",
        "size_in_mb": f"{size / (1024 * 1024):.2f}",
    }


def optimize_image(data: bytes, quality: int = 80) -> bytes:
    """Re-encode as an optimised progressive JPEG."""
    img = _flatten(_normalize(_open_image(data)))
    return _encode(img, "JPEG", quality=quality, progressive=True, optimize=True)


def apply_effects(
    data: bytes,
    brightness: float = 1.0,
    saturation: float = 1.0,
    hue: int = 0,
    contrast: float = 1.0,
) -> bytes:
    """Modulate brightness, saturation and hue, then stretch contrast.

    Brightness and saturation are multipliers (1.0 leaves the image
    unchanged), ``hue`` rotates the colour wheel by degrees and
    ``contrast`` applies ``contrast * x + (128 - 128 * contrast)`` to
    every colour channel.
    """
    if brightness < 0 or saturation < 0:
        raise ValueError("brightness and saturation must not be negative")
    base, alpha = _split_alpha(_normalize(_open_image(data)))
    rgb = base.convert("RGB")

    if brightness != 1:
        rgb = ImageEnhance.Brightness(rgb).enhance(brightness)
    if saturation != 1:
        rgb = ImageEnhance.Color(rgb).enhance(saturation)
    if hue % 360:
        shift = int(round((hue % 360) / 360 * 256)) % 256
        h, s, v = rgb.convert("HSV").split()
        h = h.point(lambda x: (x + shift) % 256)
        rgb = Image.merge("HSV", (h, s, v)).convert("RGB")
    if contrast != 1:
        offset = 128 - 128 * contrast
        rgb = rgb.point(lambda x: _clamp(x * contrast + offset))
    return _encode(_join_alpha(rgb, alpha))


def watermark_image(
    data: bytes,
    mark_data: bytes,
    position: str = "southeast",
    opacity: float = 0.5,
    scale: float = 0.2,
) -> bytes:
    """Place a translucent watermark on an image.

    The watermark is resized to ``scale`` of the base width (keeping its
    aspect ratio), its alpha is multiplied by ``opacity`` and it is placed
    at the ``position`` gravity.

    Args:
        data: Raw bytes of the base image.
        mark_data: Raw bytes of the watermark image.
        position: A key of ``GRAVITY``.
        opacity: 0 (invisible) to 1 (unchanged).
        scale: Watermark width as a fraction of the base width.

    Returns:
        The watermarked image as RGBA PNG bytes.
    """
    gravity = GRAVITY.get((position or "").lower())
    if gravity is None:
        raise ValueError(f"Unsupported position '{position}', expected one of: {', '.join(GRAVITY)}")
    if not 0 <= opacity <= 1:
        raise ValueError("opacity must be between 0 and 1")

    base = _normalize(_open_image(data)).convert("RGBA")
    mark = _normalize(_open_image(mark_data)).convert("RGBA")
    width = max(1, int(base.width * scale))
    height = max(1, round(mark.height * width / mark.width))
    mark = mark.resize((width, height), _LANCZOS)

    level = int(opacity * 255)
    mark.putalpha(mark.getchannel("A").point(lambda a: a * level // 255))
    _overlay(base, mark, gravity)
    return _encode(base)


def composite_images(base_data: bytes, overlays: Sequence[bytes]) -> bytes:
    """Stack every overlay, in order, centred on the base image."""
    base = _normalize(_open_image(base_data)).convert("RGBA")
    for layer_data in overlays:
        layer = _normalize(_open_image(layer_data)).convert("RGBA")
        _overlay(base, layer, GRAVITY["center"])
    return _encode(base)
