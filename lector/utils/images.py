"""Raster helpers shared by the OCR backends and splitters."""

from __future__ import annotations

import base64
import io
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from PIL import Image

RASTER_EXTENSIONS = {".png", ".jpg", ".jpeg", ".tiff", ".tif", ".bmp", ".gif", ".webp"}
JPEG_QUALITY = 90


def resize_for_ocr(image: "Image.Image", max_dimension: int = 2048) -> "Image.Image":
    """Downscale so the longer side is at most max_dimension.

    Images already within bounds are returned as-is.
    """
    longest = max(image.size)
    if longest <= max_dimension:
        return image

    from PIL import Image as PILImage

    ratio = max_dimension / longest
    target = tuple(max(1, round(side * ratio)) for side in image.size)
    return image.resize(target, PILImage.Resampling.LANCZOS)


def _as_jpeg_compatible(image: "Image.Image") -> "Image.Image":
    # JPEG stores only L and RGB among the modes Pillow hands us
    return image if image.mode in ("RGB", "L") else image.convert("RGB")


def image_to_jpeg_base64(image: "Image.Image", quality: int = JPEG_QUALITY) -> str:
    """Encode an image as a base64 JPEG string for API payloads."""
    buffer = io.BytesIO()
    _as_jpeg_compatible(image).save(buffer, format="JPEG", quality=quality)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def load_image(image_path: Path) -> "Image.Image":
    """Read an image file into memory and release the file handle.

    Raises:
        OSError: If the file is missing or not a readable image
    """
    from PIL import Image as PILImage

    with PILImage.open(image_path) as opened:
        opened.load()
        return opened.copy()


def is_raster_name(name: str) -> bool:
    """Check whether a file or container part name looks like a raster image."""
    return Path(name).suffix.lower() in RASTER_EXTENSIONS


def save_image_bytes(data: bytes, target: Path, max_dimension: int | None = None) -> Path:
    """Decode raster bytes and write them to target as JPEG.

    Args:
        data: Encoded image bytes (any format Pillow reads)
        target: Destination path
        max_dimension: Longest side of the written image (unbounded if None)

    Returns:
        The written path

    Raises:
        OSError: If the bytes are not a readable image
    """
    from PIL import Image as PILImage

    with PILImage.open(io.BytesIO(data)) as opened:
        opened.load()
        image = resize_for_ocr(opened, max_dimension) if max_dimension else opened
        _as_jpeg_compatible(image).save(target, format="JPEG", quality=JPEG_QUALITY)
    return target
