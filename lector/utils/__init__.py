"""Utility functions for Lector."""

from lector.utils.images import (
    image_to_jpeg_base64,
    is_raster_name,
    load_image,
    resize_for_ocr,
    save_image_bytes,
)
from lector.utils.pdf import (
    get_page_contents,
    open_pdf,
    render_page_to_file,
)
from lector.utils.text import (
    clean_text,
    collapse_whitespace,
    has_letter,
    readable_ratio,
    word_count,
)

__all__ = [
    # Image utilities
    "resize_for_ocr",
    "image_to_jpeg_base64",
    "load_image",
    "is_raster_name",
    "save_image_bytes",
    # PDF utilities
    "open_pdf",
    "get_page_contents",
    "render_page_to_file",
    # Text utilities
    "word_count",
    "readable_ratio",
    "has_letter",
    "collapse_whitespace",
    "clean_text",
]
