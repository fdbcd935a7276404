"""PDF utility functions."""

from __future__ import annotations

from pathlib import Path

import fitz  # PyMuPDF

from lector.errors import DocumentOpenError
from lector.utils.images import resize_for_ocr


def open_pdf(data: bytes) -> "fitz.Document":
    """Open PDF bytes with PyMuPDF.

    Args:
        data: Raw PDF bytes

    Returns:
        Open fitz Document (caller closes it)

    Raises:
        DocumentOpenError: If the bytes are not a readable PDF
    """
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise DocumentOpenError(f"Cannot open PDF: {e}") from e

    if doc.needs_pass:
        doc.close()
        raise DocumentOpenError("Cannot open PDF: document is encrypted")
    return doc


def get_page_contents(data: bytes) -> list[bytes]:
    """Return the decoded content stream of every page.

    Each entry is the concatenation of the page's content streams with
    filters already applied, i.e. the raw text-showing operators.
    """
    with open_pdf(data) as doc:
        return [page.read_contents() for page in doc]


def render_page_to_file(
    data: bytes,
    page_number: int,
    target: Path,
    dpi: int = 200,
    max_dimension: int | None = None,
) -> Path:
    """Render a PDF page to a JPEG file.

    Args:
        data: Raw PDF bytes
        page_number: 0-indexed page number
        target: Destination image path
        dpi: Resolution for rendering
        max_dimension: Longest side of the written image (unbounded if None)

    Returns:
        The written path
    """
    from PIL import Image as PILImage

    with open_pdf(data) as doc:
        page = doc[page_number]

        # 72 is the native PDF resolution
        zoom = dpi / 72
        pixmap = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)

        img = PILImage.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
        if max_dimension:
            img = resize_for_ocr(img, max_dimension)
        img.save(target, format="JPEG", quality=90)

    return target
