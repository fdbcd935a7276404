"""Page-by-page processing of PDF documents."""

from __future__ import annotations

from pathlib import Path

from lector.models import ExtractionUnit
from lector.splitters.base import UnitSplitter
from lector.utils.pdf import get_page_contents, render_page_to_file


class PdfPageSplitter(UnitSplitter):
    """Splits a PDF into pages.

    Each page's decoded content stream is the unit payload; insufficient
    pages are rendered through PyMuPDF for OCR.
    """

    unit_label = "Page"
    summary_title = "Multi-page PDF"

    def _split(self, data: bytes) -> list[ExtractionUnit]:
        return [
            ExtractionUnit(index=i, payload=contents)
            for i, contents in enumerate(get_page_contents(data), start=1)
        ]

    def render(self, data: bytes, unit: ExtractionUnit, workdir: Path) -> list[Path]:
        target = workdir / f"page-{unit.index}.jpg"
        return [
            render_page_to_file(
                data,
                unit.index - 1,
                target,
                dpi=self.options.render_dpi,
                max_dimension=self.options.max_image_dimension,
            )
        ]
