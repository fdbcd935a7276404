"""Single-unit processing of Word documents."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from lector.errors import ContainerParseError
from lector.models import ExtractionUnit, UnitResult
from lector.splitters.base import UnitSplitter, write_media
from lector.utils.ooxml import media_parts, open_package

MEDIA_PREFIX = "word/media/"


class DocxSplitter(UnitSplitter):
    """Treats a whole DOCX container as one unit.

    A malformed container still yields its single unit; the extractor
    then reports it insufficient.
    """

    unit_label = "Document"
    summary_title = "DOCX"

    def _split(self, data: bytes) -> list[ExtractionUnit]:
        try:
            with open_package(data) as package:
                media = tuple(media_parts(package, MEDIA_PREFIX))
        except ContainerParseError:
            media = ()
        return [ExtractionUnit(index=1, payload=data, part_name="word/document.xml", media=media)]

    def render(self, data: bytes, unit: ExtractionUnit, workdir: Path) -> list[Path]:
        return write_media(
            data,
            unit.media,
            workdir,
            stem="docx-media",
            max_dimension=self.options.max_image_dimension,
        )

    def _combine(self, results: Sequence[UnitResult]) -> str:
        return "\n\n".join(r.text for r in results if r.error is None and r.text)
