"""Slide-by-slide processing of PowerPoint documents."""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Sequence

from lector.errors import ContainerParseError, DocumentOpenError
from lector.models import ExtractionUnit, UnitResult
from lector.splitters.base import UnitSplitter, write_media
from lector.utils.ooxml import open_package, related_images, slide_parts

logger = logging.getLogger(__name__)

# Presentations with fewer words than this are probably mostly pictures
LOW_CONTENT_WORDS = 100


class PptxSlideSplitter(UnitSplitter):
    """Splits a PPTX container into slides.

    Each ``ppt/slides/slideN.xml`` part is one unit, in numeric order.
    Insufficient slides are "rendered" to the raster images their
    relationships reference.
    """

    unit_label = "Slide"
    summary_title = "PPTX"

    def _split(self, data: bytes) -> list[ExtractionUnit]:
        try:
            package = open_package(data)
        except ContainerParseError as e:
            raise DocumentOpenError(f"Cannot open presentation: {e}") from e

        units = []
        with package:
            for i, name in enumerate(slide_parts(package), start=1):
                try:
                    payload = package.read(name)
                except (zipfile.BadZipFile, OSError) as e:
                    logger.warning(f"Slide part {name} unreadable: {e}")
                    payload = b""
                units.append(
                    ExtractionUnit(
                        index=i,
                        payload=payload,
                        part_name=name,
                        media=tuple(related_images(package, name)),
                    )
                )
        return units

    def render(self, data: bytes, unit: ExtractionUnit, workdir: Path) -> list[Path]:
        return write_media(
            data,
            unit.media,
            workdir,
            stem=f"slide-{unit.index}",
            max_dimension=self.options.max_image_dimension,
        )

    def _document_warnings(self, results: Sequence[UnitResult]) -> list[str]:
        total_words = sum(r.word_count for r in results)
        if total_words < LOW_CONTENT_WORDS:
            return [f"Only {total_words} words extracted; presentation may be image-heavy"]
        return []
