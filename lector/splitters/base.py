"""Unit splitting and per-unit extraction with OCR fallback."""

from __future__ import annotations

import asyncio
import io
import logging
import tempfile
import time
import zipfile
from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence

from lector.errors import UnitTimeoutError
from lector.models import (
    Document,
    DocumentResult,
    ExtractionUnit,
    OCRMode,
    OCRSource,
    PipelineOptions,
    ProgressCallback,
    UnitResult,
)
from lector.utils.images import save_image_bytes
from lector.utils.text import word_count

if TYPE_CHECKING:
    from lector.arbiter import OCRArbiter
    from lector.extractors.base import StructuralExtractor

logger = logging.getLogger(__name__)


class UnitSplitter(ABC):
    """Decomposes a document into units and extracts each one.

    Units run strictly one at a time, in batches of ``batch_size`` with
    temporary files cleared after each batch. Per unit the structural
    extractor runs first; OCR runs only when its verdict is insufficient
    and the stripped text is shorter than ``min_unit_chars``. Each unit
    attempt is bounded by ``unit_timeout`` and retried on timeout.

    Subclasses implement ``_split`` and ``render``.
    """

    unit_label: str = "Unit"
    summary_title: str = "Document"

    def __init__(
        self,
        extractor: "StructuralExtractor",
        arbiter: "OCRArbiter",
        options: PipelineOptions | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize splitter.

        Args:
            extractor: Structural extractor applied to each unit payload
            arbiter: OCR arbiter used for insufficient units
            options: Thresholds and pacing (defaults if None)
            sleep: Awaitable sleep used for pacing and retry delays
        """
        self.extractor = extractor
        self.arbiter = arbiter
        self.options = options or PipelineOptions()
        self._sleep = sleep
        # Timed-out attempts keep running; hold references until they finish
        self._abandoned: set[asyncio.Task] = set()

    @abstractmethod
    def _split(self, data: bytes) -> list[ExtractionUnit]:
        """Decompose document bytes into units.

        Raises:
            DocumentOpenError: If the container cannot be enumerated
        """
        ...

    @abstractmethod
    def render(self, data: bytes, unit: ExtractionUnit, workdir: Path) -> list[Path]:
        """Produce image files for OCR of one unit.

        Args:
            data: Whole document bytes
            unit: Unit to render
            workdir: Directory for temporary images

        Returns:
            Image paths (empty when the unit has nothing renderable)
        """
        ...

    def split(self, document: Document) -> list[ExtractionUnit]:
        """Decompose a document into its ordered units.

        Raises:
            DocumentOpenError: If the document cannot be read or enumerated
        """
        return self._split(document.read_bytes())

    async def process(
        self,
        document: Document,
        mode: OCRMode | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> DocumentResult:
        """Extract every unit of a document.

        Args:
            document: Document to process
            mode: OCR mode for insufficient units (options.ocr_mode if None)
            on_progress: Optional progress callback (stage, current, total)

        Returns:
            DocumentResult with one UnitResult per unit

        Raises:
            DocumentOpenError: If the document cannot be read or enumerated
        """
        mode = mode or self.options.ocr_mode
        data = document.read_bytes()
        units = self._split(data)
        total = len(units)
        batch_size = self.options.batch_size

        start = time.monotonic()
        results: list[UnitResult] = []
        previous_used_ocr = False

        with tempfile.TemporaryDirectory(prefix="lector-", ignore_cleanup_errors=True) as tmp:
            workdir = Path(tmp)
            for batch_start in range(0, total, batch_size):
                for unit in units[batch_start:batch_start + batch_size]:
                    if previous_used_ocr and self.options.inter_unit_delay > 0:
                        await self._sleep(self.options.inter_unit_delay)

                    result = await self._process_with_retries(data, unit, workdir, mode)
                    results.append(result)
                    previous_used_ocr = result.ocr_used

                    if on_progress:
                        on_progress("units", len(results), total)

                _clear_directory(workdir)

        elapsed = time.monotonic() - start
        ocr_units = sum(1 for r in results if r.ocr_used)
        warnings = [w for r in results for w in r.warnings]
        warnings.extend(self._document_warnings(results))

        return DocumentResult(
            document_id=document.identifier,
            name=document.name,
            mime_type=document.mime_type,
            method="hybrid" if ocr_units else "structural",
            combined_text=self._combine(results),
            total_units=total,
            total_word_count=sum(r.word_count for r in results),
            total_elapsed_time=elapsed,
            summary_text=self._summarize(results, elapsed),
            units=results,
            warnings=warnings,
        )

    async def _process_with_retries(
        self,
        data: bytes,
        unit: ExtractionUnit,
        workdir: Path,
        mode: OCRMode,
    ) -> UnitResult:
        timeout = self.options.unit_timeout
        attempts = self.options.unit_retries + 1

        for attempt in range(1, attempts + 1):
            attempt_start = time.monotonic()
            task = asyncio.ensure_future(self._process_unit(data, unit, workdir, mode))
            try:
                return await asyncio.wait_for(asyncio.shield(task), timeout)
            except asyncio.TimeoutError:
                self._abandon(task)
                logger.warning(
                    f"{self.unit_label} {unit.index} timed out after {timeout:g}s "
                    f"(attempt {attempt}/{attempts})"
                )
                if attempt < attempts and self.options.retry_delay > 0:
                    await self._sleep(self.options.retry_delay)
            except Exception as e:
                logger.warning(f"{self.unit_label} {unit.index} failed: {e}")
                return self._error_unit(unit, str(e), elapsed=time.monotonic() - attempt_start)

        error = UnitTimeoutError(unit.index, timeout)
        return self._error_unit(unit, str(error), elapsed=timeout)

    async def _process_unit(
        self,
        data: bytes,
        unit: ExtractionUnit,
        workdir: Path,
        mode: OCRMode,
    ) -> UnitResult:
        start = time.monotonic()
        label = f"{self.unit_label} {unit.index}"

        structural = self.extractor.extract(unit.payload)
        text = structural.text.strip()
        warnings = [f"{label}: {w}" for w in structural.warnings]
        ocr_used = False
        ocr_source: OCRSource | None = None

        if not structural.sufficient and len(text) < self.options.min_unit_chars:
            images = await asyncio.to_thread(self.render, data, unit, workdir)
            if not images:
                warnings.append(f"{label}: no renderable content for OCR")
            else:
                ocr_used = True
                ocr_texts = []
                for image in images:
                    result = await self.arbiter.recognize(image, mode)
                    ocr_source = result.source
                    if result.error:
                        warnings.append(f"{label}: OCR failed ({result.error})")
                    elif result.text.strip():
                        ocr_texts.append(result.text.strip())

                ocr_text = "\n".join(ocr_texts)
                if len(ocr_text) > len(text):
                    text = ocr_text
        elif not structural.sufficient:
            warnings.append(f"{label}: limited structural text ({len(text)} chars)")

        elapsed = time.monotonic() - start
        logger.debug(f"{label} done in {elapsed:.2f}s (ocr={ocr_used})")

        return UnitResult(
            unit_index=unit.index,
            text=text,
            word_count=word_count(text),
            elapsed_time=elapsed,
            ocr_used=ocr_used,
            ocr_source=ocr_source,
            warnings=warnings,
            fragment_counts=dict(Counter(f.kind for f in structural.fragments)),
        )

    def _abandon(self, task: asyncio.Task) -> None:
        self._abandoned.add(task)
        task.add_done_callback(self._discard_abandoned)

    def _discard_abandoned(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Abandoned unit attempt failed late: {task.exception()}")

    def _error_unit(self, unit: ExtractionUnit, message: str, elapsed: float) -> UnitResult:
        return UnitResult(
            unit_index=unit.index,
            text=f"{self.unit_label} {unit.index} could not be processed: {message}",
            word_count=0,
            elapsed_time=elapsed,
            error=message,
            warnings=[f"{self.unit_label} {unit.index}: {message}"],
        )

    def _combine(self, results: Sequence[UnitResult]) -> str:
        """Join unit texts into ``=== Label N ===`` blocks, skipping error units."""
        return "\n\n".join(
            f"=== {self.unit_label} {r.unit_index} ===\n{r.text}"
            for r in results
            if r.error is None and r.text
        )

    def _document_warnings(self, results: Sequence[UnitResult]) -> list[str]:
        """Extra document-level warnings (none by default)."""
        return []

    def _summarize(self, results: Sequence[UnitResult], elapsed: float) -> str:
        label = self.unit_label.lower()
        count = len(results)
        successful = sum(1 for r in results if r.word_count > 0)
        total_words = sum(r.word_count for r in results)
        average = round(total_words / count) if count else 0
        ocr_units = sum(1 for r in results if r.ocr_used)
        method = "hybrid (structural + OCR)" if ocr_units else "structural-only"

        return (
            f"{self.summary_title} Processing Summary:\n"
            f"• {count} {label}s processed ({successful} successful)\n"
            f"• {total_words} total words\n"
            f"• {average} average words per {label}\n"
            f"• {ocr_units} {label}s required OCR processing\n"
            f"• {round(elapsed)}s total processing time\n"
            f"• Processing method: {method}"
        )


def write_media(
    data: bytes,
    names: Sequence[str],
    workdir: Path,
    stem: str,
    max_dimension: int | None = None,
) -> list[Path]:
    """Copy raster parts out of a ZIP container as JPEG files.

    Unreadable images are skipped.

    Args:
        data: Container bytes
        names: Part names to extract
        workdir: Destination directory
        stem: File name prefix
        max_dimension: Longest side of each written image (unbounded if None)

    Returns:
        Paths of the written images, in input order
    """
    if not names:
        return []

    paths = []
    with zipfile.ZipFile(io.BytesIO(data)) as package:
        for i, name in enumerate(names, start=1):
            target = workdir / f"{stem}-{i}.jpg"
            try:
                paths.append(save_image_bytes(package.read(name), target, max_dimension))
            except (KeyError, OSError, zipfile.BadZipFile) as e:
                logger.debug(f"Skipping unreadable image {name}: {e}")
    return paths


def _clear_directory(workdir: Path) -> None:
    """Best-effort removal of files left by a batch."""
    for path in workdir.iterdir():
        try:
            path.unlink()
        except OSError as e:
            logger.debug(f"Could not remove {path.name}: {e}")
