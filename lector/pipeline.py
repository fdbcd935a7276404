"""DocumentPipeline - main entry point for text extraction."""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

from lector.arbiter import OCRArbiter
from lector.backends.base import OCRBackend
from lector.backends.tesseract import TesseractBackend
from lector.errors import RemoteProviderError, UnsupportedDocumentType
from lector.extractors import DocxExtractor, PdfExtractor, PptxExtractor
from lector.models import (
    BatchResult,
    Document,
    DocumentFailure,
    DocumentResult,
    OCRMode,
    PipelineOptions,
    ProcessingEstimate,
    ProgressCallback,
    UnitResult,
)
from lector.splitters import DocxSplitter, PdfPageSplitter, PptxSlideSplitter, UnitSplitter
from lector.utils.images import save_image_bytes
from lector.utils.text import word_count

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


class DocumentPipeline:
    """Extract plain text from PDF, DOCX, PPTX, image and text documents.

    Dispatch is on the declared MIME type. Structured formats go through
    their splitter (structural extraction first, OCR only for units that
    need it); images always go to OCR; text is passed through.

    Example:
        >>> from lector import DocumentPipeline, Document
        >>> from lector.backends import MistralBackend, TesseractBackend
        >>>
        >>> pipeline = DocumentPipeline(MistralBackend(), TesseractBackend())
        >>> result = await pipeline.process(Document.from_path("slides.pptx"))
        >>> print(result.summary_text)
    """

    def __init__(
        self,
        remote_backend: OCRBackend | None = None,
        local_backend: OCRBackend | None = None,
        options: PipelineOptions | None = None,
        arbiter: OCRArbiter | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the pipeline.

        Args:
            remote_backend: Remote OCR backend (None for local-only OCR)
            local_backend: Local OCR backend (Tesseract if None)
            options: Thresholds and pacing (defaults if None)
            arbiter: Pre-built arbiter; overrides both backends when given
            sleep: Awaitable sleep used for pacing and retry delays
        """
        self.options = options or PipelineOptions()
        if arbiter is None:
            arbiter = OCRArbiter(remote_backend, local_backend or TesseractBackend())
        self.arbiter = arbiter

        opts = self.options
        self._pdf = PdfPageSplitter(
            PdfExtractor(opts.min_structural_chars, opts.min_readable_ratio), arbiter, opts, sleep
        )
        self._docx = DocxSplitter(DocxExtractor(opts.min_structural_chars), arbiter, opts, sleep)
        self._pptx = PptxSlideSplitter(
            PptxExtractor(opts.min_structural_chars), arbiter, opts, sleep
        )

    async def __aenter__(self) -> "DocumentPipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release backend resources."""
        for backend in (self.arbiter.remote, self.arbiter.local):
            if backend is not None:
                await backend.aclose()

    def splitter_for(self, mime_type: str) -> UnitSplitter | None:
        """Return the splitter handling a MIME type, if it is a container format."""
        mime = mime_type.lower()
        if "pdf" in mime:
            return self._pdf
        if "wordprocessing" in mime:
            return self._docx
        if "presentation" in mime:
            return self._pptx
        return None

    def is_supported(self, mime_type: str) -> bool:
        """Check whether a MIME type has an extraction path."""
        mime = mime_type.lower()
        return (
            self.splitter_for(mime) is not None
            or mime.startswith("image/")
            or mime.startswith("text/")
        )

    async def process(
        self,
        document: Document,
        mode: OCRMode | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> DocumentResult:
        """Extract text from one document.

        Args:
            document: Document to process
            mode: OCR mode (options.ocr_mode if None)
            on_progress: Optional progress callback (stage, current, total).
                Stage: "units"

        Returns:
            DocumentResult with combined text and per-unit diagnostics

        Raises:
            UnsupportedDocumentType: If the MIME type has no extraction path
            DocumentOpenError: If the document cannot be read or enumerated
        """
        mode = mode or self.options.ocr_mode
        mime = document.mime_type.lower()

        if not self.is_supported(mime):
            raise UnsupportedDocumentType(document.mime_type)

        logger.info(f"Processing {document.name} ({document.mime_type}, mode={mode})")

        splitter = self.splitter_for(mime)
        if splitter is not None:
            result = await splitter.process(document, mode, on_progress)
        elif mime.startswith("image/"):
            result = await self._process_image(document, mode, on_progress)
        else:
            result = self._process_text(document, on_progress)

        logger.info(
            f"Finished {document.name}: {result.total_word_count} words, "
            f"{result.ocr_units}/{result.total_units} OCR units, "
            f"{result.total_elapsed_time:.1f}s ({result.method})"
        )
        return result

    async def extract(self, document: Document, mode: OCRMode | None = None) -> str:
        """Extract text from one document and return only the combined text."""
        result = await self.process(document, mode)
        return result.combined_text

    async def process_batch(
        self,
        documents: Sequence[Document],
        mode: OCRMode | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Process documents one after another, continuing past failures.

        Args:
            documents: Documents to process, in order
            mode: OCR mode for every document (options.ocr_mode if None)
            on_progress: Optional progress callback (stage, current, total).
                Stage: "documents"

        Returns:
            BatchResult with successes, failures, and combined text
        """
        total = len(documents)
        logger.info(f"Starting batch of {total} documents")

        results: list[DocumentResult] = []
        failures: list[DocumentFailure] = []

        for i, document in enumerate(documents):
            try:
                results.append(await self.process(document, mode))
            except Exception as e:
                logger.warning(f"Batch document {document.name} failed: {e}")
                failures.append(
                    DocumentFailure(
                        document_id=document.identifier,
                        name=document.name,
                        mime_type=document.mime_type,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                )

            if on_progress:
                on_progress("documents", i + 1, total)

        combined = "\n\n".join(
            f"=== {r.name} ===\n{r.combined_text}" for r in results if r.combined_text
        )
        batch = BatchResult(
            results=results,
            failures=failures,
            combined_text=combined,
            total_word_count=sum(r.total_word_count for r in results),
            total_elapsed_time=sum(r.total_elapsed_time for r in results),
            summary=_batch_summary(results, failures),
        )

        logger.info(f"Batch finished: {len(results)} succeeded, {len(failures)} failed")
        return batch

    def estimate(self, documents: Sequence[Document]) -> ProcessingEstimate:
        """Roughly estimate processing cost for a set of documents.

        Starts at 2 seconds per document, doubled when any file exceeds
        10 MB and multiplied by 1.5 when any DOCX/PPTX is present.

        Args:
            documents: Documents to estimate

        Returns:
            ProcessingEstimate with remote-OCR recommendation and warnings
        """
        sizes = [d.size for d in documents]
        has_large = any(size > 10 * _MB for size in sizes)
        has_complex = any(
            "wordprocessing" in d.mime_type.lower() or "presentation" in d.mime_type.lower()
            for d in documents
        )

        warnings: list[str] = []
        seconds = len(documents) * 2.0

        if has_large:
            warnings.append("Large files detected - processing may take longer")
            seconds *= 2
        if has_complex:
            warnings.append("Complex document formats detected - OCR fallback may be used")
            seconds *= 1.5
        if sum(sizes) > 50 * _MB:
            warnings.append("Large batch size - consider processing in smaller groups")

        return ProcessingEstimate(
            recommend_remote_ocr=has_large or has_complex,
            estimated_seconds=seconds,
            warnings=warnings,
        )

    async def _process_image(
        self,
        document: Document,
        mode: OCRMode,
        on_progress: ProgressCallback | None,
    ) -> DocumentResult:
        """OCR a raster image document as a single unit."""
        data = document.read_bytes()
        start = time.monotonic()
        suffix = Path(document.name).suffix or ".img"
        error: str | None = None

        if on_progress:
            on_progress("units", 0, 1)

        with tempfile.TemporaryDirectory(prefix="lector-", ignore_cleanup_errors=True) as tmp:
            image_path = await asyncio.to_thread(self._stage_image, data, Path(tmp), suffix)
            try:
                ocr = await self.arbiter.recognize(image_path, mode)
            except RemoteProviderError as e:
                logger.warning(f"Remote OCR failed for {document.name}: {e}")
                ocr = None
                error = str(e)

        elapsed = time.monotonic() - start
        warnings: list[str] = []

        if ocr is None:
            text = f"OCR failed for {document.name}: {error}"
            unit = UnitResult(
                unit_index=1,
                text=text,
                word_count=0,
                elapsed_time=elapsed,
                ocr_used=True,
                ocr_source="remote",
                error=error,
                warnings=[text],
            )
            summary = f"Image Processing Summary:\n• OCR failed: {error}"
        else:
            recognized = ocr.text.strip() if ocr.error is None else ""
            if recognized:
                text = recognized
            else:
                text = ocr.text.strip() or (
                    f"No text detected in {document.name} "
                    f"(OCR source: {ocr.source}, {ocr.elapsed_time:.1f}s, "
                    f"fallback used: {'yes' if ocr.fallback_used else 'no'})"
                )
                warnings.append(f"No text recognized in {document.name}")
            if ocr.fallback_used:
                warnings.append("Remote OCR unavailable, local OCR used")

            unit = UnitResult(
                unit_index=1,
                text=text,
                word_count=word_count(recognized),
                elapsed_time=elapsed,
                ocr_used=True,
                ocr_source=ocr.source,
                error=ocr.error,
                warnings=warnings,
            )
            summary = (
                "Image Processing Summary:\n"
                f"• {unit.word_count} words recognized\n"
                f"• OCR source: {ocr.source} (confidence {ocr.confidence:.2f})\n"
                f"• Fallback used: {'yes' if ocr.fallback_used else 'no'}\n"
                f"• {round(elapsed)}s total processing time"
            )

        if on_progress:
            on_progress("units", 1, 1)

        return DocumentResult(
            document_id=document.identifier,
            name=document.name,
            mime_type=document.mime_type,
            method="ocr",
            combined_text=unit.text,
            total_units=1,
            total_word_count=unit.word_count,
            total_elapsed_time=elapsed,
            summary_text=summary,
            units=[unit],
            warnings=list(unit.warnings),
        )

    def _stage_image(self, data: bytes, workdir: Path, suffix: str) -> Path:
        """Write an image document for OCR, bounded to max_image_dimension.

        Bytes Pillow cannot decode are written unchanged so the OCR backend
        reports the failure.
        """
        target = workdir / "image.jpg"
        try:
            return save_image_bytes(data, target, self.options.max_image_dimension)
        except OSError as e:
            logger.debug(f"Image not decodable, passing raw bytes to OCR: {e}")
            raw = workdir / f"image{suffix}"
            raw.write_bytes(data)
            return raw

    def _process_text(
        self,
        document: Document,
        on_progress: ProgressCallback | None,
    ) -> DocumentResult:
        """Pass a plain-text document through unchanged."""
        start = time.monotonic()
        text = document.read_bytes().decode("utf-8", errors="replace")
        words = word_count(text)
        elapsed = time.monotonic() - start

        if on_progress:
            on_progress("units", 1, 1)

        unit = UnitResult(unit_index=1, text=text, word_count=words, elapsed_time=elapsed)
        return DocumentResult(
            document_id=document.identifier,
            name=document.name,
            mime_type=document.mime_type,
            method="passthrough",
            combined_text=text,
            total_units=1,
            total_word_count=words,
            total_elapsed_time=elapsed,
            summary_text=(
                f"Text Processing Summary:\n• {words} total words\n"
                "• Processing method: passthrough"
            ),
            units=[unit],
        )


def _type_label(mime_type: str) -> str:
    mime = mime_type.lower()
    if "pdf" in mime:
        return "PDF"
    if "wordprocessing" in mime:
        return "DOCX"
    if "presentation" in mime:
        return "PPTX"
    if mime.startswith("image/"):
        return "Image"
    if mime.startswith("text/"):
        return "Text"
    return "Other"


def _batch_summary(results: Sequence[DocumentResult], failures: Sequence[DocumentFailure]) -> str:
    total_words = sum(r.total_word_count for r in results)
    average = round(total_words / len(results)) if results else 0

    breakdown: dict[str, int] = {}
    for r in results:
        label = _type_label(r.mime_type)
        breakdown[label] = breakdown.get(label, 0) + 1
    types = ", ".join(f"{count} {label}" for label, count in breakdown.items()) or "none"

    return (
        "Batch Processing Summary:\n"
        f"• {len(results)} documents processed ({len(failures)} failed)\n"
        f"• {total_words} total words (avg: {average} per doc)\n"
        f"• {sum(r.ocr_units for r in results)} units required OCR processing\n"
        f"• Document types: {types}"
    )
