"""Lector: layered document text extraction with OCR fallback.

Lector pulls plain text out of PDF, DOCX, PPTX, image and text documents.
Structural parsing runs first; OCR is used only for units that yield too
little text, arbitrating between a remote vision API and local Tesseract
with automatic cooldown when the remote provider keeps failing.

Example:
    >>> from lector import Document, DocumentPipeline
    >>> from lector.backends import MistralBackend, TesseractBackend
    >>>
    >>> pipeline = DocumentPipeline(MistralBackend(), TesseractBackend())
    >>> text = await pipeline.extract(Document.from_path("lecture.pdf"))
"""

from lector.arbiter import ArbiterHealthState, OCRArbiter
from lector.errors import (
    ContainerParseError,
    DocumentOpenError,
    LectorError,
    LocalProviderError,
    RateLimitError,
    RemoteProviderError,
    UnitTimeoutError,
    UnsupportedDocumentType,
)
from lector.models import (
    ArbiterStatus,
    BatchResult,
    Document,
    DocumentFailure,
    DocumentResult,
    ExtractionUnit,
    ModeRecommendation,
    OCRMode,
    OCRRequest,
    OCRResult,
    PipelineOptions,
    ProcessingEstimate,
    ProgressCallback,
    StructuralText,
    UnitResult,
)
from lector.pipeline import DocumentPipeline

__version__ = "0.1.0"

__all__ = [
    "DocumentPipeline",
    "OCRArbiter",
    "ArbiterHealthState",
    # Models
    "Document",
    "ExtractionUnit",
    "StructuralText",
    "UnitResult",
    "DocumentResult",
    "DocumentFailure",
    "BatchResult",
    "OCRRequest",
    "OCRResult",
    "OCRMode",
    "ArbiterStatus",
    "ModeRecommendation",
    "ProcessingEstimate",
    "PipelineOptions",
    "ProgressCallback",
    # Errors
    "LectorError",
    "ContainerParseError",
    "DocumentOpenError",
    "UnsupportedDocumentType",
    "RemoteProviderError",
    "RateLimitError",
    "LocalProviderError",
    "UnitTimeoutError",
]
