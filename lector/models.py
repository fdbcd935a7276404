"""Pydantic models for Lector extraction results."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lector.errors import DocumentOpenError

# Progress callback type: (stage, current, total) -> None
# Stages: "units", "documents"
ProgressCallback = Callable[[str, int, int], None]

# Caller preference for OCR routing
OCRMode = Literal["online", "offline", "auto"]

# Which provider produced an OCR result
OCRSource = Literal["remote", "local"]

# Coarse label for how a document's text was obtained
ProcessingMethod = Literal["structural", "hybrid", "ocr", "passthrough"]

# Extra MIME types the stdlib table does not always know
_EXTRA_TYPES = {
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".webp": "image/webp",
}


class Document(BaseModel):
    """Caller-owned handle to a document awaiting extraction.

    Exactly one byte source must be given: a filesystem ``path`` or
    in-memory ``content``. The pipeline never mutates a Document.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(description="Unique identifier for this document")
    name: str = Field(description="Display name")
    mime_type: str = Field(description="Declared MIME type")
    path: Path | None = Field(default=None, description="File holding the document bytes")
    content: bytes | None = Field(default=None, repr=False, description="In-memory bytes")

    @model_validator(mode="after")
    def _check_source(self) -> "Document":
        if (self.path is None) == (self.content is None):
            raise ValueError("Document needs exactly one of 'path' or 'content'")
        return self

    @classmethod
    def from_path(
        cls,
        path: str | Path,
        mime_type: str | None = None,
        identifier: str | None = None,
    ) -> "Document":
        """Build a Document for a file on disk.

        Args:
            path: Path to the file
            mime_type: Declared MIME type (guessed from the suffix if None)
            identifier: Unique identifier (defaults to the resolved path)

        Returns:
            Document referencing the file
        """
        path = Path(path)
        if mime_type is None:
            mime_type = guess_mime_type(path)
        return cls(
            identifier=identifier or str(path.resolve()),
            name=path.name,
            mime_type=mime_type,
            path=path,
        )

    @classmethod
    def from_bytes(
        cls,
        content: bytes,
        name: str,
        mime_type: str | None = None,
        identifier: str | None = None,
    ) -> "Document":
        """Build a Document around in-memory bytes."""
        if mime_type is None:
            mime_type = guess_mime_type(Path(name))
        return cls(
            identifier=identifier or name,
            name=name,
            mime_type=mime_type,
            content=content,
        )

    @property
    def size(self) -> int:
        """Size of the document in bytes (0 if the file is missing)."""
        if self.content is not None:
            return len(self.content)
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

    def read_bytes(self) -> bytes:
        """Return the document bytes.

        Raises:
            DocumentOpenError: If the backing file cannot be read
        """
        if self.content is not None:
            return self.content
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise DocumentOpenError(f"Cannot read {self.name}: {e}") from e


def guess_mime_type(path: Path) -> str:
    """Guess a MIME type from a file name, defaulting to octet-stream."""
    suffix = path.suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


class ExtractionUnit(BaseModel):
    """One indivisible chunk of structural work (page, slide, or whole file)."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=1, description="1-based unit index")
    payload: bytes = Field(repr=False, description="Bytes handed to the structural extractor")
    part_name: str | None = Field(default=None, description="Container part backing this unit")
    media: tuple[str, ...] = Field(
        default=(), description="Container parts holding raster images referenced by the unit"
    )


class TextFragment(BaseModel):
    """A classified piece of structural text, kept for diagnostics."""

    text: str
    kind: Literal["title", "body", "bullet"]
    level: int = Field(ge=0, description="Nesting depth of the fragment")


class StructuralText(BaseModel):
    """Output of a structural extractor for one unit payload."""

    text: str = Field(description="Raw extracted text")
    sufficient: bool = Field(description="Whether the text is enough to skip OCR")
    method: str = Field(default="structural", description="Strategy that produced the text")
    warnings: list[str] = Field(default_factory=list)
    fragments: list[TextFragment] = Field(default_factory=list)


class TextBlock(BaseModel):
    """A block of text reported by a recognizer."""

    text: str
    confidence: float = Field(ge=0.0, le=1.0)
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


class OCRRequest(BaseModel):
    """A single OCR invocation."""

    image_path: Path = Field(description="Local image file to recognize")
    mode: OCRMode = Field(default="auto", description="Caller routing preference")


class OCRResult(BaseModel):
    """Outcome of an arbitrated OCR call."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Recognized text (or a diagnostic message)")
    confidence: float = Field(ge=0.0, le=1.0, description="Recognition confidence")
    source: OCRSource = Field(description="Provider that produced the text")
    elapsed_time: float = Field(ge=0.0, description="Seconds spent on the call")
    fallback_used: bool = Field(default=False, description="Local fallback replaced remote")
    blocks: list[TextBlock] = Field(default_factory=list)
    error: str | None = Field(default=None, description="Failure description, if any")


class UnitResult(BaseModel):
    """Extraction result for one unit."""

    model_config = ConfigDict(frozen=True)

    unit_index: int = Field(ge=1, description="1-based unit index")
    text: str = Field(description="Unit text, or the failure description for error units")
    word_count: int = Field(ge=0)
    elapsed_time: float = Field(ge=0.0, description="Seconds spent on the unit")
    ocr_used: bool = Field(default=False)
    ocr_source: OCRSource | None = Field(default=None)
    error: str | None = Field(default=None)
    warnings: list[str] = Field(default_factory=list)
    fragment_counts: dict[str, int] = Field(
        default_factory=dict,
        description="Structural fragments by kind (title, body, bullet), when classified",
    )


class DocumentResult(BaseModel):
    """Terminal output of the pipeline for one Document."""

    document_id: str
    name: str
    mime_type: str
    method: ProcessingMethod
    combined_text: str
    total_units: int = Field(ge=0)
    total_word_count: int = Field(ge=0)
    total_elapsed_time: float = Field(ge=0.0)
    summary_text: str
    units: list[UnitResult] = Field(default_factory=list, description="Per-unit results")
    warnings: list[str] = Field(default_factory=list)

    @property
    def ocr_units(self) -> int:
        """Number of units that invoked OCR."""
        return sum(1 for u in self.units if u.ocr_used)

    @property
    def successful_units(self) -> int:
        """Number of units that produced at least one word."""
        return sum(1 for u in self.units if u.word_count > 0)


class DocumentFailure(BaseModel):
    """A batch entry that could not produce a DocumentResult."""

    document_id: str
    name: str
    mime_type: str
    error_type: str
    error: str


class BatchResult(BaseModel):
    """Aggregate of a sequential batch run."""

    results: list[DocumentResult] = Field(default_factory=list)
    failures: list[DocumentFailure] = Field(default_factory=list)
    combined_text: str = ""
    total_word_count: int = Field(default=0, ge=0)
    total_elapsed_time: float = Field(default=0.0, ge=0.0)
    summary: str = ""

    @property
    def succeeded(self) -> list[str]:
        """Identifiers of documents that processed successfully."""
        return [r.document_id for r in self.results]

    @property
    def failed(self) -> list[str]:
        """Identifiers of documents that failed."""
        return [f.document_id for f in self.failures]


class ArbiterStatus(BaseModel):
    """Snapshot of OCR arbiter health."""

    cooldown_active: bool
    consecutive_failures: int = Field(ge=0)
    cooldown_expiry: float = Field(description="Clock time at which cooldown ends (0 if none)")
    seconds_until_remote: float = Field(ge=0.0)
    can_use_remote: bool


class ModeRecommendation(BaseModel):
    """Suggested OCR mode given current arbiter health."""

    mode: OCRMode
    reason: str


class ProcessingEstimate(BaseModel):
    """Rough cost estimate for processing a set of documents."""

    recommend_remote_ocr: bool
    estimated_seconds: float = Field(ge=0.0)
    warnings: list[str] = Field(default_factory=list)


class PipelineOptions(BaseModel):
    """Tunable thresholds and pacing for the extraction pipeline."""

    ocr_mode: OCRMode = Field(default="auto", description="Default OCR routing preference")
    min_unit_chars: int = Field(
        default=20, ge=0, description="Units with less stripped text than this may use OCR"
    )
    min_structural_chars: int = Field(
        default=50, ge=0, description="Structural text length needed to be judged sufficient"
    )
    min_readable_ratio: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Readable-character ratio a PDF page must exceed"
    )
    batch_size: int = Field(default=5, ge=1, description="Units processed between cleanups")
    unit_timeout: float = Field(default=45.0, gt=0.0, description="Per-unit timeout in seconds")
    unit_retries: int = Field(default=2, ge=0, description="Extra attempts after a unit timeout")
    retry_delay: float = Field(default=1.0, ge=0.0, description="Pause before retrying a unit")
    inter_unit_delay: float = Field(
        default=0.5, ge=0.0, description="Pause after a unit that invoked OCR"
    )
    render_dpi: int = Field(default=200, ge=36, description="Resolution for rendering PDF pages")
    max_image_dimension: int = Field(
        default=2048, ge=64, description="Largest side of images sent to OCR"
    )
