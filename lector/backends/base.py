"""OCR backend interface shared by remote and local recognizers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, Field

from lector.models import TextBlock

DEFAULT_OCR_PROMPT = (
    "Extract all text from this image. Return only the extracted text "
    "without any additional commentary or formatting."
)


class RecognizedText(BaseModel):
    """Raw output of a single backend recognition call."""

    text: str = Field(description="Recognized text, stripped of surrounding whitespace")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence score of OCR")
    blocks: list[TextBlock] = Field(default_factory=list, description="Per-block detail, if any")


class OCRBackend(ABC):
    """Recognizes text in a single image file.

    Remote implementations talk to a vision-capable chat API; local
    implementations run an on-device recognizer. Failures are raised as
    RemoteProviderError or LocalProviderError respectively.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name (e.g., 'mistral', 'tesseract')."""
        ...

    @abstractmethod
    async def recognize(
        self,
        image_path: Path,
        prompt: str | None = None,
    ) -> RecognizedText:
        """Perform OCR on an image file.

        Args:
            image_path: Local image file to process
            prompt: Optional custom instruction (remote backends only)

        Returns:
            RecognizedText with extracted text and confidence
        """
        ...

    @abstractmethod
    async def is_available(self) -> bool:
        """Check whether the backend can take requests right now.

        Returns:
            True if a recognize call is expected to reach the engine
        """
        ...

    def get_default_prompt(self) -> str:
        """Get the default OCR instruction.

        Returns:
            Prompt string asking for plain text only
        """
        return DEFAULT_OCR_PROMPT

    async def aclose(self) -> None:
        """Release any held resources."""
        return None
