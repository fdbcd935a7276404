"""Abstract base class for structural extractors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from lector.errors import ContainerParseError
from lector.models import StructuralText

logger = logging.getLogger(__name__)


class StructuralExtractor(ABC):
    """Derives text from a unit's native markup without image recognition.

    Subclasses implement ``_extract``. The public ``extract`` never raises
    for malformed input: a ContainerParseError becomes an empty,
    insufficient result carrying a warning, so callers fall through to OCR.
    """

    def __init__(self, min_chars: int = 50):
        """Initialize extractor.

        Args:
            min_chars: Text length needed for a sufficient verdict
        """
        self.min_chars = min_chars

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this extractor (e.g., 'pdf', 'docx', 'pptx')."""
        ...

    @abstractmethod
    def _extract(self, payload: bytes) -> StructuralText:
        """Extract text from a unit payload.

        Args:
            payload: Unit bytes (content stream, XML part, or whole container)

        Returns:
            StructuralText with text and sufficiency verdict

        Raises:
            ContainerParseError: If the payload cannot be parsed
        """
        ...

    def extract(self, payload: bytes) -> StructuralText:
        """Extract text from a unit payload, never raising on bad input.

        The result depends only on the payload, so repeated calls agree.
        """
        try:
            return self._extract(payload)
        except ContainerParseError as e:
            logger.warning(f"{self.name} extraction failed: {e}")
            return StructuralText(
                text="",
                sufficient=False,
                method=self.name,
                warnings=[f"{self.name} parse error: {e}"],
            )
