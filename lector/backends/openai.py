"""OpenAI GPT-4 Vision OCR backend implementation."""

from __future__ import annotations

from typing import Any

from lector.backends.remote import VisionAPIBackend


class OpenAIBackend(VisionAPIBackend):
    """OCR backend using OpenAI vision models (GPT-4o and friends).

    Reads OPENAI_API_KEY and, optionally, OPENAI_BASE_URL.
    """

    API_BASE = "https://api.openai.com/v1"
    DEFAULT_MODEL = "gpt-4o"
    API_KEY_ENV = "OPENAI_API_KEY"
    BASE_URL_ENV = "OPENAI_BASE_URL"
    CONFIDENCE = 0.9

    def __init__(self, *args: Any, detail: str = "high", **kwargs: Any):
        """Initialize OpenAI backend.

        Args:
            detail: Image detail level ("low", "high", or "auto")
            *args, **kwargs: Passed to VisionAPIBackend
        """
        super().__init__(*args, **kwargs)
        self.detail = detail

    @property
    def name(self) -> str:
        """Return backend name."""
        return "openai"

    def _image_part(self, data_url: str) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": data_url, "detail": self.detail}}
