"""Mistral vision OCR backend implementation."""

from __future__ import annotations

from typing import Any

from lector.backends.remote import VisionAPIBackend


class MistralBackend(VisionAPIBackend):
    """OCR backend using Mistral's Pixtral vision models.

    Reads MISTRAL_API_KEY and, optionally, MISTRAL_BASE_URL.
    """

    API_BASE = "https://api.mistral.ai/v1"
    DEFAULT_MODEL = "pixtral-12b-2409"
    API_KEY_ENV = "MISTRAL_API_KEY"
    BASE_URL_ENV = "MISTRAL_BASE_URL"
    CONFIDENCE = 0.95

    @property
    def name(self) -> str:
        """Return backend name."""
        return "mistral"

    def _image_part(self, data_url: str) -> dict[str, Any]:
        # Mistral takes the data URL directly rather than wrapped in {"url": ...}
        return {"type": "image_url", "image_url": data_url}
