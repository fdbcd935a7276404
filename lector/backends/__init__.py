"""OCR backends for remote vision APIs and local recognition."""

from lector.backends.base import OCRBackend, RecognizedText
from lector.backends.mistral import MistralBackend
from lector.backends.openai import OpenAIBackend
from lector.backends.remote import VisionAPIBackend
from lector.backends.tesseract import TesseractBackend

__all__ = [
    "OCRBackend",
    "RecognizedText",
    "VisionAPIBackend",
    "MistralBackend",
    "OpenAIBackend",
    "TesseractBackend",
]
