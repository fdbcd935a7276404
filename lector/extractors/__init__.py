"""Structural extractors for document containers."""

from lector.extractors.base import StructuralExtractor
from lector.extractors.docx import DocxExtractor
from lector.extractors.pdf import PdfExtractor
from lector.extractors.pptx import PptxExtractor

__all__ = [
    "StructuralExtractor",
    "PdfExtractor",
    "DocxExtractor",
    "PptxExtractor",
]
