"""Splitters that decompose documents into extraction units."""

from lector.splitters.base import UnitSplitter
from lector.splitters.docx import DocxSplitter
from lector.splitters.pdf import PdfPageSplitter
from lector.splitters.pptx import PptxSlideSplitter

__all__ = [
    "UnitSplitter",
    "PdfPageSplitter",
    "PptxSlideSplitter",
    "DocxSplitter",
]
