"""Structural text extraction for Word (DOCX) documents."""

from __future__ import annotations

import logging

from lector.errors import ContainerParseError
from lector.extractors.base import StructuralExtractor
from lector.models import StructuralText
from lector.utils.ooxml import (
    W_NS,
    open_package,
    parse_xml,
    qname,
    read_part,
    scan_text_nodes,
    walk_text,
)
from lector.utils.text import clean_text

logger = logging.getLogger(__name__)

DOCUMENT_PART = "word/document.xml"

_TEXT_TAGS = frozenset({qname(W_NS, "t")})
_TAB_TAGS = frozenset({qname(W_NS, "tab")})
_BREAK_TAGS = frozenset({qname(W_NS, "br"), qname(W_NS, "cr")})
_PARAGRAPH_TAGS = frozenset({qname(W_NS, "p")})


class DocxExtractor(StructuralExtractor):
    """Extract text from a whole DOCX container.

    Walks ``word/document.xml`` first. When that yields fewer than
    ``min_chars`` characters (or the part is unreadable), every XML part
    is scanned for raw text between tags instead.
    """

    @property
    def name(self) -> str:
        """Return extractor name."""
        return "docx"

    def _extract(self, payload: bytes) -> StructuralText:
        warnings: list[str] = []
        text = ""
        method = "xml-walk"

        try:
            with open_package(payload) as package:
                root = parse_xml(read_part(package, DOCUMENT_PART))
            text = clean_text(
                walk_text(root, _TEXT_TAGS, _TAB_TAGS, _BREAK_TAGS, _PARAGRAPH_TAGS)
            )
        except ContainerParseError as e:
            logger.warning(f"DOCX body walk failed, scanning raw parts: {e}")
            warnings.append(f"docx body unreadable: {e}")

        if len(text) < self.min_chars:
            # Raises ContainerParseError for non-ZIP payloads
            scanned = clean_text(scan_text_nodes(payload))
            if len(scanned) > len(text):
                logger.debug(f"Raw part scan recovered {len(scanned)} chars")
                text = scanned
                method = "zip-scan"

        return StructuralText(
            text=text,
            sufficient=len(text) >= self.min_chars,
            method=method,
            warnings=warnings,
        )
