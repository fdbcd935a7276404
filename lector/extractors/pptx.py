"""Structural text extraction for PowerPoint (PPTX) slides."""

from __future__ import annotations

from xml.etree import ElementTree as ET

from lector.extractors.base import StructuralExtractor
from lector.models import StructuralText, TextFragment
from lector.utils.ooxml import A_NS, P_NS, parse_xml, qname, walk_text
from lector.utils.text import clean_text

_TEXT_TAGS = frozenset({qname(A_NS, "t")})
_BREAK_TAGS = frozenset({qname(A_NS, "br")})
_PARAGRAPH_TAGS = frozenset({qname(A_NS, "p")})

_TITLE_PLACEHOLDERS = {"title", "ctrTitle"}
_BULLET_CHARS = ("•", "◦", "▪", "‣", "-", "*", "–")


class PptxExtractor(StructuralExtractor):
    """Extract text from a single slide XML part.

    Fragments are classified as title, bullet or body for diagnostics;
    the aggregated text does not depend on the classification.
    """

    @property
    def name(self) -> str:
        """Return extractor name."""
        return "pptx"

    def _extract(self, payload: bytes) -> StructuralText:
        root = parse_xml(payload)
        text = clean_text(
            walk_text(root, _TEXT_TAGS, break_tags=_BREAK_TAGS, paragraph_tags=_PARAGRAPH_TAGS)
        )

        return StructuralText(
            text=text,
            sufficient=len(text) >= self.min_chars,
            method="xml-walk",
            fragments=classify_fragments(root),
        )


def classify_fragments(root: ET.Element) -> list[TextFragment]:
    """Split slide shapes into classified paragraph fragments.

    Args:
        root: Parsed slide XML

    Returns:
        One fragment per non-empty paragraph inside a shape
    """
    fragments: list[TextFragment] = []

    for shape in root.iter(qname(P_NS, "sp")):
        is_title = _placeholder_type(shape) in _TITLE_PLACEHOLDERS

        for para in shape.iter(qname(A_NS, "p")):
            text = walk_text(para, _TEXT_TAGS, break_tags=_BREAK_TAGS).strip()
            if not text:
                continue

            props = para.find(qname(A_NS, "pPr"))
            level = 0
            has_bullet = False
            if props is not None:
                try:
                    level = int(props.get("lvl", "0"))
                except ValueError:
                    level = 0
                has_bullet = props.find(qname(A_NS, "buChar")) is not None

            if is_title:
                kind = "title"
            elif level > 0 or has_bullet or text.startswith(_BULLET_CHARS):
                kind = "bullet"
            else:
                kind = "body"

            fragments.append(TextFragment(text=text, kind=kind, level=level))

    return fragments


def _placeholder_type(shape: ET.Element) -> str | None:
    placeholder = shape.find(f"{qname(P_NS, 'nvSpPr')}/{qname(P_NS, 'nvPr')}/{qname(P_NS, 'ph')}")
    if placeholder is None:
        return None
    return placeholder.get("type", "body")
