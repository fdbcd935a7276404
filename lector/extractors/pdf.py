"""Heuristic text extraction from PDF content streams."""

from __future__ import annotations

import logging
import re
import zlib

from lector.extractors.base import StructuralExtractor
from lector.models import StructuralText
from lector.utils.text import collapse_whitespace, has_letter, readable_ratio

logger = logging.getLogger(__name__)

_STREAM_RE = re.compile(rb"(?<!end)stream\r?\n(.*?)endstream", re.DOTALL)
_PAREN_RE = re.compile(r"\(([^()]*)\)")
_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)")
_OPERATOR_RE = re.compile(r"[A-Za-z'\"*]+")

_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "b": "\b", "f": "\f"}
_DELIMITERS = set("()<>[]{}/%")

# TJ adjustments at or below this (thousandths of a text unit) read as a word gap
_TJ_SPACE_THRESHOLD = -200


class PdfExtractor(StructuralExtractor):
    """Extract text from PDF bytes without a rendering library.

    Works on either a page's decoded content stream or raw PDF file bytes.
    Stream regions are located and inflated when Flate-compressed, then the
    text-showing operators (``Tj``, ``TJ``, ``'``, ``"``) are interpreted.
    If no operator yields text, parenthesized strings anywhere in the
    payload are used instead.
    """

    def __init__(self, min_chars: int = 50, min_readable_ratio: float = 0.5):
        """Initialize PDF extractor.

        Args:
            min_chars: Text length that must be exceeded for a sufficient verdict
            min_readable_ratio: Readable-character ratio that must be exceeded
        """
        super().__init__(min_chars=min_chars)
        self.min_readable_ratio = min_readable_ratio

    @property
    def name(self) -> str:
        """Return extractor name."""
        return "pdf"

    def _extract(self, payload: bytes) -> StructuralText:
        chunks = [self._inflate(m.group(1)) for m in _STREAM_RE.finditer(payload)]
        if not chunks:
            chunks = [payload]

        pieces: list[str] = []
        for chunk in chunks:
            pieces.extend(extract_shown_text(chunk.decode("latin-1")))

        method = "content-stream"
        if not any(p.strip() for p in pieces):
            pieces = self._scan_parenthesized(payload)
            method = "string-scan"

        text = collapse_whitespace(" ".join(pieces))
        ratio = readable_ratio(text)
        sufficient = len(text) > self.min_chars and ratio > self.min_readable_ratio

        warnings = []
        if text and ratio <= self.min_readable_ratio:
            warnings.append(f"Low readable-character ratio ({ratio:.2f})")

        return StructuralText(text=text, sufficient=sufficient, method=method, warnings=warnings)

    def _inflate(self, data: bytes) -> bytes:
        """Inflate a Flate-compressed stream, returning it unchanged otherwise."""
        try:
            # decompressobj tolerates the EOL before "endstream"
            return zlib.decompressobj().decompress(data)
        except zlib.error:
            return data

    def _scan_parenthesized(self, payload: bytes) -> list[str]:
        text = payload.decode("latin-1")
        return [
            s for s in (m.group(1).strip() for m in _PAREN_RE.finditer(text))
            if len(s) > 2 and has_letter(s)
        ]


def extract_shown_text(content: str) -> list[str]:
    """Interpret text-showing operators in a content stream.

    Args:
        content: Content stream decoded as latin-1

    Returns:
        One string per show operator, in stream order
    """
    shown: list[str] = []
    operands: list[object] = []
    arrays: list[list[object]] = []

    for kind, value in _tokenize(content):
        if kind == "[":
            arrays.append([])
        elif kind == "]":
            if arrays:
                finished = arrays.pop()
                (arrays[-1] if arrays else operands).append(finished)
        elif kind in ("str", "num"):
            (arrays[-1] if arrays else operands).append(value)
        elif kind == "op":
            if value in ("Tj", "'", '"'):
                if operands and isinstance(operands[-1], str):
                    shown.append(operands[-1])
            elif value == "TJ":
                if operands and isinstance(operands[-1], list):
                    shown.append(_join_tj_array(operands[-1]))
            operands.clear()
            arrays.clear()

    return shown


def _join_tj_array(items: list[object]) -> str:
    parts = []
    for item in items:
        if isinstance(item, str):
            parts.append(item)
        elif isinstance(item, float) and item <= _TJ_SPACE_THRESHOLD:
            parts.append(" ")
    return "".join(parts)


def _tokenize(content: str):
    """Yield (kind, value) tokens from a content stream."""
    i = 0
    n = len(content)
    while i < n:
        c = content[i]
        if c.isspace():
            i += 1
        elif c == "%":
            end = content.find("\n", i)
            i = n if end == -1 else end + 1
        elif c == "(":
            value, i = _read_literal(content, i + 1)
            yield "str", value
        elif c == "<":
            if content.startswith("<<", i):
                i += 2
                continue
            end = content.find(">", i)
            if end == -1:
                return
            yield "str", _decode_hex(content[i + 1:end])
            i = end + 1
        elif c == ">":
            i += 1
        elif c in "[]":
            yield c, None
            i += 1
        elif c == "/":
            i += 1
            while i < n and not content[i].isspace() and content[i] not in _DELIMITERS:
                i += 1
        else:
            match = _NUMBER_RE.match(content, i)
            if match:
                yield "num", float(match.group())
                i = match.end()
                continue
            match = _OPERATOR_RE.match(content, i)
            if match:
                yield "op", match.group()
                i = match.end()
                continue
            i += 1


def _read_literal(content: str, i: int) -> tuple[str, int]:
    """Read a literal string starting after its opening parenthesis."""
    out: list[str] = []
    depth = 1
    n = len(content)
    while i < n:
        c = content[i]
        if c == "\\":
            i += 1
            if i >= n:
                break
            esc = content[i]
            if esc in _ESCAPES:
                out.append(_ESCAPES[esc])
                i += 1
            elif esc in "01234567":
                j = i
                while j < n and j < i + 3 and content[j] in "01234567":
                    j += 1
                out.append(chr(int(content[i:j], 8) & 0xFF))
                i = j
            elif esc == "\r":
                i += 2 if content.startswith("\r\n", i) else 1
            elif esc == "\n":
                i += 1
            else:
                out.append(esc)
                i += 1
            continue
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return "".join(out), i + 1
        out.append(c)
        i += 1
    return "".join(out), n


def _decode_hex(digits: str) -> str:
    """Decode a hex string; two-byte codes with zero high bytes read as UTF-16."""
    digits = "".join(digits.split())
    if len(digits) % 2:
        digits += "0"
    try:
        data = bytes.fromhex(digits)
    except ValueError:
        return ""
    if len(data) >= 2 and len(data) % 2 == 0 and not any(data[0::2]):
        return data.decode("utf-16-be", errors="ignore")
    return data.decode("latin-1")
