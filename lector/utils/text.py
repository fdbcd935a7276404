"""Text measurement and cleaning utilities."""

from __future__ import annotations

import re

# Letters, digits, whitespace and common punctuation count as readable
_READABLE_RE = re.compile(r"[A-Za-z0-9\s.,;:!?'\"()\[\]{}\-_/\\@#$%&*+=<>|~`^]")
_HAS_LETTER_RE = re.compile(r"[A-Za-z]")


def word_count(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def readable_ratio(text: str) -> float:
    """Fraction of characters that are ASCII letters, digits or punctuation.

    Args:
        text: Text to measure

    Returns:
        Ratio between 0.0 and 1.0 (0.0 for empty text)
    """
    if not text:
        return 0.0
    return len(_READABLE_RE.findall(text)) / len(text)


def has_letter(text: str) -> bool:
    """Check whether text contains at least one ASCII letter."""
    return _HAS_LETTER_RE.search(text) is not None


def collapse_whitespace(text: str) -> str:
    """Collapse all whitespace runs to single spaces and strip."""
    return re.sub(r"\s+", " ", text).strip()


def clean_text(text: str) -> str:
    """Normalise structurally extracted text.

    Converts line endings to ``\\n``, tabs to spaces, squeezes repeated
    spaces, and collapses runs of blank lines to a single blank line.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\t", " ")
    text = re.sub(r" {2,}", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
