"""Helpers for Open Packaging (DOCX/PPTX) containers."""

from __future__ import annotations

import io
import posixpath
import re
import zipfile
from typing import AbstractSet
from xml.etree import ElementTree as ET

from lector.errors import ContainerParseError
from lector.utils.images import is_raster_name
from lector.utils.text import has_letter

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
P_NS = "http://schemas.openxmlformats.org/presentationml/2006/main"
REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"

_SLIDE_RE = re.compile(r"^ppt/slides/slide(\d+)\.xml$")
_TEXT_NODE_RE = re.compile(r">([^<]+)<")


def qname(ns: str, tag: str) -> str:
    """Clark-notation tag name, e.g. ``{ns}t``."""
    return f"{{{ns}}}{tag}"


def open_package(data: bytes) -> zipfile.ZipFile:
    """Open container bytes as a ZIP archive.

    Raises:
        ContainerParseError: If the bytes are not a ZIP archive
    """
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, ValueError) as e:
        raise ContainerParseError(f"Not a ZIP container: {e}") from e


def read_part(package: zipfile.ZipFile, name: str) -> bytes:
    """Read one part of an open container.

    Raises:
        ContainerParseError: If the part is missing or corrupt
    """
    try:
        return package.read(name)
    except KeyError as e:
        raise ContainerParseError(f"Missing part: {name}") from e
    except (zipfile.BadZipFile, OSError) as e:
        raise ContainerParseError(f"Corrupt part {name}: {e}") from e


def parse_xml(data: bytes) -> ET.Element:
    """Parse an XML part.

    Raises:
        ContainerParseError: If the XML is malformed
    """
    try:
        return ET.fromstring(data)
    except ET.ParseError as e:
        raise ContainerParseError(f"Malformed XML: {e}") from e


def walk_text(
    root: ET.Element,
    text_tags: AbstractSet[str],
    tab_tags: AbstractSet[str] = frozenset(),
    break_tags: AbstractSet[str] = frozenset(),
    paragraph_tags: AbstractSet[str] = frozenset(),
) -> str:
    """Concatenate the text of every text-run node under root.

    Tab and break markers become ``\\t`` and ``\\n``; a newline is
    emitted after each paragraph element.

    Args:
        root: Parsed XML element
        text_tags: Qualified tags whose ``.text`` is content
        tab_tags: Qualified tags rendered as a tab
        break_tags: Qualified tags rendered as a line break
        paragraph_tags: Qualified tags closed by a line break

    Returns:
        The concatenated text
    """
    parts: list[str] = []

    def visit(elem: ET.Element) -> None:
        tag = elem.tag
        if tag in text_tags:
            if elem.text:
                parts.append(elem.text)
            return
        if tag in tab_tags:
            parts.append("\t")
            return
        if tag in break_tags:
            parts.append("\n")
            return
        for child in elem:
            visit(child)
        if tag in paragraph_tags:
            parts.append("\n")

    visit(root)
    return "".join(parts)


def scan_text_nodes(data: bytes) -> str:
    """Pull readable text out of every XML part without parsing it.

    Fragments between tags are kept when longer than two characters and
    containing at least one letter. Works on partially corrupt archives
    as long as the central directory is intact.

    Raises:
        ContainerParseError: If the bytes are not a ZIP archive
    """
    fragments: list[str] = []
    with open_package(data) as package:
        for name in package.namelist():
            if not name.endswith(".xml"):
                continue
            try:
                xml = package.read(name).decode("utf-8", errors="ignore")
            except (zipfile.BadZipFile, OSError):
                continue
            for match in _TEXT_NODE_RE.finditer(xml):
                fragment = match.group(1).strip()
                if len(fragment) > 2 and has_letter(fragment):
                    fragments.append(fragment)
    return " ".join(fragments)


def slide_parts(package: zipfile.ZipFile) -> list[str]:
    """Slide part names in presentation order (numeric, not lexical)."""
    slides = []
    for name in package.namelist():
        match = _SLIDE_RE.match(name)
        if match:
            slides.append((int(match.group(1)), name))
    return [name for _, name in sorted(slides)]


def related_images(package: zipfile.ZipFile, part_name: str) -> list[str]:
    """Raster image parts referenced by a part's relationships.

    Args:
        package: Open container
        part_name: Part whose ``_rels`` file is consulted

    Returns:
        Container names of internal raster images, in relationship order
    """
    directory, filename = posixpath.split(part_name)
    rels_name = posixpath.join(directory, "_rels", f"{filename}.rels")
    if rels_name not in package.namelist():
        return []

    try:
        root = parse_xml(package.read(rels_name))
    except (ContainerParseError, zipfile.BadZipFile, OSError):
        return []

    names = set(package.namelist())
    images = []
    for rel in root.iter(qname(REL_NS, "Relationship")):
        if rel.get("TargetMode") == "External":
            continue
        if not rel.get("Type", "").endswith("/image"):
            continue
        target = posixpath.normpath(posixpath.join(directory, rel.get("Target", "")))
        if target in names and is_raster_name(target) and target not in images:
            images.append(target)
    return images


def media_parts(package: zipfile.ZipFile, prefix: str) -> list[str]:
    """Raster image parts stored under a directory prefix, sorted by name."""
    return sorted(
        name for name in package.namelist() if name.startswith(prefix) and is_raster_name(name)
    )
