"""Shared fixtures: in-memory documents, fake OCR backends, simulated time."""

import asyncio
import io
import zipfile
from pathlib import Path
from xml.sax.saxutils import escape

import fitz
import pytest
from PIL import Image, ImageDraw

from lector.backends.base import OCRBackend, RecognizedText

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"
P_NS = "http://schemas.openxmlformats.org/presentationml/2006/main"
IMAGE_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/image"

CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="xml" ContentType="application/xml"/>'
    "</Types>"
)


class FakeBackend(OCRBackend):
    """Scripted OCR backend recording every call."""

    def __init__(
        self,
        name="fake",
        text="recognized text from image",
        confidence=0.8,
        effects=None,
        fail_with=None,
        delay=0.0,
    ):
        self._name = name
        self.text = text
        self.confidence = confidence
        self.effects = list(effects or [])
        self.fail_with = fail_with
        self.delay = delay
        self.calls = []

    @property
    def name(self):
        return self._name

    async def recognize(self, image_path, prompt=None):
        self.calls.append(Path(image_path))
        if self.delay:
            await asyncio.sleep(self.delay)
        effect = self.effects.pop(0) if self.effects else None
        if isinstance(effect, BaseException):
            raise effect
        if self.fail_with is not None and effect is None:
            raise self.fail_with
        text = effect if isinstance(effect, str) else self.text
        return RecognizedText(text=text, confidence=self.confidence)

    async def is_available(self):
        return self.fail_with is None


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays without waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def build_docx(paragraphs=(), body=None, extra_parts=None, include_document=True):
    if body is None:
        body = "".join(
            f'<w:p><w:r><w:t xml:space="preserve">{escape(p)}</w:t></w:r></w:p>'
            for p in paragraphs
        )
    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:document xmlns:w="{W_NS}"><w:body>{body}</w:body></w:document>'
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("[Content_Types].xml", CONTENT_TYPES)
        if include_document:
            zf.writestr("word/document.xml", document)
        for name, data in (extra_parts or {}).items():
            zf.writestr(name, data)
    return buffer.getvalue()


def slide_xml(title=None, body=(), bullets=()):
    shapes = []
    if title:
        shapes.append(
            '<p:sp><p:nvSpPr><p:cNvPr id="1" name="Title"/><p:cNvSpPr/>'
            '<p:nvPr><p:ph type="title"/></p:nvPr></p:nvSpPr>'
            f"<p:txBody><a:p><a:r><a:t>{escape(title)}</a:t></a:r></a:p></p:txBody></p:sp>"
        )
    paragraphs = [f"<a:p><a:r><a:t>{escape(t)}</a:t></a:r></a:p>" for t in body]
    paragraphs += [
        f'<a:p><a:pPr lvl="1"/><a:r><a:t>{escape(t)}</a:t></a:r></a:p>' for t in bullets
    ]
    if paragraphs:
        shapes.append(
            '<p:sp><p:nvSpPr><p:cNvPr id="2" name="Body"/><p:cNvSpPr/><p:nvPr/></p:nvSpPr>'
            f"<p:txBody>{''.join(paragraphs)}</p:txBody></p:sp>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<p:sld xmlns:p="{P_NS}" xmlns:a="{A_NS}">'
        f"<p:cSld><p:spTree>{''.join(shapes)}</p:spTree></p:cSld></p:sld>"
    )


def build_pptx(slides, images=None):
    """Build a PPTX; images maps 1-based slide number to PNG bytes."""
    images = images or {}
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("[Content_Types].xml", CONTENT_TYPES)
        for number, xml in enumerate(slides, start=1):
            zf.writestr(f"ppt/slides/slide{number}.xml", xml)
            if number in images:
                zf.writestr(f"ppt/media/image{number}.png", images[number])
                zf.writestr(
                    f"ppt/slides/_rels/slide{number}.xml.rels",
                    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
                    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
                    f'<Relationship Id="rId1" Type="{IMAGE_REL}" Target="../media/image{number}.png"/>'
                    "</Relationships>",
                )
    return buffer.getvalue()


def build_png(text="Scanned text", size=(320, 120)):
    image = Image.new("RGB", size, "white")
    ImageDraw.Draw(image).text((10, 40), text, fill="black")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def build_pdf(pages):
    """Build a PDF; each page is a text string or None for an image-only page."""
    doc = fitz.open()
    for content in pages:
        page = doc.new_page()
        if content is None:
            page.insert_image(fitz.Rect(72, 72, 400, 220), stream=build_png())
        else:
            page.insert_text((72, 72), content, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def fake_backend():
    return FakeBackend


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return RecordingSleep()


@pytest.fixture
def make_docx():
    return build_docx


@pytest.fixture
def make_slide():
    return slide_xml


@pytest.fixture
def make_pptx():
    return build_pptx


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def png_bytes():
    return build_png()


@pytest.fixture
def image_file(tmp_path, png_bytes):
    path = tmp_path / "scan.png"
    path.write_bytes(png_bytes)
    return path
