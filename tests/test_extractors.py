"""Tests for structural extractors."""

import zlib

from lector.extractors import DocxExtractor, PdfExtractor, PptxExtractor
from lector.extractors.pdf import extract_shown_text

LONG_SENTENCE = "Photosynthesis converts light energy into chemical energy stored in glucose."


class TestPdfExtractor:
    def test_literal_show_operator(self):
        payload = f"BT /F1 12 Tf 72 712 Td ({LONG_SENTENCE}) Tj ET".encode()
        result = PdfExtractor().extract(payload)
        assert result.text == LONG_SENTENCE
        assert result.sufficient is True

    def test_repeated_extraction_is_identical(self):
        payload = f"BT ({LONG_SENTENCE}) Tj ET".encode()
        extractor = PdfExtractor()
        first = extractor.extract(payload)
        second = extractor.extract(payload)
        assert first.text == second.text
        assert first.sufficient == second.sufficient

    def test_short_text_is_insufficient(self):
        result = PdfExtractor().extract(b"BT (Hello) Tj ET")
        assert result.text == "Hello"
        assert result.sufficient is False

    def test_exactly_fifty_chars_is_insufficient(self):
        text = "a" * 50
        result = PdfExtractor().extract(f"BT ({text}) Tj ET".encode())
        assert len(result.text) == 50
        assert result.sufficient is False

    def test_tj_array_kerning_inserts_spaces(self):
        result = PdfExtractor().extract(b"BT [(Hel) 20 (lo) -250 (World)] TJ ET")
        assert result.text == "Hello World"

    def test_hex_strings(self):
        result = PdfExtractor().extract(b"BT [<48656c6c6f>] TJ ET")
        assert result.text == "Hello"

    def test_two_byte_hex_strings(self):
        result = PdfExtractor().extract(b"BT <00480069> Tj ET")
        assert result.text == "Hi"

    def test_escapes_and_octal(self):
        shown = extract_shown_text(r"BT (Caf\351 \(menu\)) Tj ET")
        assert shown == ["Café (menu)"]

    def test_quote_operators(self):
        shown = extract_shown_text("BT (first) ' 1 2 (second) \" ET")
        assert shown == ["first", "second"]

    def test_flate_compressed_stream(self):
        content = f"BT ({LONG_SENTENCE}) Tj ET".encode()
        compressed = zlib.compress(content)
        payload = (
            b"%PDF-1.4\n4 0 obj\n<< /Length "
            + str(len(compressed)).encode()
            + b" /Filter /FlateDecode >>\nstream\n"
            + compressed
            + b"\nendstream\nendobj\n"
        )
        result = PdfExtractor().extract(payload)
        assert result.text == LONG_SENTENCE
        assert result.method == "content-stream"
        assert result.sufficient is True

    def test_parenthesized_fallback(self):
        payload = b"junk (Readable fragment here) more (x) stuff"
        result = PdfExtractor().extract(payload)
        assert result.text == "Readable fragment here"
        assert result.method == "string-scan"

    def test_unreadable_bytes_are_insufficient(self):
        payload = bytes(range(128, 256)) * 4
        result = PdfExtractor().extract(payload)
        assert result.sufficient is False

    def test_low_readable_ratio_blocks_sufficiency(self):
        garbled = "éèêë" * 30
        payload = f"BT ({garbled}) Tj ET".encode("latin-1")
        result = PdfExtractor().extract(payload)
        assert len(result.text) > 50
        assert result.sufficient is False
        assert result.warnings

    def test_drawing_only_stream_has_no_text(self):
        result = PdfExtractor().extract(b"q 0 0 1 rg 10 10 100 100 re f Q")
        assert result.text == ""
        assert result.sufficient is False


class TestDocxExtractor:
    def test_paragraphs(self, make_docx):
        data = make_docx(["First paragraph of the document.", "Second paragraph with more words."])
        result = DocxExtractor().extract(data)
        assert result.text == "First paragraph of the document.\nSecond paragraph with more words."
        assert result.sufficient is True
        assert result.method == "xml-walk"

    def test_tabs_and_breaks(self, make_docx):
        body = (
            "<w:p><w:r><w:t>Name</w:t><w:tab/><w:t>Value</w:t>"
            "<w:br/><w:t>Next line of the table describing the experiment</w:t></w:r></w:p>"
        )
        result = DocxExtractor().extract(make_docx(body=body))
        assert result.text == "Name Value\nNext line of the table describing the experiment"
        assert result.method == "xml-walk"
        assert result.sufficient is True

    def test_short_body_keeps_walk_text_over_shorter_scan(self, make_docx):
        result = DocxExtractor().extract(make_docx(["Tiny note"]))
        assert result.text == "Tiny note"
        assert result.sufficient is False

    def test_zip_scan_when_document_part_missing(self, make_docx):
        header = (
            f'<w:hdr xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
            f"<w:p><w:r><w:t>{LONG_SENTENCE}</w:t></w:r></w:p></w:hdr>"
        )
        data = make_docx(include_document=False, extra_parts={"word/header1.xml": header})
        result = DocxExtractor().extract(data)
        assert result.method == "zip-scan"
        assert LONG_SENTENCE in result.text
        assert result.sufficient is True
        assert result.warnings

    def test_zip_scan_on_malformed_xml(self, make_docx):
        broken = "<w:document><w:body><w:p><w:t>Broken but still readable text</w:t>"
        data = make_docx(include_document=False, extra_parts={"word/document.xml": broken})
        result = DocxExtractor().extract(data)
        assert "Broken but still readable text" in result.text
        assert result.method == "zip-scan"

    def test_not_a_zip(self):
        result = DocxExtractor().extract(b"definitely not a zip archive")
        assert result.text == ""
        assert result.sufficient is False
        assert any("parse error" in w for w in result.warnings)


class TestPptxExtractor:
    def test_text_and_classification(self, make_slide):
        xml = make_slide(
            title="Cell Biology",
            body=["The cell is the basic unit of life."],
            bullets=["Nucleus", "Mitochondria"],
        ).encode()
        result = PptxExtractor().extract(xml)

        assert result.text == (
            "Cell Biology\nThe cell is the basic unit of life.\nNucleus\nMitochondria"
        )
        assert result.sufficient is True
        kinds = [(f.kind, f.text) for f in result.fragments]
        assert kinds == [
            ("title", "Cell Biology"),
            ("body", "The cell is the basic unit of life."),
            ("bullet", "Nucleus"),
            ("bullet", "Mitochondria"),
        ]
        assert result.fragments[2].level == 1

    def test_bullet_character_prefix(self, make_slide):
        xml = make_slide(body=["• Point one"]).encode()
        result = PptxExtractor().extract(xml)
        assert result.fragments[0].kind == "bullet"

    def test_short_slide_is_insufficient(self, make_slide):
        result = PptxExtractor().extract(make_slide(title="Thanks").encode())
        assert result.text == "Thanks"
        assert result.sufficient is False

    def test_malformed_xml(self):
        result = PptxExtractor().extract(b"<p:sld><unclosed>")
        assert result.text == ""
        assert result.sufficient is False
        assert result.warnings
