"""Tests for DocumentPipeline."""

import pytest
from PIL import Image

from lector import DocumentPipeline
from lector.arbiter import OCRArbiter
from lector.errors import RemoteProviderError, UnsupportedDocumentType
from lector.models import Document, PipelineOptions

PARAGRAPH = " ".join(f"word{i}" for i in range(20))


@pytest.fixture
def pipeline(fake_backend, clock, sleeps):
    arbiter = OCRArbiter(
        fake_backend(name="remote", text="remote reading of the image", confidence=0.95),
        fake_backend(name="local", text="local reading", confidence=0.6),
        clock=clock,
        sleep=sleeps,
    )
    return DocumentPipeline(arbiter=arbiter, sleep=sleeps)


class TestDispatch:
    def test_is_supported(self, pipeline):
        assert pipeline.is_supported("application/pdf")
        assert pipeline.is_supported(
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        )
        assert pipeline.is_supported(
            "application/vnd.openxmlformats-officedocument.presentationml.presentation"
        )
        assert pipeline.is_supported("image/png")
        assert pipeline.is_supported("text/markdown")
        assert not pipeline.is_supported("application/zip")

    @pytest.mark.asyncio
    async def test_unsupported_type(self, pipeline):
        document = Document.from_bytes(b"PK", name="archive.zip", mime_type="application/zip")

        with pytest.raises(UnsupportedDocumentType) as exc_info:
            await pipeline.process(document)

        assert exc_info.value.mime_type == "application/zip"

    def test_default_local_backend(self):
        from lector.backends import TesseractBackend

        pipeline = DocumentPipeline()
        assert pipeline.arbiter.remote is None
        assert isinstance(pipeline.arbiter.local, TesseractBackend)


class TestProcess:
    @pytest.mark.asyncio
    async def test_text_heavy_docx_skips_ocr(self, pipeline, make_docx):
        document = Document.from_bytes(make_docx([PARAGRAPH] * 10), name="essay.docx")

        result = await pipeline.process(document)

        assert result.method == "structural"
        assert result.total_word_count == 200
        assert [u.ocr_used for u in result.units] == [False]
        assert pipeline.arbiter.remote.calls == []
        assert pipeline.arbiter.local.calls == []

    @pytest.mark.asyncio
    async def test_text_passthrough(self, pipeline):
        document = Document.from_bytes(b"plain notes\nsecond line", name="notes.txt")

        result = await pipeline.process(document)

        assert result.method == "passthrough"
        assert result.combined_text == "plain notes\nsecond line"
        assert result.total_word_count == 4
        assert result.total_units == 1

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_replaced(self, pipeline):
        document = Document.from_bytes(b"caf\xe9 menu", name="menu.txt")
        result = await pipeline.process(document)
        assert result.combined_text == "caf\ufffd menu"

    @pytest.mark.asyncio
    async def test_image_offline(self, pipeline, png_bytes):
        document = Document.from_bytes(png_bytes, name="photo.png")

        result = await pipeline.process(document, mode="offline")

        assert result.method == "ocr"
        assert result.combined_text == "local reading"
        assert result.units[0].ocr_source == "local"
        assert result.ocr_units == 1
        assert pipeline.arbiter.remote.calls == []
        assert result.summary_text.startswith("Image Processing Summary:")

    @pytest.mark.asyncio
    async def test_image_bounded_before_ocr(self, fake_backend, clock, sleeps, png_bytes):
        class SizeRecordingBackend(fake_backend):
            async def recognize(self, image_path, prompt=None):
                with Image.open(image_path) as image:
                    self.sizes.append(image.size)
                return await super().recognize(image_path, prompt)

        local = SizeRecordingBackend(name="local", text="local reading")
        local.sizes = []
        arbiter = OCRArbiter(None, local, clock=clock, sleep=sleeps)
        pipeline = DocumentPipeline(
            arbiter=arbiter, options=PipelineOptions(max_image_dimension=100), sleep=sleeps
        )

        result = await pipeline.process(Document.from_bytes(png_bytes, name="photo.png"))

        assert result.combined_text == "local reading"
        assert len(local.sizes) == 1
        assert max(local.sizes[0]) == 100

    @pytest.mark.asyncio
    async def test_image_without_text_reports_diagnostic(self, fake_backend, clock, sleeps, png_bytes):
        arbiter = OCRArbiter(None, fake_backend(name="local", text=""), clock=clock, sleep=sleeps)
        pipeline = DocumentPipeline(arbiter=arbiter, sleep=sleeps)

        result = await pipeline.process(Document.from_bytes(png_bytes, name="blank.png"))

        assert result.combined_text.startswith("No text detected in blank.png")
        assert "fallback used: yes" in result.combined_text
        assert result.total_word_count == 0
        assert result.warnings

    @pytest.mark.asyncio
    async def test_image_online_failure(self, fake_backend, clock, sleeps, png_bytes):
        arbiter = OCRArbiter(
            fake_backend(name="remote", fail_with=RemoteProviderError("down", http_status=503)),
            fake_backend(name="local"),
            clock=clock,
            sleep=sleeps,
        )
        pipeline = DocumentPipeline(arbiter=arbiter, sleep=sleeps)

        result = await pipeline.process(Document.from_bytes(png_bytes, name="photo.jpg"), mode="online")

        assert result.units[0].error == "HTTP 503: down"
        assert result.total_word_count == 0
        assert arbiter.local.calls == []

    @pytest.mark.asyncio
    async def test_options_mode_is_default(self, fake_backend, clock, sleeps, png_bytes):
        arbiter = OCRArbiter(
            fake_backend(name="remote"), fake_backend(name="local"), clock=clock, sleep=sleeps
        )
        pipeline = DocumentPipeline(
            arbiter=arbiter, options=PipelineOptions(ocr_mode="offline"), sleep=sleeps
        )

        await pipeline.process(Document.from_bytes(png_bytes, name="photo.png"))

        assert arbiter.remote.calls == []
        assert len(arbiter.local.calls) == 1

    @pytest.mark.asyncio
    async def test_extract_returns_text(self, pipeline):
        document = Document.from_bytes(b"just text", name="a.txt")
        assert await pipeline.extract(document) == "just text"

    @pytest.mark.asyncio
    async def test_progress_callback(self, pipeline, make_docx):
        events = []
        document = Document.from_bytes(make_docx([PARAGRAPH]), name="short.docx")

        await pipeline.process(document, on_progress=lambda *event: events.append(event))

        assert events == [("units", 1, 1)]


class TestBatch:
    @pytest.mark.asyncio
    async def test_batch_continues_past_failures(self, pipeline, make_docx, tmp_path):
        documents = [
            Document.from_bytes(make_docx([PARAGRAPH] * 3), name="good.docx"),
            Document.from_bytes(b"this is not a pdf at all", name="broken.pdf"),
            Document.from_bytes(b"some plain words here", name="notes.txt"),
            Document.from_path(tmp_path / "missing.pdf"),
        ]
        events = []

        batch = await pipeline.process_batch(
            documents, on_progress=lambda *event: events.append(event)
        )

        assert batch.succeeded == 2
        assert batch.failed == 2
        assert [r.name for r in batch.results] == ["good.docx", "notes.txt"]
        assert [f.name for f in batch.failures] == ["broken.pdf", "missing.pdf"]
        assert all(f.error_type == "DocumentOpenError" for f in batch.failures)
        assert batch.total_word_count == 64
        assert "=== good.docx ===" in batch.combined_text
        assert "=== notes.txt ===\nsome plain words here" in batch.combined_text
        assert events == [("documents", n, 4) for n in range(1, 5)]

        assert batch.summary.startswith("Batch Processing Summary:")
        assert "• 2 documents processed (2 failed)" in batch.summary
        assert "• 64 total words (avg: 32 per doc)" in batch.summary
        assert "• Document types: 1 DOCX, 1 Text" in batch.summary

    @pytest.mark.asyncio
    async def test_unsupported_type_is_recorded(self, pipeline):
        batch = await pipeline.process_batch(
            [Document.from_bytes(b"x", name="a.bin", mime_type="application/octet-stream")]
        )
        assert batch.failures[0].error_type == "UnsupportedDocumentType"
        assert batch.combined_text == ""


class TestEstimate:
    def test_simple_batch(self, pipeline):
        documents = [Document.from_bytes(b"x", name=f"{i}.txt") for i in range(3)]

        estimate = pipeline.estimate(documents)

        assert estimate.estimated_seconds == 6.0
        assert estimate.recommend_remote_ocr is False
        assert estimate.warnings == []

    def test_complex_and_large(self, pipeline):
        large = b"x" * (11 * 1024 * 1024)
        documents = [
            Document.from_bytes(large, name="scan.pdf"),
            Document.from_bytes(b"PK", name="deck.pptx"),
        ]

        estimate = pipeline.estimate(documents)

        assert estimate.estimated_seconds == pytest.approx(2 * 2.0 * 2 * 1.5)
        assert estimate.recommend_remote_ocr is True
        assert len(estimate.warnings) == 2


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_async_context_manager_closes_backends(self, fake_backend, clock, sleeps):
        closed = []

        class ClosingBackend(fake_backend):
            async def aclose(self):
                closed.append(self.name)

        arbiter = OCRArbiter(
            ClosingBackend(name="remote"), ClosingBackend(name="local"), clock=clock, sleep=sleeps
        )
        async with DocumentPipeline(arbiter=arbiter) as pipeline:
            assert pipeline.arbiter is arbiter

        assert closed == ["remote", "local"]
