"""On-device OCR backend built on Tesseract."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any

import pytesseract

from lector.backends.base import OCRBackend, RecognizedText
from lector.errors import LocalProviderError
from lector.models import TextBlock

logger = logging.getLogger(__name__)

# Confidence reported when the recognizer returns no blocks at all
NO_BLOCKS_CONFIDENCE = 0.5


class TesseractBackend(OCRBackend):
    """Local OCR backend using the Tesseract engine via pytesseract.

    Needs no network. Word boxes are grouped into Tesseract's own blocks;
    the overall confidence is the mean block confidence.
    """

    def __init__(self, lang: str = "eng", config: str = ""):
        """Initialize Tesseract backend.

        Args:
            lang: Tesseract language code(s), e.g. "eng" or "eng+deu"
            config: Extra command-line configuration (e.g. "--psm 6")
        """
        self.lang = lang
        self.config = config

    @property
    def name(self) -> str:
        """Return backend name."""
        return "tesseract"

    async def recognize(
        self,
        image_path: Path,
        prompt: str | None = None,
    ) -> RecognizedText:
        """Perform OCR on an image file with Tesseract.

        Args:
            image_path: Local image file to process
            prompt: Ignored; Tesseract takes no instructions

        Returns:
            RecognizedText with text blocks and mean block confidence

        Raises:
            LocalProviderError: If Tesseract is missing or fails on the image
        """
        return await asyncio.to_thread(self._recognize_sync, image_path)

    async def is_available(self) -> bool:
        """Check if the Tesseract executable can be found.

        Returns:
            True if a Tesseract version can be read
        """
        try:
            await asyncio.to_thread(pytesseract.get_tesseract_version)
            return True
        except (pytesseract.TesseractNotFoundError, OSError):
            return False

    def _recognize_sync(self, image_path: Path) -> RecognizedText:
        from PIL import Image as PILImage

        try:
            with PILImage.open(image_path) as image:
                data = pytesseract.image_to_data(
                    image,
                    lang=self.lang,
                    config=self.config,
                    output_type=pytesseract.Output.DICT,
                )
        except pytesseract.TesseractNotFoundError as e:
            raise LocalProviderError("Tesseract is not installed or not on PATH") from e
        except (pytesseract.TesseractError, OSError) as e:
            raise LocalProviderError(f"Tesseract failed on {image_path.name}: {e}") from e

        blocks = group_blocks(data)
        text = "\n".join(block.text for block in blocks)

        if blocks:
            confidence = sum(b.confidence for b in blocks) / len(blocks)
        else:
            confidence = NO_BLOCKS_CONFIDENCE

        logger.debug(f"Tesseract found {len(blocks)} blocks in {image_path.name}")
        return RecognizedText(text=text, confidence=confidence, blocks=blocks)


def group_blocks(data: dict[str, list[Any]]) -> list[TextBlock]:
    """Group Tesseract word rows into text blocks.

    Args:
        data: ``image_to_data`` output in DICT form

    Returns:
        Blocks in reading order, each with joined lines, bounding box,
        and mean word confidence scaled to 0-1
    """
    lines: dict[int, dict[tuple[int, int], list[str]]] = defaultdict(lambda: defaultdict(list))
    confs: dict[int, list[float]] = defaultdict(list)
    boxes: dict[int, list[int]] = {}

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            continue
        if not word or conf < 0:
            continue

        block = int(data["block_num"][i])
        lines[block][(int(data["par_num"][i]), int(data["line_num"][i]))].append(word)
        confs[block].append(conf)

        left, top = int(data["left"][i]), int(data["top"][i])
        right, bottom = left + int(data["width"][i]), top + int(data["height"][i])
        if block in boxes:
            box = boxes[block]
            boxes[block] = [
                min(box[0], left),
                min(box[1], top),
                max(box[2], right),
                max(box[3], bottom),
            ]
        else:
            boxes[block] = [left, top, right, bottom]

    blocks = []
    for block_num in sorted(lines):
        block_lines = lines[block_num]
        text = "\n".join(" ".join(block_lines[key]) for key in sorted(block_lines))
        mean_conf = sum(confs[block_num]) / len(confs[block_num]) / 100
        left, top, right, bottom = boxes[block_num]
        blocks.append(
            TextBlock(
                text=text,
                confidence=min(1.0, max(0.0, mean_conf)),
                x=left,
                y=top,
                width=right - left,
                height=bottom - top,
            )
        )
    return blocks
