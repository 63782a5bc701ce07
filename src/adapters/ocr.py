"""Tesseract OCR adapter for image enrichment."""

from __future__ import annotations

import asyncio
import io
import logging

import pytesseract
from PIL import Image

LOGGER = logging.getLogger(__name__)


class TesseractTextExtractor:
    """TextExtractorPort backed by the local Tesseract binary.

    Recognition is CPU-bound, so it runs in a worker thread to keep the event
    loop (and with it the dispatcher tick) responsive.
    """

    def __init__(self, languages: str = "ara+eng") -> None:
        self._languages = languages

    def _recognize(self, image: bytes) -> str:
        with Image.open(io.BytesIO(image)) as img:
            return pytesseract.image_to_string(img, lang=self._languages) or ""

    async def extract_text(self, image: bytes) -> str:
        text = await asyncio.to_thread(self._recognize, image)
        LOGGER.debug("OCR extracted %s chars", len(text))
        return text.strip()
