"""Text extraction from uploaded invoice documents.

The OCR engine is Tesseract, driven through ``pytesseract``.  Each call
to :meth:`OcrService.extract_text` creates a :class:`TesseractWorker`,
uses it for exactly one document and terminates it, so no engine state
outlives a request.  Tesseract itself is a blocking subprocess; the
call is pushed to a worker thread so the event loop keeps serving other
requests while a page is being recognised.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import pytesseract
from PIL import Image

from invoice_api.core.config import settings
from invoice_api.core.errors import ExtractionFailed
from invoice_api.utils.image_processing import load_document_images

logger = logging.getLogger(__name__)

if settings.TESSERACT_CMD:
    pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD


class TesseractWorker:
    """Single-use OCR worker.

    Usage::

        with TesseractWorker("por") as worker:
            text = worker.recognize(path)

    Page images opened by ``recognize`` are released in ``terminate``,
    which runs on every exit path of the ``with`` block.
    """

    def __init__(self, language: str, timeout: float = 0, max_pages: int = 5, dpi: int = 300) -> None:
        self.language = language
        self.timeout = timeout
        self.max_pages = max_pages
        self.dpi = dpi
        self._images: List[Image.Image] = []
        self._terminated = False

    def __enter__(self) -> "TesseractWorker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.terminate()

    def recognize(self, path: Path) -> str:
        if self._terminated:
            raise RuntimeError("worker already terminated")
        self._images = load_document_images(path, max_pages=self.max_pages, dpi=self.dpi)
        pages = [
            pytesseract.image_to_string(img, lang=self.language, timeout=self.timeout)
            for img in self._images
        ]
        return "\n".join(pages)

    def terminate(self) -> None:
        for img in self._images:
            img.close()
        self._images = []
        self._terminated = True


class OcrService:
    """Converts an uploaded document on disk into plain text."""

    def __init__(
        self,
        language: Optional[str] = None,
        timeout: Optional[float] = None,
        max_pages: Optional[int] = None,
        dpi: Optional[int] = None,
    ) -> None:
        self.language = language or settings.OCR_LANGUAGE
        self.timeout = settings.OCR_TIMEOUT_SECONDS if timeout is None else timeout
        self.max_pages = max_pages or settings.OCR_PDF_MAX_PAGES
        self.dpi = dpi or settings.OCR_PDF_DPI

    def _recognize(self, path: Path) -> str:
        with TesseractWorker(self.language, timeout=self.timeout, max_pages=self.max_pages, dpi=self.dpi) as worker:
            return worker.recognize(path)

    async def extract_text(self, path: Path | str) -> str:
        """Return the recognised text of the document at ``path``.

        ``timeout`` bounds each page inside Tesseract and the whole stage,
        PDF rasterisation included.

        Raises:
            ExtractionFailed: On any engine, image decoding or timeout error.
        """
        path = Path(path)
        logger.info("[ocr] recognising %s lang=%s", path.name, self.language)
        try:
            text = await asyncio.wait_for(asyncio.to_thread(self._recognize, path), timeout=self.timeout or None)
        except Exception as exc:
            logger.warning("[ocr] failed for %s: %s", path.name, exc)
            raise ExtractionFailed() from exc
        logger.info("[ocr] recognised %d characters from %s", len(text), path.name)
        return text


__all__ = ["OcrService", "TesseractWorker"]
