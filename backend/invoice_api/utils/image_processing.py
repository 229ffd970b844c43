"""Image preprocessing utilities.

Preprocessing invoice images improves OCR results.  The functions in
this module apply EXIF orientation, convert to grayscale and rasterise
PDF pages so that every uploaded document reaches the OCR engine as a
list of Pillow images.  Pillow is the imaging backend and PyMuPDF
renders PDFs.
"""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import List

import fitz  # PyMuPDF for PDF rasterization
from PIL import Image, ImageOps


def preprocess_image(img: Image.Image) -> Image.Image:
    """Return ``img`` upright and in grayscale.

    ``ImageOps.exif_transpose`` is a no-op when the image carries no
    orientation tag (e.g. scans), which covers most invoices.
    """
    upright = ImageOps.exif_transpose(img)
    return (upright or img).convert("L")


def render_pdf_pages(data: bytes, max_pages: int = 5, dpi: int = 300) -> List[Image.Image]:
    """Rasterise the first ``max_pages`` pages of a PDF byte stream.

    Only the first ``max_pages`` pages are rendered to avoid huge memory
    usage.  Raises ``ValueError`` when the document has no pages.
    """
    images: List[Image.Image] = []
    zoom = dpi / 72.0  # base DPI is 72
    with fitz.open(stream=data, filetype="pdf") as doc:
        if doc.page_count < 1:
            raise ValueError("PDF has no pages")
        for i in range(min(doc.page_count, max_pages)):
            page = doc.load_page(i)
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            images.append(Image.open(BytesIO(pix.tobytes("png"))))
    return images


def load_document_images(path: Path, max_pages: int = 5, dpi: int = 300) -> List[Image.Image]:
    """Open ``path`` as a list of OCR-ready page images.

    PDFs are detected by their ``%PDF`` magic bytes rather than the
    file extension, since uploads are stored under generated names.
    """
    with open(path, "rb") as fh:
        head = fh.read(5)
    if head.startswith(b"%PDF"):
        pages = render_pdf_pages(path.read_bytes(), max_pages=max_pages, dpi=dpi)
    else:
        with Image.open(path) as img:
            img.load()
            pages = [img.copy()]
    return [preprocess_image(p) for p in pages]
