"""Temporary storage for uploaded invoice documents.

Uploads live on disk only for as long as the OCR stage needs them.
``UploadStorage.stored`` validates the upload, writes it under
``settings.UPLOAD_DIRECTORY`` with a generated name and removes it when
the ``async with`` block exits, whether the pipeline succeeded or not.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import UploadFile

from invoice_api.core.config import settings
from invoice_api.core.errors import BadRequest

logger = logging.getLogger(__name__)


class UploadStorage:
    """Filesystem-backed scratch space for uploads."""

    def __init__(self, base_dir: Optional[str] = None) -> None:
        base_path = Path(base_dir or settings.UPLOAD_DIRECTORY)
        if not base_path.is_absolute():
            base_path = base_path.resolve()
        self.base_dir = base_path
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _normalise_filename(self, filename: str) -> str:
        """Remove potentially dangerous characters and ensure a safe filename."""
        keepchars = {"-", "_", "."}
        return "".join(c for c in filename if c.isalnum() or c in keepchars)

    async def read_validated(self, upload: UploadFile) -> bytes:
        """Return the upload's bytes after type and size checks."""
        if upload.content_type not in settings.ALLOWED_CONTENT_TYPES:
            raise BadRequest("Only image files or PDFs are allowed")
        contents = await upload.read()
        if not contents:
            raise BadRequest("Empty file")
        if len(contents) > settings.MAX_UPLOAD_SIZE:
            raise BadRequest(f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB")
        return contents

    @asynccontextmanager
    async def stored(self, upload: UploadFile) -> AsyncIterator[Path]:
        """Write ``upload`` to disk and yield its path; delete it afterwards."""
        contents = await self.read_validated(upload)
        safe_name = self._normalise_filename(upload.filename or "invoice")
        file_path = self.base_dir / f"{uuid.uuid4().hex}_{safe_name}"
        file_path.write_bytes(contents)
        logger.debug("[storage] saved %s bytes=%d", file_path.name, len(contents))
        try:
            yield file_path
        finally:
            file_path.unlink(missing_ok=True)
            logger.debug("[storage] removed %s", file_path.name)
