"""Invoice ingestion pipeline.

Sequences the stages for one upload:

1. require an authenticated caller and a file
2. quota gate (before any OCR or LLM cost is spent); the read
   transaction is then closed so no connection is held during 3 and 4
3. OCR of the uploaded document
4. structured extraction into the canonical schema
5. category/type parsing and resolution
6. quota-guarded insert
7. return the created invoice

Each stage gates the next and nothing is written before step 6, so a
failure anywhere simply aborts the request; there is nothing to roll
back.  No stage is retried here.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.core.errors import BadRequest, QuotaExceeded, Unauthenticated
from invoice_api.core.observability import sentry_breadcrumb, sentry_set_tags
from invoice_api.core.security import AuthContext
from invoice_api.models.tables import Invoice
from invoice_api.services.invoice_repository import InvoiceRepository, invoice_repository, parse_reference_id
from invoice_api.services.ocr_service import OcrService
from invoice_api.services.quota_service import QuotaService
from invoice_api.services.storage_service import UploadStorage
from invoice_api.services.structuring_service import StructuringService

logger = logging.getLogger(__name__)


class InvoicePipeline:
    def __init__(
        self,
        quota: Optional[QuotaService] = None,
        ocr: Optional[OcrService] = None,
        structuring: Optional[StructuringService] = None,
        repository: Optional[InvoiceRepository] = None,
        storage: Optional[UploadStorage] = None,
    ) -> None:
        self.quota = quota or QuotaService()
        self.ocr = ocr or OcrService()
        self.structuring = structuring or StructuringService()
        self.repository = repository or invoice_repository
        self.storage = storage or UploadStorage()

    async def process_invoice(
        self,
        db: AsyncSession,
        auth: Optional[AuthContext],
        upload: Optional[UploadFile],
        category_id: Union[int, str, None],
        type_id: Union[int, str, None],
    ) -> Invoice:
        if auth is None:
            raise Unauthenticated()
        if upload is None:
            raise BadRequest("No file uploaded")

        try:
            await self.quota.enforce_quota(db, auth.id, auth.plan)
        except QuotaExceeded as exc:
            logger.info("[pipeline] quota denied user=%s reason=%s", auth.id, exc.reason)
            sentry_breadcrumb(
                category="quota",
                message="process_invoice.quota_denied",
                data={
                    "reason": exc.reason,
                    "plan": getattr(auth.plan, "name", None),
                    "route": "POST /process-invoice",
                },
            )
            sentry_set_tags({"quota.exceeded": True, "quota.reason": exc.reason})
            raise
        invoice_limit = auth.plan.invoice_limit
        # No connection may stay checked out while OCR and the LLM run.
        await db.commit()

        logger.info("[pipeline] ocr user=%s file=%s", auth.id, upload.filename)
        async with self.storage.stored(upload) as path:
            raw_text = await self.ocr.extract_text(path)

        logger.info("[pipeline] structuring user=%s chars=%d", auth.id, len(raw_text))
        structured_data = await self.structuring.structure(raw_text)

        invoice = await self.repository.persist(
            db,
            owner_id=auth.id,
            invoice_limit=invoice_limit,
            category_id=parse_reference_id(category_id, "categoryId"),
            type_id=parse_reference_id(type_id, "typeId"),
            raw_text=raw_text,
            structured_data=structured_data,
        )
        logger.info("[pipeline] stored invoice=%s user=%s", invoice.id, auth.id)
        return invoice


def get_invoice_pipeline() -> InvoicePipeline:
    """FastAPI dependency; override in tests to inject fake stages."""
    return InvoicePipeline()
