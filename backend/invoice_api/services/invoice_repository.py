"""Invoice persistence and lookups.

``persist`` is the last stage of the ingestion pipeline.  It checks the
category and type references, then performs the quota-guarded write:
the owner's ``invoice_count`` is incremented only while it is below the
plan limit, and the invoice row is inserted in the same transaction.
Two concurrent uploads from one user therefore cannot both take the
last free slot, whatever the quota gate saw earlier.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.core.errors import BadRequest, InvalidReference, PersistenceFailed, QuotaExceeded
from invoice_api.core.observability import sentry_capture
from invoice_api.models.enums import InvoiceOrder
from invoice_api.models.tables import Category, Invoice, InvoiceType, User

logger = logging.getLogger(__name__)

ORDERABLE_COLUMNS = {
    "createdAt": Invoice.created_at,
    "id": Invoice.id,
}


def parse_reference_id(value: Union[int, str, None], name: str) -> int:
    """Parse a form-field identifier such as ``categoryId``.

    Missing or non-numeric values cannot resolve to a record, so they are
    reported the same way as unknown ids.
    """
    if isinstance(value, int):
        return value
    try:
        return int((value or "").strip())
    except ValueError as exc:
        raise InvalidReference(name) from exc


@dataclass
class InvoiceFilters:
    """Query parameters accepted by the invoice listings."""

    owner_id: Optional[int] = None
    category_id: Optional[int] = None
    type_id: Optional[int] = None
    search: Optional[str] = None
    start_date: Optional[dt.datetime] = None
    end_date: Optional[dt.datetime] = None
    page: int = 1
    limit: int = 10
    order_by: str = "createdAt"
    order: InvoiceOrder = InvoiceOrder.DESC


class InvoiceRepository:
    async def find_category_by_id(self, db: AsyncSession, category_id: int) -> Optional[Category]:
        result = await db.execute(select(Category).where(Category.id == category_id, Category.deleted.is_(False)))
        return result.scalar_one_or_none()

    async def find_type_by_id(self, db: AsyncSession, type_id: int) -> Optional[InvoiceType]:
        result = await db.execute(select(InvoiceType).where(InvoiceType.id == type_id, InvoiceType.deleted.is_(False)))
        return result.scalar_one_or_none()

    async def resolve_references(self, db: AsyncSession, category_id: int, type_id: int) -> Tuple[Category, InvoiceType]:
        """Return the live category and type or raise :class:`InvalidReference`."""
        category = await self.find_category_by_id(db, category_id)
        if category is None:
            raise InvalidReference("categoryId")
        invoice_type = await self.find_type_by_id(db, type_id)
        if invoice_type is None:
            raise InvalidReference("typeId")
        return category, invoice_type

    async def create_invoice(
        self,
        db: AsyncSession,
        *,
        owner_id: int,
        invoice_limit: int,
        category_id: int,
        type_id: int,
        raw_text: str,
        structured_data: Dict[str, Any],
    ) -> Invoice:
        """Insert an invoice if the owner still has a free slot.

        Raises:
            QuotaExceeded: If the conditional counter update matched no row.
            PersistenceFailed: On any database error; nothing is written.
        """
        try:
            result = await db.execute(
                update(User)
                .where(User.id == owner_id, User.invoice_count < invoice_limit)
                .values(invoice_count=User.invoice_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                raise QuotaExceeded(QuotaExceeded.LIMIT_REACHED)
            invoice = Invoice(
                owner_id=owner_id,
                raw_text=raw_text,
                structured_data=structured_data,
                category_id=category_id,
                type_id=type_id,
            )
            db.add(invoice)
            await db.commit()
            await db.refresh(invoice)
            return invoice
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("[persistence] write failed owner=%s after OCR and structuring: %s", owner_id, exc)
            sentry_capture(exc, tags={"pipeline.stage": "persistence", "persistence_failed": True})
            raise PersistenceFailed() from exc

    async def persist(
        self,
        db: AsyncSession,
        *,
        owner_id: int,
        invoice_limit: int,
        category_id: int,
        type_id: int,
        raw_text: str,
        structured_data: Dict[str, Any],
    ) -> Invoice:
        await self.resolve_references(db, category_id, type_id)
        return await self.create_invoice(
            db,
            owner_id=owner_id,
            invoice_limit=invoice_limit,
            category_id=category_id,
            type_id=type_id,
            raw_text=raw_text,
            structured_data=structured_data,
        )

    async def get_for_owner(self, db: AsyncSession, invoice_id: int, owner_id: int) -> Optional[Invoice]:
        result = await db.execute(select(Invoice).where(Invoice.id == invoice_id, Invoice.owner_id == owner_id))
        return result.scalar_one_or_none()

    async def delete(self, db: AsyncSession, invoice: Invoice) -> None:
        """Delete ``invoice`` and give its slot back to the owner."""
        await db.execute(
            update(User)
            .where(User.id == invoice.owner_id, User.invoice_count > 0)
            .values(invoice_count=User.invoice_count - 1)
            .execution_options(synchronize_session=False)
        )
        await db.delete(invoice)
        await db.commit()

    async def list_invoices(self, db: AsyncSession, filters: InvoiceFilters) -> Tuple[List[Invoice], int]:
        """Return one page of invoices matching ``filters`` and the total count."""
        column = ORDERABLE_COLUMNS.get(filters.order_by)
        if column is None:
            raise BadRequest(f"Cannot order by {filters.order_by}")
        conditions = []
        if filters.owner_id is not None:
            conditions.append(Invoice.owner_id == filters.owner_id)
        if filters.category_id is not None:
            conditions.append(Invoice.category_id == filters.category_id)
        if filters.type_id is not None:
            conditions.append(Invoice.type_id == filters.type_id)
        if filters.search:
            conditions.append(Invoice.raw_text.ilike(f"%{filters.search}%"))
        if filters.start_date is not None:
            conditions.append(Invoice.created_at >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(Invoice.created_at <= filters.end_date)

        total = (await db.execute(select(func.count(Invoice.id)).where(*conditions))).scalar() or 0
        ordering = column.asc() if filters.order == InvoiceOrder.ASC else column.desc()
        query = (
            select(Invoice)
            .where(*conditions)
            .order_by(ordering)
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        invoices = list((await db.execute(query)).scalars().all())
        return invoices, int(total)

    @staticmethod
    def total_pages(total: int, limit: int) -> int:
        return math.ceil(total / limit) if limit else 0


# Export a singleton instance for easy import
invoice_repository = InvoiceRepository()
