"""API routes for invoice types (income / expense)."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.api.dependencies import get_auth_context, get_db, require_admin
from invoice_api.core.errors import BadRequest
from invoice_api.core.security import AuthContext
from invoice_api.models.schemas import InvoiceTypeCreate, InvoiceTypeRead
from invoice_api.models.tables import InvoiceType

router = APIRouter(prefix="/types", tags=["types"])


@router.get("", response_model=List[InvoiceTypeRead])
async def list_types(
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> List[InvoiceTypeRead]:
    result = await db.execute(select(InvoiceType).where(InvoiceType.deleted.is_(False)).order_by(InvoiceType.name))
    return [InvoiceTypeRead.model_validate(t) for t in result.scalars().all()]


@router.post("", response_model=InvoiceTypeRead, status_code=status.HTTP_201_CREATED)
async def create_type(
    type_in: InvoiceTypeCreate,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_admin),
) -> InvoiceTypeRead:
    existing = await db.execute(select(InvoiceType.id).where(InvoiceType.name == type_in.name))
    if existing.scalar() is not None:
        raise BadRequest("Type name already exists")
    invoice_type = InvoiceType(name=type_in.name)
    db.add(invoice_type)
    await db.commit()
    await db.refresh(invoice_type)
    return InvoiceTypeRead.model_validate(invoice_type)
