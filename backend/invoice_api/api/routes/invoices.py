"""API routes for invoice ingestion and retrieval."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.api.dependencies import get_auth_context, get_db, require_admin
from invoice_api.core.errors import BadRequest, NotFound
from invoice_api.core.security import AuthContext
from invoice_api.models.enums import InvoiceOrder
from invoice_api.models.schemas import InvoicePage, InvoiceRead, PageMeta
from invoice_api.services.invoice_pipeline import InvoicePipeline, get_invoice_pipeline
from invoice_api.services.invoice_repository import InvoiceFilters, invoice_repository
from invoice_api.utils.helpers import parse_iso_datetime

router = APIRouter(tags=["invoices"])


@router.post("/process-invoice", response_model=InvoiceRead)
async def process_invoice(
    file: Optional[UploadFile] = File(None),
    category_id: Optional[str] = Form(None, alias="categoryId"),
    type_id: Optional[str] = Form(None, alias="typeId"),
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    pipeline: InvoicePipeline = Depends(get_invoice_pipeline),
) -> InvoiceRead:
    """OCR an uploaded invoice, extract its fields and store the result."""
    if file is None:
        raise BadRequest("No file uploaded")
    invoice = await pipeline.process_invoice(
        db,
        auth,
        file,
        category_id=category_id,
        type_id=type_id,
    )
    return InvoiceRead.model_validate(invoice)


def _filters(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    type_id: Optional[int] = Query(None, alias="typeId"),
    search: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    order_by: str = Query("createdAt", alias="orderBy"),
    order: InvoiceOrder = Query(InvoiceOrder.DESC),
) -> InvoiceFilters:
    start = parse_iso_datetime(start_date)
    end = parse_iso_datetime(end_date)
    if start_date and start is None:
        raise BadRequest("Invalid startDate")
    if end_date and end is None:
        raise BadRequest("Invalid endDate")
    return InvoiceFilters(
        category_id=category_id,
        type_id=type_id,
        search=search,
        start_date=start,
        end_date=end,
        page=page,
        limit=limit,
        order_by=order_by,
        order=order,
    )


async def _page(db: AsyncSession, filters: InvoiceFilters) -> InvoicePage:
    invoices, total = await invoice_repository.list_invoices(db, filters)
    return InvoicePage(
        data=[InvoiceRead.model_validate(i) for i in invoices],
        meta=PageMeta(
            total=total,
            page=filters.page,
            limit=filters.limit,
            total_pages=invoice_repository.total_pages(total, filters.limit),
        ),
    )


@router.get("/invoices", response_model=InvoicePage)
async def list_invoices(
    filters: InvoiceFilters = Depends(_filters),
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> InvoicePage:
    """List the caller's invoices (paged, filterable)."""
    filters.owner_id = auth.id
    return await _page(db, filters)


@router.get("/invoices/all", response_model=InvoicePage)
async def list_all_invoices(
    filters: InvoiceFilters = Depends(_filters),
    user_id: Optional[int] = Query(None, alias="userId"),
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_admin),
) -> InvoicePage:
    """List every user's invoices (admin only)."""
    filters.owner_id = user_id
    return await _page(db, filters)


@router.get("/invoices/{invoice_id}", response_model=InvoiceRead)
async def get_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> InvoiceRead:
    invoice = await invoice_repository.get_for_owner(db, invoice_id, auth.id)
    if invoice is None:
        raise NotFound("Invoice not found")
    return InvoiceRead.model_validate(invoice)


@router.delete("/invoices/{invoice_id}")
async def delete_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> Response:
    """Delete one of the caller's invoices, freeing a quota slot."""
    invoice = await invoice_repository.get_for_owner(db, invoice_id, auth.id)
    if invoice is None:
        raise NotFound("Invoice not found")
    await invoice_repository.delete(db, invoice)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
