"""API routes for invoice categories.

Reads are open to any authenticated user; writes require the ``admin``
role.  Deletion is soft: the row stays so existing invoices keep their
reference, but it no longer resolves for new uploads.
"""

from __future__ import annotations

import datetime as dt
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.api.dependencies import get_auth_context, get_db, require_admin
from invoice_api.core.errors import BadRequest, NotFound
from invoice_api.core.security import AuthContext
from invoice_api.models.schemas import CategoryCreate, CategoryRead, CategoryUpdate
from invoice_api.models.tables import Category
from invoice_api.services.invoice_repository import invoice_repository

router = APIRouter(prefix="/categories", tags=["categories"])


async def _get_live(db: AsyncSession, category_id: int) -> Category:
    category = await invoice_repository.find_category_by_id(db, category_id)
    if category is None:
        raise NotFound("Category not found")
    return category


async def _ensure_unique_name(db: AsyncSession, name: str) -> None:
    existing = await db.execute(select(Category.id).where(Category.name == name))
    if existing.scalar() is not None:
        raise BadRequest("Category name already exists")


@router.get("", response_model=List[CategoryRead])
async def list_categories(
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> List[CategoryRead]:
    result = await db.execute(select(Category).where(Category.deleted.is_(False)).order_by(Category.name))
    return [CategoryRead.model_validate(c) for c in result.scalars().all()]


@router.get("/{category_id}", response_model=CategoryRead)
async def get_category(
    category_id: int,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> CategoryRead:
    return CategoryRead.model_validate(await _get_live(db, category_id))


@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_in: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_admin),
) -> CategoryRead:
    await _ensure_unique_name(db, category_in.name)
    category = Category(name=category_in.name, icon=category_in.icon, color_hex=category_in.color_hex)
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return CategoryRead.model_validate(category)


@router.put("/{category_id}", response_model=CategoryRead)
async def update_category(
    category_id: int,
    category_in: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_admin),
) -> CategoryRead:
    category = await _get_live(db, category_id)
    changes = category_in.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes and changes["name"] != category.name:
        await _ensure_unique_name(db, changes["name"])
    for field, value in changes.items():
        setattr(category, field, value)
    await db.commit()
    await db.refresh(category)
    return CategoryRead.model_validate(category)


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_admin),
) -> Response:
    category = await _get_live(db, category_id)
    category.deleted = True
    category.deleted_at = dt.datetime.utcnow()
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
