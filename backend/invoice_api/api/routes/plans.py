"""API routes for subscription plans."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.api.dependencies import get_db, require_admin
from invoice_api.core.errors import BadRequest, NotFound
from invoice_api.core.security import AuthContext
from invoice_api.models.schemas import PlanCreate, PlanRead, PlanUpdate
from invoice_api.models.tables import Plan

router = APIRouter(prefix="/plans", tags=["plans"])


@router.get("", response_model=List[PlanRead])
async def list_plans(db: AsyncSession = Depends(get_db)) -> List[PlanRead]:
    """Public plan catalogue."""
    result = await db.execute(select(Plan).order_by(Plan.price))
    return [PlanRead.model_validate(p) for p in result.scalars().all()]


@router.get("/{plan_id}", response_model=PlanRead)
async def get_plan(plan_id: int, db: AsyncSession = Depends(get_db)) -> PlanRead:
    plan = await db.get(Plan, plan_id)
    if plan is None:
        raise NotFound("Plan not found")
    return PlanRead.model_validate(plan)


@router.post("", response_model=PlanRead, status_code=status.HTTP_201_CREATED)
async def create_plan(
    plan_in: PlanCreate,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_admin),
) -> PlanRead:
    existing = await db.execute(select(Plan.id).where(Plan.name == plan_in.name))
    if existing.scalar() is not None:
        raise BadRequest("Plan name already exists")
    plan = Plan(**plan_in.model_dump())
    db.add(plan)
    await db.commit()
    await db.refresh(plan)
    return PlanRead.model_validate(plan)


@router.put("/{plan_id}", response_model=PlanRead)
async def update_plan(
    plan_id: int,
    plan_in: PlanUpdate,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_admin),
) -> PlanRead:
    plan = await db.get(Plan, plan_id)
    if plan is None:
        raise NotFound("Plan not found")
    for field, value in plan_in.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(plan, field, value)
    await db.commit()
    await db.refresh(plan)
    return PlanRead.model_validate(plan)
