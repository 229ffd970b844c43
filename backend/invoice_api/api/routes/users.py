"""API routes for the current user.

Accounts are provisioned out of band (see ``scripts/seed_db.py``); this
router only exposes the authenticated caller's profile together with
the plan and quota the ingestion pipeline will enforce.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.api.dependencies import get_auth_context, get_db
from invoice_api.core.errors import Unauthenticated
from invoice_api.core.security import AuthContext, find_user_by_id
from invoice_api.models.schemas import PlanRead, QuotaRead, UserRead
from invoice_api.services.quota_service import QuotaService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserRead)
async def read_current_user(
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> UserRead:
    """Return the authenticated user's profile, plan and quota."""
    user = await find_user_by_id(db, auth.id)
    if user is None:
        raise Unauthenticated("User not found")
    quota = await QuotaService().get_status(db, auth.id, auth.plan)
    return UserRead(
        id=user.id,
        email=user.email,
        name=user.name,
        role=auth.role,
        plan=PlanRead.model_validate(auth.plan) if auth.plan is not None else None,
        quota=QuotaRead(
            invoice_limit=quota.invoice_limit,
            invoice_count=quota.invoice_count,
            remaining=quota.remaining,
        ),
    )
