"""API routes for plan subscriptions.

A user holds at most one ``ACTIVE`` subscription; its plan is what
``get_auth_context`` resolves and what the invoice quota is measured
against.
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.api.dependencies import get_auth_context, get_db, require_admin, require_owner_or_admin
from invoice_api.core.errors import BadRequest, NotFound
from invoice_api.core.security import AuthContext
from invoice_api.models.enums import SubscriptionStatus
from invoice_api.models.schemas import SubscriptionCreate, SubscriptionRead
from invoice_api.models.tables import Plan, Subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    subscription_in: SubscriptionCreate,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> SubscriptionRead:
    """Subscribe the caller to a plan."""
    plan = await db.get(Plan, subscription_in.plan_id)
    if plan is None or not plan.is_active:
        raise NotFound("Plan not found")
    active = await db.execute(
        select(Subscription.id).where(
            Subscription.user_id == auth.id,
            Subscription.status == SubscriptionStatus.ACTIVE,
        )
    )
    if active.scalar() is not None:
        raise BadRequest("User already has an active subscription")
    subscription = Subscription(
        user_id=auth.id,
        plan=plan,
        status=SubscriptionStatus.ACTIVE,
        payment_method=subscription_in.payment_method,
        external_ref=subscription_in.external_ref,
        end_date=subscription_in.end_date,
    )
    db.add(subscription)
    await db.commit()
    await db.refresh(subscription)
    logger.info("[subscriptions] user=%s subscribed plan=%s", auth.id, plan.name)
    return SubscriptionRead.model_validate(subscription)


@router.get("", response_model=List[SubscriptionRead])
async def list_subscriptions(
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_admin),
) -> List[SubscriptionRead]:
    result = await db.execute(select(Subscription).order_by(Subscription.start_date.desc()))
    return [SubscriptionRead.model_validate(s) for s in result.scalars().all()]


@router.get("/{subscription_id}", response_model=SubscriptionRead)
async def get_subscription(
    subscription_id: int,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
) -> SubscriptionRead:
    subscription = await db.get(Subscription, subscription_id)
    if subscription is None:
        raise NotFound("Subscription not found")
    require_owner_or_admin(auth, subscription.user_id)
    return SubscriptionRead.model_validate(subscription)
