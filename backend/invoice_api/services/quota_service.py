"""Quota service providing plan limits & usage enforcement.

This module centralises invoice-allowance checks so route handlers and
the ingestion pipeline stay thin.  The allowance comes from the
``invoice_limit`` of the caller's active plan; usage is a fresh count
of the invoices they own.  Nothing here is cached because both values
can change between requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.core.errors import QuotaExceeded
from invoice_api.models.tables import Invoice, Plan


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "QuotaDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "QuotaDecision":
        return cls(allowed=False, reason=reason)


@dataclass(frozen=True)
class QuotaStatus:
    """Derived view of a user's allowance (never stored)."""

    invoice_limit: Optional[int]
    invoice_count: int

    @property
    def remaining(self) -> Optional[int]:
        if self.invoice_limit is None:
            return None
        return max(0, self.invoice_limit - self.invoice_count)


class QuotaService:
    """Encapsulates plan limit queries & quota enforcement."""

    async def count_invoices_for_user(self, db: AsyncSession, user_id: int) -> int:
        result = await db.execute(select(func.count(Invoice.id)).where(Invoice.owner_id == user_id))
        return int(result.scalar() or 0)

    async def get_status(self, db: AsyncSession, user_id: int, plan: Optional[Plan]) -> QuotaStatus:
        count = await self.count_invoices_for_user(db, user_id)
        return QuotaStatus(invoice_limit=plan.invoice_limit if plan is not None else None, invoice_count=count)

    async def check_quota(self, db: AsyncSession, user_id: int, plan: Optional[Plan]) -> QuotaDecision:
        """Decide whether ``user_id`` may ingest another invoice.

        - no active plan -> ``no-plan``
        - existing count >= plan limit -> ``limit-reached``
        """
        if plan is None:
            return QuotaDecision.deny(QuotaExceeded.NO_PLAN)
        count = await self.count_invoices_for_user(db, user_id)
        if count >= plan.invoice_limit:
            return QuotaDecision.deny(QuotaExceeded.LIMIT_REACHED)
        return QuotaDecision.allow()

    async def enforce_quota(self, db: AsyncSession, user_id: int, plan: Optional[Plan]) -> None:
        decision = await self.check_quota(db, user_id, plan)
        if not decision.allowed:
            raise QuotaExceeded(decision.reason or QuotaExceeded.LIMIT_REACHED)


__all__ = [
    "QuotaService",
    "QuotaDecision",
    "QuotaStatus",
]
