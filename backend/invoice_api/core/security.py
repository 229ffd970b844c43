"""Security and authentication utilities.

Bearer tokens are HS256 JWTs signed with ``JWT_SECRET`` whose ``sub``
claim carries the local user id.  ``get_auth_context`` verifies the
token, loads the user with its role and currently active plan and
returns an :class:`AuthContext` that route handlers trust without
re-verifying identity.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Optional, Dict, Any

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.core.config import settings
from invoice_api.core.database import get_db
from invoice_api.core.errors import Forbidden, Unauthenticated
from invoice_api.models.enums import RoleName, SubscriptionStatus
from invoice_api.models.tables import Plan, Subscription, User

auth_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller as seen by route handlers."""

    id: int
    role: str
    plan: Optional[Plan]

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN.value


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    """Issue a signed token for ``user_id``."""
    expires = dt.datetime.now(dt.timezone.utc) + dt.timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.JWT_EXPIRES_MINUTES
    )
    claims = {"sub": str(user_id), "exp": expires}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and verify a bearer token.

    Raises:
        Unauthenticated: If the token is malformed, expired or badly signed.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise Unauthenticated("Invalid token") from exc


async def find_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)


async def find_active_plan(db: AsyncSession, user_id: int) -> Optional[Plan]:
    """Return the plan of the user's active subscription, if any."""
    result = await db.execute(
        select(Plan)
        .join(Subscription, Subscription.plan_id == Plan.id)
        .where(Subscription.user_id == user_id, Subscription.status == SubscriptionStatus.ACTIVE)
        .order_by(Subscription.start_date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Resolve the bearer token to an :class:`AuthContext`."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Missing bearer token")
    payload = decode_access_token(credentials.credentials)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError) as exc:
        raise Unauthenticated("Invalid token: no sub claim") from exc
    user = await find_user_by_id(db, user_id)
    if user is None:
        raise Unauthenticated("User not found")
    plan = await find_active_plan(db, user.id)
    return AuthContext(id=user.id, role=user.role.name, plan=plan)


async def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Ensure the caller has the ``admin`` role."""
    if not auth.is_admin:
        raise Forbidden("Requires admin role")
    return auth
