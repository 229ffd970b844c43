"""Create tables and seed reference data.

Seeds roles, plans, categories and invoice types.  Safe to run more than
once: existing rows (matched by name) are left untouched.

Optionally provisions an administrator account and prints a bearer token
for it, since the API has no login endpoint:

    python -m invoice_api.scripts.seed_db --admin-email admin@example.com
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoice_api.core.database import AsyncSessionLocal, init_db
from invoice_api.core.security import create_access_token
from invoice_api.models.enums import RoleName
from invoice_api.models.tables import Category, InvoiceType, Plan, User, UserRole

logger = logging.getLogger(__name__)

PLANS = [
    {
        "name": "Free",
        "description": "Plano gratuito para começar a organizar as suas facturas.",
        "price": Decimal("0"),
        "currency": "AOA",
        "invoice_limit": 50,
        "features": ["Até 50 facturas", "Extracção automática de dados"],
    },
    {
        "name": "Premium",
        "description": "Para quem processa facturas todos os meses.",
        "price": Decimal("14990"),
        "currency": "AOA",
        "invoice_limit": 500,
        "features": ["Até 500 facturas", "Extracção automática de dados", "Relatórios"],
    },
    {
        "name": "Pro",
        "description": "Para empresas com grande volume de facturas.",
        "price": Decimal("49990"),
        "currency": "AOA",
        "invoice_limit": 5000,
        "features": ["Até 5000 facturas", "Extracção automática de dados", "Relatórios", "Suporte prioritário"],
    },
]

CATEGORIES = [
    {"name": "Transferência", "icon": "credit-card", "color_hex": "#4A90E2"},
    {"name": "Depósito", "icon": "money-check", "color_hex": "#50E3C2"},
    {"name": "Utilitários", "icon": "bolt", "color_hex": "#F5A623"},
    {"name": "Moradia", "icon": "home", "color_hex": "#D0021B"},
    {"name": "Alimentação", "icon": "utensils", "color_hex": "#BD10E0"},
    {"name": "Assinatura", "icon": "tv", "color_hex": "#7ED321"},
    {"name": "Saúde", "icon": "dumbbell", "color_hex": "#417505"},
    {"name": "Mobilidade", "icon": "bus", "color_hex": "#F8E71C"},
]

INVOICE_TYPES = [{"name": "Receita"}, {"name": "Despesa"}]


async def _ensure(db: AsyncSession, model: Type[Any], values: Dict[str, Any]) -> bool:
    """Insert ``values`` unless a row with the same name exists. Returns True if inserted."""
    existing = await db.execute(select(model.id).where(model.name == values["name"]))
    if existing.scalar() is not None:
        return False
    db.add(model(**values))
    return True


async def seed_reference_data(db: AsyncSession) -> Dict[str, int]:
    """Seed roles, plans, categories and types; returns inserted counts per table."""
    inserted: Dict[str, int] = {}
    groups = [
        (UserRole, [{"name": role.value} for role in RoleName]),
        (Plan, PLANS),
        (Category, CATEGORIES),
        (InvoiceType, INVOICE_TYPES),
    ]
    for model, rows in groups:
        count = 0
        for values in rows:
            if await _ensure(db, model, values):
                count += 1
        inserted[model.__tablename__] = count
    await db.commit()
    return inserted


async def ensure_admin(db: AsyncSession, email: str, name: Optional[str] = None) -> User:
    """Return the user with ``email``, creating it with the admin role if needed."""
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is not None:
        return user
    role = (await db.execute(select(UserRole).where(UserRole.name == RoleName.ADMIN.value))).scalar_one()
    user = User(email=email, name=name or "Administrator", role_id=role.id)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def main(admin_email: Optional[str] = None) -> None:
    await init_db()
    async with AsyncSessionLocal() as db:
        inserted = await seed_reference_data(db)
        for table, count in inserted.items():
            logger.info("[seed] %s: %d inserted", table, count)
        if admin_email:
            admin = await ensure_admin(db, admin_email)
            logger.info("[seed] admin user id=%s email=%s", admin.id, admin.email)
            print(create_access_token(admin.id))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--admin-email", default=None, help="provision an admin user and print its token")
    args = parser.parse_args()
    asyncio.run(main(args.admin_email))
