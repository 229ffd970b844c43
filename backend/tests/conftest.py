from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

# Settings are read at import time; point them at throwaway locations first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIRECTORY", tempfile.mkdtemp(prefix="invoice-uploads-"))
os.environ.pop("SENTRY_DSN", None)

# Add backend folder to sys.path so `import invoice_api...` works when running from backend root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import itertools
from typing import Any, Dict, Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool, StaticPool

from invoice_api.core.database import Base, get_db
from invoice_api.core.security import AuthContext, create_access_token, find_active_plan
from invoice_api.models.enums import RoleName, SubscriptionStatus
from invoice_api.models.tables import Category, InvoiceType, Plan, Subscription, User, UserRole
from invoice_api.services.storage_service import UploadStorage

from fakes import FakeOcr, FakeStructuring

_seq = itertools.count(1)

# ---------------------------------------------------------------------------
# Async (service-level) fixtures


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    Session_ = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with Session_() as session:
        yield session


@pytest_asyncio.fixture
async def reference_data(db) -> Dict[str, int]:
    """Roles plus one category and one type; returns their ids."""
    for role in RoleName:
        db.add(UserRole(name=role.value))
    category = Category(name="Alimentação", icon="utensils", color_hex="#BD10E0")
    invoice_type = InvoiceType(name="Despesa")
    db.add_all([category, invoice_type])
    await db.commit()
    return {"category_id": category.id, "type_id": invoice_type.id}


@pytest_asyncio.fixture
async def make_user(db, reference_data):
    """Factory: ``await make_user(invoice_limit=2)`` -> (User, AuthContext)."""

    async def _make(invoice_limit: Optional[int] = None, role: RoleName = RoleName.NORMAL_USER):
        n = next(_seq)
        role_row = (await db.execute(select(UserRole).where(UserRole.name == role.value))).scalar_one()
        user = User(email=f"user{n}@example.com", name=f"User {n}", role_id=role_row.id)
        db.add(user)
        await db.flush()
        if invoice_limit is not None:
            plan = Plan(name=f"Plan {n}", description="", price=0, invoice_limit=invoice_limit)
            db.add(plan)
            await db.flush()
            db.add(Subscription(user_id=user.id, plan_id=plan.id, status=SubscriptionStatus.ACTIVE))
        await db.commit()
        plan = await find_active_plan(db, user.id)
        return user, AuthContext(id=user.id, role=role.value, plan=plan)

    return _make


# ---------------------------------------------------------------------------
# HTTP fixtures


class ApiHarness:
    """TestClient plus a synchronous session on the same database file."""

    def __init__(self, client: TestClient, sync_engine, upload_dir: Path) -> None:
        self.client = client
        self.sync_engine = sync_engine
        self.upload_dir = upload_dir
        with Session(sync_engine) as s:
            s.add_all([UserRole(name=role.value) for role in RoleName])
            category = Category(name="Alimentação", icon="utensils", color_hex="#BD10E0")
            invoice_type = InvoiceType(name="Despesa")
            s.add_all([category, invoice_type])
            s.commit()
            self.category_id = category.id
            self.type_id = invoice_type.id

    def add_user(self, invoice_limit: Optional[int] = None, role: RoleName = RoleName.NORMAL_USER) -> int:
        n = next(_seq)
        with Session(self.sync_engine) as s:
            role_row = s.execute(select(UserRole).where(UserRole.name == role.value)).scalar_one()
            user = User(email=f"api{n}@example.com", name=f"Api {n}", role_id=role_row.id)
            s.add(user)
            s.flush()
            if invoice_limit is not None:
                plan = Plan(name=f"Api plan {n}", description="", price=0, invoice_limit=invoice_limit)
                s.add(plan)
                s.flush()
                s.add(Subscription(user_id=user.id, plan_id=plan.id, status=SubscriptionStatus.ACTIVE))
            s.commit()
            return user.id

    def headers(self, user_id: int) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    def count(self, model, *where) -> int:
        with Session(self.sync_engine) as s:
            return s.execute(select(func.count()).select_from(model).where(*where)).scalar_one()

    def install_pipeline(self, ocr: Any = None, structuring: Any = None) -> "tuple[FakeOcr, FakeStructuring]":
        from invoice_api.api.main import app
        from invoice_api.services.invoice_pipeline import InvoicePipeline, get_invoice_pipeline

        ocr = ocr or FakeOcr()
        structuring = structuring or FakeStructuring()
        storage = UploadStorage(str(self.upload_dir))
        app.dependency_overrides[get_invoice_pipeline] = lambda: InvoicePipeline(
            ocr=ocr, structuring=structuring, storage=storage
        )
        return ocr, structuring


@pytest.fixture
def api(tmp_path):
    from invoice_api.api.main import app

    db_file = tmp_path / "api.db"
    sync_engine = create_engine(f"sqlite:///{db_file}")
    Base.metadata.create_all(sync_engine)
    async_engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}", poolclass=NullPool)
    Session_ = async_sessionmaker(async_engine, expire_on_commit=False, autoflush=False)

    async def _get_db():
        async with Session_() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as client:
        harness = ApiHarness(client, sync_engine, tmp_path / "uploads")
        harness.install_pipeline()
        yield harness
    app.dependency_overrides.clear()
    sync_engine.dispose()
