from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from invoice_api.core.errors import BadRequest, InvalidReference, PersistenceFailed, QuotaExceeded
from invoice_api.models.enums import InvoiceOrder
from invoice_api.models.tables import Category, Invoice, User
from invoice_api.services.invoice_repository import InvoiceFilters, InvoiceRepository

from fakes import sample_document


def _payload(reference_data, raw_text="TOTAL KZ 500,00"):
    return dict(
        category_id=reference_data["category_id"],
        type_id=reference_data["type_id"],
        raw_text=raw_text,
        structured_data=sample_document(),
    )


async def _counter(db, user_id) -> int:
    return (await db.execute(select(User.invoice_count).where(User.id == user_id))).scalar_one()


@pytest.mark.asyncio
async def test_conditional_write_refuses_slot_taken_after_gate(db, make_user, reference_data):
    # Both requests passed the quota gate with count 0; only one may take the last slot.
    repo = InvoiceRepository()
    user, auth = await make_user(invoice_limit=1)
    user_id = user.id
    await repo.create_invoice(db, owner_id=user_id, invoice_limit=1, **_payload(reference_data))
    with pytest.raises(QuotaExceeded) as excinfo:
        await repo.create_invoice(db, owner_id=user_id, invoice_limit=1, **_payload(reference_data))
    assert excinfo.value.reason == QuotaExceeded.LIMIT_REACHED
    total = (await db.execute(select(func.count(Invoice.id)).where(Invoice.owner_id == user_id))).scalar_one()
    assert total == 1
    assert await _counter(db, user_id) == 1


@pytest.mark.asyncio
async def test_failed_write_consumes_no_quota(db, make_user, reference_data, monkeypatch):
    repo = InvoiceRepository()
    user, auth = await make_user(invoice_limit=3)
    user_id = user.id

    async def failing_commit():
        raise OperationalError("INSERT INTO invoices", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(PersistenceFailed) as excinfo:
        await repo.create_invoice(db, owner_id=user_id, invoice_limit=3, **_payload(reference_data))
    assert isinstance(excinfo.value.__cause__, OperationalError)
    monkeypatch.undo()

    assert (await db.execute(select(func.count(Invoice.id)))).scalar_one() == 0
    assert await _counter(db, user_id) == 0


@pytest.mark.asyncio
async def test_soft_deleted_category_does_not_resolve(db, reference_data):
    repo = InvoiceRepository()
    category = await db.get(Category, reference_data["category_id"])
    category.deleted = True
    await db.commit()
    with pytest.raises(InvalidReference):
        await repo.resolve_references(db, reference_data["category_id"], reference_data["type_id"])


@pytest.mark.asyncio
async def test_delete_frees_a_slot(db, make_user, reference_data):
    repo = InvoiceRepository()
    user, auth = await make_user(invoice_limit=1)
    invoice = await repo.persist(db, owner_id=user.id, invoice_limit=1, **_payload(reference_data))
    await repo.delete(db, invoice)
    assert await _counter(db, user.id) == 0
    await repo.persist(db, owner_id=user.id, invoice_limit=1, **_payload(reference_data))
    assert await _counter(db, user.id) == 1


@pytest.mark.asyncio
async def test_get_for_owner_hides_other_users_invoices(db, make_user, reference_data):
    repo = InvoiceRepository()
    owner, _ = await make_user(invoice_limit=5)
    other, _ = await make_user(invoice_limit=5)
    invoice = await repo.persist(db, owner_id=owner.id, invoice_limit=5, **_payload(reference_data))
    assert await repo.get_for_owner(db, invoice.id, owner.id) is not None
    assert await repo.get_for_owner(db, invoice.id, other.id) is None


@pytest.mark.asyncio
async def test_list_filters_search_and_pages(db, make_user, reference_data):
    repo = InvoiceRepository()
    user, _ = await make_user(invoice_limit=50)
    other, _ = await make_user(invoice_limit=50)
    base = dt.datetime(2024, 3, 1, 9, 0, 0)
    for i in range(5):
        db.add(
            Invoice(
                owner_id=user.id,
                raw_text=f"Loja Central factura {i}" if i % 2 == 0 else f"Farmacia {i}",
                structured_data={},
                category_id=reference_data["category_id"],
                type_id=reference_data["type_id"],
                created_at=base + dt.timedelta(days=i),
            )
        )
    db.add(
        Invoice(
            owner_id=other.id,
            raw_text="Loja Central factura x",
            structured_data={},
            category_id=reference_data["category_id"],
            type_id=reference_data["type_id"],
            created_at=base,
        )
    )
    await db.commit()

    invoices, total = await repo.list_invoices(db, InvoiceFilters(owner_id=user.id, search="loja central"))
    assert total == 3
    assert [i.raw_text for i in invoices] == [
        "Loja Central factura 4",
        "Loja Central factura 2",
        "Loja Central factura 0",
    ]

    page, total = await repo.list_invoices(
        db, InvoiceFilters(owner_id=user.id, page=2, limit=2, order=InvoiceOrder.ASC)
    )
    assert total == 5
    assert [i.created_at for i in page] == [base + dt.timedelta(days=2), base + dt.timedelta(days=3)]
    assert repo.total_pages(total, 2) == 3

    ranged, total = await repo.list_invoices(
        db,
        InvoiceFilters(
            owner_id=user.id,
            start_date=base + dt.timedelta(days=1),
            end_date=base + dt.timedelta(days=2),
        ),
    )
    assert total == 2

    everyone, total = await repo.list_invoices(db, InvoiceFilters(search="Loja"))
    assert total == 4


@pytest.mark.asyncio
async def test_list_rejects_unknown_order_column(db):
    with pytest.raises(BadRequest):
        await InvoiceRepository().list_invoices(db, InvoiceFilters(order_by="rawText"))
