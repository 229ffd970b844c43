from __future__ import annotations

import io
import json

import pytest
from fastapi import UploadFile
from sqlalchemy import func, select
from starlette.datastructures import Headers

from invoice_api.core.errors import (
    BadRequest,
    ExtractionFailed,
    InvalidReference,
    QuotaExceeded,
    StructuringFailed,
    Unauthenticated,
)
from invoice_api.models.tables import Invoice, User
from invoice_api.services.invoice_pipeline import InvoicePipeline
from invoice_api.services.storage_service import UploadStorage

from fakes import SAMPLE_RAW_TEXT, FakeOcr, FakeStructuring, sample_document


def _upload(data: bytes = b"\x89PNG fake image bytes", content_type: str = "image/png") -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename="factura.png", headers=Headers({"content-type": content_type}))


@pytest.fixture
def stages(tmp_path):
    ocr = FakeOcr()
    structuring = FakeStructuring()
    pipeline = InvoicePipeline(ocr=ocr, structuring=structuring, storage=UploadStorage(str(tmp_path / "uploads")))
    return pipeline, ocr, structuring


async def _invoice_count(db) -> int:
    return (await db.execute(select(func.count(Invoice.id)))).scalar_one()


async def _counter(db, user_id) -> int:
    return (await db.execute(select(User.invoice_count).where(User.id == user_id))).scalar_one()


@pytest.mark.asyncio
async def test_no_plan_is_denied_before_any_work(db, make_user, reference_data, stages):
    pipeline, ocr, structuring = stages
    user, auth = await make_user(invoice_limit=None)
    with pytest.raises(QuotaExceeded) as excinfo:
        await pipeline.process_invoice(db, auth, _upload(), **reference_data)
    assert excinfo.value.reason == QuotaExceeded.NO_PLAN
    assert ocr.calls == []
    assert structuring.calls == []
    assert await _invoice_count(db) == 0


@pytest.mark.asyncio
async def test_limit_reached_is_denied_before_any_work(db, make_user, reference_data, stages):
    pipeline, ocr, structuring = stages
    user, auth = await make_user(invoice_limit=1)
    await pipeline.process_invoice(db, auth, _upload(), **reference_data)
    with pytest.raises(QuotaExceeded) as excinfo:
        await pipeline.process_invoice(db, auth, _upload(), **reference_data)
    assert excinfo.value.reason == QuotaExceeded.LIMIT_REACHED
    assert len(ocr.calls) == 1
    assert len(structuring.calls) == 1
    assert await _invoice_count(db) == 1


@pytest.mark.asyncio
async def test_missing_auth_or_file(db, reference_data, stages):
    pipeline, ocr, _ = stages
    with pytest.raises(Unauthenticated):
        await pipeline.process_invoice(db, None, _upload(), **reference_data)
    with pytest.raises(BadRequest):
        await pipeline.process_invoice(db, object(), None, **reference_data)
    assert ocr.calls == []


@pytest.mark.asyncio
async def test_successful_upload_round_trips(db, make_user, reference_data, stages):
    pipeline, ocr, structuring = stages
    user, auth = await make_user(invoice_limit=5)
    invoice = await pipeline.process_invoice(db, auth, _upload(), **reference_data)

    assert structuring.calls == [SAMPLE_RAW_TEXT]
    assert ocr.existed == [True]
    assert not ocr.calls[0].exists()

    stored = (await db.execute(select(Invoice).where(Invoice.id == invoice.id))).scalar_one()
    assert stored.owner_id == user.id
    assert stored.raw_text == SAMPLE_RAW_TEXT
    assert stored.category_id == reference_data["category_id"]
    assert stored.type_id == reference_data["type_id"]
    assert json.dumps(stored.structured_data, ensure_ascii=False) == json.dumps(sample_document(), ensure_ascii=False)
    assert stored.structured_data["Valor Total"] == "KZ 500,00"
    assert await _counter(db, user.id) == 1


@pytest.mark.asyncio
async def test_unknown_category_writes_nothing_after_ocr_and_structuring(db, make_user, reference_data, stages):
    pipeline, ocr, structuring = stages
    user, auth = await make_user(invoice_limit=5)
    with pytest.raises(InvalidReference) as excinfo:
        await pipeline.process_invoice(db, auth, _upload(), category_id=9999, type_id=reference_data["type_id"])
    assert excinfo.value.message == "Invalid categoryId"
    assert len(ocr.calls) == 1
    assert len(structuring.calls) == 1
    assert await _invoice_count(db) == 0
    assert await _counter(db, user.id) == 0


@pytest.mark.asyncio
async def test_unknown_type_writes_nothing(db, make_user, reference_data, stages):
    pipeline, _, _ = stages
    user, auth = await make_user(invoice_limit=5)
    with pytest.raises(InvalidReference) as excinfo:
        await pipeline.process_invoice(db, auth, _upload(), category_id=reference_data["category_id"], type_id=9999)
    assert excinfo.value.message == "Invalid typeId"
    assert await _invoice_count(db) == 0


@pytest.mark.asyncio
async def test_structuring_failure_writes_nothing(db, make_user, reference_data, tmp_path):
    ocr = FakeOcr()
    pipeline = InvoicePipeline(
        ocr=ocr,
        structuring=FakeStructuring(error=StructuringFailed()),
        storage=UploadStorage(str(tmp_path)),
    )
    user, auth = await make_user(invoice_limit=5)
    with pytest.raises(StructuringFailed):
        await pipeline.process_invoice(db, auth, _upload(), **reference_data)
    assert await _invoice_count(db) == 0
    assert await _counter(db, user.id) == 0


@pytest.mark.asyncio
async def test_ocr_failure_skips_structuring_and_removes_upload(db, make_user, reference_data, tmp_path):
    ocr = FakeOcr(error=ExtractionFailed())
    structuring = FakeStructuring()
    pipeline = InvoicePipeline(ocr=ocr, structuring=structuring, storage=UploadStorage(str(tmp_path)))
    user, auth = await make_user(invoice_limit=5)
    with pytest.raises(ExtractionFailed):
        await pipeline.process_invoice(db, auth, _upload(), **reference_data)
    assert structuring.calls == []
    assert not ocr.calls[0].exists()
    assert await _invoice_count(db) == 0


@pytest.mark.asyncio
async def test_disallowed_content_type_is_rejected_before_ocr(db, make_user, reference_data, stages):
    pipeline, ocr, _ = stages
    user, auth = await make_user(invoice_limit=5)
    with pytest.raises(BadRequest):
        await pipeline.process_invoice(db, auth, _upload(content_type="text/plain"), **reference_data)
    assert ocr.calls == []


@pytest.mark.asyncio
async def test_empty_file_is_rejected(db, make_user, reference_data, stages):
    pipeline, ocr, _ = stages
    user, auth = await make_user(invoice_limit=5)
    with pytest.raises(BadRequest):
        await pipeline.process_invoice(db, auth, _upload(data=b""), **reference_data)
    assert ocr.calls == []


class _TransactionWatchingOcr(FakeOcr):
    def __init__(self, db):
        super().__init__()
        self.db = db
        self.in_transaction = []

    async def extract_text(self, path):
        self.in_transaction.append(self.db.in_transaction())
        return await super().extract_text(path)


class _TransactionWatchingStructuring(FakeStructuring):
    def __init__(self, db):
        super().__init__()
        self.db = db
        self.in_transaction = []

    async def structure(self, raw_text):
        self.in_transaction.append(self.db.in_transaction())
        return await super().structure(raw_text)


@pytest.mark.asyncio
async def test_no_transaction_is_held_during_ocr_and_structuring(db, make_user, reference_data, tmp_path):
    ocr = _TransactionWatchingOcr(db)
    structuring = _TransactionWatchingStructuring(db)
    pipeline = InvoicePipeline(ocr=ocr, structuring=structuring, storage=UploadStorage(str(tmp_path)))
    user, auth = await make_user(invoice_limit=5)
    # the caller's plan lookup opens a transaction, as get_auth_context does
    await db.execute(select(User.id).where(User.id == user.id))
    assert db.in_transaction() is True

    invoice = await pipeline.process_invoice(db, auth, _upload(), **reference_data)
    assert ocr.in_transaction == [False]
    assert structuring.in_transaction == [False]
    assert invoice.owner_id == user.id


@pytest.mark.asyncio
async def test_reference_ids_are_parsed_after_the_quota_gate(db, make_user, reference_data, stages):
    pipeline, ocr, structuring = stages
    user, auth = await make_user(invoice_limit=None)
    with pytest.raises(QuotaExceeded):
        await pipeline.process_invoice(db, auth, _upload(), category_id=None, type_id="abc")
    assert ocr.calls == []


@pytest.mark.asyncio
async def test_form_string_ids_are_accepted(db, make_user, reference_data, stages):
    pipeline, _, _ = stages
    user, auth = await make_user(invoice_limit=5)
    invoice = await pipeline.process_invoice(
        db,
        auth,
        _upload(),
        category_id=f" {reference_data['category_id']} ",
        type_id=str(reference_data["type_id"]),
    )
    assert invoice.category_id == reference_data["category_id"]


@pytest.mark.asyncio
async def test_non_numeric_category_fails_after_structuring(db, make_user, reference_data, stages):
    pipeline, ocr, structuring = stages
    user, auth = await make_user(invoice_limit=5)
    with pytest.raises(InvalidReference) as excinfo:
        await pipeline.process_invoice(db, auth, _upload(), category_id="abc", type_id=str(reference_data["type_id"]))
    assert excinfo.value.message == "Invalid categoryId"
    assert len(structuring.calls) == 1
    assert await _invoice_count(db) == 0
