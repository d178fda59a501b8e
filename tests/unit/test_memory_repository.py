"""Unit tests for InMemoryBillRepository."""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from clinic_billing.core.exceptions import ConflictError, NotFoundError, ValidationError
from clinic_billing.domain.filters import BillFilter, BillSort
from clinic_billing.models.enums import BillSortField, BillStatus, PaymentMethod

from factories import NOW, make_bill, make_items


@pytest.mark.asyncio
async def test_create_assigns_identity(memory_repo, tenant_id):
    bill = await memory_repo.create(make_bill(tenant_id))
    assert bill.id is not None
    assert bill.version == 1
    assert bill.created_at is not None
    assert len(memory_repo) == 1


@pytest.mark.asyncio
async def test_duplicate_bill_number_rejected(memory_repo, tenant_id):
    await memory_repo.create(make_bill(tenant_id))
    with pytest.raises(ConflictError):
        await memory_repo.create(make_bill(tenant_id))
    # Same number in another tenant is fine
    await memory_repo.create(make_bill(uuid.uuid4()))


@pytest.mark.asyncio
async def test_get_returns_detached_copy(memory_repo, tenant_id):
    bill = await memory_repo.create(make_bill(tenant_id))
    copy = await memory_repo.get_by_id(tenant_id, bill.id)
    copy.notes = "changed locally"
    stored = await memory_repo.get_by_id(tenant_id, bill.id)
    assert stored.notes is None


@pytest.mark.asyncio
async def test_get_other_tenant_returns_none(memory_repo, tenant_id):
    bill = await memory_repo.create(make_bill(tenant_id))
    assert await memory_repo.get_by_id(uuid.uuid4(), bill.id) is None


@pytest.mark.asyncio
async def test_save_detects_stale_version(memory_repo, tenant_id, user_id):
    bill = await memory_repo.create(make_bill(tenant_id))
    first = await memory_repo.get_by_id(tenant_id, bill.id)
    second = await memory_repo.get_by_id(tenant_id, bill.id)

    first.apply_payment(amount=100, method=PaymentMethod.CASH, applied_by=user_id, now=NOW)
    await memory_repo.save(first)

    second.apply_payment(amount=100, method=PaymentMethod.CASH, applied_by=user_id, now=NOW)
    with pytest.raises(ConflictError):
        await memory_repo.save(second)

    stored = await memory_repo.get_by_id(tenant_id, bill.id)
    assert stored.paid_amount == Decimal("100.00")
    assert stored.version == 2


@pytest.mark.asyncio
async def test_update_rejects_computed_field(memory_repo, tenant_id, user_id):
    bill = await memory_repo.create(make_bill(tenant_id))
    with pytest.raises(ValidationError):
        await memory_repo.update(tenant_id, bill.id, {"balance": "0"}, updated_by=user_id)


@pytest.mark.asyncio
async def test_update_unknown_bill(memory_repo, tenant_id, user_id):
    with pytest.raises(NotFoundError):
        await memory_repo.update(tenant_id, uuid.uuid4(), {"notes": "x"}, updated_by=user_id)


@pytest.mark.asyncio
async def test_update_recomputes_and_bumps_version(memory_repo, tenant_id, user_id):
    bill = await memory_repo.create(make_bill(tenant_id))
    updated = await memory_repo.update(
        tenant_id, bill.id, {"items": make_items(("Dressing", 3, "40.00"))}, updated_by=user_id, now=NOW
    )
    assert updated.subtotal == Decimal("120.00")
    assert updated.total == Decimal("70.00")
    assert updated.updated_by == user_id
    assert updated.version == 2


@pytest.mark.asyncio
async def test_delete_refused_with_payments(memory_repo, tenant_id, user_id):
    bill = await memory_repo.create(make_bill(tenant_id))
    bill.apply_payment(amount=10, method=PaymentMethod.CASH, applied_by=user_id, now=NOW)
    await memory_repo.save(bill)
    with pytest.raises(ConflictError):
        await memory_repo.delete(tenant_id, bill.id)


@pytest.mark.asyncio
async def test_delete_unpaid_bill(memory_repo, tenant_id):
    bill = await memory_repo.create(make_bill(tenant_id))
    await memory_repo.delete(tenant_id, bill.id)
    assert await memory_repo.get_by_id(tenant_id, bill.id) is None
    with pytest.raises(NotFoundError):
        await memory_repo.delete(tenant_id, bill.id)


@pytest.mark.asyncio
async def test_find_filters_and_paginates(memory_repo, tenant_id):
    patient_id = uuid.uuid4()
    for n in range(1, 6):
        await memory_repo.create(
            make_bill(
                tenant_id,
                f"BILL-20240115-{n:03d}",
                patient_id=patient_id if n % 2 else uuid.uuid4(),
                bill_date=NOW + timedelta(hours=n),
                due_date=NOW + timedelta(days=20),
            )
        )

    page = await memory_repo.find(
        BillFilter(tenant_id=tenant_id, patient_id=patient_id),
        page=1,
        page_size=2,
        sort=BillSort(field=BillSortField.BILL_DATE, descending=False),
    )
    assert page.total == 3
    assert page.total_pages == 2
    assert [bill.bill_number for bill in page.items] == ["BILL-20240115-001", "BILL-20240115-003"]

    page = await memory_repo.find(
        BillFilter(tenant_id=tenant_id, patient_id=patient_id),
        page=2,
        page_size=2,
        sort=BillSort(field=BillSortField.BILL_DATE, descending=False),
    )
    assert [bill.bill_number for bill in page.items] == ["BILL-20240115-005"]


@pytest.mark.asyncio
async def test_find_search_matches_number_and_notes(memory_repo, tenant_id):
    await memory_repo.create(make_bill(tenant_id, "BILL-20240115-001", notes="Follow-up visit"))
    await memory_repo.create(make_bill(tenant_id, "BILL-20240116-001"))

    by_notes = await memory_repo.find(BillFilter(tenant_id=tenant_id, search="follow"), 1, 10, BillSort())
    assert [b.bill_number for b in by_notes.items] == ["BILL-20240115-001"]

    by_number = await memory_repo.find(BillFilter(tenant_id=tenant_id, search="20240116"), 1, 10, BillSort())
    assert [b.bill_number for b in by_number.items] == ["BILL-20240116-001"]


@pytest.mark.asyncio
async def test_find_date_range(memory_repo, tenant_id):
    await memory_repo.create(make_bill(tenant_id, "BILL-20240101-001", bill_date=datetime(2024, 1, 1)))
    await memory_repo.create(make_bill(tenant_id, "BILL-20240115-001"))
    page = await memory_repo.find(
        BillFilter(tenant_id=tenant_id, start_date=datetime(2024, 1, 10), end_date=datetime(2024, 1, 31)),
        1, 10, BillSort(),
    )
    assert [b.bill_number for b in page.items] == ["BILL-20240115-001"]


@pytest.mark.asyncio
async def test_mark_overdue_persists_status(memory_repo, tenant_id, user_id):
    pending = await memory_repo.create(make_bill(tenant_id, "BILL-20240115-001"))
    partial = await memory_repo.create(make_bill(tenant_id, "BILL-20240115-002"))
    partial.apply_payment(amount=10, method=PaymentMethod.CASH, applied_by=user_id, now=NOW)
    await memory_repo.save(partial)

    changed = await memory_repo.mark_overdue(tenant_id, NOW + timedelta(days=30))
    assert changed == 1
    stored = await memory_repo.get_by_id(tenant_id, pending.id)
    assert stored.status == BillStatus.OVERDUE
    assert stored.version == pending.version + 1


def test_sort_parse():
    assert BillSort.parse("-due_date") == BillSort(field=BillSortField.DUE_DATE, descending=True)
    assert BillSort.parse("total") == BillSort(field=BillSortField.TOTAL, descending=False)
    assert BillSort.parse(None) == BillSort()
    with pytest.raises(ValidationError) as exc_info:
        BillSort.parse("patient_name")
    assert exc_info.value.field == "sort"
