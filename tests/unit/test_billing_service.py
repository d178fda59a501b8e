"""Unit tests for BillingService (in-memory store)."""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from clinic_billing.core.exceptions import ConflictError, NotFoundError, ValidationError
from clinic_billing.domain.filters import BillFilter
from clinic_billing.models.enums import BillStatus, PaymentMethod
from clinic_billing.schemas.billing import BillCreate
from clinic_billing.services.billing_service import BillingService
from clinic_billing.services.payment_service import PaymentService

from factories import NOW, bill_payload


def _create_request(**overrides) -> BillCreate:
    return BillCreate.model_validate(bill_payload(**overrides))


@pytest.mark.asyncio
async def test_create_bill_numbers_and_defaults_due_date(memory_repo, tenant_id, user_id):
    bill = await BillingService.create_bill(memory_repo, tenant_id, _create_request(), user_id, now=NOW)
    assert bill.bill_number == "BILL-20240115-001"
    assert bill.bill_date == NOW
    assert bill.due_date == NOW + timedelta(days=15)
    assert bill.total == Decimal("750.00")
    assert bill.status == BillStatus.PENDING
    assert bill.created_by == user_id


@pytest.mark.asyncio
async def test_rejected_create_does_not_consume_number(memory_repo, tenant_id, user_id):
    with pytest.raises(ValidationError):
        await BillingService.create_bill(
            memory_repo, tenant_id, _create_request(items=[]), user_id, now=NOW
        )
    bill = await BillingService.create_bill(memory_repo, tenant_id, _create_request(), user_id, now=NOW)
    assert bill.bill_number.endswith("-001")


@pytest.mark.asyncio
async def test_get_bill_derives_current_status(memory_repo, tenant_id, user_id):
    bill = await BillingService.create_bill(memory_repo, tenant_id, _create_request(), user_id, now=NOW)
    later = NOW + timedelta(days=20)
    fetched = await BillingService.get_bill(memory_repo, tenant_id, bill.id, now=later)
    assert fetched.status == BillStatus.OVERDUE


@pytest.mark.asyncio
async def test_get_bill_not_found(memory_repo, tenant_id):
    with pytest.raises(NotFoundError):
        await BillingService.get_bill(memory_repo, tenant_id, uuid.uuid4())


@pytest.mark.asyncio
async def test_list_bills_refreshes_overdue(memory_repo, tenant_id, user_id):
    await BillingService.create_bill(memory_repo, tenant_id, _create_request(), user_id, now=NOW)
    later = NOW + timedelta(days=20)
    page = await BillingService.list_bills(
        memory_repo, BillFilter(tenant_id=tenant_id, status=BillStatus.OVERDUE), now=later
    )
    assert page.total == 1


@pytest.mark.asyncio
async def test_list_bills_rejects_oversized_page(memory_repo, tenant_id):
    with pytest.raises(ValidationError) as exc_info:
        await BillingService.list_bills(memory_repo, BillFilter(tenant_id=tenant_id), page_size=500)
    assert exc_info.value.field == "page_size"


@pytest.mark.asyncio
async def test_update_bill_after_payment(memory_repo, tenant_id, user_id):
    bill = await BillingService.create_bill(memory_repo, tenant_id, _create_request(), user_id, now=NOW)
    await PaymentService.apply_payment(
        memory_repo, tenant_id, bill.id, Decimal("100"), PaymentMethod.CASH, user_id, now=NOW
    )
    with pytest.raises(ConflictError):
        await BillingService.update_bill(memory_repo, tenant_id, bill.id, {"tax": Decimal("0")}, user_id, now=NOW)

    updated = await BillingService.update_bill(
        memory_repo, tenant_id, bill.id, {"notes": "Insurance claim filed"}, user_id, now=NOW
    )
    assert updated.notes == "Insurance claim filed"
    assert updated.paid_amount == Decimal("100.00")


@pytest.mark.asyncio
async def test_delete_bill(memory_repo, tenant_id, user_id):
    bill = await BillingService.create_bill(memory_repo, tenant_id, _create_request(), user_id, now=NOW)
    await BillingService.delete_bill(memory_repo, tenant_id, bill.id)
    with pytest.raises(NotFoundError):
        await BillingService.get_bill(memory_repo, tenant_id, bill.id)


@pytest.mark.asyncio
async def test_cancel_bill(memory_repo, tenant_id, user_id):
    bill = await BillingService.create_bill(memory_repo, tenant_id, _create_request(), user_id, now=NOW)
    cancelled = await BillingService.cancel_bill(memory_repo, tenant_id, bill.id, user_id, now=NOW)
    assert cancelled.status == BillStatus.CANCELLED
    with pytest.raises(ConflictError):
        await PaymentService.apply_payment(
            memory_repo, tenant_id, bill.id, Decimal("10"), PaymentMethod.CASH, user_id, now=NOW
        )


@pytest.mark.asyncio
async def test_explicit_due_date_kept(memory_repo, tenant_id, user_id):
    request = _create_request(bill_date="2024-01-10T09:00:00", due_date="2024-02-01T09:00:00")
    bill = await BillingService.create_bill(memory_repo, tenant_id, request, user_id, now=NOW)
    assert bill.bill_date == datetime(2024, 1, 10, 9, 0)
    assert bill.due_date == datetime(2024, 2, 1, 9, 0)
