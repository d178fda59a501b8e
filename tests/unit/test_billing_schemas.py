"""Unit tests for billing request/response schemas."""

import uuid
from decimal import Decimal

import pytest
from pydantic import ValidationError

from clinic_billing.models.enums import BillStatus, PaymentMethod
from clinic_billing.schemas.billing import (
    BillCreate, BillResponse, BillUpdate, PaymentCreate, status_counts,
)
from clinic_billing.schemas.responses import ErrorDetail, ErrorResponse

from factories import bill_payload, make_bill


def test_bill_create_defaults():
    data = BillCreate.model_validate(bill_payload(tax="0", discount="0"))
    assert data.bill_date is None
    assert data.due_date is None
    assert data.tax == Decimal("0")
    assert len(data.items) == 2


def test_bill_create_notes_limit():
    with pytest.raises(ValidationError):
        BillCreate.model_validate(bill_payload(notes="x" * 1001))


def test_bill_update_keeps_unknown_fields():
    """Computed fields reach the aggregate so it can reject them by name."""
    update = BillUpdate.model_validate({"notes": "hi", "total": "5"})
    assert update.model_dump(exclude_unset=True) == {"notes": "hi", "total": "5"}


def test_payment_create_method_enum():
    payment = PaymentCreate(amount=Decimal("10"), method="upi")
    assert payment.method == PaymentMethod.UPI
    with pytest.raises(ValidationError):
        PaymentCreate(amount=Decimal("10"), method="bitcoin")


def test_bill_response_from_aggregate():
    bill = make_bill(uuid.uuid4())
    bill.id = uuid.uuid4()
    response = BillResponse.model_validate(bill)
    assert response.bill_number == bill.bill_number
    assert response.total == Decimal("750.00")
    assert response.status == BillStatus.PENDING
    assert [item.description for item in response.items] == ["Consultation", "Lab test"]


def test_status_counts_from_counter():
    counts = status_counts({BillStatus.PAID: 2, BillStatus.OVERDUE: 1})
    assert counts.paid == 2
    assert counts.overdue == 1
    assert counts.pending == 0


def test_error_response_envelope():
    body = ErrorResponse(
        error=ErrorDetail(code="OVERPAYMENT", message="too much", details={"remaining_balance": "550.00"})
    ).model_dump(exclude_none=True)
    assert body == {
        "success": False,
        "error": {"code": "OVERPAYMENT", "message": "too much", "details": {"remaining_balance": "550.00"}},
    }
