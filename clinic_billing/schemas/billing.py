from typing import Dict, Optional, List
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime, date
from decimal import Decimal

from clinic_billing.models.enums import BillStatus, PaymentMethod


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class BillItemCreate(BaseModel):
    description: str = Field(..., max_length=200)
    quantity: int
    unit_rate: Decimal
    amount: Decimal


class BillCreate(BaseModel):
    """
    New bill. Business rules (non-empty items, amount = quantity x rate,
    non-negative adjustments, due date after bill date) are enforced by the
    aggregate so programmatic callers get the same errors.
    """
    patient_id: UUID
    doctor_id: UUID
    visit_id: UUID
    bill_date: Optional[datetime] = None
    due_date: Optional[datetime] = None  # defaults to bill_date + DEFAULT_DUE_DAYS
    items: List[BillItemCreate]
    tax: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    notes: Optional[str] = Field(None, max_length=1000)


class BillUpdate(BaseModel):
    """
    Partial update. Unknown and computed fields are let through so the
    aggregate can reject them by name instead of silently dropping them.
    """
    items: Optional[List[BillItemCreate]] = None
    tax: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)

    model_config = ConfigDict(extra="allow")


class PaymentCreate(BaseModel):
    amount: Decimal
    method: PaymentMethod
    transaction_ref: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class BillItemResponse(BaseModel):
    description: str
    quantity: int
    unit_rate: Decimal
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    id: UUID
    amount: Decimal
    method: PaymentMethod
    transaction_ref: Optional[str] = None
    notes: Optional[str] = None
    paid_at: datetime
    applied_by: UUID

    model_config = ConfigDict(from_attributes=True)


class BillResponse(BaseModel):
    id: UUID
    bill_number: str
    patient_id: UUID
    doctor_id: UUID
    visit_id: UUID
    bill_date: datetime
    due_date: datetime
    items: List[BillItemResponse]
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: BillStatus
    payments: List[PaymentResponse] = []
    notes: Optional[str] = None
    created_by: UUID
    updated_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StatusCounts(BaseModel):
    pending: int = 0
    partial: int = 0
    paid: int = 0
    overdue: int = 0
    cancelled: int = 0


class BillingStats(BaseModel):
    total_bills: int = 0
    total_amount: Decimal = Decimal("0.00")
    total_paid: Decimal = Decimal("0.00")
    total_balance: Decimal = Decimal("0.00")
    counts_by_status: StatusCounts = Field(default_factory=StatusCounts)


class GrowthStats(BaseModel):
    """Month-over-month change in percent"""
    revenue: float = 0.0
    bills: float = 0.0


class DashboardStats(BaseModel):
    stats: BillingStats
    this_month: BillingStats
    last_month: BillingStats
    growth: GrowthStats


class PeriodSummaryRow(BaseModel):
    period_key: str
    period_start: date
    total_bills: int
    total_amount: Decimal
    total_paid: Decimal
    total_balance: Decimal
    avg_bill_amount: Decimal


class CollectionRow(BaseModel):
    date: date
    payment_method: PaymentMethod
    total_amount: Decimal
    count: int


def status_counts(counts: Dict[BillStatus, int]) -> StatusCounts:
    return StatusCounts(**{status.value: count for status, count in counts.items()})
