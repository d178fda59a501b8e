"""Bill aggregate: line items, payment ledger, derived totals and status.

Domain rules:
- subtotal is always the sum of line item amounts, never caller-supplied
- total = max(0, subtotal + tax - discount)
- paid_amount is always the sum of the payment ledger
- balance = total - paid_amount and never goes negative
- status is derived from (balance, paid_amount, due_date, now); CANCELLED is
  terminal and survives every recompute
- once a payment exists, items, tax and discount are frozen
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Mapping, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from clinic_billing.core.exceptions import ConflictError, OverpaymentError, ValidationError
from clinic_billing.models.enums import BillStatus, PaymentMethod
from clinic_billing.utils.time import get_utc_now, to_naive_utc

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

# Owned by recompute / the payment ledger; never written by callers
COMPUTED_FIELDS = frozenset(
    {"bill_number", "subtotal", "total", "paid_amount", "balance", "status", "payments"}
)
EDITABLE_FIELDS = frozenset({"items", "tax", "discount", "due_date", "notes"})
FROZEN_AFTER_PAYMENT = frozenset({"items", "tax", "discount"})

NOTES_MAX_LENGTH = 1000


def to_money(value: Any) -> Decimal:
    """Coerce to a Decimal rounded to cents."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid monetary amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid monetary amount: {value!r}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def derive_status(
    balance: Decimal,
    paid_amount: Decimal,
    due_date: datetime,
    now: datetime,
    cancelled: bool = False,
) -> BillStatus:
    """Pure status derivation for a bill's financial state at ``now``."""
    if cancelled:
        return BillStatus.CANCELLED
    if balance <= 0:
        return BillStatus.PAID
    if paid_amount > 0:
        return BillStatus.PARTIAL
    if now > due_date:
        return BillStatus.OVERDUE
    return BillStatus.PENDING


def _as_validation_error(exc: PydanticValidationError, prefix: str = "") -> ValidationError:
    error = exc.errors()[0]
    loc = ".".join(str(part) for part in error.get("loc", ()))
    field = f"{prefix}.{loc}" if prefix and loc else (prefix or loc or None)
    return ValidationError(error.get("msg", str(exc)), field=field)


class BillLineItem(BaseModel):
    """One charge on a bill. amount must equal quantity x unit_rate."""

    description: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(..., ge=1)
    unit_rate: Decimal = Field(..., ge=0, decimal_places=2)
    amount: Decimal = Field(..., ge=0, decimal_places=2)

    model_config = ConfigDict(frozen=True, from_attributes=True, str_strip_whitespace=True)

    @model_validator(mode="after")
    def check_amount(self) -> "BillLineItem":
        expected = (self.unit_rate * self.quantity).quantize(CENTS, rounding=ROUND_HALF_UP)
        if self.amount.quantize(CENTS, rounding=ROUND_HALF_UP) != expected:
            raise ValueError(
                f"amount {self.amount} does not equal quantity x unit_rate ({expected})"
            )
        return self


class Payment(BaseModel):
    """Ledger entry. Appended once, never edited or removed."""

    id: UUID = Field(default_factory=uuid4)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    method: PaymentMethod
    transaction_ref: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)
    paid_at: datetime
    applied_by: UUID

    model_config = ConfigDict(frozen=True, from_attributes=True)


def build_line_items(items: Optional[Iterable[Any]]) -> List[BillLineItem]:
    """Validate caller-supplied items (models, mappings or attribute objects)."""
    line_items = []
    for index, item in enumerate(items or ()):
        if isinstance(item, BillLineItem):
            line_items.append(item)
            continue
        if isinstance(item, BaseModel):
            item = item.model_dump()
        try:
            line_items.append(BillLineItem.model_validate(item))
        except PydanticValidationError as exc:
            raise _as_validation_error(exc, prefix=f"items[{index}]")
    if not line_items:
        raise ValidationError("At least one line item is required", field="items")
    return line_items


def _check_adjustment(name: str, value: Any) -> Decimal:
    if value is None:
        return ZERO
    amount = to_money(value)
    if amount < 0:
        raise ValidationError(f"{name} cannot be negative", field=name)
    return amount


def _check_dates(bill_date: datetime, due_date: Optional[datetime]) -> None:
    if due_date is None:
        raise ValidationError("due_date is required", field="due_date")
    if due_date < bill_date:
        raise ValidationError("due_date cannot be before bill_date", field="due_date")


def _check_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = notes.strip()
    if len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(
            f"notes cannot exceed {NOTES_MAX_LENGTH} characters", field="notes"
        )
    return notes or None


class Bill(BaseModel):
    """
    Patient invoice aggregate.

    Financial fields (subtotal, total, paid_amount, balance, status) are
    written only by ``recompute``. Mutate through ``apply_payment``,
    ``revise`` and ``cancel``; each validates fully before changing state.
    """

    id: Optional[UUID] = None
    tenant_id: UUID
    bill_number: str

    patient_id: UUID
    doctor_id: UUID
    visit_id: UUID

    bill_date: datetime
    due_date: datetime

    items: List[BillLineItem] = Field(..., min_length=1)
    tax: Decimal = Field(ZERO, ge=0, decimal_places=2)
    discount: Decimal = Field(ZERO, ge=0, decimal_places=2)

    subtotal: Decimal = ZERO
    total: Decimal = ZERO
    paid_amount: Decimal = ZERO
    balance: Decimal = ZERO
    status: BillStatus = BillStatus.PENDING

    payments: List[Payment] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=NOTES_MAX_LENGTH)

    created_by: UUID
    updated_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def create(
        cls,
        *,
        tenant_id: UUID,
        bill_number: str,
        patient_id: UUID,
        doctor_id: UUID,
        visit_id: UUID,
        due_date: datetime,
        items: Iterable[Any],
        created_by: UUID,
        bill_date: Optional[datetime] = None,
        tax: Any = ZERO,
        discount: Any = ZERO,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "Bill":
        """
        Build a new bill and run the first recompute.

        Raises:
            ValidationError: missing reference, empty/invalid items, negative
                adjustments, or due_date before bill_date
        """
        now = now or get_utc_now()
        for name, ref in (
            ("tenant_id", tenant_id),
            ("patient_id", patient_id),
            ("doctor_id", doctor_id),
            ("visit_id", visit_id),
            ("created_by", created_by),
        ):
            if ref is None:
                raise ValidationError(f"{name} is required", field=name)

        line_items = build_line_items(items)
        bill_date = to_naive_utc(bill_date or now)
        due_date = to_naive_utc(due_date)
        _check_dates(bill_date, due_date)

        try:
            bill = cls(
                tenant_id=tenant_id,
                bill_number=bill_number,
                patient_id=patient_id,
                doctor_id=doctor_id,
                visit_id=visit_id,
                bill_date=bill_date,
                due_date=due_date,
                items=line_items,
                tax=_check_adjustment("tax", tax),
                discount=_check_adjustment("discount", discount),
                notes=_check_notes(notes),
                created_by=created_by,
            )
        except PydanticValidationError as exc:
            raise _as_validation_error(exc)
        return bill.recompute(now)

    @property
    def is_cancelled(self) -> bool:
        return self.status == BillStatus.CANCELLED

    @property
    def has_payments(self) -> bool:
        return bool(self.payments)

    def recompute(self, now: Optional[datetime] = None) -> "Bill":
        """Re-derive totals and status from items, adjustments and payments."""
        now = now or get_utc_now()
        self.subtotal = to_money(sum((item.amount for item in self.items), ZERO))
        self.total = max(ZERO, to_money(self.subtotal + self.tax - self.discount))
        self.paid_amount = to_money(sum((p.amount for p in self.payments), ZERO))
        self.balance = to_money(self.total - self.paid_amount)
        self.status = derive_status(
            self.balance,
            self.paid_amount,
            self.due_date,
            now,
            cancelled=self.is_cancelled,
        )
        return self

    def apply_payment(
        self,
        *,
        amount: Any,
        method: PaymentMethod,
        applied_by: UUID,
        transaction_ref: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Payment:
        """
        Append a payment to the ledger and recompute.

        Raises:
            ValidationError: amount <= 0 or malformed payment fields
            ConflictError: bill is cancelled
            OverpaymentError: amount exceeds the current balance
        """
        now = now or get_utc_now()
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0", field="amount")
        if self.is_cancelled:
            raise ConflictError("Cannot apply a payment to a cancelled bill")

        self.recompute(now)
        if amount > self.balance:
            raise OverpaymentError(amount, self.balance)

        try:
            payment = Payment(
                amount=amount,
                method=method,
                transaction_ref=transaction_ref,
                notes=notes,
                paid_at=now,
                applied_by=applied_by,
            )
        except PydanticValidationError as exc:
            raise _as_validation_error(exc)

        self.payments.append(payment)
        self.updated_by = applied_by
        self.recompute(now)
        return payment

    def revise(
        self,
        changes: Mapping[str, Any],
        updated_by: UUID,
        now: Optional[datetime] = None,
    ) -> "Bill":
        """
        Apply a partial update of caller-editable fields.

        Raises:
            ValidationError: a computed or unknown field, or invalid values
            ConflictError: bill is cancelled, or financial fields are frozen
                because payments exist
        """
        computed = sorted(COMPUTED_FIELDS.intersection(changes))
        if computed:
            raise ValidationError(
                f"'{computed[0]}' is computed and cannot be set directly", field=computed[0]
            )
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"'{unknown[0]}' cannot be updated", field=unknown[0])
        if self.is_cancelled:
            raise ConflictError("Cancelled bills cannot be modified")
        if self.has_payments and FROZEN_AFTER_PAYMENT.intersection(changes):
            raise ConflictError(
                "Bill has payments; items, tax and discount can no longer be changed"
            )

        items = build_line_items(changes["items"]) if "items" in changes else self.items
        tax = _check_adjustment("tax", changes["tax"]) if "tax" in changes else self.tax
        discount = (
            _check_adjustment("discount", changes["discount"])
            if "discount" in changes
            else self.discount
        )
        due_date = to_naive_utc(changes["due_date"]) if "due_date" in changes else self.due_date
        _check_dates(self.bill_date, due_date)
        notes = _check_notes(changes["notes"]) if "notes" in changes else self.notes

        self.items = list(items)
        self.tax = tax
        self.discount = discount
        self.due_date = due_date
        self.notes = notes
        self.updated_by = updated_by
        return self.recompute(now)

    def cancel(self, updated_by: UUID, now: Optional[datetime] = None) -> "Bill":
        """Terminal transition; refused for paid or already cancelled bills."""
        if self.is_cancelled:
            raise ConflictError("Bill is already cancelled")
        self.recompute(now)
        if self.status == BillStatus.PAID:
            raise ConflictError("Paid bills cannot be cancelled")
        self.status = BillStatus.CANCELLED
        self.updated_by = updated_by
        return self

    def snapshot(self) -> "Bill":
        """Detached deep copy."""
        return self.model_copy(deep=True)
