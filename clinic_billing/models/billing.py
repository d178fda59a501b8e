"""Billing Models: bills, line items, payment ledger, daily number counters"""

import uuid
from sqlalchemy import (
    Column, Date, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String,
    Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship

from clinic_billing.database import Base
from clinic_billing.models.base import BaseModel, TenantScopedMixin
from clinic_billing.models.enums import BillStatus, PaymentMethod
from clinic_billing.utils.time import get_utc_now


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class BillRecord(BaseModel, TenantScopedMixin):
    """
    Persisted bill aggregate.
    Financial columns mirror the aggregate's last recompute.
    """
    __tablename__ = "bills"
    __table_args__ = (
        UniqueConstraint("tenant_id", "bill_number", name="uq_bills_tenant_bill_number"),
    )

    bill_number = Column(String(32), nullable=False, index=True)

    # External references (owned by the patient/visit services)
    patient_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    doctor_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    visit_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    bill_date = Column(DateTime, nullable=False, index=True)
    due_date = Column(DateTime, nullable=False, index=True)

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(
        Enum(BillStatus, name="bill_status", values_callable=_enum_values),
        default=BillStatus.PENDING,
        nullable=False,
        index=True,
    )

    notes = Column(Text, nullable=True)

    created_by = Column(Uuid(as_uuid=True), nullable=False)
    updated_by = Column(Uuid(as_uuid=True), nullable=True)

    # Optimistic concurrency token, bumped by SQLAlchemy on every UPDATE
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    items = relationship(
        "BillItemRecord",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillItemRecord.position",
        lazy="selectin",
    )
    payments = relationship(
        "BillPaymentRecord",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillPaymentRecord.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Bill {self.bill_number} - {self.status}>"


class BillItemRecord(Base):
    """One line item; position keeps the caller's ordering"""
    __tablename__ = "bill_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    bill_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    description = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_rate = Column(Numeric(12, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    bill = relationship("BillRecord", back_populates="items")


class BillPaymentRecord(Base):
    """Append-only payment ledger row"""
    __tablename__ = "bill_payments"
    __table_args__ = (
        Index("ix_bill_payments_paid_at_method", "paid_at", "method"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    bill_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(
        Enum(PaymentMethod, name="payment_method", values_callable=_enum_values),
        nullable=False,
    )
    transaction_ref = Column(String(100), nullable=True)
    notes = Column(String(500), nullable=True)
    paid_at = Column(DateTime, default=get_utc_now, nullable=False)
    applied_by = Column(Uuid(as_uuid=True), nullable=False)

    bill = relationship("BillRecord", back_populates="payments")


class BillNumberSequence(Base):
    """Per-tenant, per-day counter backing bill number generation"""
    __tablename__ = "bill_number_sequences"

    tenant_id = Column(Uuid(as_uuid=True), primary_key=True)
    sequence_date = Column(Date, primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<BillNumberSequence {self.tenant_id} {self.sequence_date}={self.last_value}>"
