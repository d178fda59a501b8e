"""Typed query filters, sort keys and pages for bill queries"""

import math
from datetime import datetime
from typing import Generic, List, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_billing.core.exceptions import ValidationError
from clinic_billing.models.enums import BillSortField, BillStatus, PaymentMethod
from clinic_billing.utils.time import to_naive_utc

T = TypeVar("T")


class BillFilter(BaseModel):
    """Bill query. Every set field narrows the result (AND)."""

    tenant_id: UUID
    status: Optional[BillStatus] = None
    patient_id: Optional[UUID] = None
    doctor_id: Optional[UUID] = None
    visit_id: Optional[UUID] = None
    start_date: Optional[datetime] = None  # bill_date >= start_date
    end_date: Optional[datetime] = None    # bill_date <= end_date
    due_before: Optional[datetime] = None  # due_date < due_before
    outstanding_only: bool = False         # balance > 0 and not cancelled
    search: Optional[str] = Field(None, max_length=100)  # bill_number / notes

    model_config = ConfigDict(frozen=True)

    @field_validator("start_date", "end_date", "due_before")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class CollectionFilter(BaseModel):
    """Payment-side query for collection reports (dates select whole local days of paid_at)."""

    tenant_id: UUID
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class BillSort(BaseModel):
    field: BillSortField = BillSortField.CREATED_AT
    descending: bool = True

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, value: Optional[str]) -> "BillSort":
        """Parse ``"due_date"`` / ``"-created_at"`` style sort keys."""
        if not value:
            return cls()
        descending = value.startswith("-")
        name = value.lstrip("-+")
        try:
            field = BillSortField(name)
        except ValueError:
            allowed = ", ".join(f.value for f in BillSortField)
            raise ValidationError(f"Unknown sort field '{name}'. Allowed: {allowed}", field="sort")
        return cls(field=field, descending=descending)


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


def check_pagination(page: int, page_size: int, max_page_size: int) -> None:
    if page < 1:
        raise ValidationError("page must be >= 1", field="page")
    if page_size < 1 or page_size > max_page_size:
        raise ValidationError(
            f"page_size must be between 1 and {max_page_size}", field="page_size"
        )
