"""In-memory bill store for tests and local runs"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncIterator, Dict, Optional, Tuple
from uuid import UUID, uuid4

from clinic_billing.core.exceptions import ConflictError, NotFoundError
from clinic_billing.domain.bill import Bill
from clinic_billing.domain.filters import BillFilter, BillSort, Page
from clinic_billing.models.enums import BillSortField, BillStatus
from clinic_billing.repositories.base import BillRepository
from clinic_billing.utils.time import get_utc_now


def matches(bill: Bill, bill_filter: BillFilter) -> bool:
    """Same predicate the SQL store builds as a WHERE clause."""
    f = bill_filter
    if bill.tenant_id != f.tenant_id:
        return False
    if f.status is not None and bill.status != f.status:
        return False
    if f.patient_id is not None and bill.patient_id != f.patient_id:
        return False
    if f.doctor_id is not None and bill.doctor_id != f.doctor_id:
        return False
    if f.visit_id is not None and bill.visit_id != f.visit_id:
        return False
    if f.start_date is not None and bill.bill_date < f.start_date:
        return False
    if f.end_date is not None and bill.bill_date > f.end_date:
        return False
    if f.due_before is not None and not bill.due_date < f.due_before:
        return False
    if f.outstanding_only and (bill.balance <= 0 or bill.is_cancelled):
        return False
    if f.search:
        needle = f.search.lower()
        haystacks = (bill.bill_number.lower(), (bill.notes or "").lower())
        if not any(needle in text for text in haystacks):
            return False
    return True


def _sort_key(field: BillSortField):
    def key(bill: Bill):
        value = getattr(bill, field.value)
        # created_at is None only for bills that were never stored
        return (value is None, value if value is not None else Decimal(0))
    return key


class InMemoryBillRepository(BillRepository):
    """
    Dict-backed store holding detached snapshots.

    Callers always get copies, so an in-flight mutation is invisible until
    ``save`` swaps it in under the store lock.
    """

    def __init__(self):
        self._bills: Dict[UUID, Bill] = {}
        self._sequences: Dict[Tuple[UUID, date], int] = {}
        self._lock = asyncio.Lock()

    async def create(self, bill: Bill) -> Bill:
        async with self._lock:
            for existing in self._bills.values():
                if existing.tenant_id == bill.tenant_id and existing.bill_number == bill.bill_number:
                    raise ConflictError(f"Bill number {bill.bill_number} already exists")
            stored = bill.snapshot()
            now = get_utc_now()
            stored.id = stored.id or uuid4()
            stored.created_at = now
            stored.updated_at = now
            stored.version = 1
            self._bills[stored.id] = stored
            return stored.snapshot()

    async def get_by_id(self, tenant_id: UUID, bill_id: UUID) -> Optional[Bill]:
        stored = self._bills.get(bill_id)
        if stored is None or stored.tenant_id != tenant_id:
            return None
        return stored.snapshot()

    async def find(
        self,
        bill_filter: BillFilter,
        page: int,
        page_size: int,
        sort: BillSort,
    ) -> Page[Bill]:
        matching = [bill for bill in self._bills.values() if matches(bill, bill_filter)]
        matching.sort(key=_sort_key(sort.field), reverse=sort.descending)
        start = (page - 1) * page_size
        return Page[Bill](
            items=[bill.snapshot() for bill in matching[start:start + page_size]],
            total=len(matching),
            page=page,
            page_size=page_size,
        )

    async def scan(self, bill_filter: BillFilter) -> AsyncIterator[Bill]:
        for bill in list(self._bills.values()):
            if matches(bill, bill_filter):
                yield bill.snapshot()

    async def save(self, bill: Bill) -> Bill:
        async with self._lock:
            stored = self._bills.get(bill.id) if bill.id else None
            if stored is None or stored.tenant_id != bill.tenant_id:
                raise NotFoundError(f"Bill {bill.id} not found")
            if stored.version != bill.version:
                raise ConflictError(
                    f"Bill {bill.bill_number} was modified concurrently; reload and retry"
                )
            updated = bill.snapshot()
            updated.version = stored.version + 1
            updated.updated_at = get_utc_now()
            self._bills[updated.id] = updated
            return updated.snapshot()

    async def delete(self, tenant_id: UUID, bill_id: UUID) -> None:
        async with self._lock:
            stored = self._bills.get(bill_id)
            if stored is None or stored.tenant_id != tenant_id:
                raise NotFoundError(f"Bill {bill_id} not found")
            if stored.paid_amount > 0:
                raise ConflictError("Cannot delete a bill with payments")
            del self._bills[bill_id]

    async def next_sequence(self, tenant_id: UUID, day: date) -> int:
        async with self._lock:
            key = (tenant_id, day)
            self._sequences[key] = self._sequences.get(key, 0) + 1
            return self._sequences[key]

    async def mark_overdue(self, tenant_id: UUID, now: datetime) -> int:
        changed = 0
        async with self._lock:
            for bill_id, stored in list(self._bills.items()):
                if (
                    stored.tenant_id == tenant_id
                    and stored.status == BillStatus.PENDING
                    and stored.paid_amount == 0
                    and stored.due_date < now
                ):
                    updated = stored.snapshot()
                    updated.status = BillStatus.OVERDUE
                    updated.version = stored.version + 1
                    updated.updated_at = now
                    self._bills[bill_id] = updated
                    changed += 1
        return changed

    def __len__(self) -> int:
        return len(self._bills)
