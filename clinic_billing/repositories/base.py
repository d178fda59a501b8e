"""Bill repository contract shared by the SQL and in-memory stores"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, AsyncIterator, Mapping, Optional
from uuid import UUID

from clinic_billing.core.exceptions import NotFoundError
from clinic_billing.domain.bill import Bill
from clinic_billing.domain.filters import BillFilter, BillSort, Page


class BillRepository(ABC):
    """
    Persistence boundary for Bill aggregates.

    Writes are compare-and-swap on ``Bill.version``: ``save`` raises
    ``ConflictError`` when the stored version moved since the bill was read.
    """

    @abstractmethod
    async def create(self, bill: Bill) -> Bill:
        """Persist a new bill; returns it with id, timestamps and version set."""

    @abstractmethod
    async def get_by_id(self, tenant_id: UUID, bill_id: UUID) -> Optional[Bill]:
        """Detached copy of the bill, or None when absent in this tenant."""

    @abstractmethod
    async def find(
        self,
        bill_filter: BillFilter,
        page: int,
        page_size: int,
        sort: BillSort,
    ) -> Page[Bill]:
        ...

    @abstractmethod
    def scan(self, bill_filter: BillFilter) -> AsyncIterator[Bill]:
        """Stream every matching bill (report reads, unpaginated)."""

    @abstractmethod
    async def save(self, bill: Bill) -> Bill:
        """Write a mutated bill if its version is still current."""

    @abstractmethod
    async def delete(self, tenant_id: UUID, bill_id: UUID) -> None:
        """
        Raises:
            NotFoundError: unknown bill
            ConflictError: bill has payment history
        """

    @abstractmethod
    async def next_sequence(self, tenant_id: UUID, day: date) -> int:
        """Atomically increment and return the (tenant, day) counter."""

    @abstractmethod
    async def mark_overdue(self, tenant_id: UUID, now: datetime) -> int:
        """Persist OVERDUE on unpaid bills past due; returns rows changed."""

    async def update(
        self,
        tenant_id: UUID,
        bill_id: UUID,
        fields: Mapping[str, Any],
        updated_by: UUID,
        now: Optional[datetime] = None,
    ) -> Bill:
        """
        Partial update of caller-editable fields.

        Recompute-owned fields (bill_number, totals, status, payments) are
        rejected with ValidationError rather than stripped.
        """
        bill = await self.get_by_id(tenant_id, bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        bill.revise(fields, updated_by=updated_by, now=now)
        return await self.save(bill)
