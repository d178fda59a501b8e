"""Billing Service - bill lifecycle (create, read, list, update, delete, cancel)"""

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional
from uuid import UUID

from clinic_billing.config import settings
from clinic_billing.core.exceptions import NotFoundError
from clinic_billing.core.logging import get_logger
from clinic_billing.domain.bill import Bill
from clinic_billing.domain.filters import BillFilter, BillSort, Page, check_pagination
from clinic_billing.repositories.base import BillRepository
from clinic_billing.schemas.billing import BillCreate
from clinic_billing.services.bill_number_service import BillNumberService
from clinic_billing.utils.time import get_local_date, get_utc_now, to_naive_utc

logger = get_logger(__name__)


class BillingService:
    """Service layer for Bill operations"""

    @staticmethod
    async def create_bill(
        repo: BillRepository,
        tenant_id: UUID,
        data: BillCreate,
        created_by: UUID,
        now: Optional[datetime] = None,
    ) -> Bill:
        """
        Validate, number and persist a new bill.

        The bill number is minted only after the draft validates, so a
        rejected request never consumes a sequence value.
        """
        now = now or get_utc_now()
        bill_date = to_naive_utc(data.bill_date) or now
        due_date = to_naive_utc(data.due_date) or bill_date + timedelta(
            days=settings.DEFAULT_DUE_DAYS
        )

        bill = Bill.create(
            tenant_id=tenant_id,
            bill_number="",
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            visit_id=data.visit_id,
            bill_date=bill_date,
            due_date=due_date,
            items=data.items,
            tax=data.tax,
            discount=data.discount,
            notes=data.notes,
            created_by=created_by,
            now=now,
        )
        bill.bill_number = await BillNumberService.generate(
            repo, tenant_id, get_local_date(settings.BILLING_TIMEZONE, now)
        )
        bill = await repo.create(bill)

        logger.info(
            "Bill created",
            extra={
                "tenant_id": tenant_id,
                "bill_id": str(bill.id),
                "bill_number": bill.bill_number,
                "total": str(bill.total),
            },
        )
        return bill

    @staticmethod
    async def get_bill(
        repo: BillRepository,
        tenant_id: UUID,
        bill_id: UUID,
        now: Optional[datetime] = None,
    ) -> Bill:
        bill = await repo.get_by_id(tenant_id, bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        # Status is time-dependent; present it as of now
        return bill.recompute(now)

    @staticmethod
    async def list_bills(
        repo: BillRepository,
        bill_filter: BillFilter,
        page: int = 1,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        sort: Optional[BillSort] = None,
        now: Optional[datetime] = None,
    ) -> Page[Bill]:
        check_pagination(page, page_size, settings.MAX_PAGE_SIZE)
        await BillingService.refresh_overdue(repo, bill_filter.tenant_id, now)
        return await repo.find(bill_filter, page, page_size, sort or BillSort())

    @staticmethod
    async def update_bill(
        repo: BillRepository,
        tenant_id: UUID,
        bill_id: UUID,
        changes: Mapping[str, Any],
        updated_by: UUID,
        now: Optional[datetime] = None,
    ) -> Bill:
        bill = await repo.update(tenant_id, bill_id, changes, updated_by=updated_by, now=now)
        logger.info(
            "Bill updated",
            extra={
                "tenant_id": tenant_id,
                "bill_id": str(bill_id),
                "fields": sorted(changes),
            },
        )
        return bill

    @staticmethod
    async def delete_bill(repo: BillRepository, tenant_id: UUID, bill_id: UUID) -> None:
        await repo.delete(tenant_id, bill_id)
        logger.info("Bill deleted", extra={"tenant_id": tenant_id, "bill_id": str(bill_id)})

    @staticmethod
    async def cancel_bill(
        repo: BillRepository,
        tenant_id: UUID,
        bill_id: UUID,
        cancelled_by: UUID,
        now: Optional[datetime] = None,
    ) -> Bill:
        """Terminal administrative cancellation."""
        bill = await repo.get_by_id(tenant_id, bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        bill.cancel(cancelled_by, now=now)
        bill = await repo.save(bill)
        logger.info(
            "Bill cancelled",
            extra={"tenant_id": tenant_id, "bill_id": str(bill_id), "bill_number": bill.bill_number},
        )
        return bill

    @staticmethod
    async def refresh_overdue(
        repo: BillRepository,
        tenant_id: UUID,
        now: Optional[datetime] = None,
    ) -> int:
        """Persist OVERDUE for unpaid bills that passed their due date."""
        changed = await repo.mark_overdue(tenant_id, now or get_utc_now())
        if changed:
            logger.info("Bills marked overdue", extra={"tenant_id": tenant_id, "count": changed})
        return changed
