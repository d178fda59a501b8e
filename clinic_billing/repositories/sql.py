"""Async SQLAlchemy bill store"""

from datetime import date, datetime
from typing import AsyncIterator, List, Optional
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from clinic_billing.core.exceptions import ConflictError, NotFoundError
from clinic_billing.core.logging import get_logger
from clinic_billing.domain.bill import Bill
from clinic_billing.domain.filters import BillFilter, BillSort, Page
from clinic_billing.models.billing import (
    BillItemRecord,
    BillNumberSequence,
    BillPaymentRecord,
    BillRecord,
)
from clinic_billing.models.enums import BillStatus
from clinic_billing.repositories.base import BillRepository

logger = get_logger(__name__)


def _item_records(bill: Bill) -> List[BillItemRecord]:
    return [
        BillItemRecord(position=index, **item.model_dump())
        for index, item in enumerate(bill.items)
    ]


def _payment_record(position: int, payment) -> BillPaymentRecord:
    return BillPaymentRecord(position=position, **payment.model_dump())


class SqlBillRepository(BillRepository):
    """
    Bill store over one AsyncSession.

    ``save`` locks the row (SELECT ... FOR UPDATE where supported), checks
    the version the caller read, and lets SQLAlchemy's version_id_col guard
    the UPDATE itself.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _to_domain(record: BillRecord) -> Bill:
        return Bill.model_validate(record)

    @staticmethod
    def _conditions(bill_filter: BillFilter) -> list:
        f = bill_filter
        conditions = [BillRecord.tenant_id == f.tenant_id]
        if f.status is not None:
            conditions.append(BillRecord.status == f.status)
        if f.patient_id is not None:
            conditions.append(BillRecord.patient_id == f.patient_id)
        if f.doctor_id is not None:
            conditions.append(BillRecord.doctor_id == f.doctor_id)
        if f.visit_id is not None:
            conditions.append(BillRecord.visit_id == f.visit_id)
        if f.start_date is not None:
            conditions.append(BillRecord.bill_date >= f.start_date)
        if f.end_date is not None:
            conditions.append(BillRecord.bill_date <= f.end_date)
        if f.due_before is not None:
            conditions.append(BillRecord.due_date < f.due_before)
        if f.outstanding_only:
            conditions.append(BillRecord.balance > 0)
            conditions.append(BillRecord.status != BillStatus.CANCELLED)
        if f.search:
            pattern = f"%{f.search}%"
            conditions.append(
                or_(BillRecord.bill_number.ilike(pattern), BillRecord.notes.ilike(pattern))
            )
        return conditions

    async def _load(self, tenant_id: UUID, bill_id: UUID, for_update: bool = False) -> Optional[BillRecord]:
        stmt = select(BillRecord).where(
            BillRecord.id == bill_id,
            BillRecord.tenant_id == tenant_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def create(self, bill: Bill) -> Bill:
        record = BillRecord(
            tenant_id=bill.tenant_id,
            bill_number=bill.bill_number,
            patient_id=bill.patient_id,
            doctor_id=bill.doctor_id,
            visit_id=bill.visit_id,
            bill_date=bill.bill_date,
            due_date=bill.due_date,
            subtotal=bill.subtotal,
            tax=bill.tax,
            discount=bill.discount,
            total=bill.total,
            paid_amount=bill.paid_amount,
            balance=bill.balance,
            status=bill.status,
            notes=bill.notes,
            created_by=bill.created_by,
            updated_by=bill.updated_by,
            items=_item_records(bill),
            payments=[_payment_record(i, p) for i, p in enumerate(bill.payments)],
        )
        if bill.id is not None:
            record.id = bill.id
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(f"Bill number {bill.bill_number} already exists")
        # Reload so items and payments come back eagerly loaded
        record = await self._load(bill.tenant_id, record.id)
        return self._to_domain(record)

    async def get_by_id(self, tenant_id: UUID, bill_id: UUID) -> Optional[Bill]:
        record = await self._load(tenant_id, bill_id)
        return self._to_domain(record) if record else None

    async def find(
        self,
        bill_filter: BillFilter,
        page: int,
        page_size: int,
        sort: BillSort,
    ) -> Page[Bill]:
        conditions = self._conditions(bill_filter)
        total = await self.db.scalar(
            select(func.count(BillRecord.id)).where(*conditions)
        )

        column = getattr(BillRecord, sort.field.value)
        order = column.desc() if sort.descending else column.asc()
        stmt = (
            select(BillRecord)
            .where(*conditions)
            .order_by(order, BillRecord.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.db.execute(stmt)
        return Page[Bill](
            items=[self._to_domain(record) for record in result.scalars().all()],
            total=total or 0,
            page=page,
            page_size=page_size,
        )

    async def scan(self, bill_filter: BillFilter) -> AsyncIterator[Bill]:
        stmt = (
            select(BillRecord)
            .where(*self._conditions(bill_filter))
            .order_by(BillRecord.bill_date, BillRecord.id)
        )
        result = await self.db.execute(stmt)
        for record in result.scalars().all():
            try:
                bill = self._to_domain(record)
            except PydanticValidationError:
                logger.warning(
                    "Skipping malformed bill record",
                    extra={"bill_id": str(record.id), "tenant_id": bill_filter.tenant_id},
                    exc_info=True,
                )
                continue
            yield bill

    async def save(self, bill: Bill) -> Bill:
        record = await self._load(bill.tenant_id, bill.id, for_update=True)
        if record is None:
            raise NotFoundError(f"Bill {bill.id} not found")
        if record.version != bill.version:
            await self.db.rollback()
            raise ConflictError(
                f"Bill {bill.bill_number} was modified concurrently; reload and retry"
            )

        record.due_date = bill.due_date
        record.tax = bill.tax
        record.discount = bill.discount
        record.subtotal = bill.subtotal
        record.total = bill.total
        record.paid_amount = bill.paid_amount
        record.balance = bill.balance
        record.status = bill.status
        record.notes = bill.notes
        record.updated_by = bill.updated_by

        stored_items = [
            (i.description, i.quantity, i.unit_rate, i.amount) for i in record.items
        ]
        if stored_items != [
            (i.description, i.quantity, i.unit_rate, i.amount) for i in bill.items
        ]:
            record.items = _item_records(bill)

        # Ledger is append-only: only payments the row has not seen are added
        known = {payment.id for payment in record.payments}
        for position, payment in enumerate(bill.payments):
            if payment.id not in known:
                record.payments.append(_payment_record(position, payment))

        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            raise ConflictError(
                f"Bill {bill.bill_number} was modified concurrently; reload and retry"
            )
        record = await self._load(bill.tenant_id, record.id)
        return self._to_domain(record)

    async def delete(self, tenant_id: UUID, bill_id: UUID) -> None:
        record = await self._load(tenant_id, bill_id, for_update=True)
        if record is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        if record.paid_amount > 0:
            await self.db.rollback()
            raise ConflictError("Cannot delete a bill with payments")
        await self.db.delete(record)
        await self.db.commit()

    async def next_sequence(self, tenant_id: UUID, day: date) -> int:
        # Upsert-and-return keeps read and increment in one statement; the
        # counter row stays locked until the surrounding transaction ends.
        dialect = self.db.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = (
            insert(BillNumberSequence)
            .values(tenant_id=tenant_id, sequence_date=day, last_value=1)
            .on_conflict_do_update(
                index_elements=[BillNumberSequence.tenant_id, BillNumberSequence.sequence_date],
                set_={"last_value": BillNumberSequence.last_value + 1},
            )
            .returning(BillNumberSequence.last_value)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def mark_overdue(self, tenant_id: UUID, now: datetime) -> int:
        stmt = (
            update(BillRecord)
            .where(
                BillRecord.tenant_id == tenant_id,
                BillRecord.status == BillStatus.PENDING,
                BillRecord.paid_amount == 0,
                BillRecord.due_date < now,
            )
            .values(
                status=BillStatus.OVERDUE,
                version=BillRecord.version + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount or 0
