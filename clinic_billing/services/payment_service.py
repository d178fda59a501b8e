"""Payment Service - applies payments to bills under optimistic concurrency"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from clinic_billing.config import settings
from clinic_billing.core.exceptions import ConflictError, NotFoundError
from clinic_billing.core.logging import get_logger
from clinic_billing.domain.bill import Bill, Payment
from clinic_billing.models.enums import PaymentMethod
from clinic_billing.repositories.base import BillRepository

logger = get_logger(__name__)


class PaymentService:

    @staticmethod
    async def apply_payment(
        repo: BillRepository,
        tenant_id: UUID,
        bill_id: UUID,
        amount: Decimal,
        method: PaymentMethod,
        applied_by: UUID,
        transaction_ref: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        max_retries: Optional[int] = None,
    ) -> Bill:
        """
        Apply a payment to a bill.

        Load, validate, append, recompute and save form one compare-and-swap
        on the bill version. A concurrent write makes ``save`` fail; the
        attempt is then replayed against fresh state so the balance check
        never runs against a stale balance.

        Raises:
            NotFoundError: bill does not exist in tenant
            ValidationError: amount <= 0
            OverpaymentError: amount exceeds the current balance
            ConflictError: bill cancelled, or retries exhausted
        """
        retries = settings.PAYMENT_CONFLICT_RETRIES if max_retries is None else max_retries

        for attempt in range(retries + 1):
            bill = await repo.get_by_id(tenant_id, bill_id)
            if bill is None:
                raise NotFoundError(f"Bill {bill_id} not found")

            payment = bill.apply_payment(
                amount=amount,
                method=method,
                applied_by=applied_by,
                transaction_ref=transaction_ref,
                notes=notes,
                now=now,
            )
            try:
                saved = await repo.save(bill)
            except ConflictError:
                if attempt >= retries:
                    logger.warning(
                        "Payment abandoned after concurrent writes",
                        extra={"tenant_id": tenant_id, "bill_id": str(bill_id), "attempts": attempt + 1},
                    )
                    raise
                logger.info(
                    "Retrying payment after concurrent write",
                    extra={"tenant_id": tenant_id, "bill_id": str(bill_id), "attempt": attempt + 1},
                )
                continue

            logger.info(
                "Payment applied",
                extra={
                    "tenant_id": tenant_id,
                    "bill_id": str(bill_id),
                    "payment_id": str(payment.id),
                    "amount": str(payment.amount),
                    "method": payment.method.value,
                    "status": saved.status.value,
                },
            )
            return saved

        # Loop always returns or raises
        raise ConflictError(f"Could not apply payment to bill {bill_id}")

    @staticmethod
    async def list_payments(
        repo: BillRepository,
        tenant_id: UUID,
        bill_id: UUID,
    ) -> List[Payment]:
        bill = await repo.get_by_id(tenant_id, bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        return list(bill.payments)
