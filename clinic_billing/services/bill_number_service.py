"""Bill Number Service - sequential daily bill numbers"""

from datetime import date
from typing import Optional
from uuid import UUID

from clinic_billing.config import settings
from clinic_billing.core.exceptions import IdentifierExhaustionError
from clinic_billing.core.logging import get_logger
from clinic_billing.repositories.base import BillRepository
from clinic_billing.utils.time import get_local_date

logger = get_logger(__name__)

MIN_SEQUENCE_DIGITS = 3


class BillNumberService:
    """
    Mints ``BILL-YYYYMMDD-NNN`` numbers.

    The sequence comes from the repository's atomic (tenant, day) counter, so
    concurrent generations never hand out the same value. Past 999 the
    suffix widens (``-1000``) instead of wrapping.
    """

    @staticmethod
    def format_bill_number(day: date, sequence: int, prefix: Optional[str] = None) -> str:
        prefix = prefix or settings.BILL_NUMBER_PREFIX
        return f"{prefix}-{day:%Y%m%d}-{sequence:0{MIN_SEQUENCE_DIGITS}d}"

    @staticmethod
    async def generate(
        repo: BillRepository,
        tenant_id: UUID,
        day: Optional[date] = None,
    ) -> str:
        """
        Reserve the next bill number for ``tenant_id`` on ``day``.

        Args:
            repo: Bill repository providing the counter
            tenant_id: Tenant scope of the sequence
            day: Calendar day; defaults to today in BILLING_TIMEZONE

        Raises:
            IdentifierExhaustionError: if the day's counter passed BILL_SEQUENCE_MAX
        """
        day = day or get_local_date(settings.BILLING_TIMEZONE)
        sequence = await repo.next_sequence(tenant_id, day)
        if sequence > settings.BILL_SEQUENCE_MAX:
            logger.error(
                "Bill number sequence exhausted",
                extra={"tenant_id": tenant_id, "day": day.isoformat(), "sequence": sequence},
            )
            raise IdentifierExhaustionError(
                f"Bill number sequence exhausted for {day.isoformat()} "
                f"(limit {settings.BILL_SEQUENCE_MAX})"
            )
        return BillNumberService.format_bill_number(day, sequence)
