"""Report Service - billing statistics, period summaries, outstanding bills, collections.

All reads. Bills are streamed from the repository and aggregated in one
pass; a record that cannot be aggregated is logged and skipped so one bad
row never takes down a whole report.
"""

from collections import Counter
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from clinic_billing.config import settings
from clinic_billing.core.exceptions import BillingError
from clinic_billing.core.logging import get_logger
from clinic_billing.domain.bill import Bill, ZERO
from clinic_billing.domain.filters import (
    BillFilter, BillSort, CollectionFilter, Page, check_pagination,
)
from clinic_billing.models.enums import (
    BillSortField, BillStatus, PaymentMethod, PeriodGranularity,
)
from clinic_billing.repositories.base import BillRepository
from clinic_billing.schemas.billing import (
    BillingStats, CollectionRow, DashboardStats, GrowthStats, PeriodSummaryRow,
    status_counts,
)
from clinic_billing.utils.time import get_local_date, get_utc_now

logger = get_logger(__name__)

# What a corrupt stored bill can raise while being aggregated
_RECORD_ERRORS = (ArithmeticError, TypeError, ValueError, AttributeError, BillingError)


def growth_percent(current, previous) -> float:
    """(current - previous) / previous * 100, defined as 0 when previous is 0."""
    current = Decimal(str(current))
    previous = Decimal(str(previous))
    if previous == 0:
        return 0.0
    change = (current - previous) / previous * 100
    return float(change.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def period_start(moment: datetime, granularity: PeriodGranularity) -> date:
    """Truncate to the first day of the bucket (ISO weeks start Monday)."""
    day = moment.date()
    if granularity == PeriodGranularity.DAY:
        return day
    if granularity == PeriodGranularity.WEEK:
        return day - timedelta(days=day.weekday())
    if granularity == PeriodGranularity.MONTH:
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def period_key(start: date, granularity: PeriodGranularity) -> str:
    if granularity == PeriodGranularity.DAY:
        return start.isoformat()
    if granularity == PeriodGranularity.WEEK:
        iso_year, iso_week, _ = start.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if granularity == PeriodGranularity.MONTH:
        return f"{start:%Y-%m}"
    return f"{start:%Y}"


class _Totals:
    """Running sums for one group of bills"""

    def __init__(self):
        self.bills = 0
        self.amount = ZERO
        self.paid = ZERO
        self.balance = ZERO

    def add(self, bill: Bill) -> None:
        # Sum into locals first so a bad value leaves the group untouched
        amount = self.amount + bill.total
        paid = self.paid + bill.paid_amount
        balance = self.balance + bill.balance
        self.amount, self.paid, self.balance = amount, paid, balance
        self.bills += 1


def _skip(bill_id, exc: Exception, report: str) -> None:
    logger.warning(
        "Skipping malformed bill in report",
        extra={"bill_id": str(bill_id), "report": report, "error": str(exc)},
    )


class ReportService:
    """Read-side aggregation over bills"""

    @staticmethod
    async def get_billing_stats(
        repo: BillRepository,
        bill_filter: BillFilter,
        now: Optional[datetime] = None,
    ) -> BillingStats:
        """Totals and per-status counts; status is derived as of ``now``."""
        now = now or get_utc_now()
        totals = _Totals()
        counts: Counter = Counter({status: 0 for status in BillStatus})

        # Status is filtered after re-deriving it, not on the stored column
        scan_filter = bill_filter.model_copy(update={"status": None})
        async for bill in repo.scan(scan_filter):
            try:
                status = bill.recompute(now).status
                if bill_filter.status is not None and status != bill_filter.status:
                    continue
                totals.add(bill)
            except _RECORD_ERRORS as exc:
                _skip(bill.id, exc, "stats")
                continue
            counts[status] += 1

        return BillingStats(
            total_bills=totals.bills,
            total_amount=totals.amount,
            total_paid=totals.paid,
            total_balance=totals.balance,
            counts_by_status=status_counts(counts),
        )

    @staticmethod
    async def get_dashboard_stats(
        repo: BillRepository,
        bill_filter: BillFilter,
        now: Optional[datetime] = None,
    ) -> DashboardStats:
        """Filtered stats plus this-month vs last-month growth for the tenant."""
        now = now or get_utc_now()
        this_month_start = datetime(now.year, now.month, 1)
        last_month_start = (this_month_start - timedelta(days=1)).replace(day=1)
        last_month_end = this_month_start - timedelta(microseconds=1)

        stats = await ReportService.get_billing_stats(repo, bill_filter, now)
        this_month = await ReportService.get_billing_stats(
            repo,
            BillFilter(tenant_id=bill_filter.tenant_id, start_date=this_month_start),
            now,
        )
        last_month = await ReportService.get_billing_stats(
            repo,
            BillFilter(
                tenant_id=bill_filter.tenant_id,
                start_date=last_month_start,
                end_date=last_month_end,
            ),
            now,
        )
        return DashboardStats(
            stats=stats,
            this_month=this_month,
            last_month=last_month,
            growth=GrowthStats(
                revenue=growth_percent(this_month.total_amount, last_month.total_amount),
                bills=growth_percent(this_month.total_bills, last_month.total_bills),
            ),
        )

    @staticmethod
    async def get_period_summary(
        repo: BillRepository,
        bill_filter: BillFilter,
        granularity: PeriodGranularity = PeriodGranularity.MONTH,
        now: Optional[datetime] = None,
    ) -> List[PeriodSummaryRow]:
        """Bills bucketed by truncated bill_date, oldest period first."""
        now = now or get_utc_now()
        groups: Dict[date, _Totals] = {}
        scan_filter = bill_filter.model_copy(update={"status": None})

        async for bill in repo.scan(scan_filter):
            try:
                status = bill.recompute(now).status
                if bill_filter.status is not None and status != bill_filter.status:
                    continue
                start = period_start(bill.bill_date, granularity)
                groups.setdefault(start, _Totals()).add(bill)
            except _RECORD_ERRORS as exc:
                _skip(bill.id, exc, "period_summary")

        rows = []
        for start in sorted(groups):
            totals = groups[start]
            average = (totals.amount / totals.bills).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
            rows.append(
                PeriodSummaryRow(
                    period_key=period_key(start, granularity),
                    period_start=start,
                    total_bills=totals.bills,
                    total_amount=totals.amount,
                    total_paid=totals.paid,
                    total_balance=totals.balance,
                    avg_bill_amount=average,
                )
            )
        return rows

    @staticmethod
    async def get_outstanding(
        repo: BillRepository,
        bill_filter: BillFilter,
        overdue_only: bool = False,
        page: int = 1,
        page_size: int = settings.DEFAULT_PAGE_SIZE,
        now: Optional[datetime] = None,
    ) -> Page[Bill]:
        """Bills still owing money, soonest due first."""
        check_pagination(page, page_size, settings.MAX_PAGE_SIZE)
        now = now or get_utc_now()
        update = {"outstanding_only": True}
        if overdue_only:
            update["due_before"] = now
        outstanding = await repo.find(
            bill_filter.model_copy(update=update),
            page,
            page_size,
            BillSort(field=BillSortField.DUE_DATE, descending=False),
        )
        # Stored status lags the clock; present each row as of now
        for bill in outstanding.items:
            bill.recompute(now)
        return outstanding

    @staticmethod
    async def get_collections(
        repo: BillRepository,
        collection_filter: CollectionFilter,
    ) -> List[CollectionRow]:
        """
        Payments grouped by (payment date, method), dates ascending.

        Dates are calendar days in BILLING_TIMEZONE; methods within a day
        keep the order they were first seen. start_date and end_date select
        whole days in that same timezone, so a bucket is never cut short.
        """
        f = collection_filter
        tz_name = settings.BILLING_TIMEZONE
        first_day = get_local_date(tz_name, f.start_date) if f.start_date else None
        last_day = get_local_date(tz_name, f.end_date) if f.end_date else None
        groups: Dict[Tuple[date, PaymentMethod], List] = {}

        async for bill in repo.scan(BillFilter(tenant_id=f.tenant_id)):
            for payment in bill.payments:
                try:
                    if f.payment_method is not None and payment.method != f.payment_method:
                        continue
                    day = get_local_date(tz_name, payment.paid_at)
                    if first_day is not None and day < first_day:
                        continue
                    if last_day is not None and day > last_day:
                        continue
                    group = groups.setdefault((day, payment.method), [ZERO, 0])
                    group[0] = group[0] + payment.amount
                    group[1] += 1
                except _RECORD_ERRORS as exc:
                    _skip(bill.id, exc, "collections")

        ordered = sorted(groups.items(), key=lambda entry: entry[0][0])
        return [
            CollectionRow(date=day, payment_method=method, total_amount=amount, count=count)
            for (day, method), (amount, count) in ordered
        ]
