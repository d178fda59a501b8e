"""Bill endpoints - bills, payments and billing reports"""

from datetime import datetime
from typing import Any, Optional
from fastapi import APIRouter, Depends, Query, status
from uuid import UUID

from clinic_billing.api import deps
from clinic_billing.config import settings
from clinic_billing.domain.filters import BillFilter, BillSort, CollectionFilter
from clinic_billing.models.enums import BillStatus, PaymentMethod, PeriodGranularity
from clinic_billing.repositories.base import BillRepository
from clinic_billing.schemas.auth import CallerIdentity
from clinic_billing.schemas.billing import (
    BillCreate, BillResponse, BillUpdate, PaymentCreate, PaymentResponse,
)
from clinic_billing.schemas.responses import PaginatedResponse, PaginationMeta, SuccessResponse
from clinic_billing.services.billing_service import BillingService
from clinic_billing.services.payment_service import PaymentService
from clinic_billing.services.report_service import ReportService

router = APIRouter()


def _paginated(page) -> PaginatedResponse[BillResponse]:
    return PaginatedResponse[BillResponse](
        data=[BillResponse.model_validate(bill) for bill in page.items],
        meta=PaginationMeta(
            page=page.page,
            page_size=page.page_size,
            total=page.total,
            total_pages=page.total_pages,
        ),
    )


@router.get("", response_model=PaginatedResponse[BillResponse])
async def list_bills(
    status_filter: Optional[BillStatus] = Query(None, alias="status"),
    patient_id: Optional[UUID] = None,
    doctor_id: Optional[UUID] = None,
    visit_id: Optional[UUID] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    sort: Optional[str] = Query(None, description="Sort field, prefix with '-' for descending"),
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    """List bills with filters and pagination. Newest first by default."""
    bill_filter = BillFilter(
        tenant_id=identity.tenant_id,
        status=status_filter,
        patient_id=patient_id,
        doctor_id=doctor_id,
        visit_id=visit_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    result = await BillingService.list_bills(
        repo, bill_filter, page, page_size, BillSort.parse(sort)
    )
    return _paginated(result)


@router.post("", response_model=SuccessResponse[BillResponse], status_code=status.HTTP_201_CREATED)
async def create_bill(
    bill_in: BillCreate,
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    """Create a bill. Totals, status and bill number are computed."""
    bill = await BillingService.create_bill(
        repo, identity.tenant_id, bill_in, created_by=identity.user_id
    )
    return SuccessResponse(
        data=BillResponse.model_validate(bill),
        message="Bill created successfully",
    )


@router.get("/stats", response_model=SuccessResponse)
async def get_billing_stats(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    status_filter: Optional[BillStatus] = Query(None, alias="status"),
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    """Billing totals, counts by status, and month-over-month growth."""
    bill_filter = BillFilter(
        tenant_id=identity.tenant_id,
        start_date=start_date,
        end_date=end_date,
        status=status_filter,
    )
    stats = await ReportService.get_dashboard_stats(repo, bill_filter)
    return SuccessResponse(data=stats)


@router.get("/reports/summary", response_model=SuccessResponse)
async def get_billing_summary(
    group_by: PeriodGranularity = PeriodGranularity.MONTH,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    """Bills grouped by day, week, month or year of bill date."""
    bill_filter = BillFilter(
        tenant_id=identity.tenant_id, start_date=start_date, end_date=end_date
    )
    rows = await ReportService.get_period_summary(repo, bill_filter, group_by)
    return SuccessResponse(data=rows)


@router.get("/reports/outstanding", response_model=PaginatedResponse[BillResponse])
async def get_outstanding_bills(
    overdue: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    """Bills with a balance, soonest due first. ``overdue=true`` keeps past-due only."""
    result = await ReportService.get_outstanding(
        repo,
        BillFilter(tenant_id=identity.tenant_id),
        overdue_only=overdue,
        page=page,
        page_size=page_size,
    )
    return _paginated(result)


@router.get("/reports/collections", response_model=SuccessResponse)
async def get_collection_report(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    payment_method: Optional[PaymentMethod] = None,
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    """Collected amounts per payment date and method."""
    rows = await ReportService.get_collections(
        repo,
        CollectionFilter(
            tenant_id=identity.tenant_id,
            start_date=start_date,
            end_date=end_date,
            payment_method=payment_method,
        ),
    )
    return SuccessResponse(data=rows)


@router.get("/{bill_id}", response_model=SuccessResponse[BillResponse])
async def get_bill(
    bill_id: UUID,
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    bill = await BillingService.get_bill(repo, identity.tenant_id, bill_id)
    return SuccessResponse(data=BillResponse.model_validate(bill))


@router.patch("/{bill_id}", response_model=SuccessResponse[BillResponse])
async def update_bill(
    bill_id: UUID,
    bill_update: BillUpdate,
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    """Update items, tax, discount, due date or notes. Computed fields are rejected."""
    bill = await BillingService.update_bill(
        repo,
        identity.tenant_id,
        bill_id,
        bill_update.model_dump(exclude_unset=True),
        updated_by=identity.user_id,
    )
    return SuccessResponse(
        data=BillResponse.model_validate(bill),
        message="Bill updated successfully",
    )


@router.delete("/{bill_id}", response_model=SuccessResponse)
async def delete_bill(
    bill_id: UUID,
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    """Delete a bill. Refused once any payment was recorded."""
    await BillingService.delete_bill(repo, identity.tenant_id, bill_id)
    return SuccessResponse(message="Bill deleted successfully")


@router.post("/{bill_id}/cancel", response_model=SuccessResponse[BillResponse])
async def cancel_bill(
    bill_id: UUID,
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    bill = await BillingService.cancel_bill(
        repo, identity.tenant_id, bill_id, cancelled_by=identity.user_id
    )
    return SuccessResponse(
        data=BillResponse.model_validate(bill),
        message="Bill cancelled",
    )


@router.post("/{bill_id}/payments", response_model=SuccessResponse[BillResponse])
async def add_payment(
    bill_id: UUID,
    payment_in: PaymentCreate,
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    """Record a payment. Amounts above the remaining balance are refused."""
    bill = await PaymentService.apply_payment(
        repo,
        identity.tenant_id,
        bill_id,
        amount=payment_in.amount,
        method=payment_in.method,
        applied_by=identity.user_id,
        transaction_ref=payment_in.transaction_ref,
        notes=payment_in.notes,
    )
    return SuccessResponse(
        data=BillResponse.model_validate(bill),
        message="Payment added successfully",
    )


@router.get("/{bill_id}/payments", response_model=SuccessResponse)
async def get_bill_payments(
    bill_id: UUID,
    identity: CallerIdentity = Depends(deps.get_current_identity),
    repo: BillRepository = Depends(deps.get_bill_repository),
) -> Any:
    payments = await PaymentService.list_payments(repo, identity.tenant_id, bill_id)
    return SuccessResponse(data=[PaymentResponse.model_validate(p) for p in payments])
