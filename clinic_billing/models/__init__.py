"""Models Package - Export all models for easy imports"""

from clinic_billing.models.base import BaseModel, TenantScopedMixin
from clinic_billing.models.enums import *
from clinic_billing.models.billing import (
    BillRecord,
    BillItemRecord,
    BillPaymentRecord,
    BillNumberSequence,
)


__all__ = [
    # Base classes
    "BaseModel",
    "TenantScopedMixin",

    # Enums
    "BillStatus",
    "PaymentMethod",
    "PeriodGranularity",
    "BillSortField",

    # Billing
    "BillRecord",
    "BillItemRecord",
    "BillPaymentRecord",
    "BillNumberSequence",
]
