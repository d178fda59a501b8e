"""Billing domain objects"""

from clinic_billing.domain.bill import (
    Bill,
    BillLineItem,
    Payment,
    derive_status,
    to_money,
)
from clinic_billing.domain.filters import BillFilter, BillSort, CollectionFilter, Page

__all__ = [
    "Bill",
    "BillLineItem",
    "Payment",
    "derive_status",
    "to_money",
    "BillFilter",
    "BillSort",
    "CollectionFilter",
    "Page",
]
