"""Centralized Enum Definitions"""

import enum


# Bills
class BillStatus(str, enum.Enum):
    """Bill lifecycle status (derived, except CANCELLED)"""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Payments
class PaymentMethod(str, enum.Enum):
    """Accepted payment methods"""
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    CHEQUE = "cheque"


# Reporting
class PeriodGranularity(str, enum.Enum):
    """Bucket sizes for period summaries"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class BillSortField(str, enum.Enum):
    """Sortable bill columns"""
    CREATED_AT = "created_at"
    BILL_DATE = "bill_date"
    DUE_DATE = "due_date"
    TOTAL = "total"
    BALANCE = "balance"
    BILL_NUMBER = "bill_number"
