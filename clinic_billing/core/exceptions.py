"""Billing domain errors.

Every error carries a stable ``code`` and an HTTP ``status_code`` so the API
layer can render it as an ``ErrorResponse`` without knowing the subclass.
"""

from decimal import Decimal
from typing import Optional


class BillingError(Exception):
    """Base class for all billing ledger errors"""

    code: str = "BILLING_ERROR"
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BillingError):
    """Malformed input; the caller can fix it"""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(BillingError):
    """Referenced bill does not exist in the caller's tenant"""

    code = "RESOURCE_NOT_FOUND"
    status_code = 404


class OverpaymentError(BillingError):
    """Payment amount exceeds the bill's current balance"""

    code = "OVERPAYMENT"
    status_code = 400

    def __init__(self, amount: Decimal, remaining_balance: Decimal):
        super().__init__(
            f"Payment amount {amount} exceeds remaining balance {remaining_balance}"
        )
        self.amount = amount
        self.remaining_balance = remaining_balance


class ConflictError(BillingError):
    """State conflict: delete with payments, frozen bill, or concurrent write"""

    code = "CONFLICT"
    status_code = 409


class IdentifierExhaustionError(BillingError):
    """Daily bill number sequence ran past its configured ceiling"""

    code = "IDENTIFIER_EXHAUSTED"
    status_code = 503
