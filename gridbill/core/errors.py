"""
Billing error taxonomy.

Every failure surfaced to a caller is one of these. Each carries a stable
``code`` so the HTTP and CLI layers can report it without string matching.
"""


class BillingError(Exception):
    """Base class for all billing failures."""
    code = "BillingError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(BillingError):
    """Non-numeric or non-positive units/amount, or a missing required field."""
    code = "InvalidInput"


class InvalidAmount(InvalidInput):
    """Payment amount is not a positive number."""
    code = "InvalidAmount"


class NotFound(BillingError):
    """Tariff, invoice, or customer identifier not present."""
    code = "NotFound"


class DuplicateReference(BillingError):
    """Transaction reference already used by another payment."""
    code = "DuplicateReference"


class AmountExceedsOutstanding(BillingError):
    """Payment would push the invoice past its grand total."""
    code = "AmountExceedsOutstanding"

    def __init__(self, message: str, outstanding: float):
        super().__init__(message)
        self.outstanding = outstanding


class ReferentialIntegrityViolation(BillingError):
    """Invoice and customer do not link up."""
    code = "ReferentialIntegrityViolation"


class Forbidden(BillingError):
    """Invoice does not belong to the authenticated customer."""
    code = "Forbidden"
