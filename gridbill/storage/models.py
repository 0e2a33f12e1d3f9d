"""
Data models for storage layer.

Defines database entities and data structures.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass(frozen=True)
class Customer:
    """Account holder billed for electricity."""
    customer_id: int
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    email: Optional[str] = None
    contact_no: Optional[str] = None
    address: Optional[str] = None

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)


@dataclass(frozen=True)
class Meter:
    """Meter installed at a customer's premises."""
    meter_id: int
    customer_id: int
    tariff_id: Optional[int]
    meter_type: Optional[str] = None
    installation_date: Optional[date] = None


@dataclass(frozen=True)
class Tariff:
    """Named rate-per-unit used to convert consumption into currency.

    The effective window is stored for reference only; lookups never
    filter on it.
    """
    tariff_id: int
    description: str
    rate_per_unit: float
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None


@dataclass(frozen=True)
class Invoice:
    """Invoice issued once per billing event.

    ``status`` is the single authoritative payment state; it is only ever
    written by the payment ledger.
    """
    invoice_id: int
    customer_id: int
    invoice_date: date
    base_amount: float
    tax: float
    grand_total: float
    status: str
    due_date: Optional[date] = None


@dataclass(frozen=True)
class Payment:
    """Immutable payment applied to an invoice."""
    payment_id: int
    invoice_id: int
    amount_paid: float
    payment_date: datetime
    payment_mode: str
    transaction_ref: str
    units_consumed: Optional[float] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Receipt:
    """Display projection of a recorded payment."""
    payment_id: int
    invoice_id: int
    amount_paid: float
    payment_date: datetime
    payment_mode: str
    transaction_ref: str
    invoice_date: date
    invoice_total: float
    invoice_status: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None


@dataclass(frozen=True)
class Bill:
    """Legacy bill view.

    ``is_paid`` is derived from the linked invoice's status when the row is
    read; it is not stored.
    """
    bill_id: int
    customer_id: int
    issue_date: date
    due_date: Optional[date]
    rate_per_unit: float
    meter_id: Optional[int] = None
    invoice_id: Optional[int] = None
    is_paid: bool = False


@dataclass(frozen=True)
class Feedback:
    """Customer feedback, optionally about a specific invoice."""
    feedback_id: int
    customer_id: int
    text: str
    submitted_at: datetime
    rating: Optional[int] = None
    invoice_id: Optional[int] = None
