"""
Invoice status reconciliation.

Derives an invoice's payment status from its grand total and the payments
applied to it.

State machine:
    Pending -> Partially Paid -> Paid

Paid is terminal. Status never moves backward because payments are
append-only and no refund or reversal exists.
"""

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum


class InvoiceStatus(Enum):
    """Payment state of an invoice, stored by value."""
    PENDING = "Pending"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"


_RANK = {
    InvoiceStatus.PENDING: 0,
    InvoiceStatus.PARTIALLY_PAID: 1,
    InvoiceStatus.PAID: 2,
}


def round_money(value: float) -> float:
    """Round a currency amount to 2 decimal places, halves away from zero.

    Goes through ``str`` so that binary float noise (``0.1 + 0.2``) does not
    push a value across a rounding boundary.
    """
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def outstanding_balance(grand_total: float, total_paid: float) -> float:
    """Amount still owed on an invoice, rounded and never negative."""
    return max(0.0, round_money(grand_total - total_paid))


def derive_status(total_paid: float, grand_total: float) -> InvoiceStatus:
    """Derive invoice status from cumulative payments.

    Pure function of its two arguments; both are compared at cent
    precision so a payment that settles the rounded outstanding balance
    marks the invoice Paid.

    Args:
        total_paid: Sum of all payments recorded for the invoice
        grand_total: Invoice grand total (base + tax)

    Returns:
        The status implied by the payment total
    """
    paid = round_money(total_paid)
    if paid >= round_money(grand_total):
        return InvoiceStatus.PAID
    if paid > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.PENDING


def reconcile(current: InvoiceStatus, total_paid: float, grand_total: float) -> InvoiceStatus:
    """Next status for an invoice after a payment.

    Returns the derived status unless that would move the invoice backward,
    in which case the current status is kept.
    """
    derived = derive_status(total_paid, grand_total)
    if _RANK[derived] < _RANK[current]:
        return current
    return derived


def bill_paid_flag(status: InvoiceStatus) -> bool:
    """Legacy boolean paid/unpaid view of an invoice status."""
    return status == InvoiceStatus.PAID
