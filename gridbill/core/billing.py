"""
Invoice issuance and invoice read models.

The administrative path computes invoice amounts from units consumed and a
tariff, then creates a new Pending invoice or updates the due date of an
existing one. It never records a payment and never touches invoice status.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Union

from .calculator import InvoiceAmounts, calculate_invoice, parse_units
from .errors import InvalidInput, NotFound, ReferentialIntegrityViolation
from .reconciler import outstanding_balance
from .tariffs import lookup_tariff
from gridbill.storage.models import Invoice, Payment
from gridbill.storage.repository import (
    BillingRepository,
    fetch_customer,
    fetch_invoice,
    first_meter_for_customer,
    insert_bill,
    insert_invoice,
    latest_bill_id,
    update_bill_due_date,
    update_invoice_due_date,
)

logger = logging.getLogger(__name__)

DEFAULT_DUE_DAYS = 20


@dataclass(frozen=True)
class CalculatedCharges:
    """Amounts shown to the administrator after issuing an invoice."""
    units_consumed: float
    tariff_id: int
    tariff_description: str
    unit_rate: float
    base_amount: float
    tax: float
    grand_total: float

    @classmethod
    def from_amounts(cls, amounts: InvoiceAmounts, tariff_id: int, description: str) -> "CalculatedCharges":
        return cls(
            units_consumed=amounts.units_consumed,
            tariff_id=tariff_id,
            tariff_description=description or "Unknown",
            unit_rate=amounts.rate_per_unit,
            base_amount=amounts.base_amount,
            tax=amounts.tax,
            grand_total=amounts.grand_total
        )


@dataclass(frozen=True)
class IssuedInvoice:
    """Result of the administrative invoice path."""
    invoice: Invoice
    calculated: CalculatedCharges
    created: bool


@dataclass(frozen=True)
class InvoiceSummary:
    """Invoice together with what has been paid and what is still owed."""
    invoice: Invoice
    amount_paid: float
    outstanding: float


@dataclass(frozen=True)
class InvoiceDetail:
    """Invoice summary plus its payment history (newest first)."""
    summary: InvoiceSummary
    payments: List[Payment]


def parse_due_date(value: Union[str, date, None]) -> Optional[date]:
    """Parse an optional due date.

    Accepts a ``date``/``datetime`` or an ISO string starting with
    ``YYYY-MM-DD``; empty values mean "use the default".

    Raises:
        InvalidInput: If the string is not a valid ISO date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise InvalidInput(f"Invalid due date: {value}")


def issue_invoice(
    repository: BillingRepository,
    customer_id: int,
    units_consumed: Union[int, float, str],
    tariff_id: int,
    invoice_id: Optional[int] = None,
    create_new_invoice: bool = False,
    due_date: Union[str, date, None] = None,
    default_due_days: int = DEFAULT_DUE_DAYS,
    today: Optional[date] = None
) -> IssuedInvoice:
    """Create or update an invoice from consumption and tariff.

    A new invoice is created when ``create_new_invoice`` is set or no
    ``invoice_id`` is given; it starts Pending with no payments. For an
    existing invoice only the due date changes; its stored amounts are
    kept.

    Args:
        repository: Repository to write to
        customer_id: Customer being billed
        units_consumed: Units consumed (> 0)
        tariff_id: Tariff used to price the units
        invoice_id: Existing invoice to update
        create_new_invoice: Force creation of a new invoice
        due_date: Optional due date; new invoices default to today + default_due_days
        default_due_days: Days until a new invoice falls due
        today: Issue date, defaults to the current date

    Returns:
        IssuedInvoice with the stored invoice and the calculated charges

    Raises:
        InvalidInput: If units or due date are invalid
        NotFound: If the tariff, customer, or invoice does not exist
        ReferentialIntegrityViolation: If the invoice belongs to another customer
    """
    units = parse_units(units_consumed)
    due = parse_due_date(due_date)
    tariff = lookup_tariff(tariff_id, repository)
    amounts = calculate_invoice(units, tariff.rate_per_unit)
    issue_date = today or date.today()

    with repository.write_transaction() as conn:
        if fetch_customer(conn, customer_id) is None:
            raise NotFound(f"Customer {customer_id} not found")

        created = create_new_invoice or invoice_id is None
        if created:
            final_id = insert_invoice(
                conn,
                customer_id=customer_id,
                invoice_date=issue_date,
                base_amount=amounts.base_amount,
                tax=amounts.tax,
                grand_total=amounts.grand_total,
                due_date=due or issue_date + timedelta(days=default_due_days)
            )
        else:
            existing = fetch_invoice(conn, invoice_id)
            if existing is None:
                raise NotFound(f"Invoice {invoice_id} not found")
            if existing.customer_id != customer_id:
                raise ReferentialIntegrityViolation(
                    f"Invoice {invoice_id} belongs to customer {existing.customer_id}, "
                    f"not customer {customer_id}"
                )
            if due is not None:
                update_invoice_due_date(conn, invoice_id, due)
            final_id = invoice_id

        _sync_legacy_bill(
            conn, customer_id, final_id, tariff.rate_per_unit,
            due, issue_date, default_due_days
        )
        invoice = fetch_invoice(conn, final_id)

    logger.info(
        "Invoice %s %s for customer %s (grand total %.2f, status %s)",
        invoice.invoice_id, "created" if created else "updated",
        customer_id, invoice.grand_total, invoice.status
    )
    return IssuedInvoice(
        invoice=invoice,
        calculated=CalculatedCharges.from_amounts(amounts, tariff.tariff_id, tariff.description),
        created=created
    )


def _sync_legacy_bill(conn, customer_id, invoice_id, rate_per_unit, due, issue_date, default_due_days):
    """Keep one legacy bill row per customer pointing at a meter."""
    bill_id = latest_bill_id(conn, customer_id)
    if bill_id is not None:
        if due is not None:
            update_bill_due_date(conn, bill_id, due)
        return

    meter = first_meter_for_customer(conn, customer_id)
    if meter is None:
        logger.info("No meter for customer %s, skipping bill creation", customer_id)
        return

    insert_bill(
        conn,
        customer_id=customer_id,
        meter_id=meter.meter_id,
        invoice_id=invoice_id,
        issue_date=issue_date,
        due_date=due or issue_date + timedelta(days=default_due_days),
        rate_per_unit=rate_per_unit
    )


def summarize_invoice(repository: BillingRepository, invoice: Invoice) -> InvoiceSummary:
    amount_paid = repository.get_total_paid(invoice.invoice_id)
    return InvoiceSummary(
        invoice=invoice,
        amount_paid=amount_paid,
        outstanding=outstanding_balance(invoice.grand_total, amount_paid)
    )


def customer_invoices(repository: BillingRepository, customer_id: int) -> List[InvoiceSummary]:
    """A customer's invoices, newest first, with paid and outstanding amounts."""
    return [
        summarize_invoice(repository, invoice)
        for invoice in repository.list_invoices_for_customer(customer_id)
    ]


def invoice_detail(
    repository: BillingRepository,
    invoice_id: int,
    customer_id: Optional[int] = None
) -> InvoiceDetail:
    """Invoice with payment history.

    When ``customer_id`` is given, an invoice owned by someone else is
    reported as not found.

    Raises:
        NotFound: If the invoice does not exist (for this customer)
    """
    invoice = repository.get_invoice(invoice_id)
    if invoice is None or (customer_id is not None and invoice.customer_id != customer_id):
        raise NotFound(f"Invoice {invoice_id} not found")
    return InvoiceDetail(
        summary=summarize_invoice(repository, invoice),
        payments=repository.get_payments_for_invoice(invoice_id)
    )
