"""
Payment ledger.

Records customer payments against invoices. A payment insert and the
invoice status update that follows it are one atomic unit, and the whole
read-check-write sequence runs under the database write lock so two
payments against the same invoice can never both be accepted past the
grand total.
"""

import logging
import math
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Union

from .errors import (
    AmountExceedsOutstanding,
    DuplicateReference,
    Forbidden,
    InvalidAmount,
    InvalidInput,
    NotFound,
)
from .reconciler import InvoiceStatus, outstanding_balance, reconcile, round_money
from gridbill.storage.models import Invoice, Payment, Receipt
from gridbill.storage.repository import (
    BillingRepository,
    fetch_invoice,
    fetch_payment,
    fetch_receipt,
    insert_payment,
    sum_payments,
    transaction_ref_exists,
    update_invoice_status,
)

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_MODE = "Other"


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of a successfully recorded payment."""
    payment: Payment
    invoice: Invoice
    receipt: Receipt


def _parse_amount(value: Union[int, float, str, None]) -> float:
    """Payment amount rounded to cents; must still be positive after rounding."""
    if value is None or isinstance(value, bool):
        raise InvalidAmount("Amount must be greater than 0")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidAmount("Amount must be greater than 0")
    if not math.isfinite(amount):
        raise InvalidAmount("Amount must be greater than 0")
    amount = round_money(amount)
    if amount <= 0:
        raise InvalidAmount("Amount must be greater than 0")
    return amount


class PaymentLedger:
    """Append-only payment ledger backed by a BillingRepository."""

    def __init__(self, repository: BillingRepository):
        self.repository = repository

    def record_payment(
        self,
        invoice_id: int,
        amount: Union[int, float, str],
        mode: Optional[str],
        transaction_ref: Optional[str],
        customer_id: Optional[int] = None,
        notes: Optional[str] = None
    ) -> PaymentResult:
        """Record a payment and reconcile the invoice status.

        Input validation happens before the database is touched. The
        remaining checks, the insert, and the status update share one
        write transaction; any failure rolls all of it back.

        Args:
            invoice_id: Invoice being paid
            amount: Amount paid, stored rounded to cents (>= 0.01 after rounding)
            mode: Payment mode, "Other" when empty
            transaction_ref: Globally unique transaction reference
            customer_id: Paying customer; when given the invoice must be theirs
            notes: Optional free-text note stored with the payment

        Returns:
            PaymentResult with the new payment, updated invoice, and receipt

        Raises:
            InvalidInput: If transaction_ref is empty
            InvalidAmount: If amount is not a positive number of cents
            NotFound: If the invoice does not exist
            Forbidden: If the invoice belongs to another customer
            DuplicateReference: If transaction_ref was already used
            AmountExceedsOutstanding: If amount exceeds the outstanding balance
        """
        ref = (transaction_ref or "").strip()
        if not ref:
            raise InvalidInput("Transaction reference is required")
        payment_amount = _parse_amount(amount)
        payment_mode = (mode or "").strip() or DEFAULT_PAYMENT_MODE

        with self.repository.write_transaction() as conn:
            invoice = fetch_invoice(conn, invoice_id)
            if invoice is None:
                raise NotFound(f"Invoice {invoice_id} not found")
            if customer_id is not None and invoice.customer_id != customer_id:
                raise Forbidden(f"Invoice {invoice_id} does not belong to customer {customer_id}")

            if transaction_ref_exists(conn, ref):
                logger.warning("Rejected payment on invoice %s: reference %r already used", invoice_id, ref)
                raise DuplicateReference(
                    "Transaction reference already exists. "
                    "Please use a unique transaction reference."
                )

            total_paid = sum_payments(conn, invoice_id)
            outstanding = outstanding_balance(invoice.grand_total, total_paid)
            if payment_amount > outstanding:
                logger.warning(
                    "Rejected payment of %.2f on invoice %s: outstanding %.2f",
                    payment_amount, invoice_id, outstanding
                )
                raise AmountExceedsOutstanding(
                    f"Amount exceeds outstanding amount of {outstanding:.2f}",
                    outstanding=outstanding
                )

            try:
                payment_id = insert_payment(
                    conn,
                    invoice_id=invoice_id,
                    amount_paid=payment_amount,
                    payment_date=datetime.now(),
                    payment_mode=payment_mode,
                    transaction_ref=ref,
                    notes=notes
                )
            except sqlite3.IntegrityError as e:
                if "transaction_ref" in str(e):
                    raise DuplicateReference(
                        "Transaction reference already exists. "
                        "Please use a unique transaction reference."
                    ) from e
                raise

            new_status = reconcile(
                InvoiceStatus(invoice.status),
                total_paid + payment_amount,
                invoice.grand_total
            )
            update_invoice_status(conn, invoice_id, new_status.value)

            payment = fetch_payment(conn, payment_id)
            updated_invoice = fetch_invoice(conn, invoice_id)
            receipt = fetch_receipt(conn, payment_id)

        logger.info(
            "Payment %s of %.2f recorded on invoice %s (%s -> %s)",
            payment_id, payment_amount, invoice_id, invoice.status, new_status.value
        )
        return PaymentResult(payment=payment, invoice=updated_invoice, receipt=receipt)

    def payments_for_invoice(self, invoice_id: int) -> List[Payment]:
        """Payment history for an invoice, newest first."""
        return self.repository.get_payments_for_invoice(invoice_id)

    def total_paid(self, invoice_id: int) -> float:
        """Cumulative amount paid against an invoice."""
        return self.repository.get_total_paid(invoice_id)
