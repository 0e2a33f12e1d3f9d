"""
Customer routes.

Routes:
- POST /pay                   Pay (part of) an invoice
- GET  /invoices              Own invoices with paid/outstanding amounts
- GET  /invoice/{invoice_id}  Invoice detail with payment history
- GET  /bills                 Legacy bill rows with derived paid flag
- POST /feedback              Submit feedback
- GET  /feedback              Own feedback, newest first
"""
from fastapi import APIRouter, Depends

from gridbill.core.billing import customer_invoices, invoice_detail
from gridbill.core.feedback import submit_feedback
from gridbill.core.ledger import PaymentLedger
from gridbill.storage.repository import BillingRepository

from .deps import get_billing_repository, get_customer_id
from .schemas import (
    BillListResponse,
    BillOut,
    FeedbackListResponse,
    FeedbackOut,
    FeedbackRequest,
    FeedbackResponse,
    InvoiceDetailResponse,
    InvoiceListResponse,
    InvoiceOut,
    InvoiceSummaryOut,
    PaymentOut,
    PaymentRequest,
    PaymentResponse,
    ReceiptOut,
    from_dataclass,
)

router = APIRouter()


def _summary_out(summary) -> InvoiceSummaryOut:
    return from_dataclass(
        InvoiceSummaryOut,
        summary.invoice,
        amount_paid=summary.amount_paid,
        outstanding=summary.outstanding
    )


@router.post("/pay", response_model=PaymentResponse)
def pay_invoice(
    body: PaymentRequest,
    customer_id: int = Depends(get_customer_id),
    repository: BillingRepository = Depends(get_billing_repository)
) -> PaymentResponse:
    """Record a payment against one of the customer's invoices."""
    result = PaymentLedger(repository).record_payment(
        invoice_id=body.invoice_id,
        amount=body.amount,
        mode=body.payment_mode,
        transaction_ref=body.transaction_ref,
        customer_id=customer_id,
        notes=body.notes
    )
    return PaymentResponse(
        payment=from_dataclass(PaymentOut, result.payment),
        invoice=from_dataclass(InvoiceOut, result.invoice),
        receipt=from_dataclass(ReceiptOut, result.receipt),
        message="Payment processed successfully"
    )


@router.get("/invoices", response_model=InvoiceListResponse)
def list_invoices(
    customer_id: int = Depends(get_customer_id),
    repository: BillingRepository = Depends(get_billing_repository)
) -> InvoiceListResponse:
    summaries = customer_invoices(repository, customer_id)
    return InvoiceListResponse(data=[_summary_out(s) for s in summaries])


@router.get("/invoice/{invoice_id}", response_model=InvoiceDetailResponse)
def get_invoice(
    invoice_id: int,
    customer_id: int = Depends(get_customer_id),
    repository: BillingRepository = Depends(get_billing_repository)
) -> InvoiceDetailResponse:
    detail = invoice_detail(repository, invoice_id, customer_id=customer_id)
    return InvoiceDetailResponse(
        invoice=_summary_out(detail.summary),
        payments=[from_dataclass(PaymentOut, p) for p in detail.payments]
    )


@router.get("/bills", response_model=BillListResponse)
def list_bills(
    customer_id: int = Depends(get_customer_id),
    repository: BillingRepository = Depends(get_billing_repository)
) -> BillListResponse:
    """Bill rows; ``isPaid`` follows the linked invoice's status."""
    bills = repository.list_bills_for_customer(customer_id)
    return BillListResponse(data=[from_dataclass(BillOut, b) for b in bills])


@router.post("/feedback", response_model=FeedbackResponse)
def post_feedback(
    body: FeedbackRequest,
    customer_id: int = Depends(get_customer_id),
    repository: BillingRepository = Depends(get_billing_repository)
) -> FeedbackResponse:
    feedback = submit_feedback(
        repository,
        customer_id=customer_id,
        text=body.text,
        rating=body.rating,
        invoice_id=body.invoice_id
    )
    return FeedbackResponse(
        feedback_id=feedback.feedback_id,
        message="Feedback submitted successfully"
    )


@router.get("/feedback", response_model=FeedbackListResponse)
def list_feedback(
    customer_id: int = Depends(get_customer_id),
    repository: BillingRepository = Depends(get_billing_repository)
) -> FeedbackListResponse:
    feedback = repository.list_feedback_for_customer(customer_id)
    return FeedbackListResponse(data=[from_dataclass(FeedbackOut, f) for f in feedback])
