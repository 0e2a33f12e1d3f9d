"""
Admin routes.

Routes:
- POST /payment               Issue or update an invoice (never records a payment)
- GET  /payments              All payments as receipts, newest first
- GET  /payment/{payment_id}  Receipt for one payment
- GET  /payments/stats        Payment summary
- GET  /feedback              All customer feedback, newest first
"""
from fastapi import APIRouter, Depends

from gridbill.core.billing import issue_invoice
from gridbill.core.errors import NotFound
from gridbill.storage.repository import BillingRepository

from .deps import get_billing_repository, get_default_due_days
from .schemas import (
    CalculatedOut,
    FeedbackListResponse,
    FeedbackOut,
    InvoiceOut,
    IssueInvoiceRequest,
    IssueInvoiceResponse,
    PaymentStatsOut,
    PaymentStatsResponse,
    ReceiptListResponse,
    ReceiptOut,
    ReceiptResponse,
    from_dataclass,
)

router = APIRouter()


@router.post("/payment", response_model=IssueInvoiceResponse)
def create_invoice(
    body: IssueInvoiceRequest,
    repository: BillingRepository = Depends(get_billing_repository),
    default_due_days: int = Depends(get_default_due_days)
) -> IssueInvoiceResponse:
    """Compute amounts from tariff and units, then create or update the invoice."""
    issued = issue_invoice(
        repository,
        customer_id=body.customer_id,
        units_consumed=body.units_consumed,
        tariff_id=body.tariff_id,
        invoice_id=body.invoice_id,
        create_new_invoice=body.create_new_invoice,
        due_date=body.due_date,
        default_due_days=default_due_days
    )
    verb = "created" if issued.created else "updated"
    return IssueInvoiceResponse(
        invoice=from_dataclass(InvoiceOut, issued.invoice),
        message=f"Invoice {verb} successfully. Customer can now pay via customer portal.",
        calculated=from_dataclass(CalculatedOut, issued.calculated)
    )


@router.get("/payments", response_model=ReceiptListResponse)
def list_payments(
    repository: BillingRepository = Depends(get_billing_repository)
) -> ReceiptListResponse:
    """Every recorded payment with its invoice and customer."""
    return ReceiptListResponse(data=[from_dataclass(ReceiptOut, r) for r in repository.list_receipts()])


@router.get("/payment/{payment_id}", response_model=ReceiptResponse)
def get_payment_receipt(
    payment_id: int,
    repository: BillingRepository = Depends(get_billing_repository)
) -> ReceiptResponse:
    receipt = repository.get_receipt(payment_id)
    if receipt is None:
        raise NotFound(f"Payment {payment_id} not found")
    return ReceiptResponse(payment=from_dataclass(ReceiptOut, receipt))


@router.get("/payments/stats", response_model=PaymentStatsResponse)
def payment_stats(
    repository: BillingRepository = Depends(get_billing_repository)
) -> PaymentStatsResponse:
    """Payment count, amount collected, and invoices still awaiting payment."""
    return PaymentStatsResponse(stats=PaymentStatsOut(**repository.get_payment_stats()))


@router.get("/feedback", response_model=FeedbackListResponse)
def list_feedback(
    repository: BillingRepository = Depends(get_billing_repository)
) -> FeedbackListResponse:
    return FeedbackListResponse(data=[from_dataclass(FeedbackOut, f) for f in repository.list_feedback()])
