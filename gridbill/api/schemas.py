"""
Request and response models for the HTTP API.

Field names are snake_case in Python and camelCase on the wire.
"""

from dataclasses import asdict
from datetime import date, datetime
from typing import List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


ModelT = TypeVar("ModelT", bound=CamelModel)


def from_dataclass(model: Type[ModelT], obj, **extra) -> ModelT:
    """Build a response model from a storage/core dataclass."""
    return model(**asdict(obj), **extra)


# -- requests ---------------------------------------------------------------

class IssueInvoiceRequest(CamelModel):
    """Admin issues or updates an invoice."""
    customer_id: int
    units_consumed: Union[float, str]
    tariff_id: int
    invoice_id: Optional[int] = None
    create_new_invoice: bool = False
    due_date: Optional[str] = None


class PaymentRequest(CamelModel):
    """Customer pays (part of) an invoice."""
    invoice_id: int
    amount: Union[float, str]
    payment_mode: Optional[str] = None
    transaction_ref: Optional[str] = None
    notes: Optional[str] = None


class FeedbackRequest(CamelModel):
    text: Optional[str] = None
    rating: Optional[int] = None
    invoice_id: Optional[int] = None


# -- responses --------------------------------------------------------------

class TariffOut(CamelModel):
    tariff_id: int
    description: str
    rate_per_unit: float
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None


class InvoiceOut(CamelModel):
    invoice_id: int
    customer_id: int
    invoice_date: date
    base_amount: float
    tax: float
    grand_total: float
    status: str
    due_date: Optional[date] = None


class PaymentOut(CamelModel):
    payment_id: int
    invoice_id: int
    amount_paid: float
    payment_date: datetime
    payment_mode: str
    transaction_ref: str
    units_consumed: Optional[float] = None
    notes: Optional[str] = None


class ReceiptOut(CamelModel):
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


class BillOut(CamelModel):
    bill_id: int
    customer_id: int
    issue_date: date
    due_date: Optional[date] = None
    rate_per_unit: float
    meter_id: Optional[int] = None
    invoice_id: Optional[int] = None
    is_paid: bool


class FeedbackOut(CamelModel):
    feedback_id: int
    customer_id: int
    text: str
    submitted_at: datetime
    rating: Optional[int] = None
    invoice_id: Optional[int] = None


class CalculatedOut(CamelModel):
    units_consumed: float
    tariff_id: int
    tariff_description: str
    unit_rate: float
    base_amount: float
    tax: float
    grand_total: float


class InvoiceSummaryOut(InvoiceOut):
    amount_paid: float
    outstanding: float


class IssueInvoiceResponse(CamelModel):
    success: bool = True
    invoice: InvoiceOut
    message: str
    calculated: CalculatedOut


class PaymentResponse(CamelModel):
    success: bool = True
    payment: PaymentOut
    invoice: InvoiceOut
    receipt: ReceiptOut
    message: str


class TariffListResponse(CamelModel):
    success: bool = True
    data: List[TariffOut]


class InvoiceListResponse(CamelModel):
    success: bool = True
    data: List[InvoiceSummaryOut]


class InvoiceDetailResponse(CamelModel):
    success: bool = True
    invoice: InvoiceSummaryOut
    payments: List[PaymentOut]


class PaymentStatsOut(CamelModel):
    total_payments: int
    total_amount_collected: float
    pending_invoices: int


class PaymentStatsResponse(CamelModel):
    success: bool = True
    stats: PaymentStatsOut


class FeedbackResponse(CamelModel):
    success: bool = True
    feedback_id: int
    message: str


class ReceiptListResponse(CamelModel):
    success: bool = True
    data: List[ReceiptOut]


class ReceiptResponse(CamelModel):
    success: bool = True
    payment: ReceiptOut


class BillListResponse(CamelModel):
    success: bool = True
    data: List[BillOut]


class FeedbackListResponse(CamelModel):
    success: bool = True
    data: List[FeedbackOut]
