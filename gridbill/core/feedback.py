"""Customer feedback submission."""

from typing import Optional, Union

from .errors import Forbidden, InvalidInput, NotFound
from gridbill.storage.models import Feedback
from gridbill.storage.repository import BillingRepository

MAX_FEEDBACK_LENGTH = 500


def submit_feedback(
    repository: BillingRepository,
    customer_id: int,
    text: Optional[str],
    rating: Union[int, str, None] = None,
    invoice_id: Optional[int] = None
) -> Feedback:
    """Store feedback from a customer.

    Raises:
        InvalidInput: If text is empty or too long, or rating is outside 1-5
        NotFound: If the referenced invoice does not exist
        Forbidden: If the referenced invoice belongs to another customer
    """
    body = (text or "").strip()
    if not body:
        raise InvalidInput("Feedback text is required")
    if len(body) > MAX_FEEDBACK_LENGTH:
        raise InvalidInput(f"Feedback text cannot exceed {MAX_FEEDBACK_LENGTH} characters")

    rating_value = None
    if rating not in (None, ""):
        try:
            rating_value = int(rating)
        except (TypeError, ValueError):
            raise InvalidInput("Rating must be between 1 and 5")
        if not 1 <= rating_value <= 5:
            raise InvalidInput("Rating must be between 1 and 5")

    if invoice_id is not None:
        invoice = repository.get_invoice(invoice_id)
        if invoice is None:
            raise NotFound(f"Invoice {invoice_id} not found")
        if invoice.customer_id != customer_id:
            raise Forbidden("Invoice does not belong to you")

    return repository.add_feedback(
        customer_id=customer_id,
        text=body,
        rating=rating_value,
        invoice_id=invoice_id
    )
