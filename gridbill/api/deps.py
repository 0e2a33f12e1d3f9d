"""Request dependencies shared by the routers."""
from fastapi import Header, Request

from gridbill.storage.repository import BillingRepository


def get_billing_repository(request: Request) -> BillingRepository:
    return request.app.state.repository


def get_default_due_days(request: Request) -> int:
    return request.app.state.config.billing.default_due_days


def get_customer_id(x_customer_id: int = Header(...)) -> int:
    """Authenticated customer, as forwarded by the upstream auth layer."""
    return x_customer_id
