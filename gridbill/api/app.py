"""
GridBill HTTP API.

URL scheme:
  /api/admin/*      Invoice issuance, payments, receipts, feedback
  /api/customer/*   Payments, invoices, bills, feedback (customer from X-Customer-Id)
  /api/tariffs      Tariff list
  /health           Health check
"""
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from gridbill.config.loader import AppConfig
from gridbill.core.errors import (
    AmountExceedsOutstanding,
    BillingError,
    DuplicateReference,
    Forbidden,
    InvalidInput,
    NotFound,
    ReferentialIntegrityViolation,
)
from gridbill.core.tariffs import list_tariffs
from gridbill.storage.repository import BillingRepository, initialize_schema

from . import admin, customer
from .deps import get_billing_repository
from .schemas import TariffListResponse, TariffOut, from_dataclass

logger = logging.getLogger(__name__)

# Most specific class first; the first isinstance match wins
_STATUS_CODES = (
    (NotFound, 404),
    (Forbidden, 403),
    (InvalidInput, 400),
    (DuplicateReference, 400),
    (AmountExceedsOutstanding, 400),
    (ReferentialIntegrityViolation, 400),
)


def status_code_for(error: BillingError) -> int:
    for error_type, status in _STATUS_CODES:
        if isinstance(error, error_type):
            return status
    return 400


async def _billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    status = status_code_for(exc)
    logger.warning("%s %s -> %s %s: %s", request.method, request.url.path, status, exc.code, exc.message)
    return JSONResponse(
        status_code=status,
        content={"success": False, "error": exc.message, "code": exc.code}
    )


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _describe_validation_errors(exc)
    logger.warning("%s %s -> 400 InvalidInput: %s", request.method, request.url.path, message)
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": message, "code": InvalidInput.code}
    )


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the API application.

    The schema is created on startup if missing.
    """
    config = config or AppConfig()
    initialize_schema(config.database.path)

    app = FastAPI(
        title="GridBill API",
        description="Electricity billing: invoices, payments, reconciliation",
        version="1.0.0"
    )
    app.state.config = config
    app.state.repository = BillingRepository(config.database.path)

    app.add_exception_handler(BillingError, _billing_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
    app.include_router(customer.router, prefix="/api/customer", tags=["Customer"])

    @app.get("/api/tariffs", response_model=TariffListResponse)
    def get_tariffs(repository: BillingRepository = Depends(get_billing_repository)) -> TariffListResponse:
        """List all tariffs."""
        return TariffListResponse(data=[from_dataclass(TariffOut, t) for t in list_tariffs(repository)])

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app
