"""
Shared fixtures: a fresh database per test with one customer and tariff.
"""
import os
import tempfile
from datetime import date

import pytest

from gridbill.core.billing import issue_invoice
from gridbill.storage.repository import BillingRepository, initialize_schema


@pytest.fixture
def db_path():
    """Path to an initialized, empty billing database."""
    with tempfile.TemporaryDirectory() as temp_dir:
        path = os.path.join(temp_dir, "billing.db")
        initialize_schema(path)
        yield path


@pytest.fixture
def repository(db_path):
    return BillingRepository(db_path)


@pytest.fixture
def customer(repository):
    return repository.add_customer(
        first_name="Ravi",
        last_name="Kumar",
        email="ravi@example.com",
        contact_no="9811111111",
        address="4 Meter Lane"
    )


@pytest.fixture
def tariff(repository):
    """Domestic tariff at 5.0 per unit."""
    return repository.add_tariff("Domestic", 5.0, effective_from=date(2024, 1, 1))


@pytest.fixture
def make_invoice(repository, customer, tariff):
    """Issue a new invoice for ``customer`` and return it.

    ``make_invoice(units)`` prices ``units`` at the Domestic rate, so
    ``make_invoice(200)`` yields a grand total of 1050.00.
    """
    def _make(units=200, customer_id=None, rate_tariff=None):
        issued = issue_invoice(
            repository,
            customer_id=customer_id or customer.customer_id,
            units_consumed=units,
            tariff_id=(rate_tariff or tariff).tariff_id,
            create_new_invoice=True,
            today=date(2024, 3, 1)
        )
        return issued.invoice
    return _make
