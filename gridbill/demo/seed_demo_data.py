# gridbill/demo/seed_demo_data.py

from datetime import date

from gridbill.storage.models import Customer
from gridbill.storage.repository import BillingRepository, initialize_schema

DEMO_CUSTOMER_EMAIL = "asha.verma@example.com"

DEMO_TARIFFS = [
    ("Domestic", 5.0),
    ("Commercial", 10.0),
]


def seed_demo_data(db_path: str) -> Customer:
    """Insert demo tariffs plus one customer with a meter.

    Safe to run repeatedly: tariffs are matched by description and the
    customer by email, and rows already present are left alone.

    Returns:
        The demo customer
    """
    initialize_schema(db_path)
    repository = BillingRepository(db_path)

    tariffs = {}
    for description, rate in DEMO_TARIFFS:
        tariff = repository.find_tariff_by_description(description)
        if tariff is None:
            tariff = repository.add_tariff(
                description,
                rate,
                effective_from=date.today(),
                effective_to=date(2026, 12, 31)
            )
        tariffs[description] = tariff

    customer = repository.find_customer_by_email(DEMO_CUSTOMER_EMAIL)
    if customer is not None:
        return customer

    customer = repository.add_customer(
        first_name="Asha",
        last_name="Verma",
        email=DEMO_CUSTOMER_EMAIL,
        contact_no="9800000000",
        address="12 Grid Street"
    )
    repository.add_meter(
        customer.customer_id,
        tariff_id=tariffs["Domestic"].tariff_id,
        meter_type="Single Phase",
        installation_date=date.today()
    )
    return customer
