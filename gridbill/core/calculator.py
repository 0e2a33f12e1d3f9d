"""
Invoice amount calculation.

Turns units consumed and a tariff rate into base amount, tax, and grand
total. Amounts are not rounded here; rounding only happens when a payment
is compared against the outstanding balance.
"""

import math
from dataclasses import dataclass
from typing import Union

from .errors import InvalidInput

# Fixed 5% tax, applied to every tariff
TAX_RATE = 0.05


@dataclass(frozen=True)
class InvoiceAmounts:
    """Computed amounts for one billing event."""
    units_consumed: float
    rate_per_unit: float
    base_amount: float
    tax: float
    grand_total: float


def parse_units(value: Union[int, float, str, None]) -> float:
    """Validate a units-consumed value and return it as a float.

    Args:
        value: Number or numeric string

    Returns:
        Units consumed as a float

    Raises:
        InvalidInput: If value is missing, non-numeric, non-finite, or <= 0
    """
    if value is None or isinstance(value, bool):
        raise InvalidInput("Units consumed must be a positive number")
    try:
        units = float(value)
    except (TypeError, ValueError):
        raise InvalidInput("Units consumed must be a positive number")
    if not math.isfinite(units) or units <= 0:
        raise InvalidInput("Units consumed must be a positive number")
    return units


def calculate_invoice(units_consumed: Union[int, float, str], rate_per_unit: float) -> InvoiceAmounts:
    """Calculate invoice amounts from consumption and tariff rate.

    Args:
        units_consumed: Units of electricity consumed (> 0)
        rate_per_unit: Tariff rate per unit

    Returns:
        InvoiceAmounts with base amount, 5% tax, and grand total

    Raises:
        InvalidInput: If units_consumed is not a positive number
    """
    units = parse_units(units_consumed)
    rate = float(rate_per_unit)

    base_amount = units * rate
    tax = base_amount * TAX_RATE
    grand_total = base_amount + tax

    return InvoiceAmounts(
        units_consumed=units,
        rate_per_unit=rate,
        base_amount=base_amount,
        tax=tax,
        grand_total=grand_total
    )
