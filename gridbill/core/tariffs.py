"""
Tariff lookup.

Resolves the rate-per-unit for a tariff identifier. Every call reads
storage; nothing is cached, so a rate change affects the next calculation
while past invoices keep their stored amounts.
"""

from typing import List

from .errors import NotFound
from gridbill.storage.models import Tariff
from gridbill.storage.repository import BillingRepository


def lookup_tariff(tariff_id: int, repository: BillingRepository) -> Tariff:
    """Get a tariff by identifier.

    The effective-from/to window is returned but not checked against any
    date.

    Args:
        tariff_id: Tariff identifier
        repository: Repository to read from

    Returns:
        The matching Tariff

    Raises:
        NotFound: If no tariff has this identifier
    """
    tariff = repository.get_tariff(tariff_id)
    if tariff is None:
        raise NotFound(f"Tariff {tariff_id} not found")
    return tariff


def list_tariffs(repository: BillingRepository) -> List[Tariff]:
    """All tariffs ordered by identifier."""
    return repository.list_tariffs()
