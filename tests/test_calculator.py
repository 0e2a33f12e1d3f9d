"""
Unit tests for invoice amount calculation and tariff lookup.
"""

import pytest

from gridbill.core.calculator import TAX_RATE, calculate_invoice, parse_units
from gridbill.core.errors import InvalidInput, NotFound
from gridbill.core.tariffs import list_tariffs, lookup_tariff


class TestCalculateInvoice:
    """Test base/tax/grand-total computation."""

    def test_domestic_example(self):
        """100 units at 5.0 gives 500 + 25 tax."""
        amounts = calculate_invoice(100, 5.0)
        assert amounts.base_amount == 500.0
        assert amounts.tax == 25.0
        assert amounts.grand_total == 525.0

    def test_commercial_example(self):
        amounts = calculate_invoice(250, 10.0)
        assert amounts.base_amount == 2500.0
        assert amounts.tax == 125.0
        assert amounts.grand_total == 2625.0

    def test_numeric_string_units(self):
        amounts = calculate_invoice("100", 5.0)
        assert amounts.units_consumed == 100.0
        assert amounts.grand_total == 525.0

    def test_amounts_not_rounded(self):
        """Fractional results keep full precision."""
        amounts = calculate_invoice(1, 0.333)
        assert amounts.base_amount == pytest.approx(0.333)
        assert amounts.tax == pytest.approx(0.333 * TAX_RATE)
        assert amounts.grand_total == pytest.approx(0.333 * 1.05)

    def test_grand_total_is_base_plus_tax(self):
        amounts = calculate_invoice(37.5, 7.25)
        assert amounts.grand_total == pytest.approx(amounts.base_amount + amounts.tax)
        assert amounts.tax == pytest.approx(amounts.base_amount * 0.05)

    @pytest.mark.parametrize("units", [0, -5, "abc", None, "", float("nan"), float("inf"), True])
    def test_invalid_units(self, units):
        with pytest.raises(InvalidInput):
            calculate_invoice(units, 5.0)


class TestParseUnits:
    """Test units validation."""

    def test_float_passthrough(self):
        assert parse_units(12.5) == 12.5

    def test_string_with_spaces(self):
        assert parse_units(" 42 ") == 42.0

    def test_error_message(self):
        with pytest.raises(InvalidInput) as exc_info:
            parse_units(0)
        assert exc_info.value.code == "InvalidInput"


class TestTariffLookup:
    """Test tariff resolution against storage."""

    def test_lookup_existing(self, repository, tariff):
        found = lookup_tariff(tariff.tariff_id, repository)
        assert found.rate_per_unit == 5.0
        assert found.description == "Domestic"

    def test_lookup_missing(self, repository):
        with pytest.raises(NotFound) as exc_info:
            lookup_tariff(999, repository)
        assert "Tariff 999 not found" in str(exc_info.value)

    def test_rate_change_seen_on_next_lookup(self, repository, tariff):
        """Lookups are not cached."""
        from gridbill.storage.db import get_connection
        conn = get_connection(repository.db_path)
        try:
            conn.execute("UPDATE tariff SET rate_per_unit = 6.0 WHERE tariff_id = ?", (tariff.tariff_id,))
        finally:
            conn.close()
        assert lookup_tariff(tariff.tariff_id, repository).rate_per_unit == 6.0

    def test_list_tariffs_ordered(self, repository):
        repository.add_tariff("Domestic", 5.0)
        repository.add_tariff("Commercial", 10.0)
        assert [t.description for t in list_tariffs(repository)] == ["Domestic", "Commercial"]
