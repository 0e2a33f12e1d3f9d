"""
Tests for the CLI interface.
"""
import json
import os
import sqlite3
import tempfile
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from gridbill.cli.main import EXIT_CODE_FAIL, EXIT_CODE_OK, app

runner = CliRunner()


@pytest.fixture
def db_file():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield os.path.join(temp_dir, "cli.db")


def _run(db_file, *args):
    return runner.invoke(app, ["--db", db_file, *args])


@pytest.fixture
def seeded(db_file):
    """Database with demo tariffs (1 Domestic, 2 Commercial) and customer 1."""
    result = _run(db_file, "seed-demo")
    assert result.exit_code == EXIT_CODE_OK, result.output
    return db_file


class TestCLI:
    """Test CLI commands."""

    def test_no_command(self, db_file):
        result = _run(db_file)
        assert result.exit_code == EXIT_CODE_OK
        assert "--help" in result.output

    def test_init(self, db_file):
        result = _run(db_file, "init")
        assert result.exit_code == EXIT_CODE_OK
        assert "Database initialized successfully" in result.output
        assert os.path.exists(db_file)

    def test_missing_config_file(self, db_file):
        result = runner.invoke(app, ["--config", "/nonexistent/gridbill.yaml", "status"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Config file not found" in result.output

    def test_invalid_yaml_config(self, db_file):
        path = os.path.join(os.path.dirname(db_file), "broken.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("database: [unclosed\n")

        result = runner.invoke(app, ["--config", path, "status"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert isinstance(result.exception, SystemExit)
        assert "Invalid YAML" in result.output

    def test_seed_demo_twice_reuses_customer(self, seeded):
        result = _run(seeded, "seed-demo")
        assert result.exit_code == EXIT_CODE_OK, result.output
        assert "customer 1" in result.output

        conn = sqlite3.connect(seeded)
        try:
            assert conn.execute("SELECT COUNT(*) FROM customer").fetchone()[0] == 1
            assert conn.execute("SELECT COUNT(*) FROM meter").fetchone()[0] == 1
            assert conn.execute("SELECT COUNT(*) FROM tariff").fetchone()[0] == 2
        finally:
            conn.close()

    def test_tariffs(self, seeded):
        result = _run(seeded, "tariffs")
        assert result.exit_code == EXIT_CODE_OK
        assert "Domestic" in result.output
        assert "Commercial" in result.output

    def test_add_tariff(self, db_file):
        result = _run(db_file, "add-tariff", "Industrial", "12.5")
        assert result.exit_code == EXIT_CODE_OK
        assert "Tariff 1 added" in result.output

    def test_add_tariff_rejects_zero_rate(self, db_file):
        result = _run(db_file, "add-tariff", "Free", "0")
        assert result.exit_code == EXIT_CODE_FAIL

    def test_add_customer(self, seeded):
        result = _run(seeded, "add-customer", "Meena", "Iyer", "--tariff", "2")
        assert result.exit_code == EXIT_CODE_OK
        assert "Customer 2 added: Meena Iyer" in result.output


class TestBillingCommands:
    """Issue, pay, and inspect invoices."""

    def test_issue_pay_and_show(self, seeded):
        result = _run(seeded, "issue", "1", "100", "1")
        assert result.exit_code == EXIT_CODE_OK, result.output
        assert "Invoice 1" in result.output
        assert "Pending" in result.output
        assert "₹525.00" in result.output

        result = _run(seeded, "pay", "1", "200", "--ref", "TXN-1", "--mode", "UPI")
        assert result.exit_code == EXIT_CODE_OK, result.output
        assert "Partially Paid" in result.output

        result = _run(seeded, "pay", "1", "325", "--ref", "TXN-2")
        assert result.exit_code == EXIT_CODE_OK, result.output
        assert "Invoice status: Paid" in result.output

        result = _run(seeded, "invoice", "1")
        assert result.exit_code == EXIT_CODE_OK
        assert "Outstanding: ₹0.00" in result.output
        assert "TXN-2" in result.output

    def test_overpayment_fails(self, seeded):
        _run(seeded, "issue", "1", "100", "1")
        result = _run(seeded, "pay", "1", "600", "--ref", "TXN-1")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Amount exceeds outstanding amount of 525.00" in result.output

    def test_duplicate_reference_fails(self, seeded):
        _run(seeded, "issue", "1", "100", "1")
        _run(seeded, "pay", "1", "100", "--ref", "TXN-1")
        result = _run(seeded, "pay", "1", "100", "--ref", "TXN-1")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Transaction reference already exists" in result.output

    def test_issue_unknown_tariff(self, seeded):
        result = _run(seeded, "issue", "1", "100", "9")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Tariff 9 not found" in result.output

    def test_invoice_not_found(self, seeded):
        result = _run(seeded, "invoice", "42")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invoice 42 not found" in result.output

    def test_receipt(self, seeded):
        _run(seeded, "issue", "1", "100", "1")
        _run(seeded, "pay", "1", "200", "--ref", "TXN-1", "--mode", "UPI")
        result = _run(seeded, "receipt", "1")
        assert result.exit_code == EXIT_CODE_OK, result.output
        assert "Customer: Asha Verma" in result.output
        assert "Amount paid: ₹200.00" in result.output
        assert "Invoice status: Partially Paid" in result.output

    def test_receipt_not_found(self, seeded):
        result = _run(seeded, "receipt", "7")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Payment 7 not found" in result.output

    def test_sub_cent_payment_rejected(self, seeded):
        _run(seeded, "issue", "1", "100", "1")
        result = _run(seeded, "pay", "1", "0.004", "--ref", "TXN-1")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Amount must be greater than 0" in result.output

    def test_invoices_listing(self, seeded):
        _run(seeded, "issue", "1", "100", "1")
        _run(seeded, "issue", "1", "10", "2")
        result = _run(seeded, "invoices", "1")
        assert result.exit_code == EXIT_CODE_OK
        assert "Invoices for customer 1" in result.output

    def test_status(self, seeded):
        _run(seeded, "issue", "1", "100", "1")
        _run(seeded, "pay", "1", "100", "--ref", "TXN-1")
        result = _run(seeded, "status")
        assert result.exit_code == EXIT_CODE_OK
        assert "Payments recorded: 1" in result.output
        assert "Invoices awaiting payment: 1" in result.output


class TestSchemaPlanCommand:

    def test_prints_ddl(self, db_file):
        schema = {
            "tables": [
                {"name": "invoice", "columns": [{"id": "INTEGER"}, {"customer_id": "INTEGER"}],
                 "foreign_keys": [{"customer_id": "REFERENCES customer(id)"}]},
                {"name": "customer", "columns": [{"id": "INTEGER"}]},
            ]
        }
        path = os.path.join(os.path.dirname(db_file), "schema.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(schema, f)

        result = _run(db_file, "schema-plan", path)
        assert result.exit_code == EXIT_CODE_OK
        assert result.output.index("CREATE TABLE CUSTOMER") < result.output.index("CREATE TABLE INVOICE")
        assert "ALTER TABLE INVOICE ADD CONSTRAINT" in result.output

    def test_missing_file(self, db_file):
        result = _run(db_file, "schema-plan", "/nonexistent/schema.json")
        assert result.exit_code == EXIT_CODE_FAIL


class TestServeCommand:

    def test_runs_uvicorn_with_config(self, db_file):
        with patch("uvicorn.run") as mock_run:
            result = _run(db_file, "serve", "--port", "9001")
        assert result.exit_code == EXIT_CODE_OK, result.output
        mock_run.assert_called_once()
        kwargs = mock_run.call_args.kwargs
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9001
