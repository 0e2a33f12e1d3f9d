"""
Unit tests for schema bootstrap planning.
"""

import json
import os
import tempfile

import pytest

from gridbill.core.schema_order import (
    build_create_table_sql,
    build_dependency_graph,
    build_foreign_key_statements,
    load_table_specs,
    plan_bootstrap,
    to_identifier,
    topological_order,
)

BILLING_TABLES = [
    {
        "name": "Payment",
        "columns": [{"paymentId": "INTEGER"}, {"invoiceId": "INTEGER"}, {"date": "TEXT"}],
        "foreign_keys": [{"invoiceId": "REFERENCES Invoice(invoiceId)"}],
    },
    {
        "name": "Invoice",
        "columns": [{"invoiceId": "INTEGER"}, {"customerId": "INTEGER"}],
        "foreign_keys": [{"customerId": "REFERENCES Customer(customerId)"}],
    },
    {
        "name": "Customer",
        "columns": [{"customerId": "INTEGER"}, {"firstName": "VARCHAR(50)"}],
    },
]


class TestIdentifiers:

    def test_upper_case(self):
        assert to_identifier("invoiceId") == "INVOICEID"

    def test_non_alphanumeric_replaced(self):
        assert to_identifier("unit-rate x") == "UNIT_RATE_X"

    def test_reserved_word(self):
        assert to_identifier("date") == "DATE_COL"


class TestTopologicalOrder:
    """Kahn's algorithm over the dependency graph."""

    def test_referenced_tables_first(self):
        result = topological_order(build_dependency_graph(BILLING_TABLES))
        assert result.cycle_detected is False
        assert result.order == ["CUSTOMER", "INVOICE", "PAYMENT"]

    def test_independent_tables_keep_declaration_order(self):
        tables = [
            {"name": "b", "columns": [{"id": "INTEGER"}]},
            {"name": "a", "columns": [{"id": "INTEGER"}]},
        ]
        assert topological_order(build_dependency_graph(tables)).order == ["B", "A"]

    def test_cycle_detected(self):
        tables = [
            {"name": "a", "columns": [{"b_id": "INTEGER"}], "foreign_keys": [{"b_id": "REFERENCES b(id)"}]},
            {"name": "b", "columns": [{"a_id": "INTEGER"}], "foreign_keys": [{"a_id": "REFERENCES a(id)"}]},
        ]
        result = topological_order(build_dependency_graph(tables))
        assert result.cycle_detected is True
        assert result.order is None

    def test_graph_not_mutated(self):
        graph = build_dependency_graph(BILLING_TABLES)
        before = dict(graph.in_degree)
        topological_order(graph)
        assert graph.in_degree == before

    def test_external_reference_ignored(self):
        tables = [
            {"name": "meter", "columns": [{"cid": "INTEGER"}], "foreign_keys": [{"cid": "REFERENCES legacy(id)"}]},
        ]
        graph = build_dependency_graph(tables)
        assert graph.in_degree == {"METER": 0}

    def test_bad_reference_format(self):
        tables = [{"name": "t", "columns": [{"c": "INTEGER"}], "foreign_keys": [{"c": "points at x"}]}]
        with pytest.raises(ValueError, match="Invalid foreign key format"):
            build_dependency_graph(tables)


class TestStatements:
    """Generated DDL."""

    def test_create_table(self):
        sql = build_create_table_sql(BILLING_TABLES[0])
        assert sql == "CREATE TABLE PAYMENT (\n  PAYMENTID INTEGER,\n  INVOICEID INTEGER,\n  DATE_COL TEXT\n)"

    def test_create_table_without_columns(self):
        with pytest.raises(ValueError):
            build_create_table_sql({"name": "empty", "columns": []})

    def test_foreign_key_statement(self):
        [stmt] = build_foreign_key_statements(BILLING_TABLES[1])
        assert stmt == (
            "ALTER TABLE INVOICE ADD CONSTRAINT FK_INVOICE_CUSTOMERID_1 "
            "FOREIGN KEY (CUSTOMERID) REFERENCES CUSTOMER(CUSTOMERID)"
        )

    def test_constraint_name_truncated(self):
        table = {
            "name": "customer_feedback_entries",
            "columns": [{"related_invoice_identifier": "INTEGER"}],
            "foreign_keys": [{"related_invoice_identifier": "REFERENCES invoice(id)"}],
        }
        [stmt] = build_foreign_key_statements(table)
        constraint = stmt.split(" ADD CONSTRAINT ")[1].split(" ")[0]
        assert len(constraint) == 30


class TestPlanBootstrap:

    def test_creates_before_constraints(self):
        plan = plan_bootstrap(BILLING_TABLES)
        assert plan.cycle_detected is False
        assert [s.split(" ")[2] for s in plan.create_statements] == ["CUSTOMER", "INVOICE", "PAYMENT"]
        assert len(plan.constraint_statements) == 2
        assert plan.statements == plan.create_statements + plan.constraint_statements

    def test_cycle_falls_back_to_declaration_order(self):
        tables = [
            {"name": "a", "columns": [{"b_id": "INTEGER"}], "foreign_keys": [{"b_id": "REFERENCES b(id)"}]},
            {"name": "b", "columns": [{"a_id": "INTEGER"}], "foreign_keys": [{"a_id": "REFERENCES a(id)"}]},
        ]
        plan = plan_bootstrap(tables)
        assert plan.cycle_detected is True
        assert [s.split(" ")[2] for s in plan.create_statements] == ["A", "B"]
        assert len(plan.constraint_statements) == 2

    def test_duplicate_names(self):
        with pytest.raises(ValueError, match="Duplicate"):
            plan_bootstrap([BILLING_TABLES[2], BILLING_TABLES[2]])


class TestLoadTableSpecs:

    def test_load(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "schema.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"tables": BILLING_TABLES}, f)
            assert load_table_specs(path) == BILLING_TABLES

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_table_specs("/nonexistent/schema.json")

    def test_no_tables_key(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, "schema.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"views": []}, f)
            with pytest.raises(ValueError):
                load_table_specs(path)
