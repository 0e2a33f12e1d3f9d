"""
Core modules for GridBill.

This package contains the billing core: tariff lookup, invoice calculation,
the payment ledger, invoice status reconciliation, and schema bootstrap
planning.
"""
