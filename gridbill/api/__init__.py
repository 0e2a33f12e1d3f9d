"""
HTTP API for GridBill.

Exposes invoice issuance and payment recording over FastAPI.
"""

from .app import create_app

__all__ = ["create_app"]
