"""
Repository pattern for data access.

Handles database operations and data persistence logic.

Module-level functions that take a ``conn`` run inside a caller-owned
connection, so several of them can share one transaction. The
``BillingRepository`` methods open and close their own connection.
"""

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from typing import Dict, Iterator, List, Optional

from gridbill.core.reconciler import InvoiceStatus, bill_paid_flag

from .db import DEFAULT_DB_PATH, get_connection
from .models import (
    Bill,
    Customer,
    Feedback,
    Invoice,
    Meter,
    Payment,
    Receipt,
    Tariff,
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS customer (
    customer_id INTEGER PRIMARY KEY AUTOINCREMENT,
    first_name TEXT NOT NULL,
    middle_name TEXT,
    last_name TEXT NOT NULL,
    email TEXT,
    contact_no TEXT,
    address TEXT
);

CREATE TABLE IF NOT EXISTS tariff (
    tariff_id INTEGER PRIMARY KEY AUTOINCREMENT,
    description TEXT NOT NULL,
    rate_per_unit REAL NOT NULL CHECK (rate_per_unit > 0),
    effective_from TEXT,
    effective_to TEXT
);

CREATE TABLE IF NOT EXISTS meter (
    meter_id INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id INTEGER NOT NULL REFERENCES customer(customer_id),
    tariff_id INTEGER REFERENCES tariff(tariff_id),
    meter_type TEXT,
    installation_date TEXT
);

CREATE TABLE IF NOT EXISTS invoice (
    invoice_id INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id INTEGER NOT NULL REFERENCES customer(customer_id),
    invoice_date TEXT NOT NULL,
    base_amount REAL NOT NULL,
    tax REAL NOT NULL,
    grand_total REAL NOT NULL,
    status TEXT NOT NULL DEFAULT 'Pending'
        CHECK (status IN ('Pending', 'Partially Paid', 'Paid')),
    due_date TEXT
);

CREATE TABLE IF NOT EXISTS payment (
    payment_id INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id INTEGER NOT NULL REFERENCES invoice(invoice_id),
    amount_paid REAL NOT NULL CHECK (amount_paid > 0),
    payment_date TEXT NOT NULL,
    payment_mode TEXT NOT NULL,
    transaction_ref TEXT NOT NULL UNIQUE,
    units_consumed REAL,
    notes TEXT
);

CREATE TABLE IF NOT EXISTS bill (
    bill_id INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id INTEGER NOT NULL REFERENCES customer(customer_id),
    meter_id INTEGER REFERENCES meter(meter_id),
    invoice_id INTEGER REFERENCES invoice(invoice_id),
    issue_date TEXT NOT NULL,
    due_date TEXT,
    rate_per_unit REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS feedback (
    feedback_id INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id INTEGER NOT NULL REFERENCES customer(customer_id),
    invoice_id INTEGER REFERENCES invoice(invoice_id),
    text TEXT NOT NULL,
    rating INTEGER CHECK (rating BETWEEN 1 AND 5),
    submitted_at TEXT NOT NULL
);
"""

TABLES = ("customer", "tariff", "meter", "invoice", "payment", "bill", "feedback")

_INVOICE_COLUMNS = (
    "invoice_id, customer_id, invoice_date, base_amount, tax, "
    "grand_total, status, due_date"
)
_PAYMENT_COLUMNS = (
    "payment_id, invoice_id, amount_paid, payment_date, payment_mode, "
    "transaction_ref, units_consumed, notes"
)
_FEEDBACK_COLUMNS = "feedback_id, customer_id, text, submitted_at, rating, invoice_id"


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create all billing tables if they don't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA)
    finally:
        conn.close()


def _to_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    return date.fromisoformat(value[:10])


def _to_iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _row_to_invoice(row) -> Invoice:
    return Invoice(
        invoice_id=row[0],
        customer_id=row[1],
        invoice_date=_to_date(row[2]),
        base_amount=row[3],
        tax=row[4],
        grand_total=row[5],
        status=row[6],
        due_date=_to_date(row[7])
    )


def _row_to_payment(row) -> Payment:
    return Payment(
        payment_id=row[0],
        invoice_id=row[1],
        amount_paid=row[2],
        payment_date=datetime.fromisoformat(row[3]),
        payment_mode=row[4],
        transaction_ref=row[5],
        units_consumed=row[6],
        notes=row[7]
    )


def _row_to_feedback(row) -> Feedback:
    return Feedback(
        feedback_id=row[0],
        customer_id=row[1],
        text=row[2],
        submitted_at=datetime.fromisoformat(row[3]),
        rating=row[4],
        invoice_id=row[5]
    )


def _row_to_customer(row) -> Customer:
    return Customer(
        customer_id=row[0],
        first_name=row[1],
        middle_name=row[2],
        last_name=row[3],
        email=row[4],
        contact_no=row[5],
        address=row[6]
    )


def _row_to_tariff(row) -> Tariff:
    return Tariff(
        tariff_id=row[0],
        description=row[1],
        rate_per_unit=row[2],
        effective_from=_to_date(row[3]),
        effective_to=_to_date(row[4])
    )


# ---------------------------------------------------------------------------
# Statements run on a caller-owned connection
# ---------------------------------------------------------------------------

def fetch_customer(conn: sqlite3.Connection, customer_id: int) -> Optional[Customer]:
    row = conn.execute(
        "SELECT customer_id, first_name, middle_name, last_name, email, contact_no, address "
        "FROM customer WHERE customer_id = ?",
        (customer_id,)
    ).fetchone()
    return _row_to_customer(row) if row else None


def fetch_tariff(conn: sqlite3.Connection, tariff_id: int) -> Optional[Tariff]:
    row = conn.execute(
        "SELECT tariff_id, description, rate_per_unit, effective_from, effective_to "
        "FROM tariff WHERE tariff_id = ?",
        (tariff_id,)
    ).fetchone()
    return _row_to_tariff(row) if row else None


def fetch_invoice(conn: sqlite3.Connection, invoice_id: int) -> Optional[Invoice]:
    row = conn.execute(
        f"SELECT {_INVOICE_COLUMNS} FROM invoice WHERE invoice_id = ?",
        (invoice_id,)
    ).fetchone()
    return _row_to_invoice(row) if row else None


def sum_payments(conn: sqlite3.Connection, invoice_id: int) -> float:
    """Cumulative amount paid against an invoice (0 when none)."""
    row = conn.execute(
        "SELECT COALESCE(SUM(amount_paid), 0) FROM payment WHERE invoice_id = ?",
        (invoice_id,)
    ).fetchone()
    return float(row[0])


def transaction_ref_exists(conn: sqlite3.Connection, transaction_ref: str) -> bool:
    row = conn.execute(
        "SELECT COUNT(*) FROM payment WHERE transaction_ref = ?",
        (transaction_ref,)
    ).fetchone()
    return row[0] > 0


def insert_invoice(
    conn: sqlite3.Connection,
    customer_id: int,
    invoice_date: date,
    base_amount: float,
    tax: float,
    grand_total: float,
    due_date: Optional[date]
) -> int:
    """Insert a Pending invoice and return its identifier."""
    cursor = conn.execute("""
        INSERT INTO invoice
        (customer_id, invoice_date, base_amount, tax, grand_total, status, due_date)
        VALUES (?, ?, ?, ?, ?, 'Pending', ?)
    """, (
        customer_id,
        invoice_date.isoformat(),
        base_amount,
        tax,
        grand_total,
        _to_iso(due_date)
    ))
    return cursor.lastrowid


def update_invoice_due_date(conn: sqlite3.Connection, invoice_id: int, due_date: date) -> None:
    conn.execute(
        "UPDATE invoice SET due_date = ? WHERE invoice_id = ?",
        (due_date.isoformat(), invoice_id)
    )


def update_invoice_status(conn: sqlite3.Connection, invoice_id: int, status: str) -> None:
    conn.execute(
        "UPDATE invoice SET status = ? WHERE invoice_id = ?",
        (status, invoice_id)
    )


def insert_payment(
    conn: sqlite3.Connection,
    invoice_id: int,
    amount_paid: float,
    payment_date: datetime,
    payment_mode: str,
    transaction_ref: str,
    units_consumed: Optional[float] = None,
    notes: Optional[str] = None
) -> int:
    """Append a payment row and return its identifier."""
    cursor = conn.execute("""
        INSERT INTO payment
        (invoice_id, amount_paid, payment_date, payment_mode,
         transaction_ref, units_consumed, notes)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """, (
        invoice_id,
        amount_paid,
        payment_date.isoformat(),
        payment_mode,
        transaction_ref,
        units_consumed,
        notes
    ))
    return cursor.lastrowid


def fetch_payment(conn: sqlite3.Connection, payment_id: int) -> Optional[Payment]:
    row = conn.execute(
        f"SELECT {_PAYMENT_COLUMNS} FROM payment WHERE payment_id = ?",
        (payment_id,)
    ).fetchone()
    return _row_to_payment(row) if row else None


_RECEIPT_SELECT = """
    SELECT p.payment_id, p.invoice_id, p.amount_paid, p.payment_date,
           p.payment_mode, p.transaction_ref,
           i.invoice_date, i.grand_total, i.status,
           c.first_name, c.middle_name, c.last_name,
           c.email, c.contact_no, c.address
    FROM payment p
    JOIN invoice i ON i.invoice_id = p.invoice_id
    JOIN customer c ON c.customer_id = i.customer_id
"""


def _row_to_receipt(row) -> Receipt:
    name = " ".join(part for part in (row[9], row[10], row[11]) if part)
    return Receipt(
        payment_id=row[0],
        invoice_id=row[1],
        amount_paid=row[2],
        payment_date=datetime.fromisoformat(row[3]),
        payment_mode=row[4],
        transaction_ref=row[5],
        invoice_date=_to_date(row[6]),
        invoice_total=row[7],
        invoice_status=row[8],
        customer_name=name,
        customer_email=row[12],
        customer_phone=row[13],
        customer_address=row[14]
    )


def fetch_receipt(conn: sqlite3.Connection, payment_id: int) -> Optional[Receipt]:
    row = conn.execute(
        _RECEIPT_SELECT + " WHERE p.payment_id = ?",
        (payment_id,)
    ).fetchone()
    return _row_to_receipt(row) if row else None


def first_meter_for_customer(conn: sqlite3.Connection, customer_id: int) -> Optional[Meter]:
    row = conn.execute(
        "SELECT meter_id, customer_id, tariff_id, meter_type, installation_date "
        "FROM meter WHERE customer_id = ? ORDER BY meter_id LIMIT 1",
        (customer_id,)
    ).fetchone()
    if row is None:
        return None
    return Meter(
        meter_id=row[0],
        customer_id=row[1],
        tariff_id=row[2],
        meter_type=row[3],
        installation_date=_to_date(row[4])
    )


def latest_bill_id(conn: sqlite3.Connection, customer_id: int) -> Optional[int]:
    row = conn.execute(
        "SELECT bill_id FROM bill WHERE customer_id = ? ORDER BY bill_id DESC LIMIT 1",
        (customer_id,)
    ).fetchone()
    return row[0] if row else None


def insert_bill(
    conn: sqlite3.Connection,
    customer_id: int,
    meter_id: int,
    invoice_id: int,
    issue_date: date,
    due_date: Optional[date],
    rate_per_unit: float
) -> int:
    cursor = conn.execute("""
        INSERT INTO bill
        (customer_id, meter_id, invoice_id, issue_date, due_date, rate_per_unit)
        VALUES (?, ?, ?, ?, ?, ?)
    """, (
        customer_id,
        meter_id,
        invoice_id,
        issue_date.isoformat(),
        _to_iso(due_date),
        rate_per_unit
    ))
    return cursor.lastrowid


def update_bill_due_date(conn: sqlite3.Connection, bill_id: int, due_date: date) -> None:
    conn.execute(
        "UPDATE bill SET due_date = ? WHERE bill_id = ?",
        (due_date.isoformat(), bill_id)
    )


class BillingRepository:
    """Repository for accessing and managing billing data.

    Each method opens its own connection and closes it before returning.
    Multi-step writes go through ``write_transaction`` so they commit or
    roll back as one unit.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    @contextmanager
    def write_transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection holding the database write lock.

        ``BEGIN IMMEDIATE`` takes the write lock before the first read, so
        a read-check-write sequence inside the block cannot interleave with
        another writer. Concurrent callers wait up to the busy timeout.
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.commit()
            except BaseException:
                conn.rollback()
                raise
        finally:
            conn.close()

    # -- customers / meters ------------------------------------------------

    def add_customer(
        self,
        first_name: str,
        last_name: str,
        middle_name: Optional[str] = None,
        email: Optional[str] = None,
        contact_no: Optional[str] = None,
        address: Optional[str] = None
    ) -> Customer:
        with self.write_transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO customer
                (first_name, middle_name, last_name, email, contact_no, address)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (first_name, middle_name, last_name, email, contact_no, address))
            return fetch_customer(conn, cursor.lastrowid)

    def find_customer_by_email(self, email: str) -> Optional[Customer]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT customer_id, first_name, middle_name, last_name, email, contact_no, address "
                "FROM customer WHERE email = ? ORDER BY customer_id LIMIT 1",
                (email,)
            ).fetchone()
            return _row_to_customer(row) if row else None
        finally:
            conn.close()

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        conn = get_connection(self.db_path)
        try:
            return fetch_customer(conn, customer_id)
        finally:
            conn.close()

    def add_meter(
        self,
        customer_id: int,
        tariff_id: Optional[int] = None,
        meter_type: Optional[str] = None,
        installation_date: Optional[date] = None
    ) -> Meter:
        with self.write_transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO meter (customer_id, tariff_id, meter_type, installation_date)
                VALUES (?, ?, ?, ?)
            """, (customer_id, tariff_id, meter_type, _to_iso(installation_date)))
            return Meter(
                meter_id=cursor.lastrowid,
                customer_id=customer_id,
                tariff_id=tariff_id,
                meter_type=meter_type,
                installation_date=installation_date
            )

    # -- tariffs -----------------------------------------------------------

    def add_tariff(
        self,
        description: str,
        rate_per_unit: float,
        effective_from: Optional[date] = None,
        effective_to: Optional[date] = None
    ) -> Tariff:
        with self.write_transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO tariff (description, rate_per_unit, effective_from, effective_to)
                VALUES (?, ?, ?, ?)
            """, (description, rate_per_unit, _to_iso(effective_from), _to_iso(effective_to)))
            return fetch_tariff(conn, cursor.lastrowid)

    def get_tariff(self, tariff_id: int) -> Optional[Tariff]:
        conn = get_connection(self.db_path)
        try:
            return fetch_tariff(conn, tariff_id)
        finally:
            conn.close()

    def find_tariff_by_description(self, description: str) -> Optional[Tariff]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT tariff_id, description, rate_per_unit, effective_from, effective_to "
                "FROM tariff WHERE description = ? ORDER BY tariff_id LIMIT 1",
                (description,)
            ).fetchone()
            return _row_to_tariff(row) if row else None
        finally:
            conn.close()

    def list_tariffs(self) -> List[Tariff]:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "SELECT tariff_id, description, rate_per_unit, effective_from, effective_to "
                "FROM tariff ORDER BY tariff_id"
            )
            return [_row_to_tariff(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    # -- invoices / payments -----------------------------------------------

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        conn = get_connection(self.db_path)
        try:
            return fetch_invoice(conn, invoice_id)
        finally:
            conn.close()

    def list_invoices_for_customer(self, customer_id: int) -> List[Invoice]:
        """Customer's invoices, newest first."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_INVOICE_COLUMNS} FROM invoice WHERE customer_id = ? "
                "ORDER BY invoice_date DESC, invoice_id DESC",
                (customer_id,)
            )
            return [_row_to_invoice(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_payments_for_invoice(self, invoice_id: int) -> List[Payment]:
        """Payment history for an invoice, newest first."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_PAYMENT_COLUMNS} FROM payment WHERE invoice_id = ? "
                "ORDER BY payment_date DESC, payment_id DESC",
                (invoice_id,)
            )
            return [_row_to_payment(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_receipt(self, payment_id: int) -> Optional[Receipt]:
        conn = get_connection(self.db_path)
        try:
            return fetch_receipt(conn, payment_id)
        finally:
            conn.close()

    def list_receipts(self) -> List[Receipt]:
        """Every payment with its invoice and customer, newest first."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                _RECEIPT_SELECT + " ORDER BY p.payment_date DESC, p.payment_id DESC"
            )
            return [_row_to_receipt(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_total_paid(self, invoice_id: int) -> float:
        conn = get_connection(self.db_path)
        try:
            return sum_payments(conn, invoice_id)
        finally:
            conn.close()

    def get_payment_stats(self) -> Dict[str, float]:
        """Get payment statistics across all invoices.

        Returns:
            Dictionary with total payment count, amount collected, and the
            number of invoices still awaiting (full) payment
        """
        conn = get_connection(self.db_path)
        try:
            total_payments, total_collected = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(amount_paid), 0) FROM payment"
            ).fetchone()
            open_invoices = conn.execute("""
                SELECT COUNT(*)
                FROM invoice i
                WHERE i.status IN ('Pending', 'Partially Paid')
                  AND (SELECT COALESCE(SUM(p.amount_paid), 0)
                       FROM payment p WHERE p.invoice_id = i.invoice_id) < i.grand_total
            """).fetchone()[0]
            return {
                "total_payments": total_payments,
                "total_amount_collected": float(total_collected),
                "pending_invoices": open_invoices
            }
        finally:
            conn.close()

    # -- bills -------------------------------------------------------------

    def list_bills_for_customer(self, customer_id: int) -> List[Bill]:
        """Legacy bill rows with ``is_paid`` derived from the invoice status."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT b.bill_id, b.customer_id, b.issue_date, b.due_date,
                       b.rate_per_unit, b.meter_id, b.invoice_id, i.status
                FROM bill b
                LEFT JOIN invoice i ON i.invoice_id = b.invoice_id
                WHERE b.customer_id = ?
                ORDER BY b.bill_id
            """, (customer_id,))
            return [
                Bill(
                    bill_id=row[0],
                    customer_id=row[1],
                    issue_date=_to_date(row[2]),
                    due_date=_to_date(row[3]),
                    rate_per_unit=row[4],
                    meter_id=row[5],
                    invoice_id=row[6],
                    is_paid=row[7] is not None and bill_paid_flag(InvoiceStatus(row[7]))
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    # -- feedback ----------------------------------------------------------

    def add_feedback(
        self,
        customer_id: int,
        text: str,
        rating: Optional[int] = None,
        invoice_id: Optional[int] = None
    ) -> Feedback:
        submitted_at = datetime.now()
        with self.write_transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO feedback (customer_id, invoice_id, text, rating, submitted_at)
                VALUES (?, ?, ?, ?, ?)
            """, (customer_id, invoice_id, text, rating, submitted_at.isoformat()))
            return Feedback(
                feedback_id=cursor.lastrowid,
                customer_id=customer_id,
                text=text,
                submitted_at=submitted_at,
                rating=rating,
                invoice_id=invoice_id
            )

    def list_feedback_for_customer(self, customer_id: int) -> List[Feedback]:
        """A customer's feedback, newest first."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_FEEDBACK_COLUMNS} FROM feedback WHERE customer_id = ? "
                "ORDER BY submitted_at DESC, feedback_id DESC",
                (customer_id,)
            )
            return [_row_to_feedback(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def list_feedback(self) -> List[Feedback]:
        """All feedback, newest first."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_FEEDBACK_COLUMNS} FROM feedback "
                "ORDER BY submitted_at DESC, feedback_id DESC"
            )
            return [_row_to_feedback(row) for row in cursor.fetchall()]
        finally:
            conn.close()


# Global repository instance
_default_repository: Optional[BillingRepository] = None


def get_repository(db_path: str = DEFAULT_DB_PATH) -> BillingRepository:
    """Get a repository instance.

    Returns the cached instance while the path is unchanged.

    Args:
        db_path: Path to SQLite database file

    Returns:
        An instance of BillingRepository
    """
    global _default_repository
    if _default_repository is None or _default_repository.db_path != db_path:
        _default_repository = BillingRepository(db_path)
    return _default_repository
