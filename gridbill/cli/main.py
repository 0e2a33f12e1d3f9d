"""
CLI interface for GridBill.

Provides command-line access to billing operations.
"""

import sys
from dataclasses import replace
from datetime import date
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gridbill.config.loader import AppConfig, DatabaseConfig, load_config
from gridbill.config.log_setup import configure_logging
from gridbill.core.billing import customer_invoices, invoice_detail, issue_invoice
from gridbill.core.errors import BillingError
from gridbill.core.ledger import PaymentLedger
from gridbill.core.schema_order import load_table_specs, plan_bootstrap
from gridbill.core.tariffs import list_tariffs
from gridbill.demo.seed_demo_data import seed_demo_data
from gridbill.storage.repository import get_repository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1

_state = {"config": None}


def _config() -> AppConfig:
    if _state["config"] is None:
        _state["config"] = load_config()
    return _state["config"]


def _repository():
    config = _config()
    initialize_schema(config.database.path)
    return get_repository(config.database.path)


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {escape(message)}")
    sys.exit(EXIT_CODE_FAIL)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file"
    ),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="Override the database path"
    )
):
    """GridBill CLI."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        _fail(str(e))
    if db:
        config = replace(config, database=DatabaseConfig(path=db))
    _state["config"] = config
    configure_logging(config.logging.numeric_level)
    if ctx.invoked_subcommand is None:
        console.print("GridBill - Use --help to see available commands")


@app.command()
def init():
    """Initialize the billing database."""
    try:
        initialize_schema(_config().database.path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_OK)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status():
    """Show database location and payment summary."""
    repository = _repository()
    stats = repository.get_payment_stats()
    console.print(f"[green]✓[/] Database: {repository.db_path}")
    console.print(f"Payments recorded: {stats['total_payments']}")
    console.print(f"Amount collected: {_format_currency(stats['total_amount_collected'])}")
    console.print(f"Invoices awaiting payment: {stats['pending_invoices']}")


@app.command("seed-demo")
def seed_demo():
    """Insert demo tariffs and a demo customer."""
    customer = seed_demo_data(_config().database.path)
    console.print(f"[green]✓[/] Demo data inserted (customer {customer.customer_id})")


@app.command()
def tariffs():
    """List tariffs."""
    rows = list_tariffs(_repository())
    if not rows:
        console.print("[dim]No tariffs defined.[/]")
        return
    table = Table(title="Tariffs")
    table.add_column("ID", justify="right")
    table.add_column("Description")
    table.add_column("Rate/unit", justify="right")
    table.add_column("Effective")
    for t in rows:
        window = f"{t.effective_from or '-'} → {t.effective_to or '-'}"
        table.add_row(str(t.tariff_id), t.description, f"{t.rate_per_unit:,.2f}", window)
    console.print(table)


@app.command("add-tariff")
def add_tariff(
    description: str = typer.Argument(..., help="Tariff name"),
    rate: float = typer.Argument(..., help="Rate per unit"),
):
    """Add a tariff."""
    if rate <= 0:
        _fail("Rate per unit must be > 0")
    tariff = _repository().add_tariff(description, rate, effective_from=date.today())
    console.print(f"[green]✓[/] Tariff {tariff.tariff_id} added: {tariff.description} @ {rate:,.2f}")


@app.command("add-customer")
def add_customer(
    first_name: str = typer.Argument(...),
    last_name: str = typer.Argument(...),
    email: Optional[str] = typer.Option(None, "--email"),
    phone: Optional[str] = typer.Option(None, "--phone"),
    address: Optional[str] = typer.Option(None, "--address"),
    tariff_id: Optional[int] = typer.Option(None, "--tariff", help="Install a meter on this tariff"),
):
    """Add a customer, optionally with a meter."""
    repository = _repository()
    customer = repository.add_customer(
        first_name=first_name,
        last_name=last_name,
        email=email,
        contact_no=phone,
        address=address
    )
    if tariff_id is not None:
        repository.add_meter(customer.customer_id, tariff_id=tariff_id, installation_date=date.today())
    console.print(f"[green]✓[/] Customer {customer.customer_id} added: {customer.full_name}")


@app.command()
def issue(
    customer_id: int = typer.Argument(..., help="Customer to bill"),
    units: float = typer.Argument(..., help="Units consumed"),
    tariff_id: int = typer.Argument(..., help="Tariff to price the units"),
    invoice_id: Optional[int] = typer.Option(None, "--invoice", help="Existing invoice to update"),
    due_date: Optional[str] = typer.Option(None, "--due", help="Due date (YYYY-MM-DD)"),
):
    """Issue a new invoice (or update an existing one's due date)."""
    try:
        issued = issue_invoice(
            _repository(),
            customer_id=customer_id,
            units_consumed=units,
            tariff_id=tariff_id,
            invoice_id=invoice_id,
            due_date=due_date,
            default_due_days=_config().billing.default_due_days
        )
    except BillingError as e:
        _fail(e.message)

    calc = issued.calculated
    console.print(f"\n[bold]Invoice {issued.invoice.invoice_id}[/bold] ({issued.invoice.status})")
    console.print("-" * 40)
    console.print(f"Tariff: {calc.tariff_description} @ {calc.unit_rate:,.2f}/unit")
    console.print(f"Units consumed: {calc.units_consumed:,.2f}")
    console.print(f"Base amount: {_format_currency(calc.base_amount)}")
    console.print(f"Tax: {_format_currency(calc.tax)}")
    console.print(f"Grand total: {_format_currency(calc.grand_total)}")
    console.print(f"Due: {issued.invoice.due_date}")


@app.command()
def pay(
    invoice_id: int = typer.Argument(..., help="Invoice to pay"),
    amount: float = typer.Argument(..., help="Amount paid"),
    transaction_ref: str = typer.Option(..., "--ref", "-r", help="Unique transaction reference"),
    mode: str = typer.Option("Other", "--mode", "-m", help="Payment mode"),
):
    """Record a payment against an invoice."""
    try:
        result = PaymentLedger(_repository()).record_payment(
            invoice_id=invoice_id,
            amount=amount,
            mode=mode,
            transaction_ref=transaction_ref
        )
    except BillingError as e:
        _fail(e.message)

    _print_receipt(result.receipt)


@app.command()
def receipt(payment_id: int = typer.Argument(..., help="Payment to show")):
    """Show the receipt for a recorded payment."""
    found = _repository().get_receipt(payment_id)
    if found is None:
        _fail(f"Payment {payment_id} not found")
    _print_receipt(found)


def _print_receipt(receipt) -> None:
    console.print("\n[bold]Payment Receipt[/bold]")
    console.print("-" * 40)
    console.print(f"Payment: {receipt.payment_id} ({receipt.payment_mode}, ref {receipt.transaction_ref})")
    console.print(f"Customer: {receipt.customer_name}")
    console.print(f"Invoice: {receipt.invoice_id} total {_format_currency(receipt.invoice_total)}")
    console.print(f"Amount paid: {_format_currency(receipt.amount_paid)}")
    console.print(f"Invoice status: {receipt.invoice_status}")


@app.command()
def invoice(invoice_id: int = typer.Argument(..., help="Invoice to show")):
    """Show an invoice with its payment history."""
    try:
        detail = invoice_detail(_repository(), invoice_id)
    except BillingError as e:
        _fail(e.message)

    inv = detail.summary.invoice
    console.print(f"\n[bold]Invoice {inv.invoice_id}[/bold] ({inv.status})")
    console.print("-" * 40)
    console.print(f"Issued: {inv.invoice_date}  Due: {inv.due_date or '-'}")
    console.print(f"Grand total: {_format_currency(inv.grand_total)}")
    console.print(f"Paid: {_format_currency(detail.summary.amount_paid)}")
    console.print(f"Outstanding: {_format_currency(detail.summary.outstanding)}")
    if detail.payments:
        table = Table(title="Payments")
        table.add_column("ID", justify="right")
        table.add_column("Date")
        table.add_column("Mode")
        table.add_column("Reference")
        table.add_column("Amount", justify="right")
        for p in detail.payments:
            table.add_row(
                str(p.payment_id),
                p.payment_date.strftime("%Y-%m-%d"),
                p.payment_mode,
                p.transaction_ref,
                _format_currency(p.amount_paid)
            )
        console.print(table)


@app.command()
def invoices(customer_id: int = typer.Argument(..., help="Customer")):
    """List a customer's invoices."""
    summaries = customer_invoices(_repository(), customer_id)
    if not summaries:
        console.print("[dim]No invoices found.[/]")
        return
    table = Table(title=f"Invoices for customer {customer_id}")
    table.add_column("ID", justify="right")
    table.add_column("Date")
    table.add_column("Status")
    table.add_column("Total", justify="right")
    table.add_column("Outstanding", justify="right")
    for s in summaries:
        table.add_row(
            str(s.invoice.invoice_id),
            str(s.invoice.invoice_date),
            s.invoice.status,
            _format_currency(s.invoice.grand_total),
            _format_currency(s.outstanding)
        )
    console.print(table)


@app.command("schema-plan")
def schema_plan(path: str = typer.Argument(..., help="JSON file with table definitions")):
    """Print the DDL to bootstrap a schema from a JSON description."""
    try:
        plan = plan_bootstrap(load_table_specs(path))
    except (FileNotFoundError, ValueError) as e:
        _fail(str(e))

    if plan.cycle_detected:
        console.print("[yellow]Circular dependency detected; tables created in declaration order.[/]")
    for stmt in plan.statements:
        console.print(f"{stmt};", markup=False, highlight=False)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
):
    """Run the HTTP API."""
    import uvicorn

    from gridbill.api import create_app

    config = _config()
    uvicorn.run(
        create_app(config),
        host=host or config.api.host,
        port=port or config.api.port
    )


def _format_currency(amount: float) -> str:
    """Format currency with thousands separators."""
    return f"₹{amount:,.2f}"


if __name__ == "__main__":
    app()
