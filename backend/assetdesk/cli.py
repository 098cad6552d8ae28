# Overview: Flask CLI command groups for bootstrap, demo data, and inspection.

# backend/assetdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use "flask db upgrade" for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Add a handful of demo assets and one sale invoice.
#
# Invoice inspection:
# - python -m flask invoices show INV-2026-0001
#   Print an invoice with its line items and the movements it produced.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import AppError
from .extensions import db
from .models import Asset, Movement
from .services import asset_service, invoice_service


DEMO_ASSETS = [
    {"name": "Office Chair", "category": "Furniture", "unit_price": 500, "quantity": 10, "supplier": "Demo Supplies", "location": "HQ"},
    {"name": "Laptop", "category": "Electronics", "serial": "DEMO-LT-0001", "unit_price": 85000, "quantity": 3, "supplier": "Demo Supplies", "location": "HQ"},
    {"name": "Kettle", "category": "Kitchen Accessories", "unit_price": 1200, "quantity": 4, "location": "Pantry"},
    {"name": "Wall Art", "category": "Interior", "unit_price": 3000, "quantity": 2, "location": "Lobby"},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Add demo assets (skipping ones that already exist) and one sale invoice."""
    created = []
    for payload in DEMO_ASSETS:
        try:
            created.append(asset_service.create_asset(dict(payload)))
            click.echo(f"  + {payload['name']}")
        except AppError as e:
            click.echo(f"  - {payload['name']}: {e.message}")

    if not created:
        click.echo("SKIP Demo assets already present; no invoice created.")
        return

    first = created[0]
    invoice = invoice_service.create_invoice(
        {
            "type": "sale",
            "buyer": "Demo Customer",
            "items": [{"asset_id": first.id, "quantity": 1, "unit_price": float(first.unit_price)}],
            "vat": 5,
            "paid_amount": float(first.unit_price) * 2,
        },
        number_prefix=current_app.config["INVOICE_NUMBER_PREFIX"],
        number_pad=current_app.config["INVOICE_NUMBER_PAD"],
    )
    click.echo(f"PASS Seeded {len(created)} assets and invoice {invoice.invoice_number}.")


@click.group('invoices')
def invoices_group():
    """Invoice inspection commands."""


@invoices_group.command('show')
@click.argument('invoice_number')
@with_appcontext
def show_invoice(invoice_number):
    """Print an invoice, its items and the movements it produced."""
    invoice = invoice_service.find_by_number(invoice_number)
    if invoice is None:
        raise click.ClickException(f"Invoice {invoice_number} not found")

    click.echo(f"{invoice.invoice_number}  {invoice.type}  {invoice.party_name}  {invoice.created_at}")
    for line in invoice.lines:
        click.echo(f"  {line.position}. {line.name} (asset {line.asset_id}) x{line.quantity} @ {line.unit_price} = {line.total}")
    click.echo(
        f"  subtotal {invoice.subtotal}  discount {invoice.discount}  vat {invoice.vat}% ({invoice.vat_amount})"
    )
    click.echo(f"  grand total {invoice.grand_total}  paid {invoice.paid_amount}  returned {invoice.returned_amount}")

    movements = (
        db.session.query(Movement)
        .filter(Movement.invoice_id == invoice.id)
        .order_by(Movement.id.asc())
        .all()
    )
    click.echo(f"  movements: {len(movements)}")
    for mv in movements:
        still_there = db.session.get(Asset, mv.asset_id) is not None
        suffix = "" if still_there else " [asset deleted]"
        click.echo(f"    {mv.action} {mv.quantity} x {mv.asset_name}{suffix}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(invoices_group)
