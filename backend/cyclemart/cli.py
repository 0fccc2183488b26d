# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/cyclemart/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (dev shortcut; production uses `flask db upgrade`).
# - python -m flask system seed-demo
#   Insert a demo customer, machine, work order and a few inventory items.
#
# Inventory:
# - python -m flask inventory low-stock
#   List items at or below their minimum stock level.
#
# Invoices:
# - python -m flask invoices mark-overdue
#   Flip unpaid invoices past their due date to overdue.

from decimal import Decimal

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, InventoryItem, SewingMachine, WorkOrder
from .services.document_service import DOCUMENT_WORK_ORDER, next_document_number
from .services.inventory_ledger import InventoryLedger
from .services.invoice_service import InvoiceService, InvoiceSettings
from .time_utils import days_from, utcnow


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the configured database."""
    db.create_all()
    click.echo(f"Tables created for {current_app.config['SQLALCHEMY_DATABASE_URI']}")


DEMO_ITEMS = [
    # sku, name, category, type, cost, price, quantity, minimum_stock
    ("SKU-DEMO-01", "Bobbin case", "Spare parts", "parts", "80.00", "150.00", 25, 5),
    ("SKU-DEMO-02", "Presser foot (zipper)", "Spare parts", "parts", "60.00", "120.00", 3, 5),
    ("SKU-DEMO-03", "Motor belt", "Spare parts", "parts", "45.00", "90.00", 12, 4),
    ("SKU-DEMO-04", "Straight stitch machine", "Machines", "machine", "6500.00", "8200.00", 2, 1),
]


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Idempotent demo data: skipped when the demo customer already exists.
    """
    if db.session.query(Customer).filter_by(phone="9000000001").first():
        click.echo("Demo data already present")
        return

    customer = Customer(first_name="Demo", last_name="Customer", phone="9000000001", city="Rajkot")
    db.session.add(customer)
    db.session.flush()

    machine = SewingMachine(customer_id=customer.id, brand="Usha", model="Janome Dream Stitch")
    db.session.add(machine)
    db.session.flush()

    now = utcnow()
    db.session.add(WorkOrder(
        order_number=next_document_number(db.session, document_type=DOCUMENT_WORK_ORDER, year=now.year),
        customer_id=customer.id,
        machine_id=machine.id,
        problem_description="Skipping stitches, needs timing adjustment",
        status="in_progress",
        priority="normal",
        estimated_cost=Decimal("450.00"),
        due_date=days_from(now, 3),
    ))

    for sku, name, category, item_type, cost, price, quantity, minimum in DEMO_ITEMS:
        if db.session.query(InventoryItem).filter_by(sku=sku).first():
            continue
        db.session.add(InventoryItem(
            sku=sku,
            name=name,
            category=category,
            type=item_type,
            cost=Decimal(cost),
            price=Decimal(price),
            quantity=quantity,
            minimum_stock=minimum,
        ))

    db.session.commit()
    click.echo(f"Seeded demo customer {customer.id} with machine, work order and {len(DEMO_ITEMS)} items")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    items = InventoryLedger(db.session).low_stock()
    if not items:
        click.echo("No items at or below minimum stock.")
        return
    click.echo(f"{'SKU':<16} {'QTY':>5} {'MIN':>5}  NAME")
    for item in items:
        click.echo(f"{item.sku:<16} {item.quantity:>5} {item.minimum_stock:>5}  {item.name}")


@click.group('invoices')
def invoices_group():
    """Invoice maintenance commands."""


@invoices_group.command('mark-overdue')
@with_appcontext
def mark_overdue():
    service = InvoiceService(
        db.session,
        InventoryLedger(db.session),
        InvoiceSettings.from_config(current_app.config),
    )
    changed = service.refresh_overdue()
    click.echo(f"{changed} invoice(s) marked overdue")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(invoices_group)
