# Overview: Flask CLI command groups for bootstrap, order numbering, status events, and stock.

# backend/catering/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Orders:
# - python -m flask orders next-number [--prefix KA]
#   Show the number the next order would get (does not reserve it).
# - python -m flask orders resync-numbers --prefix KA
#   Move the counter past numbers already used by stored orders.
# - python -m flask orders events [--limit 50]
#   List status transitions not yet dispatched to notifications.
# - python -m flask orders mark-dispatched 12 13 14
#   Mark status events as dispatched.
#
# Stock:
# - python -m flask stock restock 7 --quantity 10 [--unit-cost 4.50]
#   Add stock (weighted-average cost when --unit-cost > 0).
# - python -m flask stock low
#   List active items below their minimum quantity.

import click
from flask.cli import with_appcontext

from .errors import CateringError
from .extensions import db
from .services import order_number_service, status_event_service, stock_inventory_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete.")


@click.group('orders')
def orders_group():
    """Order numbering and status event commands."""


@orders_group.command('next-number')
@click.option('--prefix', default=None, help='Two-letter prefix (defaults to ORDER_NUMBER_PREFIX)')
@with_appcontext
def next_number(prefix):
    """Show the next order number without reserving it."""
    try:
        click.echo(order_number_service.peek_next_order_number(prefix))
    except CateringError as e:
        raise click.ClickException(str(e))


@orders_group.command('resync-numbers')
@click.option('--prefix', required=True, help='Two-letter prefix')
@with_appcontext
def resync_numbers(prefix):
    """Move the counter past every number already used."""
    try:
        next_value = order_number_service.resync_sequence(prefix)
    except CateringError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Next number for {order_number_service.normalize_prefix(prefix)}: {next_value}")


@orders_group.command('events')
@click.option('--limit', default=50, show_default=True, type=int)
@with_appcontext
def list_events(limit):
    """List undispatched status events."""
    events = status_event_service.pending_status_events(limit=limit)
    if not events:
        click.echo("No pending status events.")
        return
    for ev in events:
        click.echo(f"{ev.id:>6}  order={ev.order_id:<6} {ev.previous_status} -> {ev.new_status}")


@orders_group.command('mark-dispatched')
@click.argument('event_ids', nargs=-1, type=int, required=True)
@with_appcontext
def mark_dispatched(event_ids):
    """Mark status events as dispatched."""
    count = status_event_service.mark_dispatched(list(event_ids))
    click.echo(f"PASS {count} event(s) marked dispatched.")


@click.group('stock')
def stock_group():
    """Stock inventory commands."""


@stock_group.command('restock')
@click.argument('item_id', type=int)
@click.option('--quantity', required=True, type=str, help='Quantity to add')
@click.option('--unit-cost', default=None, type=str, help='Incoming unit cost')
@with_appcontext
def restock(item_id, quantity, unit_cost):
    """Add stock to an item."""
    try:
        item = stock_inventory_service.restock_stock_item(item_id, quantity=quantity, unit_cost=unit_cost)
    except CateringError as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS {item.name}: qty={item.quantity} unit_cost={item.unit_cost} total_value={item.total_value}"
    )


@stock_group.command('low')
@with_appcontext
def low_stock():
    """List active items below their minimum quantity."""
    items = stock_inventory_service.list_low_stock()
    if not items:
        click.echo("No items below minimum.")
        return
    for item in items:
        click.echo(f"{item.id:>6}  {item.name:<30} {item.quantity} / min {item.minimum_quantity} {item.unit}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(stock_group)
