# Overview: Flask CLI command groups for bootstrap, owner tokens, and stock inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Owner accounts:
# - python -m flask owners create --name "Ali Traders" --email ali@example.com --currency Rs
#   Create an owner and print its API token (shown once).
# - python -m flask owners list
#   List owners.
# - python -m flask owners rotate-token 1
#   Issue a new token for owner 1; the old token stops working.
#
# Stock:
# - python -m flask stock summary --owner-id 1
#   Stock value, purchase value and partner dues, then one line per product.
# - python -m flask stock adjust --owner-id 1 --product-id 3 --type received_new_stock --quantity 10
#   Apply one stock adjustment from the command line.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import owner_service
from .services.inventory_service import InventoryError, adjust_stock
from .services.reporting_service import product_stock_report, stock_summary
from .validation import ADJUSTMENT_TYPES


def _money(cents: int | None) -> str:
    if cents is None:
        return "--"
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the inventory log!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@click.group('owners')
def owners_group():
    """Business owner accounts and API tokens."""


@owners_group.command('create')
@click.option('--name', prompt=True, help='Business name')
@click.option('--email', default=None, help='Contact email')
@click.option('--currency', default=None, help='Currency symbol (defaults to DEFAULT_CURRENCY)')
@with_appcontext
def create_owner(name, email, currency):
    """Create an owner and print its API token."""
    try:
        owner, token = owner_service.create_owner(name, email=email, currency=currency)
    except owner_service.OwnerError as e:
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(f"PASS Created owner: {owner.name} (ID: {owner.id}, Currency: {owner.currency})")
    click.echo(f"TOKEN {token}")
    click.echo("WARN The token is shown only once. Store it safely.")


@owners_group.command('list')
@with_appcontext
def list_owners():
    """List all owners."""
    owners = owner_service.list_owners()

    if not owners:
        click.echo("No owners found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Currency':<10} {'Active'}")
    click.echo("="*70)
    for owner in owners:
        active_str = "Yes" if owner.is_active else "No"
        click.echo(f"{owner.id:<5} {owner.name:<30} {owner.currency:<10} {active_str}")
    click.echo("="*70 + "\n")


@owners_group.command('rotate-token')
@click.argument('owner_id', type=int)
@with_appcontext
def rotate_token(owner_id):
    """Issue a new API token for an owner."""
    try:
        token = owner_service.rotate_token(owner_id)
    except owner_service.OwnerError as e:
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(f"PASS Token rotated for owner {owner_id}")
    click.echo(f"TOKEN {token}")


@click.group('stock')
def stock_group():
    """Stock inspection and adjustments."""


@stock_group.command('summary')
@click.option('--owner-id', type=int, required=True, help='Owner ID')
@click.option('--include-archived', is_flag=True, help='Also list archived products')
@with_appcontext
def summary(owner_id, include_archived):
    """Print stock totals and the per-product report."""
    totals = stock_summary(owner_id)
    rows = product_stock_report(owner_id, include_archived=include_archived)

    click.echo(f"Products:              {totals['product_count']}")
    click.echo(f"Total stock value:     {_money(totals['total_stock_value_cents'])}")
    click.echo(f"My stock (purchase):   {_money(totals['my_stock_purchase_value_cents'])}")
    click.echo(f"Partner dues:          {_money(totals['total_partner_dues_cents'])}")

    if not rows:
        click.echo("No products found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<30} {'My':>8} {'Partner':>8} {'Sold':>8} {'Partner due':>14}")
    click.echo("="*90)
    for row in rows:
        click.echo(
            f"{row['product_id']:<5} {row['name'][:30]:<30} {row['my_stock']:>8} "
            f"{row['partner_stock']:>8} {row['sold_quantity']:>8} {_money(row['partner_due_cents']):>14}"
        )
    click.echo("="*90 + "\n")


@stock_group.command('adjust')
@click.option('--owner-id', type=int, required=True, help='Owner ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--type', 'adjustment_type', type=click.Choice(ADJUSTMENT_TYPES), required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--sale-price-cents', type=int, default=None, help='Unit sale price (sold_* only)')
@click.option('--paid', is_flag=True, help='Partner paid on the spot (sold_to_partner only)')
@with_appcontext
def adjust(owner_id, product_id, adjustment_type, quantity, sale_price_cents, paid):
    """Apply one stock adjustment."""
    try:
        tx = adjust_stock(
            owner_id=owner_id,
            product_id=product_id,
            adjustment_type=adjustment_type,
            quantity=quantity,
            sale_price_cents=sale_price_cents if adjustment_type != "received_new_stock" else None,
            is_paid=paid if adjustment_type == "sold_to_partner" else None,
        )
    except InventoryError as e:
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(
        f"PASS {tx.reason}: {tx.product_name} my {tx.change_my_stock:+d}, "
        f"partner {tx.change_partner_stock:+d} (transaction {tx.id})"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(owners_group)
    app.cli.add_command(stock_group)
