# Overview: Flask CLI command groups for bootstrap, catalogue seeding and order maintenance.

# backend/checkout/cli.py
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
# Catalogue:
# - python -m flask catalog seed
#   Insert the sample products (skips names that already exist).
# - python -m flask catalog list
#   List products with inventory and variant stock.
#
# Orders:
# - python -m flask orders list [--status approved] [--limit 20]
# - python -m flask orders set-status ORD-XXXX-XXXXX refunded
#   Administrative transition (applies stock effects).
# - python -m flask orders resend-email ORD-XXXX-XXXXX

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, ORDER_STATUSES
from .services.catalog_service import seed_catalog
from .services.inventory_service import InsufficientInventoryError, ProductNotFoundError
from .services.order_service import list_orders, resend_order_email
from .services.order_status import InvalidStatusTransitionError, OrderNotFoundError, update_order_status
from .validation import ValidationError, validate_order_number


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
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

    click.echo("PASS Database reset complete. Run 'python -m flask catalog seed' to load sample products.")


@click.group('catalog')
def catalog_group():
    """Product catalogue commands."""


@catalog_group.command('seed')
@with_appcontext
def seed_catalog_cli():
    """Insert sample products (idempotent by name)."""
    created = seed_catalog()
    if not created:
        click.echo("SKIP Sample products already present.")
        return
    for product in created:
        click.echo(f"PASS Created {product.name} (id={product.id}, inventory={product.inventory})")


@catalog_group.command('list')
@with_appcontext
def list_catalog_cli():
    """List all products with stock counters."""
    products = db.session.query(Product).order_by(Product.id).all()
    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Name':<40} {'Price':>10} {'Inventory':>10} {'Active':<8} {'Variants'}")
    click.echo("=" * 100)
    for product in products:
        variants = ", ".join(f"{v.type}:{v.value}={v.stock}" for v in product.variants) or "none"
        active = "Yes" if product.is_active else "No"
        click.echo(
            f"{product.id:<5} {product.name[:40]:<40} {product.price_cents / 100:>10.2f} "
            f"{product.inventory:>10} {active:<8} {variants}"
        )
    click.echo("=" * 100 + "\n")


@click.group('orders')
def orders_group():
    """Order inspection and maintenance."""


@orders_group.command('list')
@click.option('--status', type=click.Choice(ORDER_STATUSES), help='Filter by status')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_orders_cli(status, limit):
    """List recent orders, newest first."""
    orders = list_orders(status=status, limit=limit)
    if not orders:
        click.echo("No orders found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'Order':<26} {'Status':<10} {'Product':<30} {'Qty':>4} {'Total':>10} {'Email':<6}")
    click.echo("=" * 100)
    for order in orders:
        click.echo(
            f"{order.order_number:<26} {order.status:<10} {order.product_name[:30]:<30} "
            f"{order.quantity:>4} {order.total_cents / 100:>10.2f} {'sent' if order.email_sent else '-':<6}"
        )
    click.echo("=" * 100 + "\n")


@orders_group.command('set-status')
@click.argument('order_number')
@click.argument('status', type=click.Choice(ORDER_STATUSES))
@with_appcontext
def set_status_cli(order_number, status):
    """Change an order's status (applies stock effects)."""
    try:
        change = update_order_status(validate_order_number(order_number), status)
    except (
        ValidationError,
        OrderNotFoundError,
        ProductNotFoundError,
        InvalidStatusTransitionError,
        InsufficientInventoryError,
    ) as e:
        raise click.ClickException(str(e))

    if change.changed:
        click.echo(f"PASS {change.order.order_number}: {change.old_status} -> {change.new_status}")
    else:
        click.echo(f"SKIP {change.order.order_number} already {change.new_status}")


@orders_group.command('resend-email')
@click.argument('order_number')
@with_appcontext
def resend_email_cli(order_number):
    """Re-send the notification for an order's current status."""
    try:
        sent = resend_order_email(validate_order_number(order_number))
    except (ValidationError, OrderNotFoundError) as e:
        raise click.ClickException(str(e))
    click.echo("PASS Email sent." if sent else "WARN No email sent (see logs).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(orders_group)
