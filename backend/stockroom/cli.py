# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db [--superadmin-email root@stockroom.local]
#   Create all tables (idempotent) and make sure a superadmin user exists.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --name "Ada" --email ada@example.com --role admin
#
# Stores:
# - python -m flask stores list
# - python -m flask stores create --admin-id 2 --name "Central" [--credit-limit-cents 500000]
#
# Inventory / credit inspection:
# - python -m flask inventory low-stock [--store-id 1]
# - python -m flask credit report

import click
from flask.cli import with_appcontext

from .errors import StockroomError
from .extensions import db
from .models import User
from .services.access_service import Actor, ROLES, ROLE_SUPERADMIN
from .services import inventory_service, reporting_service, store_service


def _system_actor() -> Actor:
    user = (
        db.session.query(User)
        .filter_by(role=ROLE_SUPERADMIN, is_active=True)
        .order_by(User.id.asc())
        .first()
    )
    if not user:
        raise click.ClickException("No active superadmin. Run 'flask system init-db' first.")
    return Actor.from_user(user)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@click.option('--superadmin-email', default='root@stockroom.local', show_default=True)
@click.option('--superadmin-name', default='Superadmin', show_default=True)
@with_appcontext
def init_db(superadmin_email, superadmin_name):
    """Create tables and the initial superadmin (safe to re-run)."""
    db.create_all()
    existing = db.session.query(User).filter_by(email=superadmin_email).first()
    if existing:
        click.echo(f"PASS Tables ready; superadmin {existing.email} already exists (id={existing.id}).")
        return

    user = User(name=superadmin_name, email=superadmin_email, role=ROLE_SUPERADMIN, is_active=True)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Tables ready; created superadmin {user.email} (id={user.id}).")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init-db' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 72)
    click.echo(f"{'ID':<5} {'Name':<24} {'Email':<28} {'Role':<14} {'Active'}")
    click.echo("=" * 72)
    for user in users:
        click.echo(f"{user.id:<5} {user.name:<24} {user.email:<28} {user.role:<14} {'Yes' if user.is_active else 'No'}")
    click.echo("=" * 72 + "\n")


@users_group.command('create')
@click.option('--name', required=True)
@click.option('--email', required=True)
@click.option('--role', type=click.Choice(ROLES), required=True)
@with_appcontext
def create_user(name, email, role):
    if db.session.query(User).filter_by(email=email).first():
        raise click.ClickException(f"User {email} already exists")
    user = User(name=name, email=email, role=role, is_active=True)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created {role} {email} (id={user.id})")


@click.group('stores')
def stores_group():
    """Store inspection and creation."""


@stores_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include deactivated stores')
@with_appcontext
def list_stores(include_inactive):
    stores = store_service.list_stores(_system_actor(), include_inactive=include_inactive)
    if not stores:
        click.echo("No stores found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Admin':<7} {'Manager':<9} {'Credit':>12} {'Limit':>12}")
    click.echo("=" * 80)
    for store in stores:
        click.echo(
            f"{store.id:<5} {store.name:<30} {store.admin_id:<7} {store.manager_id or '-':<9} "
            f"{store.current_credit_cents:>12} {store.credit_limit_cents:>12}"
        )
    click.echo("=" * 80 + "\n")


@stores_group.command('create')
@click.option('--admin-id', type=int, required=True, help='Owning admin user id')
@click.option('--name', required=True)
@click.option('--address', default=None)
@click.option('--manager-id', type=int, default=None)
@click.option('--credit-limit-cents', type=int, default=0, show_default=True)
@with_appcontext
def create_store_cli(admin_id, name, address, manager_id, credit_limit_cents):
    """Create a store (and its dummy outlet) for an admin."""
    try:
        store = store_service.create_store(
            _system_actor(),
            name=name,
            address=address,
            admin_id=admin_id,
            manager_id=manager_id,
            credit_limit_cents=credit_limit_cents,
        )
    except StockroomError as exc:
        raise click.ClickException(exc.message)
    click.echo(f"PASS Created store {store.name} (id={store.id})")


@click.group('inventory')
def inventory_group():
    """Inventory inspection."""


@inventory_group.command('low-stock')
@click.option('--store-id', type=int, default=None)
@with_appcontext
def low_stock(store_id):
    """List stock entries at or below their reorder level."""
    actor = _system_actor()
    if store_id is not None:
        store_ids = [store_id]
    else:
        store_ids = [store.id for store in store_service.list_stores(actor)]

    rows = []
    for sid in store_ids:
        try:
            rows.extend(inventory_service.list_store_inventory(sid, actor, low_stock_only=True))
        except StockroomError as exc:
            raise click.ClickException(exc.message)

    if not rows:
        click.echo("No low-stock entries.")
        return
    for entry in rows:
        click.echo(
            f"store={entry.store_id:<4} entry={entry.id:<6} {entry.product.sku:<16} "
            f"{entry.location_type}:{entry.location_id:<6} qty={entry.quantity:<6} reorder={entry.reorder_level}"
        )


@click.group('credit')
def credit_group():
    """Credit ledger inspection."""


@credit_group.command('report')
@with_appcontext
def credit_report():
    report = reporting_service.credit_utilization_report(_system_actor())
    for row in report["stores"]:
        pct = "-" if row["utilization_percent"] is None else f"{row['utilization_percent']:.2f}%"
        flag = " OVER LIMIT" if row["over_limit"] else ""
        click.echo(
            f"store {row['store_id']:<4} {row['name']:<30} "
            f"{row['current_credit_cents']:>12}/{row['credit_limit_cents']:<12} {pct}{flag}"
        )
    click.echo(f"Total store credit: {report['total_store_credit_cents']}")
    click.echo(f"Total outlet credit: {report['total_outlet_credit_cents']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(credit_group)
