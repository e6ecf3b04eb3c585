# Overview: Flask CLI command groups for bootstrap, stock and transfer operations.

# backend/hotelops/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Directory:
# - python -m flask departments create --code BAR --name "Main Bar"
# - python -m flask departments add-section BAR --name "Pool Bar" [--slug pool]
# - python -m flask departments list
#
# Stock:
# - python -m flask stock create-item --name "Cola 330ml" --type drink --price 250
# - python -m flask stock restock --scope BAR --item-id 1 --quantity 24 [--reference PO-88]
# - python -m flask stock show --scope BAR:pool
# - python -m flask stock movements [--item-id 1] [--reference TRF-000001] [--limit 20]
#
# Extras:
# - python -m flask extras create --name "Lime wedge" [--tracked] [--price 0]
# - python -m flask extras allocate --extra-id 1 --scope BAR:pool [--quantity 50]
#
# Transfers:
# - python -m flask transfers approve 3

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import NotFoundError, TransientConflictError, ValidationError
from .services import directory_service, extras_service, stock_service, transfer_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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


# =============================================================================
# Departments
# =============================================================================

@click.group('departments')
def departments_group():
    """Department and section directory."""


@departments_group.command('create')
@click.option('--code', required=True, help='Department code, e.g. BAR')
@click.option('--name', required=True, help='Display name')
@click.option('--description', default=None)
@with_appcontext
def create_department_cli(code, name, description):
    try:
        department = directory_service.create_department(code, name, description)
    except ValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created department {department.code} (ID: {department.id})")


@departments_group.command('add-section')
@click.argument('department_code')
@click.option('--name', required=True)
@click.option('--slug', default=None, help='Defaults to a slug of the name')
@with_appcontext
def add_section_cli(department_code, name, slug):
    try:
        section = directory_service.create_section(department_code, name, slug)
    except (ValidationError, NotFoundError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created section {department_code.upper()}:{section.slug} (ID: {section.id})")


@departments_group.command('list')
@with_appcontext
def list_departments_cli():
    departments = directory_service.list_departments(include_inactive=True)
    if not departments:
        click.echo("No departments found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Code':<16} {'Name':<30} {'Active':<8} {'Sections'}")
    click.echo("="*80)
    for department in departments:
        sections = ", ".join(s.slug for s in department.sections) or "-"
        active_str = "Yes" if department.is_active else "No"
        click.echo(f"{department.id:<5} {department.code:<16} {department.name:<30} {active_str:<8} {sections}")
    click.echo("="*80 + "\n")


# =============================================================================
# Stock
# =============================================================================

@click.group('stock')
def stock_group():
    """Scoped stock counters and movement log."""


@stock_group.command('create-item')
@click.option('--name', required=True)
@click.option('--type', 'item_type', default='inventoryItem', show_default=True,
              type=click.Choice(['inventoryItem', 'drink', 'food']))
@click.option('--sku', default=None)
@click.option('--price', 'price_cents', type=int, default=0, help='Unit price in cents')
@with_appcontext
def create_item_cli(name, item_type, sku, price_cents):
    try:
        item = stock_service.create_item(name, item_type, sku=sku, unit_price_cents=price_cents)
    except ValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created item {item.name} (ID: {item.id}, type: {item.item_type})")


@stock_group.command('restock')
@click.option('--scope', 'scope_code', required=True, help='BAR or BAR:pool')
@click.option('--item-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--reference', default=None)
@with_appcontext
def restock_cli(scope_code, item_id, quantity, reference):
    try:
        resolved = directory_service.resolve_scope(scope_code)
        stock_service.get_ledger().restock(resolved.scope, item_id, quantity, reference)
    except (ValidationError, NotFoundError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return
    balance = stock_service.get_ledger().get_balance(item_id, resolved.scope)
    click.echo(f"PASS {resolved.code} item {item_id}: quantity {balance.quantity}, available {balance.available}")


@stock_group.command('show')
@click.option('--scope', 'scope_code', required=True)
@with_appcontext
def show_stock_cli(scope_code):
    try:
        resolved = directory_service.resolve_scope(scope_code)
    except (ValidationError, NotFoundError) as e:
        click.echo(f"FAIL {e}")
        return

    entries = stock_service.get_ledger().list_balances(scope=resolved.scope)
    if not entries:
        click.echo(f"No stock recorded at {resolved.code}.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Item':<6} {'Name':<32} {'Quantity':>10} {'Reserved':>10} {'Available':>10}")
    click.echo("="*80)
    for entry in entries:
        name = entry.item.name if entry.item else "-"
        click.echo(f"{entry.item_id:<6} {name:<32} {entry.quantity:>10} {entry.reserved:>10} {entry.available:>10}")
    click.echo("="*80 + "\n")


@stock_group.command('movements')
@click.option('--item-id', type=int, default=None)
@click.option('--reference', default=None)
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def movements_cli(item_id, reference, limit):
    movements = stock_service.get_ledger().list_movements(item_id=item_id, reference=reference, limit=limit)
    if not movements:
        click.echo("No movements found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<6} {'When':<22} {'Item':<6} {'Scope':<14} {'Type':<5} {'Qty':>6}  {'Reason':<14} {'Reference'}")
    click.echo("="*100)
    for m in movements:
        scope = f"d{m.department_id}" + (f":s{m.section_id}" if m.section_id else "")
        when = m.created_at.strftime("%Y-%m-%d %H:%M:%S") if m.created_at else "-"
        click.echo(
            f"{m.id:<6} {when:<22} {m.item_id:<6} {scope:<14} {m.movement_type:<5} {m.quantity:>6}  "
            f"{m.reason:<14} {m.reference or '-'}"
        )
    click.echo("="*100 + "\n")


# =============================================================================
# Extras
# =============================================================================

@click.group('extras')
def extras_group():
    """Extras catalogue and allocation."""


@extras_group.command('create')
@click.option('--name', required=True)
@click.option('--tracked', is_flag=True, help='Count units per scope')
@click.option('--unit', default='unit', show_default=True)
@click.option('--price', 'price_cents', type=int, default=0)
@with_appcontext
def create_extra_cli(name, tracked, unit, price_cents):
    try:
        extra = extras_service.create_extra(name, track_inventory=tracked, unit=unit, price_cents=price_cents)
    except (ValidationError, NotFoundError) as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return
    mode = "tracked" if extra.track_inventory else "untracked"
    click.echo(f"PASS Created extra {extra.name} (ID: {extra.id}, {mode})")


@extras_group.command('allocate')
@click.option('--extra-id', type=int, required=True)
@click.option('--scope', 'scope_code', required=True)
@click.option('--quantity', type=int, default=1, show_default=True)
@with_appcontext
def allocate_extra_cli(extra_id, scope_code, quantity):
    try:
        result = extras_service.allocate_extra(scope_code, extra_id, quantity)
    except (ValidationError, NotFoundError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Extra {extra_id} at {result['scope']}: {result['quantity']}")


# =============================================================================
# Transfers
# =============================================================================

@click.group('transfers')
def transfers_group():
    """Cross-department transfers."""


@transfers_group.command('approve')
@click.argument('transfer_id', type=int)
@with_appcontext
def approve_transfer_cli(transfer_id):
    """Execute a pending or approved transfer."""
    try:
        result = transfer_service.approve_transfer(transfer_id)
    except NotFoundError as e:
        click.echo(f"FAIL {e}")
        return
    except TransientConflictError as e:
        click.echo(f"FAIL Gave up after retries: {e}")
        return

    if not result.success:
        click.echo(f"FAIL {result.message}")
        return

    click.echo(f"PASS {result.transfer.transfer_number}: {result.message}")
    for skipped in result.skipped_extras:
        click.echo(f"WARN extra {skipped['extra_id']} x{skipped['quantity']} skipped: {skipped['reason']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(departments_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(extras_group)
    app.cli.add_command(transfers_group)
