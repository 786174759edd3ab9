# Overview: Flask CLI command groups for bootstrap, stock movements, borrowing and inspection.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "stockroom" (PowerShell: $env:FLASK_APP="stockroom").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask items create --code IT-001 --name "Laptop" --category IT --unit pcs --opening 10
# - python -m flask items list
#
# Stock movements (each --item CODE:QTY is processed independently unless --all-or-nothing):
# - python -m flask stock receive --actor alice --item IT-001:5 --item IT-002:3 --note "PO 1234"
# - python -m flask stock withdraw --actor alice --item IT-001:2
# - python -m flask stock show IT-001
#
# Borrowing:
# - python -m flask borrow out --staff S001 --name Alice --email alice@example.com --item IT-001 --qty 2 --due 31/12/2026
# - python -m flask borrow return --staff S001 --name Alice A1B2C3D4E5
# - python -m flask borrow history S001
#
# Inspection:
# - python -m flask audit list [--item IT-001] [--limit 50]
# - python -m flask notifications list S001 [--unread]
# - python -m flask notifications read-all S001
#
# Reminder runner:
# - python -m flask scheduler run
#   Execute reminder jobs from the persistent job store (blocks).

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Item
from .services import audit_service, borrow_service, notification_service, stock_service
from .services.stock_service import StockRequest
from .validation import StockError


def _fail(exc: StockError):
    raise click.ClickException(exc.message)


def _parse_item_specs(specs: tuple[str, ...], note: str | None) -> list[StockRequest]:
    requests = []
    for spec in specs:
        code, sep, qty = spec.rpartition(":")
        if not sep or not code:
            raise click.BadParameter(f"expected CODE:QTY, got {spec!r}", param_hint="--item")
        requests.append(StockRequest(item_code=code, quantity=qty, note=note))
    return requests


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (safe to run repeatedly)."""
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


# =============================================================================
# CATALOG
# =============================================================================

@click.group('items')
def items_group():
    """Item catalog commands."""


@items_group.command('create')
@click.option('--code', required=True, help='Item code (unique)')
@click.option('--name', required=True, help='Display name')
@click.option('--category', default='', help='Category')
@click.option('--unit', default='pcs', show_default=True, help='Unit of measure')
@click.option('--opening', type=int, default=0, show_default=True, help='Opening quantity (posted as RECEIVE)')
@with_appcontext
def create_item_cli(code, name, category, unit, opening):
    """Create an item with its balance row."""
    try:
        item = stock_service.create_item(
            item_code=code, name=name, category=category, unit=unit, opening_quantity=opening
        )
    except StockError as exc:
        _fail(exc)
    click.echo(f"PASS Created item {item.item_code} ({item.name})")


@items_group.command('list')
@with_appcontext
def list_items_cli():
    """List items with their balances."""
    items = db.session.query(Item).order_by(Item.item_code).all()
    if not items:
        click.echo("No items found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'CODE':<16} {'NAME':<30} {'UNIT':<8} {'TOTAL':>8} {'OUT':>8} {'BALANCE':>8}")
    click.echo("="*90)
    for item in items:
        stock = item.stock_balance
        total = stock.total_quantity if stock else "-"
        out = stock.temp_withdrawn if stock else "-"
        balance = stock.balance if stock else "-"
        click.echo(f"{item.item_code:<16} {item.name[:30]:<30} {item.unit:<8} {total:>8} {out:>8} {balance:>8}")
    click.echo("="*90 + "\n")


# =============================================================================
# STOCK
# =============================================================================

@click.group('stock')
def stock_group():
    """Direct stock movements."""


def _print_results(results):
    failed = 0
    for r in results:
        if r.ok:
            click.echo(f"PASS {r.item_code} x{r.quantity} -> balance {r.balance_after} ({r.transaction_no})")
        else:
            failed += 1
            click.echo(f"FAIL {r.item_code} x{r.quantity}: {r.error}")
    if failed:
        raise click.ClickException(f"{failed} of {len(results)} movements failed")


@stock_group.command('receive')
@click.option('--actor', required=True, help='Recorder name')
@click.option('--item', 'items', multiple=True, required=True, help='CODE:QTY (repeatable)')
@click.option('--note', default=None, help='Note for every movement')
@click.option('--all-or-nothing', is_flag=True, help='Roll back the whole batch on any failure')
@with_appcontext
def receive_cli(actor, items, note, all_or_nothing):
    """Receive stock."""
    try:
        results = stock_service.receive_stock(
            _parse_item_specs(items, note), actor=actor, all_or_nothing=all_or_nothing
        )
    except StockError as exc:
        _fail(exc)
    _print_results(results)


@stock_group.command('withdraw')
@click.option('--actor', required=True, help='Recorder name')
@click.option('--item', 'items', multiple=True, required=True, help='CODE:QTY (repeatable)')
@click.option('--note', default=None, help='Note for every movement')
@click.option('--all-or-nothing', is_flag=True, help='Roll back the whole batch on any failure')
@with_appcontext
def withdraw_cli(actor, items, note, all_or_nothing):
    """Withdraw stock."""
    try:
        results = stock_service.withdraw_stock(
            _parse_item_specs(items, note), actor=actor, all_or_nothing=all_or_nothing
        )
    except StockError as exc:
        _fail(exc)
    _print_results(results)


@stock_group.command('show')
@click.argument('item_code')
@with_appcontext
def show_stock_cli(item_code):
    """Show one item's balance."""
    try:
        summary = stock_service.get_balance_summary(item_code)
    except StockError as exc:
        _fail(exc)
    for key, value in summary.items():
        click.echo(f"{key:<18} {value}")


# =============================================================================
# BORROW
# =============================================================================

@click.group('borrow')
def borrow_group():
    """Borrow/return commands."""


@borrow_group.command('out')
@click.option('--staff', 'staff_id', required=True, help='Borrower staff ID')
@click.option('--name', 'recorder_name', required=True, help='Recorder name')
@click.option('--email', 'recorder_email', default='', help='Reminder recipient')
@click.option('--item', 'item_code', required=True, help='Item code')
@click.option('--qty', 'quantity', type=int, required=True, help='Quantity')
@click.option('--due', 'due_date', default=None, help='Due date dd/MM/yyyy')
@click.option('--job', 'job_id', default=None, help='Job reference')
@click.option('--note', default=None, help='Note')
@with_appcontext
def borrow_out_cli(staff_id, recorder_name, recorder_email, item_code, quantity, due_date, job_id, note):
    """Borrow an item."""
    try:
        borrow = borrow_service.borrow_item(
            staff_id,
            recorder_name,
            recorder_email,
            item_code,
            quantity,
            job_id=job_id,
            due_date=due_date,
            note=note,
        )
    except StockError as exc:
        _fail(exc)
    click.echo(f"PASS Borrowed {borrow.item_code} x{borrow.quantity}: transaction {borrow.transaction_id}")
    if borrow.scheduled_job_id:
        click.echo(f"     Reminder job {borrow.scheduled_job_id}")


@borrow_group.command('return')
@click.option('--staff', 'staff_id', required=True, help='Staff ID performing the return')
@click.option('--name', 'recorder_name', required=True, help='Recorder name')
@click.argument('transaction_id')
@with_appcontext
def borrow_return_cli(staff_id, recorder_name, transaction_id):
    """Return a borrowed item by transaction ID."""
    try:
        borrow = borrow_service.return_item(staff_id, recorder_name, transaction_id)
    except StockError as exc:
        _fail(exc)
    click.echo(f"PASS Returned {borrow.transaction_id} ({borrow.item_code} x{borrow.quantity})")


@borrow_group.command('history')
@click.argument('staff_id')
@with_appcontext
def borrow_history_cli(staff_id):
    """List a staff member's borrows, newest first."""
    rows = borrow_service.get_history(staff_id)
    if not rows:
        click.echo("No borrow history.")
        return
    click.echo(f"{'TRANSACTION':<12} {'ITEM':<16} {'QTY':>5} {'STATUS':<10} {'BORROWED':<26} {'DUE':<26}")
    for row in rows:
        click.echo(
            f"{row['transaction_id']:<12} {row['item_code']:<16} {row['quantity']:>5} "
            f"{row['status']:<10} {row['borrow_date'] or '-':<26} {row['due_date'] or '-':<26}"
        )


# =============================================================================
# INSPECTION
# =============================================================================

@click.group('audit')
def audit_group():
    """Audit log inspection."""


@audit_group.command('list')
@click.option('--item', 'item_code', default=None, help='Filter by item code')
@click.option('--limit', type=int, default=None, help='Max rows')
@with_appcontext
def audit_list_cli(item_code, limit):
    """List audit rows, newest first."""
    logs = audit_service.get_audit_logs(item_code=item_code, limit=limit)
    if not logs:
        click.echo("No audit rows.")
        return
    for log in logs:
        click.echo(
            f"{log['created_at']}  {log['action']:<9} {log['record_id']:<16} "
            f"{log['old_value']:<14} {log['withdraw']:>6} {log['receive']:>6}  {log['new_value']:<14} "
            f"by {log['created_by']}"
        )


@click.group('notifications')
def notifications_group():
    """Notification inspection."""


@notifications_group.command('list')
@click.argument('staff_id')
@click.option('--unread', is_flag=True, help='Only unread notifications')
@with_appcontext
def notifications_list_cli(staff_id, unread):
    rows = notification_service.get_unread(staff_id) if unread else notification_service.get_all(staff_id)
    for row in rows:
        marker = " " if row["is_read"] else "*"
        click.echo(f"{marker} [{row['type']}] {row['created_at']}  {row['title']}: {row['message']}")
    click.echo(f"{len(rows)} notification(s)")


@notifications_group.command('read-all')
@click.argument('staff_id')
@with_appcontext
def notifications_read_all_cli(staff_id):
    count = notification_service.mark_all_as_read(staff_id)
    click.echo(f"PASS Marked {count} notification(s) as read")


@click.group('scheduler')
def scheduler_group():
    """Reminder job runner."""


@scheduler_group.command('run')
@with_appcontext
def scheduler_run_cli():
    """Run pending reminder jobs until interrupted."""
    from .services.reminder_service import run_blocking_scheduler

    app = current_app._get_current_object()
    click.echo("START Reminder runner (Ctrl+C to stop)")
    try:
        run_blocking_scheduler(app)
    except (KeyboardInterrupt, SystemExit):
        click.echo("STOP Reminder runner stopped")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(items_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(borrow_group)
    app.cli.add_command(audit_group)
    app.cli.add_command(notifications_group)
    app.cli.add_command(scheduler_group)
