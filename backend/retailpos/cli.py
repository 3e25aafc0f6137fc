# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/retailpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --username admin [--demo]
#   Create the schema and the first ADMIN user; --demo seeds a demo product.
#
# Users:
# - python -m flask users list
# - python -m flask users create --username ana --role SELLER
#   Create a user (prompts for the password).
#
# Shifts:
# - python -m flask shifts list --limit 20
# - python -m flask shifts active
# - python -m flask shifts repair
#   Auto-close every open shift but the most recently opened one.
#
# Ledger:
# - python -m flask ledger reload
#   Re-read the shared store (other registers' writes) and repair shifts.
#
# Backup:
# - python -m flask backup export backup.json
# - python -m flask backup import backup.json --yes
#   Replaces ALL ledger data with the file's content.

import json

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import USER_ROLES, User
from .services import identity_service
from .services.ledger import get_ledger


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--username', default='admin', show_default=True, help='First admin username')
@click.option('--display-name', default=None, help='Display name (defaults to username)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--demo', is_flag=True, help='Seed a demo product when the catalog is empty')
@with_appcontext
def init_system(username, display_name, password, demo):
    """
    Initialize the system: schema, first ADMIN user, optional demo catalog.

    Idempotent: an existing user with the same username is kept.
    """
    click.echo("START Initializing retailpos...")

    db.create_all()
    click.echo("PASS Schema ready")

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        click.echo(f"WARN  User '{username}' already exists, skipping...")
    else:
        try:
            identity_service.create_user(username, password, display_name, role="ADMIN")
            click.echo(f"PASS Created ADMIN user: {username}")
        except LedgerError as e:
            click.echo(f"FAIL Failed to create user '{username}': {e.message}")
            return

    if demo:
        ledger = get_ledger()
        product = ledger.catalog.seed_demo_catalog()
        if product:
            click.echo(f"PASS Seeded demo product: {product.name}")
        else:
            click.echo("WARN  Catalog not empty, demo product skipped")
        ledger.flush()

    click.echo("DONE retailpos initialized")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--display-name', default=None, help='Display name (defaults to username)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(USER_ROLES, case_sensitive=False), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, display_name, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter, lowercase letter and digit
    - At least one special character
    """
    try:
        user = identity_service.create_user(username, password, display_name, role=role)
        click.echo(f"PASS Created user: {user.username} ({user.role}), ID {user.id}")
    except identity_service.PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e.message}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except LedgerError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users with their roles."""
    users = identity_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Display name':<25} {'Role':<10} {'Active'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.display_name:<25} {user.role:<10} {active_str}")

    click.echo("="*80 + "\n")


@click.group('shifts')
def shifts_group():
    """Cash shift inspection and repair."""


@shifts_group.command('list')
@click.option('--limit', type=int, default=20, show_default=True, help='Max shifts to show')
@with_appcontext
def list_shifts_cli(limit):
    """List shifts, most recently opened first."""
    shifts = get_ledger().reports.shifts_in_range(None, None)[::-1][:limit]

    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<38} {'Status':<8} {'Opened':<20} {'Start':>10} {'Expected':>10} {'Actual':>10} {'Diff':>9}")
    click.echo("="*110)

    for shift in shifts:
        actual = str(shift.end_cash_actual) if shift.end_cash_actual is not None else "-"
        diff = f"{shift.difference:+}" if shift.difference is not None else "-"
        click.echo(f"{shift.id:<38} {shift.status:<8} {str(shift.opened_at)[:19]:<20} "
                   f"{shift.start_cash:>10} {shift.end_cash_expected:>10} {actual:>10} {diff:>9}")

    click.echo("="*110 + "\n")


@shifts_group.command('active')
@with_appcontext
def active_shift_cli():
    """Show the open shift and its running figures."""
    ledger = get_ledger()
    shift = ledger.shifts.get_active_shift()
    if not shift:
        click.echo("No open shift.")
        return

    summary = ledger.reports.shift_summary(shift.id)
    opened_by = shift.opened_by.name if shift.opened_by else "-"
    click.echo(f"Shift {shift.id} opened {str(shift.opened_at)[:19]} by {opened_by}")
    click.echo(f"  Start cash:     {summary['start_cash']}")
    click.echo(f"  Cash sales:     {summary['cash_sales_total']} ({summary['sales_count']} sales total)")
    click.echo(f"  Expenses:       {summary['expenses_total']} ({summary['expenses_count']})")
    click.echo(f"  Cash refunds:   {summary['cash_refunds_total']}")
    click.echo(f"  Expected cash:  {summary['expected_cash']}")


@shifts_group.command('repair')
@with_appcontext
def repair_shifts_cli():
    """Auto-close every open shift except the most recently opened one."""
    ledger = get_ledger()
    repaired = ledger.shifts.sanitize_shifts()
    ledger.flush()

    if not repaired:
        click.echo("PASS Nothing to repair")
        return
    for shift in repaired:
        click.echo(f"PASS Auto-closed shift {shift.id} (opened {str(shift.opened_at)[:19]})")


@click.group('ledger')
def ledger_group():
    """In-memory ledger maintenance."""


@ledger_group.command('reload')
@with_appcontext
def reload_ledger_cli():
    """Re-read every collection from the shared store."""
    ledger = get_ledger()
    if ledger.store is None:
        click.echo("WARN  No durable store configured; nothing to reload")
        return

    result = ledger.refresh()
    ledger.flush()

    counts = ", ".join(f"{k}={v}" for k, v in result["counts"].items())
    click.echo(f"PASS Reloaded {counts}")
    for shift_id in result["repaired_shifts"]:
        click.echo(f"WARN  Auto-closed extra open shift {shift_id}")


@click.group('backup')
def backup_group():
    """Full-dataset export and restore."""


@backup_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_backup_cli(path):
    document = get_ledger().backup.export_data()
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(document, fh, indent=2, ensure_ascii=False)
    counts = ", ".join(f"{k}={len(document[k])}" for k in document if isinstance(document[k], list))
    click.echo(f"PASS Exported to {path} ({counts})")


@backup_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def import_backup_cli(path, yes):
    """
    DANGER: Replace ALL ledger data with the backup file.
    """
    if not yes:
        click.confirm("This replaces all ledger data (catalog, shifts, sales, customers, discounts...). Continue?", abort=True)

    with open(path, "r", encoding="utf-8") as fh:
        try:
            document = json.load(fh)
        except ValueError as e:
            click.echo(f"FAIL {path} is not valid JSON: {e}")
            return

    ledger = get_ledger()
    try:
        result = ledger.backup.import_data(document)
    except LedgerError as e:
        click.echo(f"FAIL Import rejected: {e.message}")
        return
    ledger.flush()

    counts = ", ".join(f"{k}={v}" for k, v in result["counts"].items())
    click.echo(f"PASS Imported {counts}")
    if result["repaired_shifts"]:
        click.echo(f"WARN  Auto-closed {len(result['repaired_shifts'])} extra open shift(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(backup_group)
