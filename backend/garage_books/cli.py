# Overview: Flask CLI command groups for bootstrap, outbox maintenance and stock checks.

# backend/garage_books/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Outbox / sync:
# - python -m flask sync status
# - python -m flask sync drain
# - python -m flask sync retry-failed
# - python -m flask sync cleanup --days 7
# - python -m flask sync conflicts
#
# Stock:
# - python -m flask stock check <product_id>
#   Compare products.current_stock with the replayed stock log.

import json

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import BooksError
from .extensions import db
from .services import inventory_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables."""
    from . import models  # noqa: F401
    db.create_all()
    click.echo("Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping all data.')
@with_appcontext
def reset_db_command(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        raise click.UsageError("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


@click.group('sync')
def sync_group():
    """Outbox drainer commands."""


def _manager():
    return current_app.extensions["sync_manager"]


@sync_group.command('status')
@with_appcontext
def sync_status_command():
    click.echo(json.dumps(_manager().get_sync_status(), indent=2))


@sync_group.command('drain')
@with_appcontext
def sync_drain_command():
    """Send pending operations now."""
    report = _manager().process_queue()
    click.echo(json.dumps(report.to_dict(), indent=2))


@sync_group.command('retry-failed')
@with_appcontext
def sync_retry_command():
    report = _manager().retry_failed_operations()
    click.echo(f"Requeued {report.requeued} operation(s); completed {report.completed}.")


@sync_group.command('cleanup')
@click.option('--days', type=int, default=None, help='Retention window in days.')
@with_appcontext
def sync_cleanup_command(days):
    """Delete completed operations older than the retention window."""
    if days is None:
        days = current_app.config.get("SYNC_RETENTION_DAYS", 7)
    deleted = _manager().clear_completed_operations(older_than_days=days)
    click.echo(f"Deleted {deleted} completed operation(s) older than {days} day(s).")


@sync_group.command('conflicts')
@with_appcontext
def sync_conflicts_command():
    conflicts = _manager().list_conflicts()
    if not conflicts:
        click.echo("No unresolved conflicts.")
        return
    for conflict in conflicts:
        click.echo(f"{conflict['id']}  op={conflict['operation_id']}  type={conflict['op_type']}")


@click.group('stock')
def stock_group():
    """Stock ledger inspection."""


@stock_group.command('check')
@click.argument('product_id')
@with_appcontext
def stock_check_command(product_id):
    try:
        result = inventory_service.check_stock_consistency(product_id)
    except BooksError as e:
        raise click.ClickException(str(e))
    status = "OK" if result["consistent"] else "DRIFT"
    click.echo(f"{status} current_stock={result['current_stock']} replayed={result['replayed_stock']}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(sync_group)
    app.cli.add_command(stock_group)
