# Overview: Flask CLI command groups for bootstrap, stock files and sales reports.

# backend/pharmpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to pharmpos (PowerShell: $env:FLASK_APP="pharmpos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create tables (idempotent).
# - python -m flask system status
#   Show stored collections and their record counts.
#
# Stock files:
# - python -m flask inventory import stock.csv
#   Merge a stock CSV into the ledger (quantities ADD; re-importing doubles stock).
# - python -m flask inventory export --output stock_export.csv
#   Write the ledger as CSV (stdout when --output is omitted).
#
# Sales history:
# - python -m flask sales import invoices.csv --items invoice_items.csv
#   Append historical invoices; ids already stored are skipped.
#
# Reports:
# - python -m flask reports summary --from 2024-01-01 --to 2024-01-31
# - python -m flask reports summary --range 7d

import json

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import import_service, reporting_service
from .services.record_codec import CodecError
from .services.storage_service import SqlRecordStore


@click.group('system')
def system_group():
    """System bootstrap and inspection commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('status')
@with_appcontext
def system_status():
    """List stored collections."""
    collections = SqlRecordStore().describe()
    if not collections:
        click.echo("No collections stored yet.")
        return
    for row in collections:
        click.echo(f"{row['key']:<16} {row['records']:>8} records  v{row['version']}  {row['updated_at']}")


@click.group('inventory')
def inventory_group():
    """Stock ledger import/export."""


@inventory_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_inventory(path):
    """Merge a stock CSV file into the ledger."""
    with open(path, encoding="utf-8-sig", newline="") as fh:
        text = fh.read()
    try:
        result = import_service.import_inventory_csv(SqlRecordStore(), text)
    except CodecError as exc:
        raise click.ClickException(str(exc))
    click.echo(
        f"PASS {result['received']} rows received: {result['created']} created, "
        f"{result['updated']} updated, {result['skipped']} skipped ({result['records']} records in stock)"
    )


@inventory_group.command('export')
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True), default=None)
@with_appcontext
def export_inventory(output):
    """Write the ledger as CSV."""
    csv_text = import_service.export_inventory(SqlRecordStore())
    if output is None:
        click.echo(csv_text, nl=False)
        return
    with open(output, "w", encoding="utf-8", newline="") as fh:
        fh.write(csv_text)
    click.echo(f"PASS Wrote {output}")


@click.group('sales')
def sales_group():
    """Sales history import."""


@sales_group.command('import')
@click.argument('invoices_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--items', 'items_path', type=click.Path(exists=True, dir_okay=False), default=None,
              help='Invoice line items CSV')
@with_appcontext
def import_sales(invoices_path, items_path):
    """Append historical invoices (and their line items)."""
    with open(invoices_path, encoding="utf-8-sig", newline="") as fh:
        invoices_text = fh.read()
    items_text = None
    if items_path:
        with open(items_path, encoding="utf-8-sig", newline="") as fh:
            items_text = fh.read()

    try:
        result = import_service.import_sales_history(SqlRecordStore(), invoices_text, items_text)
    except CodecError as exc:
        raise click.ClickException(str(exc))
    click.echo(
        f"PASS Imported {result['invoices']} invoices, {result['items']} line items "
        f"({result['skipped_invoices']} invoices already present)"
    )


@click.group('reports')
def reports_group():
    """Sales reports."""


@reports_group.command('summary')
@click.option('--from', 'start', default=None, help='First day (YYYY-MM-DD), inclusive')
@click.option('--to', 'end', default=None, help='Last day (YYYY-MM-DD), inclusive')
@click.option('--range', 'preset', type=click.Choice(reporting_service.PRESET_RANGES), default=None)
@click.option('--limit', default=None, type=int, help='Top items to list')
@with_appcontext
def report_summary(start, end, preset, limit):
    """Print KPIs, top items and daily revenue as JSON."""
    if preset:
        start, end = reporting_service.preset_range(preset)
    limit = limit if limit is not None else current_app.config["POS_TOP_ITEMS_LIMIT"]
    report = import_service.report_sales(SqlRecordStore(), start=start, end=end, limit=limit)
    click.echo(json.dumps(report, indent=2))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(sales_group)
    app.cli.add_command(reports_group)
