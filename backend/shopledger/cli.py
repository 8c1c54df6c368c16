# Overview: Flask CLI command groups for shops, backups and ledger inspection.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Shops:
# - python -m flask shops list
# - python -m flask shops create --name "Main Street"
# - python -m flask shops rename 1 --name "Main Street Branch"
#
# Backups (the backup file is the same SQLite blob the snapshot slot holds):
# - python -m flask backup save pos-backup.sqlite
# - python -m flask backup restore pos-backup.sqlite --yes
#   Malformed files are rejected and the current data is kept.
# - python -m flask backup persist
#   Force a snapshot write after an earlier persist failure.
#
# Ledger inspection:
# - python -m flask ledger outstanding [--shop-id 1] [--mobile 9876543210]
#   List sales with a balance due, newest first.

from pathlib import Path

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .services import sales_service, shop_service
from .services.store import get_store


@click.group('shops')
def shops_group():
    """Shop management commands."""


@shops_group.command('list')
@with_appcontext
def list_shops():
    shops = shop_service.list_shops(get_store())
    if not shops:
        click.echo("No shops yet. Run: python -m flask shops create --name \"My Shop\"")
        return
    for shop in shops:
        click.echo(f"{shop.id:>6}  {shop.name}  (next product id {shop.next_product_id})")


@shops_group.command('create')
@click.option('--name', prompt=True, help='Shop name')
@with_appcontext
def create_shop(name):
    try:
        shop = shop_service.create_shop(get_store(), name)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id})")


@shops_group.command('rename')
@click.argument('shop_id', type=int)
@click.option('--name', prompt=True, help='New shop name')
@with_appcontext
def rename_shop(shop_id, name):
    try:
        shop = shop_service.rename_shop(get_store(), shop_id, name)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Shop {shop.id} renamed to {shop.name}")


@click.group('backup')
def backup_group():
    """Backup, restore and snapshot commands."""


@backup_group.command('save')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def save_backup(path):
    blob = get_store().export_backup()
    Path(path).write_bytes(blob)
    click.echo(f"PASS Backup written to {path} ({len(blob)} bytes)")


@backup_group.command('restore')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', is_flag=True, help='Confirm overwriting all current data')
@with_appcontext
def restore_backup(path, yes):
    if not yes:
        click.confirm("Restoring will completely overwrite all current data. Continue?", abort=True)
    try:
        get_store().restore(Path(path).read_bytes())
    except LedgerError as e:
        raise click.ClickException(f"{e.message} {e.details or ''}".strip())
    click.echo(f"PASS Restored ledger from {path}")


@backup_group.command('persist')
@with_appcontext
def persist_snapshot():
    store = get_store()
    error = store.persist_snapshot()
    if error is not None:
        raise click.ClickException(error.message)
    click.echo(f"PASS Snapshot written to slot {store.snapshots.slot.key!r}")


@click.group('ledger')
def ledger_group():
    """Ledger inspection commands."""


@ledger_group.command('outstanding')
@click.option('--shop-id', type=int, default=None)
@click.option('--mobile', default=None, help='Filter by customer mobile, name or invoice id')
@with_appcontext
def list_outstanding(shop_id, mobile):
    sales = sales_service.list_outstanding(get_store(), shop_id=shop_id, search=mobile)
    if not sales:
        click.echo("No outstanding balances.")
        return
    total = 0
    for sale in sales:
        total += sale.balance_due_cents
        click.echo(
            f"{sale.id:<32} {sale.sold_at:%Y-%m-%d %H:%M}  "
            f"{(sale.customer_name or 'Walk-in'):<24} {sale.customer_mobile or '-':<14} "
            f"{sale.balance_due_cents / 100:>12,.2f}"
        )
    click.echo(f"{'TOTAL':<88}{total / 100:>12,.2f}")


def register_commands(app):
    app.cli.add_command(shops_group)
    app.cli.add_command(backup_group)
    app.cli.add_command(ledger_group)
