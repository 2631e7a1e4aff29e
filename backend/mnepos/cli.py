# Overview: Flask CLI command groups for bootstrap, inspection, backup and maintenance.

# backend/mnepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app wsgi <group> <command> [options]
#
# System bootstrap/repair:
# - flask --app wsgi system init
#   Create tables (if missing) and seed settings (bill_seq=0, discount_rate_bps=0).
# - flask --app wsgi system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - flask --app wsgi catalog add --name "Chicken Roll" --price-cents 15000 --category Rolls
# - flask --app wsgi catalog list
#
# Bills:
# - flask --app wsgi bills list [--limit 20] [--bill-no 0001]
# - flask --app wsgi bills show MNE-000001
#
# Backup/restore:
# - flask --app wsgi backup run [--target D:\backups]
# - flask --app wsgi backup list [--dir D:\backups]
# - flask --app wsgi backup restore D:\backups --yes
#   Restores the newest .db in the directory (or the given file). Restart the app afterwards.
#
# Maintenance:
# - flask --app wsgi maintenance checkpoint
# - flask --app wsgi maintenance integrity-check

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Bill, Category, Product
from .services import backup_service, billing_service, maintenance_service, sequence_service, settings_service
from .services.backup_service import BackupError
from .validation import MAX_PRICE_CENTS


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create the schema and seed default settings. Idempotent."""
    click.echo("START Initializing database...")
    db.create_all()
    settings_service.ensure_defaults()
    click.echo(f"PASS Database ready at {maintenance_service.database_path() or db.engine.url}")
    click.echo(f"PASS Journal mode: {maintenance_service.journal_mode()}")
    click.echo(f"PASS Last bill sequence: {sequence_service.peek_current()}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.confirm("This deletes ALL bills, products and settings. Continue?", abort=True)

    db.drop_all()
    db.create_all()
    settings_service.ensure_defaults()

    click.echo("PASS Database reset complete.")


@click.group('catalog')
def catalog_group():
    """Menu items."""


@catalog_group.command('add')
@click.option('--name', required=True, help='Product name')
@click.option('--price-cents', type=click.IntRange(0, MAX_PRICE_CENTS), required=True, help='Unit price in cents')
@click.option('--category', default=None, help='Category name (created if missing)')
@with_appcontext
def add_product(name, price_cents, category):
    category_row = None
    if category:
        category_row = db.session.query(Category).filter_by(name=category.strip()).first()
        if not category_row:
            category_row = Category(name=category.strip())
            db.session.add(category_row)
    product = Product(name=name.strip(), price_cents=price_cents, category=category_row)
    db.session.add(product)
    db.session.commit()
    click.echo(f"PASS Created product {product.id}: {product.name} ({product.price_cents} cents)")


@catalog_group.command('list')
@with_appcontext
def list_products():
    products = db.session.query(Product).order_by(Product.name).all()
    if not products:
        click.echo("No products found.")
        return
    click.echo(f"\n{'ID':<6} {'Name':<30} {'Category':<16} {'Price':>10} {'Avail':>6}")
    click.echo("-" * 72)
    for p in products:
        click.echo(
            f"{p.id:<6} {p.name[:30]:<30} {(p.category.name if p.category else '-')[:16]:<16} "
            f"{p.price_cents:>10} {'yes' if p.is_available else 'no':>6}"
        )


@click.group('bills')
def bills_group():
    """Bill history inspection."""


@bills_group.command('list')
@click.option('--limit', type=int, default=20, show_default=True)
@click.option('--bill-no', default=None, help='Substring filter')
@click.option('--start', default=None, help='YYYY-MM-DD (inclusive)')
@click.option('--end', default=None, help='YYYY-MM-DD (inclusive)')
@with_appcontext
def list_bills(limit, bill_no, start, end):
    try:
        result = billing_service.list_bills(page=1, limit=limit, bill_no=bill_no, start=start, end=end)
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo(f"\n{result['total']} bill(s) match\n")
    click.echo(f"{'Bill':<14} {'Created':<22} {'Mode':<8} {'Subtotal':>10} {'Disc':>8} {'Total':>10}")
    click.echo("-" * 78)
    for row in result["rows"]:
        click.echo(
            f"{row['bill_no']:<14} {row['created_at']:<22} {row['payment_mode']:<8} "
            f"{row['subtotal_cents']:>10} {row['discount_cents']:>8} {row['total_cents']:>10}"
        )


@bills_group.command('show')
@click.argument('bill_no')
@with_appcontext
def show_bill(bill_no):
    bill = db.session.query(Bill).filter_by(bill_no=bill_no).first()
    if not bill:
        raise click.ClickException(f"Bill {bill_no} not found")
    click.echo(f"{bill.bill_no}  {bill.to_dict()['created_at']}  ({bill.payment_mode})")
    for item in billing_service.get_bill_items(bill.id):
        click.echo(f"  {item.product_name[:28]:<28} {item.qty:>4} x {item.unit_price_cents:>8} = {item.line_total_cents:>10}")
    click.echo(f"  Subtotal {bill.subtotal_cents}  Discount {bill.discount_cents} ({bill.discount_rate_bps} bps)  Total {bill.total_cents}")
    if bill.payment_mode == "split":
        click.echo(f"  Cash {bill.split_cash_cents}  Online {bill.split_online_cents}")


@click.group('backup')
def backup_group():
    """Database backup and restore."""


@backup_group.command('run')
@click.option('--target', default=None, help='Target directory (defaults to the backup_path setting)')
@with_appcontext
def run_backup_cli(target):
    try:
        path = backup_service.run_backup(target)
    except BackupError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Backup written: {path}")


@backup_group.command('list')
@click.option('--dir', 'directory', default=None, help='Directory (defaults to the backup_path setting)')
@with_appcontext
def list_backups_cli(directory):
    files = backup_service.list_backups(directory)
    if not files:
        click.echo("No backups found.")
        return
    for f in files:
        info = f.to_dict()
        click.echo(f"{info['modified_at']:<22} {info['size_bytes']:>12}  {info['name']}")


@backup_group.command('restore')
@click.argument('source')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def restore_backup_cli(source, yes):
    try:
        resolved = backup_service.resolve_restore_source(source)
    except BackupError as e:
        raise click.ClickException(str(e))
    if not yes:
        click.confirm(f"Replace the live database with {resolved}?", abort=True)
    try:
        result = backup_service.restore_backup(resolved)
    except BackupError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Restored from {result.source}")
    click.echo("WARN  Restart the application before taking new bills.")


@click.group('maintenance')
def maintenance_group():
    """Database file maintenance."""


@maintenance_group.command('checkpoint')
@click.option('--mode', type=click.Choice(['PASSIVE', 'FULL', 'RESTART', 'TRUNCATE']), default='TRUNCATE', show_default=True)
@with_appcontext
def checkpoint_cli(mode):
    result = maintenance_service.checkpoint(mode=mode)
    status = "PASS" if result.complete else "WARN "
    click.echo(f"{status} busy={result.busy} log={result.log_frames} checkpointed={result.checkpointed_frames}")


@maintenance_group.command('integrity-check')
@with_appcontext
def integrity_check_cli():
    problems = maintenance_service.integrity_check()
    if problems:
        for line in problems:
            click.echo(f"FAIL {line}")
        raise click.ClickException("Integrity check failed")
    click.echo("PASS quick_check ok")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(bills_group)
    app.cli.add_command(backup_group)
    app.cli.add_command(maintenance_group)
