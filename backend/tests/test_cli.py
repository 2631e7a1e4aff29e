# Overview: Pytest coverage for the flask CLI command groups.

import os

import pytest

from mnepos.extensions import db
from mnepos.models import Product
from mnepos.services import backup_service, billing_service, sequence_service


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.mark.smoke
def test_system_init_is_idempotent(runner, app):
    first = runner.invoke(args=["system", "init"])
    second = runner.invoke(args=["system", "init"])

    assert first.exit_code == 0, first.output
    assert second.exit_code == 0, second.output
    assert "PASS Journal mode: wal" in second.output
    assert "Last bill sequence: 0" in second.output
    assert sequence_service.peek_current() == 0


def test_catalog_add_and_list(runner, app):
    result = runner.invoke(args=[
        "catalog", "add", "--name", "Chicken Roll", "--price-cents", "15000", "--category", "Rolls",
    ])
    assert result.exit_code == 0, result.output

    product = db.session.query(Product).filter_by(name="Chicken Roll").one()
    assert product.category.name == "Rolls"

    listing = runner.invoke(args=["catalog", "list"])
    assert "Chicken Roll" in listing.output
    assert "Rolls" in listing.output


def test_backup_run_and_list(runner, app, tmp_path):
    target = tmp_path / "cli-backups"

    result = runner.invoke(args=["backup", "run", "--target", str(target)])
    assert result.exit_code == 0, result.output
    files = os.listdir(target)
    assert len(files) == 1
    assert f"PASS Backup written: {target / files[0]}" in result.output

    listing = runner.invoke(args=["backup", "list", "--dir", str(target)])
    assert listing.exit_code == 0
    assert files[0] in listing.output


def test_backup_list_empty(runner, app, tmp_path):
    result = runner.invoke(args=["backup", "list", "--dir", str(tmp_path / "none")])
    assert "No backups found." in result.output


def test_backup_run_to_unusable_target(runner, app, tmp_path):
    blocker = tmp_path / "file.txt"
    blocker.write_text("x")

    result = runner.invoke(args=["backup", "run", "--target", str(blocker)])
    assert result.exit_code != 0
    assert "Cannot create backup directory" in result.output


def test_backup_restore_requires_confirmation_flag(runner, app, tmp_path, make_payload):
    billing_service.create_bill(make_payload())
    path = backup_service.run_backup(str(tmp_path))

    aborted = runner.invoke(args=["backup", "restore", path], input="n\n")
    assert aborted.exit_code != 0
    assert backup_service.restart_required(app) is False

    result = runner.invoke(args=["backup", "restore", path, "--yes"])
    assert result.exit_code == 0, result.output
    assert "Restart the application" in result.output
    assert backup_service.restart_required(app) is True


def test_bills_show(runner, app, make_payload):
    billing_service.create_bill(
        make_payload(payment_mode="split", split_cash_cents=20000, split_online_cents=13250)
    )

    result = runner.invoke(args=["bills", "show", "MNE-000001"])

    assert result.exit_code == 0, result.output
    assert "MNE-000001" in result.output
    assert "Chicken Shawarma" in result.output
    assert "Total 33250" in result.output
    assert "Cash 20000  Online 13250" in result.output


def test_bills_show_missing(runner, app):
    result = runner.invoke(args=["bills", "show", "MNE-999999"])
    assert result.exit_code != 0
    assert "not found" in result.output


def test_bills_list(runner, app, make_payload):
    billing_service.create_bill(make_payload())
    billing_service.create_bill(make_payload(payment_mode="online"))

    result = runner.invoke(args=["bills", "list", "--bill-no", "0002"])
    assert "1 bill(s) match" in result.output
    assert "MNE-000002" in result.output

    bad = runner.invoke(args=["bills", "list", "--start", "2026/01/01"])
    assert bad.exit_code != 0


def test_maintenance_commands(runner, app):
    checkpoint = runner.invoke(args=["maintenance", "checkpoint"])
    assert checkpoint.exit_code == 0, checkpoint.output
    assert "busy=False" in checkpoint.output

    integrity = runner.invoke(args=["maintenance", "integrity-check"])
    assert integrity.exit_code == 0
    assert "PASS quick_check ok" in integrity.output
