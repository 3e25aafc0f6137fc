"""
CLI command tests (flask system/users/shifts/backup).
"""

import json

from retailpos.models import User
from retailpos.extensions import db
from retailpos.services.ledger import get_ledger

from conftest import PASSWORD, add_variant


def test_system_init_creates_admin_and_demo(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init", "--username", "root", "--password", PASSWORD, "--demo"])

    assert "PASS Created ADMIN user: root" in result.output
    assert "PASS Seeded demo product" in result.output
    assert db.session.query(User).filter_by(username="root").one().role == "ADMIN"
    assert get_ledger().catalog.find_variant("demo-var") is not None

    again = runner.invoke(args=["system", "init", "--username", "root", "--password", PASSWORD])
    assert "already exists" in again.output


def test_users_create_and_list(app):
    runner = app.test_cli_runner()

    weak = runner.invoke(args=["users", "create", "--username", "ana", "--password", "weak", "--role", "seller"])
    assert "FAIL Password validation failed" in weak.output

    ok = runner.invoke(args=["users", "create", "--username", "ana", "--password", PASSWORD, "--role", "seller"])
    assert "PASS Created user: ana (SELLER)" in ok.output

    listed = runner.invoke(args=["users", "list"])
    assert "ana" in listed.output


def test_shift_commands(app, alice):
    runner = app.test_cli_runner()
    ledger = get_ledger()

    assert "No open shift." in runner.invoke(args=["shifts", "active"]).output

    ledger.shifts.open_shift(25, alice)
    active = runner.invoke(args=["shifts", "active"]).output
    assert "Expected cash:  25.00" in active
    assert "by Alice" in active

    assert "PASS Nothing to repair" in runner.invoke(args=["shifts", "repair"]).output
    assert "OPEN" in runner.invoke(args=["shifts", "list"]).output


def test_backup_export_import(app, tmp_path):
    runner = app.test_cli_runner()
    ledger = get_ledger()
    variant = add_variant(ledger, stock=4)
    path = tmp_path / "backup.json"

    exported = runner.invoke(args=["backup", "export", str(path)])
    assert "PASS Exported" in exported.output
    assert json.loads(path.read_text())["version"] == "2.0"

    ledger.catalog.delete_product(variant.product_id)

    aborted = runner.invoke(args=["backup", "import", str(path)], input="n\n")
    assert aborted.exit_code != 0
    assert ledger.catalog.find_variant(variant.id) is None

    restored = runner.invoke(args=["backup", "import", str(path), "--yes"])
    assert "PASS Imported" in restored.output
    assert ledger.catalog.find_variant(variant.id).stock == 4


def test_backup_import_rejects_bad_file(app, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{}")

    result = app.test_cli_runner().invoke(args=["backup", "import", str(path), "--yes"])

    assert "FAIL Import rejected" in result.output


def test_ledger_reload_without_store(app):
    result = app.test_cli_runner().invoke(args=["ledger", "reload"])

    assert "WARN  No durable store configured" in result.output
