"""
CLI command tests (flask sync / stock groups).
"""

import json

from garage_books.services import purchase_service


def test_sync_status_and_drain(app, store, supplier, widget):
    purchase_service.post_purchase_invoice(
        supplier.id, [{"product_id": widget.id, "quantity": 1, "rate": 100}], store=store,
    )
    runner = app.test_cli_runner()

    status = runner.invoke(args=["sync", "status"])
    assert status.exit_code == 0
    assert json.loads(status.output)["pending"] == 1

    drained = runner.invoke(args=["sync", "drain"])
    assert drained.exit_code == 0
    assert json.loads(drained.output)["completed"] == 1

    conflicts = runner.invoke(args=["sync", "conflicts"])
    assert "No unresolved conflicts." in conflicts.output

    retried = runner.invoke(args=["sync", "retry-failed"])
    assert "Requeued 0 operation(s)" in retried.output

    cleaned = runner.invoke(args=["sync", "cleanup", "--days", "30"])
    assert "Deleted 0 completed operation(s)" in cleaned.output


def test_stock_check(app, store, widget):
    runner = app.test_cli_runner()

    ok = runner.invoke(args=["stock", "check", widget.id])
    assert ok.exit_code == 0
    assert ok.output.startswith("OK")

    missing = runner.invoke(args=["stock", "check", "missing"])
    assert missing.exit_code != 0
    assert "not found" in missing.output


def test_reset_requires_confirmation(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "reset-db"])
    assert result.exit_code != 0
