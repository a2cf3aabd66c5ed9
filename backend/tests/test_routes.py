"""
HTTP API tests: posting routes, error mapping, ledgers and sync endpoints.
"""

from decimal import Decimal

from garage_books.services.record_store import Table


def _purchase(client, supplier, widget, quantity=10):
    return client.post("/api/purchases", json={
        "supplier_id": supplier.id,
        "items": [{"product_id": widget.id, "quantity": quantity, "rate": 100}],
        "gst_rate": 18,
        "invoice_no": "PI-100",
        "entry_date": "2024-01-31",
    })


def test_health(client, db_session):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "healthy"
    assert data["sync"]["pending"] == 0


def test_post_purchase_returns_full_result(client, supplier, widget):
    response = _purchase(client, supplier, widget)
    assert response.status_code == 201

    data = response.get_json()
    assert data["op_type"] == "purchase_invoice"
    assert Decimal(data["header"]["total"]) == Decimal("1180")
    assert data["header"]["entry_date"] == "2024-01-31"
    assert [line["account_code"] for line in data["journal_entry"]["lines"]] == [
        "INVENTORY", "GST_INPUT", "ACCOUNTS_PAYABLE",
    ]
    assert len(data["stock_transactions"]) == 1
    assert data["operation"]["status"] == "pending"
    assert data["related"]["grn"]["status"] == "received"


def test_validation_error_is_400(client, supplier, widget):
    response = client.post("/api/purchases", json={
        "supplier_id": supplier.id,
        "items": [{"product_id": widget.id, "quantity": 0, "rate": 100}],
    })
    assert response.status_code == 400
    assert response.get_json()["type"] == "ValidationError"


def test_missing_body_is_400(client, db_session):
    response = client.post("/api/invoices", data="not json", content_type="text/plain")
    assert response.status_code == 400


def test_unknown_party_is_404(client, widget):
    response = client.post("/api/invoices", json={
        "customer_id": "missing",
        "items": [{"product_id": widget.id, "quantity": 1, "rate": 100}],
    })
    assert response.status_code == 404


def test_insufficient_stock_is_409(client, customer, widget):
    response = client.post("/api/invoices", json={
        "customer_id": customer.id,
        "items": [{"product_id": widget.id, "quantity": 1, "rate": 150}],
    })
    assert response.status_code == 409
    assert response.get_json()["type"] == "InsufficientStockError"


def test_imbalanced_voucher_is_422(client, db_session):
    response = client.post("/api/vouchers", json={
        "lines": [
            {"account_code": "CASH", "debit": 100},
            {"account_code": "SALES", "credit": 99},
        ],
    })
    assert response.status_code == 422


def test_invoice_then_payment_and_ledger(client, supplier, customer, widget):
    _purchase(client, supplier, widget)
    invoice = client.post("/api/invoices", json={
        "customer_id": customer.id,
        "items": [{"product_id": widget.id, "quantity": 2, "rate": 150}],
        "entry_date": "2024-02-01",
    }).get_json()

    response = client.post(f"/api/invoices/{invoice['header']['id']}/payments", json={
        "amount": 100, "entry_date": "2024-02-03",
    })
    assert response.status_code == 201

    ledger = client.get(f"/api/ledgers/customer/{customer.id}").get_json()
    assert [Decimal(e["balance"]) for e in ledger["entries"]] == [Decimal("300"), Decimal("200")]
    assert Decimal(ledger["outstanding_amount"]) == Decimal("200")

    filtered = client.get(f"/api/ledgers/customer/{customer.id}?from_date=2024-02-02").get_json()
    assert len(filtered["entries"]) == 1

    bad = client.get(f"/api/ledgers/customer/{customer.id}?from_date=yesterday")
    assert bad.status_code == 400


def test_labour_flow(client, job, technician):
    created = client.post("/api/jobsheets", json={
        "job_id": job.id, "technician_id": technician.id, "hours": 5,
    })
    assert created.status_code == 201
    sheet_id = created.get_json()["header"]["id"]

    approved = client.post(f"/api/jobsheets/{sheet_id}/approve", json={"approved_by": "manager"})
    assert approved.status_code == 200
    assert Decimal(approved.get_json()["related"]["job"]["total_cost"]) == Decimal("1000")

    again = client.post(f"/api/jobsheets/{sheet_id}/approve")
    assert again.status_code == 400

    paid = client.post("/api/payments/labour", json={
        "labour_id": technician.id, "amount": 1000, "jobsheet_ids": [sheet_id],
    })
    assert paid.status_code == 201


def test_account_ledger_and_gst_report(client, supplier, widget):
    _purchase(client, supplier, widget)

    ledger = client.get("/api/accounts/inventory/ledger").get_json()
    assert ledger["account"]["code"] == "INVENTORY"
    assert Decimal(ledger["closing_balance"]) == Decimal("1000")

    report = client.get("/api/reports/gst?from_date=2024-01-01&to_date=2024-01-31").get_json()
    assert Decimal(report["input_credit"]) == Decimal("180")


def test_stock_routes(client, supplier, widget):
    _purchase(client, supplier, widget, quantity=3)

    history = client.get(f"/api/stock/{widget.id}").get_json()
    assert Decimal(history["current_stock"]) == Decimal("3")

    check = client.get(f"/api/stock/{widget.id}/check").get_json()
    assert check["consistent"] is True

    assert client.get("/api/stock/missing").status_code == 404


def test_sync_drain_and_status(client, supplier, widget, db_session, store):
    _purchase(client, supplier, widget)

    status = client.get("/api/sync/status").get_json()
    assert status["pending"] == 1

    drained = client.post("/api/sync/drain").get_json()
    assert drained["completed"] == 1
    assert drained["skipped"] is False

    db_session.expire_all()
    [operation] = store.get_all(Table.OFFLINE_OPERATIONS)
    assert operation.status == "completed"
    assert store.get_all(Table.PURCHASES)[0].server_version == f"local-{operation.op_id}"

    cleanup = client.post("/api/sync/cleanup?days=0").get_json()
    assert cleanup["deleted"] == 1
    assert client.post("/api/sync/cleanup?days=soon").status_code == 400

    assert client.get("/api/sync/conflicts").get_json() == []
    assert client.post("/api/sync/retry").get_json()["requeued"] == 0


def test_resolve_unknown_conflict_is_404(client, db_session):
    response = client.post("/api/sync/conflicts/missing/resolve", json={"resolution": "discarded"})
    assert response.status_code == 404


def test_party_summary_route(client, supplier, widget):
    _purchase(client, supplier, widget)

    summary = client.get(f"/api/ledgers/supplier/{supplier.id}/summary").get_json()
    assert summary["total_purchases"] == 1
    assert Decimal(summary["outstanding"]) == Decimal("1180")

    assert client.get("/api/ledgers/supplier/missing/summary").status_code == 404


def test_link_vendor_invoice_route(client, vendor, job):
    bill = client.post("/api/vendor-invoices", json={
        "vendor_id": vendor.id,
        "items": [{"description": "Towing", "quantity": 1, "rate": 800}],
    }).get_json()

    linked = client.post(f"/api/vendor-invoices/{bill['header']['id']}/link-job", json={"job_id": job.id})
    assert linked.status_code == 200
    assert Decimal(linked.get_json()["related"]["job"]["vendor_cost"]) == Decimal("800")

    again = client.post(f"/api/vendor-invoices/{bill['header']['id']}/link-job", json={"job_id": job.id})
    assert again.status_code == 400
