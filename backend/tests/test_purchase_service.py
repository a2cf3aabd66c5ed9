"""
Tests for supplier purchase invoices and goods receipt.
"""

from datetime import date
from decimal import Decimal

import pytest

from garage_books.errors import NotFoundError, ValidationError
from garage_books.services import inventory_service, party_ledger_service, purchase_service
from garage_books.services.journal_service import validate_journal_balance
from garage_books.services.record_store import Table


def _journal(result):
    return [(line.account_code, line.debit, line.credit) for line in result.journal_entry.lines]


def test_purchase_with_igst(store, supplier, widget):
    result = purchase_service.post_purchase_invoice(
        supplier.id,
        [{"product_id": widget.id, "quantity": 10, "rate": 100}],
        gst_rate=18,
        invoice_no="PI-001",
        entry_date="2024-01-31",
        store=store,
    )

    purchase = result.header
    assert purchase.subtotal == Decimal("1000")
    assert purchase.tax_amount == Decimal("180")
    assert purchase.igst_amount == Decimal("180")
    assert purchase.total == Decimal("1180")
    assert purchase.entry_date == date(2024, 1, 31)
    assert purchase.status == "received"

    assert _journal(result) == [
        ("INVENTORY", Decimal("1000"), Decimal("0")),
        ("GST_INPUT", Decimal("180"), Decimal("0")),
        ("ACCOUNTS_PAYABLE", Decimal("0"), Decimal("1180")),
    ]

    assert store.get_by_id(Table.PRODUCTS, widget.id).current_stock == Decimal("10")
    assert inventory_service.calculate_current_stock(widget.id, store=store) == Decimal("10")
    [movement] = result.stock_transactions
    assert movement.reference_type == "purchase"
    assert movement.movement_type == "in"

    [ledger_entry] = result.ledger_entries
    assert ledger_entry.credit == Decimal("1180")
    assert party_ledger_service.get_outstanding("supplier", supplier.id, store=store) == Decimal("1180")

    operations = store.get_all(Table.OFFLINE_OPERATIONS)
    assert len(operations) == 1
    assert operations[0].status == "pending"
    assert operations[0].priority == "high"
    assert operations[0].op_type == "purchase_invoice"
    assert {"purchases", "purchase_items", "journal_entries", "journal_lines", "stock_transactions"} <= set(
        operations[0].stores
    )
    assert result.warnings == []


def test_purchase_with_cgst_sgst_discount_and_round_off(store, supplier, widget):
    result = purchase_service.post_purchase_invoice(
        supplier.id,
        [{"product_id": widget.id, "quantity": 10, "rate": 100}],
        gst_rate=18,
        tax_mode="cgst_sgst",
        discount=100,
        round_off="0.50",
        store=store,
    )

    purchase = result.header
    assert purchase.cgst_amount == Decimal("81")
    assert purchase.sgst_amount == Decimal("81")
    assert purchase.igst_amount == Decimal("0")
    assert purchase.total == Decimal("1062.50")
    assert _journal(result) == [
        ("INVENTORY", Decimal("900"), Decimal("0")),
        ("GST_INPUT", Decimal("81"), Decimal("0")),
        ("GST_INPUT", Decimal("81"), Decimal("0")),
        ("ROUND_OFF", Decimal("0.50"), Decimal("0")),
        ("ACCOUNTS_PAYABLE", Decimal("0"), Decimal("1062.50")),
    ]


def test_negative_round_off_lands_on_credit_side(store, supplier, widget):
    result = purchase_service.post_purchase_invoice(
        supplier.id,
        [{"product_id": widget.id, "quantity": 3, "rate": "33.47"}],
        gst_rate=5,
        round_off="-0.02",
        store=store,
    )
    # 100.41 + 5.02 - 0.02
    assert result.header.total == Decimal("105.41")
    assert ("ROUND_OFF", Decimal("0"), Decimal("0.02")) in _journal(result)
    assert validate_journal_balance(result.journal_entry.lines).balanced


def test_purchase_without_grn_then_receive(store, supplier, widget):
    result = purchase_service.post_purchase_invoice(
        supplier.id,
        [{"product_id": widget.id, "quantity": 4, "rate": 100}],
        create_grn=False,
        store=store,
    )
    assert result.stock_transactions == []
    assert store.get_by_id(Table.PRODUCTS, widget.id).current_stock == Decimal("0")

    grn = purchase_service.create_grn(result.header.id, challan_no="GRN-9", received_by="Store", store=store)
    assert grn.header.challan_no == "GRN-9"
    assert store.get_by_id(Table.PRODUCTS, widget.id).current_stock == Decimal("4")
    assert store.get_by_id(Table.PURCHASES, result.header.id).status == "received"
    # Receipt books no second payable
    assert len(store.get_all(Table.JOURNAL_ENTRIES)) == 1


def test_second_grn_rejected(store, supplier, widget):
    result = purchase_service.post_purchase_invoice(
        supplier.id, [{"product_id": widget.id, "quantity": 1, "rate": 100}], store=store,
    )
    with pytest.raises(ValidationError):
        purchase_service.create_grn(result.header.id, store=store)


def test_grn_rechecked_under_lock(store, supplier, widget, monkeypatch):
    result = purchase_service.post_purchase_invoice(
        supplier.id, [{"product_id": widget.id, "quantity": 1, "rate": 100}], store=store,
    )
    # The pre-transaction read misses the GRN that is already committed
    real_get_by_index = store.get_by_index

    def stale_get_by_index(table, index_name, value):
        if table == Table.PURCHASE_CHALLANS:
            return []
        return real_get_by_index(table, index_name, value)

    monkeypatch.setattr(store, "get_by_index", stale_get_by_index)

    with pytest.raises(ValidationError):
        purchase_service.create_grn(result.header.id, store=store)

    monkeypatch.undo()
    assert len(store.get_all(Table.PURCHASE_CHALLANS)) == 1
    assert store.get_by_id(Table.PRODUCTS, widget.id).current_stock == Decimal("1")
    assert len(store.get_all(Table.OFFLINE_OPERATIONS)) == 1


def test_supplier_without_gstin_gets_warning(store, widget):
    supplier = store.insert(Table.SUPPLIERS, {"name": "Cash Counter Spares"})
    result = purchase_service.post_purchase_invoice(
        supplier.id, [{"product_id": widget.id, "quantity": 1, "rate": 100}], gst_rate=18, store=store,
    )
    assert len(result.warnings) == 1
    assert "GSTIN" in result.warnings[0]


@pytest.mark.parametrize("item", [
    {"quantity": 0, "rate": 100},
    {"quantity": 1, "rate": 0},
    {"quantity": -2, "rate": 100},
    {"quantity": 1, "rate": 100, "product_id": None},
])
def test_invalid_items_rejected_before_any_write(store, supplier, widget, item):
    item = dict(item)
    item.setdefault("product_id", widget.id)
    with pytest.raises(ValidationError):
        purchase_service.post_purchase_invoice(supplier.id, [item], store=store)
    assert store.get_all(Table.PURCHASES) == []


def test_empty_items_rejected(store, supplier):
    with pytest.raises(ValidationError):
        purchase_service.post_purchase_invoice(supplier.id, [], store=store)


def test_unknown_supplier_and_product(store, supplier, widget):
    with pytest.raises(NotFoundError):
        purchase_service.post_purchase_invoice("nope", [{"product_id": widget.id, "quantity": 1, "rate": 1}], store=store)
    with pytest.raises(NotFoundError):
        purchase_service.post_purchase_invoice(supplier.id, [{"product_id": "nope", "quantity": 1, "rate": 1}], store=store)
    with pytest.raises(ValidationError):
        purchase_service.post_purchase_invoice(None, [{"product_id": widget.id, "quantity": 1, "rate": 1}], store=store)


def test_discount_larger_than_subtotal_rejected(store, supplier, widget):
    with pytest.raises(ValidationError):
        purchase_service.post_purchase_invoice(
            supplier.id, [{"product_id": widget.id, "quantity": 1, "rate": 100}], discount=101, store=store,
        )


def test_bad_entry_date_rejected(store, supplier, widget):
    with pytest.raises(ValidationError):
        purchase_service.post_purchase_invoice(
            supplier.id, [{"product_id": widget.id, "quantity": 1, "rate": 100}],
            entry_date="31/01/2024", store=store,
        )
