# Overview: Service-layer operations for purchases; supplier invoices and goods receipt notes.

"""
Purchase Posting

WHY: A supplier invoice raises inventory and input tax and creates a
payable in one atomic write.

JOURNAL:
    Dr INVENTORY        subtotal - discount
    Dr GST_INPUT        tax (one line per CGST/SGST/IGST component)
    Cr ACCOUNTS_PAYABLE grand total
    (+ ROUND_OFF on whichever side keeps the entry balanced)

SIDE EFFECTS:
- purchase_items rows
- supplier ledger CREDIT for the grand total
- with create_grn: a purchase_challans row and a positive stock movement per
  item, updating products.current_stock
- one outbox operation (priority high)
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .. import accounts
from ..errors import ValidationError
from ..money import ZERO
from . import inventory_service, outbox_service, party_ledger_service
from .journal_service import JournalLineDraft, assert_balanced, write_journal
from .posting import (
    PostingResult, business_date, compute_totals, parse_items, require_record,
    round_off_line, tax_lines, TAX_MODE_IGST,
)
from .record_store import RecordStore, Table, ensure_store

logger = logging.getLogger(__name__)

OP_PURCHASE = "purchase_invoice"
OP_GRN = "goods_receipt"


def _purchase_lines(totals, supplier_name: str) -> list[JournalLineDraft]:
    lines = [JournalLineDraft.dr(accounts.INVENTORY, totals.taxable, f"Purchase from {supplier_name}")]
    lines += tax_lines(accounts.GST_INPUT, totals.tax, credit=False)
    lines += round_off_line(totals.round_off, on_debit_side=True)
    lines.append(JournalLineDraft.cr(accounts.ACCOUNTS_PAYABLE, totals.total, f"Payable to {supplier_name}"))
    return lines


def _receive_items(tx, purchase, item_rows, *, challan_no, received_by, remarks, entry_date):
    grn = tx.put(Table.PURCHASE_CHALLANS, {
        "purchase_id": purchase.id,
        "supplier_id": purchase.supplier_id,
        "challan_no": challan_no,
        "entry_date": entry_date,
        "received_by": received_by,
        "remarks": remarks,
        "status": "received",
    })
    movements = [
        inventory_service.apply_stock_movement(
            tx,
            row.product_id,
            row.quantity,
            reference_type="purchase",
            reference_id=purchase.id,
            entry_date=entry_date,
            description=f"GRN {challan_no or grn.id}",
        )
        for row in item_rows
    ]
    purchase.status = "received"
    tx.put(Table.PURCHASES, purchase)
    return grn, movements


def post_purchase_invoice(
    supplier_id: str,
    items: Iterable[dict],
    *,
    gst_rate=0,
    tax_mode: str = TAX_MODE_IGST,
    discount=0,
    round_off=0,
    entry_date=None,
    invoice_no: Optional[str] = None,
    notes: Optional[str] = None,
    create_grn: bool = True,
    challan_no: Optional[str] = None,
    received_by: Optional[str] = None,
    store: RecordStore | None = None,
) -> PostingResult:
    """
    Post a supplier purchase invoice.

    Args:
        supplier_id: Supplier being billed against
        items: [{"product_id", "quantity", "rate", "description"?}, ...]
        gst_rate: Percentage (18 means 18%)
        tax_mode: "igst" or "cgst_sgst"
        create_grn: Also receive the goods now (stock in + GRN record)

    Returns:
        PostingResult with header, items, journal entry, stock movements,
        the supplier ledger entry and the outbox operation.
    """
    store = ensure_store(store)
    supplier = require_record(store, Table.SUPPLIERS, supplier_id, "Supplier")
    parsed = parse_items(items, require_product=True)
    for item in parsed:
        require_record(store, Table.PRODUCTS, item.product_id, "Product")

    entry_date = business_date(entry_date)
    totals = compute_totals(parsed, gst_rate=gst_rate, tax_mode=tax_mode, discount=discount, round_off=round_off)
    journal_lines = _purchase_lines(totals, supplier.name)
    assert_balanced(journal_lines)

    warnings = []
    if totals.tax.total > ZERO and not supplier.gstin:
        message = f"Supplier {supplier.name} has no GSTIN; input credit may not be claimable"
        logger.warning(message)
        warnings.append(message)

    tables = [
        Table.PURCHASES, Table.PURCHASE_ITEMS, Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES,
        Table.SUPPLIER_LEDGER_ENTRIES, Table.OFFLINE_OPERATIONS,
    ]
    if create_grn:
        tables += [Table.PURCHASE_CHALLANS, Table.PRODUCTS, Table.STOCK_TRANSACTIONS]

    def body(tx):
        purchase = tx.put(Table.PURCHASES, {
            "supplier_id": supplier.id,
            "invoice_no": invoice_no,
            "entry_date": entry_date,
            "status": "pending",
            "paid_amount": ZERO,
            "payment_status": "pending",
            "notes": notes,
            **totals.header_fields(),
        })
        item_rows = [
            tx.put(Table.PURCHASE_ITEMS, {
                "purchase_id": purchase.id,
                "product_id": item.product_id,
                "description": item.description,
                "quantity": item.quantity,
                "rate": item.rate,
                "amount": item.amount,
            })
            for item in parsed
        ]
        entry = write_journal(
            tx,
            source_type="purchase",
            source_id=purchase.id,
            entry_date=entry_date,
            description=f"Purchase {invoice_no or purchase.id} from {supplier.name}",
            lines=journal_lines,
        )
        purchase.journal_entry_id = entry.id

        ledger_entry = party_ledger_service.add_ledger_entry(
            tx,
            party_ledger_service.PARTY_SUPPLIER,
            supplier.id,
            entry_date=entry_date,
            particulars=f"Purchase invoice {invoice_no or purchase.id}",
            credit=totals.total,
            reference_type="purchase",
            reference_id=purchase.id,
            reference_no=invoice_no,
        )

        related = {}
        movements = []
        if create_grn:
            grn, movements = _receive_items(
                tx, purchase, item_rows,
                challan_no=challan_no, received_by=received_by, remarks=None, entry_date=entry_date,
            )
            related["grn"] = grn

        operation = outbox_service.enqueue(tx, OP_PURCHASE, priority=outbox_service.PRIORITY_HIGH)
        return PostingResult(
            op_type=OP_PURCHASE,
            header=purchase,
            items=item_rows,
            journal_entry=entry,
            stock_transactions=movements,
            ledger_entries=[ledger_entry],
            operation=operation,
            related=related,
            warnings=warnings,
        )

    result = store.transaction(tables, body)
    logger.info("Posted purchase %s for supplier %s total=%s", result.header.id, supplier.id, totals.total)
    return result


def create_grn(
    purchase_id: str,
    *,
    challan_no: Optional[str] = None,
    received_by: Optional[str] = None,
    remarks: Optional[str] = None,
    entry_date=None,
    store: RecordStore | None = None,
) -> PostingResult:
    """
    Receive the goods of a purchase that was posted without a GRN.

    Stock only; the payable was already booked by the purchase posting.
    """
    store = ensure_store(store)
    purchase = require_record(store, Table.PURCHASES, purchase_id, "Purchase")
    if store.get_by_index(Table.PURCHASE_CHALLANS, "purchase_id", purchase.id):
        raise ValidationError(f"Purchase {purchase.id} has already been received")
    item_rows = store.get_by_index(Table.PURCHASE_ITEMS, "purchase_id", purchase.id)
    if not item_rows:
        raise ValidationError(f"Purchase {purchase.id} has no items to receive")
    entry_date = business_date(entry_date)

    tables = [
        Table.PURCHASES, Table.PURCHASE_CHALLANS, Table.PRODUCTS,
        Table.STOCK_TRANSACTIONS, Table.OFFLINE_OPERATIONS,
    ]

    def body(tx):
        locked = tx.get(Table.PURCHASES, purchase.id, lock=True)
        # Re-checked under the lock; a concurrent GRN may have landed since the read above.
        if locked.status == "received" or tx.find(Table.PURCHASE_CHALLANS, purchase_id=locked.id):
            raise ValidationError(f"Purchase {purchase.id} has already been received")
        grn, movements = _receive_items(
            tx, locked, item_rows,
            challan_no=challan_no, received_by=received_by, remarks=remarks, entry_date=entry_date,
        )
        operation = outbox_service.enqueue(tx, OP_GRN, priority=outbox_service.PRIORITY_HIGH)
        return PostingResult(
            op_type=OP_GRN,
            header=grn,
            stock_transactions=movements,
            operation=operation,
            related={"purchase": locked},
        )

    result = store.transaction(tables, body)
    logger.info("Received GRN %s for purchase %s", result.header.id, purchase.id)
    return result
