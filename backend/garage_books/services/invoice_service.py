# Overview: Service-layer operations for sales invoices; revenue, output tax, stock out and receivables.

"""
Sales Invoice Posting

JOURNAL:
    Dr ACCOUNTS_RECEIVABLE grand total
    Cr SALES               subtotal - discount
    Cr GST_OUTPUT          tax (one line per component)
    (+ ROUND_OFF on whichever side keeps the entry balanced)

    When money is taken at the counter (payment_amount > 0), the same entry
    also carries:
    Dr CASH/BANK           amount paid
    Cr ACCOUNTS_RECEIVABLE amount paid

SIDE EFFECTS:
- invoice_items rows
- parts lines (with product_id) move stock OUT; availability is enforced
- customer ledger CREDIT for the total, and a DEBIT for any amount paid at
  sale (two entries for the combined invoice + payment flow)
- a payments row when paid at sale
- one outbox operation (priority high)
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .. import accounts
from ..errors import ValidationError
from ..money import ZERO, money
from . import inventory_service, outbox_service, party_ledger_service
from .journal_service import JournalLineDraft, assert_balanced, write_journal
from .posting import (
    PostingResult, business_date, compute_totals, derive_payment_status, parse_items,
    require_record, round_off_line, stock_requirements, tax_lines, TAX_MODE_IGST,
)
from .record_store import RecordStore, Table, ensure_store

logger = logging.getLogger(__name__)

OP_SALES_INVOICE = "sales_invoice"


def _invoice_lines(totals, paid, settle_account: str, customer_name: str) -> list[JournalLineDraft]:
    lines = [JournalLineDraft.dr(accounts.ACCOUNTS_RECEIVABLE, totals.total, f"Invoice to {customer_name}")]
    lines.append(JournalLineDraft.cr(accounts.SALES, totals.taxable, "Sales"))
    lines += tax_lines(accounts.GST_OUTPUT, totals.tax, credit=True)
    lines += round_off_line(totals.round_off, on_debit_side=False)
    if paid > ZERO:
        lines.append(JournalLineDraft.dr(settle_account, paid, "Received at sale"))
        lines.append(JournalLineDraft.cr(accounts.ACCOUNTS_RECEIVABLE, paid, "Received at sale"))
    return lines


def post_sales_invoice(
    customer_id: str,
    items: Iterable[dict],
    *,
    gst_rate=0,
    tax_mode: str = TAX_MODE_IGST,
    discount=0,
    round_off=0,
    payment_amount=0,
    payment_mode: str = "cash",
    account_code: Optional[str] = None,
    job_id: Optional[str] = None,
    entry_date=None,
    invoice_no: Optional[str] = None,
    notes: Optional[str] = None,
    store: RecordStore | None = None,
) -> PostingResult:
    """
    Post a sales invoice, optionally with money received at the counter.

    Items without product_id are service lines (no stock effect).
    """
    store = ensure_store(store)
    customer = require_record(store, Table.CUSTOMERS, customer_id, "Customer")
    if job_id:
        require_record(store, Table.JOBS, job_id, "Job")
    parsed = parse_items(items)
    required = stock_requirements(parsed)
    inventory_service.require_stock_for(required, store=store)

    entry_date = business_date(entry_date)
    totals = compute_totals(parsed, gst_rate=gst_rate, tax_mode=tax_mode, discount=discount, round_off=round_off)

    paid = money(payment_amount)
    if paid < ZERO:
        raise ValidationError("Payment amount cannot be negative")
    warnings = []
    if paid > totals.total:
        message = f"Amount paid at sale ({paid}) exceeds invoice total ({totals.total}); excess stays as customer advance"
        logger.warning(message)
        warnings.append(message)

    settle_account = account_code or accounts.settlement_account(payment_mode)
    journal_lines = _invoice_lines(totals, paid, settle_account, customer.name)
    assert_balanced(journal_lines)

    tables = [
        Table.INVOICES, Table.INVOICE_ITEMS, Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES,
        Table.CUSTOMER_LEDGER_ENTRIES, Table.OFFLINE_OPERATIONS,
    ]
    if required:
        tables += [Table.PRODUCTS, Table.STOCK_TRANSACTIONS]
    if paid > ZERO:
        tables.append(Table.PAYMENTS)

    def body(tx):
        invoice = tx.put(Table.INVOICES, {
            "customer_id": customer.id,
            "job_id": job_id,
            "invoice_no": invoice_no,
            "entry_date": entry_date,
            "status": "pending",
            "paid_amount": paid,
            "payment_status": derive_payment_status(paid, totals.total),
            "notes": notes,
            **totals.header_fields(),
        })
        item_rows = [
            tx.put(Table.INVOICE_ITEMS, {
                "invoice_id": invoice.id,
                "product_id": item.product_id,
                "item_type": item.item_type,
                "description": item.description,
                "quantity": item.quantity,
                "rate": item.rate,
                "amount": item.amount,
            })
            for item in parsed
        ]
        movements = [
            inventory_service.apply_stock_movement(
                tx,
                row.product_id,
                -row.quantity,
                reference_type="invoice",
                reference_id=invoice.id,
                entry_date=entry_date,
                description=f"Sold on invoice {invoice_no or invoice.id}",
            )
            for row in item_rows
            if row.product_id
        ]

        entry = write_journal(
            tx,
            source_type="invoice",
            source_id=invoice.id,
            entry_date=entry_date,
            description=f"Invoice {invoice_no or invoice.id} to {customer.name}",
            lines=journal_lines,
        )
        invoice.journal_entry_id = entry.id
        if paid > ZERO:
            invoice.status = "paid" if paid >= totals.total else "partial"

        ledger_entries = [
            party_ledger_service.add_ledger_entry(
                tx,
                party_ledger_service.PARTY_CUSTOMER,
                customer.id,
                entry_date=entry_date,
                particulars=f"Invoice {invoice_no or invoice.id}",
                credit=totals.total,
                reference_type="invoice",
                reference_id=invoice.id,
                reference_no=invoice_no,
            )
        ]
        related = {}
        if paid > ZERO:
            payment = tx.put(Table.PAYMENTS, {
                "party_type": party_ledger_service.PARTY_CUSTOMER,
                "party_id": customer.id,
                "reference_type": "invoice",
                "reference_id": invoice.id,
                "amount": paid,
                "payment_mode": payment_mode,
                "account_code": settle_account,
                "entry_date": entry_date,
                "journal_entry_id": entry.id,
            })
            related["payment"] = payment
            ledger_entries.append(party_ledger_service.add_ledger_entry(
                tx,
                party_ledger_service.PARTY_CUSTOMER,
                customer.id,
                entry_date=entry_date,
                particulars=f"Payment received against {invoice_no or invoice.id}",
                debit=paid,
                reference_type="payment",
                reference_id=payment.id,
                reference_no=invoice_no,
            ))

        operation = outbox_service.enqueue(tx, OP_SALES_INVOICE, priority=outbox_service.PRIORITY_HIGH)
        return PostingResult(
            op_type=OP_SALES_INVOICE,
            header=invoice,
            items=item_rows,
            journal_entry=entry,
            stock_transactions=movements,
            ledger_entries=ledger_entries,
            operation=operation,
            related=related,
            warnings=warnings,
        )

    result = store.transaction(tables, body)
    logger.info("Posted invoice %s for customer %s total=%s", result.header.id, customer.id, totals.total)
    return result
