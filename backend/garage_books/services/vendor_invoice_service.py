# Overview: Service-layer operations for vendor (outsourced service) invoices.

"""
Vendor Invoice Posting

JOURNAL:
    Dr JOB_COST (linked to a job) or SERVICE_EXPENSE   bill total
    Cr ACCOUNTS_PAYABLE_VENDORS                        bill total

Tax on a vendor bill is not claimed as input credit; it is part of the cost.
A job-linked bill adds its total to the job's vendor_cost and total_cost.
A bill posted without a job can be linked later; the link reclassifies
SERVICE_EXPENSE to JOB_COST and rolls the total into the job.
The vendor ledger gets a CREDIT for the total.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .. import accounts
from ..errors import ValidationError
from ..money import ZERO, to_decimal
from . import outbox_service, party_ledger_service
from .journal_service import JournalLineDraft, assert_balanced, write_journal
from .posting import (
    PostingResult, add_job_cost, business_date, compute_totals, parse_items, require_record,
    TAX_MODE_IGST,
)
from .record_store import RecordStore, Table, ensure_store

logger = logging.getLogger(__name__)

OP_VENDOR_INVOICE = "vendor_invoice"


def post_vendor_invoice(
    vendor_id: str,
    items: Iterable[dict],
    *,
    job_id: Optional[str] = None,
    gst_rate=0,
    tax_mode: str = TAX_MODE_IGST,
    discount=0,
    round_off=0,
    entry_date=None,
    invoice_no: Optional[str] = None,
    store: RecordStore | None = None,
) -> PostingResult:
    store = ensure_store(store)
    vendor = require_record(store, Table.VENDORS, vendor_id, "Vendor")
    if job_id:
        require_record(store, Table.JOBS, job_id, "Job")
    parsed = parse_items(items)
    totals = compute_totals(parsed, gst_rate=gst_rate, tax_mode=tax_mode, discount=discount, round_off=round_off)
    entry_date = business_date(entry_date)

    expense_account = accounts.JOB_COST if job_id else accounts.SERVICE_EXPENSE
    journal_lines = [
        JournalLineDraft.dr(expense_account, totals.total, f"Services from {vendor.name}"),
        JournalLineDraft.cr(accounts.ACCOUNTS_PAYABLE_VENDORS, totals.total, f"Payable to {vendor.name}"),
    ]
    assert_balanced(journal_lines)

    tables = [
        Table.VENDOR_INVOICES, Table.VENDOR_INVOICE_ITEMS, Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES,
        Table.VENDOR_LEDGER_ENTRIES, Table.OFFLINE_OPERATIONS,
    ]
    if job_id:
        tables.append(Table.JOBS)

    def body(tx):
        bill = tx.put(Table.VENDOR_INVOICES, {
            "vendor_id": vendor.id,
            "job_id": job_id,
            "invoice_no": invoice_no,
            "entry_date": entry_date,
            "status": "pending",
            "paid_amount": ZERO,
            "payment_status": "pending",
            **totals.header_fields(),
        })
        item_rows = [
            tx.put(Table.VENDOR_INVOICE_ITEMS, {
                "vendor_invoice_id": bill.id,
                "description": item.description,
                "quantity": item.quantity,
                "rate": item.rate,
                "amount": item.amount,
            })
            for item in parsed
        ]
        entry = write_journal(
            tx,
            source_type="vendor_invoice",
            source_id=bill.id,
            entry_date=entry_date,
            description=f"Vendor invoice {invoice_no or bill.id} from {vendor.name}",
            lines=journal_lines,
        )
        bill.journal_entry_id = entry.id
        ledger_entry = party_ledger_service.add_ledger_entry(
            tx,
            party_ledger_service.PARTY_VENDOR,
            vendor.id,
            entry_date=entry_date,
            particulars=f"Vendor invoice {invoice_no or bill.id}",
            credit=totals.total,
            reference_type="vendor_invoice",
            reference_id=bill.id,
            reference_no=invoice_no,
        )
        related = {}
        if job_id:
            related["job"] = add_job_cost(tx, job_id, "vendor_cost", totals.total)

        operation = outbox_service.enqueue(tx, OP_VENDOR_INVOICE, priority=outbox_service.PRIORITY_HIGH)
        return PostingResult(
            op_type=OP_VENDOR_INVOICE,
            header=bill,
            items=item_rows,
            journal_entry=entry,
            ledger_entries=[ledger_entry],
            operation=operation,
            related=related,
        )

    result = store.transaction(tables, body)
    logger.info("Posted vendor invoice %s for vendor %s total=%s", result.header.id, vendor.id, totals.total)
    return result


OP_VENDOR_INVOICE_LINK = "vendor_invoice_link"


def link_vendor_invoice_to_job(
    vendor_invoice_id: str,
    job_id: str,
    *,
    entry_date=None,
    store: RecordStore | None = None,
) -> PostingResult:
    """
    Charge an already-posted vendor bill to a job.

    The bill total moves from SERVICE_EXPENSE to JOB_COST with a
    reclassification entry, and is added to the job's vendor_cost and
    total_cost. A bill can be linked once.
    """
    store = ensure_store(store)
    bill = require_record(store, Table.VENDOR_INVOICES, vendor_invoice_id, "Vendor invoice")
    job = require_record(store, Table.JOBS, job_id, "Job")
    if bill.job_id:
        raise ValidationError(f"Vendor invoice {bill.id} is already linked to job {bill.job_id}")
    entry_date = business_date(entry_date)
    label = bill.invoice_no or bill.id

    journal_lines = [
        JournalLineDraft.dr(accounts.JOB_COST, bill.total, f"Vendor invoice {label} charged to job"),
        JournalLineDraft.cr(accounts.SERVICE_EXPENSE, bill.total, f"Vendor invoice {label} reclassified"),
    ]
    assert_balanced(journal_lines)

    tables = [Table.VENDOR_INVOICES, Table.JOBS, Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES, Table.OFFLINE_OPERATIONS]

    def body(tx):
        locked = tx.get(Table.VENDOR_INVOICES, bill.id, lock=True)
        if locked.job_id:
            raise ValidationError(f"Vendor invoice {bill.id} is already linked to job {locked.job_id}")
        locked.job_id = job.id
        tx.put(Table.VENDOR_INVOICES, locked)
        entry = write_journal(
            tx,
            source_type="vendor_invoice_link",
            source_id=locked.id,
            entry_date=entry_date,
            description=f"Vendor invoice {label} linked to job {job.job_no or job.id}",
            lines=journal_lines,
        )
        updated_job = add_job_cost(tx, job.id, "vendor_cost", to_decimal(locked.total))
        operation = outbox_service.enqueue(tx, OP_VENDOR_INVOICE_LINK, priority=outbox_service.PRIORITY_NORMAL)
        return PostingResult(
            op_type=OP_VENDOR_INVOICE_LINK,
            header=locked,
            journal_entry=entry,
            operation=operation,
            related={"job": updated_job},
        )

    result = store.transaction(tables, body)
    logger.info("Linked vendor invoice %s to job %s amount=%s", bill.id, job.id, bill.total)
    return result
