# Overview: Service-layer operations for labour jobsheets; costing, approval and material issue.

"""
Labour Jobsheets

COSTING: rate = technician.hourly_rate, else daily_rate / 8 (an 8-hour day).
labour_cost = hours x rate, rounded to 2 places.

LIFECYCLE:
- create_labour_jobsheet: status "draft", no journal.
- approve_jobsheet: posts
      Dr LABOUR_EXPENSE                          labour cost
      Cr PAYROLL_PAYABLE / CONTRACTOR_PAYABLE    labour cost (by is_contractor)
  adds the cost to the job (labour_cost and total_cost) and CREDITS the
  labour ledger. Approving twice is rejected.
- issue_jobsheet_materials: issues every un-issued material line through a
  challan.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional

from .. import accounts
from ..errors import ValidationError
from ..money import ZERO, money, quantity, to_decimal
from ..time_utils import utcnow
from . import challan_service, outbox_service, party_ledger_service
from .journal_service import JournalLineDraft, assert_balanced, write_journal
from .payment_service import labour_payable_account
from .posting import PostingResult, add_job_cost, business_date, require_record
from .record_store import RecordStore, Table, ensure_store

logger = logging.getLogger(__name__)

OP_JOBSHEET_CREATE = "jobsheet_create"
OP_JOBSHEET_APPROVE = "jobsheet_approve"

HOURS_PER_DAY = Decimal("8")


def resolve_labour_rate(labour) -> Decimal:
    hourly = to_decimal(labour.hourly_rate)
    if hourly > ZERO:
        return money(hourly)
    daily = to_decimal(labour.daily_rate)
    return money(daily / HOURS_PER_DAY)


def create_labour_jobsheet(
    job_id: str,
    technician_id: str,
    hours,
    *,
    work_date=None,
    description: Optional[str] = None,
    materials: Iterable[dict] = (),
    store: RecordStore | None = None,
) -> PostingResult:
    store = ensure_store(store)
    job = require_record(store, Table.JOBS, job_id, "Job")
    labour = require_record(store, Table.LABOUR, technician_id, "Labour")

    hours = quantity(hours)
    if hours <= ZERO:
        raise ValidationError("Hours must be greater than 0")
    rate = resolve_labour_rate(labour)
    if rate <= ZERO:
        raise ValidationError(f"{labour.name} has no hourly or daily rate configured")
    labour_cost = money(hours * rate)

    material_lines = []
    for index, raw in enumerate(materials or (), start=1):
        qty = quantity(raw.get("quantity", raw.get("qty")))
        if qty <= ZERO:
            raise ValidationError(f"Material {index}: quantity must be greater than 0")
        product = require_record(store, Table.PRODUCTS, raw.get("product_id"), "Product")
        material_lines.append((product.id, qty))

    work_date = business_date(work_date)

    def body(tx):
        sheet = tx.put(Table.JOBSHEETS, {
            "job_id": job.id,
            "technician_id": labour.id,
            "work_date": work_date,
            "hours": hours,
            "rate": rate,
            "labour_cost": labour_cost,
            "description": description,
            "status": "draft",
            "paid_amount": ZERO,
            "payment_status": "pending",
        })
        item_rows = [
            tx.put(Table.JOBSHEET_ITEMS, {
                "jobsheet_id": sheet.id,
                "product_id": product_id,
                "quantity": qty,
                "is_issued": False,
            })
            for product_id, qty in material_lines
        ]
        operation = outbox_service.enqueue(tx, OP_JOBSHEET_CREATE, priority=outbox_service.PRIORITY_NORMAL)
        return PostingResult(op_type=OP_JOBSHEET_CREATE, header=sheet, items=item_rows, operation=operation)

    result = store.transaction([Table.JOBSHEETS, Table.JOBSHEET_ITEMS, Table.OFFLINE_OPERATIONS], body)
    logger.info("Created jobsheet %s: %s h x %s = %s", result.header.id, hours, rate, labour_cost)
    return result


def approve_jobsheet(
    jobsheet_id: str,
    approved_by: Optional[str] = None,
    *,
    entry_date=None,
    store: RecordStore | None = None,
) -> PostingResult:
    store = ensure_store(store)
    sheet = require_record(store, Table.JOBSHEETS, jobsheet_id, "Jobsheet")
    if sheet.status != "draft":
        raise ValidationError(f"Jobsheet {sheet.id} is already {sheet.status}")
    labour = require_record(store, Table.LABOUR, sheet.technician_id, "Labour")
    require_record(store, Table.JOBS, sheet.job_id, "Job")

    cost = money(sheet.labour_cost)
    if cost <= ZERO:
        raise ValidationError(f"Jobsheet {sheet.id} has no labour cost")
    payable = labour_payable_account(labour)
    journal_lines = [
        JournalLineDraft.dr(accounts.LABOUR_EXPENSE, cost, f"Labour by {labour.name}"),
        JournalLineDraft.cr(payable, cost, f"Payable to {labour.name}"),
    ]
    assert_balanced(journal_lines)
    entry_date = business_date(entry_date or sheet.work_date)

    tables = [
        Table.JOBSHEETS, Table.JOBS, Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES,
        Table.LABOUR_LEDGER_ENTRIES, Table.OFFLINE_OPERATIONS,
    ]

    def body(tx):
        locked = tx.get(Table.JOBSHEETS, sheet.id, lock=True)
        if locked.status != "draft":
            raise ValidationError(f"Jobsheet {locked.id} is already {locked.status}")
        entry = write_journal(
            tx,
            source_type="jobsheet",
            source_id=locked.id,
            entry_date=entry_date,
            description=f"Labour cost for jobsheet {locked.id}",
            lines=journal_lines,
        )
        locked.status = "approved"
        locked.approved_by = approved_by
        locked.approved_at = utcnow()
        locked.journal_entry_id = entry.id
        tx.put(Table.JOBSHEETS, locked)

        job = add_job_cost(tx, locked.job_id, "labour_cost", cost)
        ledger_entry = party_ledger_service.add_ledger_entry(
            tx,
            party_ledger_service.PARTY_LABOUR,
            labour.id,
            entry_date=entry_date,
            particulars=f"Jobsheet {locked.id} ({locked.hours} h)",
            credit=cost,
            reference_type="jobsheet",
            reference_id=locked.id,
        )
        operation = outbox_service.enqueue(tx, OP_JOBSHEET_APPROVE, priority=outbox_service.PRIORITY_HIGH)
        return PostingResult(
            op_type=OP_JOBSHEET_APPROVE,
            header=locked,
            journal_entry=entry,
            ledger_entries=[ledger_entry],
            operation=operation,
            related={"job": job},
        )

    result = store.transaction(tables, body)
    logger.info("Approved jobsheet %s cost=%s to %s", sheet.id, cost, payable)
    return result


def issue_jobsheet_materials(
    jobsheet_id: str,
    *,
    challan_no: Optional[str] = None,
    entry_date=None,
    store: RecordStore | None = None,
) -> PostingResult:
    store = ensure_store(store)
    sheet = require_record(store, Table.JOBSHEETS, jobsheet_id, "Jobsheet")
    pending = [
        item.id for item in store.get_by_index(Table.JOBSHEET_ITEMS, "jobsheet_id", sheet.id)
        if not item.is_issued
    ]
    if not pending:
        raise ValidationError(f"Jobsheet {sheet.id} has no materials waiting to be issued")
    return challan_service.issue_challan(
        jobsheet_id=sheet.id,
        jobsheet_item_ids=pending,
        challan_no=challan_no,
        entry_date=entry_date,
        store=store,
    )
