# Overview: Service-layer operations for issue challans; stock leaving the store for a job.

"""
Challan Issuance

Stock-only posting: no journal entry. Each line moves stock OUT with an
enforced availability check. Lines that come from a jobsheet mark the
originating jobsheet item as issued. When the challan is for a job, the
parts are charged to the job's material_cost at the product purchase rate.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional

from ..errors import ValidationError
from ..money import ZERO, money, quantity, to_decimal
from ..time_utils import utcnow
from . import inventory_service, outbox_service
from .posting import PostingResult, add_job_cost, business_date, require_record
from .record_store import RecordStore, Table, ensure_store

logger = logging.getLogger(__name__)

OP_CHALLAN = "challan_issue"


def _lines_from_jobsheet_items(store: RecordStore, jobsheet_item_ids: Iterable[str]) -> list[dict]:
    lines = []
    for item_id in jobsheet_item_ids:
        item = require_record(store, Table.JOBSHEET_ITEMS, item_id, "Jobsheet item")
        lines.append({"product_id": item.product_id, "quantity": item.quantity, "jobsheet_item_id": item.id})
    return lines


def _parse_lines(store: RecordStore, items: Iterable[dict]) -> list[dict]:
    parsed = []
    for index, raw in enumerate(items, start=1):
        qty = quantity(raw.get("quantity", raw.get("qty")))
        if qty <= ZERO:
            raise ValidationError(f"Item {index}: quantity must be greater than 0")
        product = require_record(store, Table.PRODUCTS, raw.get("product_id"), "Product")
        jobsheet_item_id = raw.get("jobsheet_item_id")
        if jobsheet_item_id:
            source = require_record(store, Table.JOBSHEET_ITEMS, jobsheet_item_id, "Jobsheet item")
            if source.is_issued:
                raise ValidationError(f"Jobsheet item {source.id} has already been issued")
            if source.product_id != product.id:
                raise ValidationError(f"Jobsheet item {source.id} is for a different product")
        parsed.append({"product": product, "quantity": qty, "jobsheet_item_id": jobsheet_item_id})
    if not parsed:
        raise ValidationError("At least one item is required")
    return parsed


def issue_challan(
    items: Optional[Iterable[dict]] = None,
    *,
    job_id: Optional[str] = None,
    jobsheet_id: Optional[str] = None,
    jobsheet_item_ids: Iterable[str] = (),
    challan_no: Optional[str] = None,
    entry_date=None,
    notes: Optional[str] = None,
    store: RecordStore | None = None,
) -> PostingResult:
    """
    Issue parts against a job or jobsheet.

    items: [{"product_id", "quantity", "jobsheet_item_id"?}, ...]. When only
    jobsheet_item_ids are given, lines are built from those items.
    """
    store = ensure_store(store)
    if job_id:
        require_record(store, Table.JOBS, job_id, "Job")
    if jobsheet_id:
        sheet = require_record(store, Table.JOBSHEETS, jobsheet_id, "Jobsheet")
        job_id = job_id or sheet.job_id

    raw_items = list(items or []) + _lines_from_jobsheet_items(store, jobsheet_item_ids or ())
    lines = _parse_lines(store, raw_items)

    required: dict[str, Decimal] = {}
    for line in lines:
        required[line["product"].id] = required.get(line["product"].id, ZERO) + line["quantity"]
    inventory_service.require_stock_for(required, store=store)

    entry_date = business_date(entry_date)
    material_cost = money(sum(
        (line["quantity"] * to_decimal(line["product"].purchase_rate) for line in lines), ZERO
    ))

    tables = [
        Table.CHALLANS, Table.CHALLAN_ITEMS, Table.PRODUCTS, Table.STOCK_TRANSACTIONS,
        Table.OFFLINE_OPERATIONS,
    ]
    if any(line["jobsheet_item_id"] for line in lines):
        tables.append(Table.JOBSHEET_ITEMS)
    if job_id:
        tables.append(Table.JOBS)

    def body(tx):
        challan = tx.put(Table.CHALLANS, {
            "challan_no": challan_no,
            "job_id": job_id,
            "jobsheet_id": jobsheet_id,
            "entry_date": entry_date,
            "status": "issued",
            "notes": notes,
        })
        item_rows = []
        movements = []
        issued_items = []
        for line in lines:
            product = line["product"]
            item_rows.append(tx.put(Table.CHALLAN_ITEMS, {
                "challan_id": challan.id,
                "product_id": product.id,
                "jobsheet_item_id": line["jobsheet_item_id"],
                "quantity": line["quantity"],
            }))
            movements.append(inventory_service.apply_stock_movement(
                tx,
                product.id,
                -line["quantity"],
                reference_type="challan",
                reference_id=challan.id,
                entry_date=entry_date,
                description=f"Issued on challan {challan_no or challan.id}",
            ))
            if line["jobsheet_item_id"]:
                source = tx.get(Table.JOBSHEET_ITEMS, line["jobsheet_item_id"], lock=True)
                if source.is_issued:
                    raise ValidationError(f"Jobsheet item {source.id} has already been issued")
                source.is_issued = True
                source.issued_at = utcnow()
                issued_items.append(tx.put(Table.JOBSHEET_ITEMS, source))

        related = {}
        if issued_items:
            related["jobsheet_items"] = issued_items
        if job_id and material_cost > ZERO:
            related["job"] = add_job_cost(tx, job_id, "material_cost", material_cost)

        operation = outbox_service.enqueue(tx, OP_CHALLAN, priority=outbox_service.PRIORITY_NORMAL)
        return PostingResult(
            op_type=OP_CHALLAN,
            header=challan,
            items=item_rows,
            stock_transactions=movements,
            operation=operation,
            related=related,
        )

    result = store.transaction(tables, body)
    logger.info("Issued challan %s with %s line(s)", result.header.id, len(lines))
    return result
