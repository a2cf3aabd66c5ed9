# Overview: Service-layer operations for the outbox; enqueue inside the business transaction.

from __future__ import annotations

from collections import OrderedDict

from ..errors import ValidationError
from ..models import OfflineOperation
from .record_store import Table, TransactionScope

PRIORITY_HIGH = "high"
PRIORITY_NORMAL = "normal"
PRIORITY_LOW = "low"

PRIORITY_ORDER = {PRIORITY_HIGH: 0, PRIORITY_NORMAL: 1, PRIORITY_LOW: 2}

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_CONFLICT = "conflict"


def build_payload(tx: TransactionScope) -> "OrderedDict[str, list[dict]]":
    """Every record written so far in the transaction, grouped by table in write order."""
    payload: "OrderedDict[str, list[dict]]" = OrderedDict()
    for table, record in tx.written:
        if table in (Table.OFFLINE_OPERATIONS, Table.CONFLICTS):
            continue
        payload.setdefault(table.value, []).append(record.to_dict())
    return payload


def enqueue(tx: TransactionScope, op_type: str, *, priority: str = PRIORITY_NORMAL) -> OfflineOperation:
    """
    Append the outbox row for the current transaction.

    CRITICAL: call LAST inside the posting body, so the payload holds the full
    write set. Flushes first so integer keys (journal lines, ledger entries,
    stock movements) are present in the payload.
    """
    if priority not in PRIORITY_ORDER:
        raise ValidationError(f"Invalid priority: {priority!r}")
    tx.flush()
    payload = build_payload(tx)
    return tx.put(Table.OFFLINE_OPERATIONS, {
        "op_type": op_type,
        "stores": list(payload.keys()),
        "payload": dict(payload),
        "priority": priority,
        "status": STATUS_PENDING,
        "retry_count": 0,
    })
