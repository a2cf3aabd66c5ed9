# Overview: Service-layer operations for manual vouchers (journal, contra, expense).

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..errors import ValidationError
from ..money import ZERO, money
from . import outbox_service
from .journal_service import JournalLineDraft, assert_balanced, write_journal
from .posting import PostingResult, business_date
from .record_store import RecordStore, Table, ensure_store

logger = logging.getLogger(__name__)

OP_VOUCHER = "voucher"

VALID_VOUCHER_TYPES = ("journal", "payment", "receipt", "contra", "expense")


def _parse_lines(lines: Iterable) -> list[JournalLineDraft]:
    drafts = []
    for index, raw in enumerate(lines or [], start=1):
        if isinstance(raw, JournalLineDraft):
            draft = raw
        elif isinstance(raw, dict):
            code = (raw.get("account_code") or raw.get("account") or "").strip().upper()
            if not code:
                raise ValidationError(f"Line {index}: account_code is required")
            draft = JournalLineDraft(
                account_code=code,
                debit=money(raw.get("debit")),
                credit=money(raw.get("credit")),
                description=raw.get("description"),
            )
        else:
            raise ValidationError(f"Line {index} must be an object")
        if draft.debit < ZERO or draft.credit < ZERO:
            raise ValidationError(f"Line {index}: amounts cannot be negative")
        if draft.debit == ZERO and draft.credit == ZERO:
            raise ValidationError(f"Line {index}: debit or credit is required")
        drafts.append(draft)
    if len(drafts) < 2:
        raise ValidationError("A voucher needs at least two lines")
    return drafts


def create_voucher(
    lines: Iterable,
    *,
    voucher_type: str = "journal",
    entry_date=None,
    narration: Optional[str] = None,
    voucher_no: Optional[str] = None,
    store: RecordStore | None = None,
) -> PostingResult:
    """
    Post a manual voucher from caller-supplied lines.

    The lines must balance as given; an imbalanced voucher is rejected with
    JournalImbalanceError and nothing is written.
    """
    store = ensure_store(store)
    if voucher_type not in VALID_VOUCHER_TYPES:
        raise ValidationError(f"Invalid voucher type: {voucher_type!r}")
    drafts = _parse_lines(lines)
    balance = assert_balanced(drafts)
    entry_date = business_date(entry_date)

    def body(tx):
        voucher = tx.put(Table.VOUCHERS, {
            "voucher_no": voucher_no,
            "voucher_type": voucher_type,
            "entry_date": entry_date,
            "narration": narration,
            "amount": balance.total_debits,
            "status": "posted",
        })
        entry = write_journal(
            tx,
            source_type="voucher",
            source_id=voucher.id,
            entry_date=entry_date,
            description=narration or f"{voucher_type.title()} voucher {voucher_no or voucher.id}",
            lines=drafts,
        )
        voucher.journal_entry_id = entry.id
        operation = outbox_service.enqueue(tx, OP_VOUCHER, priority=outbox_service.PRIORITY_HIGH)
        return PostingResult(op_type=OP_VOUCHER, header=voucher, journal_entry=entry, operation=operation)

    result = store.transaction(
        [Table.VOUCHERS, Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES, Table.OFFLINE_OPERATIONS],
        body,
    )
    logger.info("Posted %s voucher %s amount=%s", voucher_type, result.header.id, balance.total_debits)
    return result
