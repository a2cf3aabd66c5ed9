# Overview: Service-layer operations for the double-entry journal; balance checks, writing and reports.

"""
Journal Invariants (authoritative)

- Every journal entry balances: |sum(debit) - sum(credit)| < 0.01.
- Balance is checked BEFORE the posting transaction opens and again right
  before the lines are written. An imbalance aborts the operation; nothing
  is ever "fixed" by inserting a rounding line.
- Journal rows are append-only. Corrections are new vouchers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from .. import accounts
from ..errors import JournalImbalanceError, ValidationError
from ..models import JournalEntry, JournalLine
from ..money import BALANCE_TOLERANCE, ZERO, money, to_decimal
from ..time_utils import MAX_BUSINESS_DATE, MIN_BUSINESS_DATE
from .record_store import RecordStore, Table, TransactionScope, ensure_store


@dataclass(frozen=True)
class JournalLineDraft:
    """A journal line not yet written."""
    account_code: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: Optional[str] = None

    @classmethod
    def dr(cls, account_code: str, amount, description: Optional[str] = None) -> "JournalLineDraft":
        return cls(account_code, debit=money(amount), description=description)

    @classmethod
    def cr(cls, account_code: str, amount, description: Optional[str] = None) -> "JournalLineDraft":
        return cls(account_code, credit=money(amount), description=description)

    def to_dict(self) -> dict:
        return {
            "account_code": self.account_code,
            "debit": str(self.debit),
            "credit": str(self.credit),
            "description": self.description,
        }


@dataclass(frozen=True)
class JournalBalance:
    balanced: bool
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal

    def to_dict(self) -> dict:
        return {
            "balanced": self.balanced,
            "total_debits": str(self.total_debits),
            "total_credits": str(self.total_credits),
            "difference": str(self.difference),
        }


def _amount(line, field: str) -> Decimal:
    if isinstance(line, Mapping):
        return to_decimal(line.get(field))
    return to_decimal(getattr(line, field, None))


def validate_journal_balance(lines: Iterable) -> JournalBalance:
    """
    Sum debit and credit columns independently.

    Lines may be dicts, JournalLine rows or JournalLineDraft objects; missing
    or non-numeric amounts count as 0. Pure: no I/O.
    """
    total_debits = ZERO
    total_credits = ZERO
    for line in lines:
        total_debits += _amount(line, "debit")
        total_credits += _amount(line, "credit")
    difference = total_debits - total_credits
    return JournalBalance(
        balanced=abs(difference) < BALANCE_TOLERANCE,
        total_debits=total_debits,
        total_credits=total_credits,
        difference=difference,
    )


def assert_balanced(lines: Iterable) -> JournalBalance:
    result = validate_journal_balance(lines)
    if not result.balanced:
        raise JournalImbalanceError(result.difference, result.total_debits, result.total_credits)
    return result


def write_journal(
    tx: TransactionScope,
    *,
    source_type: str,
    source_id: Optional[str],
    entry_date: date,
    description: Optional[str],
    lines: list[JournalLineDraft],
) -> JournalEntry:
    """
    Append one balanced journal entry inside an open transaction.

    Zero-amount drafts are dropped; at least two lines must remain.
    """
    kept = [line for line in lines if line.debit != ZERO or line.credit != ZERO]
    if len(kept) < 2:
        raise ValidationError("A journal entry needs at least two non-zero lines")
    assert_balanced(kept)

    entry = tx.put(Table.JOURNAL_ENTRIES, {
        "source_type": source_type,
        "source_id": source_id,
        "entry_date": entry_date,
        "description": description,
    })
    for draft in kept:
        line = tx.put(Table.JOURNAL_LINES, {
            "journal_entry_id": entry.id,
            "account_code": draft.account_code,
            "account_name": accounts.account_name(draft.account_code),
            "debit": draft.debit,
            "credit": draft.credit,
            "description": draft.description,
        })
        entry.lines.append(line)
    return entry


# =============================================================================
# READ SIDE
# =============================================================================

def _lines_in_range(store: RecordStore, account_code: str, from_date, to_date):
    start = from_date or MIN_BUSINESS_DATE
    end = to_date or MAX_BUSINESS_DATE
    return (
        store.session.query(JournalLine, JournalEntry)
        .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
        .filter(JournalLine.account_code == account_code)
        .filter(JournalEntry.entry_date >= start, JournalEntry.entry_date <= end)
        .order_by(JournalEntry.entry_date.asc(), JournalLine.id.asc())
        .all()
    )


def get_account_ledger(
    account_code: str,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    *,
    store: RecordStore | None = None,
) -> dict:
    """
    Account statement with a running balance of debit - credit.

    The balance is not flipped for credit-normal accounts; liabilities and
    revenue therefore show negative balances.
    """
    store = ensure_store(store)
    account = accounts.get_account(account_code)

    balance = ZERO
    total_debits = ZERO
    total_credits = ZERO
    entries = []
    for line, entry in _lines_in_range(store, account_code, from_date, to_date):
        debit = to_decimal(line.debit)
        credit = to_decimal(line.credit)
        balance += debit - credit
        total_debits += debit
        total_credits += credit
        entries.append({
            "journal_entry_id": entry.id,
            "entry_date": entry.entry_date.isoformat(),
            "source_type": entry.source_type,
            "source_id": entry.source_id,
            "description": line.description or entry.description,
            "debit": str(debit),
            "credit": str(credit),
            "balance": str(balance),
        })

    return {
        "account": account.to_dict(),
        "entries": entries,
        "total_debits": str(total_debits),
        "total_credits": str(total_credits),
        "closing_balance": str(balance),
    }


def _net(store, account_code, from_date, to_date) -> tuple[Decimal, Decimal]:
    debits = ZERO
    credits = ZERO
    for line, _entry in _lines_in_range(store, account_code, from_date, to_date):
        debits += to_decimal(line.debit)
        credits += to_decimal(line.credit)
    return debits, credits


def get_gst_report(
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    *,
    store: RecordStore | None = None,
) -> dict:
    """
    GST summary for a period.

    input credit = GST_INPUT debit - credit
    output tax   = GST_OUTPUT credit - debit
    net payable  = output - input (negative means carry-forward credit)
    """
    store = ensure_store(store)
    in_dr, in_cr = _net(store, accounts.GST_INPUT, from_date, to_date)
    out_dr, out_cr = _net(store, accounts.GST_OUTPUT, from_date, to_date)
    input_credit = in_dr - in_cr
    output_tax = out_cr - out_dr
    return {
        "from_date": (from_date or MIN_BUSINESS_DATE).isoformat(),
        "to_date": (to_date or MAX_BUSINESS_DATE).isoformat(),
        "input_credit": str(input_credit),
        "output_tax": str(output_tax),
        "net_payable": str(output_tax - input_credit),
    }
