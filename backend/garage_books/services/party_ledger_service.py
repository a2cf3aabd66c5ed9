# Overview: Service-layer operations for party ledgers; append entries and replay running balances.

"""
Party Ledgers (customer / vendor / supplier / labour)

POLARITY: balance += credit - debit, starting from the party's
opening_balance. This is the reducer's convention for every party type and
is kept as-is.

POSTING CONVENTION: so that the replayed balance always reads as "amount
outstanding", documents that raise what is owed (sales invoice, purchase,
vendor invoice, approved jobsheet) are written in the CREDIT column and
settlements (payments) in the DEBIT column.

Replay is a pure read. Entries are filtered by an inclusive date range
(open ends default to 1900-01-01 / 2100-12-31), sorted by entry_date with
insertion order breaking ties, then folded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from ..errors import NotFoundError, ValidationError
from ..money import ZERO, money, to_decimal
from ..time_utils import MAX_BUSINESS_DATE, MIN_BUSINESS_DATE
from .record_store import RecordStore, Table, TransactionScope, ensure_store

PARTY_CUSTOMER = "customer"
PARTY_VENDOR = "vendor"
PARTY_SUPPLIER = "supplier"
PARTY_LABOUR = "labour"

# party_type -> (party table, ledger table)
PARTY_TABLES: dict[str, tuple[Table, Table]] = {
    PARTY_CUSTOMER: (Table.CUSTOMERS, Table.CUSTOMER_LEDGER_ENTRIES),
    PARTY_VENDOR: (Table.VENDORS, Table.VENDOR_LEDGER_ENTRIES),
    PARTY_SUPPLIER: (Table.SUPPLIERS, Table.SUPPLIER_LEDGER_ENTRIES),
    PARTY_LABOUR: (Table.LABOUR, Table.LABOUR_LEDGER_ENTRIES),
}


def party_tables(party_type: str) -> tuple[Table, Table]:
    try:
        return PARTY_TABLES[(party_type or "").lower()]
    except KeyError:
        raise ValidationError(f"Unknown party type: {party_type!r}") from None


def ledger_table(party_type: str) -> Table:
    return party_tables(party_type)[1]


@dataclass(frozen=True)
class LedgerLine:
    entry_id: int
    entry_date: date
    particulars: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    reference_type: Optional[str]
    reference_id: Optional[str]
    reference_no: Optional[str]

    def to_dict(self) -> dict:
        return {
            "id": self.entry_id,
            "entry_date": self.entry_date.isoformat(),
            "particulars": self.particulars,
            "debit": str(self.debit),
            "credit": str(self.credit),
            "balance": str(self.balance),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "reference_no": self.reference_no,
        }


@dataclass(frozen=True)
class PartyLedger:
    party_type: str
    party_id: str
    party_name: str
    opening_balance: Decimal
    closing_balance: Decimal
    total_debits: Decimal
    total_credits: Decimal
    entries: list[LedgerLine] = field(default_factory=list)

    @property
    def outstanding_amount(self) -> Decimal:
        """Same value as closing_balance; both names are used by callers."""
        return self.closing_balance

    def to_dict(self) -> dict:
        return {
            "party_type": self.party_type,
            "party_id": self.party_id,
            "party_name": self.party_name,
            "entries": [entry.to_dict() for entry in self.entries],
            "opening_balance": str(self.opening_balance),
            "closing_balance": str(self.closing_balance),
            "outstanding_amount": str(self.outstanding_amount),
            "totals": {
                "debit": str(self.total_debits),
                "credit": str(self.total_credits),
            },
        }


def add_ledger_entry(
    tx: TransactionScope,
    party_type: str,
    party_id: str,
    *,
    entry_date: date,
    particulars: str,
    debit=ZERO,
    credit=ZERO,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    reference_no: Optional[str] = None,
):
    """Append one party ledger row inside an open transaction."""
    return tx.put(ledger_table(party_type), {
        "party_id": party_id,
        "entry_date": entry_date,
        "particulars": particulars,
        "debit": money(debit),
        "credit": money(credit),
        "reference_type": reference_type,
        "reference_id": reference_id,
        "reference_no": reference_no,
    })


def get_ledger(
    party_type: str,
    party_id: str,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    *,
    store: RecordStore | None = None,
) -> PartyLedger:
    store = ensure_store(store)
    party_table, entries_table = party_tables(party_type)
    party = store.get_by_id(party_table, party_id)
    if party is None:
        raise NotFoundError(party_type.capitalize(), party_id)

    start = from_date or MIN_BUSINESS_DATE
    end = to_date or MAX_BUSINESS_DATE
    rows = [
        row for row in store.get_by_index(entries_table, "party_id", party_id)
        if start <= row.entry_date <= end
    ]
    # get_by_index returns insertion order; sorted() is stable.
    rows = sorted(rows, key=lambda row: row.entry_date)

    opening = to_decimal(party.opening_balance)
    balance = opening
    total_debits = ZERO
    total_credits = ZERO
    lines = []
    for row in rows:
        debit = to_decimal(row.debit)
        credit = to_decimal(row.credit)
        balance += credit - debit
        total_debits += debit
        total_credits += credit
        lines.append(LedgerLine(
            entry_id=row.id,
            entry_date=row.entry_date,
            particulars=row.particulars,
            debit=debit,
            credit=credit,
            balance=balance,
            reference_type=row.reference_type,
            reference_id=row.reference_id,
            reference_no=row.reference_no,
        ))

    return PartyLedger(
        party_type=party_type.lower(),
        party_id=party_id,
        party_name=party.name,
        opening_balance=opening,
        closing_balance=balance,
        total_debits=total_debits,
        total_credits=total_credits,
        entries=lines,
    )


def get_outstanding(party_type: str, party_id: str, *, store: RecordStore | None = None) -> Decimal:
    return get_ledger(party_type, party_id, store=store).outstanding_amount


# =============================================================================
# SUMMARIES
# =============================================================================

def _latest(rows, field_name: str) -> Optional[str]:
    dates = [getattr(row, field_name) for row in rows if getattr(row, field_name) is not None]
    return max(dates).isoformat() if dates else None


def _total(rows, field_name: str) -> Decimal:
    return money(sum((to_decimal(getattr(row, field_name)) for row in rows), ZERO))


def get_party_summary(party_type: str, party_id: str, *, store: RecordStore | None = None) -> dict:
    """
    Headline figures for one party.

    outstanding comes from the ledger replay (opening balance included).
    Document counts and totals come from the party's own documents; paid
    totals come from the payments table.
    """
    store = ensure_store(store)
    ledger = get_ledger(party_type, party_id, store=store)
    party_type = ledger.party_type
    party_table, _entries_table = party_tables(party_type)
    party = store.get_by_id(party_table, party_id)

    payments = [
        row for row in store.get_by_index(Table.PAYMENTS, "party_id", party_id)
        if row.party_type == party_type
    ]
    summary = {
        "party_type": party_type,
        "party_id": party_id,
        "party_name": party.name,
        "opening_balance": str(ledger.opening_balance),
        "total_paid": str(_total(payments, "amount")),
        "outstanding": str(ledger.outstanding_amount),
        "last_payment_date": _latest(payments, "entry_date"),
    }

    if party_type == PARTY_CUSTOMER:
        jobs = store.get_by_index(Table.JOBS, "customer_id", party_id)
        invoices = store.get_by_index(Table.INVOICES, "customer_id", party_id)
        summary.update({
            "total_jobs": len(jobs),
            "completed_jobs": sum(1 for job in jobs if job.status in ("completed", "closed")),
            "total_invoices": len(invoices),
            "total_invoiced": str(_total(invoices, "total")),
            "last_invoice_date": _latest(invoices, "entry_date"),
        })
    elif party_type == PARTY_SUPPLIER:
        purchases = store.get_by_index(Table.PURCHASES, "supplier_id", party_id)
        summary.update({
            "total_purchases": len(purchases),
            "total_purchase_amount": str(_total(purchases, "total")),
            "last_purchase_date": _latest(purchases, "entry_date"),
        })
    elif party_type == PARTY_VENDOR:
        bills = store.get_by_index(Table.VENDOR_INVOICES, "vendor_id", party_id)
        summary.update({
            "service_type": party.service_type,
            "total_invoices": len(bills),
            "total_invoiced": str(_total(bills, "total")),
            "jobs_linked": len({bill.job_id for bill in bills if bill.job_id}),
            "last_invoice_date": _latest(bills, "entry_date"),
        })
    else:
        from .jobsheet_service import resolve_labour_rate

        jobsheets = store.get_by_index(Table.JOBSHEETS, "technician_id", party_id)
        approved = [sheet for sheet in jobsheets if sheet.status == "approved"]
        total_hours = sum((to_decimal(sheet.hours) for sheet in approved), ZERO)
        total_cost = _total(approved, "labour_cost")
        # No approved hours yet: fall back to the configured rate.
        average_rate = money(total_cost / total_hours) if total_hours > ZERO else resolve_labour_rate(party)
        summary.update({
            "is_contractor": bool(party.is_contractor),
            "total_jobsheets": len(jobsheets),
            "approved_jobsheets": len(approved),
            "total_hours": str(total_hours),
            "total_labour_cost": str(total_cost),
            "average_hourly_rate": str(average_rate),
            "last_jobsheet_date": _latest(jobsheets, "work_date"),
        })
    return summary
