# Overview: Shared building blocks for posting services; item parsing, tax, totals and results.

"""
Posting protocol shared by every "post X" operation:

1. Resolve referenced entities (NotFoundError before any write).
2. Validate domain constraints (ValidationError before any write).
3. Compute amounts: subtotal = sum(qty x rate); taxable = subtotal - discount;
   tax by mode (IGST single rate, or CGST + SGST halves); total =
   taxable + tax + round_off.
4. Build journal drafts and assert balance; check stock for issues.
5. Commit the whole write set through RecordStore.transaction, outbox last.
6. Return a PostingResult holding every materialized record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from ..accounts import ROUND_OFF
from ..errors import NotFoundError, ValidationError
from ..money import MONEY_PLACES, ZERO, money, quantity, to_decimal
from ..time_utils import parse_business_date, today
from .journal_service import JournalLineDraft
from .record_store import RecordStore, Table

TAX_MODE_IGST = "igst"
TAX_MODE_CGST_SGST = "cgst_sgst"
VALID_TAX_MODES = (TAX_MODE_IGST, TAX_MODE_CGST_SGST)

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"


# =============================================================================
# LINE ITEMS
# =============================================================================

@dataclass(frozen=True)
class LineItem:
    quantity: Decimal
    rate: Decimal
    product_id: Optional[str] = None
    description: Optional[str] = None
    item_type: str = "part"

    @property
    def amount(self) -> Decimal:
        return money(self.quantity * self.rate)


def parse_items(items: Iterable[Any], *, require_product: bool = False) -> list[LineItem]:
    """
    Validate raw item dicts. quantity > 0 and rate > 0 are required.

    Accepted keys: product_id, quantity (or qty), rate, description, item_type.
    """
    parsed = []
    for index, raw in enumerate(items or [], start=1):
        if isinstance(raw, LineItem):
            item = raw
        elif isinstance(raw, dict):
            item = LineItem(
                quantity=quantity(raw.get("quantity", raw.get("qty"))),
                rate=money(raw.get("rate")),
                product_id=raw.get("product_id") or None,
                description=raw.get("description"),
                item_type=raw.get("item_type") or ("part" if raw.get("product_id") else "service"),
            )
        else:
            raise ValidationError(f"Item {index} must be an object")

        if item.quantity <= ZERO:
            raise ValidationError(f"Item {index}: quantity must be greater than 0")
        if item.rate <= ZERO:
            raise ValidationError(f"Item {index}: rate must be greater than 0")
        if require_product and not item.product_id:
            raise ValidationError(f"Item {index}: product_id is required")
        parsed.append(item)

    if not parsed:
        raise ValidationError("At least one item is required")
    return parsed


def stock_requirements(items: Iterable[LineItem]) -> dict[str, Decimal]:
    """Total quantity per product (a product may appear on several lines)."""
    required: dict[str, Decimal] = {}
    for item in items:
        if item.product_id:
            required[item.product_id] = required.get(item.product_id, ZERO) + item.quantity
    return required


# =============================================================================
# TAX AND TOTALS
# =============================================================================

@dataclass(frozen=True)
class TaxBreakdown:
    mode: str
    rate: Decimal
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.cgst + self.sgst + self.igst

    def components(self) -> list[tuple[str, Decimal]]:
        """Non-zero (label, amount) pairs, one journal line each."""
        parts = [("CGST", self.cgst), ("SGST", self.sgst), ("IGST", self.igst)]
        return [(label, amount) for label, amount in parts if amount != ZERO]


def compute_tax(taxable: Decimal, gst_rate, tax_mode: str = TAX_MODE_IGST) -> TaxBreakdown:
    """
    gst_rate is a percentage (18 means 18%).

    CGST+SGST splits the rate in half and rounds each half separately, the way
    the two taxes are printed on an invoice.
    """
    rate = to_decimal(gst_rate)
    if rate < ZERO:
        raise ValidationError("GST rate cannot be negative")
    mode = (tax_mode or TAX_MODE_IGST).lower()
    if mode not in VALID_TAX_MODES:
        raise ValidationError(f"Invalid tax mode: {tax_mode!r}")

    if mode == TAX_MODE_CGST_SGST:
        half = money(taxable * (rate / 2) / 100)
        return TaxBreakdown(mode=mode, rate=rate, cgst=half, sgst=half)
    return TaxBreakdown(mode=mode, rate=rate, igst=money(taxable * rate / 100))


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    discount: Decimal
    taxable: Decimal
    tax: TaxBreakdown
    round_off: Decimal
    total: Decimal

    def header_fields(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax_mode": self.tax.mode,
            "gst_rate": self.tax.rate,
            "cgst_amount": self.tax.cgst,
            "sgst_amount": self.tax.sgst,
            "igst_amount": self.tax.igst,
            "tax_amount": self.tax.total,
            "round_off": self.round_off,
            "total": self.total,
        }


def compute_totals(
    items: Iterable[LineItem],
    *,
    gst_rate=0,
    tax_mode: str = TAX_MODE_IGST,
    discount=0,
    round_off=0,
) -> DocumentTotals:
    subtotal = money(sum((item.amount for item in items), ZERO))
    discount = money(discount)
    if discount < ZERO:
        raise ValidationError("Discount cannot be negative")
    if discount > subtotal:
        raise ValidationError("Discount cannot exceed the subtotal")
    taxable = subtotal - discount
    tax = compute_tax(taxable, gst_rate, tax_mode)
    round_off = money(round_off)
    if abs(round_off) >= Decimal("1"):
        raise ValidationError("Round-off must be less than 1 in either direction")
    total = taxable + tax.total + round_off
    return DocumentTotals(
        subtotal=subtotal,
        discount=discount,
        taxable=taxable,
        tax=tax,
        round_off=round_off,
        total=total.quantize(MONEY_PLACES),
    )


def tax_lines(account_code: str, tax: TaxBreakdown, *, credit: bool) -> list[JournalLineDraft]:
    make = JournalLineDraft.cr if credit else JournalLineDraft.dr
    return [make(account_code, amount, f"{label} @ {tax.rate}%") for label, amount in tax.components()]


def round_off_line(round_off: Decimal, *, on_debit_side: bool) -> list[JournalLineDraft]:
    """
    Round-off booked explicitly so that documents still balance.

    on_debit_side: the side that carries the base amounts (purchases debit
    inventory, sales credit revenue flips it).
    """
    if round_off == ZERO:
        return []
    amount = abs(round_off)
    if (round_off > ZERO) == on_debit_side:
        return [JournalLineDraft.dr(ROUND_OFF, amount, "Round off")]
    return [JournalLineDraft.cr(ROUND_OFF, amount, "Round off")]


def derive_payment_status(paid_amount, total) -> str:
    paid = to_decimal(paid_amount)
    due = to_decimal(total)
    if paid > ZERO and paid >= due:
        return PAYMENT_STATUS_PAID
    if paid > ZERO:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_PENDING


def positive_amount(value, label: str = "Amount") -> Decimal:
    amount = money(value)
    if amount <= ZERO:
        raise ValidationError(f"{label} must be greater than 0")
    return amount


def business_date(value) -> date:
    try:
        return parse_business_date(value) or today()
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}") from None


def require_record(store: RecordStore, table: Table, record_id, entity: str):
    if not record_id:
        raise ValidationError(f"{entity} id is required")
    record = store.get_by_id(table, record_id)
    if record is None:
        raise NotFoundError(entity, record_id)
    return record


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class PostingResult:
    """Everything one posting materialized."""
    op_type: str
    header: Any
    items: list = field(default_factory=list)
    journal_entry: Any = None
    stock_transactions: list = field(default_factory=list)
    ledger_entries: list = field(default_factory=list)
    operation: Any = None
    related: dict = field(default_factory=dict)
    warnings: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "op_type": self.op_type,
            "header": self.header.to_dict() if self.header is not None else None,
            "items": [item.to_dict() for item in self.items],
            "journal_entry": self.journal_entry.to_dict() if self.journal_entry is not None else None,
            "stock_transactions": [row.to_dict() for row in self.stock_transactions],
            "ledger_entries": [row.to_dict() for row in self.ledger_entries],
            "operation": self.operation.to_dict() if self.operation is not None else None,
            "related": {
                key: ([r.to_dict() for r in value] if isinstance(value, list) else value.to_dict())
                for key, value in self.related.items()
            },
            "warnings": list(self.warnings),
        }


def add_job_cost(tx, job_id: str, cost_field: str, amount: Decimal):
    """Add to one cost bucket of a job and to its total_cost, under a row lock."""
    job = tx.get(Table.JOBS, job_id, lock=True)
    if job is None:
        raise NotFoundError("Job", job_id)
    setattr(job, cost_field, to_decimal(getattr(job, cost_field)) + amount)
    job.total_cost = to_decimal(job.total_cost) + amount
    tx.put(Table.JOBS, job)
    return job
