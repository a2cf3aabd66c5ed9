# Overview: Service-layer operations for payments; customer receipts and supplier/vendor/labour settlements.

"""
Payment Processing Service

WHY: Money in from customers and money out to suppliers, vendors and
labour, each as one atomic posting.

JOURNAL:
    Customer receipt:  Dr CASH/BANK                        Cr ACCOUNTS_RECEIVABLE
    Supplier payment:  Dr ACCOUNTS_PAYABLE                 Cr CASH/BANK
    Vendor payment:    Dr ACCOUNTS_PAYABLE_VENDORS         Cr CASH/BANK
    Labour payment:    Dr PAYROLL_PAYABLE or CONTRACTOR_PAYABLE  Cr CASH/BANK

DESIGN:
- CASH when payment_mode is "cash", BANK otherwise; account_code overrides.
- Party ledger gets a DEBIT (settlement reduces the outstanding balance).
- Settled documents get paid_amount += amount and a derived payment_status.
- OVERPAYMENT: an amount above the outstanding balance (+0.01 tolerance) is
  logged as a warning and ALLOWED. The excess stays on the party ledger as a
  negative outstanding balance (an advance) and is returned in
  PostingResult.warnings.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional

from .. import accounts
from ..errors import ValidationError
from ..money import BALANCE_TOLERANCE, ZERO, money, to_decimal
from . import outbox_service, party_ledger_service
from .journal_service import JournalLineDraft, assert_balanced, write_journal
from .posting import PostingResult, business_date, derive_payment_status, positive_amount, require_record
from .record_store import RecordStore, Table, ensure_store

logger = logging.getLogger(__name__)

OP_PAYMENT_RECEIVED = "payment_received"
OP_SUPPLIER_PAYMENT = "supplier_payment"
OP_VENDOR_PAYMENT = "vendor_payment"
OP_LABOUR_PAYMENT = "labour_payment"


def labour_payable_account(labour) -> str:
    return accounts.CONTRACTOR_PAYABLE if labour.is_contractor else accounts.PAYROLL_PAYABLE


def _overpayment_warning(party_label: str, amount: Decimal, outstanding: Decimal) -> Optional[str]:
    if amount > outstanding + BALANCE_TOLERANCE:
        message = (
            f"Payment of {amount} to/from {party_label} exceeds outstanding {outstanding}; "
            f"recording {amount - outstanding} as advance"
        )
        logger.warning(message)
        return message
    return None


def _settle(tx, table: Table, document, applied: Decimal, total_field: str = "total") -> None:
    document.paid_amount = to_decimal(document.paid_amount) + applied
    document.payment_status = derive_payment_status(document.paid_amount, getattr(document, total_field))
    if table in (Table.INVOICES, Table.VENDOR_INVOICES):
        document.status = "paid" if document.payment_status == "paid" else "partial"
    tx.put(table, document)


def _post_payment(
    store: RecordStore,
    *,
    op_type: str,
    party_type: str,
    party,
    amount: Decimal,
    debit_account: str,
    credit_account: str,
    settlements: list,
    reference_type: Optional[str],
    reference_id: Optional[str],
    payment_mode: str,
    entry_date,
    reference_no: Optional[str],
    notes: Optional[str],
    particulars: str,
    warnings: list,
) -> PostingResult:
    journal_lines = [
        JournalLineDraft.dr(debit_account, amount, particulars),
        JournalLineDraft.cr(credit_account, amount, particulars),
    ]
    assert_balanced(journal_lines)

    settle_account = credit_account if party_type != party_ledger_service.PARTY_CUSTOMER else debit_account
    _party_table, ledger_table = party_ledger_service.party_tables(party_type)
    tables = [Table.PAYMENTS, Table.JOURNAL_ENTRIES, Table.JOURNAL_LINES, ledger_table, Table.OFFLINE_OPERATIONS]
    tables += sorted({table for table, _doc, _applied in settlements}, key=lambda t: t.value)

    def body(tx):
        payment = tx.put(Table.PAYMENTS, {
            "party_type": party_type,
            "party_id": party.id,
            "reference_type": reference_type,
            "reference_id": reference_id,
            "amount": amount,
            "payment_mode": payment_mode,
            "account_code": settle_account,
            "entry_date": entry_date,
            "reference_no": reference_no,
            "notes": notes,
        })
        entry = write_journal(
            tx,
            source_type="labour_payment" if party_type == party_ledger_service.PARTY_LABOUR else "payment",
            source_id=payment.id,
            entry_date=entry_date,
            description=particulars,
            lines=journal_lines,
        )
        payment.journal_entry_id = entry.id

        ledger_entry = party_ledger_service.add_ledger_entry(
            tx,
            party_type,
            party.id,
            entry_date=entry_date,
            particulars=particulars,
            debit=amount,
            reference_type="payment",
            reference_id=payment.id,
            reference_no=reference_no,
        )

        settled = []
        for table, document, applied in settlements:
            locked = tx.get(table, document.id, lock=True)
            _settle(tx, table, locked, applied, "labour_cost" if table == Table.JOBSHEETS else "total")
            settled.append(locked)

        operation = outbox_service.enqueue(tx, op_type, priority=outbox_service.PRIORITY_HIGH)
        return PostingResult(
            op_type=op_type,
            header=payment,
            journal_entry=entry,
            ledger_entries=[ledger_entry],
            operation=operation,
            related={"settled": settled} if settled else {},
            warnings=warnings,
        )

    result = store.transaction(tables, body)
    logger.info("Recorded %s %s amount=%s party=%s", op_type, result.header.id, amount, party.id)
    return result


# =============================================================================
# CUSTOMER RECEIPTS
# =============================================================================

def receive_payment(
    invoice_id: str,
    amount,
    *,
    payment_mode: str = "cash",
    account_code: Optional[str] = None,
    entry_date=None,
    reference_no: Optional[str] = None,
    notes: Optional[str] = None,
    store: RecordStore | None = None,
) -> PostingResult:
    """Receive money against a sales invoice."""
    store = ensure_store(store)
    invoice = require_record(store, Table.INVOICES, invoice_id, "Invoice")
    customer = require_record(store, Table.CUSTOMERS, invoice.customer_id, "Customer")
    amount = positive_amount(amount)

    outstanding = money(to_decimal(invoice.total) - to_decimal(invoice.paid_amount))
    warnings = [w for w in [_overpayment_warning(f"customer {customer.name}", amount, outstanding)] if w]

    return _post_payment(
        store,
        op_type=OP_PAYMENT_RECEIVED,
        party_type=party_ledger_service.PARTY_CUSTOMER,
        party=customer,
        amount=amount,
        debit_account=account_code or accounts.settlement_account(payment_mode),
        credit_account=accounts.ACCOUNTS_RECEIVABLE,
        settlements=[(Table.INVOICES, invoice, amount)],
        reference_type="invoice",
        reference_id=invoice.id,
        payment_mode=payment_mode,
        entry_date=business_date(entry_date),
        reference_no=reference_no or invoice.invoice_no,
        notes=notes,
        particulars=f"Payment received for invoice {invoice.invoice_no or invoice.id}",
        warnings=warnings,
    )


# =============================================================================
# PAYMENTS OUT
# =============================================================================

def record_supplier_payment(
    supplier_id: str,
    amount,
    *,
    purchase_id: Optional[str] = None,
    payment_mode: str = "cash",
    account_code: Optional[str] = None,
    entry_date=None,
    reference_no: Optional[str] = None,
    notes: Optional[str] = None,
    store: RecordStore | None = None,
) -> PostingResult:
    store = ensure_store(store)
    supplier = require_record(store, Table.SUPPLIERS, supplier_id, "Supplier")
    amount = positive_amount(amount)

    settlements = []
    if purchase_id:
        purchase = require_record(store, Table.PURCHASES, purchase_id, "Purchase")
        if purchase.supplier_id != supplier.id:
            raise ValidationError(f"Purchase {purchase.id} does not belong to supplier {supplier.id}")
        settlements.append((Table.PURCHASES, purchase, amount))

    outstanding = party_ledger_service.get_outstanding(party_ledger_service.PARTY_SUPPLIER, supplier.id, store=store)
    warnings = [w for w in [_overpayment_warning(f"supplier {supplier.name}", amount, outstanding)] if w]

    return _post_payment(
        store,
        op_type=OP_SUPPLIER_PAYMENT,
        party_type=party_ledger_service.PARTY_SUPPLIER,
        party=supplier,
        amount=amount,
        debit_account=accounts.ACCOUNTS_PAYABLE,
        credit_account=account_code or accounts.settlement_account(payment_mode),
        settlements=settlements,
        reference_type="purchase" if purchase_id else None,
        reference_id=purchase_id,
        payment_mode=payment_mode,
        entry_date=business_date(entry_date),
        reference_no=reference_no,
        notes=notes,
        particulars=f"Payment to supplier {supplier.name}",
        warnings=warnings,
    )


def record_vendor_payment(
    vendor_id: str,
    amount,
    *,
    vendor_invoice_id: Optional[str] = None,
    payment_mode: str = "cash",
    account_code: Optional[str] = None,
    entry_date=None,
    reference_no: Optional[str] = None,
    notes: Optional[str] = None,
    store: RecordStore | None = None,
) -> PostingResult:
    store = ensure_store(store)
    vendor = require_record(store, Table.VENDORS, vendor_id, "Vendor")
    amount = positive_amount(amount)

    settlements = []
    if vendor_invoice_id:
        bill = require_record(store, Table.VENDOR_INVOICES, vendor_invoice_id, "Vendor invoice")
        if bill.vendor_id != vendor.id:
            raise ValidationError(f"Vendor invoice {bill.id} does not belong to vendor {vendor.id}")
        settlements.append((Table.VENDOR_INVOICES, bill, amount))

    outstanding = party_ledger_service.get_outstanding(party_ledger_service.PARTY_VENDOR, vendor.id, store=store)
    warnings = [w for w in [_overpayment_warning(f"vendor {vendor.name}", amount, outstanding)] if w]

    return _post_payment(
        store,
        op_type=OP_VENDOR_PAYMENT,
        party_type=party_ledger_service.PARTY_VENDOR,
        party=vendor,
        amount=amount,
        debit_account=accounts.ACCOUNTS_PAYABLE_VENDORS,
        credit_account=account_code or accounts.settlement_account(payment_mode),
        settlements=settlements,
        reference_type="vendor_invoice" if vendor_invoice_id else None,
        reference_id=vendor_invoice_id,
        payment_mode=payment_mode,
        entry_date=business_date(entry_date),
        reference_no=reference_no,
        notes=notes,
        particulars=f"Payment to vendor {vendor.name}",
        warnings=warnings,
    )


def record_labour_payment(
    labour_id: str,
    amount,
    *,
    jobsheet_ids: Iterable[str] = (),
    payment_mode: str = "cash",
    account_code: Optional[str] = None,
    entry_date=None,
    reference_no: Optional[str] = None,
    notes: Optional[str] = None,
    store: RecordStore | None = None,
) -> PostingResult:
    """
    Pay a technician or contractor.

    The amount is applied to the listed approved jobsheets in the given order,
    each up to its unpaid labour cost.
    """
    store = ensure_store(store)
    labour = require_record(store, Table.LABOUR, labour_id, "Labour")
    amount = positive_amount(amount)

    jobsheet_ids = list(jobsheet_ids or ())
    if len(set(jobsheet_ids)) != len(jobsheet_ids):
        raise ValidationError("Each jobsheet can be listed only once per payment")

    settlements = []
    remaining = amount
    for jobsheet_id in jobsheet_ids:
        sheet = require_record(store, Table.JOBSHEETS, jobsheet_id, "Jobsheet")
        if sheet.technician_id != labour.id:
            raise ValidationError(f"Jobsheet {sheet.id} does not belong to {labour.name}")
        if sheet.status != "approved":
            raise ValidationError(f"Jobsheet {sheet.id} is not approved")
        unpaid = to_decimal(sheet.labour_cost) - to_decimal(sheet.paid_amount)
        applied = min(unpaid, remaining)
        if applied > ZERO:
            settlements.append((Table.JOBSHEETS, sheet, applied))
            remaining -= applied

    outstanding = party_ledger_service.get_outstanding(party_ledger_service.PARTY_LABOUR, labour.id, store=store)
    warnings = [w for w in [_overpayment_warning(f"labour {labour.name}", amount, outstanding)] if w]

    return _post_payment(
        store,
        op_type=OP_LABOUR_PAYMENT,
        party_type=party_ledger_service.PARTY_LABOUR,
        party=labour,
        amount=amount,
        debit_account=labour_payable_account(labour),
        credit_account=account_code or accounts.settlement_account(payment_mode),
        settlements=settlements,
        reference_type="jobsheet" if settlements else None,
        reference_id=settlements[0][1].id if len(settlements) == 1 else None,
        payment_mode=payment_mode,
        entry_date=business_date(entry_date),
        reference_no=reference_no,
        notes=notes,
        particulars=f"Labour payment to {labour.name}",
        warnings=warnings,
    )
