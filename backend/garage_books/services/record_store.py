# Overview: Typed table registry and atomic multi-table transactions over a SQLAlchemy session.

"""
Record Store

WHY: Every posting writes a cluster of rows (header, items, stock, party
ledger, journal, outbox). They must commit together or not at all, and a
posting must say up front which tables it touches.

DESIGN:
- Table is a closed enum; each member maps to exactly one model class.
- transaction(tables, body) / begin(tables) open a TransactionScope that
  rejects reads and writes on undeclared tables (UndeclaredTableError) and
  writes in "readonly" mode.
- Commit on success. Any exception rolls back the whole write set. Domain
  errors propagate unchanged; SQLAlchemyError is re-raised as
  TransactionError with the original chained.
- The scope remembers every record it wrote, in order, so the outbox can
  carry the full payload of the transaction.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, TypeVar

from sqlalchemy import String
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, TransactionError, UndeclaredTableError, ValidationError
from ..extensions import db
from ..models import (
    Challan, ChallanItem, Conflict, Customer, CustomerLedgerEntry, InvoiceItem, Job,
    JournalEntry, JournalLine, Jobsheet, JobsheetItem, Labour, LabourLedgerEntry,
    OfflineOperation, Payment, Product, Purchase, PurchaseChallan, PurchaseItem,
    SalesInvoice, StockTransaction, Supplier, SupplierLedgerEntry, Vendor,
    VendorInvoice, VendorInvoiceItem, VendorLedgerEntry, Voucher,
)
from ..models.base import new_id
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)

T = TypeVar("T")

READWRITE = "readwrite"
READONLY = "readonly"


class Table(str, Enum):
    CUSTOMERS = "customers"
    VENDORS = "vendors"
    SUPPLIERS = "suppliers"
    LABOUR = "labour"
    PRODUCTS = "products"
    STOCK_TRANSACTIONS = "stock_transactions"
    JOURNAL_ENTRIES = "journal_entries"
    JOURNAL_LINES = "journal_lines"
    CUSTOMER_LEDGER_ENTRIES = "customer_ledger_entries"
    VENDOR_LEDGER_ENTRIES = "vendor_ledger_entries"
    SUPPLIER_LEDGER_ENTRIES = "supplier_ledger_entries"
    LABOUR_LEDGER_ENTRIES = "labour_ledger_entries"
    PURCHASES = "purchases"
    PURCHASE_ITEMS = "purchase_items"
    PURCHASE_CHALLANS = "purchase_challans"
    INVOICES = "invoices"
    INVOICE_ITEMS = "invoice_items"
    VOUCHERS = "vouchers"
    PAYMENTS = "payments"
    CHALLANS = "challans"
    CHALLAN_ITEMS = "challan_items"
    VENDOR_INVOICES = "vendor_invoices"
    VENDOR_INVOICE_ITEMS = "vendor_invoice_items"
    JOBS = "jobs"
    JOBSHEETS = "jobsheets"
    JOBSHEET_ITEMS = "jobsheet_items"
    OFFLINE_OPERATIONS = "offline_operations"
    CONFLICTS = "conflicts"

    def __str__(self) -> str:
        return self.value


TABLE_MODELS: dict[Table, type] = {
    Table.CUSTOMERS: Customer,
    Table.VENDORS: Vendor,
    Table.SUPPLIERS: Supplier,
    Table.LABOUR: Labour,
    Table.PRODUCTS: Product,
    Table.STOCK_TRANSACTIONS: StockTransaction,
    Table.JOURNAL_ENTRIES: JournalEntry,
    Table.JOURNAL_LINES: JournalLine,
    Table.CUSTOMER_LEDGER_ENTRIES: CustomerLedgerEntry,
    Table.VENDOR_LEDGER_ENTRIES: VendorLedgerEntry,
    Table.SUPPLIER_LEDGER_ENTRIES: SupplierLedgerEntry,
    Table.LABOUR_LEDGER_ENTRIES: LabourLedgerEntry,
    Table.PURCHASES: Purchase,
    Table.PURCHASE_ITEMS: PurchaseItem,
    Table.PURCHASE_CHALLANS: PurchaseChallan,
    Table.INVOICES: SalesInvoice,
    Table.INVOICE_ITEMS: InvoiceItem,
    Table.VOUCHERS: Voucher,
    Table.PAYMENTS: Payment,
    Table.CHALLANS: Challan,
    Table.CHALLAN_ITEMS: ChallanItem,
    Table.VENDOR_INVOICES: VendorInvoice,
    Table.VENDOR_INVOICE_ITEMS: VendorInvoiceItem,
    Table.JOBS: Job,
    Table.JOBSHEETS: Jobsheet,
    Table.JOBSHEET_ITEMS: JobsheetItem,
    Table.OFFLINE_OPERATIONS: OfflineOperation,
    Table.CONFLICTS: Conflict,
}


def as_table(table: Table | str) -> Table:
    try:
        return Table(table)
    except ValueError:
        raise ValidationError(f"Unknown table: {table!r}") from None


def model_for(table: Table | str) -> type:
    return TABLE_MODELS[as_table(table)]


def _column_keys(model: type) -> set[str]:
    return {column.key for column in model.__table__.columns}


def _build(model: type, record: dict):
    unknown = set(record) - _column_keys(model)
    if unknown:
        raise ValidationError(
            f"Unknown field(s) for {model.__tablename__}: {', '.join(sorted(unknown))}"
        )
    instance = model(**record)
    # String keys are assigned up front so children can reference the parent pre-flush.
    pk = model.__table__.primary_key.columns.values()[0]
    if isinstance(pk.type, String) and getattr(instance, pk.key) is None:
        setattr(instance, pk.key, new_id())
    return instance


class TransactionScope:
    """Handle passed to a transaction body. Valid only while the transaction is open."""

    def __init__(self, session, tables: Iterable[Table | str], mode: str = READWRITE):
        if mode not in (READWRITE, READONLY):
            raise ValidationError(f"Unknown transaction mode: {mode!r}")
        self.session = session
        self.tables = frozenset(as_table(t) for t in tables)
        self.mode = mode
        self.closed = False
        self._written: list[tuple[Table, Any]] = []

    def _check(self, table: Table | str, *, write: bool = False) -> Table:
        if self.closed:
            raise TransactionError("Transaction scope is already closed")
        resolved = as_table(table)
        if resolved not in self.tables:
            raise UndeclaredTableError(resolved.value, sorted(t.value for t in self.tables))
        if write and self.mode == READONLY:
            raise TransactionError(f"Cannot write {resolved.value} in a readonly transaction")
        return resolved

    def query(self, table: Table | str):
        resolved = self._check(table)
        return self.session.query(TABLE_MODELS[resolved])

    def get(self, table: Table | str, record_id, *, lock: bool = False):
        resolved = self._check(table)
        model = TABLE_MODELS[resolved]
        query = self.session.query(model).filter_by(id=record_id)
        if lock:
            query = lock_for_update(query)
        return query.first()

    def find(self, table: Table | str, **filters) -> list:
        resolved = self._check(table)
        model = TABLE_MODELS[resolved]
        return self.session.query(model).filter_by(**filters).order_by(model.id).all()

    def put(self, table: Table | str, record):
        """Insert a dict or add/refresh a model instance of the table's model."""
        resolved = self._check(table, write=True)
        model = TABLE_MODELS[resolved]
        if isinstance(record, dict):
            record = _build(model, record)
        elif not isinstance(record, model):
            raise ValidationError(
                f"{type(record).__name__} cannot be stored in {resolved.value}"
            )
        self.session.add(record)
        if not any(existing is record for _, existing in self._written):
            self._written.append((resolved, record))
        return record

    def delete(self, table: Table | str, record_id) -> bool:
        resolved = self._check(table, write=True)
        record = self.session.get(TABLE_MODELS[resolved], record_id)
        if record is None:
            return False
        self.session.delete(record)
        self._written = [(t, r) for t, r in self._written if r is not record]
        return True

    def flush(self) -> None:
        """Assign integer keys without committing."""
        self.session.flush()

    @property
    def written(self) -> list[tuple[Table, Any]]:
        return list(self._written)


class RecordStore:
    """
    Key-addressed collections with multi-table atomic transactions.

    Wraps a SQLAlchemy session (normally Flask-SQLAlchemy's scoped db.session)
    and is handed to services explicitly.
    """

    def __init__(self, session):
        self.session = session

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    @contextmanager
    def begin(self, tables: Iterable[Table | str], mode: str = READWRITE) -> Iterator[TransactionScope]:
        scope = TransactionScope(self.session, tables, mode)
        try:
            yield scope
            if mode == READWRITE:
                self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Transaction on %s rolled back: %s", sorted(t.value for t in scope.tables), exc)
            raise TransactionError(f"Storage failure, nothing was written: {exc}") from exc
        except Exception:
            self.session.rollback()
            raise
        finally:
            scope.closed = True

    def transaction(
        self,
        tables: Iterable[Table | str],
        body: Callable[[TransactionScope], T],
        mode: str = READWRITE,
    ) -> T:
        with self.begin(tables, mode) as tx:
            return body(tx)

    # =========================================================================
    # SINGLE-TABLE OPERATIONS
    # =========================================================================

    def get_all(self, table: Table | str) -> list:
        model = model_for(table)
        return self.session.query(model).order_by(model.id).all()

    def get_by_id(self, table: Table | str, record_id):
        return self.session.get(model_for(table), record_id)

    def get_by_index(self, table: Table | str, index_name: str, value) -> list:
        model = model_for(table)
        if index_name not in _column_keys(model):
            raise ValidationError(f"{model.__tablename__} has no field {index_name!r}")
        return (
            self.session.query(model)
            .filter(getattr(model, index_name) == value)
            .order_by(model.id)
            .all()
        )

    def insert(self, table: Table | str, record: dict):
        with self.begin([table]) as tx:
            instance = tx.put(table, dict(record))
        return instance

    def update(self, table: Table | str, record_id, patch: dict):
        model = model_for(table)
        unknown = set(patch) - _column_keys(model)
        if unknown:
            raise ValidationError(
                f"Unknown field(s) for {model.__tablename__}: {', '.join(sorted(unknown))}"
            )
        with self.begin([table]) as tx:
            record = tx.get(table, record_id)
            if record is None:
                raise NotFoundError(model.__tablename__, record_id)
            for key, value in patch.items():
                setattr(record, key, value)
            tx.put(table, record)
        return record

    def delete(self, table: Table | str, record_id) -> None:
        with self.begin([table]) as tx:
            tx.delete(table, record_id)


def default_store() -> RecordStore:
    return RecordStore(db.session)


def ensure_store(store: RecordStore | None) -> RecordStore:
    return store if store is not None else default_store()
