from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from .base import Money, RecordMixin, SyncMixin, TimestampMixin, new_id


class JournalEntry(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """
    Double-entry journal header.

    CRITICAL: lines must balance (sum(debit) == sum(credit) within 0.01).
    journal_service checks this before the transaction opens and again before
    the lines are written; an imbalanced entry never reaches the database.
    """
    __tablename__ = "journal_entries"
    __table_args__ = (
        db.Index("ix_journal_entries_source", "source_type", "source_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    source_type = db.Column(db.String(32), nullable=False)
    source_id = db.Column(db.String(36), nullable=True)
    entry_date = db.Column(db.Date, nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)

    lines = db.relationship(
        "JournalLine",
        backref="journal_entry",
        lazy=True,
        order_by="JournalLine.id",
    )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["lines"] = [line.to_dict() for line in self.lines]
        return data


class JournalLine(RecordMixin, SyncMixin, db.Model):
    __tablename__ = "journal_lines"

    id = db.Column(db.Integer, primary_key=True)
    journal_entry_id = db.Column(
        db.String(36), db.ForeignKey("journal_entries.id"), nullable=False, index=True
    )
    account_code = db.Column(db.String(64), nullable=False, index=True)
    account_name = db.Column(db.String(128), nullable=False)
    debit = Money()
    credit = Money()
    description = db.Column(db.String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<JournalLine {self.account_code} Dr {self.debit} Cr {self.credit}>"


class PartyLedgerMixin(RecordMixin, SyncMixin, TimestampMixin):
    """
    Shape shared by the four party ledgers.

    Running balance is NOT stored; party_ledger_service replays entries from the
    party's opening balance with balance += credit - debit.
    """
    __party_table__: str = ""

    id = db.Column(db.Integer, primary_key=True)

    @declared_attr
    def party_id(cls):
        return db.Column(
            db.String(36),
            db.ForeignKey(f"{cls.__party_table__}.id"),
            nullable=False,
            index=True,
        )

    entry_date = db.Column(db.Date, nullable=False)
    particulars = db.Column(db.String(255), nullable=False)

    @declared_attr
    def debit(cls):
        return Money()

    @declared_attr
    def credit(cls):
        return Money()

    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(36), nullable=True)
    reference_no = db.Column(db.String(64), nullable=True)


class CustomerLedgerEntry(PartyLedgerMixin, db.Model):
    __tablename__ = "customer_ledger_entries"
    __party_table__ = "customers"


class VendorLedgerEntry(PartyLedgerMixin, db.Model):
    __tablename__ = "vendor_ledger_entries"
    __party_table__ = "vendors"


class SupplierLedgerEntry(PartyLedgerMixin, db.Model):
    __tablename__ = "supplier_ledger_entries"
    __party_table__ = "suppliers"


class LabourLedgerEntry(PartyLedgerMixin, db.Model):
    __tablename__ = "labour_ledger_entries"
    __party_table__ = "labour"
