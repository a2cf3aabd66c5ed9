from __future__ import annotations

from ..extensions import db
from .base import Money, RecordMixin, SyncMixin, TimestampMixin, new_id


class Customer(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    __tablename__ = "customers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    gstin = db.Column(db.String(15), nullable=True)
    address = db.Column(db.Text, nullable=True)

    # Starting point of the ledger replay.
    opening_balance = Money()

    def __repr__(self) -> str:
        return f"<Customer id={self.id!r} name={self.name!r}>"


class Vendor(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """Outsourced service providers (painting, machining, towing)."""
    __tablename__ = "vendors"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    gstin = db.Column(db.String(15), nullable=True)
    service_type = db.Column(db.String(64), nullable=True)
    opening_balance = Money()

    def __repr__(self) -> str:
        return f"<Vendor id={self.id!r} name={self.name!r}>"


class Supplier(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """Spare-part suppliers; purchases are booked against them."""
    __tablename__ = "suppliers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    gstin = db.Column(db.String(15), nullable=True)
    address = db.Column(db.Text, nullable=True)
    opening_balance = Money()

    def __repr__(self) -> str:
        return f"<Supplier id={self.id!r} name={self.name!r}>"


class Labour(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """
    Technicians and contract workers.

    RATE: hourly_rate wins; otherwise daily_rate / 8.
    is_contractor routes approved labour cost to CONTRACTOR_PAYABLE instead
    of PAYROLL_PAYABLE.
    """
    __tablename__ = "labour"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    skill = db.Column(db.String(64), nullable=True)
    hourly_rate = db.Column(db.Numeric(14, 2), nullable=True)
    daily_rate = db.Column(db.Numeric(14, 2), nullable=True)
    is_contractor = db.Column(db.Boolean, nullable=False, default=False)
    vendor_id = db.Column(db.String(36), db.ForeignKey("vendors.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    opening_balance = Money()

    def __repr__(self) -> str:
        return f"<Labour id={self.id!r} name={self.name!r} contractor={self.is_contractor}>"
