from __future__ import annotations

from ..extensions import db
from .base import Money, Quantity, RecordMixin, SyncMixin, TimestampMixin, new_id


class Job(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """
    A workshop job (one vehicle visit).

    Cost roll-up: total_cost = labour_cost + vendor_cost + material_cost, kept
    current by the jobsheet approval and vendor invoice postings.
    """
    __tablename__ = "jobs"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    job_no = db.Column(db.String(64), nullable=True, unique=True)
    customer_id = db.Column(db.String(36), db.ForeignKey("customers.id"), nullable=True)
    vehicle_no = db.Column(db.String(32), nullable=True)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="open")
    labour_cost = Money()
    vendor_cost = Money()
    material_cost = Money()
    total_cost = Money()


class Jobsheet(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """
    Labour booked by one technician against a job.

    LIFECYCLE: draft -> approved. Approval posts the labour journal and the
    labour ledger credit; payment later moves payment_status.
    """
    __tablename__ = "jobsheets"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    job_id = db.Column(db.String(36), db.ForeignKey("jobs.id"), nullable=False, index=True)
    technician_id = db.Column(db.String(36), db.ForeignKey("labour.id"), nullable=False, index=True)
    work_date = db.Column(db.Date, nullable=False)
    hours = Quantity()
    rate = Money()
    labour_cost = Money()
    description = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="draft")
    approved_by = db.Column(db.String(128), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    paid_amount = Money()
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    journal_entry_id = db.Column(db.String(36), db.ForeignKey("journal_entries.id"), nullable=True)

    items = db.relationship("JobsheetItem", backref="jobsheet", lazy=True)


class JobsheetItem(RecordMixin, SyncMixin, db.Model):
    """Material requested on a jobsheet; issued later through a challan."""
    __tablename__ = "jobsheet_items"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    jobsheet_id = db.Column(db.String(36), db.ForeignKey("jobsheets.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    quantity = Quantity()
    is_issued = db.Column(db.Boolean, nullable=False, default=False)
    issued_at = db.Column(db.DateTime, nullable=True)
