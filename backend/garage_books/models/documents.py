# Overview: Composite document headers and their line items.

from __future__ import annotations

from ..extensions import db
from .base import Money, Quantity, RecordMixin, SyncMixin, TimestampMixin, new_id


class TaxedDocumentMixin:
    """Amount columns shared by purchases, sales invoices and vendor invoices."""
    subtotal = Money()
    discount = Money()
    tax_mode = db.Column(db.String(16), nullable=False, default="igst")
    gst_rate = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    cgst_amount = Money()
    sgst_amount = Money()
    igst_amount = Money()
    tax_amount = Money()
    round_off = Money()
    total = Money()
    paid_amount = Money()
    payment_status = db.Column(db.String(16), nullable=False, default="pending")


class Purchase(RecordMixin, SyncMixin, TimestampMixin, TaxedDocumentMixin, db.Model):
    __tablename__ = "purchases"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    supplier_id = db.Column(db.String(36), db.ForeignKey("suppliers.id"), nullable=False, index=True)
    invoice_no = db.Column(db.String(64), nullable=True)
    entry_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")
    journal_entry_id = db.Column(db.String(36), db.ForeignKey("journal_entries.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    items = db.relationship("PurchaseItem", backref="purchase", lazy=True)


class PurchaseItem(RecordMixin, SyncMixin, db.Model):
    __tablename__ = "purchase_items"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    purchase_id = db.Column(db.String(36), db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    quantity = Quantity()
    rate = Money()
    amount = Money()


class PurchaseChallan(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """Goods Receipt Note: the physical receipt that puts purchased stock on the shelf."""
    __tablename__ = "purchase_challans"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    purchase_id = db.Column(db.String(36), db.ForeignKey("purchases.id"), nullable=False, index=True)
    supplier_id = db.Column(db.String(36), db.ForeignKey("suppliers.id"), nullable=False)
    challan_no = db.Column(db.String(64), nullable=True)
    entry_date = db.Column(db.Date, nullable=False)
    received_by = db.Column(db.String(128), nullable=True)
    remarks = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="received")


class SalesInvoice(RecordMixin, SyncMixin, TimestampMixin, TaxedDocumentMixin, db.Model):
    __tablename__ = "invoices"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    customer_id = db.Column(db.String(36), db.ForeignKey("customers.id"), nullable=False, index=True)
    job_id = db.Column(db.String(36), db.ForeignKey("jobs.id"), nullable=True)
    invoice_no = db.Column(db.String(64), nullable=True)
    entry_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")
    journal_entry_id = db.Column(db.String(36), db.ForeignKey("journal_entries.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    items = db.relationship("InvoiceItem", backref="invoice", lazy=True)


class InvoiceItem(RecordMixin, SyncMixin, db.Model):
    __tablename__ = "invoice_items"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), nullable=False, index=True)
    # Service lines (labour charges, washing) carry no product.
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=True)
    item_type = db.Column(db.String(16), nullable=False, default="part")
    description = db.Column(db.String(255), nullable=True)
    quantity = Quantity()
    rate = Money()
    amount = Money()


class Voucher(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    __tablename__ = "vouchers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    voucher_no = db.Column(db.String(64), nullable=True)
    voucher_type = db.Column(db.String(16), nullable=False, default="journal")
    entry_date = db.Column(db.Date, nullable=False)
    narration = db.Column(db.String(255), nullable=True)
    amount = Money()
    status = db.Column(db.String(16), nullable=False, default="posted")
    journal_entry_id = db.Column(db.String(36), db.ForeignKey("journal_entries.id"), nullable=True)


class Payment(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """
    Money in or out for one party.

    party_type: customer | supplier | vendor | labour
    reference_type/reference_id: the document being settled, when there is one.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_party", "party_type", "party_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    party_type = db.Column(db.String(16), nullable=False)
    party_id = db.Column(db.String(36), nullable=False)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(36), nullable=True)
    amount = Money()
    payment_mode = db.Column(db.String(16), nullable=False, default="cash")
    account_code = db.Column(db.String(64), nullable=False)
    entry_date = db.Column(db.Date, nullable=False)
    reference_no = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    journal_entry_id = db.Column(db.String(36), db.ForeignKey("journal_entries.id"), nullable=True)


class Challan(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """Issue challan: stock leaving the store for a job. No journal entry."""
    __tablename__ = "challans"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    challan_no = db.Column(db.String(64), nullable=True)
    job_id = db.Column(db.String(36), db.ForeignKey("jobs.id"), nullable=True)
    jobsheet_id = db.Column(db.String(36), db.ForeignKey("jobsheets.id"), nullable=True)
    entry_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="issued")
    notes = db.Column(db.Text, nullable=True)

    items = db.relationship("ChallanItem", backref="challan", lazy=True)


class ChallanItem(RecordMixin, SyncMixin, db.Model):
    __tablename__ = "challan_items"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    challan_id = db.Column(db.String(36), db.ForeignKey("challans.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    jobsheet_item_id = db.Column(db.String(36), db.ForeignKey("jobsheet_items.id"), nullable=True)
    quantity = Quantity()


class VendorInvoice(RecordMixin, SyncMixin, TimestampMixin, TaxedDocumentMixin, db.Model):
    """Bill from an outsourced vendor, optionally charged to a job."""
    __tablename__ = "vendor_invoices"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    vendor_id = db.Column(db.String(36), db.ForeignKey("vendors.id"), nullable=False, index=True)
    job_id = db.Column(db.String(36), db.ForeignKey("jobs.id"), nullable=True)
    invoice_no = db.Column(db.String(64), nullable=True)
    entry_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")
    journal_entry_id = db.Column(db.String(36), db.ForeignKey("journal_entries.id"), nullable=True)

    items = db.relationship("VendorInvoiceItem", backref="vendor_invoice", lazy=True)


class VendorInvoiceItem(RecordMixin, SyncMixin, db.Model):
    __tablename__ = "vendor_invoice_items"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    vendor_invoice_id = db.Column(
        db.String(36), db.ForeignKey("vendor_invoices.id"), nullable=False, index=True
    )
    description = db.Column(db.String(255), nullable=True)
    quantity = Quantity()
    rate = Money()
    amount = Money()
