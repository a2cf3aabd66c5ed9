"""
Tests for customer receipts and supplier / vendor / labour payments.
"""

from decimal import Decimal

import pytest

from garage_books.errors import NotFoundError, ValidationError
from garage_books.services import (
    invoice_service, jobsheet_service, party_ledger_service, payment_service, purchase_service,
    vendor_invoice_service,
)
from garage_books.services.record_store import Table


def _lines(result):
    return [(l.account_code, l.debit, l.credit) for l in result.journal_entry.lines]


class TestReceivePayment:
    def test_partial_then_full(self, store, customer):
        invoice = invoice_service.post_sales_invoice(
            customer.id, [{"quantity": 1, "rate": 1000}], store=store,
        ).header

        first = payment_service.receive_payment(invoice.id, 400, store=store)
        assert _lines(first) == [
            ("CASH", Decimal("400"), Decimal("0")),
            ("ACCOUNTS_RECEIVABLE", Decimal("0"), Decimal("400")),
        ]
        assert store.get_by_id(Table.INVOICES, invoice.id).payment_status == "partial"
        assert first.ledger_entries[0].debit == Decimal("400")

        payment_service.receive_payment(invoice.id, 600, payment_mode="card", store=store)
        saved = store.get_by_id(Table.INVOICES, invoice.id)
        assert saved.payment_status == "paid"
        assert saved.status == "paid"
        assert saved.paid_amount == Decimal("1000")
        assert party_ledger_service.get_outstanding("customer", customer.id, store=store) == Decimal("0")

    def test_overpayment_allowed_with_warning(self, store, customer):
        invoice = invoice_service.post_sales_invoice(
            customer.id, [{"quantity": 1, "rate": 1000}], store=store,
        ).header
        result = payment_service.receive_payment(invoice.id, 1200, store=store)
        assert len(result.warnings) == 1
        assert "exceeds outstanding" in result.warnings[0]
        assert party_ledger_service.get_outstanding("customer", customer.id, store=store) == Decimal("-200")

    def test_amount_must_be_positive(self, store, customer):
        invoice = invoice_service.post_sales_invoice(
            customer.id, [{"quantity": 1, "rate": 1000}], store=store,
        ).header
        with pytest.raises(ValidationError):
            payment_service.receive_payment(invoice.id, 0, store=store)
        assert store.get_all(Table.PAYMENTS) == []

    def test_unknown_invoice(self, store):
        with pytest.raises(NotFoundError):
            payment_service.receive_payment("missing", 10, store=store)


class TestSupplierPayment:
    def test_reduces_supplier_outstanding(self, store, supplier, widget):
        purchase = purchase_service.post_purchase_invoice(
            supplier.id, [{"product_id": widget.id, "quantity": 10, "rate": 100}], gst_rate=18, store=store,
        ).header

        result = payment_service.record_supplier_payment(
            supplier.id, 500, purchase_id=purchase.id, payment_mode="bank_transfer", store=store,
        )
        assert _lines(result) == [
            ("ACCOUNTS_PAYABLE", Decimal("500"), Decimal("0")),
            ("BANK", Decimal("0"), Decimal("500")),
        ]
        assert result.header.account_code == "BANK"
        assert result.warnings == []
        saved = store.get_by_id(Table.PURCHASES, purchase.id)
        assert saved.paid_amount == Decimal("500")
        assert saved.payment_status == "partial"
        assert saved.status == "received"
        assert party_ledger_service.get_outstanding("supplier", supplier.id, store=store) == Decimal("680")

    def test_purchase_of_another_supplier_rejected(self, store, supplier, widget):
        purchase = purchase_service.post_purchase_invoice(
            supplier.id, [{"product_id": widget.id, "quantity": 1, "rate": 100}], store=store,
        ).header
        other = store.insert(Table.SUPPLIERS, {"name": "Other"})
        with pytest.raises(ValidationError):
            payment_service.record_supplier_payment(other.id, 50, purchase_id=purchase.id, store=store)

    def test_advance_to_supplier_warns(self, store, supplier):
        result = payment_service.record_supplier_payment(supplier.id, 250, store=store)
        assert len(result.warnings) == 1
        assert party_ledger_service.get_outstanding("supplier", supplier.id, store=store) == Decimal("-250")


class TestVendorPayment:
    def test_settles_vendor_invoice(self, store, vendor):
        bill = vendor_invoice_service.post_vendor_invoice(
            vendor.id, [{"description": "Denting", "quantity": 1, "rate": 2500}], store=store,
        ).header

        result = payment_service.record_vendor_payment(vendor.id, 2500, vendor_invoice_id=bill.id, store=store)
        assert _lines(result) == [
            ("ACCOUNTS_PAYABLE_VENDORS", Decimal("2500"), Decimal("0")),
            ("CASH", Decimal("0"), Decimal("2500")),
        ]
        saved = store.get_by_id(Table.VENDOR_INVOICES, bill.id)
        assert saved.payment_status == "paid"
        assert saved.status == "paid"
        assert party_ledger_service.get_outstanding("vendor", vendor.id, store=store) == Decimal("0")


class TestLabourPayment:
    def _approved_sheet(self, store, job, worker, hours):
        sheet = jobsheet_service.create_labour_jobsheet(job.id, worker.id, hours, store=store).header
        jobsheet_service.approve_jobsheet(sheet.id, "manager", store=store)
        return sheet

    def test_pays_technician_through_payroll_payable(self, store, job, technician):
        first = self._approved_sheet(store, job, technician, 5)
        second = self._approved_sheet(store, job, technician, 2)

        result = payment_service.record_labour_payment(
            technician.id, 1200, jobsheet_ids=[first.id, second.id], store=store,
        )
        assert result.journal_entry.source_type == "labour_payment"
        assert _lines(result) == [
            ("PAYROLL_PAYABLE", Decimal("1200"), Decimal("0")),
            ("CASH", Decimal("0"), Decimal("1200")),
        ]
        assert store.get_by_id(Table.JOBSHEETS, first.id).payment_status == "paid"
        partly = store.get_by_id(Table.JOBSHEETS, second.id)
        assert partly.paid_amount == Decimal("200")
        assert partly.payment_status == "partial"
        assert party_ledger_service.get_outstanding("labour", technician.id, store=store) == Decimal("200")

    def test_contractor_uses_contractor_payable(self, store, job, contractor):
        self._approved_sheet(store, job, contractor, 8)
        result = payment_service.record_labour_payment(contractor.id, 1200, store=store)
        assert result.journal_entry.lines[0].account_code == "CONTRACTOR_PAYABLE"

    def test_unapproved_jobsheet_rejected(self, store, job, technician):
        sheet = jobsheet_service.create_labour_jobsheet(job.id, technician.id, 1, store=store).header
        with pytest.raises(ValidationError):
            payment_service.record_labour_payment(technician.id, 200, jobsheet_ids=[sheet.id], store=store)

    def test_jobsheet_of_another_worker_rejected(self, store, job, technician, contractor):
        sheet = self._approved_sheet(store, job, technician, 1)
        with pytest.raises(ValidationError):
            payment_service.record_labour_payment(contractor.id, 200, jobsheet_ids=[sheet.id], store=store)

    def test_repeated_jobsheet_rejected(self, store, job, technician):
        sheet = self._approved_sheet(store, job, technician, 5)
        with pytest.raises(ValidationError):
            payment_service.record_labour_payment(
                technician.id, 2000, jobsheet_ids=[sheet.id, sheet.id], store=store,
            )

        saved = store.get_by_id(Table.JOBSHEETS, sheet.id)
        assert saved.paid_amount == Decimal("0")
        assert saved.paid_amount <= saved.labour_cost
        assert store.get_all(Table.PAYMENTS) == []
