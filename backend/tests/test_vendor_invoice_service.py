"""
Tests for vendor (outsourced service) invoices.
"""

from decimal import Decimal

import pytest

from garage_books.errors import NotFoundError, ValidationError
from garage_books.services import journal_service, party_ledger_service, vendor_invoice_service
from garage_books.services.record_store import Table


def test_job_linked_bill_goes_to_job_cost(store, vendor, job):
    result = vendor_invoice_service.post_vendor_invoice(
        vendor.id,
        [{"description": "Bumper painting", "quantity": 1, "rate": 3000}],
        job_id=job.id,
        gst_rate=18,
        invoice_no="SPW-44",
        store=store,
    )

    assert result.header.total == Decimal("3540")
    assert [(l.account_code, l.debit, l.credit) for l in result.journal_entry.lines] == [
        ("JOB_COST", Decimal("3540"), Decimal("0")),
        ("ACCOUNTS_PAYABLE_VENDORS", Decimal("0"), Decimal("3540")),
    ]
    saved_job = store.get_by_id(Table.JOBS, job.id)
    assert saved_job.vendor_cost == Decimal("3540")
    assert saved_job.total_cost == Decimal("3540")
    assert party_ledger_service.get_outstanding("vendor", vendor.id, store=store) == Decimal("3540")
    assert result.operation.priority == "high"


def test_unlinked_bill_goes_to_service_expense(store, vendor):
    result = vendor_invoice_service.post_vendor_invoice(
        vendor.id, [{"description": "Towing", "quantity": 1, "rate": 800}], store=store,
    )
    assert result.journal_entry.lines[0].account_code == "SERVICE_EXPENSE"
    assert "job" not in result.related


def test_unknown_vendor(store):
    with pytest.raises(NotFoundError):
        vendor_invoice_service.post_vendor_invoice("missing", [{"quantity": 1, "rate": 1}], store=store)


def test_link_posted_bill_to_job(store, vendor, job):
    bill = vendor_invoice_service.post_vendor_invoice(
        vendor.id, [{"description": "Towing", "quantity": 1, "rate": 800}], invoice_no="TW-7", store=store,
    ).header

    result = vendor_invoice_service.link_vendor_invoice_to_job(bill.id, job.id, store=store)

    assert result.header.job_id == job.id
    assert [(l.account_code, l.debit, l.credit) for l in result.journal_entry.lines] == [
        ("JOB_COST", Decimal("800"), Decimal("0")),
        ("SERVICE_EXPENSE", Decimal("0"), Decimal("800")),
    ]
    saved_job = store.get_by_id(Table.JOBS, job.id)
    assert saved_job.vendor_cost == Decimal("800")
    assert saved_job.total_cost == Decimal("800")
    assert store.get_by_id(Table.VENDOR_INVOICES, bill.id).job_id == job.id
    assert result.operation.op_type == "vendor_invoice_link"
    assert set(result.operation.stores) >= {"vendor_invoices", "jobs", "journal_entries"}
    # Payable is untouched by the link
    assert party_ledger_service.get_outstanding("vendor", vendor.id, store=store) == Decimal("800")
    expense = journal_service.get_account_ledger("SERVICE_EXPENSE", store=store)
    assert Decimal(expense["closing_balance"]) == Decimal("0")


def test_already_linked_bill_rejected(store, vendor, job):
    bill = vendor_invoice_service.post_vendor_invoice(
        vendor.id, [{"description": "Painting", "quantity": 1, "rate": 500}], job_id=job.id, store=store,
    ).header

    with pytest.raises(ValidationError):
        vendor_invoice_service.link_vendor_invoice_to_job(bill.id, job.id, store=store)
    assert store.get_by_id(Table.JOBS, job.id).vendor_cost == Decimal("500")
    assert len(store.get_all(Table.OFFLINE_OPERATIONS)) == 1


def test_link_to_unknown_job_or_bill(store, vendor):
    bill = vendor_invoice_service.post_vendor_invoice(
        vendor.id, [{"quantity": 1, "rate": 100}], store=store,
    ).header
    with pytest.raises(NotFoundError):
        vendor_invoice_service.link_vendor_invoice_to_job(bill.id, "missing", store=store)
    with pytest.raises(NotFoundError):
        vendor_invoice_service.link_vendor_invoice_to_job("missing", bill.id, store=store)
