"""
Tests for labour jobsheets: costing, approval and material issue.
"""

from datetime import date
from decimal import Decimal

import pytest

from garage_books.errors import InsufficientStockError, NotFoundError, ValidationError
from garage_books.services import jobsheet_service, party_ledger_service, purchase_service
from garage_books.services.record_store import Table


def test_labour_scenario(store, job, technician):
    created = jobsheet_service.create_labour_jobsheet(
        job.id, technician.id, 5, work_date="2024-03-01", description="Engine overhaul", store=store,
    )
    sheet = created.header
    assert sheet.status == "draft"
    assert sheet.rate == Decimal("200")
    assert sheet.labour_cost == Decimal("1000")
    assert created.journal_entry is None
    assert created.operation.priority == "normal"

    approved = jobsheet_service.approve_jobsheet(sheet.id, "manager", store=store)
    assert approved.header.status == "approved"
    assert approved.header.approved_by == "manager"
    assert approved.journal_entry.entry_date == date(2024, 3, 1)
    assert [(l.account_code, l.debit, l.credit) for l in approved.journal_entry.lines] == [
        ("LABOUR_EXPENSE", Decimal("1000"), Decimal("0")),
        ("PAYROLL_PAYABLE", Decimal("0"), Decimal("1000")),
    ]
    assert approved.operation.priority == "high"

    saved_job = store.get_by_id(Table.JOBS, job.id)
    assert saved_job.labour_cost == Decimal("1000")
    assert saved_job.total_cost == Decimal("1000")
    assert party_ledger_service.get_outstanding("labour", technician.id, store=store) == Decimal("1000")


def test_contractor_rate_from_daily_wage(store, job, contractor):
    sheet = jobsheet_service.create_labour_jobsheet(job.id, contractor.id, 4, store=store).header
    assert sheet.rate == Decimal("150")
    assert sheet.labour_cost == Decimal("600")

    approved = jobsheet_service.approve_jobsheet(sheet.id, store=store)
    assert approved.journal_entry.lines[1].account_code == "CONTRACTOR_PAYABLE"


def test_double_approval_rejected(store, job, technician):
    sheet = jobsheet_service.create_labour_jobsheet(job.id, technician.id, 1, store=store).header
    jobsheet_service.approve_jobsheet(sheet.id, store=store)

    with pytest.raises(ValidationError):
        jobsheet_service.approve_jobsheet(sheet.id, store=store)
    assert len(store.get_all(Table.JOURNAL_ENTRIES)) == 1
    assert store.get_by_id(Table.JOBS, job.id).total_cost == Decimal("200")


def test_hours_must_be_positive(store, job, technician):
    with pytest.raises(ValidationError):
        jobsheet_service.create_labour_jobsheet(job.id, technician.id, 0, store=store)


def test_worker_without_rate_rejected(store, job):
    worker = store.insert(Table.LABOUR, {"name": "Trainee"})
    with pytest.raises(ValidationError):
        jobsheet_service.create_labour_jobsheet(job.id, worker.id, 2, store=store)


def test_unknown_job(store, technician):
    with pytest.raises(NotFoundError):
        jobsheet_service.create_labour_jobsheet("missing", technician.id, 2, store=store)


def test_issue_jobsheet_materials(store, supplier, job, technician, widget):
    purchase_service.post_purchase_invoice(
        supplier.id, [{"product_id": widget.id, "quantity": 5, "rate": 100}], store=store,
    )
    sheet = jobsheet_service.create_labour_jobsheet(
        job.id, technician.id, 1, materials=[{"product_id": widget.id, "quantity": 2}], store=store,
    )
    [item] = sheet.items
    assert item.is_issued is False

    result = jobsheet_service.issue_jobsheet_materials(sheet.header.id, challan_no="CH-7", store=store)
    assert result.header.jobsheet_id == sheet.header.id
    assert result.header.job_id == job.id
    assert store.get_by_id(Table.JOBSHEET_ITEMS, item.id).is_issued is True
    assert store.get_by_id(Table.PRODUCTS, widget.id).current_stock == Decimal("3")
    assert store.get_by_id(Table.JOBS, job.id).material_cost == Decimal("200")

    with pytest.raises(ValidationError):
        jobsheet_service.issue_jobsheet_materials(sheet.header.id, store=store)


def test_issue_materials_short_of_stock(store, job, technician, widget):
    sheet = jobsheet_service.create_labour_jobsheet(
        job.id, technician.id, 1, materials=[{"product_id": widget.id, "quantity": 2}], store=store,
    ).header
    with pytest.raises(InsufficientStockError):
        jobsheet_service.issue_jobsheet_materials(sheet.id, store=store)
    assert store.get_all(Table.CHALLANS) == []
