# Overview: Flask API routes for postings; parses input and returns the materialized records as JSON.

# backend/garage_books/routes/postings.py
"""
Posting API Routes

Thin JSON wrappers over the posting services. Every route returns the full
PostingResult (header, items, journal entry, stock movements, ledger
entries, outbox operation, warnings).

ERRORS:
- 400 ValidationError, 404 NotFoundError, 409 InsufficientStockError,
  422 JournalImbalanceError, 500 anything else (logged)
"""

from flask import Blueprint, current_app, jsonify

from ..errors import BooksError
from ..services import (
    challan_service, invoice_service, jobsheet_service, payment_service, purchase_service,
    vendor_invoice_service, voucher_service,
)
from . import error_response, json_body

postings_bp = Blueprint("postings", __name__, url_prefix="/api")


def _respond(label: str, action, status: int = 201):
    try:
        result = action()
        return jsonify(result.to_dict()), status
    except BooksError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to %s", label)
        return jsonify({"error": "Internal server error"}), 500


def _tax_kwargs(data: dict) -> dict:
    return {
        "gst_rate": data.get("gst_rate", 0),
        "tax_mode": data.get("tax_mode") or "igst",
        "discount": data.get("discount", 0),
        "round_off": data.get("round_off", 0),
    }


# =============================================================================
# PURCHASES
# =============================================================================

@postings_bp.post("/purchases")
def post_purchase_route():
    """
    Post a supplier purchase invoice.

    Request body:
    {
        "supplier_id": "...",
        "items": [{"product_id": "...", "quantity": 10, "rate": 100}],
        "gst_rate": 18, "tax_mode": "igst" | "cgst_sgst",
        "discount": 0, "round_off": 0,
        "invoice_no": "PI-001", "entry_date": "2024-01-31",
        "create_grn": true
    }
    """
    def action():
        data = json_body()
        return purchase_service.post_purchase_invoice(
            data.get("supplier_id"),
            data.get("items") or [],
            entry_date=data.get("entry_date"),
            invoice_no=data.get("invoice_no"),
            notes=data.get("notes"),
            create_grn=bool(data.get("create_grn", True)),
            challan_no=data.get("challan_no"),
            received_by=data.get("received_by"),
            **_tax_kwargs(data),
        )
    return _respond("post purchase", action)


@postings_bp.post("/purchases/<purchase_id>/grn")
def create_grn_route(purchase_id):
    def action():
        data = json_body(required=False)
        return purchase_service.create_grn(
            purchase_id,
            challan_no=data.get("challan_no"),
            received_by=data.get("received_by"),
            remarks=data.get("remarks"),
            entry_date=data.get("entry_date"),
        )
    return _respond("create GRN", action)


# =============================================================================
# SALES
# =============================================================================

@postings_bp.post("/invoices")
def post_invoice_route():
    """
    Post a sales invoice.

    Items with product_id move stock out; items without are service lines.
    payment_amount > 0 records money taken at the counter in the same posting.
    """
    def action():
        data = json_body()
        return invoice_service.post_sales_invoice(
            data.get("customer_id"),
            data.get("items") or [],
            payment_amount=data.get("payment_amount", 0),
            payment_mode=data.get("payment_mode") or "cash",
            account_code=data.get("account_code"),
            job_id=data.get("job_id"),
            entry_date=data.get("entry_date"),
            invoice_no=data.get("invoice_no"),
            notes=data.get("notes"),
            **_tax_kwargs(data),
        )
    return _respond("post invoice", action)


@postings_bp.post("/invoices/<invoice_id>/payments")
def receive_payment_route(invoice_id):
    def action():
        data = json_body()
        return payment_service.receive_payment(
            invoice_id,
            data.get("amount"),
            payment_mode=data.get("payment_mode") or "cash",
            account_code=data.get("account_code"),
            entry_date=data.get("entry_date"),
            reference_no=data.get("reference_no"),
            notes=data.get("notes"),
        )
    return _respond("receive payment", action)


# =============================================================================
# VOUCHERS AND VENDOR BILLS
# =============================================================================

@postings_bp.post("/vouchers")
def create_voucher_route():
    def action():
        data = json_body()
        return voucher_service.create_voucher(
            data.get("lines") or [],
            voucher_type=data.get("voucher_type") or "journal",
            entry_date=data.get("entry_date"),
            narration=data.get("narration"),
            voucher_no=data.get("voucher_no"),
        )
    return _respond("create voucher", action)


@postings_bp.post("/vendor-invoices")
def post_vendor_invoice_route():
    def action():
        data = json_body()
        return vendor_invoice_service.post_vendor_invoice(
            data.get("vendor_id"),
            data.get("items") or [],
            job_id=data.get("job_id"),
            entry_date=data.get("entry_date"),
            invoice_no=data.get("invoice_no"),
            **_tax_kwargs(data),
        )
    return _respond("post vendor invoice", action)


@postings_bp.post("/vendor-invoices/<vendor_invoice_id>/link-job")
def link_vendor_invoice_route(vendor_invoice_id):
    def action():
        data = json_body()
        return vendor_invoice_service.link_vendor_invoice_to_job(
            vendor_invoice_id,
            data.get("job_id"),
            entry_date=data.get("entry_date"),
        )
    return _respond("link vendor invoice", action, status=200)


# =============================================================================
# PAYMENTS OUT
# =============================================================================

def _payment_kwargs(data: dict) -> dict:
    return {
        "payment_mode": data.get("payment_mode") or "cash",
        "account_code": data.get("account_code"),
        "entry_date": data.get("entry_date"),
        "reference_no": data.get("reference_no"),
        "notes": data.get("notes"),
    }


@postings_bp.post("/payments/supplier")
def supplier_payment_route():
    def action():
        data = json_body()
        return payment_service.record_supplier_payment(
            data.get("supplier_id"),
            data.get("amount"),
            purchase_id=data.get("purchase_id"),
            **_payment_kwargs(data),
        )
    return _respond("record supplier payment", action)


@postings_bp.post("/payments/vendor")
def vendor_payment_route():
    def action():
        data = json_body()
        return payment_service.record_vendor_payment(
            data.get("vendor_id"),
            data.get("amount"),
            vendor_invoice_id=data.get("vendor_invoice_id"),
            **_payment_kwargs(data),
        )
    return _respond("record vendor payment", action)


@postings_bp.post("/payments/labour")
def labour_payment_route():
    def action():
        data = json_body()
        return payment_service.record_labour_payment(
            data.get("labour_id"),
            data.get("amount"),
            jobsheet_ids=data.get("jobsheet_ids") or [],
            **_payment_kwargs(data),
        )
    return _respond("record labour payment", action)


# =============================================================================
# JOBSHEETS AND CHALLANS
# =============================================================================

@postings_bp.post("/jobsheets")
def create_jobsheet_route():
    def action():
        data = json_body()
        return jobsheet_service.create_labour_jobsheet(
            data.get("job_id"),
            data.get("technician_id"),
            data.get("hours"),
            work_date=data.get("work_date"),
            description=data.get("description"),
            materials=data.get("materials") or [],
        )
    return _respond("create jobsheet", action)


@postings_bp.post("/jobsheets/<jobsheet_id>/approve")
def approve_jobsheet_route(jobsheet_id):
    def action():
        data = json_body(required=False)
        return jobsheet_service.approve_jobsheet(
            jobsheet_id,
            data.get("approved_by"),
            entry_date=data.get("entry_date"),
        )
    return _respond("approve jobsheet", action, status=200)


@postings_bp.post("/jobsheets/<jobsheet_id>/issue")
def issue_jobsheet_materials_route(jobsheet_id):
    def action():
        data = json_body(required=False)
        return jobsheet_service.issue_jobsheet_materials(
            jobsheet_id,
            challan_no=data.get("challan_no"),
            entry_date=data.get("entry_date"),
        )
    return _respond("issue jobsheet materials", action)


@postings_bp.post("/challans")
def issue_challan_route():
    def action():
        data = json_body()
        return challan_service.issue_challan(
            data.get("items") or [],
            job_id=data.get("job_id"),
            jobsheet_id=data.get("jobsheet_id"),
            jobsheet_item_ids=data.get("jobsheet_item_ids") or [],
            challan_no=data.get("challan_no"),
            entry_date=data.get("entry_date"),
            notes=data.get("notes"),
        )
    return _respond("issue challan", action)
