# Overview: Flask API routes for ledgers and reports; read-only replays of journal, party and stock logs.

from flask import Blueprint, current_app, jsonify

from ..errors import BooksError
from ..services import inventory_service, journal_service, party_ledger_service
from . import date_arg, error_response

ledgers_bp = Blueprint("ledgers", __name__, url_prefix="/api")


def _respond(label: str, action):
    try:
        return jsonify(action()), 200
    except BooksError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to %s", label)
        return jsonify({"error": "Internal server error"}), 500


@ledgers_bp.get("/ledgers/<party_type>/<party_id>")
def party_ledger_route(party_type, party_id):
    """
    Party statement with running balance.

    Query: from_date, to_date (YYYY-MM-DD, inclusive, optional)
    """
    return _respond("load party ledger", lambda: party_ledger_service.get_ledger(
        party_type, party_id, date_arg("from_date"), date_arg("to_date"),
    ).to_dict())


@ledgers_bp.get("/ledgers/<party_type>/<party_id>/summary")
def party_summary_route(party_type, party_id):
    return _respond("load party summary", lambda: party_ledger_service.get_party_summary(
        party_type, party_id,
    ))


@ledgers_bp.get("/accounts/<account_code>/ledger")
def account_ledger_route(account_code):
    return _respond("load account ledger", lambda: journal_service.get_account_ledger(
        account_code.upper(), date_arg("from_date"), date_arg("to_date"),
    ))


@ledgers_bp.get("/reports/gst")
def gst_report_route():
    return _respond("build GST report", lambda: journal_service.get_gst_report(
        date_arg("from_date"), date_arg("to_date"),
    ))


@ledgers_bp.get("/stock/<product_id>")
def stock_history_route(product_id):
    return _respond("load stock history", lambda: inventory_service.get_stock_history(product_id))


@ledgers_bp.get("/stock/<product_id>/check")
def stock_check_route(product_id):
    return _respond("check stock", lambda: inventory_service.check_stock_consistency(product_id))
