# Overview: Shared helpers for API routes; error-to-status mapping and request parsing.

from flask import jsonify, request

from ..errors import (
    BooksError, InsufficientStockError, JournalImbalanceError, NotFoundError, ValidationError,
)
from ..time_utils import parse_business_date

STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (InsufficientStockError, 409),
    (JournalImbalanceError, 422),
)


def error_response(exc: BooksError):
    """Map a domain error to (json, status). TransactionError and unknown errors are 500."""
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return jsonify({"error": str(exc), "type": type(exc).__name__}), status
    return jsonify({"error": str(exc), "type": type(exc).__name__}), 500


def json_body(required: bool = True) -> dict:
    data = request.get_json(silent=True)
    if data is None and not required:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required")
    return data


def date_arg(name: str):
    value = request.args.get(name)
    try:
        return parse_business_date(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value!r}") from None
