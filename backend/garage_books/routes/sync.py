# Overview: Flask API routes for the outbox drainer; status, manual drain, retry, cleanup and conflicts.

from flask import Blueprint, current_app, jsonify, request

from ..errors import BooksError, ValidationError
from . import error_response, json_body

sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


def _manager():
    return current_app.extensions["sync_manager"]


def _respond(label: str, action):
    try:
        return jsonify(action()), 200
    except BooksError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to %s", label)
        return jsonify({"error": "Internal server error"}), 500


@sync_bp.get("/status")
def sync_status_route():
    return _respond("read sync status", lambda: _manager().get_sync_status())


@sync_bp.post("/drain")
def drain_route():
    """Run one drain now. Returns skipped=true if a drain is already running."""
    return _respond("drain outbox", lambda: _manager().process_queue().to_dict())


@sync_bp.post("/retry")
def retry_route():
    return _respond("retry failed operations", lambda: _manager().retry_failed_operations().to_dict())


@sync_bp.post("/cleanup")
def cleanup_route():
    def action():
        days = request.args.get("days", current_app.config.get("SYNC_RETENTION_DAYS", 7))
        try:
            days = int(days)
        except (TypeError, ValueError):
            raise ValidationError("days must be an integer") from None
        return {"deleted": _manager().clear_completed_operations(older_than_days=days)}
    return _respond("clean up outbox", action)


@sync_bp.get("/conflicts")
def conflicts_route():
    include_resolved = request.args.get("include_resolved", "false").lower() == "true"
    return _respond("list conflicts", lambda: _manager().list_conflicts(include_resolved=include_resolved))


@sync_bp.post("/conflicts/<conflict_id>/resolve")
def resolve_conflict_route(conflict_id):
    def action():
        data = json_body()
        return _manager().resolve_conflict(conflict_id, data.get("resolution")).to_dict()
    return _respond("resolve conflict", action)
