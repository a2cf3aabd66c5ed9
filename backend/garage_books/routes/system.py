# backend/garage_books/routes/system.py
"""
System health endpoint.

Reports database connectivity and the outbox backlog so deployments can
tell at a glance whether sync is keeping up.
"""

import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        return {"status": "healthy", "response_time_ms": round((time.time() - start_time) * 1000, 2)}
    except Exception as e:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "error": str(e)}


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    manager = current_app.extensions.get("sync_manager")
    sync = manager.get_sync_status() if manager and database["status"] == "healthy" else None
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "database": database,
        "sync": sync,
    }), 200 if healthy else 503
