# Overview: Outbox operations and conflict records for outward sync.

from __future__ import annotations

from ..extensions import db
from .base import RecordMixin, new_id
from ..time_utils import utcnow


class OfflineOperation(RecordMixin, db.Model):
    """
    Durable outbox entry.

    CRITICAL: written in the SAME transaction as the business records it
    describes, so no posting commits without its outbox row.

    STATE MACHINE:
    pending -> completed | conflict | failed (after max retries)
    failed -> pending (manual retry)
    """
    __tablename__ = "offline_operations"
    __table_args__ = (
        db.Index("ix_offline_operations_status_created", "status", "created_at"),
    )

    # Integer key keeps FIFO order stable when created_at ties.
    id = db.Column(db.Integer, primary_key=True)
    op_id = db.Column(db.String(36), nullable=False, unique=True, default=new_id)
    op_type = db.Column(db.String(64), nullable=False)
    stores = db.Column(db.JSON, nullable=False, default=list)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    priority = db.Column(db.String(8), nullable=False, default="normal")
    status = db.Column(db.String(16), nullable=False, default="pending")
    retry_count = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_attempt_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    failed_at = db.Column(db.DateTime, nullable=True)
    conflict_id = db.Column(db.String(36), nullable=True)

    def __repr__(self) -> str:
        return f"<OfflineOperation {self.op_id} {self.op_type} {self.priority}/{self.status}>"


class Conflict(RecordMixin, db.Model):
    """Server disagreement on an outbox operation. Never auto-resolved."""
    __tablename__ = "conflicts"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    operation_id = db.Column(db.String(36), nullable=False, index=True)
    op_type = db.Column(db.String(64), nullable=True)
    stores = db.Column(db.JSON, nullable=False, default=list)
    local_data = db.Column(db.JSON, nullable=True)
    server_data = db.Column(db.JSON, nullable=True)
    resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolution = db.Column(db.String(32), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    resolved_at = db.Column(db.DateTime, nullable=True)
