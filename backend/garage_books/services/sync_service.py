# Overview: Outbox drainer; sends pending operations through a sync adapter with retry and conflict capture.

"""
Sync Manager

WHY: Postings commit locally with an outbox row. The drainer pushes those
rows to the remote side later, in order, without ever overwriting a
disagreement silently.

DESIGN:
- Explicitly constructed (no module singleton). create_app builds one and
  stores it in app.extensions["sync_manager"].
- Single-flight: a drain that starts while another is running is dropped
  (DrainReport.skipped), not queued.
- Order: priority (high < normal < low), then created_at, then insertion.
  Operations are processed strictly one at a time.
- ok       -> completed; records in the payload are stamped synced
              (best-effort, failures reported in StampReport, never raised)
- conflict -> Conflict row + operation status "conflict"
- error    -> retry_count += 1; "failed" once retry_count reaches max_retries
- failed operations only move again through retry_failed_operations().
- Auto sync: daemon thread, one drain immediately then one per interval.
  stop_auto_sync() stops future cycles; an in-flight drain finishes.
"""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from flask import has_app_context
from sqlalchemy import func

from ..errors import BooksError, NotFoundError, TransactionError, ValidationError
from ..models import Conflict, OfflineOperation
from ..time_utils import utcnow
from .concurrency import run_with_retry
from .outbox_service import (
    PRIORITY_ORDER, STATUS_COMPLETED, STATUS_CONFLICT, STATUS_FAILED, STATUS_PENDING,
)
from .record_store import RecordStore, Table, default_store
from .sync_adapters import STATUS_CONFLICT as RESULT_CONFLICT, STATUS_OK, SyncAdapter, SyncResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_INTERVAL_SECONDS = 30
DEFAULT_RETENTION_DAYS = 7

CONFLICT_RESOLUTIONS = ("keep_local", "keep_server", "merged", "discarded")


@dataclass
class StampReport:
    """Outcome of marking an operation's records as synced."""
    stamped: list = field(default_factory=list)
    failed: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "stamped": [{"table": t, "id": i} for t, i in self.stamped],
            "failed": [{"table": t, "id": i, "error": e} for t, i, e in self.failed],
        }


@dataclass
class DrainReport:
    skipped: bool = False
    processed: list = field(default_factory=list)
    completed: int = 0
    conflicts: int = 0
    retried: int = 0
    failed: int = 0
    requeued: int = 0
    stamp_failures: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "skipped": self.skipped,
            "processed": list(self.processed),
            "completed": self.completed,
            "conflicts": self.conflicts,
            "retried": self.retried,
            "failed": self.failed,
            "requeued": self.requeued,
            "stamp_failures": list(self.stamp_failures),
        }


def drain_order(operations) -> list:
    return sorted(
        operations,
        key=lambda op: (PRIORITY_ORDER.get(op.priority, PRIORITY_ORDER["normal"]), op.created_at, op.id),
    )


class SyncManager:
    def __init__(
        self,
        store: Optional[RecordStore] = None,
        adapter: Optional[SyncAdapter] = None,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        app=None,
    ):
        if adapter is None:
            raise ValidationError("SyncManager needs a sync adapter")
        if max_retries < 1:
            raise ValidationError("max_retries must be at least 1")
        self._store = store
        self.adapter = adapter
        self.max_retries = max_retries
        self.app = app

        self._lock = threading.Lock()
        self._processing = False
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self.last_drain_at = None

    # =========================================================================
    # PLUMBING
    # =========================================================================

    @property
    def store(self) -> RecordStore:
        return self._store if self._store is not None else default_store()

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def auto_sync_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def _app_scope(self):
        if self.app is not None and not has_app_context():
            return self.app.app_context()
        return nullcontext()

    # =========================================================================
    # DRAIN
    # =========================================================================

    def process_queue(self) -> DrainReport:
        if not self._lock.acquire(blocking=False):
            logger.warning("Sync drain already in progress; skipping this cycle")
            return DrainReport(skipped=True)
        self._processing = True
        try:
            with self._app_scope():
                return self._drain()
        finally:
            self._processing = False
            self._lock.release()

    def _drain(self) -> DrainReport:
        report = DrainReport()
        pending = drain_order(self.store.get_by_index(Table.OFFLINE_OPERATIONS, "status", STATUS_PENDING))
        if pending:
            logger.info("Sync drain started: %s pending operation(s)", len(pending))
        for operation in pending:
            self._process_operation(operation, report)
        self.last_drain_at = utcnow()
        if pending:
            logger.info(
                "Sync drain finished: completed=%s conflicts=%s retried=%s failed=%s",
                report.completed, report.conflicts, report.retried, report.failed,
            )
        return report

    def _send(self, operation) -> SyncResult:
        try:
            result = self.adapter.send(operation)
        except Exception as exc:
            logger.exception("Sync adapter raised for operation %s", operation.op_id)
            return SyncResult.failed(f"{type(exc).__name__}: {exc}")
        if not isinstance(result, SyncResult):
            return SyncResult.failed(f"Adapter returned {result!r}")
        return result

    def _process_operation(self, operation: OfflineOperation, report: DrainReport) -> None:
        op_id = operation.op_id
        report.processed.append(op_id)
        result = self._send(operation)
        now = utcnow()

        if result.status == STATUS_OK:
            self.store.update(Table.OFFLINE_OPERATIONS, operation.id, {
                "status": STATUS_COMPLETED,
                "completed_at": now,
                "last_attempt_at": now,
                "last_error": None,
            })
            stamp = self.mark_operation_complete(operation, result.server_version)
            report.completed += 1
            report.stamp_failures.extend(stamp.to_dict()["failed"])
            logger.info("Operation %s (%s) synced", op_id, operation.op_type)
            return

        if result.status == RESULT_CONFLICT:
            with self.store.begin([Table.OFFLINE_OPERATIONS, Table.CONFLICTS]) as tx:
                conflict = tx.put(Table.CONFLICTS, {
                    "operation_id": op_id,
                    "op_type": operation.op_type,
                    "stores": list(operation.stores or []),
                    "local_data": operation.payload,
                    "server_data": result.server_state,
                    "resolved": False,
                })
                locked = tx.get(Table.OFFLINE_OPERATIONS, operation.id, lock=True)
                locked.status = STATUS_CONFLICT
                locked.conflict_id = conflict.id
                locked.last_attempt_at = now
                tx.put(Table.OFFLINE_OPERATIONS, locked)
            report.conflicts += 1
            logger.warning("Operation %s conflicted with server state; conflict %s recorded", op_id, conflict.id)
            return

        retry_count = (operation.retry_count or 0) + 1
        exhausted = retry_count >= self.max_retries
        self.store.update(Table.OFFLINE_OPERATIONS, operation.id, {
            "status": STATUS_FAILED if exhausted else STATUS_PENDING,
            "retry_count": retry_count,
            "last_error": result.error or f"status {result.status!r}",
            "last_attempt_at": now,
            "failed_at": now if exhausted else None,
        })
        if exhausted:
            report.failed += 1
            logger.error("Operation %s failed after %s attempt(s): %s", op_id, retry_count, result.error)
        else:
            report.retried += 1
            logger.warning("Operation %s attempt %s failed: %s", op_id, retry_count, result.error)

    def mark_operation_complete(self, operation: OfflineOperation, server_version: Optional[str]) -> StampReport:
        """
        Stamp every record named in the payload with sync_status="synced".

        Cosmetic bookkeeping: failures are logged and collected, never raised.
        """
        report = StampReport()
        store = self.store
        patch = {"sync_status": "synced", "server_version": server_version}
        for table_name, records in (operation.payload or {}).items():
            for record in records or []:
                record_id = record.get("id") if isinstance(record, dict) else None
                try:
                    run_with_retry(
                        lambda: store.update(table_name, record_id, patch),
                        store.session,
                        attempts=2,
                        backoff_base=0.05,
                        retry_on=(TransactionError,),
                    )
                except BooksError as exc:
                    logger.warning("Could not stamp %s/%s as synced: %s", table_name, record_id, exc)
                    report.failed.append((table_name, record_id, str(exc)))
                else:
                    report.stamped.append((table_name, record_id))
        return report

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def retry_failed_operations(self) -> DrainReport:
        """failed -> pending with retry_count reset, then drain."""
        with self._app_scope():
            with self.store.begin([Table.OFFLINE_OPERATIONS]) as tx:
                failed = tx.find(Table.OFFLINE_OPERATIONS, status=STATUS_FAILED)
                for operation in failed:
                    operation.status = STATUS_PENDING
                    operation.retry_count = 0
                    operation.failed_at = None
                    tx.put(Table.OFFLINE_OPERATIONS, operation)
                requeued = len(failed)
        logger.info("Requeued %s failed operation(s)", requeued)
        report = self.process_queue()
        report.requeued = requeued
        return report

    def clear_completed_operations(self, older_than_days: int = DEFAULT_RETENTION_DAYS) -> int:
        """Delete completed operations whose completion (or creation) is older than the window."""
        cutoff = utcnow() - timedelta(days=older_than_days)
        with self._app_scope():
            with self.store.begin([Table.OFFLINE_OPERATIONS]) as tx:
                stale = (
                    tx.query(Table.OFFLINE_OPERATIONS)
                    .filter(OfflineOperation.status == STATUS_COMPLETED)
                    .filter(func.coalesce(OfflineOperation.completed_at, OfflineOperation.created_at) < cutoff)
                    .all()
                )
                for operation in stale:
                    tx.delete(Table.OFFLINE_OPERATIONS, operation.id)
                deleted = len(stale)
        logger.info("Cleared %s completed operation(s) older than %s day(s)", deleted, older_than_days)
        return deleted

    def get_sync_status(self) -> dict:
        with self._app_scope():
            session = self.store.session
            counts = dict(
                session.query(OfflineOperation.status, func.count(OfflineOperation.id))
                .group_by(OfflineOperation.status)
                .all()
            )
            unresolved = session.query(func.count(Conflict.id)).filter(Conflict.resolved.is_(False)).scalar()
        return {
            "pending": counts.get(STATUS_PENDING, 0),
            "completed": counts.get(STATUS_COMPLETED, 0),
            "failed": counts.get(STATUS_FAILED, 0),
            "conflict": counts.get(STATUS_CONFLICT, 0),
            "unresolved_conflicts": unresolved or 0,
            "is_processing": self.is_processing,
            "auto_sync_running": self.auto_sync_running,
            "last_drain_at": self.last_drain_at.isoformat() if self.last_drain_at else None,
        }

    def list_conflicts(self, *, include_resolved: bool = False) -> list:
        with self._app_scope():
            conflicts = self.store.get_all(Table.CONFLICTS)
            if not include_resolved:
                conflicts = [c for c in conflicts if not c.resolved]
            return [c.to_dict() for c in conflicts]

    def resolve_conflict(self, conflict_id: str, resolution: str) -> Conflict:
        """
        Close a conflict by hand.

        keep_local re-queues the operation (pending, retry_count 0) so the
        local version is sent again; other resolutions leave it in "conflict".
        """
        if resolution not in CONFLICT_RESOLUTIONS:
            raise ValidationError(f"Invalid resolution: {resolution!r}")
        with self._app_scope():
            with self.store.begin([Table.CONFLICTS, Table.OFFLINE_OPERATIONS]) as tx:
                conflict = tx.get(Table.CONFLICTS, conflict_id, lock=True)
                if conflict is None:
                    raise NotFoundError("Conflict", conflict_id)
                if conflict.resolved:
                    raise ValidationError(f"Conflict {conflict_id} is already resolved")
                conflict.resolved = True
                conflict.resolution = resolution
                conflict.resolved_at = utcnow()
                tx.put(Table.CONFLICTS, conflict)
                if resolution == "keep_local":
                    for operation in tx.find(Table.OFFLINE_OPERATIONS, op_id=conflict.operation_id):
                        operation.status = STATUS_PENDING
                        operation.retry_count = 0
                        tx.put(Table.OFFLINE_OPERATIONS, operation)
            logger.info("Conflict %s resolved as %s", conflict_id, resolution)
            return conflict

    # =========================================================================
    # AUTO SYNC
    # =========================================================================

    def start_auto_sync(self, interval_seconds: float = DEFAULT_INTERVAL_SECONDS) -> bool:
        """Start the timer thread. Returns False if it is already running."""
        if self.auto_sync_running:
            return False
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run_loop,
            args=(self._stop_event, interval_seconds),
            name="garage-books-sync",
            daemon=True,
        )
        self._thread.start()
        logger.info("Auto sync started (every %ss)", interval_seconds)
        return True

    def stop_auto_sync(self, *, wait: bool = False, timeout: Optional[float] = None) -> None:
        if self._stop_event is None:
            return
        self._stop_event.set()
        if wait and self._thread is not None:
            self._thread.join(timeout)
        logger.info("Auto sync stopped")

    def _run_loop(self, stop_event: threading.Event, interval_seconds: float) -> None:
        while not stop_event.is_set():
            try:
                self.process_queue()
            except Exception:
                logger.exception("Auto sync cycle failed")
            if stop_event.wait(interval_seconds):
                break
