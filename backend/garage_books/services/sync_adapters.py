# Overview: Remote sync adapters used by the outbox drainer.

"""
Sync Adapter Contract

send(operation) -> SyncResult(status, server_state, server_version, error)

status:
- "ok":       remote accepted the operation
- "conflict": remote disagrees with local state (server_state carries its copy)
- "error":    transient failure; the drainer retries up to max_retries

Adapters never mutate local state. Raising from send() is treated as "error".
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_CONFLICT = "conflict"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class SyncResult:
    status: str
    server_state: Optional[Any] = None
    server_version: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, server_version: Optional[str] = None, server_state: Optional[Any] = None) -> "SyncResult":
        return cls(STATUS_OK, server_state=server_state, server_version=server_version)

    @classmethod
    def conflict(cls, server_state: Optional[Any] = None) -> "SyncResult":
        return cls(STATUS_CONFLICT, server_state=server_state)

    @classmethod
    def failed(cls, error: str) -> "SyncResult":
        return cls(STATUS_ERROR, error=error)


def operation_envelope(operation) -> dict:
    """Wire shape of an outbox operation."""
    return {
        "op_id": operation.op_id,
        "op_type": operation.op_type,
        "stores": list(operation.stores or []),
        "payload": operation.payload or {},
        "priority": operation.priority,
        "created_at": operation.to_dict()["created_at"],
    }


class SyncAdapter(ABC):
    """Transport for one outbox operation."""

    @abstractmethod
    def send(self, operation) -> SyncResult:
        ...

    def close(self) -> None:
        """Release transport resources."""


class LoopbackSyncAdapter(SyncAdapter):
    """
    Local-only mode: acknowledges every operation.

    Used when no remote URL is configured, so the outbox still drains and
    records are stamped as synced with a local version token.
    """

    def send(self, operation) -> SyncResult:
        return SyncResult.ok(server_version=f"local-{operation.op_id}")


class HttpSyncAdapter(SyncAdapter):
    """
    POST each operation as JSON to {base_url}/operations.

    2xx -> ok (server_version from the JSON body "version", if any)
    409 -> conflict (JSON body is the server state)
    anything else, or a transport error -> error
    """

    def __init__(self, base_url: str, *, timeout: float = 10.0, client: Optional[httpx.Client] = None,
                 headers: Optional[dict] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout, headers=headers)

    def send(self, operation) -> SyncResult:
        url = f"{self.base_url}/operations"
        try:
            response = self.client.post(url, json=operation_envelope(operation))
        except httpx.HTTPError as exc:
            logger.warning("Sync transport error for %s: %s", operation.op_id, exc)
            return SyncResult.failed(f"{type(exc).__name__}: {exc}")

        body = _json_or_none(response)
        if response.status_code == 409:
            return SyncResult.conflict(server_state=body)
        if response.is_success:
            version = body.get("version") if isinstance(body, dict) else None
            return SyncResult.ok(server_version=str(version) if version is not None else None, server_state=body)
        return SyncResult.failed(f"HTTP {response.status_code}: {response.text[:200]}")

    def close(self) -> None:
        self.client.close()


def _json_or_none(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return None


def build_adapter(config) -> SyncAdapter:
    """Pick the adapter from app config (SYNC_REMOTE_URL unset -> loopback)."""
    url = config.get("SYNC_REMOTE_URL")
    if not url:
        return LoopbackSyncAdapter()
    return HttpSyncAdapter(url, timeout=float(config.get("SYNC_TIMEOUT_SECONDS", 10)))
