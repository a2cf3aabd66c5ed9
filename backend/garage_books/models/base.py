# Overview: Shared column mixins and serialization for garage_books models.

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


def new_id() -> str:
    """Client-side string id, so related rows can reference each other before flush."""
    return str(uuid.uuid4())


def serialize_value(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def Money(**kwargs):
    return db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"), **kwargs)


def Quantity(**kwargs):
    return db.Column(db.Numeric(14, 3), nullable=False, default=Decimal("0.000"), **kwargs)


class RecordMixin:
    """
    Plain column serialization.

    to_dict() is what lands in outbox payloads, so it must stay JSON-safe:
    Decimal -> str, date -> YYYY-MM-DD, datetime -> ISO-8601 Z.
    """

    def to_dict(self) -> dict:
        return {
            column.key: serialize_value(getattr(self, column.key))
            for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={getattr(self, 'id', None)!r}>"


class SyncMixin:
    """
    Outward sync bookkeeping.

    sync_status flips from "pending" to "synced" once the outbox operation that
    carried this row is acknowledged; server_version is the remote token.
    """
    sync_status = db.Column(db.String(16), nullable=False, default="pending")
    server_version = db.Column(db.String(64), nullable=True)


class TimestampMixin:
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
