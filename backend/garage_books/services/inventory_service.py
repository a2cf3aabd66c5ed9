# Overview: Service-layer operations for stock; replay, availability checks and movements.

"""
Stock Ledger

INVARIANTS:
- On-hand quantity = SUM(signed quantity) over stock_transactions for the
  product, computed by full replay.
- products.current_stock is a denormalized copy. Every movement updates it
  in the same transaction as the stock_transactions append, with the product
  row locked.
- Issues (negative movements) are checked against on-hand stock and fail
  with InsufficientStockError when short.

LEGACY ROWS:
Older data stored an unsigned quantity plus movement_type ("in"/"out").
polarize() converts that shape to a signed delta at the boundary; only the
signed form is ever written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product, StockTransaction
from ..money import ZERO, quantity as to_quantity, to_decimal
from ..time_utils import today
from .record_store import RecordStore, Table, TransactionScope, ensure_store

logger = logging.getLogger(__name__)

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"


@dataclass(frozen=True)
class StockAvailability:
    product_id: str
    available: bool
    current_stock: Decimal
    required_qty: Decimal
    shortfall: Decimal

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "available": self.available,
            "current_stock": str(self.current_stock),
            "required_qty": str(self.required_qty),
            "shortfall": str(self.shortfall),
        }


def polarize(quantity, movement_type: Optional[str] = None) -> Decimal:
    """
    Signed delta for a movement.

    With a movement_type the magnitude is taken as unsigned ("in" -> +qty,
    "out" -> -qty). Without one the quantity is assumed to be signed already.
    """
    value = to_decimal(quantity)
    if movement_type is None:
        return value
    kind = movement_type.strip().lower()
    if kind == MOVEMENT_IN:
        return abs(value)
    if kind == MOVEMENT_OUT:
        return -abs(value)
    raise ValidationError(f"Unknown movement type: {movement_type!r}")


def movement_type_for(delta: Decimal) -> str:
    return MOVEMENT_IN if delta >= 0 else MOVEMENT_OUT


def _replay(rows) -> Decimal:
    total = ZERO
    for row in rows:
        total += polarize(row.quantity)
    return total


def calculate_current_stock(product_id: str, *, store: RecordStore | None = None) -> Decimal:
    store = ensure_store(store)
    return _replay(store.get_by_index(Table.STOCK_TRANSACTIONS, "product_id", product_id))


def validate_stock_availability(
    product_id: str,
    required_qty,
    *,
    store: RecordStore | None = None,
) -> StockAvailability:
    required = to_decimal(required_qty)
    current = calculate_current_stock(product_id, store=store)
    return StockAvailability(
        product_id=product_id,
        available=current >= required,
        current_stock=current,
        required_qty=required,
        shortfall=max(required - current, ZERO),
    )


def require_stock(product: Product, required_qty, *, store: RecordStore | None = None) -> StockAvailability:
    result = validate_stock_availability(product.id, required_qty, store=store)
    if not result.available:
        raise InsufficientStockError(product.name or product.id, result.current_stock, result.required_qty)
    return result


def require_stock_for(requirements: dict[str, Decimal], *, store: RecordStore | None = None) -> None:
    """Pre-transaction check for several products at once. Raises on the first shortfall."""
    store = ensure_store(store)
    for product_id, required in requirements.items():
        product = store.get_by_id(Table.PRODUCTS, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        require_stock(product, required, store=store)


def apply_stock_movement(
    tx: TransactionScope,
    product_id: str,
    delta,
    *,
    reference_type: Optional[str],
    reference_id: Optional[str],
    entry_date: date,
    description: Optional[str] = None,
    enforce_availability: bool = True,
) -> StockTransaction:
    """
    Append one signed movement and update the denormalized counter.

    Must run inside a transaction declaring products and stock_transactions.
    The product row is locked; for outward movements the replayed quantity is
    re-checked under that lock.
    """
    signed = to_quantity(delta)
    if signed == ZERO:
        raise ValidationError("Stock movement quantity must be non-zero")

    product = tx.get(Table.PRODUCTS, product_id, lock=True)
    if product is None:
        raise NotFoundError("Product", product_id)

    if signed < 0 and enforce_availability:
        on_hand = _replay(tx.find(Table.STOCK_TRANSACTIONS, product_id=product_id))
        if on_hand + signed < 0:
            raise InsufficientStockError(product.name or product.id, on_hand, -signed)

    movement = tx.put(Table.STOCK_TRANSACTIONS, {
        "product_id": product_id,
        "quantity": signed,
        "movement_type": movement_type_for(signed),
        "reference_type": reference_type,
        "reference_id": reference_id,
        "entry_date": entry_date,
        "description": description,
    })
    product.current_stock = to_decimal(product.current_stock) + signed
    tx.put(Table.PRODUCTS, product)
    # Keep the replay query above consistent for later movements in the same body.
    tx.flush()
    return movement


def record_legacy_movement(
    product_id: str,
    quantity,
    movement_type: str,
    *,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    entry_date: Optional[date] = None,
    description: Optional[str] = None,
    store: RecordStore | None = None,
) -> StockTransaction:
    """Ingest an unsigned quantity + movement_type row as a signed movement."""
    store = ensure_store(store)
    delta = polarize(quantity, movement_type)
    with store.begin([Table.PRODUCTS, Table.STOCK_TRANSACTIONS]) as tx:
        return apply_stock_movement(
            tx,
            product_id,
            delta,
            reference_type=reference_type or "adjustment",
            reference_id=reference_id,
            entry_date=entry_date or today(),
            description=description,
        )


def get_stock_history(product_id: str, *, store: RecordStore | None = None) -> dict:
    store = ensure_store(store)
    product = store.get_by_id(Table.PRODUCTS, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)

    rows = store.get_by_index(Table.STOCK_TRANSACTIONS, "product_id", product_id)
    # Stable sort: insertion order breaks date ties.
    rows = sorted(rows, key=lambda r: r.entry_date)
    running = ZERO
    history = []
    for row in rows:
        running += polarize(row.quantity)
        item = row.to_dict()
        item["running_stock"] = str(running)
        history.append(item)

    return {
        "product": product.to_dict(),
        "movements": history,
        "current_stock": str(running),
    }


def check_stock_consistency(product_id: str, *, store: RecordStore | None = None) -> dict:
    """Compare products.current_stock with the replayed log."""
    store = ensure_store(store)
    product = store.get_by_id(Table.PRODUCTS, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    replayed = calculate_current_stock(product_id, store=store)
    cached = to_decimal(product.current_stock)
    consistent = replayed == cached
    if not consistent:
        logger.warning(
            "Stock drift on product %s: current_stock=%s replayed=%s", product_id, cached, replayed
        )
    return {
        "product_id": product_id,
        "current_stock": str(cached),
        "replayed_stock": str(replayed),
        "consistent": consistent,
    }
