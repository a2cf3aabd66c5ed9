from __future__ import annotations

from ..extensions import db
from .base import Money, Quantity, RecordMixin, SyncMixin, TimestampMixin, new_id


class Product(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """
    Spare parts and consumables.

    current_stock is a denormalized convenience. The stock_transactions log is
    the source of truth; every append to it updates current_stock inside the
    same transaction.
    """
    __tablename__ = "products"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="pcs")
    hsn_code = db.Column(db.String(16), nullable=True)
    rate = Money()
    purchase_rate = Money()
    current_stock = Quantity()
    reorder_level = db.Column(db.Numeric(14, 3), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id!r} sku={self.sku!r} stock={self.current_stock}>"


class StockTransaction(RecordMixin, SyncMixin, TimestampMixin, db.Model):
    """
    Append-only stock movement.

    quantity is SIGNED (positive = in, negative = out). movement_type mirrors
    the sign so rows stay readable by consumers of the older unsigned layout.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stock_transactions_product_date", "product_id", "entry_date"),
        db.Index("ix_stock_transactions_reference", "reference_type", "reference_id"),
    )

    # Integer key: insertion order is the replay tie-break.
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    movement_type = db.Column(db.String(8), nullable=False)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(36), nullable=True)
    entry_date = db.Column(db.Date, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<StockTransaction id={self.id} product_id={self.product_id!r} quantity={self.quantity}>"
