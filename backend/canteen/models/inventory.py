from __future__ import annotations

from ..extensions import db
from canteen.time_utils import to_utc_z, to_iso_date


class Stock(db.Model):
    """
    Current on-hand quantity of one item at one canteen.

    Mutated only through services/stock_service.py. version_id is the
    optimistic lock: a concurrent writer that read an older version fails
    with StaleDataError and is retried.
    """
    __tablename__ = "stocks"
    __table_args__ = (
        db.UniqueConstraint("canteen_id", "item_id", name="uq_stocks_canteen_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    canteen_id = db.Column(db.Integer, db.ForeignKey("canteens.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime, nullable=False)

    canteen = db.relationship("Canteen", backref=db.backref("stocks", lazy=True))
    item = db.relationship("Item")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Stock canteen_id={self.canteen_id} item_id={self.item_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "canteen_id": self.canteen_id,
            "item_id": self.item_id,
            "item": self.item.to_dict() if self.item else None,
            "quantity": self.quantity,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockHistory(db.Model):
    """
    Daily ledger row per (canteen, item, business date).

    INVARIANTS:
    - Exactly one row per (canteen_id, item_id, date).
    - opening_stock is the quantity before the day's first mutation; never recomputed.
    - closing_stock equals Stock.quantity after the day's latest mutation.
    - adjusted_stock / adjustment_description only move on manual corrections.
    """
    __tablename__ = "stock_history"
    __table_args__ = (
        db.UniqueConstraint("canteen_id", "item_id", "date", name="uq_stock_history_canteen_item_date"),
        db.Index("ix_stock_history_canteen_date", "canteen_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    canteen_id = db.Column(db.Integer, db.ForeignKey("canteens.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)

    opening_stock = db.Column(db.Integer, nullable=False)
    received_stock = db.Column(db.Integer, nullable=False, default=0)
    sold_stock = db.Column(db.Integer, nullable=False, default=0)
    closing_stock = db.Column(db.Integer, nullable=False)
    adjusted_stock = db.Column(db.Integer, nullable=False, default=0)
    adjustment_description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "canteen_id": self.canteen_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "unit": self.item.unit if self.item else None,
            "date": to_iso_date(self.date),
            "opening_stock": self.opening_stock,
            "received_stock": self.received_stock,
            "sold_stock": self.sold_stock,
            "closing_stock": self.closing_stock,
            "adjusted_stock": self.adjusted_stock,
            "adjustment_description": self.adjustment_description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
