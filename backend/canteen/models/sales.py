from __future__ import annotations

from flask import current_app, has_app_context
from sqlalchemy import event

from ..extensions import db
from canteen.time_utils import to_utc_z, to_iso_date


def payment_tolerance_cents() -> int:
    if has_app_context():
        return current_app.config.get("PAYMENT_TOLERANCE_CENTS", 1)
    return 1


class Sale(db.Model):
    """
    The single daily sale of a canteen (one row per canteen per business day).

    All amounts are integer cents.

    INVARIANTS:
    - cash + online + other == total (within PAYMENT_TOLERANCE_CENTS), checked on every flush.
    - total == sum(line totals) + previous_day_adjustment.
    - previous_day_adjustment is fixed when the sale is created.
    - next_day_adjustment / verified_by / verified_at are written by verification only.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("canteen_id", "date", name="uq_sales_canteen_date"),
        db.Index("ix_sales_date", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    canteen_id = db.Column(db.Integer, db.ForeignKey("canteens.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_cents = db.Column(db.Integer, nullable=False, default=0)
    online_cents = db.Column(db.Integer, nullable=False, default=0)
    other_cents = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(500), nullable=True)

    # Carried in from the previous business day's verification
    previous_day_adjustment_cents = db.Column(db.Integer, nullable=False, default=0)
    previous_day_reason = db.Column(db.String(500), nullable=True)

    # Carried out to the next business day (set by verification)
    next_day_adjustment_cents = db.Column(db.Integer, nullable=True)
    next_day_reason = db.Column(db.String(500), nullable=True)
    verified_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    verified_at = db.Column(db.DateTime, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False)

    canteen = db.relationship("Canteen", backref=db.backref("sales", lazy=True))
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    verified_by = db.relationship("User", foreign_keys=[verified_by_user_id])
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} canteen_id={self.canteen_id} date={self.date} total_cents={self.total_cents}>"

    @property
    def is_verified(self) -> bool:
        return self.verified_by_user_id is not None

    @property
    def payments_cents(self) -> int:
        return (self.cash_cents or 0) + (self.online_cents or 0) + (self.other_cents or 0)

    def check_payment_split(self) -> None:
        if abs(self.payments_cents - (self.total_cents or 0)) > payment_tolerance_cents():
            raise ValueError("cash + online + other must equal total amount")

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "canteen_id": self.canteen_id,
            "date": to_iso_date(self.date),
            "total_cents": self.total_cents,
            "cash_cents": self.cash_cents,
            "online_cents": self.online_cents,
            "other_cents": self.other_cents,
            "description": self.description,
            "previous_day_adjustment_cents": self.previous_day_adjustment_cents,
            "previous_day_reason": self.previous_day_reason,
            "next_day_adjustment_cents": self.next_day_adjustment_cents,
            "next_day_reason": self.next_day_reason,
            "verified_by_user_id": self.verified_by_user_id,
            "verified_at": to_utc_z(self.verified_at),
            "is_verified": self.is_verified,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


@event.listens_for(Sale, "before_insert")
@event.listens_for(Sale, "before_update")
def _validate_sale_payment_split(mapper, connection, target: Sale) -> None:
    target.check_payment_split()


class SaleItem(db.Model):
    """One line per item per sale; resubmitting an item replaces its line."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "item_id", name="uq_sale_items_sale_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, nullable=False)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "created_at": to_utc_z(self.created_at),
        }
