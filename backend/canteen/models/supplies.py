from __future__ import annotations

from ..extensions import db
from canteen.time_utils import to_utc_z, to_iso_date


class Supply(db.Model):
    """
    Goods sent from one canteen to another on one business day.

    One aggregate per (from_canteen, to_canteen, date); every submission on
    that day appends entries to it. Stock moves at the destination only.
    """
    __tablename__ = "supplies"
    __table_args__ = (
        db.UniqueConstraint("from_canteen_id", "to_canteen_id", "date", name="uq_supplies_from_to_date"),
        db.Index("ix_supplies_to_date", "to_canteen_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    from_canteen_id = db.Column(db.Integer, db.ForeignKey("canteens.id"), nullable=False, index=True)
    to_canteen_id = db.Column(db.Integer, db.ForeignKey("canteens.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False)

    from_canteen = db.relationship("Canteen", foreign_keys=[from_canteen_id])
    to_canteen = db.relationship("Canteen", foreign_keys=[to_canteen_id])
    items = db.relationship(
        "SupplyItem",
        backref="supply",
        lazy=True,
        order_by="SupplyItem.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Supply id={self.id} from={self.from_canteen_id} to={self.to_canteen_id} date={self.date}>"

    def involves(self, canteen_id: int | None) -> bool:
        return canteen_id is not None and canteen_id in (self.from_canteen_id, self.to_canteen_id)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "from_canteen_id": self.from_canteen_id,
            "to_canteen_id": self.to_canteen_id,
            "from_canteen_name": self.from_canteen.name if self.from_canteen else None,
            "to_canteen_name": self.to_canteen.name if self.to_canteen else None,
            "date": to_iso_date(self.date),
            "created_by_user_id": self.created_by_user_id,
            "is_locked": self.is_locked,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [entry.to_dict() for entry in self.items]
        return data


class SupplyItem(db.Model):
    """
    Append-only supply entry. Negative quantities are corrections.

    Repeated entries for the same item are kept side by side; the net
    quantity supplied is their sum.
    """
    __tablename__ = "supply_items"
    __table_args__ = (
        db.Index("ix_supply_items_supply_item", "supply_id", "item_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supply_id = db.Column(db.Integer, db.ForeignKey("supplies.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)

    item = db.relationship("Item")

    @property
    def total_price_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supply_id": self.supply_id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
