from __future__ import annotations

from ..extensions import db
from canteen.time_utils import to_utc_z


# How selling an item moves its stock.
STOCK_EFFECT_DECREASES = "decreases"
STOCK_EFFECT_INCREASES = "increases"  # crate/container returns
STOCK_EFFECTS = (STOCK_EFFECT_DECREASES, STOCK_EFFECT_INCREASES)


class Item(db.Model):
    """
    Catalog item sold and stocked by canteens.

    stock_effect decides the direction of a sale: ordinary items leave stock
    when sold, "increases" items (returns) come back into stock.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=False)
    unit = db.Column(db.String(32), nullable=False)

    # Authoritative storage in cents
    mrp_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_effect = db.Column(db.String(16), nullable=False, default=STOCK_EFFECT_DECREASES)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} stock_effect={self.stock_effect}>"

    @property
    def increases_on_sale(self) -> bool:
        return self.stock_effect == STOCK_EFFECT_INCREASES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "unit": self.unit,
            "mrp_cents": self.mrp_cents,
            "stock_effect": self.stock_effect,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
