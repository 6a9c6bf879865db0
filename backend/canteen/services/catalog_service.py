# Overview: Service-layer operations for the item catalog (seeding and lookups).

from __future__ import annotations

from ..errors import InvalidInput
from ..extensions import db
from ..models import Item
from ..models.catalog import STOCK_EFFECT_DECREASES, STOCK_EFFECTS
from ..validation import coerce_cents


def create_item(
    name: str,
    category: str,
    unit: str,
    mrp_cents=0,
    stock_effect: str = STOCK_EFFECT_DECREASES,
    description: str | None = None,
) -> Item:
    name = (name or "").strip()
    if not name:
        raise InvalidInput("name is required", {"field": "name"})
    if stock_effect not in STOCK_EFFECTS:
        raise InvalidInput(
            f"stock_effect must be one of {', '.join(STOCK_EFFECTS)}", {"field": "stock_effect"}
        )

    item = Item(
        name=name,
        category=(category or "").strip() or "General",
        unit=(unit or "").strip() or "pcs",
        mrp_cents=coerce_cents(mrp_cents, "mrp_cents"),
        stock_effect=stock_effect,
        description=description,
        is_active=True,
    )
    db.session.add(item)
    db.session.commit()
    return item


def list_items(include_inactive: bool = False) -> list[Item]:
    query = db.session.query(Item)
    if not include_inactive:
        query = query.filter(Item.is_active.is_(True))
    return query.order_by(Item.name.asc(), Item.id.asc()).all()
