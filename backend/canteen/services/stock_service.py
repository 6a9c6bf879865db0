# Overview: Service-layer operations for stock; owns every write to Stock and StockHistory.

"""
Stock ledger invariants (authoritative)

Current quantity:
- Stock holds one mutable quantity per (canteen, item), created lazily at 0.
- Every change goes through _apply_delta(); nothing else writes Stock.quantity.
- version_id guards the read-modify-write; a lost race surfaces as
  StaleDataError and the caller's run_with_retry starts over.

Daily history:
- One StockHistory row per (canteen, item, business date).
- opening_stock is the quantity before the first mutation of the day and is
  never recomputed; closing_stock always equals the live quantity.
- SUPPLY / ADJUSTMENT deltas: positive -> received_stock, negative -> sold_stock.
- SALE deltas net into the item's own counter so editing a sale rewrites the
  day's figure instead of inflating both counters:
    decreases items: sold_stock -= delta
    increases items: received_stock += delta
- SUPPLY_REMOVAL deltas (a supply item taken back out) always net into
  received_stock, so the day reads as if the entries were never received.
- Manual corrections (set_quantity) also accumulate adjusted_stock and the
  "; "-joined adjustment_description.

Transactions:
- _inner functions never commit. Public functions open the write
  transaction, call the inner function and commit, all under run_with_retry.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from ..errors import InsufficientStock, InvalidInput, ItemNotFound, NotFound, StockNotFound
from ..extensions import db
from ..models import Canteen, Item, Stock, StockHistory
from canteen.time_utils import business_date, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry


SOURCE_SALE = "SALE"
SOURCE_SUPPLY = "SUPPLY"
SOURCE_ADJUSTMENT = "ADJUSTMENT"
SOURCE_SUPPLY_REMOVAL = "SUPPLY_REMOVAL"
SOURCES = (SOURCE_SALE, SOURCE_SUPPLY, SOURCE_ADJUSTMENT, SOURCE_SUPPLY_REMOVAL)

DEFAULT_HISTORY_DAYS = 30


def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise ItemNotFound(item_id)
    return item


def get_canteen(canteen_id: int) -> Canteen:
    canteen = db.session.get(Canteen, canteen_id)
    if canteen is None:
        raise NotFound(f"Canteen {canteen_id} not found", {"canteen_id": canteen_id})
    return canteen


def _locked_stock(canteen_id: int, item_id: int) -> Stock | None:
    query = db.session.query(Stock).filter_by(canteen_id=canteen_id, item_id=item_id)
    return lock_for_update(query).first()


def _history_row(
    canteen_id: int,
    item_id: int,
    day: date,
    quantity_before: int,
    now: datetime,
) -> StockHistory:
    history = lock_for_update(
        db.session.query(StockHistory).filter_by(canteen_id=canteen_id, item_id=item_id, date=day)
    ).first()
    if history is None:
        history = StockHistory(
            canteen_id=canteen_id,
            item_id=item_id,
            date=day,
            opening_stock=quantity_before,
            received_stock=0,
            sold_stock=0,
            closing_stock=quantity_before,
            adjusted_stock=0,
            created_at=now,
            updated_at=now,
        )
        db.session.add(history)
    return history


def _apply_delta(
    canteen_id: int,
    item_id: int,
    delta: int,
    day: date,
    *,
    source: str,
    enforce_available: bool = True,
    require_existing: bool = False,
    now: datetime | None = None,
) -> tuple[Stock, StockHistory]:
    """
    Move one item's stock at one canteen by a signed delta (no commit).

    Raises StockNotFound when require_existing is set and no Stock row exists,
    and InsufficientStock when a decreasing item would drop below zero.
    """
    if source not in SOURCES:
        raise ValueError(f"unknown stock source: {source}")
    if now is None:
        now = utcnow()

    item = get_item(item_id)

    stock = _locked_stock(canteen_id, item_id)
    if stock is None:
        if require_existing:
            raise StockNotFound(item_id)
        stock = Stock(canteen_id=canteen_id, item_id=item_id, quantity=0, updated_at=now)
        db.session.add(stock)

    quantity_before = stock.quantity or 0
    quantity_after = quantity_before + delta

    if delta < 0 and enforce_available and not item.increases_on_sale and quantity_after < 0:
        raise InsufficientStock(item_id=item_id, available=quantity_before, requested=-delta)

    stock.quantity = quantity_after
    stock.updated_at = now

    history = _history_row(canteen_id, item_id, day, quantity_before, now)

    if source == SOURCE_SUPPLY_REMOVAL:
        history.received_stock = (history.received_stock or 0) + delta
    elif source == SOURCE_SALE:
        if item.increases_on_sale:
            history.received_stock = (history.received_stock or 0) + delta
        else:
            history.sold_stock = (history.sold_stock or 0) - delta
    elif delta > 0:
        history.received_stock = (history.received_stock or 0) + delta
    elif delta < 0:
        history.sold_stock = (history.sold_stock or 0) - delta

    history.closing_stock = quantity_after
    history.updated_at = now

    db.session.flush()
    return stock, history


def apply_delta(
    canteen_id: int,
    item_id: int,
    delta: int,
    day: date | None = None,
    *,
    source: str = SOURCE_ADJUSTMENT,
    enforce_available: bool = True,
    require_existing: bool = False,
    now: datetime | None = None,
) -> tuple[Stock, StockHistory]:
    """Apply a signed stock delta in its own transaction."""
    if now is None:
        now = utcnow()
    if day is None:
        day = business_date(now)

    def _op():
        begin_write()
        result = _apply_delta(
            canteen_id,
            item_id,
            delta,
            day,
            source=source,
            enforce_available=enforce_available,
            require_existing=require_existing,
            now=now,
        )
        db.session.commit()
        return result

    return run_with_retry(_op)


def _set_quantity_inner(
    canteen_id: int,
    item_id: int,
    quantity: int,
    description: str | None,
    day: date,
    now: datetime,
) -> tuple[Stock, StockHistory]:
    stock = _locked_stock(canteen_id, item_id)
    current = stock.quantity if stock is not None else 0
    delta = quantity - current

    stock, history = _apply_delta(
        canteen_id,
        item_id,
        delta,
        day,
        source=SOURCE_ADJUSTMENT,
        enforce_available=False,
        now=now,
    )

    history.adjusted_stock = (history.adjusted_stock or 0) + delta
    if description:
        if history.adjustment_description:
            history.adjustment_description = f"{history.adjustment_description}; {description}"
        else:
            history.adjustment_description = description

    db.session.flush()
    return stock, history


def set_quantity(
    canteen_id: int,
    item_id: int,
    quantity,
    description: str | None = None,
    day: date | None = None,
    now: datetime | None = None,
) -> tuple[Stock, StockHistory]:
    """
    Overwrite the on-hand quantity (manual stock correction).

    The difference is booked like any other movement and also accumulated in
    adjusted_stock. Availability is never checked.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInput("quantity must be an integer", {"field": "quantity"})
    if quantity < 0:
        raise InvalidInput("quantity must be >= 0", {"field": "quantity"})
    if description is not None:
        description = str(description).strip() or None

    if now is None:
        now = utcnow()
    if day is None:
        day = business_date(now)

    def _op():
        begin_write()
        get_canteen(canteen_id)
        get_item(item_id)
        result = _set_quantity_inner(canteen_id, item_id, quantity, description, day, now)
        db.session.commit()
        return result

    return run_with_retry(_op)


def get_stock(canteen_id: int, item_id: int) -> Stock | None:
    return db.session.query(Stock).filter_by(canteen_id=canteen_id, item_id=item_id).first()


def available_quantity(canteen_id: int, item_id: int) -> int:
    stock = get_stock(canteen_id, item_id)
    return stock.quantity if stock is not None else 0


def list_canteen_stock(canteen_id: int) -> list[Stock]:
    get_canteen(canteen_id)
    return (
        db.session.query(Stock)
        .join(Item, Item.id == Stock.item_id)
        .filter(Stock.canteen_id == canteen_id)
        .order_by(Item.name.asc(), Stock.id.asc())
        .all()
    )


def get_stock_history(
    canteen_id: int,
    item_id: int | None = None,
    days: int = DEFAULT_HISTORY_DAYS,
    today: date | None = None,
) -> list[StockHistory]:
    """History rows of the last `days` business days, oldest first."""
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise InvalidInput("days must be a non-negative integer", {"field": "days"})
    get_canteen(canteen_id)
    if today is None:
        today = business_date()

    query = db.session.query(StockHistory).filter(
        StockHistory.canteen_id == canteen_id,
        StockHistory.date >= today - timedelta(days=days),
    )
    if item_id is not None:
        query = query.filter(StockHistory.item_id == item_id)
    return query.order_by(StockHistory.date.asc(), StockHistory.item_id.asc()).all()
