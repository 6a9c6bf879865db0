# Overview: Service-layer operations for supplies; append-only entries into a destination canteen's stock.

"""
Supply invariants (authoritative)

- One Supply per (from_canteen, to_canteen, business date); later submissions
  on the same day append entries to it.
- Entries are never edited. A correction is a new entry with a negative
  quantity, bounded by the destination's available stock.
- Only the destination canteen's stock moves (source SUPPLY), on the
  business day the entry is recorded.
- A locked supply accepts no changes (LockedSupply).
- Managers may only supply their own canteen.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime

from ..errors import Forbidden, InsufficientStock, InvalidInput, LockedSupply, NotFound
from ..extensions import db
from ..models import Supply, SupplyItem
from ..validation import SupplyLine, coerce_int, parse_supply_lines
from canteen.time_utils import business_date, utcnow
from . import canteen_service, stock_service
from .auth_service import AuthContext, require_admin, require_canteen_scope
from .concurrency import begin_write, lock_for_update, run_with_retry


def _ensure_not_locked(supply: Supply) -> None:
    if supply.is_locked:
        raise LockedSupply("Cannot modify locked supply", {"supply_id": supply.id})


def _require_destination(actor: AuthContext, supply: Supply) -> None:
    if actor.is_manager and actor.assigned_canteen_id != supply.to_canteen_id:
        raise Forbidden(
            "You can only update supplies for your assigned canteen",
            {"supply_id": supply.id, "to_canteen_id": supply.to_canteen_id},
        )


def _locked_supply(supply_id: int) -> Supply:
    supply = lock_for_update(db.session.query(Supply).filter_by(id=supply_id)).first()
    if supply is None:
        raise NotFound(f"Supply {supply_id} not found", {"supply_id": supply_id})
    return supply


def _check_available(canteen_id: int, item_id: int, quantity: int) -> None:
    available = stock_service.available_quantity(canteen_id, item_id)
    if available + quantity < 0:
        raise InsufficientStock(item_id=item_id, available=available, requested=-quantity)


def _append_entries(
    supply: Supply,
    lines: list[SupplyLine],
    actor: AuthContext,
    day: date,
    now: datetime,
) -> None:
    """Append one entry per line and move destination stock (no commit)."""
    for line in lines:
        stock_service.get_item(line.item_id)
        if line.quantity < 0:
            _check_available(supply.to_canteen_id, line.item_id, line.quantity)

        supply.items.append(
            SupplyItem(
                item_id=line.item_id,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                created_by_user_id=actor.actor_id,
                created_at=now,
            )
        )
        stock_service._apply_delta(
            supply.to_canteen_id,
            line.item_id,
            line.quantity,
            day,
            source=stock_service.SOURCE_SUPPLY,
            now=now,
        )

    supply.updated_at = now
    db.session.flush()


def create_supply(
    from_canteen_id,
    to_canteen_id,
    items,
    actor: AuthContext,
    now: datetime | None = None,
) -> Supply:
    """
    Record goods moved into to_canteen today.

    Raises NotFound, InvalidInput, Forbidden, LockedSupply, ItemNotFound or
    InsufficientStock. Nothing is written unless every line succeeds.
    """
    from_canteen_id = coerce_int(from_canteen_id, "from_canteen_id")
    to_canteen_id = coerce_int(to_canteen_id, "to_canteen_id")
    lines = parse_supply_lines(items)
    if now is None:
        now = utcnow()

    def _op():
        begin_write()
        canteen_service.get_canteen(from_canteen_id)
        canteen_service.get_canteen(to_canteen_id)
        if from_canteen_id == to_canteen_id:
            raise InvalidInput("A canteen cannot supply itself", {"canteen_id": to_canteen_id})
        require_canteen_scope(actor, to_canteen_id)

        day = business_date(now)
        supply = lock_for_update(
            db.session.query(Supply).filter_by(
                from_canteen_id=from_canteen_id,
                to_canteen_id=to_canteen_id,
                date=day,
            )
        ).first()

        if supply is None:
            supply = Supply(
                from_canteen_id=from_canteen_id,
                to_canteen_id=to_canteen_id,
                date=day,
                created_by_user_id=actor.actor_id,
                is_locked=False,
                created_at=now,
                updated_at=now,
            )
            db.session.add(supply)
        else:
            _ensure_not_locked(supply)

        _append_entries(supply, lines, actor, day, now)
        db.session.commit()
        return supply

    return run_with_retry(_op)


def update_supply(supply_id: int, items, actor: AuthContext, now: datetime | None = None) -> Supply:
    """Append entries to an existing supply."""
    lines = parse_supply_lines(items)
    if now is None:
        now = utcnow()

    def _op():
        begin_write()
        supply = _locked_supply(supply_id)
        _ensure_not_locked(supply)
        _require_destination(actor, supply)

        _append_entries(supply, lines, actor, business_date(now), now)
        db.session.commit()
        return supply

    return run_with_retry(_op)


def remove_supply_item(
    supply_id: int,
    item_id: int,
    actor: AuthContext,
    now: datetime | None = None,
) -> Supply | None:
    """
    Drop every entry for one item and reverse its net quantity.

    Returns the supply, or None when it had no entries left and was deleted.
    """
    if now is None:
        now = utcnow()

    def _op():
        begin_write()
        supply = _locked_supply(supply_id)
        _ensure_not_locked(supply)
        _require_destination(actor, supply)

        entries = [entry for entry in supply.items if entry.item_id == item_id]
        if not entries:
            raise NotFound("Supply item not found", {"supply_id": supply_id, "item_id": item_id})

        reversal = -sum(entry.quantity for entry in entries)
        if reversal:
            if reversal < 0:
                _check_available(supply.to_canteen_id, item_id, reversal)
            stock_service._apply_delta(
                supply.to_canteen_id,
                item_id,
                reversal,
                business_date(now),
                source=stock_service.SOURCE_SUPPLY_REMOVAL,
                enforce_available=False,
                now=now,
            )

        for entry in entries:
            supply.items.remove(entry)
        supply.updated_at = now

        if not supply.items:
            db.session.delete(supply)
            db.session.commit()
            return None

        db.session.commit()
        return supply

    return run_with_retry(_op)


def set_supply_lock(supply_id: int, locked: bool, actor: AuthContext) -> Supply:
    require_admin(actor, "lock supplies")

    def _op():
        begin_write()
        supply = _locked_supply(supply_id)
        supply.is_locked = bool(locked)
        supply.updated_at = utcnow()
        db.session.commit()
        return supply

    return run_with_retry(_op)


def get_supply(supply_id: int, actor: AuthContext) -> Supply:
    supply = db.session.get(Supply, supply_id)
    if supply is None:
        raise NotFound(f"Supply {supply_id} not found", {"supply_id": supply_id})
    if actor.is_manager and not supply.involves(actor.assigned_canteen_id):
        raise Forbidden("You can only view supplies involving your canteen", {"supply_id": supply_id})
    return supply


def list_supplies(actor: AuthContext, day: date | None = None) -> list[Supply]:
    query = db.session.query(Supply)
    if actor.is_manager:
        query = query.filter(
            db.or_(
                Supply.from_canteen_id == actor.assigned_canteen_id,
                Supply.to_canteen_id == actor.assigned_canteen_id,
            )
        )
    if day is not None:
        query = query.filter(Supply.date == day)
    return query.order_by(Supply.date.desc(), Supply.id.desc()).all()


def list_supplies_from(canteen_id: int, actor: AuthContext) -> list[Supply]:
    require_canteen_scope(actor, canteen_id)
    return (
        db.session.query(Supply)
        .filter(Supply.from_canteen_id == canteen_id)
        .order_by(Supply.date.desc(), Supply.id.desc())
        .all()
    )


def list_supplies_to(canteen_id: int, actor: AuthContext) -> list[Supply]:
    require_canteen_scope(actor, canteen_id)
    return (
        db.session.query(Supply)
        .filter(Supply.to_canteen_id == canteen_id)
        .order_by(Supply.date.desc(), Supply.id.desc())
        .all()
    )


def supplies_for_item_in_month(
    canteen_id: int,
    item_id: int,
    year: int,
    month: int,
    actor: AuthContext,
) -> list[dict]:
    """Supplies received by a canteen in one month, each with only that item's entries."""
    if not 1 <= month <= 12:
        raise InvalidInput("month must be between 1 and 12", {"field": "month"})
    if not 1 <= year <= 9999:
        raise InvalidInput("year is out of range", {"field": "year"})
    require_canteen_scope(actor, canteen_id)

    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])

    supplies = (
        db.session.query(Supply)
        .join(SupplyItem, SupplyItem.supply_id == Supply.id)
        .filter(
            Supply.to_canteen_id == canteen_id,
            Supply.date >= start,
            Supply.date <= end,
            SupplyItem.item_id == item_id,
        )
        .distinct()
        .order_by(Supply.date.desc(), Supply.id.desc())
        .all()
    )

    result = []
    for supply in supplies:
        data = supply.to_dict(include_items=False)
        data["items"] = [entry.to_dict() for entry in supply.items if entry.item_id == item_id]
        result.append(data)
    return result
