# Overview: Service-layer operations for sales; one sale per canteen per business day.

"""
Daily sale invariants (authoritative)

Lifecycle per (canteen, business day):
    {no sale} --create--> {draft} --update*--> {draft} --verify--> {verified}
- A verified sale rejects further line edits (AlreadyVerified).
- Once the business day rolls over the sale is frozen (update_sale: Forbidden).
- A canteen locked during the sale's business day accepts no sale mutation
  (CanteenLocked). Locks from earlier business days do not block.

Money (integer cents):
- total = sum(quantity * unit_price) + previous_day_adjustment
- |cash + online + other - total| <= PAYMENT_TOLERANCE_CENTS
- previous_day_adjustment is fixed when the sale is created. It comes from the
  request if supplied, otherwise from yesterday's verified next_day_adjustment.

Stock:
- Each line moves stock by the change in its quantity (decreases items go
  down, increases items go up). Lines left out of a resubmission are
  reversed and deleted.
- Sale rows, sale lines, Stock and StockHistory are written in one
  transaction; any failure rolls everything back.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, timedelta

from sqlalchemy import func

from ..errors import AlreadyVerified, Forbidden, InvalidInput, NotFound, PaymentMismatch
from ..extensions import db
from ..models import Sale, SaleItem
from ..models.sales import payment_tolerance_cents
from ..validation import SaleLine, coerce_cents, parse_sale_lines
from canteen.time_utils import business_date, utcnow
from . import canteen_service, stock_service
from .auth_service import AuthContext, require_canteen_scope
from .concurrency import begin_write, lock_for_update, run_with_retry


def _parse_payments(cash_cents, online_cents, other_cents) -> tuple[int, int, int]:
    return (
        coerce_cents(cash_cents, "cash_cents"),
        coerce_cents(online_cents, "online_cents"),
        coerce_cents(other_cents, "other_cents"),
    )


def _check_payments(
    lines: list[SaleLine],
    adjustment: int,
    payments: tuple[int, int, int],
) -> int:
    """Return the sale total or raise PaymentMismatch."""
    items_total = sum(line.total_price_cents for line in lines)
    total = items_total + adjustment
    provided = sum(payments)
    if abs(provided - total) > payment_tolerance_cents():
        raise PaymentMismatch(
            expected=total,
            provided=provided,
            items_total=items_total,
            previous_day_adjustment=adjustment,
        )
    return total


def _find_sale(canteen_id: int, day: date, *, lock: bool = False) -> Sale | None:
    query = db.session.query(Sale).filter_by(canteen_id=canteen_id, date=day)
    if lock:
        query = lock_for_update(query)
    return query.first()


def _carried_adjustment(canteen_id: int, day: date) -> tuple[int, str | None]:
    """Yesterday's verified next-day adjustment, or (0, None)."""
    yesterday = _find_sale(canteen_id, day - timedelta(days=1))
    if yesterday is not None and yesterday.next_day_adjustment_cents:
        return yesterday.next_day_adjustment_cents, yesterday.next_day_reason
    return 0, None


def _stock_delta(item, quantity_diff: int) -> int:
    return quantity_diff if item.increases_on_sale else -quantity_diff


def _apply_lines(sale: Sale, lines: list[SaleLine], now: datetime) -> None:
    """Upsert sale lines and move stock by each line's quantity change (no commit)."""
    existing = {line.item_id: line for line in sale.items}

    for parsed in lines:
        item = stock_service.get_item(parsed.item_id)
        line = existing.pop(parsed.item_id, None)
        previous_quantity = line.quantity if line is not None else 0

        if line is None:
            line = SaleItem(
                item_id=parsed.item_id,
                quantity=parsed.quantity,
                unit_price_cents=parsed.unit_price_cents,
                total_price_cents=parsed.total_price_cents,
                created_at=now,
            )
            sale.items.append(line)
        else:
            line.quantity = parsed.quantity
            line.unit_price_cents = parsed.unit_price_cents
            line.total_price_cents = parsed.total_price_cents

        diff = parsed.quantity - previous_quantity
        if diff:
            stock_service._apply_delta(
                sale.canteen_id,
                parsed.item_id,
                _stock_delta(item, diff),
                sale.date,
                source=stock_service.SOURCE_SALE,
                require_existing=True,
                now=now,
            )

    # Lines missing from this submission are reversed and dropped
    for line in existing.values():
        item = stock_service.get_item(line.item_id)
        if line.quantity:
            stock_service._apply_delta(
                sale.canteen_id,
                line.item_id,
                _stock_delta(item, -line.quantity),
                sale.date,
                source=stock_service.SOURCE_SALE,
                enforce_available=False,
                now=now,
            )
        sale.items.remove(line)

    db.session.flush()


def _set_payments(sale: Sale, total: int, payments: tuple[int, int, int], now: datetime) -> None:
    sale.total_cents = total
    sale.cash_cents, sale.online_cents, sale.other_cents = payments
    sale.updated_at = now


def create_or_update_sale(
    canteen_id: int,
    items,
    cash_cents=0,
    online_cents=0,
    other_cents=0,
    description: str | None = None,
    previous_day_adjustment_cents=None,
    previous_day_reason: str | None = None,
    *,
    actor: AuthContext,
    now: datetime | None = None,
) -> Sale:
    """
    Record today's sale for a canteen, creating it or replacing its lines.

    Raises Forbidden, NotFound, CanteenLocked, AlreadyVerified, InvalidInput,
    PaymentMismatch, ItemNotFound, StockNotFound or InsufficientStock. Nothing
    is written unless the whole submission succeeds.
    """
    require_canteen_scope(actor, canteen_id)

    lines = parse_sale_lines(items)
    payments = _parse_payments(cash_cents, online_cents, other_cents)
    explicit_adjustment = None
    if previous_day_adjustment_cents is not None:
        explicit_adjustment = coerce_cents(
            previous_day_adjustment_cents, "previous_day_adjustment_cents", allow_negative=True
        )
    if description is not None:
        description = str(description).strip() or None
    if now is None:
        now = utcnow()

    def _op():
        begin_write()
        day = business_date(now)
        canteen = canteen_service.get_canteen(canteen_id, lock=True)
        canteen_service.ensure_unlocked(canteen, day)

        sale = _find_sale(canteen_id, day, lock=True)

        reason = None
        if sale is not None:
            if sale.is_verified:
                raise AlreadyVerified("Sale already verified", {"sale_id": sale.id})
            adjustment = sale.previous_day_adjustment_cents or 0
        elif explicit_adjustment is not None:
            adjustment = explicit_adjustment
            reason = (previous_day_reason or "").strip() or None
        else:
            adjustment, reason = _carried_adjustment(canteen_id, day)

        total = _check_payments(lines, adjustment, payments)

        if sale is None:
            sale = Sale(
                canteen_id=canteen_id,
                date=day,
                description=description,
                previous_day_adjustment_cents=adjustment,
                previous_day_reason=reason,
                created_by_user_id=actor.actor_id,
                created_at=now,
            )
            _set_payments(sale, total, payments, now)
            db.session.add(sale)
        else:
            _set_payments(sale, total, payments, now)
            if description:
                sale.description = description

        _apply_lines(sale, lines, now)
        db.session.commit()
        return sale

    return run_with_retry(_op)


def update_sale(
    sale_id: int,
    items,
    cash_cents=0,
    online_cents=0,
    other_cents=0,
    description: str | None = None,
    *,
    actor: AuthContext,
    now: datetime | None = None,
) -> Sale:
    """
    Replace the lines and payments of today's sale.

    The stored previous-day adjustment is kept. Only the current business
    day's sale can be edited.
    """
    lines = parse_sale_lines(items)
    payments = _parse_payments(cash_cents, online_cents, other_cents)
    if now is None:
        now = utcnow()

    def _op():
        begin_write()
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise NotFound(f"Sale {sale_id} not found", {"sale_id": sale_id})

        require_canteen_scope(actor, sale.canteen_id)

        today = business_date(now)
        if sale.date != today:
            raise Forbidden(
                "You can only edit sales for today",
                {"sale_date": sale.date.isoformat(), "business_date": today.isoformat()},
            )

        canteen_service.ensure_unlocked(canteen_service.get_canteen(sale.canteen_id, lock=True), today)
        if sale.is_verified:
            raise AlreadyVerified("Sale already verified", {"sale_id": sale.id})

        total = _check_payments(lines, sale.previous_day_adjustment_cents or 0, payments)
        _set_payments(sale, total, payments, now)
        if description is not None:
            sale.description = str(description).strip() or None

        _apply_lines(sale, lines, now)
        db.session.commit()
        return sale

    return run_with_retry(_op)


def get_sale(sale_id: int, actor: AuthContext) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFound(f"Sale {sale_id} not found", {"sale_id": sale_id})
    require_canteen_scope(actor, sale.canteen_id)
    return sale


def _scoped_canteen(actor: AuthContext, canteen_id: int | None) -> int | None:
    if canteen_id is not None:
        require_canteen_scope(actor, canteen_id)
        return canteen_id
    if actor.is_manager:
        return actor.assigned_canteen_id
    return None


def list_sales(actor: AuthContext, canteen_id: int | None = None, day: date | None = None) -> list[Sale]:
    """Sales newest first. Managers only ever see their own canteen."""
    canteen_id = _scoped_canteen(actor, canteen_id)
    query = db.session.query(Sale)
    if canteen_id is not None:
        query = query.filter(Sale.canteen_id == canteen_id)
    if day is not None:
        query = query.filter(Sale.date == day)
    return query.order_by(Sale.date.desc(), Sale.id.desc()).all()


def sales_summary_by_date_range(
    start: date,
    end: date,
    actor: AuthContext,
    canteen_id: int | None = None,
) -> list[dict]:
    """Per-date totals (inclusive range), oldest first."""
    if start > end:
        raise InvalidInput("start_date must not be after end_date", {"start_date": start.isoformat()})
    canteen_id = _scoped_canteen(actor, canteen_id)

    query = db.session.query(Sale).filter(Sale.date >= start, Sale.date <= end)
    if canteen_id is not None:
        query = query.filter(Sale.canteen_id == canteen_id)
    sales = query.order_by(Sale.date.asc(), Sale.id.asc()).all()

    quantities = {}
    if sales:
        rows = (
            db.session.query(SaleItem.sale_id, func.coalesce(func.sum(SaleItem.quantity), 0))
            .filter(SaleItem.sale_id.in_([sale.id for sale in sales]))
            .group_by(SaleItem.sale_id)
            .all()
        )
        quantities = {sale_id: int(total or 0) for sale_id, total in rows}

    by_date: "OrderedDict[date, dict]" = OrderedDict()
    for sale in sales:
        bucket = by_date.get(sale.date)
        if bucket is None:
            bucket = by_date[sale.date] = {
                "date": sale.date.isoformat(),
                "total_cents": 0,
                "cash_cents": 0,
                "online_cents": 0,
                "other_cents": 0,
                "sales_count": 0,
                "total_items": 0,
            }
        bucket["total_cents"] += sale.total_cents or 0
        bucket["cash_cents"] += sale.cash_cents or 0
        bucket["online_cents"] += sale.online_cents or 0
        bucket["other_cents"] += sale.other_cents or 0
        bucket["sales_count"] += 1
        bucket["total_items"] += quantities.get(sale.id, 0)

    return list(by_date.values())
