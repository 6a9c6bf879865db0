# Overview: Service-layer operations for sale verification; next-day adjustment and canteen lock.

"""
Verification is the admin sign-off on a day's sale.

- verify_sale is single-use: a verified sale fails AlreadyVerified.
- update_verification revises the adjustment of the current business day's
  sale only, verified or not.
- Both set next_day_adjustment / next_day_reason / verified_by / verified_at
  and lock the sale's canteen with "Sale verified by <username>" in the same
  transaction. Tomorrow's first sale inherits next_day_adjustment as its
  previous_day_adjustment.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..errors import AlreadyVerified, Forbidden, InvalidInput, NotFound
from ..extensions import db
from ..models import Sale
from ..validation import MAX_AMOUNT_CENTS, require_reason
from canteen.time_utils import business_date, utcnow
from . import canteen_service
from .auth_service import AuthContext, require_admin
from .concurrency import begin_write, lock_for_update, run_with_retry


def _parse_adjustment(adjustment_cents) -> int:
    # Numbers only: strings and bools are rejected
    if isinstance(adjustment_cents, bool) or not isinstance(adjustment_cents, int):
        raise InvalidInput("Adjustment amount must be an integer number of cents", {"field": "adjustment_cents"})
    if abs(adjustment_cents) > MAX_AMOUNT_CENTS:
        raise InvalidInput("Adjustment amount is too large", {"field": "adjustment_cents"})
    return adjustment_cents


def _locked_sale(sale_id: int) -> Sale:
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if sale is None:
        raise NotFound(f"Sale {sale_id} not found", {"sale_id": sale_id})
    return sale


def _record_verification(sale: Sale, adjustment: int, reason: str, actor: AuthContext, now: datetime) -> None:
    sale.next_day_adjustment_cents = adjustment
    sale.next_day_reason = reason
    sale.verified_by_user_id = actor.actor_id
    sale.verified_at = now
    sale.updated_at = now

    canteen = canteen_service.get_canteen(sale.canteen_id, lock=True)
    canteen_service._lock_for_sale_verification(canteen, actor, now)


def verify_sale(
    sale_id: int,
    adjustment_cents,
    reason,
    actor: AuthContext,
    now: datetime | None = None,
) -> Sale:
    require_admin(actor, "verify sales")
    if now is None:
        now = utcnow()

    def _op():
        begin_write()
        sale = _locked_sale(sale_id)
        if sale.is_verified:
            raise AlreadyVerified("Sale already verified", {"sale_id": sale.id})
        adjustment = _parse_adjustment(adjustment_cents)
        cleaned_reason = require_reason(reason)

        _record_verification(sale, adjustment, cleaned_reason, actor, now)
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Sale %s verified by user %s (next day adjustment %s cents)",
        sale.id, actor.actor_id, sale.next_day_adjustment_cents,
    )
    return sale


def update_verification(
    sale_id: int,
    adjustment_cents,
    reason,
    actor: AuthContext,
    now: datetime | None = None,
) -> Sale:
    """Revise today's verification; also verifies a sale that was never verified."""
    require_admin(actor, "update verification")
    if now is None:
        now = utcnow()

    def _op():
        begin_write()
        sale = _locked_sale(sale_id)
        today = business_date(now)
        if sale.date != today:
            raise Forbidden(
                "You can only update verification for today's sale",
                {"sale_date": sale.date.isoformat(), "business_date": today.isoformat()},
            )
        adjustment = _parse_adjustment(adjustment_cents)
        cleaned_reason = require_reason(reason)

        _record_verification(sale, adjustment, cleaned_reason, actor, now)
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Verification of sale %s updated by user %s (next day adjustment %s cents)",
        sale.id, actor.actor_id, sale.next_day_adjustment_cents,
    )
    return sale
