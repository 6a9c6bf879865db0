# Overview: Service-layer operations for canteens; lock state and the daily auto-unlock sweep.

"""
Canteen lock state machine.

    {unlocked} --lock--> {locked} --unlock / auto-unlock--> {unlocked}

- Manual lock fails AlreadyLocked on a locked canteen.
- A verification lock never fails: it appends to an existing lock reason or
  locks fresh.
- Unlock fails NotLocked on an unlocked canteen.
- The auto-unlock sweep clears every lock taken before local midnight of the
  current calendar day (no business-day shift). Nothing on the read path
  changes lock state.
- Sales only honour a lock taken during their own business day, so a lock
  the sweep has not reached yet never blocks the next business day.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app

from ..errors import AlreadyLocked, CanteenLocked, InvalidInput, NotFound, NotLocked
from ..extensions import db
from ..models import Canteen
from ..models.canteens import CANTEEN_TYPE_SUB, CANTEEN_TYPES
from canteen.time_utils import business_date, start_of_calendar_day, utcnow
from .auth_service import AuthContext, require_admin
from .concurrency import begin_write, lock_for_update, run_with_retry


def create_canteen(
    name: str,
    location: str,
    contact_number: str,
    type: str = CANTEEN_TYPE_SUB,
) -> Canteen:
    name = (name or "").strip()
    if not name:
        raise InvalidInput("name is required", {"field": "name"})
    if type not in CANTEEN_TYPES:
        raise InvalidInput(f"type must be one of {', '.join(CANTEEN_TYPES)}", {"field": "type"})

    canteen = Canteen(
        name=name,
        type=type,
        location=(location or "").strip(),
        contact_number=(contact_number or "").strip(),
        is_locked=False,
    )
    db.session.add(canteen)
    db.session.commit()
    return canteen


def get_canteen(canteen_id: int, *, lock: bool = False) -> Canteen:
    query = db.session.query(Canteen).filter_by(id=canteen_id)
    if lock:
        query = lock_for_update(query)
    canteen = query.first()
    if canteen is None:
        raise NotFound(f"Canteen {canteen_id} not found", {"canteen_id": canteen_id})
    return canteen


def list_canteens(include_locked: bool = True, type: str | None = None) -> list[Canteen]:
    query = db.session.query(Canteen)
    if not include_locked:
        query = query.filter(Canteen.is_locked.is_(False))
    if type is not None:
        query = query.filter(Canteen.type == type)
    return query.order_by(Canteen.name.asc(), Canteen.id.asc()).all()


def list_locked_canteens() -> list[Canteen]:
    return (
        db.session.query(Canteen)
        .filter(Canteen.is_locked.is_(True))
        .order_by(Canteen.locked_at.asc(), Canteen.id.asc())
        .all()
    )


def ensure_unlocked(canteen: Canteen, day: date | None = None) -> None:
    """
    Raise CanteenLocked unless the canteen accepts writes for business day `day`.

    A lock taken on an earlier business day does not block `day`, whether or
    not the sweep has cleared it yet. Lock state is only read here.
    """
    if not canteen.is_locked:
        return
    if day is not None and canteen.locked_at is not None and business_date(canteen.locked_at) < day:
        return
    raise CanteenLocked(
        f"Canteen {canteen.name} is locked",
        {"canteen_id": canteen.id, "lock_reason": canteen.lock_reason},
    )


def _set_lock(canteen: Canteen, actor: AuthContext, reason: str, now: datetime) -> None:
    canteen.is_locked = True
    canteen.locked_at = now
    canteen.locked_by_user_id = actor.actor_id
    canteen.lock_reason = reason


def _lock_for_sale_verification(canteen: Canteen, actor: AuthContext, now: datetime) -> None:
    """Verification re-locks the canteen from scratch every time (no commit)."""
    _set_lock(canteen, actor, f"Sale verified by {actor.username}", now)


def _lock_canteen_inner(
    canteen: Canteen,
    actor: AuthContext,
    reason: str | None,
    is_verification: bool,
    now: datetime,
) -> Canteen:
    if is_verification:
        verification_text = f"Verified by {actor.username}"
        if canteen.is_locked and canteen.lock_reason:
            canteen.lock_reason = f"{canteen.lock_reason} | {verification_text}"
        else:
            _set_lock(canteen, actor, verification_text, now)
        return canteen

    if canteen.is_locked:
        raise AlreadyLocked("Canteen is already locked", {"canteen_id": canteen.id})

    lock_reason = f"Locked by {actor.username}"
    if reason:
        lock_reason = f"{lock_reason}: {reason}"
    _set_lock(canteen, actor, lock_reason, now)
    return canteen


def lock_canteen(
    canteen_id: int,
    actor: AuthContext,
    reason: str | None = None,
    is_verification: bool = False,
    now: datetime | None = None,
) -> Canteen:
    require_admin(actor, "lock canteens")
    if reason is not None:
        reason = str(reason).strip() or None
    if now is None:
        now = utcnow()

    def _op():
        begin_write()
        canteen = get_canteen(canteen_id, lock=True)
        _lock_canteen_inner(canteen, actor, reason, bool(is_verification), now)
        db.session.commit()
        return canteen

    canteen = run_with_retry(_op)
    current_app.logger.info("Canteen %s locked by user %s: %s", canteen.id, actor.actor_id, canteen.lock_reason)
    return canteen


def unlock_canteen(canteen_id: int, actor: AuthContext) -> Canteen:
    require_admin(actor, "unlock canteens")

    def _op():
        begin_write()
        canteen = get_canteen(canteen_id, lock=True)
        if not canteen.is_locked:
            raise NotLocked("Canteen is not locked", {"canteen_id": canteen.id})
        canteen.clear_lock()
        db.session.commit()
        return canteen

    canteen = run_with_retry(_op)
    current_app.logger.info("Canteen %s unlocked by user %s", canteen.id, actor.actor_id)
    return canteen


def auto_unlock_canteens(now: datetime | None = None) -> int:
    """
    Unlock every canteen locked before the start of the current calendar day.

    Idempotent; safe to skip or re-run. Returns the number of canteens unlocked.
    """
    cutoff = start_of_calendar_day(now)

    def _op():
        begin_write()
        stale = lock_for_update(
            db.session.query(Canteen).filter(
                Canteen.is_locked.is_(True),
                Canteen.locked_at < cutoff,
            )
        ).all()
        for canteen in stale:
            canteen.clear_lock()
        db.session.commit()
        return len(stale)

    count = run_with_retry(_op)
    current_app.logger.info("Auto-unlock completed: %s canteens unlocked", count)
    return count
