"""
Canteen lock state: manual lock/unlock, verification locks and the auto-unlock sweep.
"""

from datetime import datetime, timedelta

import pytest

from canteen.errors import AlreadyLocked, CanteenLocked, Forbidden, NotFound, NotLocked
from canteen.models.canteens import CANTEEN_TYPE_MAIN
from canteen.services import canteen_service, sales_service

from conftest import NOW


class TestManualLock:

    def test_lock_with_reason(self, canteen_a, admin):
        canteen = canteen_service.lock_canteen(canteen_a.id, admin, reason="Stock take", now=NOW)

        assert canteen.is_locked
        assert canteen.lock_reason == "Locked by admin: Stock take"
        assert canteen.locked_at == NOW
        assert canteen.locked_by_user_id == admin.actor_id

    def test_lock_without_reason(self, canteen_a, admin):
        canteen = canteen_service.lock_canteen(canteen_a.id, admin, now=NOW)
        assert canteen.lock_reason == "Locked by admin"

    def test_lock_twice(self, canteen_a, admin):
        canteen_service.lock_canteen(canteen_a.id, admin, now=NOW)
        with pytest.raises(AlreadyLocked):
            canteen_service.lock_canteen(canteen_a.id, admin, reason="Again", now=NOW)

    def test_verification_lock_appends(self, canteen_a, admin):
        canteen_service.lock_canteen(canteen_a.id, admin, reason="Stock take", now=NOW)
        canteen = canteen_service.lock_canteen(canteen_a.id, admin, is_verification=True, now=NOW)

        assert canteen.lock_reason == "Locked by admin: Stock take | Verified by admin"

    def test_verification_lock_on_unlocked_canteen(self, canteen_a, admin):
        canteen = canteen_service.lock_canteen(canteen_a.id, admin, is_verification=True, now=NOW)

        assert canteen.is_locked
        assert canteen.lock_reason == "Verified by admin"

    def test_unlock_clears_fields(self, canteen_a, admin):
        canteen_service.lock_canteen(canteen_a.id, admin, now=NOW)
        canteen = canteen_service.unlock_canteen(canteen_a.id, admin)

        assert not canteen.is_locked
        assert canteen.locked_at is None
        assert canteen.locked_by_user_id is None
        assert canteen.lock_reason is None

    def test_unlock_unlocked(self, canteen_a, admin):
        with pytest.raises(NotLocked):
            canteen_service.unlock_canteen(canteen_a.id, admin)

    def test_manager_cannot_lock_or_unlock(self, canteen_a, admin, manager_a):
        with pytest.raises(Forbidden):
            canteen_service.lock_canteen(canteen_a.id, manager_a, now=NOW)
        canteen_service.lock_canteen(canteen_a.id, admin, now=NOW)
        with pytest.raises(Forbidden):
            canteen_service.unlock_canteen(canteen_a.id, manager_a)

    def test_unknown_canteen(self, db_session, admin):
        with pytest.raises(NotFound):
            canteen_service.lock_canteen(123456, admin, now=NOW)

    def test_locked_canteen_rejects_sales(self, stocked, tea, admin, manager_a):
        canteen_service.lock_canteen(stocked.id, admin, now=NOW)

        with pytest.raises(CanteenLocked) as exc:
            sales_service.create_or_update_sale(
                stocked.id,
                [{"item_id": tea.id, "quantity": 1, "unit_price_cents": 1000}],
                cash_cents=1000,
                actor=manager_a,
                now=NOW,
            )
        assert exc.value.details["canteen_id"] == stocked.id

    def test_previous_day_lock_does_not_block_sales(self, stocked, tea, admin, manager_a):
        canteen_service.lock_canteen(stocked.id, admin, now=NOW)

        # no sweep has run since yesterday's lock
        sale = sales_service.create_or_update_sale(
            stocked.id,
            [{"item_id": tea.id, "quantity": 1, "unit_price_cents": 1000}],
            cash_cents=1000,
            actor=manager_a,
            now=NOW + timedelta(days=1),
        )

        assert sale.total_cents == 1000
        assert canteen_service.get_canteen(stocked.id).is_locked

    def test_listing(self, canteen_a, canteen_b, admin):
        canteen_service.lock_canteen(canteen_b.id, admin, now=NOW)

        assert [c.id for c in canteen_service.list_locked_canteens()] == [canteen_b.id]
        assert [c.id for c in canteen_service.list_canteens(include_locked=False)] == [canteen_a.id]
        assert [c.id for c in canteen_service.list_canteens(type=CANTEEN_TYPE_MAIN)] == [canteen_a.id]


class TestAutoUnlock:

    def test_unlocks_locks_from_previous_days(self, canteen_a, canteen_b, admin):
        canteen_service.lock_canteen(canteen_a.id, admin, now=NOW)
        canteen_service.lock_canteen(canteen_b.id, admin, now=NOW + timedelta(days=1, hours=-11))

        # 00:30 on the 11th: only the lock taken on the 10th is stale
        count = canteen_service.auto_unlock_canteens(now=datetime(2026, 3, 11, 0, 30))

        assert count == 1
        assert not canteen_service.get_canteen(canteen_a.id).is_locked
        assert canteen_service.get_canteen(canteen_b.id).is_locked

    def test_idempotent(self, canteen_a, admin):
        canteen_service.lock_canteen(canteen_a.id, admin, now=NOW)
        later = NOW + timedelta(days=1)

        assert canteen_service.auto_unlock_canteens(now=later) == 1
        assert canteen_service.auto_unlock_canteens(now=later) == 0

    def test_same_day_lock_survives(self, canteen_a, admin):
        canteen_service.lock_canteen(canteen_a.id, admin, now=NOW)

        assert canteen_service.auto_unlock_canteens(now=NOW + timedelta(hours=6)) == 0
        assert canteen_service.get_canteen(canteen_a.id).is_locked

    def test_uses_calendar_midnight_not_business_day(self, canteen_a, admin):
        canteen_service.lock_canteen(canteen_a.id, admin, now=datetime(2026, 3, 10, 23, 0))

        # 01:00 on the 11th is still business day the 10th, but a new calendar day
        assert canteen_service.auto_unlock_canteens(now=datetime(2026, 3, 11, 1, 0)) == 1
