"""
Sale verification: admin sign-off, next-day adjustment and the canteen lock it takes.
"""

from datetime import date, datetime, timedelta

import pytest

from canteen.errors import AlreadyVerified, CanteenLocked, Forbidden, InvalidInput, NotFound, PaymentMismatch
from canteen.services import canteen_service, sales_service, verification_service

from conftest import NOW


TOMORROW = NOW + timedelta(days=1)


@pytest.fixture
def todays_sale(stocked, tea, manager_a):
    return sales_service.create_or_update_sale(
        stocked.id,
        [{"item_id": tea.id, "quantity": 2, "unit_price_cents": 1000}],
        cash_cents=2000,
        actor=manager_a,
        now=NOW,
    )


class TestVerifySale:

    def test_records_adjustment_and_locks_canteen(self, todays_sale, admin):
        sale = verification_service.verify_sale(todays_sale.id, -2000, "Short by 20", admin, now=NOW)

        assert sale.is_verified
        assert sale.next_day_adjustment_cents == -2000
        assert sale.next_day_reason == "Short by 20"
        assert sale.verified_by_user_id == admin.actor_id
        assert sale.verified_at == NOW

        canteen = canteen_service.get_canteen(sale.canteen_id)
        assert canteen.is_locked
        assert canteen.lock_reason == "Sale verified by admin"
        assert canteen.locked_at == NOW
        assert canteen.locked_by_user_id == admin.actor_id

    def test_verify_twice(self, todays_sale, admin):
        verification_service.verify_sale(todays_sale.id, 0, "Exact", admin, now=NOW)
        with pytest.raises(AlreadyVerified):
            verification_service.verify_sale(todays_sale.id, 100, "Again", admin, now=NOW)

    def test_manager_cannot_verify(self, todays_sale, manager_a):
        with pytest.raises(Forbidden):
            verification_service.verify_sale(todays_sale.id, 0, "Exact", manager_a, now=NOW)
        assert not todays_sale.is_verified

    @pytest.mark.parametrize("adjustment,reason", [
        ("100", "Reason"),
        (1.5, "Reason"),
        (True, "Reason"),
        (100, ""),
        (100, "   "),
        (100, None),
    ])
    def test_invalid_input(self, todays_sale, admin, adjustment, reason):
        with pytest.raises(InvalidInput):
            verification_service.verify_sale(todays_sale.id, adjustment, reason, admin, now=NOW)
        assert not canteen_service.get_canteen(todays_sale.canteen_id).is_locked

    def test_unknown_sale(self, db_session, admin):
        with pytest.raises(NotFound):
            verification_service.verify_sale(999, 0, "Exact", admin, now=NOW)

    def test_existing_manual_lock_is_replaced(self, todays_sale, admin):
        canteen_service.lock_canteen(todays_sale.canteen_id, admin, reason="Stock take", now=NOW)
        verification_service.verify_sale(todays_sale.id, 0, "Exact", admin, now=NOW)

        canteen = canteen_service.get_canteen(todays_sale.canteen_id)
        assert canteen.lock_reason == "Sale verified by admin"


class TestUpdateVerification:

    def test_revises_todays_adjustment(self, todays_sale, admin):
        verification_service.verify_sale(todays_sale.id, -2000, "Short", admin, now=NOW)
        sale = verification_service.update_verification(todays_sale.id, 500, "Recounted", admin, now=NOW)

        assert sale.next_day_adjustment_cents == 500
        assert sale.next_day_reason == "Recounted"

    def test_verifies_unverified_sale(self, todays_sale, admin):
        sale = verification_service.update_verification(todays_sale.id, 0, "Exact", admin, now=NOW)
        assert sale.is_verified
        assert canteen_service.get_canteen(sale.canteen_id).is_locked

    def test_only_today(self, todays_sale, admin):
        verification_service.verify_sale(todays_sale.id, -2000, "Short", admin, now=NOW)
        with pytest.raises(Forbidden):
            verification_service.update_verification(todays_sale.id, 0, "Late fix", admin, now=TOMORROW)

    def test_manager_cannot_update(self, todays_sale, manager_a):
        with pytest.raises(Forbidden):
            verification_service.update_verification(todays_sale.id, 0, "Exact", manager_a, now=NOW)


class TestNextDayCarryOver:

    def test_next_sale_inherits_adjustment(self, todays_sale, tea, admin, manager_a):
        verification_service.verify_sale(todays_sale.id, -2000, "Short by 20", admin, now=NOW)

        with pytest.raises(CanteenLocked):
            sales_service.create_or_update_sale(
                todays_sale.canteen_id,
                [{"item_id": tea.id, "quantity": 1, "unit_price_cents": 1000}],
                cash_cents=1000,
                actor=manager_a,
                now=NOW,
            )

        assert canteen_service.auto_unlock_canteens(now=TOMORROW) == 1

        with pytest.raises(PaymentMismatch) as exc:
            sales_service.create_or_update_sale(
                todays_sale.canteen_id,
                [{"item_id": tea.id, "quantity": 3, "unit_price_cents": 1000}],
                cash_cents=3000,
                actor=manager_a,
                now=TOMORROW,
            )
        assert exc.value.details["expected_cents"] == 1000

        sale = sales_service.create_or_update_sale(
            todays_sale.canteen_id,
            [{"item_id": tea.id, "quantity": 3, "unit_price_cents": 1000}],
            cash_cents=1000,
            actor=manager_a,
            now=TOMORROW,
        )
        assert sale.date == date(2026, 3, 11)
        assert sale.previous_day_adjustment_cents == -2000
        assert sale.previous_day_reason == "Short by 20"
        assert sale.total_cents == 1000

    def test_zero_adjustment_carries_nothing(self, todays_sale, tea, admin, manager_a):
        verification_service.verify_sale(todays_sale.id, 0, "Exact", admin, now=NOW)
        canteen_service.auto_unlock_canteens(now=TOMORROW)

        sale = sales_service.create_or_update_sale(
            todays_sale.canteen_id,
            [{"item_id": tea.id, "quantity": 1, "unit_price_cents": 1000}],
            cash_cents=1000,
            actor=manager_a,
            now=TOMORROW,
        )
        assert sale.previous_day_adjustment_cents == 0
        assert sale.previous_day_reason is None


class TestVerificationAfterMidnight:
    """Verified between 00:00 and 02:00: the lock belongs to the previous business day."""

    @pytest.mark.parametrize("run_sweep", [False, True])
    def test_next_business_day_sale_is_accepted(self, stocked, tea, admin, manager_a, run_sweep):
        sale = sales_service.create_or_update_sale(
            stocked.id,
            [{"item_id": tea.id, "quantity": 2, "unit_price_cents": 1000}],
            cash_cents=2000,
            actor=manager_a,
            now=datetime(2026, 3, 10, 20, 0),
        )
        verification_service.verify_sale(sale.id, -500, "Short by 5", admin, now=datetime(2026, 3, 11, 1, 0))

        # 01:30 is still the verified business day
        with pytest.raises(CanteenLocked):
            sales_service.create_or_update_sale(
                stocked.id,
                [{"item_id": tea.id, "quantity": 1, "unit_price_cents": 1000}],
                cash_cents=1000,
                actor=manager_a,
                now=datetime(2026, 3, 11, 1, 30),
            )

        midday = datetime(2026, 3, 11, 12, 0)
        if run_sweep:
            # locked after calendar midnight, so the sweep leaves it alone
            assert canteen_service.auto_unlock_canteens(now=midday) == 0

        next_sale = sales_service.create_or_update_sale(
            stocked.id,
            [{"item_id": tea.id, "quantity": 1, "unit_price_cents": 1000}],
            cash_cents=500,
            actor=manager_a,
            now=midday,
        )

        assert next_sale.date == date(2026, 3, 11)
        assert next_sale.previous_day_adjustment_cents == -500
        assert next_sale.total_cents == 500
        assert canteen_service.get_canteen(stocked.id).is_locked
