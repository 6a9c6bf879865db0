"""
Stock ledger tests: current quantity and the daily history row.
"""

from datetime import date, timedelta

import pytest

from canteen.errors import InsufficientStock, InvalidInput, ItemNotFound, NotFound, StockNotFound
from canteen.extensions import db
from canteen.models import Stock, StockHistory
from canteen.services import stock_service
from canteen.services.stock_service import SOURCE_ADJUSTMENT, SOURCE_SALE, SOURCE_SUPPLY

from conftest import NOW


TODAY = date(2026, 3, 10)


def _history(canteen_id, item_id, day=TODAY):
    return db.session.query(StockHistory).filter_by(canteen_id=canteen_id, item_id=item_id, date=day).one()


class TestApplyDelta:

    def test_creates_stock_lazily(self, canteen_a, tea):
        stock, history = stock_service.apply_delta(
            canteen_a.id, tea.id, 7, TODAY, source=SOURCE_SUPPLY, now=NOW
        )
        assert stock.quantity == 7
        assert history.opening_stock == 0
        assert history.received_stock == 7
        assert history.closing_stock == 7

    def test_require_existing_fails_without_stock_row(self, canteen_a, tea):
        with pytest.raises(StockNotFound) as exc:
            stock_service.apply_delta(
                canteen_a.id, tea.id, -1, TODAY, source=SOURCE_SALE, require_existing=True, now=NOW
            )
        assert exc.value.details == {"item_id": tea.id}
        assert db.session.query(Stock).count() == 0

    def test_unknown_item(self, canteen_a):
        with pytest.raises(ItemNotFound):
            stock_service.apply_delta(canteen_a.id, 9999, 1, TODAY, now=NOW)

    def test_insufficient_stock_leaves_nothing_behind(self, stocked, tea):
        with pytest.raises(InsufficientStock) as exc:
            stock_service.apply_delta(stocked.id, tea.id, -21, TODAY, source=SOURCE_SALE, now=NOW)

        assert exc.value.details == {"item_id": tea.id, "available": 20, "requested": 21}
        assert stock_service.get_stock(stocked.id, tea.id).quantity == 20
        assert _history(stocked.id, tea.id).closing_stock == 20

    def test_increasing_item_may_go_negative_when_reversed(self, canteen_a, crate):
        stock, _ = stock_service.apply_delta(canteen_a.id, crate.id, -2, TODAY, source=SOURCE_SALE, now=NOW)
        assert stock.quantity == -2

    def test_enforce_available_off(self, stocked, tea):
        stock, _ = stock_service.apply_delta(
            stocked.id, tea.id, -25, TODAY, source=SOURCE_ADJUSTMENT, enforce_available=False, now=NOW
        )
        assert stock.quantity == -5

    def test_opening_stock_is_stable_within_the_day(self, canteen_a, tea):
        stock_service.apply_delta(canteen_a.id, tea.id, 10, TODAY, source=SOURCE_SUPPLY, now=NOW)
        stock_service.apply_delta(canteen_a.id, tea.id, -4, TODAY, source=SOURCE_SUPPLY, now=NOW)
        stock_service.apply_delta(canteen_a.id, tea.id, 3, TODAY, source=SOURCE_SUPPLY, now=NOW)

        history = _history(canteen_a.id, tea.id)
        assert history.opening_stock == 0
        assert history.received_stock == 13
        assert history.sold_stock == 4
        assert history.closing_stock == 9
        assert stock_service.get_stock(canteen_a.id, tea.id).quantity == 9

    def test_one_history_row_per_day(self, canteen_a, tea):
        tomorrow = TODAY + timedelta(days=1)
        stock_service.apply_delta(canteen_a.id, tea.id, 10, TODAY, source=SOURCE_SUPPLY, now=NOW)
        stock_service.apply_delta(canteen_a.id, tea.id, 5, TODAY, source=SOURCE_SUPPLY, now=NOW)
        stock_service.apply_delta(canteen_a.id, tea.id, -3, tomorrow, source=SOURCE_SALE, now=NOW)

        rows = db.session.query(StockHistory).filter_by(canteen_id=canteen_a.id, item_id=tea.id).all()
        assert len(rows) == 2

        next_day = _history(canteen_a.id, tea.id, tomorrow)
        assert next_day.opening_stock == 15
        assert next_day.sold_stock == 3
        assert next_day.closing_stock == 12

    def test_sale_movements_net_into_sold(self, stocked, tea):
        stock_service.apply_delta(stocked.id, tea.id, -5, TODAY, source=SOURCE_SALE, now=NOW)
        stock_service.apply_delta(stocked.id, tea.id, 2, TODAY, source=SOURCE_SALE, now=NOW)

        history = _history(stocked.id, tea.id)
        assert history.sold_stock == 3
        assert history.received_stock == 20
        assert history.closing_stock == 17

    def test_sale_of_increasing_item_counts_as_received(self, canteen_a, crate):
        stock_service.apply_delta(canteen_a.id, crate.id, 4, TODAY, source=SOURCE_SALE, now=NOW)

        history = _history(canteen_a.id, crate.id)
        assert history.received_stock == 4
        assert history.sold_stock == 0

    def test_unknown_source_rejected(self, canteen_a, tea):
        with pytest.raises(ValueError):
            stock_service.apply_delta(canteen_a.id, tea.id, 1, TODAY, source="GIFT", now=NOW)


class TestSetQuantity:

    def test_records_adjustment(self, canteen_a, tea):
        stock, history = stock_service.set_quantity(canteen_a.id, tea.id, 12, "Opening count", now=NOW)

        assert stock.quantity == 12
        assert history.opening_stock == 0
        assert history.received_stock == 12
        assert history.adjusted_stock == 12
        assert history.adjustment_description == "Opening count"

    def test_decrease_is_never_blocked(self, stocked, tea):
        stock, history = stock_service.set_quantity(stocked.id, tea.id, 0, "Spilled", now=NOW)

        assert stock.quantity == 0
        assert history.sold_stock == 20
        assert history.adjusted_stock == 0
        assert history.closing_stock == 0

    def test_descriptions_accumulate(self, stocked, tea):
        stock_service.set_quantity(stocked.id, tea.id, 18, "Broken cups", now=NOW)
        _, history = stock_service.set_quantity(stocked.id, tea.id, 19, "Found one", now=NOW)

        assert history.adjustment_description == "Opening count; Broken cups; Found one"
        assert history.adjusted_stock == 19

    def test_rejects_negative_and_non_integer(self, canteen_a, tea):
        with pytest.raises(InvalidInput):
            stock_service.set_quantity(canteen_a.id, tea.id, -1, now=NOW)
        with pytest.raises(InvalidInput):
            stock_service.set_quantity(canteen_a.id, tea.id, 1.5, now=NOW)
        with pytest.raises(InvalidInput):
            stock_service.set_quantity(canteen_a.id, tea.id, True, now=NOW)

    def test_unknown_canteen(self, db_session, tea):
        with pytest.raises(NotFound):
            stock_service.set_quantity(424242, tea.id, 3, now=NOW)


class TestReads:

    def test_list_canteen_stock_sorted_by_item_name(self, stocked, tea, samosa, crate):
        names = [stock.item.name for stock in stock_service.list_canteen_stock(stocked.id)]
        assert names == ["Bottle crate", "Samosa", "Tea"]

    def test_history_window(self, canteen_a, tea):
        old_day = TODAY - timedelta(days=40)
        stock_service.apply_delta(canteen_a.id, tea.id, 1, old_day, source=SOURCE_SUPPLY, now=NOW)
        stock_service.apply_delta(canteen_a.id, tea.id, 1, TODAY, source=SOURCE_SUPPLY, now=NOW)

        recent = stock_service.get_stock_history(canteen_a.id, tea.id, today=TODAY)
        assert [row.date for row in recent] == [TODAY]

        everything = stock_service.get_stock_history(canteen_a.id, days=60, today=TODAY)
        assert [row.date for row in everything] == [old_day, TODAY]
