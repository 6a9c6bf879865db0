"""
CLI commands: bootstrap, catalog and the scheduled auto-unlock.
"""

from datetime import timedelta

from canteen.extensions import db
from canteen.models import Canteen, Item, User
from canteen.models.auth import ROLE_SUPER_ADMIN
from canteen.models.catalog import STOCK_EFFECT_INCREASES
from canteen.services import canteen_service
from canteen.time_utils import utcnow


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    assert first.exit_code == 0
    assert "DONE" in first.output

    second = runner.invoke(args=["system", "init"])
    assert second.exit_code == 0
    assert "already exists" in second.output

    assert db.session.query(Canteen).count() == 1
    assert db.session.query(User).filter_by(role=ROLE_SUPER_ADMIN).count() == 1


def test_items_create_with_stock_effect(app, db_session):
    result = app.test_cli_runner().invoke(
        args=["items", "create", "--name", "Crate", "--unit", "pcs", "--stock-effect", "increases"]
    )
    assert result.exit_code == 0
    assert db.session.query(Item).filter_by(name="Crate").one().stock_effect == STOCK_EFFECT_INCREASES


def test_users_create_rejects_manager_without_canteen(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "users", "create",
        "--username", "bob", "--email", "bob@canteen.local",
        "--password", "Password123!", "--role", "manager",
    ])
    assert result.exit_code == 0
    assert "FAIL" in result.output
    assert db.session.query(User).count() == 0


def test_maintenance_auto_unlock(app, canteen_a, admin):
    canteen_service.lock_canteen(canteen_a.id, admin, now=utcnow() - timedelta(days=2))

    result = app.test_cli_runner().invoke(args=["maintenance", "auto-unlock"])

    assert result.exit_code == 0
    assert "1 canteens unlocked" in result.output
    assert not canteen_service.get_canteen(canteen_a.id).is_locked
