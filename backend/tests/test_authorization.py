"""
Authorization tests for the canteen store API.

Verifies:
- Unauthenticated requests return 401
- Managers denied admin-only operations (403)
- Managers confined to their own canteen
- Admins can perform privileged operations
"""

import pytest

from conftest import auth_headers, get_auth_token


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales"),
            ("GET", "/api/sales/date-range"),
            ("POST", "/api/sales/1/verify"),
            ("POST", "/api/stock"),
            ("GET", "/api/stock/canteen/1"),
            ("GET", "/api/stock/history/1"),
            ("POST", "/api/supplies"),
            ("GET", "/api/supplies"),
            ("GET", "/api/canteens"),
            ("POST", "/api/canteens/1/lock"),
            ("POST", "/api/canteens/auto-unlock"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/auth/me", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401

    def test_revoked_token(self, client, admin_user):
        token = get_auth_token(client, "admin")
        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 401


# =============================================================================
# LOGIN
# =============================================================================


class TestLogin:

    def test_login_by_username(self, client, manager_a_user):
        resp = client.post("/api/auth/login", json={"username": "manager_a", "password": "Password123!"})
        assert resp.status_code == 200
        assert resp.json["token"]
        assert resp.json["user"]["canteen_id"] == manager_a_user.canteen_id

    def test_login_by_email(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"email": "admin@canteen.local", "password": "Password123!"})
        assert resp.status_code == 200

    def test_wrong_password(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "admin"})
        assert resp.status_code == 400

    def test_me(self, client, admin_headers):
        resp = client.get("/api/auth/me", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["username"] == "admin"


# =============================================================================
# MANAGER DENIED ADMIN OPERATIONS (403)
# =============================================================================


class TestManagerDeniedAdminOperations:
    """Manager role cannot verify sales or lock canteens."""

    def test_cannot_verify_sale(self, client, stocked, tea, manager_a_headers):
        created = client.post(
            "/api/sales",
            json={
                "canteen_id": stocked.id,
                "items": [{"item_id": tea.id, "quantity": 1, "unit_price_cents": 1000}],
                "cash_cents": 1000,
            },
            headers=manager_a_headers,
        )
        assert created.status_code == 201

        resp = client.post(
            f"/api/sales/{created.json['sale']['id']}/verify",
            json={"adjustment_cents": 0, "reason": "Exact"},
            headers=manager_a_headers,
        )
        assert resp.status_code == 403
        assert resp.json["code"] == "FORBIDDEN"

    def test_cannot_lock_canteen(self, client, canteen_a, manager_a_headers):
        resp = client.post(f"/api/canteens/{canteen_a.id}/lock", json={}, headers=manager_a_headers)
        assert resp.status_code == 403

    def test_cannot_run_auto_unlock(self, client, manager_a_headers):
        resp = client.post("/api/canteens/auto-unlock", headers=manager_a_headers)
        assert resp.status_code == 403

    def test_cannot_lock_supply(self, client, manager_a_headers):
        resp = client.post("/api/supplies/1/lock", headers=manager_a_headers)
        assert resp.status_code == 403


# =============================================================================
# CANTEEN SCOPE
# =============================================================================


class TestManagerCanteenScope:

    def test_cannot_record_sale_for_other_canteen(self, client, stocked, canteen_b, tea, manager_a_headers):
        resp = client.post(
            "/api/sales",
            json={
                "canteen_id": canteen_b.id,
                "items": [{"item_id": tea.id, "quantity": 1, "unit_price_cents": 1000}],
                "cash_cents": 1000,
            },
            headers=manager_a_headers,
        )
        assert resp.status_code == 403

    def test_cannot_list_other_canteen_sales(self, client, canteen_b, manager_a_headers):
        resp = client.get(f"/api/sales?canteen_id={canteen_b.id}", headers=manager_a_headers)
        assert resp.status_code == 403

    def test_cannot_supply_other_canteen(self, client, canteen_a, canteen_b, tea, manager_a_headers):
        resp = client.post(
            "/api/supplies",
            json={
                "from_canteen_id": canteen_a.id,
                "to_canteen_id": canteen_b.id,
                "items": [{"item_id": tea.id, "quantity": 1, "unit_price_cents": 800}],
            },
            headers=manager_a_headers,
        )
        assert resp.status_code == 403


# =============================================================================
# ADMIN CAN PERFORM PRIVILEGED OPERATIONS
# =============================================================================


class TestAdminAccess:

    def test_lock_and_unlock_canteen(self, client, canteen_a, admin_headers):
        resp = client.post(
            f"/api/canteens/{canteen_a.id}/lock", json={"reason": "Audit"}, headers=admin_headers
        )
        assert resp.status_code == 200
        assert resp.json["canteen"]["lock_reason"] == "Locked by admin: Audit"

        again = client.post(f"/api/canteens/{canteen_a.id}/lock", json={}, headers=admin_headers)
        assert again.status_code == 400
        assert again.json["code"] == "ALREADY_LOCKED"

        resp = client.post(f"/api/canteens/{canteen_a.id}/unlock", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["canteen"]["is_locked"] is False

    def test_auto_unlock(self, client, db_session, admin_headers):
        resp = client.post("/api/canteens/auto-unlock", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["unlocked_count"] == 0
