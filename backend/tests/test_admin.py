"""
Back-office tests.

Verifies:
- Admin login issues a JWT (header or cookie) and reseller tokens are refused
- Cross-tenant listings
- Manual wallet adjustments never drive a balance negative
- Broadcast notifications reach every active reseller
"""

from datetime import timedelta

import jwt

from conftest import ADMIN_PASSWORD, auth_headers
from resellerpro.extensions import db
from resellerpro.models import Notification, WalletTransaction
from resellerpro.services import admin_service
from resellerpro.time_utils import utcnow


def _admin_headers(client):
    resp = client.post("/api/admin/auth", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return auth_headers(resp.json["token"])


class TestAdminAuth:
    def test_wrong_password(self, client):
        resp = client.post("/api/admin/auth", json={"username": "admin", "password": "guess"})
        assert resp.status_code == 401

    def test_no_hash_configured_refuses_login(self, app, client):
        app.config["ADMIN_PASSWORD_HASH"] = ""
        resp = client.post("/api/admin/auth", json={"username": "admin", "password": ADMIN_PASSWORD})
        assert resp.status_code == 401

    def test_cookie_session(self, client):
        resp = client.post("/api/admin/auth", json={"username": "admin", "password": ADMIN_PASSWORD})
        assert admin_service.ADMIN_COOKIE_NAME in resp.headers.get("Set-Cookie", "")
        assert "HttpOnly" in resp.headers["Set-Cookie"]

        resp = client.get("/api/admin/auth")
        assert resp.status_code == 200
        assert resp.json["user"] == "admin"

        client.delete("/api/admin/auth")
        assert client.get("/api/admin/auth").status_code == 401

    def test_reseller_token_is_not_admin(self, client, headers_a):
        resp = client.get("/api/admin/stats", headers=headers_a)
        assert resp.status_code == 401

    def test_expired_token(self, app, client):
        token = jwt.encode(
            {"sub": "admin", "role": "admin", "exp": utcnow() - timedelta(minutes=1)},
            app.config["ADMIN_SESSION_SECRET"],
            algorithm="HS256",
        )
        resp = client.get("/api/admin/stats", headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.json["message"] == "Session expired"

    def test_admin_token_does_not_open_tenant_routes(self, client):
        headers = _admin_headers(client)
        assert client.get("/api/products", headers=headers).status_code == 401


class TestAdminReads:
    def test_stats_and_reseller_listing(self, client, profile_a, profile_b, product_a):
        headers = _admin_headers(client)

        stats = client.get("/api/admin/stats", headers=headers)
        assert stats.status_code == 200

        resp = client.get("/api/admin/customers?search=bilal", headers=headers)
        assert [r["email"] for r in resp.json["items"]] == [profile_b.email]

        detail = client.get(f"/api/admin/customers/{profile_a.id}", headers=headers).json
        assert detail["usage"]["products"] == 1
        assert detail["wallet"] == {"balance_paise": 0, "transactions": []}

        assert client.get("/api/admin/customers/9999", headers=headers).status_code == 404

    def test_plans_with_subscriber_counts(self, client, profile_a, profile_b):
        headers = _admin_headers(client)
        plans = {p["name"]: p["subscribers"] for p in client.get("/api/admin/plans", headers=headers).json["plans"]}
        assert plans["free"] == 2
        assert plans["business"] == 0

    def test_subscriptions_filter_by_plan(self, client, profile_a):
        headers = _admin_headers(client)
        resp = client.get("/api/admin/subscriptions?plan=free", headers=headers)
        assert len(resp.json["items"]) == 1
        resp = client.get("/api/admin/subscriptions?plan=business", headers=headers)
        assert resp.json["items"] == []


class TestWalletAdjustments:
    def test_credit_notifies_and_lists_wallet(self, client, profile_a):
        headers = _admin_headers(client)
        resp = client.post(f"/api/admin/wallets/{profile_a.id}/adjust", headers=headers, json={
            "amount_paise": 10000, "reason": "Goodwill credit",
        })
        assert resp.status_code == 200
        assert resp.json["balance_paise"] == 10000
        assert resp.json["transaction"]["type"] == "admin_adjustment"

        assert db.session.query(Notification).filter_by(user_id=profile_a.id, type="wallet_credited").count() == 1

        wallets = client.get("/api/admin/wallets", headers=headers).json["items"]
        assert [w["id"] for w in wallets] == [profile_a.id]

    def test_debit_below_zero_rejected(self, client, profile_a):
        headers = _admin_headers(client)
        resp = client.post(f"/api/admin/wallets/{profile_a.id}/adjust", headers=headers, json={
            "amount_paise": -500, "reason": "Clawback",
        })
        assert resp.status_code == 400
        assert db.session.query(WalletTransaction).count() == 0

    def test_validation(self, client, profile_a):
        headers = _admin_headers(client)
        url = f"/api/admin/wallets/{profile_a.id}/adjust"
        assert client.post(url, headers=headers, json={"amount_paise": 0, "reason": "x"}).status_code == 400
        assert client.post(url, headers=headers, json={"amount_paise": 10.5, "reason": "x"}).status_code == 400
        assert client.post(url, headers=headers, json={"amount_paise": 100}).status_code == 400
        assert client.post("/api/admin/wallets/9999/adjust", headers=headers, json={
            "amount_paise": 100, "reason": "x",
        }).status_code == 404


class TestBroadcast:
    def test_broadcast_reaches_all_active_resellers(self, client, profile_a, profile_b):
        profile_b.is_active = False
        db.session.commit()

        headers = _admin_headers(client)
        resp = client.post("/api/admin/notifications", headers=headers, json={
            "title": "Maintenance tonight", "message": "Dashboard offline 1-2 AM IST", "priority": "high",
        })
        assert resp.status_code == 201
        assert resp.json["recipients"] == 1
        note = db.session.query(Notification).filter_by(user_id=profile_a.id, type="system_alert").one()
        assert note.priority == "high"

    def test_bad_priority(self, client):
        headers = _admin_headers(client)
        resp = client.post("/api/admin/notifications", headers=headers, json={
            "title": "Hi", "message": "There", "priority": "urgent",
        })
        assert resp.status_code == 400
