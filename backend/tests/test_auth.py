"""
Authentication tests.

Verifies:
- Signup creates a free-plan account and signs it in
- Login throttling locks an email after repeated failures
- Protected endpoints return 401 without a live token
- Password change signs out every other session
"""

import pytest

from conftest import PASSWORD, auth_headers, get_auth_token
from resellerpro.extensions import db
from resellerpro.models import LoginEvent, Referral, WalletTransaction
from resellerpro.services import login_throttle_service


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/customers"),
            ("GET", "/api/orders"),
            ("POST", "/api/orders"),
            ("GET", "/api/enquiries"),
            ("GET", "/api/subscription"),
            ("POST", "/api/subscription/checkout"),
            ("GET", "/api/settings/profile"),
            ("GET", "/api/notifications"),
            ("GET", "/api/security/sessions"),
            ("GET", "/api/analytics"),
            ("GET", "/api/dashboard"),
            ("GET", "/api/search?q=kurti"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_rejected(self, client):
        resp = client.get("/api/auth/me", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"


class TestSignup:
    def test_signup_returns_session_on_free_plan(self, client):
        resp = client.post("/api/auth/signup", json={
            "email": "Priya@Example.in",
            "password": PASSWORD,
            "full_name": "Priya Nair",
        })
        assert resp.status_code == 201
        body = resp.json
        assert body["user"]["email"] == "priya@example.in"
        assert body["plan"]["name"] == "free"
        assert body["token"]
        assert len(body["user"]["referral_code"]) == 8

        me = client.get("/api/auth/me", headers=auth_headers(body["token"]))
        assert me.status_code == 200
        assert me.json["usage"]["orders"] == {"used": 0, "limit": 10}

    def test_duplicate_email_conflicts(self, client, profile_a):
        resp = client.post("/api/auth/signup", json={
            "email": profile_a.email,
            "password": PASSWORD,
            "full_name": "Someone Else",
        })
        assert resp.status_code == 409

    def test_weak_password_rejected(self, client):
        resp = client.post("/api/auth/signup", json={
            "email": "weak@example.in",
            "password": "password",
            "full_name": "Weak Password",
        })
        assert resp.status_code == 400

    def test_referral_code_credits_signup_bonus(self, client, profile_a):
        resp = client.post("/api/auth/signup", json={
            "email": "friend@example.in",
            "password": PASSWORD,
            "full_name": "Friend Of Asha",
            "referral_code": profile_a.referral_code.lower(),
        })
        assert resp.status_code == 201
        referee_id = resp.json["user"]["id"]
        assert resp.json["user"]["wallet_balance_paise"] == 5000

        referral = db.session.query(Referral).filter_by(referee_id=referee_id).one()
        assert referral.referrer_id == profile_a.id
        assert referral.status == "pending"

        txn = db.session.query(WalletTransaction).filter_by(user_id=referee_id).one()
        assert txn.type == "referral_signup_bonus"
        assert txn.balance_after_paise == 5000

    def test_unknown_referral_code_does_not_block_signup(self, client):
        resp = client.post("/api/auth/signup", json={
            "email": "nocode@example.in",
            "password": PASSWORD,
            "full_name": "No Code",
            "referral_code": "ZZZZZZZZ",
        })
        assert resp.status_code == 201
        assert resp.json["user"]["wallet_balance_paise"] == 0


class TestLogin:
    def test_login_and_logout(self, client, profile_a):
        token = get_auth_token(client, profile_a.email)
        assert token

        resp = client.post("/api/auth/logout", headers=auth_headers(token))
        assert resp.status_code == 200

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 401

    def test_bad_password_is_recorded(self, client, profile_a):
        resp = client.post("/api/auth/login", json={"email": profile_a.email, "password": "Wrong123!"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid credentials"

        event = db.session.query(LoginEvent).filter_by(identifier=profile_a.email).one()
        assert event.login_success is False
        assert event.user_id == profile_a.id

    def test_lockout_after_repeated_failures(self, client, profile_a):
        statuses = []
        for _ in range(login_throttle_service.MAX_FAILED_ATTEMPTS):
            resp = client.post("/api/auth/login", json={"email": profile_a.email, "password": "Wrong123!"})
            statuses.append(resp.status_code)

        assert statuses[:-1] == [401] * (login_throttle_service.MAX_FAILED_ATTEMPTS - 1)
        assert statuses[-1] == 429

        # The right password is refused while locked
        resp = client.post("/api/auth/login", json={"email": profile_a.email, "password": PASSWORD})
        assert resp.status_code == 429
        assert resp.json["locked"] is True

    def test_warning_when_few_attempts_remain(self, client, profile_a):
        for _ in range(login_throttle_service.MAX_FAILED_ATTEMPTS - 2):
            resp = client.post("/api/auth/login", json={"email": profile_a.email, "password": "Wrong123!"})
        assert "warning" in resp.json

    def test_success_resets_failure_count(self, client, profile_a):
        for _ in range(3):
            client.post("/api/auth/login", json={"email": profile_a.email, "password": "Wrong123!"})
        assert get_auth_token(client, profile_a.email)
        assert login_throttle_service.get_recent_failed_attempts(profile_a.email) == 0


class TestChangePassword:
    def test_change_password_revokes_other_sessions(self, client, profile_a):
        current = get_auth_token(client, profile_a.email)
        other = get_auth_token(client, profile_a.email)

        resp = client.post("/api/auth/change-password", headers=auth_headers(current), json={
            "current_password": PASSWORD,
            "new_password": "NewPassword456!",
        })
        assert resp.status_code == 200
        assert resp.json["sessions_revoked"] == 1

        assert client.get("/api/auth/me", headers=auth_headers(current)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(other)).status_code == 401
        assert get_auth_token(client, profile_a.email, "NewPassword456!")

    def test_wrong_current_password(self, client, headers_a):
        resp = client.post("/api/auth/change-password", headers=headers_a, json={
            "current_password": "Nope123!",
            "new_password": "NewPassword456!",
        })
        assert resp.status_code == 401
