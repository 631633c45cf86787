"""
Subscription billing tests.

Covers the three activation paths (wallet, client confirmation, gateway
webhook), webhook signature checks and replay, and expiry downgrade.
"""

import json
from datetime import timedelta

import pytest

from conftest import WEBHOOK_SECRET, set_plan
from resellerpro.extensions import db
from resellerpro.models import EmailLog, PaymentTransaction, Referral, Subscription, WalletTransaction
from resellerpro.services import billing_service, gateway, plan_service, wallet_service
from resellerpro.services.billing_service import BillingError
from resellerpro.time_utils import utcnow


def _plan_id(name):
    return plan_service.get_plan_by_name(name).id


def _pending_txn(profile, plan_name="beginner", wallet_applied=0, order_id="order_test_1"):
    plan = plan_service.get_plan_by_name(plan_name)
    txn = PaymentTransaction(
        user_id=profile.id,
        razorpay_order_id=order_id,
        amount_paise=plan.price_paise - wallet_applied,
        currency="INR",
        status="pending",
        details={"plan_id": plan.id, "wallet_applied_paise": wallet_applied},
    )
    db.session.add(txn)
    db.session.commit()
    return txn


def _event(order_id, event="payment.captured", payment_id="pay_test_1"):
    return json.dumps({
        "event": event,
        "payload": {"payment": {"entity": {"id": payment_id, "order_id": order_id}}},
    }).encode("utf-8")


def _post_webhook(client, body, signature=None):
    headers = {"Content-Type": "application/json"}
    if signature is not False:
        headers["X-Razorpay-Signature"] = signature or gateway.compute_webhook_signature(body, WEBHOOK_SECRET)
    return client.post("/api/webhooks/razorpay", data=body, headers=headers)


class TestPlans:
    def test_public_plan_catalog(self, client):
        resp = client.get("/api/subscription/plans")
        assert resp.status_code == 200
        names = [p["name"] for p in resp.json["plans"]]
        assert names == ["free", "beginner", "professional", "business"]

    def test_new_account_is_free_without_period_end(self, client, headers_a):
        sub = client.get("/api/subscription", headers=headers_a).json["subscription"]
        assert sub["plan"]["name"] == "free"
        assert sub["current_period_end"] is None


class TestCheckout:
    def test_mock_checkout_creates_pending_transaction(self, client, headers_a, profile_a):
        resp = client.post("/api/subscription/checkout", headers=headers_a, json={"plan_id": _plan_id("beginner")})
        assert resp.status_code == 200
        body = resp.json
        assert body["use_wallet_only"] is False
        assert body["order_id"].startswith("order_mock_")
        assert body["amount_paise"] == 19900
        assert body["mock"] is True

        txn = db.session.query(PaymentTransaction).filter_by(razorpay_order_id=body["order_id"]).one()
        assert txn.status == "pending"
        assert txn.details["plan_id"] == _plan_id("beginner")

    def test_wallet_applied_before_gateway(self, client, headers_a, profile_a):
        wallet_service.credit(profile_a.id, 5000, "admin_adjustment", "test credit")
        db.session.commit()

        body = client.post("/api/subscription/checkout", headers=headers_a, json={"plan_id": _plan_id("beginner")}).json
        assert body["wallet_applied_paise"] == 5000
        assert body["amount_paise"] == 14900

    def test_wallet_covering_price_skips_gateway(self, client, headers_a, profile_a):
        wallet_service.credit(profile_a.id, 25000, "admin_adjustment", "test credit")
        db.session.commit()

        body = client.post("/api/subscription/checkout", headers=headers_a, json={"plan_id": _plan_id("beginner")}).json
        assert body["use_wallet_only"] is True
        assert db.session.query(PaymentTransaction).count() == 0

    def test_free_plan_checkout_rejected(self, client, headers_a):
        resp = client.post("/api/subscription/checkout", headers=headers_a, json={"plan_id": _plan_id("free")})
        assert resp.status_code == 400

    def test_unknown_plan_rejected(self, client, headers_a):
        resp = client.post("/api/subscription/checkout", headers=headers_a, json={"plan_id": 9999})
        assert resp.status_code == 400


class TestWalletActivation:
    def test_insufficient_balance(self, client, headers_a, profile_a):
        resp = client.post("/api/subscription/activate-wallet", headers=headers_a, json={"plan_id": _plan_id("beginner")})
        assert resp.status_code == 400
        assert resp.json["error"] == "Insufficient wallet balance"

    def test_wallet_only_activation(self, app, client, headers_a, profile_a):
        wallet_service.credit(profile_a.id, 20000, "admin_adjustment", "test credit")
        db.session.commit()

        resp = client.post("/api/subscription/activate-wallet", headers=headers_a, json={"plan_id": _plan_id("beginner")})
        assert resp.status_code == 200
        assert resp.json["subscription"]["plan"]["name"] == "beginner"
        assert wallet_service.get_balance(profile_a.id) == 100

        debit = db.session.query(WalletTransaction).filter_by(user_id=profile_a.id, type="subscription_debit").one()
        assert debit.amount_paise == -19900

        log = db.session.query(EmailLog).filter_by(template="subscription_confirmation").one()
        assert log.recipient == profile_a.email
        assert log.status == "sent"

    def test_contract_pdf_failure_does_not_block_activation(self, app, client, headers_a, profile_a, monkeypatch):
        from resellerpro.services import mail_service

        def broken_pdf(data):
            raise RuntimeError("font missing")

        monkeypatch.setattr(mail_service, "generate_contract_pdf", broken_pdf)
        wallet_service.credit(profile_a.id, 20000, "admin_adjustment", "test credit")
        db.session.commit()

        resp = client.post("/api/subscription/activate-wallet", headers=headers_a, json={"plan_id": _plan_id("beginner")})
        assert resp.status_code == 200
        assert plan_service.get_active_plan(profile_a.id).name == "beginner"

        log = db.session.query(EmailLog).filter_by(template="subscription_confirmation").one()
        assert log.status == "failed"
        assert "font missing" in log.error


class TestClientVerify:
    def test_verify_activates_plan(self, client, headers_a, profile_a):
        order_id = client.post(
            "/api/subscription/checkout", headers=headers_a, json={"plan_id": _plan_id("professional")}
        ).json["order_id"]

        resp = client.post("/api/subscription/verify", headers=headers_a, json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_mock_1",
            "razorpay_signature": "mock",
        })
        assert resp.status_code == 200
        assert resp.json["already_processed"] is False
        assert resp.json["subscription"]["plan"]["name"] == "professional"

        txn = db.session.query(PaymentTransaction).filter_by(razorpay_order_id=order_id).one()
        assert txn.status == "success"
        assert txn.source == "client"

        again = client.post("/api/subscription/verify", headers=headers_a, json={
            "order_id": order_id, "payment_id": "pay_mock_1", "signature": "mock",
        })
        assert again.json["already_processed"] is True

    def test_verify_unknown_order(self, client, headers_a):
        resp = client.post("/api/subscription/verify", headers=headers_a, json={
            "order_id": "order_missing", "payment_id": "pay_1", "signature": "x",
        })
        assert resp.status_code == 400


class TestWebhook:
    def test_missing_signature(self, client, profile_a):
        resp = _post_webhook(client, _event("order_test_1"), signature=False)
        assert resp.status_code == 401

    def test_bad_signature(self, client, profile_a):
        resp = _post_webhook(client, _event("order_test_1"), signature="deadbeef")
        assert resp.status_code == 400

    def test_unhandled_event_acknowledged(self, client):
        resp = _post_webhook(client, _event("order_x", event="refund.created"))
        assert resp.status_code == 200
        assert resp.json == {"received": True}

    def test_unknown_order_ignored(self, client):
        resp = _post_webhook(client, _event("order_nobody"))
        assert resp.status_code == 200
        assert resp.json["message"] == "Transaction not found, ignoring"

    def test_missing_order_id(self, client):
        body = json.dumps({"event": "payment.captured", "payload": {}}).encode("utf-8")
        resp = _post_webhook(client, body)
        assert resp.status_code == 400

    def test_order_paid_falls_back_to_order_entity(self, client, profile_a):
        _pending_txn(profile_a, "professional")
        body = json.dumps({
            "event": "order.paid",
            "payload": {"order": {"entity": {"id": "order_test_1"}}},
        }).encode("utf-8")

        resp = _post_webhook(client, body)
        assert resp.status_code == 200
        assert plan_service.get_active_plan(profile_a.id).name == "professional"
        txn = db.session.query(PaymentTransaction).filter_by(razorpay_order_id="order_test_1").one()
        assert txn.status == "success"

    def test_transaction_without_plan_is_rejected(self, client, profile_a):
        txn = _pending_txn(profile_a)
        txn.details = {"wallet_applied_paise": 0}
        db.session.commit()

        resp = _post_webhook(client, _event("order_test_1"))
        assert resp.status_code == 400
        assert plan_service.get_active_plan(profile_a.id).name == "free"

    def test_activation_debits_wallet_share_and_replay_is_noop(self, client, profile_a):
        wallet_service.credit(profile_a.id, 5000, "admin_adjustment", "test credit")
        db.session.commit()
        _pending_txn(profile_a, "beginner", wallet_applied=5000)

        resp = _post_webhook(client, _event("order_test_1"))
        assert resp.status_code == 200
        assert resp.json == {"received": True}

        sub = db.session.query(Subscription).filter_by(user_id=profile_a.id).one()
        assert sub.plan.name == "beginner"
        assert sub.current_period_end is not None
        assert wallet_service.get_balance(profile_a.id) == 0

        txn = db.session.query(PaymentTransaction).filter_by(razorpay_order_id="order_test_1").one()
        assert txn.status == "success"
        assert txn.razorpay_payment_id == "pay_test_1"

        replay = _post_webhook(client, _event("order_test_1"))
        assert replay.status_code == 200
        assert replay.json["message"] == "Already processed"
        assert db.session.query(WalletTransaction).filter_by(type="subscription_debit").count() == 1

    def test_wallet_debit_failure_still_activates(self, client, profile_a):
        # Wallet spent elsewhere between checkout and capture
        _pending_txn(profile_a, "beginner", wallet_applied=5000)

        resp = _post_webhook(client, _event("order_test_1", event="order.paid"))
        assert resp.status_code == 200
        assert plan_service.get_active_plan(profile_a.id).name == "beginner"

    def test_first_paid_plan_rewards_referrer(self, client, profile_a):
        from resellerpro.services import auth_service
        friend = auth_service.signup(
            email="friend@example.in", password="Password123!", full_name="Friend",
            referral_code=profile_a.referral_code,
        )
        _pending_txn(friend, "beginner")

        _post_webhook(client, _event("order_test_1"))

        referral = db.session.query(Referral).filter_by(referee_id=friend.id).one()
        assert referral.status == "completed"
        assert wallet_service.get_balance(profile_a.id) == 7500

        # A second purchase does not pay again
        _pending_txn(friend, "beginner", order_id="order_test_2")
        _post_webhook(client, _event("order_test_2", payment_id="pay_test_2"))
        assert wallet_service.get_balance(profile_a.id) == 7500


class TestCancelAndExpiry:
    def test_cancel_free_plan_rejected(self, client, headers_a):
        assert client.post("/api/subscription/cancel", headers=headers_a).status_code == 400

    def test_cancel_keeps_plan_until_period_end(self, client, headers_a, profile_a):
        set_plan(profile_a, "professional")
        resp = client.post("/api/subscription/cancel", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["subscription"]["cancel_at_period_end"] is True
        assert plan_service.get_active_plan(profile_a.id).name == "professional"

    def test_expired_plan_downgrades_on_read(self, app, profile_a):
        sub = set_plan(profile_a, "business")
        sub.current_period_end = utcnow() - timedelta(minutes=1)
        db.session.commit()

        assert plan_service.get_active_plan(profile_a.id).name == "free"
        sub = db.session.query(Subscription).filter_by(user_id=profile_a.id).one()
        assert sub.current_period_end is None

    def test_activation_is_one_calendar_month(self, app, profile_a):
        sub = set_plan(profile_a, "beginner")
        start, end = sub.current_period_start, sub.current_period_end
        assert end > start
        assert (end - start) <= timedelta(days=31)

    def test_activate_with_wallet_service_error(self, app, profile_a):
        with pytest.raises(BillingError):
            billing_service.activate_with_wallet(profile_a, _plan_id("business"))
