"""Cron endpoints: bearer secret, reminder emails and expiry downgrade."""

from datetime import timedelta

import pytest

from conftest import CRON_SECRET, auth_headers, set_plan
from resellerpro.extensions import db, mail
from resellerpro.models import Enquiry, Order, Profile, Subscription
from resellerpro.services import cron_service, order_service
from resellerpro.time_utils import utcnow


CRON_HEADERS = auth_headers(CRON_SECRET)


class TestCronAuth:
    @pytest.mark.parametrize("path", [
        "/api/cron/enquiry-alert",
        "/api/cron/order-update",
        "/api/cron/subscription-check",
    ])
    def test_requires_secret(self, client, path):
        assert client.get(path).status_code == 401
        assert client.get(path, headers=auth_headers("wrong")).status_code == 401
        assert client.get(path, headers=CRON_HEADERS).status_code == 200

    def test_unset_secret_refuses_everything(self, app, client):
        app.config["CRON_SECRET"] = ""
        resp = client.get("/api/cron/enquiry-alert", headers=auth_headers(""))
        assert resp.status_code == 401

    def test_unknown_job(self, app):
        with pytest.raises(ValueError):
            cron_service.run_job("weekly-digest")


class TestEnquiryAlert:
    def test_one_email_per_reseller_then_quiet(self, client, profile_a, enquiry_a):
        db.session.add(Enquiry(user_id=profile_a.id, customer_name="Second Lead", phone="9666666666", status="needs_follow_up"))
        db.session.add(Enquiry(user_id=profile_a.id, customer_name="Closed Lead", phone="9777777777", status="dropped"))
        db.session.commit()

        with mail.record_messages() as outbox:
            resp = client.get("/api/cron/enquiry-alert", headers=CRON_HEADERS)
            assert resp.json["results"] == {"processed": 2, "users": 1, "emails_sent": 1}
            assert len(outbox) == 1
            assert outbox[0].recipients == [profile_a.email]
            assert outbox[0].subject == "You have 2 pending enquiries"

            again = client.get("/api/cron/enquiry-alert", headers=CRON_HEADERS)
            assert again.json["results"]["emails_sent"] == 0
            assert len(outbox) == 1

    def test_gap_elapsed_sends_again(self, client, enquiry_a):
        enquiry_a.last_reminder_sent_at = utcnow() - cron_service.REMINDER_GAP - timedelta(minutes=1)
        db.session.commit()
        resp = client.get("/api/cron/enquiry-alert", headers=CRON_HEADERS)
        assert resp.json["results"]["emails_sent"] == 1


class TestOrderUpdate:
    def test_pending_orders_emailed_once(self, client, profile_a, customer_a, product_a):
        order_service.create_order(profile_a.id, {
            "customer_id": customer_a.id, "items": [{"product_id": product_a.id}],
        })
        shipped = order_service.create_order(profile_a.id, {
            "customer_id": customer_a.id, "items": [{"product_id": product_a.id}],
        })
        order_service.update_status(user_id=profile_a.id, order_id=shipped["id"], new_status="processing")

        with mail.record_messages() as outbox:
            resp = client.get("/api/cron/order-update", headers=CRON_HEADERS)
            assert resp.json["results"] == {"processed": 1, "emails_sent": 1}
            assert outbox[0].subject == "Reminder: Order #1 is still pending"

        order = db.session.query(Order).filter_by(order_number=1).one()
        assert order.last_update_email_sent_at is not None


class TestSubscriptionCheck:
    def _ending_in(self, profile, days):
        sub = set_plan(profile, "professional")
        sub.current_period_end = utcnow() + timedelta(days=days) - timedelta(minutes=5)
        db.session.commit()
        return sub

    def test_seven_day_reminder_sent_once(self, client, profile_a):
        self._ending_in(profile_a, 7)

        with mail.record_messages() as outbox:
            first = client.get("/api/cron/subscription-check", headers=CRON_HEADERS).json["results"]
            second = client.get("/api/cron/subscription-check", headers=CRON_HEADERS).json["results"]
            assert len(outbox) == 1
            assert "7 Days" in outbox[0].subject

        assert first["sent7d"] == 1
        assert second["sent7d"] == 0
        assert db.session.get(Profile, profile_a.id).reminder_7d_sent_at is not None

    def test_off_bucket_days_send_nothing(self, client, profile_a):
        self._ending_in(profile_a, 5)
        results = client.get("/api/cron/subscription-check", headers=CRON_HEADERS).json["results"]
        assert results["checked"] == 1
        assert results["sent7d"] + results["sent3d"] + results["sent1d"] == 0

    def test_cancelled_subscription_gets_no_reminder(self, client, profile_a):
        sub = self._ending_in(profile_a, 3)
        sub.cancel_at_period_end = True
        db.session.commit()
        results = client.get("/api/cron/subscription-check", headers=CRON_HEADERS).json["results"]
        assert results["sent3d"] == 0

    def test_expired_plan_downgraded(self, client, profile_a, profile_b):
        sub = set_plan(profile_a, "beginner")
        sub.current_period_end = utcnow() - timedelta(hours=1)
        db.session.commit()

        results = client.get("/api/cron/subscription-check", headers=CRON_HEADERS).json["results"]
        assert results["downgraded"] == 1
        sub = db.session.query(Subscription).filter_by(user_id=profile_a.id).one()
        assert sub.plan.name == "free"

    def test_renewal_rearms_reminders(self, app, profile_a):
        self._ending_in(profile_a, 1)
        cron_service.run_subscription_check()
        assert db.session.get(Profile, profile_a.id).reminder_1d_sent_at is not None

        set_plan(profile_a, "professional")
        assert db.session.get(Profile, profile_a.id).reminder_1d_sent_at is None
