"""
Enquiry lifecycle tests.

Verifies:
- Status changes follow the allowed transitions and log a follow-up
- Converted and dropped enquiries are read-only
- Conversion creates (or reuses) the customer and the order atomically
"""

from resellerpro.extensions import db
from resellerpro.models import Customer, Enquiry, EnquiryFollowUp, Order
from resellerpro.services import enquiry_service


class TestTransitions:
    def test_transition_table(self):
        assert enquiry_service.is_valid_transition("new", "needs_follow_up")
        assert enquiry_service.is_valid_transition("needs_follow_up", "converted")
        assert not enquiry_service.is_valid_transition("converted", "new")
        assert not enquiry_service.is_valid_transition("dropped", "needs_follow_up")
        assert enquiry_service.TERMINAL_STATUSES == {"converted", "dropped"}

    def test_create_starts_new(self, client, headers_a):
        resp = client.post("/api/enquiries", headers=headers_a, json={
            "customer_name": "Lata Menon", "phone": "9444444444", "source": "instagram",
        })
        assert resp.status_code == 201
        assert resp.json["status"] == "new"

    def test_status_change_logs_follow_up(self, client, headers_a, enquiry_a):
        resp = client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={
            "status": "needs_follow_up", "note": "Asked for size chart",
        })
        assert resp.status_code == 200
        assert resp.json["status"] == "needs_follow_up"
        assert resp.json["follow_up_count"] == 1

        entry = db.session.query(EnquiryFollowUp).filter_by(enquiry_id=enquiry_a.id).one()
        assert entry.action == "status_changed"
        assert entry.note == "Asked for size chart"

    def test_unknown_status_rejected(self, client, headers_a, enquiry_a):
        resp = client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={"status": "won"})
        assert resp.status_code == 400

    def test_terminal_enquiry_is_read_only(self, client, headers_a, enquiry_a):
        client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={"status": "dropped"})

        resp = client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={"message": "changed"})
        assert resp.status_code == 400
        assert db.session.get(Enquiry, enquiry_a.id).message == "Is the kurti available in XL?"

        resp = client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={"status": "new"})
        assert resp.status_code == 400

    def test_converted_enquiry_is_read_only(self, client, headers_a, enquiry_a, product_a):
        resp = client.post(f"/api/enquiries/{enquiry_a.id}/convert", headers=headers_a, json={
            "items": [{"product_id": product_a.id}],
        })
        assert resp.status_code == 201

        resp = client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={"message": "changed"})
        assert resp.status_code == 400
        resp = client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={"status": "dropped"})
        assert resp.status_code == 400
        assert db.session.get(Enquiry, enquiry_a.id).status == "converted"

    def test_illegal_transition_lists_allowed(self, client, headers_a, enquiry_a):
        client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={"status": "needs_follow_up"})

        resp = client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={"status": "new"})
        assert resp.status_code == 400
        assert resp.json["allowed_transitions"] == ["converted", "dropped"]
        assert db.session.get(Enquiry, enquiry_a.id).status == "needs_follow_up"

    def test_restricted_field_rejected(self, client, headers_a, enquiry_a):
        resp = client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={"converted_order_id": 5})
        assert resp.status_code == 400

    def test_rescheduling_rearms_reminder(self, client, headers_a, enquiry_a):
        enquiry_a.followup_notified = True
        db.session.commit()
        resp = client.patch(f"/api/enquiries/{enquiry_a.id}", headers=headers_a, json={
            "followup_date": "2030-01-15T10:00:00Z",
        })
        assert resp.status_code == 200
        assert db.session.get(Enquiry, enquiry_a.id).followup_notified is False


class TestFollowUps:
    def test_contact_action_stamps_last_contacted(self, client, headers_a, enquiry_a):
        resp = client.post(f"/api/enquiries/{enquiry_a.id}/follow-ups", headers=headers_a, json={
            "action": "whatsapp_sent", "whatsapp_message": "Hi Ravi, XL is in stock",
        })
        assert resp.status_code == 201

        enquiry = db.session.get(Enquiry, enquiry_a.id)
        assert enquiry.last_contacted_at is not None
        assert enquiry.follow_up_count == 1

        listed = client.get(f"/api/enquiries/{enquiry_a.id}/follow-ups", headers=headers_a).json["items"]
        assert listed[0]["whatsapp_message"] == "Hi Ravi, XL is in stock"

    def test_schedule_requires_date(self, client, headers_a, enquiry_a):
        resp = client.post(f"/api/enquiries/{enquiry_a.id}/follow-ups", headers=headers_a, json={
            "action": "follow_up_scheduled",
        })
        assert resp.status_code == 400

    def test_unknown_action(self, client, headers_a, enquiry_a):
        resp = client.post(f"/api/enquiries/{enquiry_a.id}/follow-ups", headers=headers_a, json={"action": "emailed"})
        assert resp.status_code == 400


class TestConversion:
    def test_convert_creates_customer_and_order(self, client, headers_a, enquiry_a, product_a):
        resp = client.post(f"/api/enquiries/{enquiry_a.id}/convert", headers=headers_a, json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "customer": {"city": "Kochi"},
        })
        assert resp.status_code == 201
        body = resp.json
        assert body["enquiry"]["status"] == "converted"
        assert body["enquiry"]["converted_order_id"] == body["order"]["id"]
        assert body["order"]["enquiry_id"] == enquiry_a.id
        assert body["order"]["payment_status"] == "unpaid"
        assert body["customer"]["phone"] == enquiry_a.phone
        assert body["customer"]["city"] == "Kochi"

    def test_convert_reuses_customer_with_same_phone(self, client, headers_a, enquiry_a, product_a, profile_a):
        existing = Customer(user_id=profile_a.id, name="Ravi V", phone=enquiry_a.phone)
        db.session.add(existing)
        db.session.commit()

        resp = client.post(f"/api/enquiries/{enquiry_a.id}/convert", headers=headers_a, json={
            "items": [{"product_id": product_a.id}],
        })
        assert resp.status_code == 201
        assert resp.json["customer"]["id"] == existing.id
        assert db.session.query(Customer).filter_by(user_id=profile_a.id).count() == 1

    def test_invalid_overrides_rejected_for_existing_customer(self, client, headers_a, enquiry_a, product_a, profile_a):
        existing = Customer(user_id=profile_a.id, name="Ravi V", phone=enquiry_a.phone)
        db.session.add(existing)
        db.session.commit()

        resp = client.post(f"/api/enquiries/{enquiry_a.id}/convert", headers=headers_a, json={
            "items": [{"product_id": product_a.id}],
            "customer": {"customer_type": "platinum", "email": "not-an-email", "pincode": "abc"},
        })
        assert resp.status_code == 400

        customer = db.session.get(Customer, existing.id)
        assert customer.customer_type == "active"
        assert customer.email is None
        assert customer.pincode is None
        assert db.session.query(Order).count() == 0
        assert db.session.get(Enquiry, enquiry_a.id).status == "new"

    def test_invalid_overrides_rejected_for_new_customer(self, client, headers_a, enquiry_a, product_a):
        for overrides in ({"pincode": 12345}, {"email": "nope"}, {"customer_type": "platinum"}, {"loyalty": "gold"}):
            resp = client.post(f"/api/enquiries/{enquiry_a.id}/convert", headers=headers_a, json={
                "items": [{"product_id": product_a.id}], "customer": overrides,
            })
            assert resp.status_code == 400, overrides
        assert db.session.query(Customer).count() == 0
        assert db.session.query(Order).count() == 0

    def test_numeric_name_override_is_coerced(self, client, headers_a, enquiry_a, product_a):
        resp = client.post(f"/api/enquiries/{enquiry_a.id}/convert", headers=headers_a, json={
            "items": [{"product_id": product_a.id}], "customer": {"name": 12345},
        })
        assert resp.status_code == 201
        assert resp.json["customer"]["name"] == "12345"

    def test_failed_conversion_leaves_nothing_behind(self, client, headers_a, enquiry_a):
        resp = client.post(f"/api/enquiries/{enquiry_a.id}/convert", headers=headers_a, json={
            "items": [{"product_id": 424242}],
        })
        assert resp.status_code == 400
        assert db.session.query(Customer).count() == 0
        assert db.session.query(Order).count() == 0
        assert db.session.get(Enquiry, enquiry_a.id).status == "new"

    def test_converted_enquiry_cannot_convert_again(self, client, headers_a, enquiry_a, product_a):
        body = {"items": [{"product_id": product_a.id}]}
        client.post(f"/api/enquiries/{enquiry_a.id}/convert", headers=headers_a, json=body)
        resp = client.post(f"/api/enquiries/{enquiry_a.id}/convert", headers=headers_a, json=body)
        assert resp.status_code == 400


class TestDeleteAndStats:
    def test_soft_delete_still_counts_toward_month(self, client, headers_a, enquiry_a, profile_a):
        assert client.delete(f"/api/enquiries/{enquiry_a.id}", headers=headers_a).status_code == 200
        assert client.get(f"/api/enquiries/{enquiry_a.id}", headers=headers_a).status_code == 404

        usage = client.get("/api/auth/me", headers=headers_a).json["usage"]
        assert usage["enquiries"]["used"] == 1

    def test_stats_conversion_rate(self, client, headers_a, enquiry_a, product_a):
        client.post("/api/enquiries", headers=headers_a, json={"customer_name": "Second Lead", "phone": "9555555555"})
        client.post(f"/api/enquiries/{enquiry_a.id}/convert", headers=headers_a, json={
            "items": [{"product_id": product_a.id}],
        })
        stats = client.get("/api/enquiries/stats", headers=headers_a).json
        assert stats["total"] == 2
        assert stats["converted"] == 1
        assert stats["conversion_rate"] == 50.0
