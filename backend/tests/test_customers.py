"""Customer CRUD, per-reseller phone uniqueness and soft delete."""

from resellerpro.extensions import db
from resellerpro.models import Customer


class TestCustomers:
    def test_create_defaults_whatsapp_to_phone(self, client, headers_a):
        resp = client.post("/api/customers", headers=headers_a, json={
            "name": "Farah Sheikh",
            "phone": "9812345678",
            "city": "Pune",
            "pincode": "411001",
        })
        assert resp.status_code == 201
        assert resp.json["whatsapp"] == "9812345678"
        assert resp.json["customer_type"] == "active"

    def test_invalid_phone(self, client, headers_a):
        resp = client.post("/api/customers", headers=headers_a, json={"name": "Bad Phone", "phone": "12ab"})
        assert resp.status_code == 400

    def test_invalid_pincode(self, client, headers_a):
        resp = client.post("/api/customers", headers=headers_a, json={
            "name": "Bad Pin", "phone": "9812345678", "pincode": "4110",
        })
        assert resp.status_code == 400

    def test_duplicate_phone_conflicts(self, client, headers_a, customer_a):
        resp = client.post("/api/customers", headers=headers_a, json={"name": "Copy", "phone": customer_a.phone})
        assert resp.status_code == 409

    def test_update_to_taken_phone_conflicts(self, client, headers_a, customer_a):
        other = client.post("/api/customers", headers=headers_a, json={"name": "Other", "phone": "9811111111"}).json
        resp = client.put(f"/api/customers/{other['id']}", headers=headers_a, json={"phone": customer_a.phone})
        assert resp.status_code == 409

    def test_soft_delete_hides_customer_and_frees_phone(self, client, headers_a, customer_a):
        assert client.delete(f"/api/customers/{customer_a.id}", headers=headers_a).status_code == 200
        assert client.get(f"/api/customers/{customer_a.id}", headers=headers_a).status_code == 404
        assert db.session.get(Customer, customer_a.id).is_deleted is True

        resp = client.post("/api/customers", headers=headers_a, json={"name": "Meena Again", "phone": customer_a.phone})
        assert resp.status_code == 201

    def test_list_filters_by_type(self, client, headers_a, customer_a):
        client.post("/api/customers", headers=headers_a, json={
            "name": "Big Spender", "phone": "9822222222", "customer_type": "vip",
        })
        resp = client.get("/api/customers?type=vip", headers=headers_a)
        assert [c["name"] for c in resp.json["items"]] == ["Big Spender"]

        resp = client.get("/api/customers?search=meena", headers=headers_a)
        assert resp.json["count"] == 1

    def test_detail_includes_recent_orders(self, client, headers_a, customer_a, product_a):
        client.post("/api/orders", headers=headers_a, json={
            "customer_id": customer_a.id,
            "items": [{"product_id": product_a.id, "quantity": 2}],
        })
        resp = client.get(f"/api/customers/{customer_a.id}", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["total_orders"] == 1
        assert resp.json["total_spent_paise"] == 2 * 49900
        assert len(resp.json["recent_orders"]) == 1
