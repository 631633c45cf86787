"""Analytics report, dashboard summary and global search."""

from datetime import timedelta

from conftest import set_plan
from resellerpro.extensions import db
from resellerpro.models import Order
from resellerpro.services import order_service
from resellerpro.time_utils import utcnow


def _order(profile, customer, product, quantity=1):
    return order_service.create_order(profile.id, {
        "customer_id": customer.id, "items": [{"product_id": product.id, "quantity": quantity}],
    })


class TestAnalytics:
    def test_free_plan_range_is_restricted(self, client, headers_a):
        body = client.get("/api/analytics", headers=headers_a).json
        assert body["range"]["restricted"] is True

    def test_paid_plan_gets_thirty_days(self, client, headers_a, profile_a):
        set_plan(profile_a, "beginner")
        body = client.get("/api/analytics", headers=headers_a).json
        assert body["range"]["restricted"] is False
        assert len(body["daily"]) == 30

    def test_totals_exclude_cancelled(self, client, headers_a, profile_a, customer_a, product_a):
        _order(profile_a, customer_a, product_a, quantity=2)
        cancelled = _order(profile_a, customer_a, product_a)
        order_service.update_status(user_id=profile_a.id, order_id=cancelled["id"], new_status="cancelled")

        body = client.get("/api/analytics", headers=headers_a).json
        assert body["stats"]["order_count"] == 1
        assert body["stats"]["revenue_paise"] == 99800
        assert body["stats"]["profit_paise"] == 99800 - 60000
        assert body["status_breakdown"] == {"pending": 1, "cancelled": 1}
        assert body["revenue_by_category"] == [{"category": "Apparel", "revenue_paise": 99800}]
        assert body["top_products"][0]["name"] == "Cotton Kurti"
        assert body["top_customers"][0]["name"] == "Meena Iyer"

    def test_previous_period_comparison(self, client, headers_a, profile_a, customer_a, product_a):
        set_plan(profile_a, "professional")
        old = _order(profile_a, customer_a, product_a)
        db.session.get(Order, old["id"]).created_at = utcnow() - timedelta(days=40)
        db.session.commit()
        _order(profile_a, customer_a, product_a, quantity=2)

        body = client.get("/api/analytics", headers=headers_a).json
        assert body["previous"]["revenue_paise"] == 49900
        assert body["changes"]["revenue"] == 100.0
        assert body["changes"]["orders"] == 0

    def test_bad_range(self, client, headers_a):
        assert client.get("/api/analytics?from=nope", headers=headers_a).status_code == 400
        resp = client.get("/api/analytics?from=2030-02-01&to=2030-01-01", headers=headers_a)
        assert resp.status_code == 400


class TestDashboard:
    def test_dashboard_summary(self, client, headers_a, profile_a, customer_a, product_a, enquiry_a):
        _order(profile_a, customer_a, product_a)
        product_a.stock_quantity = 2
        product_a.stock_status = "low_stock"
        db.session.commit()

        body = client.get("/api/dashboard", headers=headers_a).json
        assert body["today"]["orders"] == 1
        assert body["pending_orders"] == 1
        assert body["open_enquiries"] == 1
        assert body["low_stock_products"] == 1
        assert body["customers"] == 1
        assert len(body["recent_orders"]) == 1
        assert body["plan"]["name"] == "free"
        assert body["usage"]["orders"]["used"] == 1


class TestSearch:
    def test_short_term_returns_nothing(self, client, headers_a, product_a):
        body = client.get("/api/search?q=k", headers=headers_a).json
        assert body["total"] == 0

    def test_search_across_types(self, client, headers_a, profile_a, customer_a, product_a, enquiry_a):
        _order(profile_a, customer_a, product_a)

        body = client.get("/api/search?q=kurti", headers=headers_a).json
        assert [p["name"] for p in body["products"]] == ["Cotton Kurti"]

        body = client.get("/api/search?q=meena", headers=headers_a).json
        assert len(body["customers"]) == 1
        assert len(body["orders"]) == 1

        body = client.get("/api/search?q=%231&type=orders", headers=headers_a).json
        assert body["orders"][0]["order_number"] == 1
        assert body["products"] == []

        body = client.get("/api/search?q=ravi", headers=headers_a).json
        assert body["enquiries"][0]["customer_name"] == "Ravi Verma"

    def test_bad_type(self, client, headers_a):
        assert client.get("/api/search?q=kurti&type=invoices", headers=headers_a).status_code == 400
