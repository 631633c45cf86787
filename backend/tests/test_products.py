"""Product catalog: validation, plan limits, image caps and SKU uniqueness."""

from conftest import set_plan
from resellerpro.extensions import db
from resellerpro.models import Notification, Product
from resellerpro.services import plan_service


def _product_body(**overrides):
    body = {
        "name": "Silk Saree",
        "category": "Apparel",
        "sku": "SAREE-001",
        "cost_price_paise": 120000,
        "selling_price_paise": 180000,
        "stock_quantity": 10,
    }
    body.update(overrides)
    return body


class TestCreateProduct:
    def test_create_product(self, client, headers_a):
        resp = client.post("/api/products", headers=headers_a, json=_product_body())
        assert resp.status_code == 201
        assert resp.json["profit_paise"] == 60000
        assert resp.json["stock_status"] == "in_stock"

    def test_missing_required_fields(self, client, headers_a):
        resp = client.post("/api/products", headers=headers_a, json={"name": "No Prices"})
        assert resp.status_code == 400
        assert "cost_price_paise" in resp.json["error"]

    def test_decimal_price_rejected(self, client, headers_a):
        resp = client.post("/api/products", headers=headers_a, json=_product_body(selling_price_paise=1999.5))
        assert resp.status_code == 400

    def test_negative_price_rejected(self, client, headers_a):
        resp = client.post("/api/products", headers=headers_a, json=_product_body(cost_price_paise=-1))
        assert resp.status_code == 400

    def test_unknown_field_rejected(self, client, headers_a):
        resp = client.post("/api/products", headers=headers_a, json=_product_body(user_id=999))
        assert resp.status_code == 400

    def test_duplicate_sku_conflicts(self, client, headers_a, product_a):
        resp = client.post("/api/products", headers=headers_a, json=_product_body(sku=product_a.sku))
        assert resp.status_code == 409

    def test_same_sku_allowed_for_other_reseller(self, client, headers_b, product_a):
        resp = client.post("/api/products", headers=headers_b, json=_product_body(sku=product_a.sku))
        assert resp.status_code == 201

    def test_low_quantity_derives_low_stock(self, client, headers_a):
        resp = client.post("/api/products", headers=headers_a, json=_product_body(stock_quantity=3))
        assert resp.json["stock_status"] == "low_stock"


class TestProductImages:
    def test_free_plan_keeps_two_images(self, client, headers_a):
        images = [f"https://cdn.example.in/p/{i}.jpg" for i in range(4)]
        resp = client.post("/api/products", headers=headers_a, json=_product_body(images=images))
        assert resp.status_code == 201
        assert resp.json["images"] == images[:2]
        assert resp.json["image_url"] == images[0]

    def test_professional_plan_keeps_five_images(self, client, headers_a, profile_a):
        set_plan(profile_a, "professional")
        images = [f"https://cdn.example.in/p/{i}.jpg" for i in range(7)]
        resp = client.post("/api/products", headers=headers_a, json=_product_body(images=images))
        assert resp.status_code == 201
        assert len(resp.json["images"]) == 5

    def test_business_plan_capped_at_ten(self, app, profile_a):
        set_plan(profile_a, "business")
        assert plan_service.product_image_cap(profile_a.id) == plan_service.MAX_PRODUCT_IMAGES

    def test_clearing_images_clears_image_url(self, client, headers_a):
        created = client.post(
            "/api/products", headers=headers_a, json=_product_body(images=["https://cdn.example.in/a.jpg"])
        ).json
        resp = client.put(f"/api/products/{created['id']}", headers=headers_a, json={"images": []})
        assert resp.status_code == 200
        assert resp.json["image_url"] is None


class TestProductLimit:
    def test_free_plan_product_limit(self, client, headers_a, profile_a):
        limit = plan_service.PLAN_LIMITS["free"]["product_limit"]
        for i in range(limit):
            db.session.add(Product(
                user_id=profile_a.id, name=f"Item {i}", cost_price_paise=100, selling_price_paise=200, images=[]
            ))
        db.session.commit()

        resp = client.post("/api/products", headers=headers_a, json=_product_body())
        assert resp.status_code == 403
        assert resp.json["limit_reached"] is True


class TestListAndUpdate:
    def test_search_and_category_filters(self, client, headers_a, product_a):
        client.post("/api/products", headers=headers_a, json=_product_body(name="Brass Lamp", category="Decor", sku="LAMP-1"))

        resp = client.get("/api/products?search=kurti", headers=headers_a)
        assert [p["name"] for p in resp.json["items"]] == ["Cotton Kurti"]

        resp = client.get("/api/products?category=Decor", headers=headers_a)
        assert [p["name"] for p in resp.json["items"]] == ["Brass Lamp"]

    def test_sort_by_price(self, client, headers_a, product_a):
        client.post("/api/products", headers=headers_a, json=_product_body(name="Brass Lamp", sku="LAMP-1"))
        resp = client.get("/api/products?sort=-selling_price", headers=headers_a)
        prices = [p["selling_price_paise"] for p in resp.json["items"]]
        assert prices == sorted(prices, reverse=True)

    def test_stock_drop_notifies(self, client, headers_a, product_a, profile_a):
        resp = client.put(f"/api/products/{product_a.id}", headers=headers_a, json={"stock_quantity": 0})
        assert resp.status_code == 200
        assert resp.json["stock_status"] == "out_of_stock"

        note = db.session.query(Notification).filter_by(user_id=profile_a.id, type="low_stock").one()
        assert note.priority == "high"

    def test_stats(self, client, headers_a, product_a):
        resp = client.get("/api/products/stats", headers=headers_a)
        assert resp.json["total"] == 1
        assert resp.json["inventory_value_paise"] == 30000 * 20

    def test_delete(self, client, headers_a, product_a):
        assert client.delete(f"/api/products/{product_a.id}", headers=headers_a).status_code == 200
        assert client.get(f"/api/products/{product_a.id}", headers=headers_a).status_code == 404
