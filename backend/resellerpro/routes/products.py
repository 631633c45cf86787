# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/resellerpro/routes/products.py
"""
Product catalog routes.

All operations are scoped to the caller (g.user_id). Products of other
resellers answer 404. Creation beyond the plan's product limit answers 403;
a duplicate SKU answers 409.
"""
from flask import Blueprint, request, g, current_app
from ..services import products_service
from ..services.plan_service import PlanLimitError
from ..services.tenant_service import TenantAccessError
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "category", "sku",
        "cost_price_paise", "selling_price_paise",
        "stock_quantity", "stock_status", "images", "is_active",
    },
    required_on_create={"name", "cost_price_paise", "selling_price_paise"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - search: matches name, SKU or description
    - category: a category, or low_stock / out_of_stock
    - sort: name, created_at, selling_price, cost_price, stock_quantity (prefix "-" for descending)
    - page, limit
    """
    return products_service.list_products(
        g.user_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
        sort=request.args.get("sort"),
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
    )


@products_bp.get("/stats")
@require_auth
def product_stats():
    return products_service.get_product_stats(g.user_id)


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return products_service.get_product(g.user_id, product_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch, user_id=g.user_id)
    except PlanLimitError as e:
        return {"error": str(e), "limit_reached": True}, 403
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch, user_id=g.user_id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except TenantAccessError:
        return {"error": "Product not found"}, 404
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id=product_id, user_id=g.user_id)
    except TenantAccessError:
        return {"error": "Product not found"}, 404

    return {"ok": True}, 200
