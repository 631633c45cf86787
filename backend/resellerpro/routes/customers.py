# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

"""
Customer routes. Deleting a customer is a soft delete; their orders stay.
"""
from flask import Blueprint, request, g, current_app
from ..services import customer_service
from ..services.plan_service import PlanLimitError
from ..services.tenant_service import TenantAccessError
from ..models import Customer
from ..validation import (
    validate_payload,
    enforce_rules_customer,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth

CUSTOMER_POLICY = customer_service.CUSTOMER_POLICY

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers():
    return customer_service.list_customers(
        g.user_id,
        search=request.args.get("search"),
        customer_type=request.args.get("type"),
        sort=request.args.get("sort"),
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
    )


@customers_bp.get("/stats")
@require_auth
def customer_stats():
    return customer_service.get_customer_stats(g.user_id)


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        return customer_service.get_customer(g.user_id, customer_id)
    except TenantAccessError:
        return {"error": "Customer not found"}, 404


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = customer_service.create_customer(patch=patch, user_id=g.user_id)
    except PlanLimitError as e:
        return {"error": str(e), "limit_reached": True}, 403
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return {"error": "Internal server error"}, 500

    return created, 201


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        return customer_service.update_customer(customer_id=customer_id, patch=patch, user_id=g.user_id)
    except TenantAccessError:
        return {"error": "Customer not found"}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id=customer_id, user_id=g.user_id)
    except TenantAccessError:
        return {"error": "Customer not found"}, 404
    return {"ok": True}, 200
