# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

"""
Order routes.

Totals are computed server-side from the line items. Status changes go
through POST /<id>/status and must follow the order status flow
(GET /<id>/transitions lists the legal next statuses).
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import order_service
from ..services.order_service import OrderStatusError
from ..services.plan_service import PlanLimitError
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError
from ..decorators import require_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    Query params: search (#number, phone or customer name), status,
    payment_status, from, to (ISO dates), sort, page, limit.
    """
    try:
        result = order_service.list_orders(
            g.user_id,
            search=request.args.get("search"),
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
            date_from=request.args.get("from"),
            date_to=request.args.get("to"),
            sort=request.args.get("sort"),
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result), 200


@orders_bp.get("/stats")
@require_auth
def order_stats_route():
    return jsonify(order_service.get_order_stats(g.user_id)), 200


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Body:
    {
        "customer_id": 1,
        "items": [{"product_id": 3, "quantity": 2, "unit_selling_price_paise": 49900}],
        "discount_paise": 0,
        "shipping_cost_paise": 5000,
        "payment_status": "pending",
        "payment_method": "upi",
        "notes": "..."
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(g.user_id, payload)
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except PlanLimitError as e:
        return jsonify({"error": str(e), "limit_reached": True}), 403
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(order), 201


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order(g.user_id, order_id)), 200
    except TenantAccessError:
        return jsonify({"error": "Order not found"}), 404


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(user_id=g.user_id, order_id=order_id)
    except TenantAccessError:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"ok": True}), 200


@orders_bp.get("/<int:order_id>/transitions")
@require_auth
def order_transitions_route(order_id: int):
    try:
        return jsonify(order_service.get_allowed_transitions(g.user_id, order_id)), 200
    except TenantAccessError:
        return jsonify({"error": "Order not found"}), 404


@orders_bp.post("/<int:order_id>/status")
@require_auth
def update_order_status_route(order_id: int):
    """Body: status, notes?, courier_service?, tracking_number?"""
    data = request.get_json(silent=True) or {}
    new_status = data.get("status")
    if not new_status:
        return jsonify({"error": "status is required"}), 400

    try:
        order = order_service.update_status(
            user_id=g.user_id,
            order_id=order_id,
            new_status=new_status,
            notes=data.get("notes"),
            courier_service=data.get("courier_service"),
            tracking_number=data.get("tracking_number"),
        )
    except TenantAccessError:
        return jsonify({"error": "Order not found"}), 404
    except OrderStatusError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(order), 200


@orders_bp.post("/<int:order_id>/payment-status")
@require_auth
def update_payment_status_route(order_id: int):
    data = request.get_json(silent=True) or {}
    payment_status = data.get("payment_status")
    if not payment_status:
        return jsonify({"error": "payment_status is required"}), 400
    try:
        order = order_service.update_payment_status(
            user_id=g.user_id,
            order_id=order_id,
            payment_status=payment_status,
            payment_method=data.get("payment_method"),
        )
    except TenantAccessError:
        return jsonify({"error": "Order not found"}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(order), 200


@orders_bp.get("/<int:order_id>/invoice")
@require_auth
def order_invoice_route(order_id: int):
    try:
        return jsonify(order_service.get_invoice(g.user_id, order_id)), 200
    except TenantAccessError:
        return jsonify({"error": "Order not found"}), 404
