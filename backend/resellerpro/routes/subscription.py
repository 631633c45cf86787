# Overview: Flask API routes for subscription billing; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import billing_service, plan_service
from ..services.billing_service import BillingError
from ..decorators import require_auth


subscription_bp = Blueprint("subscription", __name__, url_prefix="/api/subscription")


@subscription_bp.get("")
@require_auth
def subscription_overview_route():
    return jsonify(billing_service.get_subscription_overview(g.current_user)), 200


@subscription_bp.get("/plans")
def list_plans_route():
    return jsonify({"plans": plan_service.list_plans()}), 200


@subscription_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Body: plan_id.

    When the wallet covers the whole price the response carries
    use_wallet_only=true and the client calls /activate-wallet instead.
    """
    data = request.get_json(silent=True) or {}
    try:
        result = billing_service.create_checkout(g.current_user, data.get("plan_id"))
    except BillingError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create checkout")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200


@subscription_bp.post("/verify")
@require_auth
def verify_payment_route():
    """Body: razorpay_order_id, razorpay_payment_id, razorpay_signature."""
    data = request.get_json(silent=True) or {}
    try:
        result = billing_service.verify_payment_and_activate(
            g.current_user,
            data.get("razorpay_order_id") or data.get("order_id"),
            data.get("razorpay_payment_id") or data.get("payment_id"),
            data.get("razorpay_signature") or data.get("signature"),
        )
    except BillingError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to verify payment")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200


@subscription_bp.post("/activate-wallet")
@require_auth
def activate_with_wallet_route():
    data = request.get_json(silent=True) or {}
    try:
        result = billing_service.activate_with_wallet(g.current_user, data.get("plan_id"))
    except BillingError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to activate plan with wallet")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200


@subscription_bp.post("/cancel")
@require_auth
def cancel_subscription_route():
    try:
        sub = billing_service.cancel_subscription(g.current_user)
    except BillingError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"subscription": sub, "message": "Your plan will not renew"}), 200
