# Overview: Flask API routes for the platform back-office; parses input and returns JSON responses.

# backend/resellerpro/routes/admin.py
"""
Back-office routes.

POST /auth signs in with the configured admin credentials and returns a
JWT (also set as an HttpOnly cookie). Every other endpoint requires that
token and reads across all resellers.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import admin_service
from ..services.admin_service import AdminAuthError
from ..services.wallet_service import WalletError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_admin

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _page_args():
    return {
        "page": request.args.get("page", type=int),
        "limit": request.args.get("limit", type=int),
    }


# =============================================================================
# SESSION
# =============================================================================

@admin_bp.post("/auth")
def admin_login():
    data = request.get_json(silent=True) or {}
    try:
        token, max_age = admin_service.login(data.get("username"), data.get("password"))
    except AdminAuthError as e:
        return jsonify({"error": str(e)}), 401

    response = jsonify({"success": True, "token": token, "expires_in": max_age})
    response.set_cookie(
        admin_service.ADMIN_COOKIE_NAME,
        token,
        max_age=max_age,
        httponly=True,
        secure=not current_app.debug and not current_app.testing,
        samesite="Strict",
    )
    return response, 200


@admin_bp.get("/auth")
@require_admin
def admin_session():
    return jsonify({"authenticated": True, "user": g.admin_claims.get("sub")}), 200


@admin_bp.delete("/auth")
def admin_logout():
    response = jsonify({"success": True})
    response.delete_cookie(admin_service.ADMIN_COOKIE_NAME)
    return response, 200


# =============================================================================
# PLATFORM DATA
# =============================================================================

@admin_bp.get("/stats")
@require_admin
def admin_stats():
    return jsonify(admin_service.get_platform_stats()), 200


@admin_bp.get("/customers")
@require_admin
def admin_list_customers():
    """Resellers on the platform. Query params: search, page, limit."""
    return jsonify(admin_service.list_resellers(search=request.args.get("search"), **_page_args())), 200


@admin_bp.get("/customers/<int:user_id>")
@require_admin
def admin_get_customer(user_id: int):
    try:
        return jsonify(admin_service.get_reseller(user_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@admin_bp.get("/subscriptions")
@require_admin
def admin_list_subscriptions():
    return jsonify(admin_service.list_subscriptions(
        status=request.args.get("status"), plan=request.args.get("plan"), **_page_args()
    )), 200


@admin_bp.get("/transactions")
@require_admin
def admin_list_transactions():
    return jsonify(admin_service.list_transactions(status=request.args.get("status"), **_page_args())), 200


@admin_bp.get("/wallets")
@require_admin
def admin_list_wallets():
    return jsonify(admin_service.list_wallets(**_page_args())), 200


@admin_bp.post("/wallets/<int:user_id>/adjust")
@require_admin
def admin_adjust_wallet(user_id: int):
    """Body: amount_paise (signed, non-zero), reason."""
    data = request.get_json(silent=True) or {}
    try:
        result = admin_service.adjust_wallet(user_id, data.get("amount_paise"), data.get("reason"))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, WalletError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to adjust wallet")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200


@admin_bp.get("/referrals")
@require_admin
def admin_list_referrals():
    return jsonify(admin_service.list_referrals(status=request.args.get("status"), **_page_args())), 200


@admin_bp.get("/plans")
@require_admin
def admin_list_plans():
    return jsonify({"plans": admin_service.list_all_plans()}), 200


@admin_bp.post("/notifications")
@require_admin
def admin_broadcast():
    """Body: title, message, priority?"""
    data = request.get_json(silent=True) or {}
    try:
        sent = admin_service.broadcast(data.get("title"), data.get("message"), data.get("priority") or "normal")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "recipients": sent}), 201
