# Overview: Flask API routes for account settings; parses input and returns JSON responses.

# backend/resellerpro/routes/settings.py
"""
Account settings: personal profile, business details, wallet and referrals.
"""

from flask import Blueprint, request, jsonify, g

from ..services import settings_service, wallet_service, referral_service
from ..validation import ValidationError
from ..decorators import require_auth


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/profile")
@require_auth
def get_profile_route():
    return jsonify(settings_service.get_profile(g.current_user)), 200


@settings_bp.put("/profile")
@require_auth
def update_profile_route():
    try:
        profile = settings_service.update_profile(g.current_user, request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(profile), 200


@settings_bp.put("/business")
@require_auth
def update_business_route():
    """Body: business_name, gstin, pan_number, business_address, business_phone, business_email, business_website."""
    try:
        profile = settings_service.update_business(g.current_user, request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(profile), 200


@settings_bp.get("/wallet")
@require_auth
def wallet_route():
    return jsonify(wallet_service.get_wallet(g.user_id)), 200


@settings_bp.get("/referrals")
@require_auth
def referrals_route():
    return jsonify(referral_service.get_referral_overview(g.current_user)), 200
