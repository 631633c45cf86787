# Overview: Unauthenticated marketing endpoints (landing-page lead capture).

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..models import LandingLead
from ..validation import PHONE_RE, EMAIL_RE


public_bp = Blueprint("public", __name__, url_prefix="/api")


@public_bp.post("/enquiry")
def landing_enquiry_route():
    """Body: name, whatsapp, email, message?"""
    data = request.get_json(silent=True) or {}
    name = str(data.get("name") or "").strip()
    whatsapp = str(data.get("whatsapp") or "").strip()
    email = str(data.get("email") or "").strip().lower()
    message = str(data.get("message") or "").strip() or None

    if not name or not whatsapp or not email:
        return jsonify({"error": "Missing required fields"}), 400
    if not PHONE_RE.match(whatsapp):
        return jsonify({"error": "whatsapp must be 10-15 digits"}), 400
    if not EMAIL_RE.match(email):
        return jsonify({"error": "email is not a valid address"}), 400

    try:
        lead = LandingLead(name=name[:128], whatsapp=whatsapp, email=email[:255], message=message)
        db.session.add(lead)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to save landing enquiry")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Landing enquiry %s received", lead.id)
    return jsonify({"success": True, "id": lead.id}), 201
