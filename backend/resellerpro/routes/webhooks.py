# Overview: Payment gateway webhook endpoint.

# backend/resellerpro/routes/webhooks.py
"""
Razorpay Webhook

The body is verified against X-Razorpay-Signature (HMAC-SHA256 of the raw
body with RAZORPAY_WEBHOOK_SECRET) before it is parsed.

Returns:
    200: processed, ignored event, unknown order or replay
    400: invalid signature, body or missing order id
    401: missing signature (or no secret configured)
    500: server error
"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import billing_service
from ..services.billing_service import WebhookError


webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


@webhooks_bp.post("/razorpay")
def razorpay_webhook_route():
    raw_body = request.get_data()
    signature = request.headers.get("X-Razorpay-Signature")
    try:
        result = billing_service.handle_gateway_event(raw_body, signature)
    except WebhookError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to process payment webhook")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result.body), result.status_code
