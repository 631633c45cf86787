# Overview: Cron endpoints for an external scheduler, gated by the CRON_SECRET bearer token.

from flask import Blueprint, jsonify, current_app

from ..extensions import db
from ..services import cron_service
from ..decorators import require_cron_secret


cron_bp = Blueprint("cron", __name__, url_prefix="/api/cron")


def _run(job: str):
    try:
        results = cron_service.run_job(job)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Cron job %s failed", job)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"success": True, "results": results}), 200


@cron_bp.get("/enquiry-alert")
@require_cron_secret
def enquiry_alert_route():
    return _run("enquiry-alert")


@cron_bp.get("/order-update")
@require_cron_secret
def order_update_route():
    return _run("order-update")


@cron_bp.get("/subscription-check")
@require_cron_secret
def subscription_check_route():
    return _run("subscription-check")
