# Overview: Flask API routes for in-app notifications.

from flask import Blueprint, request, jsonify, g

from ..services import notification_service
from ..decorators import require_auth


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """
    Time-based reminders (due follow-ups, idle enquiries, plan expiry) are
    raised before listing.
    """
    notification_service.check_time_based_notifications(g.user_id)
    unread_only = request.args.get("unread", "").lower() in {"1", "true", "yes"}
    return jsonify(notification_service.list_notifications(
        g.user_id,
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
        unread_only=unread_only,
    )), 200


@notifications_bp.post("/mark-read")
@require_auth
def mark_read_route():
    """Body: {"notification_id": 3} or {"mark_all": true}"""
    data = request.get_json(silent=True) or {}
    notification_id = data.get("notification_id")
    if notification_id is not None and (isinstance(notification_id, bool) or not isinstance(notification_id, int)):
        return jsonify({"error": "notification_id must be an integer"}), 400
    try:
        updated = notification_service.mark_read(
            g.user_id,
            notification_id=notification_id,
            mark_all=bool(data.get("mark_all")),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"updated": updated}), 200
