# Overview: Flask API routes for analytics, the dashboard summary and global search.

from flask import Blueprint, request, jsonify, g

from ..services import analytics_service, search_service
from ..validation import ValidationError
from ..decorators import require_auth


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api")


@analytics_bp.get("/analytics")
@require_auth
def analytics_route():
    """
    Query params: from, to (ISO dates). Defaults to the last 30 days;
    free-plan accounts are limited to the last 7 days.
    """
    try:
        report = analytics_service.get_analytics(
            g.user_id,
            start=request.args.get("from"),
            end=request.args.get("to"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(report), 200


@analytics_bp.get("/dashboard")
@require_auth
def dashboard_route():
    return jsonify(analytics_service.get_dashboard(g.user_id)), 200


@analytics_bp.get("/search")
@require_auth
def search_route():
    """Query params: q, type (all|products|customers|orders|enquiries), page, limit."""
    limit = min(max(request.args.get("limit", 5, type=int), 1), 50)
    try:
        results = search_service.global_search(
            g.user_id,
            request.args.get("q"),
            type=request.args.get("type", "all"),
            page=request.args.get("page", 1, type=int),
            limit=limit,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(results), 200
