# Overview: Flask API routes for the security settings page: sessions and login history.

from flask import Blueprint, request, jsonify, g

from ..services import session_service, login_throttle_service
from ..decorators import require_auth


security_bp = Blueprint("security", __name__, url_prefix="/api/security")


@security_bp.get("/sessions")
@require_auth
def list_sessions_route():
    current_id = g.session_context.session.id
    return jsonify({"sessions": session_service.list_active_sessions(g.user_id, current_session_id=current_id)}), 200


@security_bp.delete("/sessions")
@require_auth
def revoke_session_route():
    """Revoke one session: ?session_id=<id> or body {"session_id": <id>}."""
    data = request.get_json(silent=True) or {}
    session_id = request.args.get("session_id", type=int) or data.get("session_id")
    if isinstance(session_id, bool) or not isinstance(session_id, int):
        return jsonify({"error": "session_id is required"}), 400

    if not session_service.revoke_session_by_id(g.user_id, session_id):
        return jsonify({"error": "Session not found"}), 404
    return jsonify({"ok": True, "current": session_id == g.session_context.session.id}), 200


@security_bp.post("/sessions/revoke-all")
@require_auth
def revoke_all_sessions_route():
    """Sign out every other device; the calling session stays valid."""
    revoked = session_service.revoke_all_sessions(
        g.user_id, except_session_id=g.session_context.session.id
    )
    return jsonify({"revoked": revoked}), 200


@security_bp.get("/login-history")
@require_auth
def login_history_route():
    limit = min(max(request.args.get("limit", 20, type=int), 1), 100)
    return jsonify({"events": login_throttle_service.get_login_history(g.user_id, limit=limit)}), 200
