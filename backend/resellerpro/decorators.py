# Overview: Request decorators for API routes: reseller auth, cron secret and admin session.

import hmac
from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service, admin_service
from .services.admin_service import AdminAuthError


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a reseller session and establish tenant context.

    Sets the following Flask g attributes:
    - g.current_user: the authenticated Profile
    - g.user_id: the tenant id every service call is scoped by
    - g.session_context: the full SessionContext

    Returns 401 if the Authorization header is missing, the token is
    invalid, expired or revoked, or the account is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.user_id = context.user.id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_cron_secret(f):
    """
    Cron endpoints accept exactly "Authorization: Bearer <CRON_SECRET>".
    With no CRON_SECRET configured every call is refused.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        secret = current_app.config.get("CRON_SECRET") or ""
        provided = request.headers.get("Authorization") or ""
        if not secret or not hmac.compare_digest(provided.encode("utf-8"), f"Bearer {secret}".encode("utf-8")):
            current_app.logger.warning("Rejected cron call to %s", request.path)
            return jsonify({"error": "Unauthorized"}), 401
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require a back-office JWT from the Bearer header or the admin cookie."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token() or request.cookies.get(admin_service.ADMIN_COOKIE_NAME)
        try:
            g.admin_claims = admin_service.verify_token(token)
        except AdminAuthError as e:
            return jsonify({"error": "Unauthorized", "message": str(e)}), 401
        return f(*args, **kwargs)

    return decorated_function
