# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/resellerpro/routes/auth.py
"""
Authentication API routes

- Self-service signup with optional referral code
- Login throttling: repeated failures lock the email for 15 minutes
- Session tokens (Bearer) revoked on logout
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import login_throttle_service
from ..services import plan_service
from ..services.auth_service import PasswordValidationError, AuthError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, token, session, message):
    sub = plan_service.get_subscription(user.id)
    return {
        "user": user.to_dict(),
        "plan": sub.plan.to_dict() if sub.plan else None,
        "token": token,
        "session": session.to_dict(current_session_id=session.id),
        "message": message,
    }


@auth_bp.post("/signup")
def signup_route():
    """
    Create an account and sign it in.

    Body: email, password, full_name, phone?, referral_code?
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.signup(
            email=data.get("email"),
            password=data.get("password") or "",
            full_name=data.get("full_name"),
            phone=data.get("phone"),
            referral_code=data.get("referral_code") or data.get("ref"),
        )
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to sign up user")
        return jsonify({"error": "Internal server error"}), 500

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify(_session_payload(user, token, session, "Signup successful")), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    SECURITY:
    - Checks for lockout before attempting authentication
    - Records every attempt (login history and throttling)
    """
    try:
        data = request.get_json(silent=True) or {}
        email = auth_service.normalize_email(data.get("email"))
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
        if is_locked:
            minutes_remaining = (seconds_remaining // 60) + 1 if seconds_remaining else 15
            return jsonify({
                "error": "Account temporarily locked due to too many failed login attempts",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
                "retry_after_minutes": minutes_remaining,
            }), 429

        user = auth_service.authenticate(email, password)

        if not user:
            failed_count = login_throttle_service.record_attempt(
                email,
                success=False,
                ip_address=ip_address,
                user_agent=user_agent,
                reason="Invalid credentials",
            )
            remaining = login_throttle_service.MAX_FAILED_ATTEMPTS - failed_count
            if remaining <= 0:
                return jsonify({
                    "error": "Account locked due to too many failed login attempts",
                    "locked": True,
                    "retry_after_minutes": 15,
                }), 429
            if remaining <= 2:
                return jsonify({
                    "error": "Invalid credentials",
                    "warning": f"{remaining} attempts remaining before account lockout",
                }), 401
            return jsonify({"error": "Invalid credentials"}), 401

        login_throttle_service.record_attempt(
            email,
            success=True,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        return jsonify(_session_payload(user, token, session, "Login successful")), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the caller's session token."""
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]
        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    sub = plan_service.get_subscription(g.user_id)
    return jsonify({
        "user": g.current_user.to_dict(),
        "plan": sub.plan.to_dict() if sub.plan else None,
        "usage": plan_service.get_usage(g.user_id),
    })


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Body: current_password, new_password.

    Every other session is signed out after a successful change.
    """
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password")
    new_password = data.get("new_password")
    if not current_password or not new_password:
        return jsonify({"error": "current_password and new_password required"}), 400

    try:
        auth_service.change_password(g.current_user, current_password, new_password)
        revoked = session_service.revoke_all_sessions(
            g.user_id,
            except_session_id=g.session_context.session.id,
            reason="Password changed",
        )
    except AuthError as e:
        return jsonify({"error": str(e)}), 401
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Password changed", "sessions_revoked": revoked}), 200
