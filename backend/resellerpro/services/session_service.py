# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Tokens are 32 random bytes sent to the client as hex; only their SHA-256
hash is stored. Sessions expire SESSION_TTL_HOURS after creation and are
auto-revoked after SESSION_IDLE_TIMEOUT without activity.

The security settings page lists sessions (flagging the caller's own),
revokes one, or revokes every other session.
"""

import secrets
import hashlib
import re
from dataclasses import dataclass
from datetime import timedelta
from flask import current_app
from ..extensions import db
from ..models import UserSession, Profile
from resellerpro.time_utils import utcnow


SESSION_IDLE_TIMEOUT = timedelta(days=7)

_DEVICE_PATTERNS = (
    (re.compile(r"iPhone|iPad", re.I), "iOS"),
    (re.compile(r"Android", re.I), "Android"),
    (re.compile(r"Windows", re.I), "Windows"),
    (re.compile(r"Macintosh|Mac OS X", re.I), "macOS"),
    (re.compile(r"Linux", re.I), "Linux"),
)
_BROWSER_PATTERNS = (
    (re.compile(r"Edg/", re.I), "Edge"),
    (re.compile(r"Chrome/", re.I), "Chrome"),
    (re.compile(r"Firefox/", re.I), "Firefox"),
    (re.compile(r"Safari/", re.I), "Safari"),
)


@dataclass
class SessionContext:
    """Identity attached to an authenticated request."""
    user: Profile
    session: UserSession


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest used as the stored lookup key."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def describe_device(user_agent: str | None) -> str:
    """Short label like "Chrome on Windows" for the sessions list."""
    if not user_agent:
        return "Unknown device"
    os_name = next((name for pattern, name in _DEVICE_PATTERNS if pattern.search(user_agent)), None)
    browser = next((name for pattern, name in _BROWSER_PATTERNS if pattern.search(user_agent)), None)
    if browser and os_name:
        return f"{browser} on {os_name}"
    return browser or os_name or "Unknown device"


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[UserSession, str]:
    """
    Create a session for an authenticated user.

    Returns (session_record, plaintext_token).
    """
    plaintext_token = generate_token()
    now = utcnow()
    ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))

    session = UserSession(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_active=now,
        expires_at=now + ttl,
        user_agent=user_agent,
        ip_address=ip_address,
        device_name=describe_device(user_agent),
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: UserSession, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Return SessionContext for a live token, else None.

    Returns None if the token is unknown, revoked, expired or idle, or the
    profile is deactivated. Touches last_active on success.
    """
    now = utcnow()

    session = db.session.query(UserSession).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_active > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        db.session.commit()
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "Account deactivated")
        db.session.commit()
        return None

    session.last_active = now
    db.session.commit()

    return SessionContext(user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke by plaintext token. Returns False if no live session matched."""
    session = db.session.query(UserSession).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    db.session.commit()
    return True


def list_active_sessions(user_id: int, current_session_id: int | None = None) -> list[dict]:
    now = utcnow()
    sessions = (
        db.session.query(UserSession)
        .filter(
            UserSession.user_id == user_id,
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > now,
        )
        .order_by(UserSession.last_active.desc())
        .all()
    )
    return [s.to_dict(current_session_id=current_session_id) for s in sessions]


def revoke_session_by_id(user_id: int, session_id: int) -> bool:
    """Revoke one of the caller's own sessions. False if not found."""
    session = db.session.query(UserSession).filter_by(
        id=session_id, user_id=user_id, is_revoked=False
    ).first()
    if not session:
        return False
    _revoke(session, "Revoked from security settings")
    db.session.commit()
    return True


def revoke_all_sessions(user_id: int, except_session_id: int | None = None, reason: str = "Signed out everywhere") -> int:
    """Revoke every live session except the given one. Returns the count."""
    query = db.session.query(UserSession).filter(
        UserSession.user_id == user_id,
        UserSession.is_revoked.is_(False),
    )
    if except_session_id is not None:
        query = query.filter(UserSession.id != except_session_id)

    count = 0
    for session in query.all():
        _revoke(session, reason)
        count += 1
    db.session.commit()
    return count
