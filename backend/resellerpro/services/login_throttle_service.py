"""
Login Throttling and Login History

After MAX_FAILED_ATTEMPTS failures for one email within LOCKOUT_WINDOW,
further logins are refused until LOCKOUT_DURATION has passed since the
most recent failure. Every attempt is written to login_events, which also
backs the login history on the security settings page.
"""

from datetime import timedelta
from ..extensions import db
from ..models import LoginEvent, Profile
from resellerpro.time_utils import utcnow
from .session_service import describe_device


MAX_FAILED_ATTEMPTS = 5
LOCKOUT_WINDOW = timedelta(minutes=15)
LOCKOUT_DURATION = timedelta(minutes=15)


def _failed_since(identifier: str, since):
    return db.session.query(LoginEvent).filter(
        LoginEvent.identifier == identifier,
        LoginEvent.login_success.is_(False),
        LoginEvent.occurred_at >= since,
    )


def get_recent_failed_attempts(identifier: str) -> int:
    """
    Failed attempts within LOCKOUT_WINDOW, counted only after the most
    recent successful login.
    """
    since = utcnow() - LOCKOUT_WINDOW
    last_success = db.session.query(LoginEvent).filter(
        LoginEvent.identifier == identifier,
        LoginEvent.login_success.is_(True),
    ).order_by(LoginEvent.occurred_at.desc()).first()
    if last_success and last_success.occurred_at > since:
        since = last_success.occurred_at
    return _failed_since(identifier, since).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    if get_recent_failed_attempts(identifier) < MAX_FAILED_ATTEMPTS:
        return False, None

    most_recent = db.session.query(LoginEvent).filter(
        LoginEvent.identifier == identifier,
        LoginEvent.login_success.is_(False),
    ).order_by(LoginEvent.occurred_at.desc()).first()

    if most_recent:
        lockout_end = most_recent.occurred_at + LOCKOUT_DURATION
        now = utcnow()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds())

    return False, None


def record_attempt(
    identifier: str,
    *,
    success: bool,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str | None = None,
) -> int:
    """
    Write a login event. Returns the number of recent failures
    (0 after a success).
    """
    user = db.session.query(Profile).filter_by(email=identifier).first()

    db.session.add(LoginEvent(
        user_id=user.id if user else None,
        identifier=identifier,
        login_success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        device_name=describe_device(user_agent),
        occurred_at=utcnow(),
    ))
    db.session.commit()

    if success:
        return 0
    return get_recent_failed_attempts(identifier)


def get_login_history(user_id: int, limit: int = 20) -> list[dict]:
    events = (
        db.session.query(LoginEvent)
        .filter(LoginEvent.user_id == user_id)
        .order_by(LoginEvent.occurred_at.desc(), LoginEvent.id.desc())
        .limit(limit)
        .all()
    )
    return [e.to_dict() for e in events]
