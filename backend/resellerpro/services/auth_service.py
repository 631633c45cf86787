# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Passwords are hashed with bcrypt (cost from BCRYPT_ROUNDS, 12 by default)
and must pass validate_password_strength. Session tokens are managed
separately (see session_service.py).

Signup creates the tenant: the Profile row, a unique referral code and a
free-plan subscription. A referral code on signup is applied through
referral_service, which credits the signup bonus.
"""

import bcrypt
import re
from flask import current_app
from ..extensions import db
from ..models import Profile
from ..validation import EMAIL_RE, ValidationError, ConflictError
from . import plan_service, referral_service


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthError(Exception):
    """Raised when credentials are wrong or the account is disabled."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt-hash. Returns the hash as str."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise
    (including malformed hashes).
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def signup(
    *,
    email: str,
    password: str,
    full_name: str,
    phone: str | None = None,
    referral_code: str | None = None,
) -> Profile:
    """
    Create a reseller account.

    Raises:
        ValidationError: bad email or name
        PasswordValidationError: weak password
        ConflictError: email already registered
    """
    email = normalize_email(email)
    full_name = (full_name or "").strip()

    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email is required")
    if len(full_name) < 2:
        raise ValidationError("full_name must be at least 2 characters")

    password_hash = hash_password(password)

    if db.session.query(Profile).filter_by(email=email).first():
        raise ConflictError("An account with this email already exists")

    profile = Profile(
        email=email,
        password_hash=password_hash,
        full_name=full_name,
        phone=(phone or "").strip() or None,
        referral_code=referral_service.generate_referral_code(),
        wallet_balance_paise=0,
    )
    db.session.add(profile)
    db.session.flush()

    plan_service.ensure_free_subscription(profile.id)

    if referral_code:
        # Invalid codes do not block signup
        referral_service.apply_signup_referral(profile, referral_code)

    db.session.commit()
    current_app.logger.info("Created account %s (%s)", profile.id, profile.email)
    return profile


def authenticate(email: str, password: str) -> Profile | None:
    """Return the active profile for valid credentials, else None."""
    profile = db.session.query(Profile).filter_by(email=normalize_email(email)).first()
    if not profile or not profile.is_active:
        return None
    if not verify_password(password, profile.password_hash):
        return None
    return profile


def change_password(profile: Profile, current_password: str, new_password: str) -> None:
    """
    Raises:
        AuthError: current password is wrong
        PasswordValidationError: new password is weak
    """
    if not verify_password(current_password, profile.password_hash):
        raise AuthError("Current password is incorrect")
    profile.password_hash = hash_password(new_password)
    db.session.commit()
