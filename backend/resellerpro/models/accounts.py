from __future__ import annotations

from ..extensions import db
from resellerpro.time_utils import to_utc_z, utcnow


class Profile(db.Model):
    """
    A reseller account. Each profile is one tenant: every business row
    (products, customers, orders, enquiries) carries its user_id.

    Wallet balance is denormalized here and moved only through
    wallet_service, which also appends a WalletTransaction.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        db.Index("ix_profiles_referred_by", "referred_by_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    avatar_url = db.Column(db.String(512), nullable=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)

    business_name = db.Column(db.String(255), nullable=True)
    gstin = db.Column(db.String(15), nullable=True)
    pan_number = db.Column(db.String(10), nullable=True)
    business_address = db.Column(db.Text, nullable=True)
    business_phone = db.Column(db.String(32), nullable=True)
    business_email = db.Column(db.String(255), nullable=True)
    business_website = db.Column(db.String(255), nullable=True)

    wallet_balance_paise = db.Column(db.Integer, nullable=False, default=0)
    referral_code = db.Column(db.String(16), nullable=False, unique=True, index=True)
    referred_by_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)

    # Subscription reminder stamps; cleared when a new period starts
    reminder_7d_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reminder_3d_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reminder_1d_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    referred_by = db.relationship("Profile", remote_side=[id], backref=db.backref("referred_profiles", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "avatar_url": self.avatar_url,
            "email_verified": self.email_verified,
            "business_name": self.business_name,
            "gstin": self.gstin,
            "pan_number": self.pan_number,
            "business_address": self.business_address,
            "business_phone": self.business_phone,
            "business_email": self.business_email,
            "business_website": self.business_website,
            "wallet_balance_paise": self.wallet_balance_paise,
            "referral_code": self.referral_code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class UserSession(db.Model):
    """
    Bearer-token session. Only the SHA-256 hash of the token is stored.
    """
    __tablename__ = "user_sessions"
    __table_args__ = (
        db.Index("ix_user_sessions_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    device_name = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_active = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user = db.relationship("Profile", backref=db.backref("sessions", lazy=True))

    def to_dict(self, current_session_id: int | None = None) -> dict:
        return {
            "id": self.id,
            "device_name": self.device_name,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": to_utc_z(self.created_at),
            "last_active": to_utc_z(self.last_active),
            "expires_at": to_utc_z(self.expires_at),
            "is_current": self.id == current_session_id,
        }


class LoginEvent(db.Model):
    """
    Append-only login history, successful and failed.

    The identifier is kept even when no profile matches so that
    throttling works for unknown emails too.
    """
    __tablename__ = "login_events"
    __table_args__ = (
        db.Index("ix_login_events_identifier_time", "identifier", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True, index=True)
    identifier = db.Column(db.String(255), nullable=False)
    login_success = db.Column(db.Boolean, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    device_name = db.Column(db.String(128), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "login_success": self.login_success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "device_name": self.device_name,
            "occurred_at": to_utc_z(self.occurred_at),
        }
