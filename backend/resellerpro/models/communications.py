from __future__ import annotations

from ..extensions import db
from resellerpro.time_utils import to_utc_z, utcnow


class Notification(db.Model):
    """
    In-app notification for one reseller.

    TYPES: enquiry_followup_due, wallet_credited,
    subscription_expiring_soon, low_stock, system_alert
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_read", "user_id", "is_read"),
        db.Index("ix_notifications_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    entity_type = db.Column(db.String(32), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    priority = db.Column(db.String(8), nullable=False, default="normal")
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "priority": self.priority,
            "is_read": self.is_read,
            "read_at": to_utc_z(self.read_at) if self.read_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class EmailLog(db.Model):
    """Every outbound email attempt, used for the rolling daily limit."""
    __tablename__ = "email_logs"
    __table_args__ = (
        db.Index("ix_email_logs_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    recipient = db.Column(db.String(255), nullable=False)
    template = db.Column(db.String(64), nullable=False)
    subject = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False)
    error = db.Column(db.Text, nullable=True)
    details = db.Column("metadata", db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "recipient": self.recipient,
            "template": self.template,
            "subject": self.subject,
            "status": self.status,
            "error": self.error,
            "metadata": dict(self.details or {}),
            "created_at": to_utc_z(self.created_at),
        }
