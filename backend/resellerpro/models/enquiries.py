from __future__ import annotations

from ..extensions import db
from resellerpro.time_utils import to_utc_z, utcnow


class Enquiry(db.Model):
    """
    Sales lead captured by a reseller.

    STATUS LIFECYCLE:
    new -> needs_follow_up -> converted | dropped
    new -> converted | dropped
    converted and dropped are terminal; the row is read-only afterwards.
    """
    __tablename__ = "enquiries"
    __table_args__ = (
        db.Index("ix_enquiries_user_status", "user_id", "status"),
        db.Index("ix_enquiries_user_deleted", "user_id", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)

    customer_name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    message = db.Column(db.Text, nullable=True)
    source = db.Column(db.String(32), nullable=True)

    status = db.Column(db.String(32), nullable=False, default="new")

    followup_date = db.Column(db.DateTime(timezone=True), nullable=True)
    followup_notified = db.Column(db.Boolean, nullable=False, default=False)
    follow_up_count = db.Column(db.Integer, nullable=False, default=0)
    last_contacted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_reminder_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    converted_order_id = db.Column(db.Integer, db.ForeignKey("orders.id", use_alter=True), nullable=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    follow_ups = db.relationship(
        "EnquiryFollowUp", backref="enquiry", lazy=True,
        cascade="all, delete-orphan", order_by="EnquiryFollowUp.id.desc()",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customer_name": self.customer_name,
            "phone": self.phone,
            "email": self.email,
            "message": self.message,
            "source": self.source,
            "status": self.status,
            "followup_date": to_utc_z(self.followup_date) if self.followup_date else None,
            "follow_up_count": self.follow_up_count,
            "last_contacted_at": to_utc_z(self.last_contacted_at) if self.last_contacted_at else None,
            "converted_order_id": self.converted_order_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class EnquiryFollowUp(db.Model):
    """Append-only activity row on an enquiry's timeline."""
    __tablename__ = "enquiry_follow_ups"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    enquiry_id = db.Column(db.Integer, db.ForeignKey("enquiries.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    action = db.Column(db.String(32), nullable=False)
    note = db.Column(db.Text, nullable=True)
    whatsapp_message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "enquiry_id": self.enquiry_id,
            "action": self.action,
            "note": self.note,
            "whatsapp_message": self.whatsapp_message,
            "created_at": to_utc_z(self.created_at),
        }


class LandingLead(db.Model):
    """Lead captured from the public marketing site popup (no tenant)."""
    __tablename__ = "landing_leads"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    whatsapp = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "whatsapp": self.whatsapp,
            "email": self.email,
            "message": self.message,
            "created_at": to_utc_z(self.created_at),
        }
