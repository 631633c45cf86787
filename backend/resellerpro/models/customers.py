from __future__ import annotations

from ..extensions import db
from resellerpro.time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Customer master data for one reseller.

    Phone is unique per reseller among non-deleted rows (enforced in
    customer_service, since soft-deleted rows keep their phone).

    Denormalized aggregates are refreshed by order_service whenever an
    order is created, cancelled or deleted.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_user_phone", "user_id", "phone"),
        db.Index("ix_customers_user_deleted", "user_id", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    whatsapp = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    address_line1 = db.Column(db.String(255), nullable=True)
    address_line2 = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    state = db.Column(db.String(128), nullable=True)
    pincode = db.Column(db.String(6), nullable=True)

    customer_type = db.Column(db.String(16), nullable=False, default="active")
    notes = db.Column(db.Text, nullable=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    # Denormalized aggregates (updated when orders change)
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent_paise = db.Column(db.Integer, nullable=False, default=0)
    last_order_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "whatsapp": self.whatsapp,
            "email": self.email,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "customer_type": self.customer_type,
            "notes": self.notes,
            "total_orders": self.total_orders,
            "total_spent_paise": self.total_spent_paise,
            "last_order_at": to_utc_z(self.last_order_at) if self.last_order_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
