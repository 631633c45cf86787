from __future__ import annotations

from ..extensions import db
from resellerpro.time_utils import to_utc_z, utcnow


class Order(db.Model):
    """
    Customer order.

    STATUS LIFECYCLE:
    pending -> processing -> shipped -> delivered
    Any non-final status may move to cancelled. delivered and cancelled
    are final.

    Totals are computed server-side from the items; profit is derived.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("user_id", "order_number", name="uq_orders_user_number"),
        db.Index("ix_orders_user_status", "user_id", "status"),
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    order_number = db.Column(db.Integer, nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    enquiry_id = db.Column(db.Integer, db.ForeignKey("enquiries.id", use_alter=True), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending")
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    payment_method = db.Column(db.String(32), nullable=True)

    subtotal_paise = db.Column(db.Integer, nullable=False, default=0)
    discount_paise = db.Column(db.Integer, nullable=False, default=0)
    shipping_cost_paise = db.Column(db.Integer, nullable=False, default=0)
    total_amount_paise = db.Column(db.Integer, nullable=False, default=0)
    total_cost_paise = db.Column(db.Integer, nullable=False, default=0)

    courier_service = db.Column(db.String(128), nullable=True)
    tracking_number = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_update_email_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    items = db.relationship("OrderItem", backref="order", lazy=True, cascade="all, delete-orphan", order_by="OrderItem.id")
    status_history = db.relationship(
        "OrderStatusHistory", backref="order", lazy=True,
        cascade="all, delete-orphan", order_by="OrderStatusHistory.id",
    )

    @property
    def profit_paise(self) -> int:
        return (self.total_amount_paise or 0) - (self.total_cost_paise or 0) - (self.shipping_cost_paise or 0)

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer": {
                "id": self.customer.id,
                "name": self.customer.name,
                "phone": self.customer.phone,
            } if self.customer else None,
            "enquiry_id": self.enquiry_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "subtotal_paise": self.subtotal_paise,
            "discount_paise": self.discount_paise,
            "shipping_cost_paise": self.shipping_cost_paise,
            "total_amount_paise": self.total_amount_paise,
            "total_cost_paise": self.total_cost_paise,
            "profit_paise": self.profit_paise,
            "courier_service": self.courier_service,
            "tracking_number": self.tracking_number,
            "notes": self.notes,
            "delivered_at": to_utc_z(self.delivered_at) if self.delivered_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
            data["status_history"] = [h.to_dict() for h in self.status_history]
        return data


class OrderItem(db.Model):
    """
    Order line. Product name and prices are snapshotted so the order
    survives product edits and deletion.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_selling_price_paise = db.Column(db.Integer, nullable=False)
    unit_cost_price_paise = db.Column(db.Integer, nullable=False, default=0)

    @property
    def line_total_paise(self) -> int:
        return self.quantity * self.unit_selling_price_paise

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_selling_price_paise": self.unit_selling_price_paise,
            "unit_cost_price_paise": self.unit_cost_price_paise,
            "line_total_paise": self.line_total_paise,
        }


class OrderStatusHistory(db.Model):
    """Append-only audit trail of order status changes."""
    __tablename__ = "order_status_history"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    courier_service = db.Column(db.String(128), nullable=True)
    tracking_number = db.Column(db.String(128), nullable=True)
    changed_by = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "notes": self.notes,
            "courier_service": self.courier_service,
            "tracking_number": self.tracking_number,
            "changed_by": self.changed_by,
            "created_at": to_utc_z(self.created_at),
        }
