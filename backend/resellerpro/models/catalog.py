from __future__ import annotations

from ..extensions import db
from resellerpro.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product catalog entry owned by one reseller.

    Prices are stored as integer paise. `images` holds the URL list and
    `image_url` mirrors its first element for list views.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("user_id", "sku", name="uq_products_user_sku"),
        db.Index("ix_products_user_category", "user_id", "category"),
        db.Index("ix_products_user_stock_status", "user_id", "stock_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=True)
    sku = db.Column(db.String(64), nullable=True)

    cost_price_paise = db.Column(db.Integer, nullable=False, default=0)
    selling_price_paise = db.Column(db.Integer, nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=True)
    stock_status = db.Column(db.String(32), nullable=False, default="in_stock")

    image_url = db.Column(db.String(1024), nullable=True)
    images = db.Column(db.JSON, nullable=False, default=list)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    @property
    def profit_paise(self) -> int:
        return (self.selling_price_paise or 0) - (self.cost_price_paise or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "sku": self.sku,
            "cost_price_paise": self.cost_price_paise,
            "selling_price_paise": self.selling_price_paise,
            "profit_paise": self.profit_paise,
            "stock_quantity": self.stock_quantity,
            "stock_status": self.stock_status,
            "image_url": self.image_url,
            "images": list(self.images or []),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
