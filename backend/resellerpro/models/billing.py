from __future__ import annotations

from ..extensions import db
from resellerpro.time_utils import to_utc_z, utcnow


class SubscriptionPlan(db.Model):
    """
    Plan catalog. NULL limits mean unlimited.

    Rows are seeded from plan_service.PLAN_LIMITS (flask plans seed).
    """
    __tablename__ = "subscription_plans"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False, unique=True)
    display_name = db.Column(db.String(64), nullable=False)
    price_paise = db.Column(db.Integer, nullable=False, default=0)
    interval = db.Column(db.String(16), nullable=False, default="month")

    order_limit = db.Column(db.Integer, nullable=True)
    enquiry_limit = db.Column(db.Integer, nullable=True)
    customer_limit = db.Column(db.Integer, nullable=True)
    product_limit = db.Column(db.Integer, nullable=True)
    product_image_limit = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    @property
    def is_paid(self) -> bool:
        return (self.price_paise or 0) > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "price_paise": self.price_paise,
            "interval": self.interval,
            "limits": {
                "orders_per_month": self.order_limit,
                "enquiries_per_month": self.enquiry_limit,
                "customers": self.customer_limit,
                "products": self.product_limit,
                "product_images": self.product_image_limit,
            },
            "is_active": self.is_active,
        }


class Subscription(db.Model):
    """
    One row per reseller. Paid plans carry a period end; the free plan
    never expires (current_period_end is NULL).
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        db.Index("ix_subscriptions_status_end", "status", "current_period_end"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, unique=True)
    plan_id = db.Column(db.Integer, db.ForeignKey("subscription_plans.id"), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="active")

    current_period_start = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_at_period_end = db.Column(db.Boolean, nullable=False, default=False)
    expiry_notified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    plan = db.relationship("SubscriptionPlan")
    user = db.relationship("Profile", backref=db.backref("subscription", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "plan": self.plan.to_dict() if self.plan else None,
            "status": self.status,
            "current_period_start": to_utc_z(self.current_period_start),
            "current_period_end": to_utc_z(self.current_period_end) if self.current_period_end else None,
            "cancel_at_period_end": self.cancel_at_period_end,
        }


class PaymentTransaction(db.Model):
    """
    One gateway checkout. Status moves pending -> success exactly once;
    activation skips any transaction already in success.
    """
    __tablename__ = "payment_transactions"
    __table_args__ = (
        db.Index("ix_payment_transactions_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    razorpay_order_id = db.Column(db.String(64), nullable=False, unique=True)
    razorpay_payment_id = db.Column(db.String(64), nullable=True)
    amount_paise = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="INR")
    status = db.Column(db.String(16), nullable=False, default="pending")
    source = db.Column(db.String(16), nullable=True)
    # plan_id and wallet_applied_paise for the checkout
    details = db.Column("metadata", db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("Profile", backref=db.backref("payment_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "razorpay_order_id": self.razorpay_order_id,
            "razorpay_payment_id": self.razorpay_payment_id,
            "amount_paise": self.amount_paise,
            "currency": self.currency,
            "status": self.status,
            "source": self.source,
            "metadata": dict(self.details or {}),
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
        }


class WalletTransaction(db.Model):
    """
    Append-only wallet ledger. amount_paise is signed (credits positive).

    TRANSACTION TYPES:
    - referral_signup_bonus: credited to a new reseller who used a code
    - referral_reward: credited to the referrer when the referee subscribes
    - subscription_debit: wallet share of a plan purchase
    - admin_adjustment: manual correction from the back-office
    """
    __tablename__ = "wallet_transactions"
    __table_args__ = (
        db.Index("ix_wallet_transactions_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    amount_paise = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    balance_after_paise = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount_paise": self.amount_paise,
            "type": self.type,
            "description": self.description,
            "balance_after_paise": self.balance_after_paise,
            "created_at": to_utc_z(self.created_at),
        }


class Referral(db.Model):
    """A referee can be referred at most once; the reward is paid once."""
    __tablename__ = "referrals"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    referrer_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, index=True)
    referee_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default="pending")
    reward_paise = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    referrer = db.relationship("Profile", foreign_keys=[referrer_id])
    referee = db.relationship("Profile", foreign_keys=[referee_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "referrer_id": self.referrer_id,
            "referee_id": self.referee_id,
            "referee_name": self.referee.full_name if self.referee else None,
            "status": self.status,
            "reward_paise": self.reward_paise,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
        }
