"""
Subscription plans, usage limits and expiry downgrade.

Limits come from the subscriber's SubscriptionPlan row (NULL = unlimited).
Order and enquiry limits are per calendar month (UTC); customer and
product limits count live rows.

An expired paid subscription falls back to the free plan the next time
it is read (check_and_downgrade_subscription) or by the daily cron.
"""
from __future__ import annotations

from flask import current_app
from ..extensions import db
from ..models import SubscriptionPlan, Subscription, Order, Enquiry, Customer, Product
from resellerpro.time_utils import utcnow, start_of_month


FREE_PLAN = "free"

# Hard ceiling on images per product regardless of plan
MAX_PRODUCT_IMAGES = 10

PLAN_LIMITS = {
    "free": {
        "display_name": "Free",
        "price_paise": 0,
        "order_limit": 10,
        "enquiry_limit": 25,
        "customer_limit": 50,
        "product_limit": 20,
        "product_image_limit": 2,
    },
    "beginner": {
        "display_name": "Beginner",
        "price_paise": 19900,
        "order_limit": 50,
        "enquiry_limit": 100,
        "customer_limit": 100,
        "product_limit": 30,
        "product_image_limit": 3,
    },
    "professional": {
        "display_name": "Professional",
        "price_paise": 69900,
        "order_limit": 100,
        "enquiry_limit": 200,
        "customer_limit": None,
        "product_limit": 50,
        "product_image_limit": 5,
    },
    "business": {
        "display_name": "Business",
        "price_paise": 199900,
        "order_limit": None,
        "enquiry_limit": None,
        "customer_limit": None,
        "product_limit": None,
        "product_image_limit": 10,
    },
}

# resource -> (plan column, label)
_RESOURCES = {
    "orders": ("order_limit", "orders this month"),
    "enquiries": ("enquiry_limit", "enquiries this month"),
    "customers": ("customer_limit", "customers"),
    "products": ("product_limit", "products"),
}


class PlanLimitError(Exception):
    """Raised when creating a row would exceed the plan's limit (403)."""

    def __init__(self, resource: str, limit: int, plan_name: str):
        self.resource = resource
        self.limit = limit
        self.plan_name = plan_name
        label = _RESOURCES[resource][1]
        super().__init__(
            f"Plan limit reached: the {plan_name} plan allows {limit} {label}. Upgrade to add more."
        )


def seed_plans() -> int:
    """Insert or refresh plan rows from PLAN_LIMITS. Returns rows touched."""
    touched = 0
    for name, spec in PLAN_LIMITS.items():
        plan = db.session.query(SubscriptionPlan).filter_by(name=name).first()
        if plan is None:
            plan = SubscriptionPlan(name=name)
            db.session.add(plan)
        for key, value in spec.items():
            setattr(plan, key, value)
        plan.is_active = True
        touched += 1
    db.session.commit()
    return touched


def get_plan_by_name(name: str) -> SubscriptionPlan:
    plan = db.session.query(SubscriptionPlan).filter_by(name=name).first()
    if plan is None:
        # Fresh database without `flask plans seed`
        seed_plans()
        plan = db.session.query(SubscriptionPlan).filter_by(name=name).first()
    return plan


def list_plans() -> list[dict]:
    plans = (
        db.session.query(SubscriptionPlan)
        .filter(SubscriptionPlan.is_active.is_(True))
        .order_by(SubscriptionPlan.price_paise.asc())
        .all()
    )
    return [p.to_dict() for p in plans]


def ensure_free_subscription(user_id: int) -> Subscription:
    """Create the free subscription row for a new account (no commit)."""
    sub = db.session.query(Subscription).filter_by(user_id=user_id).first()
    if sub:
        return sub
    sub = Subscription(
        user_id=user_id,
        plan_id=get_plan_by_name(FREE_PLAN).id,
        status="active",
        current_period_start=utcnow(),
        current_period_end=None,
    )
    db.session.add(sub)
    db.session.flush()
    return sub


def downgrade_to_free(sub: Subscription) -> None:
    free = get_plan_by_name(FREE_PLAN)
    sub.plan_id = free.id
    sub.plan = free
    sub.status = "active"
    sub.current_period_start = utcnow()
    sub.current_period_end = None
    sub.cancel_at_period_end = False
    sub.expiry_notified_at = None


def check_and_downgrade_subscription(user_id: int) -> bool:
    """
    Move an expired paid subscription back to free. Returns True when a
    downgrade happened (committed).
    """
    sub = db.session.query(Subscription).filter_by(user_id=user_id).first()
    if sub is None or sub.plan is None or not sub.plan.is_paid:
        return False
    if sub.current_period_end is None or sub.current_period_end > utcnow():
        return False

    old_plan = sub.plan.name
    downgrade_to_free(sub)
    db.session.commit()
    current_app.logger.info("Subscription for user %s expired (%s); downgraded to free", user_id, old_plan)
    return True


def get_subscription(user_id: int) -> Subscription:
    """Current subscription, self-healing expiry and missing rows."""
    check_and_downgrade_subscription(user_id)
    sub = db.session.query(Subscription).filter_by(user_id=user_id).first()
    if sub is None:
        sub = ensure_free_subscription(user_id)
        db.session.commit()
    return sub


def get_active_plan(user_id: int) -> SubscriptionPlan:
    return get_subscription(user_id).plan


def _count_usage(user_id: int, resource: str) -> int:
    month_start = start_of_month(utcnow())
    if resource == "orders":
        return db.session.query(Order).filter(
            Order.user_id == user_id, Order.created_at >= month_start
        ).count()
    if resource == "enquiries":
        # Deleted enquiries still count toward the month
        return db.session.query(Enquiry).filter(
            Enquiry.user_id == user_id, Enquiry.created_at >= month_start
        ).count()
    if resource == "customers":
        return db.session.query(Customer).filter(
            Customer.user_id == user_id, Customer.is_deleted.is_(False)
        ).count()
    if resource == "products":
        return db.session.query(Product).filter(Product.user_id == user_id).count()
    raise ValueError(f"Unknown resource: {resource}")


def check_limit(user_id: int, resource: str) -> None:
    """Raise PlanLimitError if one more `resource` would exceed the plan."""
    plan = get_active_plan(user_id)
    limit = getattr(plan, _RESOURCES[resource][0])
    if limit is None:
        return
    if _count_usage(user_id, resource) >= limit:
        raise PlanLimitError(resource, limit, plan.display_name)


def product_image_cap(user_id: int) -> int:
    limit = get_active_plan(user_id).product_image_limit
    if limit is None:
        return MAX_PRODUCT_IMAGES
    return min(limit, MAX_PRODUCT_IMAGES)


def get_usage(user_id: int) -> dict:
    plan = get_active_plan(user_id)
    usage = {}
    for resource, (column, _label) in _RESOURCES.items():
        usage[resource] = {
            "used": _count_usage(user_id, resource),
            "limit": getattr(plan, column),
        }
    usage["product_images"] = {"limit": product_image_cap(user_id)}
    return usage
