"""
Customer Service

Tenant-scoped CRUD with soft delete. Phone numbers are unique per
reseller among live customers; a duplicate create answers 409.
"""
from __future__ import annotations
from sqlalchemy import or_
from ..extensions import db
from ..models import Customer, Order
from ..validation import ConflictError, ModelValidationPolicy, parse_pagination, pagination_meta
from .tenant_service import require_owned, scoped_query
from . import plan_service
from resellerpro.time_utils import utcnow, start_of_month

CUSTOMER_MUTABLE_FIELDS = {
    "name", "phone", "whatsapp", "email",
    "address_line1", "address_line2", "city", "state", "pincode",
    "customer_type", "notes",
}

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=set(CUSTOMER_MUTABLE_FIELDS),
    required_on_create={"name", "phone"},
)

SORT_FIELDS = {
    "name": Customer.name,
    "created_at": Customer.created_at,
    "total_spent": Customer.total_spent_paise,
    "total_orders": Customer.total_orders,
}


def _ensure_unique_phone(user_id: int, phone: str | None, exclude_id: int | None = None) -> None:
    if not phone:
        return
    query = scoped_query(Customer, user_id).filter(Customer.phone == phone)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise ConflictError("A customer with this phone number already exists.")


def find_by_phone(user_id: int, phone: str) -> Customer | None:
    return scoped_query(Customer, user_id).filter(Customer.phone == phone).first()


def list_customers(
    user_id: int,
    *,
    search: str | None = None,
    customer_type: str | None = None,
    sort: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    query = scoped_query(Customer, user_id)

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Customer.name.ilike(like), Customer.phone.ilike(like), Customer.email.ilike(like)))

    if customer_type and customer_type != "all":
        query = query.filter(Customer.customer_type == customer_type)

    sort = sort or "-created_at"
    descending = sort.startswith("-")
    column = SORT_FIELDS.get(sort.lstrip("-"), Customer.created_at)
    query = query.order_by(column.desc() if descending else column.asc(), Customer.id.desc())

    page, limit = parse_pagination(page, limit)
    total = query.count()
    customers = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": [c.to_dict() for c in customers],
        "count": len(customers),
        "pagination": pagination_meta(page, limit, total),
    }


def get_customer(user_id: int, customer_id: int) -> dict:
    customer = require_owned(Customer, customer_id, user_id)
    data = customer.to_dict()
    recent = (
        db.session.query(Order)
        .filter(Order.user_id == user_id, Order.customer_id == customer.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(10)
        .all()
    )
    data["recent_orders"] = [o.to_dict() for o in recent]
    return data


def build_customer(user_id: int, patch: dict) -> Customer:
    """Create a Customer from a validated patch (no commit, limit checked)."""
    plan_service.check_limit(user_id, "customers")
    _ensure_unique_phone(user_id, patch.get("phone"))
    customer = Customer(user_id=user_id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    if not customer.whatsapp:
        customer.whatsapp = customer.phone
    db.session.add(customer)
    db.session.flush()
    return customer


def create_customer(*, patch: dict, user_id: int) -> dict:
    """
    Raises:
        PlanLimitError: customer limit reached
        ConflictError: phone already used by a live customer
    """
    customer = build_customer(user_id, patch)
    db.session.commit()
    return customer.to_dict()


def update_customer(*, customer_id: int, patch: dict, user_id: int) -> dict:
    customer = require_owned(Customer, customer_id, user_id)
    if "phone" in patch:
        _ensure_unique_phone(user_id, patch["phone"], exclude_id=customer.id)
    for k, v in patch.items():
        if k in CUSTOMER_MUTABLE_FIELDS:
            setattr(customer, k, v)
    db.session.commit()
    return customer.to_dict()


def delete_customer(*, customer_id: int, user_id: int) -> None:
    """Soft delete; orders keep pointing at the row."""
    customer = require_owned(Customer, customer_id, user_id)
    customer.is_deleted = True
    customer.updated_at = utcnow()
    db.session.commit()


def refresh_aggregates(customer_id: int) -> None:
    """Recompute order count and spend from non-cancelled orders (no commit)."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return
    orders = db.session.query(Order).filter(
        Order.customer_id == customer_id, Order.status != "cancelled"
    ).all()
    customer.total_orders = len(orders)
    customer.total_spent_paise = sum(o.total_amount_paise for o in orders)
    customer.last_order_at = max((o.created_at for o in orders), default=None)


def get_customer_stats(user_id: int) -> dict:
    customers = scoped_query(Customer, user_id).all()
    month_start = start_of_month(utcnow())
    return {
        "total": len(customers),
        "vip": sum(1 for c in customers if c.customer_type == "vip"),
        "active": sum(1 for c in customers if c.customer_type == "active"),
        "inactive": sum(1 for c in customers if c.customer_type == "inactive"),
        "new_this_month": sum(1 for c in customers if c.created_at and c.created_at >= month_start),
        "repeat_customers": sum(1 for c in customers if c.total_orders > 1),
        "total_revenue_paise": sum(c.total_spent_paise for c in customers),
    }
