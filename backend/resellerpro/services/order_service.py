# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Service

Totals are always computed here from the line items; client-sent totals
are ignored. Each order gets the next per-reseller order_number.

STATUS_FLOW lists the legal next statuses. Every change (including
creation) appends an OrderStatusHistory row. Moving to delivered stamps
delivered_at. Customer aggregates are refreshed on create, cancel and
delete.
"""
from __future__ import annotations

import re

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Order, OrderItem, OrderStatusHistory, Product, Customer, Profile, Enquiry
from ..validation import ValidationError, parse_pagination, pagination_meta
from resellerpro.time_utils import utcnow, parse_iso_datetime
from .tenant_service import TenantAccessError, require_owned
from . import customer_service, plan_service


STATUS_FLOW = {
    "pending": ["processing", "cancelled"],
    "processing": ["shipped", "cancelled"],
    "shipped": ["delivered", "cancelled"],
    "delivered": [],
    "cancelled": [],
}
ORDER_STATUSES = set(STATUS_FLOW)
PAYMENT_STATUSES = {"unpaid", "pending", "paid", "cod", "failed"}
PAYMENT_METHODS = {"upi", "cash", "card", "bank_transfer", "cod", "other"}

ORDER_NUMBER_SEARCH_RE = re.compile(r"^#\s*(\d+)$")
PHONE_SEARCH_RE = re.compile(r"^\+?[0-9][0-9\s-]{4,}$")

SORT_FIELDS = {
    "created_at": Order.created_at,
    "order_number": Order.order_number,
    "total_amount": Order.total_amount_paise,
    "status": Order.status,
}


class OrderStatusError(Exception):
    """Raised for a status change outside STATUS_FLOW (400)."""
    pass


def _next_order_number(user_id: int) -> int:
    current = db.session.query(func.max(Order.order_number)).filter(Order.user_id == user_id).scalar()
    return (current or 0) + 1


def _as_int(value, field: str, *, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except ValueError:
        raise ValidationError(f"{field} must be an integer")
    if number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return number


def _build_items(user_id: int, items) -> list[OrderItem]:
    """
    Turn [{"product_id", "quantity", "unit_selling_price_paise"?}] into
    OrderItem rows. Cost prices always come from the product; the selling
    price defaults to the product's but may be overridden per line.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one item is required")

    lines = []
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object")
        product_id = _as_int(raw.get("product_id"), "product_id", minimum=1)
        quantity = _as_int(raw.get("quantity", 1), "quantity", minimum=1)
        try:
            product = require_owned(Product, product_id, user_id)
        except TenantAccessError:
            raise ValidationError(f"Product {product_id} not found")

        unit_price = product.selling_price_paise
        if raw.get("unit_selling_price_paise") is not None:
            unit_price = _as_int(raw["unit_selling_price_paise"], "unit_selling_price_paise")

        lines.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_selling_price_paise=unit_price,
            unit_cost_price_paise=product.cost_price_paise,
        ))
    return lines


def build_order(
    *,
    user_id: int,
    customer: Customer,
    items,
    discount_paise=0,
    shipping_cost_paise=0,
    payment_status: str = "pending",
    payment_method: str | None = None,
    notes: str | None = None,
    enquiry_id: int | None = None,
    history_note: str = "Order created",
) -> Order:
    """Create an order with items and first history row. No commit."""
    plan_service.check_limit(user_id, "orders")

    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"payment_status must be one of {', '.join(sorted(PAYMENT_STATUSES))}")
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(sorted(PAYMENT_METHODS))}")

    lines = _build_items(user_id, items)
    discount = _as_int(discount_paise or 0, "discount_paise")
    shipping = _as_int(shipping_cost_paise or 0, "shipping_cost_paise")

    subtotal = sum(line.quantity * line.unit_selling_price_paise for line in lines)
    if discount > subtotal:
        raise ValidationError("discount_paise cannot exceed the subtotal")

    order = Order(
        user_id=user_id,
        order_number=_next_order_number(user_id),
        customer_id=customer.id,
        enquiry_id=enquiry_id,
        status="pending",
        payment_status=payment_status,
        payment_method=payment_method,
        subtotal_paise=subtotal,
        discount_paise=discount,
        shipping_cost_paise=shipping,
        total_amount_paise=subtotal - discount + shipping,
        total_cost_paise=sum(line.quantity * line.unit_cost_price_paise for line in lines),
        notes=notes,
        created_at=utcnow(),
    )
    order.items = lines
    order.status_history = [OrderStatusHistory(status="pending", notes=history_note, changed_by=user_id)]
    db.session.add(order)
    db.session.flush()

    customer_service.refresh_aggregates(customer.id)
    return order


def create_order(user_id: int, payload: dict) -> dict:
    """
    payload: customer_id, items, discount_paise, shipping_cost_paise,
    payment_status, payment_method, notes.
    """
    payload = payload or {}
    if payload.get("customer_id") is None:
        raise ValidationError("customer_id is required")
    try:
        customer = require_owned(Customer, _as_int(payload["customer_id"], "customer_id", minimum=1), user_id)
    except TenantAccessError:
        raise ValidationError("Customer not found")

    order = build_order(
        user_id=user_id,
        customer=customer,
        items=payload.get("items"),
        discount_paise=payload.get("discount_paise", 0),
        shipping_cost_paise=payload.get("shipping_cost_paise", 0),
        payment_status=payload.get("payment_status") or "pending",
        payment_method=payload.get("payment_method"),
        notes=(payload.get("notes") or None),
    )
    db.session.commit()
    current_app.logger.info("Order #%s created for user %s", order.order_number, user_id)
    return order.to_dict(include_items=True)


def get_order(user_id: int, order_id: int) -> dict:
    return require_owned(Order, order_id, user_id).to_dict(include_items=True)


def get_allowed_transitions(user_id: int, order_id: int) -> dict:
    order = require_owned(Order, order_id, user_id)
    return {"status": order.status, "allowed": STATUS_FLOW.get(order.status, [])}


def update_status(
    *,
    user_id: int,
    order_id: int,
    new_status: str,
    notes: str | None = None,
    courier_service: str | None = None,
    tracking_number: str | None = None,
) -> dict:
    order = require_owned(Order, order_id, user_id)

    if new_status not in ORDER_STATUSES:
        raise OrderStatusError(f"Unknown status: {new_status}")
    allowed = STATUS_FLOW.get(order.status, [])
    if new_status not in allowed:
        if not allowed:
            raise OrderStatusError(f"Order is {order.status} and can no longer change status")
        raise OrderStatusError(
            f"Cannot change status from {order.status} to {new_status}. Allowed: {', '.join(allowed)}"
        )

    previous = order.status
    order.status = new_status
    if courier_service:
        order.courier_service = courier_service.strip()
    if tracking_number:
        order.tracking_number = tracking_number.strip()
    if new_status == "delivered":
        order.delivered_at = utcnow()

    db.session.add(OrderStatusHistory(
        order_id=order.id,
        status=new_status,
        notes=notes,
        courier_service=courier_service,
        tracking_number=tracking_number,
        changed_by=user_id,
    ))

    if new_status == "cancelled" and order.customer_id:
        db.session.flush()
        customer_service.refresh_aggregates(order.customer_id)

    db.session.commit()
    current_app.logger.info("Order #%s: %s -> %s", order.order_number, previous, new_status)
    return order.to_dict(include_items=True)


def update_payment_status(*, user_id: int, order_id: int, payment_status: str, payment_method: str | None = None) -> dict:
    order = require_owned(Order, order_id, user_id)
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"payment_status must be one of {', '.join(sorted(PAYMENT_STATUSES))}")
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(sorted(PAYMENT_METHODS))}")
    order.payment_status = payment_status
    if payment_method is not None:
        order.payment_method = payment_method
    db.session.commit()
    return order.to_dict()


def delete_order(*, user_id: int, order_id: int) -> None:
    order = require_owned(Order, order_id, user_id)
    customer_id = order.customer_id
    db.session.query(Enquiry).filter(Enquiry.converted_order_id == order.id).update(
        {Enquiry.converted_order_id: None}, synchronize_session=False
    )
    db.session.delete(order)
    db.session.flush()
    if customer_id:
        customer_service.refresh_aggregates(customer_id)
    db.session.commit()


def list_orders(
    user_id: int,
    *,
    search: str | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    sort: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    """
    search: "#123" matches the order number, a phone-like string matches
    the customer's phone, anything else the customer's name.
    status / payment_status: exact value, or "all".
    sort: "<field>" or "-<field>"; default "-created_at".
    """
    query = db.session.query(Order).outerjoin(Customer, Order.customer_id == Customer.id).filter(
        Order.user_id == user_id
    )

    term = (search or "").strip()
    if term:
        number_match = ORDER_NUMBER_SEARCH_RE.match(term)
        if number_match:
            query = query.filter(Order.order_number == int(number_match.group(1)))
        elif PHONE_SEARCH_RE.match(term):
            digits = re.sub(r"\D", "", term)
            query = query.filter(or_(Customer.phone.ilike(f"%{digits}%"), Customer.whatsapp.ilike(f"%{digits}%")))
        else:
            query = query.filter(Customer.name.ilike(f"%{term}%"))

    if status and status != "all":
        query = query.filter(Order.status == status)
    if payment_status and payment_status != "all":
        query = query.filter(Order.payment_status == payment_status)

    try:
        start = parse_iso_datetime(date_from)
        end = parse_iso_datetime(date_to)
    except ValueError:
        raise ValidationError("date_from and date_to must be ISO-8601 dates")
    if start:
        query = query.filter(Order.created_at >= start)
    if end:
        query = query.filter(Order.created_at <= end)

    sort = sort or "-created_at"
    descending = sort.startswith("-")
    column = SORT_FIELDS.get(sort.lstrip("-"), Order.created_at)
    query = query.order_by(column.desc() if descending else column.asc(), Order.id.desc())

    page, limit = parse_pagination(page, limit)
    total = query.count()
    orders = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": [o.to_dict() for o in orders],
        "count": len(orders),
        "pagination": pagination_meta(page, limit, total),
    }


def get_invoice(user_id: int, order_id: int) -> dict:
    order = require_owned(Order, order_id, user_id)
    seller = db.session.get(Profile, user_id)
    customer = order.customer
    return {
        "invoice_number": f"INV-{order.order_number:05d}",
        "invoice_date": order.to_dict()["created_at"],
        "seller": {
            "name": seller.business_name or seller.full_name,
            "gstin": seller.gstin,
            "address": seller.business_address,
            "phone": seller.business_phone or seller.phone,
            "email": seller.business_email or seller.email,
        },
        "customer": customer.to_dict() if customer else None,
        "order": order.to_dict(include_items=True),
    }


def get_order_stats(user_id: int) -> dict:
    orders = db.session.query(Order).filter(Order.user_id == user_id).all()
    live = [o for o in orders if o.status != "cancelled"]
    counts = {s: 0 for s in ORDER_STATUSES}
    for o in orders:
        counts[o.status] = counts.get(o.status, 0) + 1
    return {
        "total": len(orders),
        "by_status": counts,
        "total_revenue_paise": sum(o.total_amount_paise for o in live),
        "total_profit_paise": sum(o.profit_paise for o in live),
        "unpaid_paise": sum(o.total_amount_paise for o in live if o.payment_status in {"unpaid", "pending"}),
    }
