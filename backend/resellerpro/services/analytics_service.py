# Overview: Service-layer operations for analytics and the dashboard summary.

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta

from ..extensions import db
from ..models import Order, Customer, Product, Enquiry
from ..validation import ValidationError
from resellerpro.time_utils import parse_iso_datetime, utcnow, to_utc_z, start_of_month
from . import plan_service, notification_service


DEFAULT_RANGE_DAYS = 30
FREE_PLAN_RANGE_DAYS = 7
TOP_N = 5


def _percent_change(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) * 100.0 / previous, 1)


def _resolve_range(user_id: int, start: str | None, end: str | None) -> tuple[datetime, datetime, bool]:
    """
    Returns (start, end, restricted). Without dates the last 30 days are
    used. Free-plan resellers never see data older than 7 days.
    """
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ValidationError("from and to must be ISO-8601 dates")

    now = utcnow()
    end_dt = end_dt or now
    if end_dt.hour == 0 and end_dt.minute == 0 and end_dt.second == 0:
        end_dt = end_dt.replace(hour=23, minute=59, second=59)
    start_dt = start_dt or (end_dt - timedelta(days=DEFAULT_RANGE_DAYS - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
    if start_dt > end_dt:
        raise ValidationError("from must be before to")

    restricted = False
    if not plan_service.get_active_plan(user_id).is_paid:
        floor = (now - timedelta(days=FREE_PLAN_RANGE_DAYS)).replace(hour=0, minute=0, second=0, microsecond=0)
        if start_dt < floor:
            start_dt = floor
            restricted = True
    return start_dt, end_dt, restricted


def _orders_between(user_id: int, start: datetime, end: datetime) -> list[Order]:
    return (
        db.session.query(Order)
        .filter(Order.user_id == user_id, Order.created_at >= start, Order.created_at <= end)
        .order_by(Order.created_at.asc())
        .all()
    )


def _summary(orders: list[Order]) -> dict:
    live = [o for o in orders if o.status != "cancelled"]
    revenue = sum(o.total_amount_paise for o in live)
    profit = sum(o.profit_paise for o in live)
    count = len(live)
    return {
        "revenue_paise": revenue,
        "profit_paise": profit,
        "order_count": count,
        "average_order_value_paise": revenue // count if count else 0,
        "profit_margin": round(profit * 100.0 / revenue, 1) if revenue else 0.0,
        "pending_value_paise": sum(o.total_amount_paise for o in live if o.status == "pending"),
    }


def get_analytics(user_id: int, *, start: str | None = None, end: str | None = None) -> dict:
    start_dt, end_dt, restricted = _resolve_range(user_id, start, end)
    orders = _orders_between(user_id, start_dt, end_dt)

    span = end_dt - start_dt
    prev_end = start_dt - timedelta(seconds=1)
    previous = _orders_between(user_id, prev_end - span, prev_end)

    current_stats = _summary(orders)
    previous_stats = _summary(previous)
    changes = {
        "revenue": _percent_change(current_stats["revenue_paise"], previous_stats["revenue_paise"]),
        "profit": _percent_change(current_stats["profit_paise"], previous_stats["profit_paise"]),
        "orders": current_stats["order_count"] - previous_stats["order_count"],
        "average_order_value": _percent_change(
            current_stats["average_order_value_paise"], previous_stats["average_order_value_paise"]
        ),
    }

    daily: dict[str, dict] = {}
    day = start_dt.date()
    while day <= end_dt.date():
        daily[day.isoformat()] = {"date": day.isoformat(), "revenue_paise": 0, "profit_paise": 0, "orders": 0}
        day += timedelta(days=1)

    status_counts: dict[str, int] = defaultdict(int)
    payment_counts: dict[str, int] = defaultdict(int)
    by_category: dict[str, int] = defaultdict(int)
    products: dict[str, dict] = {}
    customers: dict[int, dict] = {}

    for order in orders:
        status_counts[order.status] += 1
        payment_counts[order.payment_status] += 1
        if order.status == "cancelled":
            continue

        bucket = daily.get(order.created_at.date().isoformat())
        if bucket is not None:
            bucket["revenue_paise"] += order.total_amount_paise
            bucket["profit_paise"] += order.profit_paise
            bucket["orders"] += 1

        for item in order.items:
            product = db.session.get(Product, item.product_id) if item.product_id else None
            by_category[(product.category if product else None) or "Uncategorized"] += item.line_total_paise
            key = str(item.product_id or item.product_name)
            entry = products.setdefault(key, {"product_id": item.product_id, "name": item.product_name, "revenue_paise": 0, "quantity": 0})
            entry["revenue_paise"] += item.line_total_paise
            entry["quantity"] += item.quantity

        if order.customer_id:
            entry = customers.setdefault(order.customer_id, {
                "customer_id": order.customer_id,
                "name": order.customer.name if order.customer else "Unknown Customer",
                "spent_paise": 0,
                "orders": 0,
            })
            entry["spent_paise"] += order.total_amount_paise
            entry["orders"] += 1

    return {
        "range": {"from": to_utc_z(start_dt), "to": to_utc_z(end_dt), "restricted": restricted},
        "stats": current_stats,
        "previous": previous_stats,
        "changes": changes,
        "daily": list(daily.values()),
        "status_breakdown": dict(status_counts),
        "payment_breakdown": dict(payment_counts),
        "revenue_by_category": [
            {"category": name, "revenue_paise": value}
            for name, value in sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)
        ],
        "top_products": sorted(products.values(), key=lambda p: p["revenue_paise"], reverse=True)[:TOP_N],
        "top_customers": sorted(customers.values(), key=lambda c: c["spent_paise"], reverse=True)[:TOP_N],
    }


def get_dashboard(user_id: int) -> dict:
    """Home-screen summary. Also raises any due time-based notifications."""
    notification_service.check_time_based_notifications(user_id)

    now = utcnow()
    month_start = start_of_month(now)
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

    month_orders = [
        o for o in _orders_between(user_id, month_start, now) if o.status != "cancelled"
    ]
    recent = (
        db.session.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(5)
        .all()
    )
    pending_orders = db.session.query(Order).filter(
        Order.user_id == user_id, Order.status.in_(("pending", "processing"))
    ).count()
    open_enquiries = db.session.query(Enquiry).filter(
        Enquiry.user_id == user_id,
        Enquiry.is_deleted.is_(False),
        Enquiry.status.in_(("new", "needs_follow_up")),
    ).count()
    low_stock = db.session.query(Product).filter(
        Product.user_id == user_id,
        Product.stock_status.in_(("low_stock", "out_of_stock")),
    ).count()
    customers = db.session.query(Customer).filter(
        Customer.user_id == user_id, Customer.is_deleted.is_(False)
    ).count()

    sub = plan_service.get_subscription(user_id)
    return {
        "today": {
            "orders": sum(1 for o in month_orders if o.created_at >= today_start),
            "revenue_paise": sum(o.total_amount_paise for o in month_orders if o.created_at >= today_start),
        },
        "month": {
            "orders": len(month_orders),
            "revenue_paise": sum(o.total_amount_paise for o in month_orders),
            "profit_paise": sum(o.profit_paise for o in month_orders),
        },
        "pending_orders": pending_orders,
        "open_enquiries": open_enquiries,
        "low_stock_products": low_stock,
        "customers": customers,
        "recent_orders": [o.to_dict() for o in recent],
        "plan": sub.plan.to_dict() if sub.plan else None,
        "usage": plan_service.get_usage(user_id),
    }
