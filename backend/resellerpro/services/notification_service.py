# Overview: In-app notifications, including time-based reminders computed on read.

"""
Notification Service

notify() is best-effort: it writes inside a SAVEPOINT and logs instead of
raising, so a failed notification never aborts the business flow that
triggered it.

check_time_based_notifications() runs when a reseller opens their
notifications and creates reminders for:
- enquiries whose follow-up date has arrived
- enquiries still "new" after 24 hours
- a paid subscription ending within 7 days (at most once per 24 hours)
"""
from __future__ import annotations

from datetime import timedelta
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Notification, Enquiry, Subscription, Profile
from ..validation import parse_pagination, pagination_meta
from resellerpro.time_utils import utcnow, days_until


NOTIFICATION_TYPES = {
    "enquiry_followup_due",
    "wallet_credited",
    "subscription_expiring_soon",
    "low_stock",
    "system_alert",
}
PRIORITIES = {"high", "normal", "low"}

IDLE_ENQUIRY_AGE = timedelta(hours=24)
EXPIRY_WARNING_WINDOW = timedelta(days=7)
EXPIRY_NOTIFY_THROTTLE = timedelta(hours=24)


def notify(
    user_id: int,
    type: str,
    title: str,
    message: str,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    priority: str = "normal",
) -> Notification | None:
    """Create a notification without committing. Returns None on failure."""
    if type not in NOTIFICATION_TYPES:
        current_app.logger.error("Refusing unknown notification type %s", type)
        return None
    if priority not in PRIORITIES:
        priority = "normal"
    try:
        with db.session.begin_nested():
            notification = Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
                priority=priority,
            )
            db.session.add(notification)
        return notification
    except SQLAlchemyError:
        current_app.logger.exception("Failed to create %s notification for user %s", type, user_id)
        return None


def list_notifications(user_id: int, *, page: int | None = None, limit: int | None = None, unread_only: bool = False) -> dict:
    """Unread first, then newest first."""
    page, limit = parse_pagination(page, limit)
    base = db.session.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        base = base.filter(Notification.is_read.is_(False))

    total = base.count()
    rows = (
        base.order_by(Notification.is_read.asc(), Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    unread = db.session.query(Notification).filter(
        Notification.user_id == user_id, Notification.is_read.is_(False)
    ).count()
    return {
        "items": [n.to_dict() for n in rows],
        "unread_count": unread,
        "pagination": pagination_meta(page, limit, total),
    }


def mark_read(user_id: int, notification_id: int | None = None, mark_all: bool = False) -> int:
    """Mark one (by id) or all of the caller's notifications read. Returns rows changed."""
    if not mark_all and notification_id is None:
        raise ValueError("notification_id or mark_all is required")

    query = db.session.query(Notification).filter(
        Notification.user_id == user_id, Notification.is_read.is_(False)
    )
    if not mark_all:
        query = query.filter(Notification.id == notification_id)

    now = utcnow()
    count = 0
    for n in query.all():
        n.is_read = True
        n.read_at = now
        count += 1
    db.session.commit()
    return count


def _has_notification(user_id: int, type: str, entity_type: str, entity_id: int) -> bool:
    return db.session.query(Notification.id).filter(
        Notification.user_id == user_id,
        Notification.type == type,
        Notification.entity_type == entity_type,
        Notification.entity_id == entity_id,
    ).first() is not None


def check_time_based_notifications(user_id: int) -> int:
    """Create any due reminders for one reseller. Returns how many were created."""
    now = utcnow()
    created = 0
    open_statuses = ("new", "needs_follow_up")

    due = db.session.query(Enquiry).filter(
        Enquiry.user_id == user_id,
        Enquiry.is_deleted.is_(False),
        Enquiry.status.in_(open_statuses),
        Enquiry.followup_date.isnot(None),
        Enquiry.followup_date <= now,
        Enquiry.followup_notified.is_(False),
    ).all()
    for enquiry in due:
        overdue = now - enquiry.followup_date > timedelta(days=1)
        if notify(
            user_id,
            "enquiry_followup_due",
            "Follow-up overdue" if overdue else "Follow-up due",
            f"Follow up with {enquiry.customer_name} ({enquiry.phone}).",
            entity_type="enquiry",
            entity_id=enquiry.id,
            priority="high",
        ):
            enquiry.followup_notified = True
            created += 1

    idle = db.session.query(Enquiry).filter(
        Enquiry.user_id == user_id,
        Enquiry.is_deleted.is_(False),
        Enquiry.status == "new",
        Enquiry.created_at <= now - IDLE_ENQUIRY_AGE,
    ).all()
    for enquiry in idle:
        if enquiry.followup_notified or _has_notification(user_id, "enquiry_followup_due", "enquiry", enquiry.id):
            continue
        if notify(
            user_id,
            "enquiry_followup_due",
            "New enquiry waiting",
            f"{enquiry.customer_name} enquired over a day ago and has not been contacted.",
            entity_type="enquiry",
            entity_id=enquiry.id,
        ):
            created += 1

    sub = db.session.query(Subscription).filter_by(user_id=user_id).first()
    if (
        sub is not None
        and sub.plan is not None
        and sub.plan.is_paid
        and sub.current_period_end is not None
        and now < sub.current_period_end <= now + EXPIRY_WARNING_WINDOW
        and (sub.expiry_notified_at is None or now - sub.expiry_notified_at >= EXPIRY_NOTIFY_THROTTLE)
    ):
        days_left = days_until(sub.current_period_end, now)
        if notify(
            user_id,
            "subscription_expiring_soon",
            "Subscription expiring soon",
            f"Your {sub.plan.display_name} plan ends in {days_left} day(s). Renew to keep your limits.",
            entity_type="subscription",
            entity_id=sub.id,
            priority="high" if days_left <= 1 else "normal",
        ):
            sub.expiry_notified_at = now
            created += 1

    db.session.commit()
    return created


def broadcast(title: str, message: str, priority: str = "normal") -> int:
    """System alert to every active reseller. Returns recipients."""
    ids = [row.id for row in db.session.query(Profile.id).filter(Profile.is_active.is_(True)).all()]
    for user_id in ids:
        notify(user_id, "system_alert", title, message, priority=priority)
    db.session.commit()
    return len(ids)
