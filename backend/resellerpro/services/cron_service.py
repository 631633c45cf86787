# Overview: Scheduled jobs triggered over HTTP (or `flask cron run`): reminder emails and plan expiry.

"""
Cron Service

Each job is idempotent over short intervals: a row is stamped when its
email goes out and is skipped until the gap has passed, so an external
scheduler may call the endpoints as often as it likes.

    enquiry_alert       open enquiries grouped per reseller, 12h gap
    order_update        pending orders, one email each, 12h gap
    subscription_check  7/3/1-day expiry reminders, then downgrade of
                        expired paid plans
"""
from __future__ import annotations

from collections import defaultdict
from datetime import timedelta

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Enquiry, Order, Profile, Subscription
from resellerpro.time_utils import utcnow, days_until
from . import mail_service, plan_service


REMINDER_GAP = timedelta(hours=12)
OPEN_ENQUIRY_STATUSES = ("new", "needs_follow_up")
REMINDER_DAYS = (7, 3, 1)


def run_enquiry_alert() -> dict:
    now = utcnow()
    cutoff = now - REMINDER_GAP
    enquiries = (
        db.session.query(Enquiry)
        .filter(
            Enquiry.status.in_(OPEN_ENQUIRY_STATUSES),
            Enquiry.is_deleted.is_(False),
            or_(Enquiry.last_reminder_sent_at.is_(None), Enquiry.last_reminder_sent_at < cutoff),
        )
        .order_by(Enquiry.created_at.asc())
        .all()
    )

    by_user: dict[int, list[Enquiry]] = defaultdict(list)
    for enquiry in enquiries:
        by_user[enquiry.user_id].append(enquiry)

    emails_sent = 0
    for user_id, pending in by_user.items():
        profile = db.session.get(Profile, user_id)
        if profile is None or not profile.is_active:
            continue
        sent = mail_service.send_enquiry_alert(
            to=profile.email,
            user_name=profile.full_name or "User",
            enquiries=[
                {"customer_name": e.customer_name, "phone": e.phone, "status": e.status, "message": e.message}
                for e in pending
            ],
        )
        if not sent:
            continue
        for enquiry in pending:
            enquiry.last_reminder_sent_at = now
        db.session.commit()
        emails_sent += 1

    current_app.logger.info("Enquiry alert: %s enquiries, %s emails", len(enquiries), emails_sent)
    return {"processed": len(enquiries), "users": len(by_user), "emails_sent": emails_sent}


def run_order_update() -> dict:
    now = utcnow()
    cutoff = now - REMINDER_GAP
    orders = (
        db.session.query(Order)
        .filter(
            Order.status == "pending",
            or_(Order.last_update_email_sent_at.is_(None), Order.last_update_email_sent_at < cutoff),
        )
        .order_by(Order.created_at.asc())
        .all()
    )

    emails_sent = 0
    for order in orders:
        profile = db.session.get(Profile, order.user_id)
        if profile is None or not profile.is_active:
            continue
        sent = mail_service.send_order_status(
            to=profile.email,
            user_name=profile.full_name or "User",
            order_number=order.order_number,
            status=order.status,
            is_reminder=True,
        )
        if sent:
            order.last_update_email_sent_at = now
            db.session.commit()
            emails_sent += 1

    current_app.logger.info("Order update: %s pending orders, %s emails", len(orders), emails_sent)
    return {"processed": len(orders), "emails_sent": emails_sent}


def run_subscription_check() -> dict:
    """
    Reminders fire on the day the period end is exactly 7, 3 or 1 days
    away, once per bucket (stamped on the profile). Subscriptions set to
    cancel at period end get no reminders.
    """
    now = utcnow()
    results = {"checked": 0, "sent7d": 0, "sent3d": 0, "sent1d": 0, "downgraded": 0}

    subs = (
        db.session.query(Subscription)
        .filter(Subscription.current_period_end.isnot(None), Subscription.status == "active")
        .all()
    )
    for sub in subs:
        if sub.plan is None or not sub.plan.is_paid:
            continue
        results["checked"] += 1

        if sub.current_period_end <= now:
            if plan_service.check_and_downgrade_subscription(sub.user_id):
                results["downgraded"] += 1
            continue

        if sub.cancel_at_period_end:
            continue

        profile = sub.user
        days_left = days_until(sub.current_period_end, now)
        if days_left not in REMINDER_DAYS or profile is None:
            continue
        stamp = f"reminder_{days_left}d_sent_at"
        if getattr(profile, stamp) is not None:
            continue

        sent = mail_service.send_subscription_reminder(
            to=profile.email,
            user_name=profile.full_name or "User",
            plan_name=sub.plan.display_name,
            days_left=days_left,
            end_date=sub.current_period_end,
        )
        if sent:
            setattr(profile, stamp, now)
            db.session.commit()
            results[f"sent{days_left}d"] += 1

    current_app.logger.info("Subscription check: %s", results)
    return results


JOBS = {
    "enquiry-alert": run_enquiry_alert,
    "order-update": run_order_update,
    "subscription-check": run_subscription_check,
}


def run_job(name: str) -> dict:
    try:
        job = JOBS[name]
    except KeyError:
        raise ValueError(f"Unknown cron job: {name}")
    return job()
