# Overview: Platform back-office: admin login, cross-tenant listings and manual wallet adjustments.

"""
Admin Service

The back-office has one operator account configured through the
environment (ADMIN_USERNAME / ADMIN_PASSWORD_HASH, a bcrypt hash). A
successful login returns an HS256 JWT signed with ADMIN_SESSION_SECRET.
The admin token is separate from reseller sessions and never grants
tenant routes.

Unlike every other service, functions here read across tenants.
"""
from __future__ import annotations

from datetime import timedelta

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import or_, func

from ..extensions import db
from ..models import (
    Profile,
    Subscription,
    SubscriptionPlan,
    PaymentTransaction,
    WalletTransaction,
    Referral,
    Order,
    Enquiry,
    Customer,
    Product,
)
from ..validation import NotFoundError, ValidationError, parse_pagination, pagination_meta
from resellerpro.time_utils import utcnow, start_of_month, to_utc_z
from . import notification_service, plan_service, wallet_service
from .concurrency import run_with_retry


ADMIN_COOKIE_NAME = "admin_session"
JWT_ALGORITHM = "HS256"


class AdminAuthError(Exception):
    """Bad credentials, or a missing, invalid or expired admin token (401)."""
    pass


def validate_credentials(username: str | None, password: str | None) -> bool:
    expected_user = current_app.config.get("ADMIN_USERNAME") or "admin"
    password_hash = current_app.config.get("ADMIN_PASSWORD_HASH") or ""
    if not username or not password or not password_hash:
        return False
    if username != expected_user:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        current_app.logger.error("ADMIN_PASSWORD_HASH is not a valid bcrypt hash")
        return False


def issue_token(username: str) -> tuple[str, int]:
    """Returns (token, max_age_seconds)."""
    hours = int(current_app.config.get("ADMIN_SESSION_HOURS", 24))
    now = utcnow()
    payload = {
        "sub": username,
        "role": "admin",
        "iat": now,
        "exp": now + timedelta(hours=hours),
    }
    token = jwt.encode(payload, current_app.config["ADMIN_SESSION_SECRET"], algorithm=JWT_ALGORITHM)
    return token, hours * 3600


def login(username: str | None, password: str | None) -> tuple[str, int]:
    if not validate_credentials(username, password):
        current_app.logger.warning("Failed admin login for %r", username)
        raise AdminAuthError("Invalid credentials")
    current_app.logger.info("Admin %s signed in", username)
    return issue_token(username)


def verify_token(token: str | None) -> dict:
    if not token:
        raise AdminAuthError("No session found")
    try:
        claims = jwt.decode(token, current_app.config["ADMIN_SESSION_SECRET"], algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AdminAuthError("Session expired")
    except jwt.InvalidTokenError:
        raise AdminAuthError("Invalid session")
    if claims.get("role") != "admin":
        raise AdminAuthError("Invalid session")
    return claims


def hash_admin_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def _paginate(query, page, limit, default_limit: int = 50):
    page, limit = parse_pagination(page, limit, default_limit=default_limit)
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, pagination_meta(page, limit, total)


def get_platform_stats() -> dict:
    now = utcnow()
    month_start = start_of_month(now)
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

    revenue = db.session.query(func.coalesce(func.sum(PaymentTransaction.amount_paise), 0)).filter(
        PaymentTransaction.status == "success"
    ).scalar()
    month_revenue = db.session.query(func.coalesce(func.sum(PaymentTransaction.amount_paise), 0)).filter(
        PaymentTransaction.status == "success", PaymentTransaction.created_at >= month_start
    ).scalar()

    plan_counts: dict[str, int] = {}
    rows = (
        db.session.query(SubscriptionPlan.name, func.count(Subscription.id))
        .join(Subscription, Subscription.plan_id == SubscriptionPlan.id)
        .filter(Subscription.status == "active")
        .group_by(SubscriptionPlan.name)
        .all()
    )
    for name, count in rows:
        plan_counts[name] = int(count)

    expiring = db.session.query(Subscription).filter(
        Subscription.status == "active",
        Subscription.current_period_end.isnot(None),
        Subscription.current_period_end >= now,
        Subscription.current_period_end <= now + timedelta(days=7),
    ).count()

    recent_users = db.session.query(Profile).order_by(Profile.created_at.desc()).limit(10).all()
    recent_txns = db.session.query(PaymentTransaction).order_by(PaymentTransaction.created_at.desc()).limit(10).all()

    return {
        "total_users": db.session.query(Profile).count(),
        "new_users_today": db.session.query(Profile).filter(Profile.created_at >= today_start).count(),
        "active_paid_subscriptions": sum(c for n, c in plan_counts.items() if n != plan_service.FREE_PLAN),
        "free_users": plan_counts.get(plan_service.FREE_PLAN, 0),
        "plan_distribution": plan_counts,
        "expiring_within_7_days": expiring,
        "total_revenue_paise": int(revenue or 0),
        "month_revenue_paise": int(month_revenue or 0),
        "total_orders": db.session.query(Order).count(),
        "pending_enquiries": db.session.query(Enquiry).filter(
            Enquiry.status == "new", Enquiry.is_deleted.is_(False)
        ).count(),
        "total_wallet_balance_paise": int(
            db.session.query(func.coalesce(func.sum(Profile.wallet_balance_paise), 0)).scalar() or 0
        ),
        "recent_users": [
            {"id": p.id, "full_name": p.full_name, "email": p.email, "created_at": to_utc_z(p.created_at)}
            for p in recent_users
        ],
        "recent_transactions": [t.to_dict() for t in recent_txns],
    }


def _reseller_row(profile: Profile) -> dict:
    sub = profile.subscription
    return {
        "id": profile.id,
        "full_name": profile.full_name,
        "email": profile.email,
        "phone": profile.phone,
        "business_name": profile.business_name,
        "wallet_balance_paise": profile.wallet_balance_paise,
        "is_active": profile.is_active,
        "plan": sub.plan.name if sub and sub.plan else None,
        "subscription_status": sub.status if sub else None,
        "current_period_end": to_utc_z(sub.current_period_end) if sub else None,
        "created_at": to_utc_z(profile.created_at),
    }


def list_resellers(*, search: str | None = None, page=None, limit=None) -> dict:
    query = db.session.query(Profile)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Profile.full_name.ilike(like), Profile.email.ilike(like), Profile.business_name.ilike(like)
        ))
    query = query.order_by(Profile.created_at.desc(), Profile.id.desc())
    rows, pagination = _paginate(query, page, limit)
    return {"items": [_reseller_row(p) for p in rows], "pagination": pagination}


def get_reseller(user_id: int) -> dict:
    profile = db.session.get(Profile, user_id)
    if profile is None:
        raise NotFoundError("Customer not found")

    data = _reseller_row(profile)
    data["usage"] = {
        "orders": db.session.query(Order).filter(Order.user_id == user_id).count(),
        "customers": db.session.query(Customer).filter(Customer.user_id == user_id, Customer.is_deleted.is_(False)).count(),
        "products": db.session.query(Product).filter(Product.user_id == user_id).count(),
        "enquiries": db.session.query(Enquiry).filter(Enquiry.user_id == user_id, Enquiry.is_deleted.is_(False)).count(),
    }
    data["transactions"] = [
        t.to_dict()
        for t in db.session.query(PaymentTransaction)
        .filter(PaymentTransaction.user_id == user_id)
        .order_by(PaymentTransaction.created_at.desc())
        .limit(20)
        .all()
    ]
    data["wallet"] = wallet_service.get_wallet(user_id, limit=20)
    return data


def list_subscriptions(*, status: str | None = None, plan: str | None = None, page=None, limit=None) -> dict:
    query = db.session.query(Subscription).join(SubscriptionPlan, Subscription.plan_id == SubscriptionPlan.id)
    if status and status != "all":
        query = query.filter(Subscription.status == status)
    if plan and plan != "all":
        query = query.filter(SubscriptionPlan.name == plan)
    query = query.order_by(Subscription.updated_at.desc(), Subscription.id.desc())
    rows, pagination = _paginate(query, page, limit)
    return {
        "items": [
            {
                "id": s.id,
                "user_id": s.user_id,
                "email": s.user.email if s.user else None,
                "full_name": s.user.full_name if s.user else None,
                "plan": s.plan.name,
                "status": s.status,
                "current_period_start": to_utc_z(s.current_period_start),
                "current_period_end": to_utc_z(s.current_period_end),
                "cancel_at_period_end": s.cancel_at_period_end,
            }
            for s in rows
        ],
        "pagination": pagination,
    }


def list_transactions(*, status: str | None = None, page=None, limit=None) -> dict:
    query = db.session.query(PaymentTransaction)
    if status and status != "all":
        query = query.filter(PaymentTransaction.status == status)
    query = query.order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
    rows, pagination = _paginate(query, page, limit)
    return {"items": [t.to_dict() for t in rows], "pagination": pagination}


def list_wallets(*, page=None, limit=None) -> dict:
    """Accounts holding a positive balance, largest first."""
    query = db.session.query(Profile).filter(Profile.wallet_balance_paise > 0).order_by(
        Profile.wallet_balance_paise.desc(), Profile.id.asc()
    )
    rows, pagination = _paginate(query, page, limit)
    return {
        "items": [
            {
                "id": p.id,
                "full_name": p.full_name,
                "email": p.email,
                "business_name": p.business_name,
                "wallet_balance_paise": p.wallet_balance_paise,
            }
            for p in rows
        ],
        "pagination": pagination,
    }


def adjust_wallet(user_id: int, amount_paise, reason: str | None) -> dict:
    """
    Signed manual adjustment. Debits below zero are rejected by the
    wallet service (WalletError).
    """
    if isinstance(amount_paise, bool) or not isinstance(amount_paise, int) or amount_paise == 0:
        raise ValidationError("amount_paise must be a non-zero integer")
    if not reason or not str(reason).strip():
        raise ValidationError("reason is required")
    if db.session.get(Profile, user_id) is None:
        raise NotFoundError("Customer not found")

    reason = str(reason).strip()

    def _apply():
        try:
            txn = wallet_service.adjust(user_id, amount_paise, reason)
            if amount_paise > 0:
                notification_service.notify(
                    user_id,
                    "wallet_credited",
                    "Wallet credited",
                    f"{amount_paise / 100:,.2f} INR was added to your wallet: {reason}",
                    priority="normal",
                )
            db.session.commit()
            return txn
        except Exception:
            db.session.rollback()
            raise

    txn = run_with_retry(_apply)

    current_app.logger.info("Admin wallet adjustment for user %s: %s paise", user_id, amount_paise)
    return {"transaction": txn.to_dict(), "balance_paise": txn.balance_after_paise}


def list_referrals(*, status: str | None = None, page=None, limit=None) -> dict:
    query = db.session.query(Referral)
    if status and status != "all":
        query = query.filter(Referral.status == status)
    query = query.order_by(Referral.created_at.desc(), Referral.id.desc())
    rows, pagination = _paginate(query, page, limit)
    return {
        "items": [
            dict(
                r.to_dict(),
                referrer_email=r.referrer.email if r.referrer else None,
                referee_email=r.referee.email if r.referee else None,
            )
            for r in rows
        ],
        "pagination": pagination,
    }


def list_all_plans() -> list[dict]:
    plans = db.session.query(SubscriptionPlan).order_by(SubscriptionPlan.price_paise.asc()).all()
    counts = dict(
        db.session.query(Subscription.plan_id, func.count(Subscription.id)).group_by(Subscription.plan_id).all()
    )
    return [dict(p.to_dict(), subscribers=int(counts.get(p.id, 0))) for p in plans]


def broadcast(title: str | None, message: str | None, priority: str = "normal") -> int:
    if not title or not str(title).strip():
        raise ValidationError("title is required")
    if not message or not str(message).strip():
        raise ValidationError("message is required")
    if priority not in notification_service.PRIORITIES:
        raise ValidationError(f"priority must be one of {', '.join(sorted(notification_service.PRIORITIES))}")
    sent = notification_service.broadcast(str(title).strip(), str(message).strip(), priority)
    current_app.logger.info("Admin broadcast '%s' to %s accounts", title, sent)
    return sent
