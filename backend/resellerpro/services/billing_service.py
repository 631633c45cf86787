# Overview: Subscription purchase and activation across wallet, client confirmation and webhook paths.

"""
Billing Service

Three entry points converge on the same activation steps:

1. activate_with_wallet: the wallet covers the full plan price.
2. verify_payment_and_activate: the browser confirms a gateway payment.
3. handle_gateway_event: the gateway's webhook reports the payment.

complete_transaction() is the shared path for 2 and 3. Its only
idempotency guard is the transaction's status: a transaction already in
"success" is skipped. Concurrent webhook and client calls can still race.

Activation order:
    mark transaction success -> debit wallet share -> activate plan (commit)
    -> referral reward -> in-app notification -> confirmation email

Everything after the plan commit is best-effort. A failure there is
logged and surfaced as a notification; the activation is never rolled
back.
"""
from __future__ import annotations

import json
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Profile, SubscriptionPlan, Subscription, PaymentTransaction
from resellerpro.time_utils import utcnow, add_months
from . import gateway, mail_service, notification_service, plan_service, referral_service, wallet_service
from .gateway import GatewayError
from .wallet_service import WalletError


HANDLED_EVENTS = {"order.paid", "payment.captured"}
SUBSCRIPTION_MONTHS = 1


class BillingError(Exception):
    """400-level billing failure (bad plan, insufficient wallet, bad signature)."""
    pass


class WebhookError(Exception):
    """Webhook rejection carrying the HTTP status to answer with."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class WebhookResult:
    body: dict
    status_code: int = 200


def _require_paid_plan(plan_id) -> SubscriptionPlan:
    plan = db.session.get(SubscriptionPlan, plan_id) if plan_id is not None else None
    if plan is None or not plan.is_active:
        raise BillingError("Plan not found")
    if not plan.is_paid:
        raise BillingError("The free plan does not need a checkout")
    return plan


def create_checkout(user: Profile, plan_id: int) -> dict:
    """
    Start a plan purchase. The wallet is applied first; the rest goes to
    the gateway as a pending PaymentTransaction.
    """
    plan = _require_paid_plan(plan_id)
    balance = user.wallet_balance_paise or 0
    wallet_applied = min(balance, plan.price_paise)
    payable = plan.price_paise - wallet_applied

    if payable == 0:
        return {
            "use_wallet_only": True,
            "plan": plan.to_dict(),
            "wallet_applied_paise": wallet_applied,
            "amount_paise": 0,
        }

    try:
        order = gateway.create_order(
            payable,
            receipt=f"sub_{user.id}_{int(utcnow().timestamp())}",
            notes={"user_id": str(user.id), "plan_id": str(plan.id)},
        )
    except GatewayError as exc:
        raise BillingError(str(exc)) from exc

    txn = PaymentTransaction(
        user_id=user.id,
        razorpay_order_id=order["id"],
        amount_paise=payable,
        currency="INR",
        status="pending",
        details={"plan_id": plan.id, "wallet_applied_paise": wallet_applied},
    )
    db.session.add(txn)
    db.session.commit()

    return {
        "use_wallet_only": False,
        "plan": plan.to_dict(),
        "order_id": order["id"],
        "amount_paise": payable,
        "currency": "INR",
        "wallet_applied_paise": wallet_applied,
        "key_id": current_app.config.get("RAZORPAY_KEY_ID"),
        "mock": gateway.is_mock_mode(),
    }


def activate_plan(user_id: int, plan: SubscriptionPlan) -> Subscription:
    """
    Set the subscription to `plan`, active for one calendar month from now.
    Resets expiry reminder stamps. No commit.
    """
    now = utcnow()
    sub = db.session.query(Subscription).filter_by(user_id=user_id).first()
    if sub is None:
        sub = Subscription(user_id=user_id)
        db.session.add(sub)

    sub.plan_id = plan.id
    sub.plan = plan
    sub.status = "active"
    sub.current_period_start = now
    sub.current_period_end = add_months(now, SUBSCRIPTION_MONTHS)
    sub.cancel_at_period_end = False
    sub.expiry_notified_at = None

    profile = db.session.get(Profile, user_id)
    if profile is not None:
        profile.reminder_7d_sent_at = None
        profile.reminder_3d_sent_at = None
        profile.reminder_1d_sent_at = None

    db.session.flush()
    return sub


def _after_activation(user_id: int, plan: SubscriptionPlan, sub: Subscription, amount_paise: int) -> None:
    """Best-effort follow-ups. Never raises."""
    try:
        referral_service.process_referral_reward(user_id)
        db.session.commit()
    except (SQLAlchemyError, WalletError):
        db.session.rollback()
        current_app.logger.exception("Referral reward failed for user %s", user_id)
        notification_service.notify(
            user_id, "system_alert", "Referral reward pending",
            "Your plan is active, but we could not credit your referrer yet. Our team will fix this.",
        )
        db.session.commit()

    notification_service.notify(
        user_id, "system_alert", "Subscription activated",
        f"Your {plan.display_name} plan is active until {sub.current_period_end:%d %b %Y}.",
        entity_type="subscription", entity_id=sub.id,
    )
    db.session.commit()

    profile = db.session.get(Profile, user_id)
    sent = mail_service.send_subscription_confirmation(
        to=profile.email,
        user_name=profile.full_name,
        plan_name=plan.display_name,
        amount_paise=amount_paise,
        start_date=sub.current_period_start,
        end_date=sub.current_period_end,
    )
    if not sent:
        current_app.logger.warning("Confirmation email not sent for user %s", user_id)
        notification_service.notify(
            user_id, "system_alert", "Confirmation email not sent",
            "Your plan is active. We could not email your contract note; it is available on request.",
            priority="low",
        )
        db.session.commit()


def activate_with_wallet(user: Profile, plan_id: int) -> dict:
    """Buy a plan entirely from wallet balance."""
    plan = _require_paid_plan(plan_id)
    if (user.wallet_balance_paise or 0) < plan.price_paise:
        raise BillingError("Insufficient wallet balance")

    current_app.logger.info("Activating %s for user %s via wallet", plan.name, user.id)
    try:
        wallet_service.debit(user.id, plan.price_paise, "subscription_debit", f"{plan.display_name} plan (wallet)")
    except WalletError as exc:
        db.session.rollback()
        raise BillingError(str(exc)) from exc

    sub = activate_plan(user.id, plan)
    db.session.commit()

    _after_activation(user.id, plan, sub, plan.price_paise)
    return {"success": True, "subscription": sub.to_dict()}


def complete_transaction(txn: PaymentTransaction, *, payment_id: str | None, source: str) -> dict:
    """
    Shared completion for a captured gateway payment.

    Returns {"already_processed": True} for a transaction already in
    success. Raises WebhookError(400) when the checkout metadata is
    unusable.
    """
    if txn.status == "success":
        current_app.logger.info("Transaction %s already successful. Skipping.", txn.razorpay_order_id)
        return {"already_processed": True}

    details = txn.details or {}
    plan_id = details.get("plan_id")
    if plan_id is None:
        raise WebhookError("Transaction metadata missing plan_id", 400)
    plan = db.session.get(SubscriptionPlan, plan_id)
    if plan is None:
        raise WebhookError("Transaction references an unknown plan", 400)
    wallet_applied = int(details.get("wallet_applied_paise") or 0)

    current_app.logger.info("Activating subscription for user %s via %s", txn.user_id, source)

    txn.status = "success"
    txn.source = source
    txn.completed_at = utcnow()
    if payment_id:
        txn.razorpay_payment_id = payment_id

    wallet_failed = False
    if wallet_applied > 0:
        try:
            wallet_service.debit(
                txn.user_id, wallet_applied, "subscription_debit", f"{plan.display_name} plan (wallet share)"
            )
        except WalletError:
            # Payment is captured; the plan is activated regardless
            wallet_failed = True
            current_app.logger.exception(
                "Wallet debit of %s paise failed for user %s on %s", wallet_applied, txn.user_id, txn.razorpay_order_id
            )

    sub = activate_plan(txn.user_id, plan)
    if wallet_failed:
        notification_service.notify(
            txn.user_id, "system_alert", "Wallet adjustment pending",
            "Your plan is active, but the wallet share of this payment could not be deducted.",
            priority="low",
        )
    db.session.commit()

    _after_activation(txn.user_id, plan, sub, txn.amount_paise + wallet_applied)
    return {"already_processed": False, "subscription": sub.to_dict()}


def verify_payment_and_activate(user: Profile, order_id: str, payment_id: str, signature: str) -> dict:
    """Client-side confirmation after the checkout widget reports success."""
    if not order_id or not payment_id:
        raise BillingError("order_id and payment_id are required")

    txn = db.session.query(PaymentTransaction).filter_by(razorpay_order_id=order_id, user_id=user.id).first()
    if txn is None:
        raise BillingError("Transaction not found")

    if not gateway.verify_payment_signature(order_id, payment_id, signature):
        txn.status = "failed" if txn.status == "pending" else txn.status
        db.session.commit()
        raise BillingError("Invalid payment signature")

    try:
        result = complete_transaction(txn, payment_id=payment_id, source="client")
    except WebhookError as exc:
        raise BillingError(str(exc)) from exc

    if result["already_processed"]:
        sub = plan_service.get_subscription(user.id)
        return {"success": True, "already_processed": True, "subscription": sub.to_dict()}
    return {"success": True, "already_processed": False, "subscription": result["subscription"]}


def _extract_order_id(event: dict) -> str | None:
    payload = event.get("payload") or {}
    payment = ((payload.get("payment") or {}).get("entity") or {})
    if payment.get("order_id"):
        return payment["order_id"]
    order = ((payload.get("order") or {}).get("entity") or {})
    return order.get("id")


def _extract_payment_id(event: dict) -> str | None:
    payload = event.get("payload") or {}
    return ((payload.get("payment") or {}).get("entity") or {}).get("id")


def handle_gateway_event(raw_body: bytes, signature: str | None) -> WebhookResult:
    """
    Verify and apply a gateway webhook.

    Raises WebhookError(401) for a missing signature or secret and
    WebhookError(400) for a bad signature, body or missing order id.
    """
    secret = current_app.config.get("RAZORPAY_WEBHOOK_SECRET")
    if not signature or not secret:
        raise WebhookError("Missing signature or secret", 401)

    if not gateway.verify_webhook_signature(raw_body, signature, secret):
        current_app.logger.warning("Rejected webhook with invalid signature")
        raise WebhookError("Invalid signature", 400)

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise WebhookError("Invalid JSON body", 400)
    if not isinstance(event, dict):
        raise WebhookError("Invalid JSON body", 400)

    event_type = event.get("event")
    if event_type not in HANDLED_EVENTS:
        return WebhookResult({"received": True})

    order_id = _extract_order_id(event)
    if not order_id:
        raise WebhookError("Order ID not found in payload", 400)

    txn = db.session.query(PaymentTransaction).filter_by(razorpay_order_id=order_id).first()
    if txn is None:
        current_app.logger.info("Webhook for unknown order %s ignored", order_id)
        return WebhookResult({"message": "Transaction not found, ignoring"})

    result = complete_transaction(txn, payment_id=_extract_payment_id(event), source="webhook")
    if result["already_processed"]:
        return WebhookResult({"message": "Already processed"})
    return WebhookResult({"received": True})


def cancel_subscription(user: Profile) -> dict:
    """Stop renewal reminders; the paid plan stays active until its end."""
    sub = plan_service.get_subscription(user.id)
    if not sub.plan.is_paid:
        raise BillingError("You are on the free plan")
    sub.cancel_at_period_end = True
    db.session.commit()
    return sub.to_dict()


def get_subscription_overview(user: Profile) -> dict:
    sub = plan_service.get_subscription(user.id)
    history = (
        db.session.query(PaymentTransaction)
        .filter(PaymentTransaction.user_id == user.id)
        .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
        .limit(20)
        .all()
    )
    return {
        "subscription": sub.to_dict(),
        "usage": plan_service.get_usage(user.id),
        "wallet_balance_paise": user.wallet_balance_paise,
        "transactions": [t.to_dict() for t in history],
    }
