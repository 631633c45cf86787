# Overview: Razorpay client wrapper with a local mock mode and signature checks.

"""
Payment gateway access.

With RAZORPAY_KEY_ID == "mock" no network calls are made: orders get a
local id (order_mock_<ms>) and payment signatures always verify. This is
how development and the test suite run.

Signature checks:
- client confirmation: HMAC-SHA256(key_secret, "<order_id>|<payment_id>")
- webhook: HMAC-SHA256(webhook_secret, raw_body), hex digest
"""
from __future__ import annotations

import hashlib
import hmac
import time

import razorpay
from flask import current_app
from razorpay.errors import BadRequestError, ServerError, SignatureVerificationError


MOCK_KEY_ID = "mock"


class GatewayError(Exception):
    """Raised when the gateway rejects a call or a signature is invalid."""
    pass


def is_mock_mode() -> bool:
    return current_app.config.get("RAZORPAY_KEY_ID") == MOCK_KEY_ID


def get_client() -> razorpay.Client:
    key_id = current_app.config.get("RAZORPAY_KEY_ID")
    key_secret = current_app.config.get("RAZORPAY_KEY_SECRET")
    if not key_id or not key_secret:
        raise GatewayError("Payment gateway is not configured")
    return razorpay.Client(auth=(key_id, key_secret))


def create_order(amount_paise: int, receipt: str, notes: dict | None = None) -> dict:
    """Create a gateway order. Returns at least {"id", "amount", "currency"}."""
    if amount_paise <= 0:
        raise GatewayError("Order amount must be positive")

    if is_mock_mode():
        order_id = f"order_mock_{int(time.time() * 1000)}"
        current_app.logger.info("Mock gateway order %s for %s paise", order_id, amount_paise)
        return {"id": order_id, "amount": amount_paise, "currency": "INR", "receipt": receipt}

    payload = {
        "amount": amount_paise,
        "currency": "INR",
        "receipt": receipt,
        "notes": notes or {},
    }
    try:
        order = get_client().order.create(payload)
    except BadRequestError as exc:
        raise GatewayError(f"Gateway rejected order: {exc}") from exc
    except ServerError as exc:
        raise GatewayError("Payment gateway unavailable") from exc
    current_app.logger.info("Razorpay order created: %s (%s paise)", order["id"], amount_paise)
    return order


def verify_payment_signature(order_id: str, payment_id: str, signature: str) -> bool:
    if is_mock_mode():
        return True
    if not signature:
        return False
    try:
        get_client().utility.verify_payment_signature({
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature,
        })
    except SignatureVerificationError:
        return False
    return True


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_webhook_signature(raw_body: bytes, signature: str, secret: str) -> bool:
    return hmac.compare_digest(compute_webhook_signature(raw_body, secret), signature)
