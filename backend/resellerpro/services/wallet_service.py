# Overview: Wallet balance changes and the append-only wallet ledger.

"""
Wallet Service

Every balance change goes through credit() or debit(), which lock the
profile row, move Profile.wallet_balance_paise and append a
WalletTransaction with the resulting balance. Neither commits; the caller
owns the transaction.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Profile, WalletTransaction
from .concurrency import lock_for_update


WALLET_TRANSACTION_TYPES = {
    "referral_signup_bonus",
    "referral_reward",
    "subscription_debit",
    "admin_adjustment",
}


class WalletError(Exception):
    """Raised for insufficient balance or invalid amounts."""
    pass


def _locked_profile(user_id: int) -> Profile:
    profile = lock_for_update(db.session.query(Profile).filter(Profile.id == user_id)).first()
    if profile is None:
        raise WalletError("Account not found")
    return profile


def _append(profile: Profile, amount_paise: int, txn_type: str, description: str | None) -> WalletTransaction:
    if txn_type not in WALLET_TRANSACTION_TYPES:
        raise WalletError(f"Unknown wallet transaction type: {txn_type}")
    profile.wallet_balance_paise = (profile.wallet_balance_paise or 0) + amount_paise
    txn = WalletTransaction(
        user_id=profile.id,
        amount_paise=amount_paise,
        type=txn_type,
        description=description,
        balance_after_paise=profile.wallet_balance_paise,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def credit(user_id: int, amount_paise: int, txn_type: str, description: str | None = None) -> WalletTransaction:
    if amount_paise <= 0:
        raise WalletError("Credit amount must be positive")
    return _append(_locked_profile(user_id), amount_paise, txn_type, description)


def debit(user_id: int, amount_paise: int, txn_type: str, description: str | None = None) -> WalletTransaction:
    """Raises WalletError("Insufficient wallet balance") rather than go negative."""
    if amount_paise <= 0:
        raise WalletError("Debit amount must be positive")
    profile = _locked_profile(user_id)
    if (profile.wallet_balance_paise or 0) < amount_paise:
        raise WalletError("Insufficient wallet balance")
    return _append(profile, -amount_paise, txn_type, description)


def adjust(user_id: int, amount_paise: int, description: str | None = None) -> WalletTransaction:
    """Signed admin correction; may not drive the balance below zero."""
    if amount_paise == 0:
        raise WalletError("Adjustment amount must be non-zero")
    if amount_paise > 0:
        return credit(user_id, amount_paise, "admin_adjustment", description)
    return debit(user_id, -amount_paise, "admin_adjustment", description)


def get_balance(user_id: int) -> int:
    profile = db.session.get(Profile, user_id)
    return profile.wallet_balance_paise if profile else 0


def get_wallet(user_id: int, limit: int = 50) -> dict:
    transactions = (
        db.session.query(WalletTransaction)
        .filter(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(limit)
        .all()
    )
    return {
        "balance_paise": get_balance(user_id),
        "transactions": [t.to_dict() for t in transactions],
    }
