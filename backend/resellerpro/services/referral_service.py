"""
Referral program.

- A new reseller signing up with a code gets REFERRAL_SIGNUP_BONUS_PAISE
  in their wallet and a pending Referral row.
- When that reseller activates a paid plan, the referrer is credited
  REFERRAL_REWARD_PAISE and the referral completes. Referral.referee_id
  is unique and only pending rows pay out, so the reward is paid once.
"""
from __future__ import annotations

import secrets
import string

from flask import current_app
from ..extensions import db
from ..models import Profile, Referral
from resellerpro.time_utils import utcnow
from . import wallet_service, notification_service


CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8


def format_rupees(paise: int) -> str:
    rupees, rem = divmod(int(paise), 100)
    return f"₹{rupees}" if rem == 0 else f"₹{rupees}.{rem:02d}"


def generate_referral_code() -> str:
    while True:
        code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
        if not db.session.query(Profile.id).filter_by(referral_code=code).first():
            return code


def referral_link(code: str) -> str:
    base = current_app.config.get("APP_URL", "").rstrip("/")
    return f"{base}/signup?ref={code}"


def apply_signup_referral(profile: Profile, code: str) -> Referral | None:
    """
    Link a fresh profile to its referrer and credit the signup bonus.
    Unknown codes and self-referral are ignored (logged). No commit.
    """
    code = (code or "").strip().upper()
    if not code:
        return None

    referrer = db.session.query(Profile).filter_by(referral_code=code).first()
    if referrer is None or referrer.id == profile.id:
        current_app.logger.info("Ignoring invalid referral code %s for user %s", code, profile.id)
        return None

    profile.referred_by_id = referrer.id
    referral = Referral(
        referrer_id=referrer.id,
        referee_id=profile.id,
        status="pending",
        reward_paise=current_app.config.get("REFERRAL_REWARD_PAISE", 7500),
    )
    db.session.add(referral)

    bonus = current_app.config.get("REFERRAL_SIGNUP_BONUS_PAISE", 5000)
    if bonus > 0:
        wallet_service.credit(profile.id, bonus, "referral_signup_bonus", f"Signup bonus for joining with code {code}")
        notification_service.notify(
            profile.id,
            "wallet_credited",
            "Welcome bonus credited",
            f"{format_rupees(bonus)} has been added to your wallet for signing up with a referral code.",
            entity_type="wallet",
        )
    db.session.flush()
    return referral


def process_referral_reward(referee_id: int) -> bool:
    """
    Pay the referrer once the referee has paid for a plan.
    Returns True when a reward was credited. No commit.
    """
    referral = db.session.query(Referral).filter_by(referee_id=referee_id, status="pending").first()
    if referral is None:
        return False

    amount = referral.reward_paise or current_app.config.get("REFERRAL_REWARD_PAISE", 7500)
    referee = db.session.get(Profile, referee_id)
    referee_name = referee.full_name if referee else "Your friend"

    wallet_service.credit(
        referral.referrer_id, amount, "referral_reward", f"Referral reward: {referee_name} subscribed"
    )
    referral.status = "completed"
    referral.reward_paise = amount
    referral.completed_at = utcnow()

    notification_service.notify(
        referral.referrer_id,
        "wallet_credited",
        "Referral reward credited",
        f"{referee_name} subscribed to a paid plan. {format_rupees(amount)} has been added to your wallet.",
        entity_type="referral",
        entity_id=referral.id,
    )
    current_app.logger.info("Referral reward %s paise credited to user %s", amount, referral.referrer_id)
    return True


def get_referral_overview(profile: Profile) -> dict:
    referrals = (
        db.session.query(Referral)
        .filter(Referral.referrer_id == profile.id)
        .order_by(Referral.created_at.desc())
        .all()
    )
    completed = [r for r in referrals if r.status == "completed"]
    return {
        "referral_code": profile.referral_code,
        "referral_link": referral_link(profile.referral_code),
        "reward_paise": current_app.config.get("REFERRAL_REWARD_PAISE", 7500),
        "signup_bonus_paise": current_app.config.get("REFERRAL_SIGNUP_BONUS_PAISE", 5000),
        "total_referrals": len(referrals),
        "completed_referrals": len(completed),
        "total_earned_paise": sum(r.reward_paise for r in completed),
        "referrals": [r.to_dict() for r in referrals],
    }
