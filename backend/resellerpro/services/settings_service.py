from __future__ import annotations

from ..extensions import db
from ..models import Profile
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_profile,
    enforce_rules_business,
)


PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"full_name", "phone", "avatar_url"},
)

BUSINESS_POLICY = ModelValidationPolicy(
    writable_fields={
        "business_name",
        "gstin",
        "pan_number",
        "business_address",
        "business_phone",
        "business_email",
        "business_website",
    },
)


def get_profile(profile: Profile) -> dict:
    data = profile.to_dict()
    sub = profile.subscription
    data["plan"] = sub.plan.name if sub and sub.plan else None
    return data


def update_profile(profile: Profile, payload: dict) -> dict:
    """Personal details. Email and password change through auth routes."""
    patch = validate_payload(model=Profile, payload=payload, policy=PROFILE_POLICY, partial=True)
    enforce_rules_profile(patch)
    for k, v in patch.items():
        setattr(profile, k, v)
    db.session.commit()
    return get_profile(profile)


def update_business(profile: Profile, payload: dict) -> dict:
    """Business details printed on invoices; GSTIN and PAN are upper-cased."""
    patch = validate_payload(model=Profile, payload=payload, policy=BUSINESS_POLICY, partial=True)
    enforce_rules_business(patch)
    for k, v in patch.items():
        setattr(profile, k, v)
    db.session.commit()
    return get_profile(profile)
