# Overview: Enquiry (lead) lifecycle: transitions, follow-up log and conversion to orders.

"""
Enquiry Service

ALLOWED_TRANSITIONS is the single source of truth for status changes:

    new             -> needs_follow_up, converted, dropped
    needs_follow_up -> converted, dropped
    converted       -> (terminal)
    dropped         -> (terminal)

A terminal enquiry is read-only: any update is rejected, even one that
does not touch status. Every status change appends an EnquiryFollowUp row
(action "status_changed") carrying the optional note.

convert_to_order() runs in one database transaction: customer upsert by
phone, order creation and marking the enquiry converted either all land
or none do.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, Enquiry, EnquiryFollowUp
from ..validation import ValidationError, parse_pagination, pagination_meta, enforce_rules_customer, validate_payload
from resellerpro.time_utils import utcnow, parse_iso_datetime
from .tenant_service import require_owned, scoped_query
from . import customer_service, order_service, plan_service


ENQUIRY_STATUSES = ("new", "needs_follow_up", "converted", "dropped")
ALLOWED_TRANSITIONS = {
    "new": ("needs_follow_up", "converted", "dropped"),
    "needs_follow_up": ("converted", "dropped"),
    "converted": (),
    "dropped": (),
}
TERMINAL_STATUSES = {s for s, nxt in ALLOWED_TRANSITIONS.items() if not nxt}

FOLLOW_UP_ACTIONS = {"whatsapp_sent", "called", "note_added", "status_changed", "follow_up_scheduled"}
CONTACT_ACTIONS = {"whatsapp_sent", "called"}

ENQUIRY_MUTABLE_FIELDS = {"customer_name", "phone", "email", "message", "source", "followup_date"}
RESTRICTED_FIELDS = {"id", "user_id", "created_at", "updated_at", "converted_order_id", "is_deleted"}


class EnquiryTransitionError(Exception):
    """Raised for edits to terminal enquiries or illegal status moves (400)."""

    def __init__(self, message: str, allowed: tuple[str, ...] = ()):
        super().__init__(message)
        self.allowed = list(allowed)


def is_valid_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, ())


def _log_follow_up(enquiry: Enquiry, action: str, note: str | None = None, whatsapp_message: str | None = None) -> EnquiryFollowUp:
    entry = EnquiryFollowUp(
        enquiry_id=enquiry.id,
        user_id=enquiry.user_id,
        action=action,
        note=note,
        whatsapp_message=whatsapp_message,
        created_at=utcnow(),
    )
    db.session.add(entry)
    return entry


def list_enquiries(
    user_id: int,
    *,
    search: str | None = None,
    status: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    query = scoped_query(Enquiry, user_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Enquiry.customer_name.ilike(like), Enquiry.phone.ilike(like), Enquiry.message.ilike(like)
        ))
    if status and status != "all":
        query = query.filter(Enquiry.status == status)
    query = query.order_by(Enquiry.created_at.desc(), Enquiry.id.desc())

    page, limit = parse_pagination(page, limit)
    total = query.count()
    enquiries = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": [e.to_dict() for e in enquiries],
        "count": len(enquiries),
        "pagination": pagination_meta(page, limit, total),
    }


def get_enquiry(user_id: int, enquiry_id: int) -> dict:
    enquiry = require_owned(Enquiry, enquiry_id, user_id)
    data = enquiry.to_dict()
    data["allowed_transitions"] = list(ALLOWED_TRANSITIONS.get(enquiry.status, ()))
    return data


def create_enquiry(*, patch: dict, user_id: int) -> dict:
    """New enquiries always start in status "new"."""
    plan_service.check_limit(user_id, "enquiries")
    enquiry = Enquiry(user_id=user_id, status="new")
    for k, v in patch.items():
        if k in ENQUIRY_MUTABLE_FIELDS:
            setattr(enquiry, k, v)
    db.session.add(enquiry)
    db.session.commit()
    return enquiry.to_dict()


def update_enquiry(*, enquiry_id: int, payload: dict, user_id: int, patch: dict) -> dict:
    """
    payload is the raw body (status / note are read from it); patch is the
    validated field patch.

    Raises EnquiryTransitionError for terminal enquiries and illegal
    status changes, ValidationError for restricted fields.
    """
    enquiry = require_owned(Enquiry, enquiry_id, user_id)

    if enquiry.status in TERMINAL_STATUSES:
        raise EnquiryTransitionError(f"Enquiry is {enquiry.status} and can no longer be edited")

    restricted = RESTRICTED_FIELDS.intersection(payload.keys())
    if restricted:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(restricted))}")

    new_status = payload.get("status")
    note = payload.get("note")
    if note is not None and not isinstance(note, str):
        raise ValidationError("note must be a string")

    if new_status is not None and new_status != enquiry.status:
        if new_status not in ALLOWED_TRANSITIONS:
            raise ValidationError(f"status must be one of {', '.join(ENQUIRY_STATUSES)}")
        if not is_valid_transition(enquiry.status, new_status):
            allowed = ALLOWED_TRANSITIONS[enquiry.status]
            raise EnquiryTransitionError(
                f"Cannot change status from {enquiry.status} to {new_status}", allowed
            )
        old_status = enquiry.status
        enquiry.status = new_status
        _log_follow_up(enquiry, "status_changed", note=(note or "").strip() or f"Status changed from {old_status} to {new_status}")
        enquiry.follow_up_count = (enquiry.follow_up_count or 0) + 1

    for k, v in patch.items():
        if k in ENQUIRY_MUTABLE_FIELDS:
            setattr(enquiry, k, v)
    if "followup_date" in patch:
        enquiry.followup_notified = False

    db.session.commit()
    return enquiry.to_dict()


def delete_enquiry(*, enquiry_id: int, user_id: int) -> None:
    enquiry = require_owned(Enquiry, enquiry_id, user_id)
    enquiry.is_deleted = True
    db.session.commit()


def list_follow_ups(user_id: int, enquiry_id: int) -> list[dict]:
    enquiry = require_owned(Enquiry, enquiry_id, user_id)
    rows = (
        db.session.query(EnquiryFollowUp)
        .filter(EnquiryFollowUp.enquiry_id == enquiry.id)
        .order_by(EnquiryFollowUp.created_at.desc(), EnquiryFollowUp.id.desc())
        .all()
    )
    return [r.to_dict() for r in rows]


def add_follow_up(
    *,
    user_id: int,
    enquiry_id: int,
    action: str,
    note: str | None = None,
    whatsapp_message: str | None = None,
    followup_date: str | None = None,
) -> dict:
    """
    Log a follow-up. Contact actions stamp last_contacted_at; scheduling
    sets the next follow-up date and re-arms its reminder.
    """
    enquiry = require_owned(Enquiry, enquiry_id, user_id)
    if action not in FOLLOW_UP_ACTIONS:
        raise ValidationError(f"action must be one of {', '.join(sorted(FOLLOW_UP_ACTIONS))}")

    now = utcnow()
    if action == "follow_up_scheduled":
        try:
            when = parse_iso_datetime(followup_date)
        except ValueError:
            when = None
        if when is None:
            raise ValidationError("followup_date is required to schedule a follow-up")
        enquiry.followup_date = when
        enquiry.followup_notified = False

    entry = _log_follow_up(enquiry, action, note=note, whatsapp_message=whatsapp_message)
    enquiry.follow_up_count = (enquiry.follow_up_count or 0) + 1
    if action in CONTACT_ACTIONS:
        enquiry.last_contacted_at = now

    db.session.commit()
    return entry.to_dict()


def convert_to_order(*, user_id: int, enquiry_id: int, payload: dict) -> dict:
    """
    Convert an open enquiry to an order.

    payload: items (required), customer (optional overrides such as
    address fields), discount_paise, shipping_cost_paise, notes.
    The customer is matched by phone or created from the enquiry.
    """
    enquiry = require_owned(Enquiry, enquiry_id, user_id)
    if not is_valid_transition(enquiry.status, "converted"):
        raise EnquiryTransitionError(
            f"Enquiry is {enquiry.status} and cannot be converted",
            ALLOWED_TRANSITIONS.get(enquiry.status, ()),
        )

    payload = payload or {}
    overrides = payload.get("customer") or {}
    if not isinstance(overrides, dict):
        raise ValidationError("customer must be an object")
    overrides = validate_payload(
        model=Customer, payload=overrides, policy=customer_service.CUSTOMER_POLICY, partial=True
    )
    enforce_rules_customer(overrides)

    try:
        customer = customer_service.find_by_phone(user_id, enquiry.phone)
        if customer is None:
            fields = {
                "name": enquiry.customer_name,
                "phone": enquiry.phone,
                "whatsapp": enquiry.phone,
                "email": enquiry.email,
            }
            fields.update({k: v for k, v in overrides.items() if v is not None})
            enforce_rules_customer(fields)
            customer = customer_service.build_customer(user_id, fields)
        else:
            for k, v in overrides.items():
                if k != "phone" and v is not None:
                    setattr(customer, k, v)

        order = order_service.build_order(
            user_id=user_id,
            customer=customer,
            items=payload.get("items"),
            discount_paise=payload.get("discount_paise", 0),
            shipping_cost_paise=payload.get("shipping_cost_paise", 0),
            payment_status="unpaid",
            notes=payload.get("notes") or enquiry.message,
            enquiry_id=enquiry.id,
            history_note=f"Converted from enquiry #{enquiry.id}",
        )

        enquiry.status = "converted"
        enquiry.converted_order_id = order.id
        _log_follow_up(enquiry, "status_changed", note=f"Converted to order #{order.order_number}")
        enquiry.follow_up_count = (enquiry.follow_up_count or 0) + 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Enquiry %s converted to order #%s", enquiry.id, order.order_number)
    return {
        "enquiry": enquiry.to_dict(),
        "order": order.to_dict(include_items=True),
        "customer": customer.to_dict(),
    }


def get_enquiry_stats(user_id: int) -> dict:
    enquiries = scoped_query(Enquiry, user_id).all()
    total = len(enquiries)
    converted = sum(1 for e in enquiries if e.status == "converted")
    return {
        "total": total,
        "new": sum(1 for e in enquiries if e.status == "new"),
        "follow_up": sum(1 for e in enquiries if e.status == "needs_follow_up"),
        "converted": converted,
        "dropped": sum(1 for e in enquiries if e.status == "dropped"),
        "conversion_rate": round(converted * 100.0 / total, 1) if total else 0.0,
    }
