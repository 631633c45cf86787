# Overview: Flask API routes for enquiries operations; parses input and returns JSON responses.

"""
Enquiry (lead) routes.

PATCH accepts field edits plus an optional status change and note.
Converted and dropped enquiries are read-only: any PATCH answers 400.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..models import Enquiry
from ..services import enquiry_service
from ..services.enquiry_service import EnquiryTransitionError
from ..services.plan_service import PlanLimitError
from ..services.tenant_service import TenantAccessError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_enquiry,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth

ENQUIRY_POLICY = ModelValidationPolicy(
    writable_fields=set(enquiry_service.ENQUIRY_MUTABLE_FIELDS),
    required_on_create={"customer_name", "phone"},
)

# Keys read by the service directly rather than written as columns
CONTROL_FIELDS = {"status", "note"}

enquiries_bp = Blueprint("enquiries", __name__, url_prefix="/api/enquiries")


def _transition_error(e: EnquiryTransitionError):
    body = {"error": str(e)}
    if e.allowed:
        body["allowed_transitions"] = e.allowed
    return jsonify(body), 400


@enquiries_bp.get("")
@require_auth
def list_enquiries_route():
    return jsonify(enquiry_service.list_enquiries(
        g.user_id,
        search=request.args.get("search"),
        status=request.args.get("status"),
        page=request.args.get("page", type=int),
        limit=request.args.get("limit", type=int),
    )), 200


@enquiries_bp.get("/stats")
@require_auth
def enquiry_stats_route():
    return jsonify(enquiry_service.get_enquiry_stats(g.user_id)), 200


@enquiries_bp.post("")
@require_auth
def create_enquiry_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Enquiry, payload=payload, policy=ENQUIRY_POLICY, partial=False)
        enforce_rules_enquiry(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        created = enquiry_service.create_enquiry(patch=patch, user_id=g.user_id)
    except PlanLimitError as e:
        return jsonify({"error": str(e), "limit_reached": True}), 403
    except Exception:
        current_app.logger.exception("Failed to create enquiry")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(created), 201


@enquiries_bp.get("/<int:enquiry_id>")
@require_auth
def get_enquiry_route(enquiry_id: int):
    try:
        return jsonify(enquiry_service.get_enquiry(g.user_id, enquiry_id)), 200
    except TenantAccessError:
        return jsonify({"error": "Enquiry not found"}), 404


@enquiries_bp.patch("/<int:enquiry_id>")
@require_auth
def update_enquiry_route(enquiry_id: int):
    """Body: any editable field, plus status? and note?"""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    fields = {k: v for k, v in payload.items() if k not in CONTROL_FIELDS}
    fields = {k: v for k, v in fields.items() if k not in enquiry_service.RESTRICTED_FIELDS}

    try:
        patch = validate_payload(model=Enquiry, payload=fields, policy=ENQUIRY_POLICY, partial=True)
        enforce_rules_enquiry(patch)
        updated = enquiry_service.update_enquiry(
            enquiry_id=enquiry_id, payload=payload, user_id=g.user_id, patch=patch
        )
    except TenantAccessError:
        return jsonify({"error": "Enquiry not found"}), 404
    except EnquiryTransitionError as e:
        return _transition_error(e)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update enquiry")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(updated), 200


@enquiries_bp.delete("/<int:enquiry_id>")
@require_auth
def delete_enquiry_route(enquiry_id: int):
    try:
        enquiry_service.delete_enquiry(enquiry_id=enquiry_id, user_id=g.user_id)
    except TenantAccessError:
        return jsonify({"error": "Enquiry not found"}), 404
    return jsonify({"ok": True}), 200


@enquiries_bp.get("/<int:enquiry_id>/follow-ups")
@require_auth
def list_follow_ups_route(enquiry_id: int):
    try:
        return jsonify({"items": enquiry_service.list_follow_ups(g.user_id, enquiry_id)}), 200
    except TenantAccessError:
        return jsonify({"error": "Enquiry not found"}), 404


@enquiries_bp.post("/<int:enquiry_id>/follow-ups")
@require_auth
def add_follow_up_route(enquiry_id: int):
    """Body: action, note?, whatsapp_message?, followup_date? (required for follow_up_scheduled)"""
    data = request.get_json(silent=True) or {}
    followup_date = data.get("followup_date")
    if followup_date is not None and not isinstance(followup_date, str):
        return jsonify({"error": "followup_date must be an ISO-8601 string"}), 400

    try:
        entry = enquiry_service.add_follow_up(
            user_id=g.user_id,
            enquiry_id=enquiry_id,
            action=data.get("action"),
            note=data.get("note"),
            whatsapp_message=data.get("whatsapp_message"),
            followup_date=followup_date,
        )
    except TenantAccessError:
        return jsonify({"error": "Enquiry not found"}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(entry), 201


@enquiries_bp.post("/<int:enquiry_id>/convert")
@require_auth
def convert_enquiry_route(enquiry_id: int):
    """
    Body: items (required), customer? (address overrides),
    discount_paise?, shipping_cost_paise?, notes?
    """
    payload = request.get_json(silent=True) or {}
    try:
        result = enquiry_service.convert_to_order(user_id=g.user_id, enquiry_id=enquiry_id, payload=payload)
    except TenantAccessError:
        return jsonify({"error": "Enquiry not found"}), 404
    except EnquiryTransitionError as e:
        return _transition_error(e)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PlanLimitError as e:
        return jsonify({"error": str(e), "limit_reached": True}), 403
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to convert enquiry")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 201
