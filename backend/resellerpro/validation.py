from __future__ import annotations
import re
from datetime import datetime
from resellerpro.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum amount: ₹99,99,999.99 (999,999,999 paise)
MAX_AMOUNT_PAISE = 999_999_999

PHONE_RE = re.compile(r"^[0-9]{10,15}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PINCODE_RE = re.compile(r"^[0-9]{6}$")
GSTIN_RE = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
URL_RE = re.compile(r"^https?://[^\s]+$")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(LookupError):
    """404-level: the row does not exist for this tenant."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # JSON list columns (product images)
    if isinstance(coltype, JSON):
        if not isinstance(value, list):
            raise ValidationError(f"{col.key} must be a list")
        cleaned = []
        for item in value:
            if not isinstance(item, str) or not item.strip():
                raise ValidationError(f"{col.key} must contain non-empty strings")
            cleaned.append(item.strip())
        return cleaned

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank optional strings are stored as NULL
        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if not col.nullable:
                raise ValidationError(f"{k} cannot be blank")
            val = None

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        amount = patch[field]
        if amount < 0:
            raise ValidationError(f"{field} must be >= 0")
        if amount > MAX_AMOUNT_PAISE:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_PAISE}")


def _check_min_length(patch: dict, field: str, minimum: int) -> None:
    if field in patch and patch[field] is not None and len(patch[field]) < minimum:
        raise ValidationError(f"{field} must be at least {minimum} characters")


def _check_pattern(patch: dict, field: str, pattern: re.Pattern, message: str) -> None:
    if patch.get(field) is not None and not pattern.match(patch[field]):
        raise ValidationError(message)


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_min_length(patch, "name", 3)
    _check_amount(patch, "cost_price_paise")
    _check_amount(patch, "selling_price_paise")
    if patch.get("stock_quantity") is not None and patch["stock_quantity"] < 0:
        raise ValidationError("stock_quantity must be >= 0")
    if patch.get("stock_status") is not None and patch["stock_status"] not in {"in_stock", "low_stock", "out_of_stock"}:
        raise ValidationError("stock_status must be one of in_stock, low_stock, out_of_stock")


def enforce_rules_customer(patch: dict) -> None:
    _check_min_length(patch, "name", 2)
    _check_pattern(patch, "phone", PHONE_RE, "phone must be 10-15 digits")
    _check_pattern(patch, "whatsapp", PHONE_RE, "whatsapp must be 10-15 digits")
    _check_pattern(patch, "email", EMAIL_RE, "email is not a valid address")
    _check_pattern(patch, "pincode", PINCODE_RE, "pincode must be 6 digits")
    if patch.get("customer_type") is not None and patch["customer_type"] not in {"vip", "active", "inactive"}:
        raise ValidationError("customer_type must be one of vip, active, inactive")


def enforce_rules_enquiry(patch: dict) -> None:
    _check_min_length(patch, "customer_name", 2)
    _check_pattern(patch, "phone", PHONE_RE, "phone must be 10-15 digits")
    _check_pattern(patch, "email", EMAIL_RE, "email is not a valid address")


def enforce_rules_profile(patch: dict) -> None:
    _check_min_length(patch, "full_name", 2)
    _check_pattern(patch, "phone", PHONE_RE, "phone must be 10-15 digits")


def enforce_rules_business(patch: dict) -> None:
    for field in ("gstin", "pan_number"):
        if patch.get(field):
            patch[field] = patch[field].upper()
    _check_pattern(patch, "gstin", GSTIN_RE, "Invalid GSTIN format")
    _check_pattern(patch, "pan_number", PAN_RE, "Invalid PAN format")
    _check_pattern(patch, "business_email", EMAIL_RE, "business_email is not a valid address")
    _check_pattern(patch, "business_phone", PHONE_RE, "business_phone must be 10-15 digits")
    _check_pattern(patch, "business_website", URL_RE, "business_website must be an http(s) URL")


def parse_pagination(page: int | None, limit: int | None, *, default_limit: int = 20, max_limit: int = 100) -> tuple[int, int]:
    page = max(page or 1, 1)
    limit = min(max(limit or default_limit, 1), max_limit)
    return page, limit


def pagination_meta(page: int, limit: int, total: int) -> dict:
    total_pages = (total + limit - 1) // limit if total > 0 else 1
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
