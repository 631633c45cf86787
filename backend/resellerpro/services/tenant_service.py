"""
Tenant Scoping Helpers

Every reseller (Profile) is a tenant. Rows carry user_id and every read or
write filters by it. A row owned by another tenant is indistinguishable
from a missing row: callers get TenantAccessError and routes answer 404.

USAGE:
    from resellerpro.services.tenant_service import require_owned, scoped_query

    order = require_owned(Order, order_id, g.user_id)
"""

from flask import current_app
from ..extensions import db


class TenantAccessError(Exception):
    """Raised when a row is missing or owned by another tenant."""
    pass


def scoped_query(model, user_id: int, *, include_deleted: bool = False):
    """Base query for a tenant-owned model, hiding soft-deleted rows."""
    query = db.session.query(model).filter(model.user_id == user_id)
    if not include_deleted and hasattr(model, "is_deleted"):
        query = query.filter(model.is_deleted.is_(False))
    return query


def require_owned(model, entity_id: int, user_id: int, *, include_deleted: bool = False):
    """
    Fetch one tenant-owned row or raise TenantAccessError.

    Cross-tenant hits are logged at warning level; the caller still
    reports a plain 404.
    """
    row = db.session.get(model, entity_id)
    if row is None:
        raise TenantAccessError(f"{model.__name__} not found")

    if row.user_id != user_id:
        current_app.logger.warning(
            "Cross-tenant access denied: user %s requested %s %s owned by %s",
            user_id, model.__name__, entity_id, row.user_id,
        )
        raise TenantAccessError(f"{model.__name__} not found")

    if not include_deleted and getattr(row, "is_deleted", False):
        raise TenantAccessError(f"{model.__name__} not found")

    return row
