"""
Global search across a reseller's products, customers, orders and
enquiries. Terms shorter than two characters return empty results.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Product, Customer, Order, Enquiry
from ..validation import ValidationError
from .tenant_service import scoped_query

MIN_TERM_LENGTH = 2
SEARCH_TYPES = ("products", "customers", "orders", "enquiries")


def global_search(user_id: int, q: str | None, *, type: str = "all", page: int = 1, limit: int = 5) -> dict:
    term = (q or "").strip()
    results = {name: [] for name in SEARCH_TYPES}
    if len(term) < MIN_TERM_LENGTH:
        results["total"] = 0
        return results

    if type != "all" and type not in SEARCH_TYPES:
        raise ValidationError(f"type must be all or one of {', '.join(SEARCH_TYPES)}")
    wanted = SEARCH_TYPES if type == "all" else (type,)
    offset = (max(page, 1) - 1) * limit
    like = f"%{term}%"

    if "products" in wanted:
        rows = (
            scoped_query(Product, user_id)
            .filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))
            .order_by(Product.name.asc())
            .offset(offset).limit(limit).all()
        )
        results["products"] = [p.to_dict() for p in rows]

    if "customers" in wanted:
        rows = (
            scoped_query(Customer, user_id)
            .filter(or_(Customer.name.ilike(like), Customer.phone.ilike(like), Customer.email.ilike(like)))
            .order_by(Customer.name.asc())
            .offset(offset).limit(limit).all()
        )
        results["customers"] = [c.to_dict() for c in rows]

    if "orders" in wanted:
        query = db.session.query(Order).outerjoin(Customer, Order.customer_id == Customer.id).filter(
            Order.user_id == user_id
        )
        digits = term.lstrip("#").strip()
        if digits.isdigit():
            query = query.filter(Order.order_number == int(digits))
        else:
            query = query.filter(Customer.name.ilike(like))
        rows = query.order_by(Order.created_at.desc()).offset(offset).limit(limit).all()
        results["orders"] = [o.to_dict() for o in rows]

    if "enquiries" in wanted:
        rows = (
            scoped_query(Enquiry, user_id)
            .filter(or_(Enquiry.customer_name.ilike(like), Enquiry.phone.ilike(like)))
            .order_by(Enquiry.created_at.desc())
            .offset(offset).limit(limit).all()
        )
        results["enquiries"] = [e.to_dict() for e in rows]

    results["total"] = sum(len(results[name]) for name in SEARCH_TYPES)
    return results
