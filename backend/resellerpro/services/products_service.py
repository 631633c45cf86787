# backend/resellerpro/services/products_service.py
"""
Products Service

All operations are scoped to one reseller (user_id). The images list is
truncated to the plan's per-product image cap and image_url always
mirrors the first image. Creation is blocked at the plan's product limit.
"""
from __future__ import annotations
from flask import current_app
from sqlalchemy import or_
from ..extensions import db
from ..models import Product, OrderItem
from ..validation import ConflictError, parse_pagination, pagination_meta
from .tenant_service import require_owned, scoped_query
from . import notification_service, plan_service

PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "category", "sku",
    "cost_price_paise", "selling_price_paise",
    "stock_quantity", "stock_status", "images", "is_active",
}

LOW_STOCK_THRESHOLD = 5

SORT_FIELDS = {
    "name": Product.name,
    "created_at": Product.created_at,
    "selling_price": Product.selling_price_paise,
    "cost_price": Product.cost_price_paise,
    "stock_quantity": Product.stock_quantity,
}


def derive_stock_status(quantity: int | None, explicit: str | None = None) -> str:
    """Stock status follows quantity when one is tracked."""
    if quantity is None:
        return explicit or "in_stock"
    if quantity <= 0:
        return "out_of_stock"
    if quantity <= LOW_STOCK_THRESHOLD:
        return "low_stock"
    return "in_stock"


def apply_product_patch(p: Product, patch: dict, image_cap: int) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        if k == "images":
            images = list(v or [])
            if len(images) > image_cap:
                current_app.logger.info(
                    "Truncating %s images to plan cap %s for product %s", len(images), image_cap, p.id
                )
                images = images[:image_cap]
            p.images = images
            p.image_url = images[0] if images else None
            continue
        setattr(p, k, v)

    if "stock_quantity" in patch or "stock_status" in patch:
        p.stock_status = derive_stock_status(p.stock_quantity, patch.get("stock_status") or p.stock_status)


def _ensure_unique_sku(user_id: int, sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = db.session.query(Product).filter(Product.user_id == user_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("A product with this SKU already exists.")


def list_products(
    user_id: int,
    *,
    search: str | None = None,
    category: str | None = None,
    sort: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    """
    Tenant-scoped product listing.

    category accepts a real category or the special values "low_stock"
    and "out_of_stock", which filter on stock status instead.
    sort is "<field>" or "-<field>" (descending); default "-created_at".
    """
    query = scoped_query(Product, user_id)

    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(like), Product.sku.ilike(like), Product.description.ilike(like)))

    if category and category != "all":
        if category in {"low_stock", "out_of_stock"}:
            query = query.filter(Product.stock_status == category)
        else:
            query = query.filter(Product.category == category)

    sort = sort or "-created_at"
    descending = sort.startswith("-")
    column = SORT_FIELDS.get(sort.lstrip("-"), Product.created_at)
    query = query.order_by(column.desc() if descending else column.asc(), Product.id.desc())

    page, limit = parse_pagination(page, limit)
    total = query.count()
    products = query.offset((page - 1) * limit).limit(limit).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": pagination_meta(page, limit, total),
    }


def get_product(user_id: int, product_id: int) -> dict:
    return require_owned(Product, product_id, user_id).to_dict()


def create_product(*, patch: dict, user_id: int) -> dict:
    """
    Raises:
        PlanLimitError: product limit reached
        ConflictError: SKU already exists for this reseller
    """
    plan_service.check_limit(user_id, "products")
    _ensure_unique_sku(user_id, patch.get("sku"))

    p = Product(user_id=user_id, images=[])
    apply_product_patch(p, patch, plan_service.product_image_cap(user_id))
    if "stock_status" not in patch and "stock_quantity" not in patch:
        p.stock_status = "in_stock"

    db.session.add(p)
    db.session.commit()
    return p.to_dict()


def update_product(*, product_id: int, patch: dict, user_id: int) -> dict:
    p = require_owned(Product, product_id, user_id)
    if "sku" in patch:
        _ensure_unique_sku(user_id, patch["sku"], exclude_id=p.id)
    previous_status = p.stock_status
    apply_product_patch(p, patch, plan_service.product_image_cap(user_id))
    if p.stock_status != previous_status and p.stock_status in {"low_stock", "out_of_stock"}:
        notification_service.notify(
            user_id,
            "low_stock",
            "Out of stock" if p.stock_status == "out_of_stock" else "Low stock",
            f"{p.name} has {p.stock_quantity or 0} unit(s) left.",
            entity_type="product",
            entity_id=p.id,
            priority="high" if p.stock_status == "out_of_stock" else "normal",
        )
    db.session.commit()
    return p.to_dict()


def delete_product(*, product_id: int, user_id: int) -> None:
    """Hard delete; order lines keep their name and price snapshot."""
    p = require_owned(Product, product_id, user_id)
    db.session.query(OrderItem).filter(OrderItem.product_id == p.id).update(
        {OrderItem.product_id: None}, synchronize_session=False
    )
    db.session.delete(p)
    db.session.commit()


def get_product_stats(user_id: int) -> dict:
    products = scoped_query(Product, user_id).all()
    categories = sorted({p.category for p in products if p.category})
    return {
        "total": len(products),
        "in_stock": sum(1 for p in products if p.stock_status == "in_stock"),
        "low_stock": sum(1 for p in products if p.stock_status == "low_stock"),
        "out_of_stock": sum(1 for p in products if p.stock_status == "out_of_stock"),
        "inventory_value_paise": sum(p.cost_price_paise * (p.stock_quantity or 0) for p in products),
        "average_margin_paise": (
            sum(p.profit_paise for p in products) // len(products) if products else 0
        ),
        "categories": categories,
    }
