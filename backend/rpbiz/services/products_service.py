# backend/rpbiz/services/products_service.py
"""
Inventory Ledger

Products are scoped to a business. Callers pass the acting user's id; every
operation checks access through access_service first.

- Members (owner or employees) can list, create and edit products
- Only the owner can delete products
- The owning business of a product never changes after creation
- Stock only goes down through decrement_stock, a conditional UPDATE that
  refuses to drive stock negative
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Product
from .access_service import (
    MEMBER,
    OWNER,
    NotFoundError,
    accessible_business_ids,
    require_business_access,
)

PRODUCT_MUTABLE_FIELDS = {"name", "description", "price_cents", "stock", "category", "is_active"}


class InsufficientStockError(Exception):
    """Raised when a decrement would drive stock below zero."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def paginate(base_query, page: int | None, per_page: int | None, serialize) -> dict:
    # If no pagination requested, return all items
    if page is None:
        rows = base_query.all()
        return {
            "items": [serialize(r) for r in rows],
            "count": len(rows),
        }

    per_page = max(1, min(per_page or 20, 100))  # Default 20, 1..100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(r) for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "perPage": per_page,
            "total": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        },
    }


def list_products(
    user_id: str,
    business_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Products of every business the user can access, newest first.

    If business_id is given, the user must be a member of that business.
    """
    if business_id is not None:
        require_business_access(business_id, user_id, MEMBER)
        business_ids = {business_id}
    else:
        business_ids = accessible_business_ids(user_id)

    if not business_ids:
        return {"items": [], "count": 0}

    base_query = (
        db.session.query(Product)
        .filter(Product.business_id.in_(business_ids))
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    return paginate(base_query, page, per_page, lambda p: p.to_dict(include_business=True))


def low_stock_query(business_ids: set[int], threshold: int | None = None):
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)
    return db.session.query(Product).filter(
        Product.business_id.in_(business_ids),
        Product.stock <= threshold,
    )


def list_low_stock_products(
    user_id: str,
    threshold: int | None = None,
    business_id: int | None = None,
) -> list[Product]:
    """Products at or below the low-stock threshold across the user's businesses."""
    if business_id is not None:
        require_business_access(business_id, user_id, MEMBER)
        business_ids = {business_id}
    else:
        business_ids = accessible_business_ids(user_id)
    if not business_ids:
        return []
    return low_stock_query(business_ids, threshold).order_by(Product.stock.asc(), Product.name.asc()).all()


def get_product(product_id: int, user_id: str) -> Product:
    p = db.session.query(Product).filter_by(id=product_id).first()
    if not p:
        raise NotFoundError("Product not found")
    require_business_access(p.business_id, user_id, MEMBER)
    return p


def create_product(*, business_id: int, patch: dict, user_id: str) -> Product:
    """Create a product in a business the user is a member of."""
    require_business_access(business_id, user_id, MEMBER)

    p = Product(business_id=business_id, stock=0)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()
    return p


def update_product(*, product_id: int, patch: dict, user_id: str) -> Product:
    """Update any product field except its owning business."""
    p = get_product(product_id, user_id)
    apply_product_patch(p, patch)
    db.session.commit()
    return p


def delete_product(*, product_id: int, user_id: str) -> None:
    """
    Delete a product (owner only).

    Past sale items keep their name and price snapshots; their product
    reference is cleared.
    """
    p = db.session.query(Product).filter_by(id=product_id).first()
    if not p:
        raise NotFoundError("Product not found")
    require_business_access(p.business_id, user_id, OWNER)

    db.session.delete(p)
    db.session.commit()


def decrement_stock(*, product_id: int, business_id: int, quantity: int) -> None:
    """
    Atomically take ``quantity`` units out of stock. Does not commit.

    The stock check lives in the UPDATE's WHERE clause, so a concurrent
    sale that got there first makes this affect zero rows instead of
    driving stock negative.
    """
    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.business_id == business_id,
            Product.stock >= quantity,
        )
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session="evaluate")
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise InsufficientStockError(
            "Insufficient stock",
            details={"productId": product_id, "requestedQuantity": quantity},
        )
