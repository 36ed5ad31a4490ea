# Overview: Flask API routes for products; parses input and returns JSON responses.

"""
Product routes.

Products always belong to one business. Members can list, create and edit
them; only the owner can delete. The owning business is fixed at creation,
so businessId is ignored on updates.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..models import Product
from ..services import products_service
from ..services.access_service import AccessDeniedError, NotFoundError
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    db_int,
    enforce_rules_product,
    require_int,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "description": "description",
        "price": "price_cents",
        "stock": "stock",
        "category": "category",
        "isActive": "is_active",
    },
    required_on_create=frozenset({"name", "price"}),
    ignored_fields=frozenset({"id", "businessId", "priceCents", "createdAt", "updatedAt"}),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products with optional pagination.

    Query params:
    - businessId: int (optional) - filter by business (caller must be a member)
    - lowStock: "true" (optional) - only products at or below the threshold
    - threshold: int (optional) - low-stock threshold override
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - perPage: int (optional) - items per page (default 20, max 100)
    """
    business_id = request.args.get("businessId", type=db_int)
    low_stock = request.args.get("lowStock", "").lower() == "true"
    threshold = request.args.get("threshold", type=db_int)
    page = request.args.get("page", type=db_int)
    per_page = request.args.get("perPage", type=db_int)

    try:
        if low_stock:
            products = products_service.list_low_stock_products(
                g.current_user.id,
                threshold=threshold,
                business_id=business_id,
            )
            items = [p.to_dict(include_business=True) for p in products]
            return {"items": items, "count": len(items)}, 200

        return products_service.list_products(
            g.current_user.id,
            business_id=business_id,
            page=page,
            per_page=per_page,
        ), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        business_id = require_int(payload, "businessId")
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        product = products_service.create_product(
            business_id=business_id,
            patch=patch,
            user_id=g.current_user.id,
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return product.to_dict(), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id, g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    return product.to_dict(include_business=True), 200


@products_bp.patch("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        product = products_service.update_product(
            product_id=product_id,
            patch=patch,
            user_id=g.current_user.id,
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    return product.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id=product_id, user_id=g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    return {"success": True}, 200
