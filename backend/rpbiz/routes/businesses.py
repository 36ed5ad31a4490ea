# Overview: Flask API routes for businesses; parses input and returns JSON responses.

"""
Business routes.

Any member can read a business; only the owner can edit, delete or rotate
its API key. The API key is only included in responses sent to the owner.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..models import Business
from ..services import business_service
from ..services.access_service import AccessDeniedError, NotFoundError
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_business,
    validate_payload,
)

BUSINESS_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "type": "business_type",
        "description": "description",
        "isActive": "is_active",
    },
    required_on_create=frozenset({"name", "type"}),
    # Ownership and keys are never client-controlled
    ignored_fields=frozenset({"id", "ownerId", "apiKey", "createdAt", "updatedAt"}),
)

businesses_bp = Blueprint("businesses", __name__, url_prefix="/api/businesses")


def _serialize(business: Business) -> dict:
    return business.to_dict(include_api_key=business.owner_id == g.current_user.id)


@businesses_bp.get("")
@require_auth
def list_businesses_route():
    businesses = business_service.list_businesses(g.current_user.id)
    return {"items": [_serialize(b) for b in businesses], "count": len(businesses)}, 200


@businesses_bp.post("")
@require_auth
def create_business_route():
    """Create a business; the caller becomes its owner."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Business, payload=payload, policy=BUSINESS_POLICY, partial=False)
        enforce_rules_business(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        business = business_service.create_business(owner_id=g.current_user.id, patch=patch)
    except Exception:
        current_app.logger.exception("Failed to create business")
        return {"error": "Internal server error"}, 500

    return _serialize(business), 201


@businesses_bp.get("/<int:business_id>")
@require_auth
def get_business_route(business_id: int):
    try:
        business = business_service.get_business(business_id, g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    return _serialize(business), 200


@businesses_bp.patch("/<int:business_id>")
@require_auth
def update_business_route(business_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Business, payload=payload, policy=BUSINESS_POLICY, partial=True)
        enforce_rules_business(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        business = business_service.update_business(business_id, g.current_user.id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    return _serialize(business), 200


@businesses_bp.delete("/<int:business_id>")
@require_auth
def delete_business_route(business_id: int):
    """Delete a business and everything that belongs to it (owner only)."""
    try:
        business_service.delete_business(business_id, g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403
    except Exception:
        current_app.logger.exception("Failed to delete business")
        return {"error": "Internal server error"}, 500

    return {"success": True}, 200


@businesses_bp.post("/<int:business_id>/api-key")
@require_auth
def rotate_api_key_route(business_id: int):
    try:
        business = business_service.rotate_api_key(business_id, g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    current_app.logger.info("API key rotated for business %s", business.id)
    return {"apiKey": business.api_key}, 200
